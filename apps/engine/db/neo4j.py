"""Neo4j-backed causal graph store.

Pool configuration via settings:
- NEO4J_POOL_MAX_SIZE: Maximum connections (default: 50)
- NEO4J_POOL_ACQUISITION_TIMEOUT: Connection acquisition timeout in seconds (default: 60)

The store owns its driver; the caller owns the store's lifecycle:

    async with Neo4jGraphStore.from_settings(settings) as graph:
        detector = ConflictDetector(graph, decisions)

Connectivity failures surface as GraphUnavailable. Only schema bootstrap is
retried; engine reads fail fast and leave retry policy to the caller.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, AsyncIterator, Mapping, Optional, Sequence

from neo4j import AsyncGraphDatabase
from neo4j.exceptions import (
    ClientError,
    DatabaseError,
    ServiceUnavailable,
    SessionExpired,
    TransientError,
)

from config import Settings, get_settings
from db.graph_store import DECISION_RELATIONS
from models.errors import GraphUnavailable, InvalidQuery
from models.schemas import (
    Decision,
    FileNode,
    GraphEdge,
    GraphNode,
    RelationType,
    Sentiment,
    TeamGraph,
)
from services.path_search import validate_hop_window
from utils.logging import get_logger
from utils.retry import with_retry

logger = get_logger(__name__)

# ServiceUnavailable: Neo4j server is temporarily unavailable
# SessionExpired: Session has expired and needs to be recreated
# TransientError: Transient errors that may succeed on retry
NEO4J_UNAVAILABLE_EXCEPTIONS = (
    ServiceUnavailable,
    SessionExpired,
    TransientError,
    ConnectionError,
    TimeoutError,
    OSError,
)

# Interior nodes must be decisions of the same team, and no node may repeat.
# Each unordered endpoint pair is matched in one orientation only; DISTINCT
# collapses parallel edges before the limit applies.
CONFLICT_PATHS_QUERY = """
MATCH path = (a:Decision {{team_id: $team_id, sentiment: $sentiment}})
             -[*{min_hops}..{max_hops}]-
             (b:Decision {{team_id: $team_id, sentiment: $sentiment}})
WHERE a.decision_id < b.decision_id
  AND all(n IN nodes(path) WHERE n:Decision AND n.team_id = $team_id)
  AND all(i IN range(0, size(nodes(path)) - 2)
          WHERE NOT nodes(path)[i] IN nodes(path)[i + 1..])
RETURN DISTINCT [n IN nodes(path) | n.decision_id] AS conflict_path
LIMIT $limit
"""


def _is_unavailable_error(exc: BaseException) -> bool:
    return isinstance(exc, NEO4J_UNAVAILABLE_EXCEPTIONS)


def _node_from_record(record: Mapping[str, Any]) -> GraphNode:
    return GraphNode(
        id=record["id"],
        team_id=record["team_id"],
        sentiment=record.get("sentiment"),
        importance=record.get("importance"),
        timestamp=record.get("timestamp"),
        label=(record.get("decision") or "")[:50],
    )


class Neo4jGraphStore:
    """GraphStore over a Neo4j database."""

    def __init__(
        self,
        uri: str = "",
        user: str = "",
        password: str = "",
        pool_max_size: int = 50,
        acquisition_timeout: int = 60,
        driver=None,
    ):
        self.uri = uri
        self._auth = (user, password)
        self.pool_max_size = pool_max_size
        self.acquisition_timeout = acquisition_timeout
        self._driver = driver

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Neo4jGraphStore":
        settings = settings or get_settings()
        return cls(
            settings.neo4j_uri,
            settings.neo4j_user,
            settings.get_neo4j_password(),
            pool_max_size=settings.neo4j_pool_max_size,
            acquisition_timeout=settings.neo4j_pool_acquisition_timeout,
        )

    async def open(self) -> None:
        """Create the driver and its connection pool."""
        if self._driver is not None:
            return
        logger.info(
            f"Initializing Neo4j connection pool: "
            f"max_size={self.pool_max_size}, acquisition_timeout={self.acquisition_timeout}s"
        )
        self._driver = AsyncGraphDatabase.driver(
            self.uri,
            auth=self._auth,
            max_connection_pool_size=self.pool_max_size,
            connection_acquisition_timeout=self.acquisition_timeout,
        )

    async def close(self) -> None:
        """Close the connection pool."""
        if self._driver is not None:
            await self._driver.close()
            self._driver = None
            logger.info("Neo4j connection pool closed")

    async def __aenter__(self) -> "Neo4jGraphStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[Any]:
        if self._driver is None:
            raise RuntimeError("Neo4jGraphStore is not open")
        try:
            async with self._driver.session() as session:
                yield session
        except Exception as e:
            if _is_unavailable_error(e):
                logger.error(f"Graph store {operation} failed: {type(e).__name__}: {e}")
                raise GraphUnavailable(operation, e) from e
            raise

    async def ensure_schema(self) -> None:
        """Create constraints and indexes, retrying while the server starts."""

        async def create_indexes():
            async with self._driver.session() as session:
                await session.run(
                    "CREATE CONSTRAINT decision_id IF NOT EXISTS "
                    "FOR (d:Decision) REQUIRE d.decision_id IS UNIQUE"
                )
                await session.run(
                    "CREATE INDEX decision_team IF NOT EXISTS FOR (d:Decision) ON (d.team_id)"
                )
                await session.run(
                    "CREATE INDEX file_hash IF NOT EXISTS FOR (f:File) ON (f.file_hash)"
                )
                try:
                    await session.run(
                        "CREATE INDEX decision_team_sentiment IF NOT EXISTS "
                        "FOR (d:Decision) ON (d.team_id, d.sentiment)"
                    )
                    logger.info("Created decision_team_sentiment composite index")
                except (ClientError, DatabaseError) as e:
                    logger.debug(f"Decision team_sentiment index skipped: {e}")

        await with_retry(
            create_indexes,
            is_retryable=_is_unavailable_error,
            max_retries=3,
            base_delay=1.0,
            operation_name="Neo4j index creation",
        )
        logger.info("Neo4j schema ready")

    async def ping(self) -> bool:
        try:
            async with self._session("ping") as session:
                result = await session.run("RETURN 1 AS ok")
                await result.single()
            return True
        except GraphUnavailable:
            return False

    async def find_bounded_paths(
        self,
        team_id: str,
        sentiment: Sentiment = Sentiment.RED,
        min_hops: int = 1,
        max_hops: int = 3,
        limit: int = 50,
    ) -> list[list[str]]:
        validate_hop_window(min_hops, max_hops, limit)
        # Cypher cannot parameterize hop bounds; both are validated ints
        query = CONFLICT_PATHS_QUERY.format(min_hops=int(min_hops), max_hops=int(max_hops))

        async with self._session("find_bounded_paths") as session:
            result = await session.run(
                query,
                team_id=team_id,
                sentiment=Sentiment(sentiment).value,
                limit=limit,
            )
            records = [dict(record) async for record in result]

        return [list(record["conflict_path"]) for record in records]

    async def get_team_nodes(self, team_id: str) -> list[GraphNode]:
        async with self._session("get_team_nodes") as session:
            result = await session.run(
                """
                MATCH (d:Decision {team_id: $team_id})
                RETURN d.decision_id AS id,
                       d.team_id AS team_id,
                       d.sentiment AS sentiment,
                       d.importance AS importance,
                       d.timestamp AS timestamp,
                       d.decision AS decision
                """,
                team_id=team_id,
            )
            records = [dict(record) async for record in result]
        return [_node_from_record(record) for record in records]

    async def get_team_graph(self, team_id: str) -> TeamGraph:
        nodes = await self.get_team_nodes(team_id)
        async with self._session("get_team_graph") as session:
            result = await session.run(
                """
                MATCH (d:Decision {team_id: $team_id})-[r]->(other:Decision {team_id: $team_id})
                RETURN d.decision_id AS source,
                       other.decision_id AS target,
                       type(r) AS type,
                       r.sequence AS sequence
                """,
                team_id=team_id,
            )
            records = [dict(record) async for record in result]
        edges = [
            GraphEdge(
                source=r["source"],
                target=r["target"],
                type=r["type"],
                sequence=r.get("sequence"),
            )
            for r in records
        ]
        return TeamGraph(nodes=nodes, edges=edges)

    async def upsert_decision(self, decision: Decision) -> None:
        async with self._session("upsert_decision") as session:
            result = await session.run(
                """
                MERGE (d:Decision {decision_id: $decision_id})
                ON CREATE SET d.team_id = $team_id
                WITH d
                WHERE d.team_id = $team_id
                SET d.schema_version = $schema_version,
                    d.source_type = $source_type,
                    d.source_ref = $source_ref,
                    d.actor = $actor,
                    d.decision = $decision,
                    d.reasoning = $reasoning,
                    d.sentiment = $sentiment,
                    d.importance = $importance,
                    d.timestamp = COALESCE($timestamp, d.timestamp, $stored_at)
                RETURN d.decision_id AS id
                """,
                decision_id=decision.decision_id,
                team_id=decision.team_id,
                schema_version=decision.schema_version,
                source_type=decision.source_type.value,
                source_ref=decision.source_ref,
                actor=decision.actor,
                decision=decision.decision,
                reasoning=decision.reasoning,
                sentiment=decision.sentiment.value,
                importance=decision.importance.value if decision.importance else None,
                timestamp=decision.timestamp.isoformat() if decision.timestamp else None,
                stored_at=datetime.now(UTC).isoformat(),
            )
            record = await result.single()
        if record is None:
            raise InvalidQuery(
                f"Decision {decision.decision_id} already belongs to another team"
            )

    async def create_relationship(
        self,
        team_id: str,
        from_id: str,
        to_id: str,
        relation: RelationType,
        sequence: Optional[int] = None,
    ) -> bool:
        relation = RelationType(relation)
        if relation not in DECISION_RELATIONS:
            raise InvalidQuery(f"{relation.value} does not connect two decisions")

        async with self._session("create_relationship") as session:
            result = await session.run(
                f"""
                MATCH (a:Decision {{decision_id: $from_id, team_id: $team_id}})
                MATCH (b:Decision {{decision_id: $to_id, team_id: $team_id}})
                MERGE (a)-[r:{relation.value}]->(b)
                SET r.created_at = $created_at,
                    r.sequence = $sequence
                RETURN count(r) AS linked
                """,
                from_id=from_id,
                to_id=to_id,
                team_id=team_id,
                created_at=datetime.now(UTC).isoformat(),
                sequence=sequence,
            )
            record = await result.single()

        linked = bool(record and record["linked"])
        if not linked:
            logger.warning(
                f"Skipping {relation.value} edge {from_id} -> {to_id}: "
                f"endpoint missing from team {team_id}"
            )
        return linked

    async def store_decision(self, decision: Decision) -> None:
        await self.upsert_decision(decision)
        for precedent_id in decision.precedents:
            await self.create_relationship(
                decision.team_id, precedent_id, decision.decision_id, RelationType.CAUSES
            )

    async def link_file_sequence(self, file: FileNode, decision_ids: Sequence[str]) -> None:
        if not decision_ids:
            return
        ids = list(decision_ids)

        async with self._session("link_file_sequence") as session:
            await session.run(
                """
                MERGE (f:File {file_hash: $file_hash, team_id: $team_id})
                SET f.file_name = $file_name,
                    f.uploaded_at = $uploaded_at
                """,
                file_hash=file.file_hash,
                team_id=file.team_id,
                file_name=file.file_name,
                uploaded_at=file.uploaded_at.isoformat(),
            )
            await session.run(
                """
                MATCH (f:File {file_hash: $file_hash, team_id: $team_id})
                UNWIND $ids AS decision_id
                MATCH (d:Decision {decision_id: decision_id, team_id: $team_id})
                SET d.file_hash = $file_hash
                MERGE (d)-[:FROM_FILE]->(f)
                """,
                file_hash=file.file_hash,
                team_id=file.team_id,
                ids=ids,
            )
            await session.run(
                """
                UNWIND range(0, size($ids) - 2) AS i
                MATCH (curr:Decision {decision_id: $ids[i], team_id: $team_id})
                MATCH (next:Decision {decision_id: $ids[i + 1], team_id: $team_id})
                MERGE (curr)-[:NEXT {sequence: i}]->(next)
                """,
                team_id=file.team_id,
                ids=ids,
            )

        logger.info(f"Linked {len(ids)} decisions to file {file.file_name}")

    async def rebuild_next_chain(
        self, team_id: str, ordered_ids_by_file: Mapping[str, Sequence[str]]
    ) -> None:
        async with self._session("rebuild_next_chain") as session:
            await session.run(
                """
                MATCH (:Decision {team_id: $team_id})-[r:NEXT]->(:Decision)
                DELETE r
                """,
                team_id=team_id,
            )
            for decision_ids in ordered_ids_by_file.values():
                await session.run(
                    """
                    UNWIND range(0, size($ids) - 2) AS i
                    MATCH (curr:Decision {decision_id: $ids[i], team_id: $team_id})
                    MATCH (next:Decision {decision_id: $ids[i + 1], team_id: $team_id})
                    MERGE (curr)-[:NEXT {sequence: i}]->(next)
                    """,
                    team_id=team_id,
                    ids=list(decision_ids),
                )

        logger.info(f"Rebuilt NEXT chains for team {team_id}")
