"""In-memory causal graph store.

Adjacency-list implementation of the GraphStore contract for tests and
embedded use. Conflict paths come from the bounded BFS in
services.path_search; enumeration order follows node and edge insertion
order, so results are deterministic for a given store.
"""

from datetime import UTC, datetime
from typing import Mapping, Optional, Sequence

from db.graph_store import DECISION_RELATIONS
from models.errors import InvalidQuery
from models.schemas import (
    Decision,
    FileNode,
    GraphEdge,
    GraphNode,
    RelationType,
    Sentiment,
    TeamGraph,
)
from services.path_search import find_bounded_paths
from utils.logging import get_logger

logger = get_logger(__name__)


class InMemoryGraphStore:
    def __init__(self):
        self._nodes: dict[str, GraphNode] = {}
        self._edges: list[GraphEdge] = []
        self._files: dict[tuple[str, str], FileNode] = {}
        # decision_id -> (team_id, file_hash)
        self._file_links: dict[str, tuple[str, str]] = {}

    def _team_nodes(self, team_id: str) -> list[GraphNode]:
        return [n for n in self._nodes.values() if n.team_id == team_id]

    def _same_team(self, team_id: str, *node_ids: str) -> bool:
        return all(
            node_id in self._nodes and self._nodes[node_id].team_id == team_id
            for node_id in node_ids
        )

    def _adjacency(self, team_id: str) -> dict[str, list[str]]:
        adjacency: dict[str, list[str]] = {n.id: [] for n in self._team_nodes(team_id)}
        for edge in self._edges:
            if edge.source not in adjacency or edge.target not in adjacency:
                continue
            if edge.target not in adjacency[edge.source]:
                adjacency[edge.source].append(edge.target)
            if edge.source not in adjacency[edge.target]:
                adjacency[edge.target].append(edge.source)
        return adjacency

    async def find_bounded_paths(
        self,
        team_id: str,
        sentiment: Sentiment = Sentiment.RED,
        min_hops: int = 1,
        max_hops: int = 3,
        limit: int = 50,
    ) -> list[list[str]]:
        marked = [n.id for n in self._team_nodes(team_id) if n.sentiment == sentiment]
        if len(marked) < 2:
            return []
        return find_bounded_paths(
            self._adjacency(team_id),
            sources=marked,
            targets=set(marked),
            min_hops=min_hops,
            max_hops=max_hops,
            limit=limit,
        )

    async def get_team_nodes(self, team_id: str) -> list[GraphNode]:
        return self._team_nodes(team_id)

    async def get_team_graph(self, team_id: str) -> TeamGraph:
        return TeamGraph(
            nodes=self._team_nodes(team_id),
            edges=[e for e in self._edges if self._same_team(team_id, e.source, e.target)],
        )

    async def upsert_decision(self, decision: Decision) -> None:
        existing = self._nodes.get(decision.decision_id)
        if existing is not None and existing.team_id != decision.team_id:
            raise InvalidQuery(
                f"Decision {decision.decision_id} already belongs to another team"
            )
        node = GraphNode.from_decision(decision)
        if node.timestamp is None:
            # Undated decisions take their first insertion time
            stored_at = existing.timestamp if existing is not None else datetime.now(UTC)
            node = node.model_copy(update={"timestamp": stored_at})
        self._nodes[decision.decision_id] = node

    async def create_relationship(
        self,
        team_id: str,
        from_id: str,
        to_id: str,
        relation: RelationType,
        sequence: Optional[int] = None,
    ) -> bool:
        if relation not in DECISION_RELATIONS:
            raise InvalidQuery(f"{relation.value} does not connect two decisions")
        if not self._same_team(team_id, from_id, to_id):
            logger.warning(
                f"Skipping {relation.value} edge {from_id} -> {to_id}: "
                f"endpoint missing from team {team_id}"
            )
            return False

        for edge in self._edges:
            if (edge.source, edge.target, edge.type) == (from_id, to_id, relation):
                return True
        self._edges.append(
            GraphEdge(source=from_id, target=to_id, type=relation, sequence=sequence)
        )
        return True

    async def store_decision(self, decision: Decision) -> None:
        await self.upsert_decision(decision)
        for precedent_id in decision.precedents:
            await self.create_relationship(
                decision.team_id, precedent_id, decision.decision_id, RelationType.CAUSES
            )

    async def link_file_sequence(self, file: FileNode, decision_ids: Sequence[str]) -> None:
        if not decision_ids:
            return
        self._files[(file.team_id, file.file_hash)] = file
        for decision_id in decision_ids:
            if self._same_team(file.team_id, decision_id):
                self._file_links[decision_id] = (file.team_id, file.file_hash)
        for sequence, (curr_id, next_id) in enumerate(zip(decision_ids, decision_ids[1:])):
            await self.create_relationship(
                file.team_id, curr_id, next_id, RelationType.NEXT, sequence=sequence
            )
        logger.info(
            f"Linked {len(decision_ids)} decisions to file {file.file_name}"
        )

    async def rebuild_next_chain(
        self, team_id: str, ordered_ids_by_file: Mapping[str, Sequence[str]]
    ) -> None:
        self._edges = [
            e
            for e in self._edges
            if not (e.type == RelationType.NEXT and self._same_team(team_id, e.source))
        ]
        for decision_ids in ordered_ids_by_file.values():
            for sequence, (curr_id, next_id) in enumerate(zip(decision_ids, decision_ids[1:])):
                await self.create_relationship(
                    team_id, curr_id, next_id, RelationType.NEXT, sequence=sequence
                )
        logger.info(f"Rebuilt NEXT chains for team {team_id}")

    def file_of(self, decision_id: str) -> Optional[FileNode]:
        """The File node a decision was linked to, if any."""
        link = self._file_links.get(decision_id)
        return self._files.get(link) if link else None

    async def ping(self) -> bool:
        return True
