"""Contract for the causal graph store.

Any backend (property graph, adjacency lists, relational) that honours these
methods can back the conflict engine. Every method is scoped to one team and
never returns or connects nodes of another team.
"""

from typing import Mapping, Optional, Protocol, Sequence

from models.schemas import (
    Decision,
    FileNode,
    GraphNode,
    RelationType,
    Sentiment,
    TeamGraph,
)


class GraphStore(Protocol):
    async def find_bounded_paths(
        self,
        team_id: str,
        sentiment: Sentiment = Sentiment.RED,
        min_hops: int = 1,
        max_hops: int = 3,
        limit: int = 50,
    ) -> list[list[str]]:
        """Simple paths between two distinct decisions carrying `sentiment`."""
        ...

    async def get_team_nodes(self, team_id: str) -> list[GraphNode]:
        ...

    async def get_team_graph(self, team_id: str) -> TeamGraph:
        ...

    async def upsert_decision(self, decision: Decision) -> None:
        ...

    async def create_relationship(
        self,
        team_id: str,
        from_id: str,
        to_id: str,
        relation: RelationType,
        sequence: Optional[int] = None,
    ) -> bool:
        """Link two decisions of the same team; False if either is missing."""
        ...

    async def store_decision(self, decision: Decision) -> None:
        """Upsert a decision and link each precedent to it with CAUSES."""
        ...

    async def link_file_sequence(self, file: FileNode, decision_ids: Sequence[str]) -> None:
        """Attach decisions to their File node and chain them with NEXT."""
        ...

    async def rebuild_next_chain(
        self, team_id: str, ordered_ids_by_file: Mapping[str, Sequence[str]]
    ) -> None:
        """Replace the team's NEXT edges with chains in the given order."""
        ...

    async def ping(self) -> bool:
        ...


DECISION_RELATIONS = frozenset(
    {
        RelationType.CAUSES,
        RelationType.BLOCKS,
        RelationType.DEPENDS_ON,
        RelationType.NEXT,
    }
)
