"""Conflict detection and consistency scoring over the causal graph.

All analysis is team-scoped: every store call carries the team id, and a team
never sees another team's decisions.

Consistency score:
    clamp(100 - red_flags * red_weight - unresolved_conflicts * unresolved_weight, 0, 100)

The score is always returned with the counts it was computed from, so it can
be recomputed without re-running the graph query.
"""

from datetime import UTC, datetime
from typing import Iterable, Optional

from config import Settings, get_settings
from db.decision_store import DecisionStore
from db.graph_store import GraphStore
from models.errors import (
    DecisionStoreUnavailable,
    GraphUnavailable,
    InvalidQuery,
    StoreUnavailable,
)
from models.schemas import (
    ConflictFlag,
    ConsistencyMetrics,
    HealthReport,
    Sentiment,
)
from utils.logging import LogContext, get_logger
from utils.timeout import bounded_call

logger = get_logger(__name__)


def consistency_score_from_counts(
    red_flags: int,
    unresolved_conflicts: int,
    red_weight: int = 10,
    unresolved_weight: int = 5,
) -> int:
    """Score from its component counts, clamped to 0-100."""
    score = 100 - red_flags * red_weight - unresolved_conflicts * unresolved_weight
    return max(0, min(100, score))


def _check_team(team_id: str) -> None:
    if not team_id or not team_id.strip():
        raise InvalidQuery("team_id is required")


class ConflictDetector:
    """Finds contradiction paths between RED decisions and scores graph health.

    Stores are injected; their lifecycle belongs to the caller. Each call
    re-issues its queries, so concurrent calls share no state.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        decision_store: DecisionStore,
        settings: Optional[Settings] = None,
    ):
        self.graph_store = graph_store
        self.decision_store = decision_store
        self.settings = settings or get_settings()

    async def find_conflict_paths(self, team_id: str) -> list[list[str]]:
        """Short paths of any edge type connecting two distinct RED decisions."""
        _check_team(team_id)
        s = self.settings
        async with LogContext(team_id=team_id):
            return await bounded_call(
                self.graph_store.find_bounded_paths(
                    team_id,
                    sentiment=Sentiment.RED,
                    min_hops=s.conflict_min_hops,
                    max_hops=s.conflict_max_hops,
                    limit=s.conflict_path_limit,
                ),
                timeout=s.store_timeout_seconds,
                operation="find_conflict_paths",
                error_cls=GraphUnavailable,
            )

    async def _resolve_labels(self, team_id: str, decision_ids: Iterable[str]) -> dict[str, str]:
        decisions = await bounded_call(
            self.decision_store.get_by_ids(team_id, decision_ids),
            timeout=self.settings.store_timeout_seconds,
            operation="get_decisions_by_ids",
            error_cls=DecisionStoreUnavailable,
        )
        return {d.decision_id: d.decision for d in decisions if d.decision}

    async def detect_conflicts(self, team_id: str) -> list[ConflictFlag]:
        """One unresolved flag per conflict path, in path discovery order.

        decision_a/decision_b are the display labels of the path endpoints,
        falling back to the raw id when the decision store has no label.
        Severity grows with path length: min(cap, number of nodes).
        """
        async with LogContext(team_id=team_id):
            paths = [p for p in await self.find_conflict_paths(team_id) if len(p) >= 2]
            if not paths:
                logger.info(f"No conflict paths for team {team_id}")
                return []

            all_ids = list(dict.fromkeys(node_id for path in paths for node_id in path))
            labels = await self._resolve_labels(team_id, all_ids)

            detected_at = datetime.now(UTC)
            cap = self.settings.conflict_severity_cap
            flags = [
                ConflictFlag(
                    decision_a=labels.get(path[0], path[0]),
                    decision_b=labels.get(path[-1], path[-1]),
                    severity=min(cap, len(path)),
                    conflict_path=list(path),
                    detected_at=detected_at,
                    resolved=False,
                )
                for path in paths
            ]

            logger.info(
                f"Detected {len(flags)} conflict flags for team {team_id}",
                extra={"decisions_in_paths": len(all_ids)},
            )
            return flags

    async def calculate_consistency_score(self, team_id: str) -> ConsistencyMetrics:
        """Recompute the team's consistency metrics from scratch."""
        _check_team(team_id)
        s = self.settings
        async with LogContext(team_id=team_id):
            nodes = await bounded_call(
                self.graph_store.get_team_nodes(team_id),
                timeout=s.store_timeout_seconds,
                operation="get_team_nodes",
                error_cls=GraphUnavailable,
            )
            if not nodes:
                return ConsistencyMetrics(score=100)

            red_flags = sum(1 for n in nodes if n.sentiment == Sentiment.RED)
            green_alignments = sum(1 for n in nodes if n.sentiment == Sentiment.GREEN)
            neutral_count = len(nodes) - red_flags - green_alignments

            unresolved = 0
            if red_flags >= 2:
                conflicts = await self.detect_conflicts(team_id)
                unresolved = sum(1 for flag in conflicts if not flag.resolved)

            score = consistency_score_from_counts(
                red_flags,
                unresolved,
                red_weight=s.conflict_red_flag_weight,
                unresolved_weight=s.conflict_unresolved_weight,
            )
            logger.info(
                f"Consistency score {score} for team {team_id}: "
                f"{red_flags} red, {unresolved} unresolved, {len(nodes)} total"
            )
        return ConsistencyMetrics(
            score=score,
            red_flags=red_flags,
            green_alignments=green_alignments,
            neutral_count=neutral_count,
            unresolved_conflicts=unresolved,
            total_decisions=len(nodes),
        )

    async def check_health(self, team_id: str) -> HealthReport:
        """Consistency metrics, degraded to an "unknown" report when a store is down."""
        async with LogContext(team_id=team_id):
            try:
                metrics = await self.calculate_consistency_score(team_id)
            except StoreUnavailable as e:
                logger.warning(f"Reporting unknown health for team {team_id}: {e}")
                return HealthReport(status="unknown", error=str(e))
        return HealthReport(status="ok", metrics=metrics)
