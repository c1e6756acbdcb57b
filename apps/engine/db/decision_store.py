"""Decision store: team-scoped reads of persisted decision records.

Every read filters by team_id. Missing ids are omitted, never errors.
"""

from typing import Iterable, Optional, Protocol, Sequence

from pydantic import ValidationError
from sqlalchemy import select

from db.postgres import PostgresDatabase, is_unavailable_error
from models.errors import DecisionStoreUnavailable
from models.postgres import DecisionRecord
from models.schemas import Decision
from utils.logging import get_logger

logger = get_logger(__name__)


class DecisionStore(Protocol):
    async def get_by_ids(self, team_id: str, ids: Iterable[str]) -> list[Decision]:
        ...

    async def list(self, team_id: str, limit: int = 50, offset: int = 0) -> list[Decision]:
        ...


def record_to_decision(record: DecisionRecord) -> Optional[Decision]:
    """Build a Decision from a stored row, or None if the row is unusable.

    The row's columns win over full_json for identity and scope. A missing
    timestamp falls back to the row's upload time.
    """
    data = dict(record.full_json or {})
    data["decision_id"] = record.decision_id
    data["team_id"] = record.team_id
    if not data.get("decision"):
        data["decision"] = data.get("label") or ""
    if not data.get("source_ref") and record.source_ref:
        data["source_ref"] = record.source_ref
    if not data.get("timestamp"):
        data["timestamp"] = record.uploaded_at
    data.setdefault("actor", "")
    try:
        return Decision.model_validate(data)
    except ValidationError as e:
        logger.warning(
            f"Skipping malformed decision row {record.decision_id}: "
            f"{e.error_count()} validation error(s)"
        )
        return None


class SqlDecisionStore:
    """Decision store backed by the `decisions` table."""

    def __init__(self, database: PostgresDatabase):
        self.database = database

    async def get_by_ids(self, team_id: str, ids: Iterable[str]) -> list[Decision]:
        id_list = list(dict.fromkeys(ids))
        if not id_list:
            return []

        stmt = select(DecisionRecord).where(
            DecisionRecord.team_id == team_id,
            DecisionRecord.decision_id.in_(id_list),
        )
        rows = await self._fetch(stmt, "get_by_ids")
        return [d for d in (record_to_decision(r) for r in rows) if d is not None]

    async def list(self, team_id: str, limit: int = 50, offset: int = 0) -> list[Decision]:
        stmt = (
            select(DecisionRecord)
            .where(DecisionRecord.team_id == team_id)
            .order_by(
                DecisionRecord.upload_sequence.desc().nulls_last(),
                DecisionRecord.created_at.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        rows = await self._fetch(stmt, "list")
        return [d for d in (record_to_decision(r) for r in rows) if d is not None]

    async def _fetch(self, stmt, operation: str) -> Sequence[DecisionRecord]:
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                return result.scalars().all()
        except Exception as e:
            if is_unavailable_error(e):
                logger.error(f"Decision store {operation} failed: {type(e).__name__}: {e}")
                raise DecisionStoreUnavailable(operation, e) from e
            raise


class InMemoryDecisionStore:
    """Dict-backed decision store for tests and embedded use."""

    def __init__(self, decisions: Iterable[Decision] = ()):
        self._decisions: dict[str, Decision] = {}
        for decision in decisions:
            self.add(decision)

    def add(self, decision: Decision) -> None:
        self._decisions[decision.decision_id] = decision

    async def get_by_ids(self, team_id: str, ids: Iterable[str]) -> list[Decision]:
        found = []
        for decision_id in dict.fromkeys(ids):
            decision = self._decisions.get(decision_id)
            if decision is not None and decision.team_id == team_id:
                found.append(decision)
        return found

    async def list(self, team_id: str, limit: int = 50, offset: int = 0) -> list[Decision]:
        # Newest first, mirroring the upload-sequence ordering of the SQL store
        team_decisions = [d for d in self._decisions.values() if d.team_id == team_id]
        team_decisions.reverse()
        return team_decisions[offset : offset + limit]
