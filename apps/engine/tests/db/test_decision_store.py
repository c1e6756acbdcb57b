"""Tests for the SQL and in-memory decision stores."""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError

from db.decision_store import InMemoryDecisionStore, SqlDecisionStore, record_to_decision
from models.errors import DecisionStoreUnavailable
from models.postgres import DecisionRecord
from models.schemas import Importance, Sentiment
from tests.factories import DecisionFactory

UPLOADED = datetime(2026, 5, 20, 8, 30, tzinfo=UTC)


def make_record(decision_id="d1", team_id="team-alpha", **full_json):
    full_json.setdefault("actor", "Finance")
    full_json.setdefault("decision", "Cut cloud spend by 20%")
    return DecisionRecord(
        decision_id=decision_id,
        team_id=team_id,
        source_type="document",
        source_ref="budget.md",
        schema_version="v1",
        full_json=full_json,
        uploaded_at=UPLOADED,
        created_at=UPLOADED,
    )


class FakeDatabase:
    """Stands in for PostgresDatabase; hands out one mock session."""

    def __init__(self, rows=None, error=None):
        self.session_obj = MagicMock()
        result = MagicMock()
        result.scalars.return_value.all.return_value = rows or []
        self.session_obj.execute = AsyncMock(return_value=result, side_effect=error)

    @asynccontextmanager
    async def session(self):
        yield self.session_obj

    @property
    def statements(self):
        return [call.args[0] for call in self.session_obj.execute.call_args_list]


class TestRecordToDecision:
    def test_columns_win_over_document(self):
        record = make_record(decision_id="d1", team_id="team-alpha")
        record.full_json = {**record.full_json, "decision_id": "spoof", "team_id": "team-beta"}

        decision = record_to_decision(record)

        assert decision.decision_id == "d1"
        assert decision.team_id == "team-alpha"

    def test_lenient_fields(self):
        decision = record_to_decision(
            make_record(sentiment="bogus", importance="HIGH-ish", source_type="slack")
        )

        assert decision.sentiment == Sentiment.NEUTRAL
        assert decision.importance is None

    def test_known_fields_parsed(self):
        decision = record_to_decision(
            make_record(sentiment="GREEN", importance="strategic", timestamp="2026-01-02T03:04:05Z")
        )

        assert decision.sentiment == Sentiment.GREEN
        assert decision.importance == Importance.STRATEGIC
        assert decision.timestamp == datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)

    def test_missing_timestamp_falls_back_to_upload_time(self):
        assert record_to_decision(make_record()).timestamp == UPLOADED

    def test_source_ref_from_column(self):
        assert record_to_decision(make_record()).source_ref == "budget.md"

    def test_label_used_when_text_missing(self):
        decision = record_to_decision(make_record(decision="", label="Cut spend"))

        assert decision.decision == "Cut spend"

    def test_unusable_row_skipped(self):
        record = make_record()
        record.full_json = {"actor": ["not", "a", "string"]}

        assert record_to_decision(record) is None


class TestSqlDecisionStore:
    @pytest.mark.asyncio
    async def test_get_by_ids_filters_by_team(self):
        database = FakeDatabase(rows=[make_record("d1"), make_record("d2")])
        store = SqlDecisionStore(database)

        decisions = await store.get_by_ids("team-alpha", ["d1", "d2", "d1"])

        assert [d.decision_id for d in decisions] == ["d1", "d2"]
        sql = str(database.statements[0])
        assert "decisions.team_id" in sql
        assert "IN" in sql

    @pytest.mark.asyncio
    async def test_get_by_no_ids_skips_query(self):
        database = FakeDatabase()

        assert await SqlDecisionStore(database).get_by_ids("team-alpha", []) == []
        assert database.statements == []

    @pytest.mark.asyncio
    async def test_list_orders_by_upload_sequence(self):
        database = FakeDatabase(rows=[make_record("d2"), make_record("d1")])

        decisions = await SqlDecisionStore(database).list("team-alpha", limit=2)

        assert [d.decision_id for d in decisions] == ["d2", "d1"]
        sql = str(database.statements[0])
        assert "ORDER BY decisions.upload_sequence DESC NULLS LAST" in sql
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_malformed_rows_dropped(self):
        bad = make_record("bad")
        bad.full_json = {"actor": 42}
        database = FakeDatabase(rows=[make_record("good"), bad])

        decisions = await SqlDecisionStore(database).list("team-alpha")

        assert [d.decision_id for d in decisions] == ["good"]

    @pytest.mark.asyncio
    async def test_connection_failure_raises_unavailable(self):
        error = OperationalError("SELECT 1", {}, ConnectionRefusedError("refused"))
        store = SqlDecisionStore(FakeDatabase(error=error))

        with pytest.raises(DecisionStoreUnavailable) as exc_info:
            await store.list("team-alpha")

        assert exc_info.value.operation == "list"

    @pytest.mark.asyncio
    async def test_query_errors_propagate(self):
        error = ProgrammingError("SELECT 1", {}, Exception("syntax error"))
        store = SqlDecisionStore(FakeDatabase(error=error))

        with pytest.raises(ProgrammingError):
            await store.get_by_ids("team-alpha", ["d1"])


class TestInMemoryDecisionStore:
    @pytest.mark.asyncio
    async def test_get_by_ids_omits_missing_and_foreign(self):
        store = InMemoryDecisionStore(
            [
                DecisionFactory.create(decision_id="a"),
                DecisionFactory.create(decision_id="b", team_id="team-beta"),
            ]
        )

        found = await store.get_by_ids("team-alpha", ["a", "b", "ghost"])

        assert [d.decision_id for d in found] == ["a"]

    @pytest.mark.asyncio
    async def test_list_newest_first_with_paging(self):
        store = InMemoryDecisionStore(
            [DecisionFactory.create(decision_id=f"d{i}") for i in range(5)]
        )

        page = await store.list("team-alpha", limit=2, offset=1)

        assert [d.decision_id for d in page] == ["d3", "d2"]
