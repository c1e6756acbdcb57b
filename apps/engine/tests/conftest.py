"""Shared pytest fixtures for the decision engine tests."""

from typing import Optional

import pytest

from config import Settings
from db.decision_store import InMemoryDecisionStore
from db.memory import InMemoryGraphStore
from models.schemas import Decision, RelationType
from services.conflict_detector import ConflictDetector
from services.retriever import BudgetedRetriever
from tests.factories import NOW
from tests.mocks.neo4j_mock import MockNeo4jDriver, MockNeo4jSession

# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """Default settings, isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def now():
    """Fixed clock for recency-sensitive tests."""
    return NOW


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def graph_store():
    """Empty in-memory causal graph store."""
    return InMemoryGraphStore()


@pytest.fixture
def decision_store():
    """Empty in-memory decision store."""
    return InMemoryDecisionStore()


@pytest.fixture
def seed_graph(graph_store, decision_store):
    """Load decisions and edges into both in-memory stores.

    Example:
        async def test_paths(seed_graph):
            await seed_graph(
                [a, b, c],
                edges=[("a", "b", RelationType.CAUSES)],
            )
    """

    async def _seed(
        decisions: list[Decision],
        edges: Optional[list[tuple[str, str, RelationType]]] = None,
    ):
        for decision in decisions:
            await graph_store.upsert_decision(decision)
            decision_store.add(decision)
        teams = {d.decision_id: d.team_id for d in decisions}
        for from_id, to_id, relation in edges or []:
            await graph_store.create_relationship(teams[from_id], from_id, to_id, relation)

    return _seed


@pytest.fixture
def detector(graph_store, decision_store, settings):
    """ConflictDetector over the in-memory stores."""
    return ConflictDetector(graph_store, decision_store, settings=settings)


@pytest.fixture
def retriever(settings):
    """BudgetedRetriever with default settings."""
    return BudgetedRetriever(settings)


# ============================================================================
# Neo4j Fixtures
# ============================================================================


@pytest.fixture
def mock_neo4j_session():
    """Create a controllable mock Neo4j session.

    Example:
        async def test_find_paths(mock_neo4j_session, neo4j_store):
            mock_neo4j_session.set_response(
                "conflict_path",
                records=[{"conflict_path": ["a", "b"]}],
            )
            paths = await neo4j_store.find_bounded_paths("team-alpha")
    """
    return MockNeo4jSession()


@pytest.fixture
def mock_neo4j_driver(mock_neo4j_session):
    """Driver double that hands out mock_neo4j_session."""
    return MockNeo4jDriver(mock_neo4j_session)


@pytest.fixture
def neo4j_store(mock_neo4j_driver):
    """Neo4jGraphStore wired to the mock driver."""
    from db.neo4j import Neo4jGraphStore

    return Neo4jGraphStore(driver=mock_neo4j_driver)
