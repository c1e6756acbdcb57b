"""Mock implementations for testing."""

from .neo4j_mock import MockNeo4jDriver, MockNeo4jResult, MockNeo4jSession

__all__ = [
    "MockNeo4jDriver",
    "MockNeo4jSession",
    "MockNeo4jResult",
]
