# Models
from models.errors import (
    DecisionStoreUnavailable,
    EngineError,
    GraphUnavailable,
    InvalidQuery,
    StoreUnavailable,
)
from models.schemas import (
    ConflictFlag,
    ConsistencyMetrics,
    Decision,
    GraphEdge,
    GraphNode,
    HealthReport,
    Importance,
    RelationType,
    RetrievalResult,
    Sentiment,
    SourceType,
)

__all__ = [
    "ConflictFlag",
    "ConsistencyMetrics",
    "Decision",
    "DecisionStoreUnavailable",
    "EngineError",
    "GraphEdge",
    "GraphNode",
    "GraphUnavailable",
    "HealthReport",
    "Importance",
    "InvalidQuery",
    "RelationType",
    "RetrievalResult",
    "Sentiment",
    "SourceType",
    "StoreUnavailable",
]
