"""Pydantic schemas for decisions, graph elements and engine results.

Decisions are read from loosely-typed stores (JSON columns, graph property
bags). Parsing is lenient per field: an unknown importance, sentiment or
timestamp degrades to its neutral default instead of rejecting the record, so
one bad row never fails a whole batch.
"""

import hashlib
from datetime import UTC, datetime
from enum import Enum
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Characters of decision text used as a node label
LABEL_LENGTH = 50


class Sentiment(str, Enum):
    """Polarity of a decision relative to the organization's direction."""

    RED = "RED"  # conflicting / blocking
    GREEN = "GREEN"  # aligned / approving
    NEUTRAL = "NEUTRAL"


class Importance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    STRATEGIC = "strategic"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _IMPORTANCE_ORDER.index(self)


_IMPORTANCE_ORDER = [
    Importance.LOW,
    Importance.MEDIUM,
    Importance.STRATEGIC,
    Importance.CRITICAL,
]


class SourceType(str, Enum):
    VIDEO = "video"
    SLACK = "slack"
    GITHUB = "github"
    DOCUMENT = "document"


class RelationType(str, Enum):
    """Typed edges of the causal graph."""

    CAUSES = "CAUSES"
    BLOCKS = "BLOCKS"
    DEPENDS_ON = "DEPENDS_ON"
    NEXT = "NEXT"  # sequential order within one uploaded file
    FROM_FILE = "FROM_FILE"  # provenance link to a File node


def decision_content_id(actor: str, text: str, source_ref: str = "") -> str:
    """Stable identifier for a decision: SHA-256 of actor, text and source."""
    payload = "\n".join([actor, text, source_ref or ""])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _lenient_sentiment(value):
    if isinstance(value, Sentiment):
        return value
    if isinstance(value, str) and value.upper() in Sentiment.__members__:
        return Sentiment[value.upper()]
    return Sentiment.NEUTRAL


def _lenient_importance(value):
    if value is None or isinstance(value, Importance):
        return value
    if isinstance(value, str):
        try:
            return Importance(value.strip().lower())
        except ValueError:
            return None
    return None


def _lenient_timestamp(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        # neo4j.time.DateTime and similar expose to_native()
        to_native = getattr(value, "to_native", None)
        if to_native is None:
            return None
        parsed = to_native()
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class _LenientRecord(BaseModel):
    """Shared field parsing for decision-shaped records."""

    @field_validator("sentiment", mode="before", check_fields=False)
    @classmethod
    def parse_sentiment(cls, v):
        return _lenient_sentiment(v)

    @field_validator("importance", mode="before", check_fields=False)
    @classmethod
    def parse_importance(cls, v):
        return _lenient_importance(v)

    @field_validator("timestamp", mode="before", check_fields=False)
    @classmethod
    def parse_timestamp(cls, v):
        return _lenient_timestamp(v)


class Decision(_LenientRecord):
    """One recorded organizational choice.

    Immutable once created. Extra properties found in the source record are
    dropped.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    decision_id: str = Field(..., min_length=1)
    team_id: str = Field(..., min_length=1)
    actor: str
    decision: str = Field(..., alias="text")
    reasoning: str = ""
    sentiment: Sentiment = Sentiment.NEUTRAL
    importance: Optional[Importance] = None
    timestamp: Optional[datetime] = None
    source_type: SourceType = SourceType.DOCUMENT
    source_ref: str = ""
    schema_version: str = "v1"
    precedents: tuple[str, ...] = ()

    @field_validator("reasoning", "source_ref", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("source_type", mode="before")
    @classmethod
    def lenient_source_type(cls, v):
        if isinstance(v, SourceType):
            return v
        try:
            return SourceType(str(v).lower())
        except ValueError:
            return SourceType.DOCUMENT

    @field_validator("precedents", mode="before")
    @classmethod
    def none_to_tuple(cls, v):
        return () if v is None else tuple(v)

    @property
    def text(self) -> str:
        """The canonical statement of the decision."""
        return self.decision

    @property
    def label(self) -> str:
        return self.decision[:LABEL_LENGTH]


class GraphNode(_LenientRecord):
    """The fixed property set of a Decision node in the causal graph."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    team_id: str
    sentiment: Sentiment = Sentiment.NEUTRAL
    importance: Optional[Importance] = None
    timestamp: Optional[datetime] = None
    label: str = ""

    @classmethod
    def from_decision(cls, decision: Decision) -> "GraphNode":
        return cls(
            id=decision.decision_id,
            team_id=decision.team_id,
            sentiment=decision.sentiment,
            importance=decision.importance,
            timestamp=decision.timestamp,
            label=decision.label,
        )


class GraphEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    type: RelationType
    sequence: Optional[int] = None


class FileNode(BaseModel):
    """Provenance node for one uploaded file."""

    model_config = ConfigDict(frozen=True)

    file_hash: str
    file_name: str
    team_id: str
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TeamGraph(BaseModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)


class ConflictFlag(BaseModel):
    """A contradiction surfaced from one conflict path.

    decision_a and decision_b are display labels of the path endpoints, not ids.
    """

    flag_id: str = Field(default_factory=lambda: str(uuid4()))
    decision_a: str
    decision_b: str
    severity: int = Field(..., ge=1, le=10)
    conflict_path: list[str] = Field(..., min_length=2)
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    resolved: bool = False


class ConsistencyMetrics(BaseModel):
    """Graph health score with the counts it is computed from."""

    score: int = Field(..., ge=0, le=100)
    red_flags: int = Field(0, ge=0)
    green_alignments: int = Field(0, ge=0)
    neutral_count: int = Field(0, ge=0)
    unresolved_conflicts: int = Field(0, ge=0)
    total_decisions: int = Field(0, ge=0)


class RetrievalResult(BaseModel):
    decisions: list[Decision] = Field(default_factory=list)
    token_count: int = 0
    scores: dict[str, float] = Field(default_factory=dict)


class HealthReport(BaseModel):
    """Consistency metrics, or an "unknown" state when the graph is unreachable."""

    status: Literal["ok", "unknown"]
    metrics: Optional[ConsistencyMetrics] = None
    error: Optional[str] = None
