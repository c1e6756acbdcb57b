"""Test data factories for the decision engine tests.

Defaults are deterministic so token estimates and relevance scores are
stable across runs; pass explicit values wherever a test depends on them.
"""

import itertools
from datetime import UTC, datetime, timedelta
from typing import Optional

from models.schemas import Decision, FileNode, Importance, Sentiment

# Fixed clock shared by recency-sensitive tests
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)

_ids = itertools.count(1)


class DecisionFactory:
    """Factory for creating test decisions."""

    TEXTS = [
        "Adopt PostgreSQL for the billing ledger",
        "Freeze hiring for the mobile team",
        "Move the analytics pipeline to nightly batches",
        "Deprecate the legacy SOAP gateway",
        "Require design review for public API changes",
    ]

    @classmethod
    def create(
        cls,
        decision_id: Optional[str] = None,
        team_id: str = "team-alpha",
        actor: str = "Platform Team",
        text: Optional[str] = None,
        reasoning: str = "",
        sentiment: Sentiment = Sentiment.NEUTRAL,
        importance: Optional[Importance] = None,
        timestamp: Optional[datetime] = None,
        age_days: Optional[float] = None,
        source_ref: str = "",
        precedents: tuple[str, ...] = (),
    ) -> Decision:
        """Create a test decision.

        age_days sets the timestamp relative to NOW.
        """
        n = next(_ids)
        if text is None:
            text = cls.TEXTS[n % len(cls.TEXTS)]
        if age_days is not None:
            timestamp = NOW - timedelta(days=age_days)

        return Decision(
            decision_id=decision_id or f"dec-{n:04d}",
            team_id=team_id,
            actor=actor,
            text=text,
            reasoning=reasoning,
            sentiment=sentiment,
            importance=importance,
            timestamp=timestamp,
            source_ref=source_ref,
            precedents=precedents,
        )

    @classmethod
    def create_batch(cls, count: int, **kwargs) -> list[Decision]:
        """Create multiple test decisions."""
        return [cls.create(**kwargs) for _ in range(count)]

    @classmethod
    def red(cls, decision_id: str, team_id: str = "team-alpha", **kwargs) -> Decision:
        return cls.create(
            decision_id=decision_id, team_id=team_id, sentiment=Sentiment.RED, **kwargs
        )


class FileFactory:
    """Factory for creating File provenance nodes."""

    @classmethod
    def create(
        cls,
        file_hash: Optional[str] = None,
        file_name: str = "q3-planning-notes.md",
        team_id: str = "team-alpha",
    ) -> FileNode:
        return FileNode(
            file_hash=file_hash or f"hash-{next(_ids):04d}",
            file_name=file_name,
            team_id=team_id,
            uploaded_at=NOW,
        )
