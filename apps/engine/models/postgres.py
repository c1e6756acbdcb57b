from datetime import UTC, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.postgres import Base


def generate_uuid() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class DecisionRecord(Base):
    """A persisted decision; full_json holds the complete decision document."""

    __tablename__ = "decisions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    decision_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    team_id: Mapped[str] = mapped_column(String(64), index=True)
    source_type: Mapped[str] = mapped_column(String(20), default="document")
    source_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    schema_version: Mapped[str] = mapped_column(String(10), default="v1")
    full_json: Mapped[dict] = mapped_column(JSON)
    file_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    upload_sequence: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
