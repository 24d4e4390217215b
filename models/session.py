from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import Field
from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from services.database import Base
from models.hal import ApiModel
from models.paging import PagingInstruction


# -----------------------------------------------------------------------------
# SQLAlchemy Model
# -----------------------------------------------------------------------------
class Session(Base):
    """An authenticated login bound to one client (ip address + user agent)."""
    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: uuid4().hex)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # sha256 fingerprint of session key + client + server salt
    session_signature: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)
    user_agent: Mapped[str] = mapped_column(String(1024), nullable=False)

    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    date_last_accessed: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    date_expires: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_sessions_user_created", "user_id", "date_created"),
    )


# -----------------------------------------------------------------------------
# Pydantic Models
# -----------------------------------------------------------------------------
class SessionRead(ApiModel):
    session_id: str
    user_id: str
    ip_address: str
    user_agent: str
    date_created: datetime
    date_last_accessed: datetime
    date_expires: datetime


class GetSessionsRequest(ApiModel):
    paging_instruction: Optional[PagingInstruction] = None


class DeleteSessionsRequest(ApiModel):
    session_ids: list[str] = Field(
        ...,
        min_length=1,
        description="Identifiers of the sessions to delete"
    )
