from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import Field
from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from services.database import Base
from models.hal import ApiModel
from models.paging import PagingInstruction


# -----------------------------------------------------------------------------
# SQLAlchemy Model
# -----------------------------------------------------------------------------
class ApiKey(Base):
    """Programmatic credential. Only the sha256 of the key is stored."""
    __tablename__ = "api_keys"

    api_key_id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: uuid4().hex)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    api_key_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    key_prefix: Mapped[str] = mapped_column(String(8), nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)

    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    date_last_accessed: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )


# -----------------------------------------------------------------------------
# Pydantic Models
# -----------------------------------------------------------------------------
class ApiKeyRead(ApiModel):
    api_key_id: str
    user_id: str
    key_prefix: str
    label: str
    date_created: datetime
    date_last_accessed: Optional[datetime] = None


class GetApiKeysRequest(ApiModel):
    paging_instruction: Optional[PagingInstruction] = None


class CreateApiKeyRequest(ApiModel):
    label: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Human readable name for the key"
    )


class DeleteApiKeysRequest(ApiModel):
    api_key_ids: list[str] = Field(
        ...,
        min_length=1,
        description="Identifiers of the API keys to delete"
    )
