from __future__ import annotations
from datetime import datetime, timezone
from enum import IntEnum, IntFlag
from typing import Optional
from uuid import uuid4

from pydantic import Field, field_validator
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from services.database import Base
from models.hal import ApiModel


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------
class Role(IntEnum):
    """Ordered roles; a higher role satisfies any lower requirement."""
    BASE = 0
    SUPPORT = 1
    ACCOUNT_MANAGER = 2
    ADMIN = 3


class Features(IntFlag):
    NONE = 0
    CONTACTS = 1
    CAMPAIGNS = 2
    LINKS = 4
    APPS = 8


# -----------------------------------------------------------------------------
# SQLAlchemy Model
# -----------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # unique identifier from the identity provider
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    first_name: Mapped[str] = mapped_column(String(255), default="")
    last_name: Mapped[str] = mapped_column(String(255), default="")

    role: Mapped[int] = mapped_column(Integer, default=Role.BASE, nullable=False)
    features: Mapped[int] = mapped_column(Integer, default=Features.NONE, nullable=False)

    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    date_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )


# -----------------------------------------------------------------------------
# Pydantic Schemas
# -----------------------------------------------------------------------------
class UserRead(ApiModel):
    user_id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    features: int
    date_created: datetime
    date_modified: datetime


class UserUpdate(ApiModel):
    """Update user information"""
    first_name: Optional[str] = Field(
        None,
        min_length=1,
        max_length=255,
        description="Updated first name"
    )
    last_name: Optional[str] = Field(
        None,
        min_length=1,
        max_length=255,
        description="Updated last name"
    )

    @field_validator('first_name', 'last_name')
    @classmethod
    def reject_empty_strings(cls, v: Optional[str]) -> Optional[str]:
        """Ensure if provided, fields are not empty strings"""
        if v is not None and v.strip() == "":
            raise ValueError("Field cannot be empty string")
        return v
