from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Literal, Optional, TypeVar

from pydantic import Field

from models.hal import ApiModel

T = TypeVar("T")


class PagingInstruction(ApiModel):
    """Opaque cursor echoed back by the client to fetch another page."""
    cursor: Optional[datetime] = Field(
        None,
        description="date_created of the boundary item (exclusive)"
    )
    cursor_id: Optional[str] = Field(
        None,
        description="id of the boundary item, orders rows created at the same instant"
    )
    size: int = Field(10, ge=1, le=100)
    direction: Literal["forward", "backward"] = "forward"


class PagingInstructions(ApiModel):
    previous: Optional[PagingInstruction] = None
    current: Optional[PagingInstruction] = None
    next: Optional[PagingInstruction] = None


@dataclass
class Page(Generic[T]):
    items: list[T]
    paging: PagingInstructions = field(default_factory=PagingInstructions)
