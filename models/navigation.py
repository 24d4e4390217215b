from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel


class NavItem(BaseModel):
    """References an entry of the sitemap's _links or _templates by key."""
    rel: str
    type: Literal["link", "template"]
    title: Optional[str] = None


class NavGroup(BaseModel):
    """A titled group of items; groups may nest."""
    title: str
    items: list[Union[NavItem, NavGroup]]


NavEntry = Union[NavItem, NavGroup]

NavGroup.model_rebuild()
