from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Any HAL document: _links, _templates, _embedded plus payload fields
HalObject = dict[str, Any]

HAL_JSON = "application/hal+json"


class ApiModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# -----------------------------------------------------------------------------
# HAL / HAL-FORMS
# -----------------------------------------------------------------------------
class Link(ApiModel):
    href: str
    title: Optional[str] = None
    templated: Optional[bool] = None
    type: Optional[str] = None
    method: Optional[str] = None


class TemplateProperty(ApiModel):
    """Declarative validation contract for one form field."""
    name: str
    prompt: Optional[str] = None
    type: Optional[str] = None
    required: Optional[bool] = None
    options: Optional[list[Any]] = None
    min: Optional[float | int | str] = None
    max: Optional[float | int | str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    regex: Optional[str] = None
    read_only: Optional[bool] = None
    value: Optional[Any] = None


class Template(ApiModel):
    """A server-declared operation from a resource's _templates."""
    title: Optional[str] = None
    method: str = "POST"
    target: str
    content_type: Optional[str] = None
    properties: list[TemplateProperty] = Field(default_factory=list)
