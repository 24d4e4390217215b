from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


class FetchError(Exception):
    """A hypermedia request came back with a non-2xx status."""

    def __init__(self, status: int, status_text: str, url: str, body: Optional[str] = None) -> None:
        super().__init__(f"Request to {url} failed: {status} {status_text}")
        self.status = status
        self.status_text = status_text
        self.url = url
        self.body = body


class TemplateDataError(ValueError):
    """Submission data for a template could not be assembled."""


@dataclass(frozen=True)
class ValidationError:
    """One field-level problem found by template validation. Returned, never raised."""
    field: str
    message: str
