from __future__ import annotations
import json
import logging
import math
import re
from typing import Any, Callable, Mapping, Optional, Union
from urllib.parse import urlencode, urlparse

import httpx

from client.errors import FetchError, ValidationError
from models.hal import HalObject, Template, TemplateProperty

logger = logging.getLogger(__name__)

HAL_ACCEPT = "application/hal+json"
JSON_CONTENT = "application/json"
FORM_CONTENT = "application/x-www-form-urlencoded"

# Methods the transport cannot carry; sent as POST with a `_method` field
OVERRIDDEN_METHODS = {"PUT", "DELETE"}

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SIGN_IN_PATH = "/auth/signin"

TemplateLike = Union[Template, Mapping[str, Any]]


def as_template(template: TemplateLike) -> Template:
    return template if isinstance(template, Template) else Template.model_validate(template)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)


class HalFormsClient:
    """
    Executes HAL-FORMS templates and plain hypermedia requests.

    Every non-2xx response raises FetchError. A 401 first notifies
    `on_auth_error` so the caller can send the user to sign in.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        on_auth_error: Optional[Callable[[], None]] = None,
    ) -> None:
        self._http = http_client
        self.on_auth_error = on_auth_error

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------
    async def _request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        json_body: Any = None,
        content: Optional[str] = None,
    ) -> HalObject:
        request_headers = {"Accept": HAL_ACCEPT, **(headers or {})}
        kwargs: dict[str, Any] = {"headers": request_headers}
        if content is not None:
            kwargs["content"] = content
        elif json_body is not None:
            kwargs["json"] = json_body

        response = await self._http.request(method, url, **kwargs)

        if not response.is_success:
            if response.status_code == 401 and self.on_auth_error is not None:
                logger.info("Unauthorized response from %s", url)
                self.on_auth_error()
            raise FetchError(response.status_code, response.reason_phrase, url, response.text)

        if not response.content:
            return {}
        return response.json()

    async def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> HalObject:
        return await self._request("GET", url, headers=headers)

    async def get(self, url: str) -> HalObject:
        return await self._request("GET", url)

    async def post(self, url: str, data: Any = None) -> HalObject:
        return await self._request("POST", url, json_body=data)

    async def put(self, url: str, data: Any = None) -> HalObject:
        return await self._request("PUT", url, json_body=data)

    async def patch(self, url: str, data: Any = None) -> HalObject:
        return await self._request("PATCH", url, json_body=data)

    async def delete(self, url: str) -> HalObject:
        return await self._request("DELETE", url)

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------
    async def execute_template(self, template: TemplateLike, data: Optional[Mapping[str, Any]] = None) -> HalObject:
        """
        Submit `data` to the template's target.

        PUT and DELETE go out as POST with `_method` set to the lowercased
        method; the server dispatches on that field.
        """
        template = as_template(template)
        method = template.method.upper()
        content_type = template.content_type or JSON_CONTENT

        request_data = dict(data or {})
        if method in OVERRIDDEN_METHODS:
            request_data["_method"] = method.lower()
        http_method = "POST" if method in OVERRIDDEN_METHODS else method

        if content_type == FORM_CONTENT:
            body = urlencode({k: _form_value(v) for k, v in request_data.items() if v is not None})
            return await self._request(http_method, template.target, headers={"Content-Type": FORM_CONTENT}, content=body)

        return await self._request(
            http_method,
            template.target,
            headers={"Content-Type": JSON_CONTENT},
            content=json.dumps(request_data),
        )

    def validate_template_data(self, template: TemplateLike, data: Mapping[str, Any]) -> list[ValidationError]:
        """Field errors in property order. Never raises and never touches `data`."""
        template = as_template(template)
        errors: list[ValidationError] = []
        for prop in template.properties:
            errors.extend(self._validate_property(prop, data.get(prop.name)))
        return errors

    @staticmethod
    def _validate_property(prop: TemplateProperty, value: Any) -> list[ValidationError]:
        label = prop.prompt or prop.name

        def error(message: str) -> ValidationError:
            return ValidationError(field=prop.name, message=f"{label} {message}")

        if _is_empty(value):
            return [error("is required")] if prop.required else []

        errors: list[ValidationError] = []
        prop_type = prop.type or "text"

        if prop_type == "number":
            number = _as_number(value)
            if number is None:
                return [error("must be a number")]
            minimum, maximum = _as_number(prop.min), _as_number(prop.max)
            if minimum is not None and number < minimum:
                errors.append(error(f"must be at least {prop.min}"))
            if maximum is not None and number > maximum:
                errors.append(error(f"must be at most {prop.max}"))

        if prop_type == "email" and not EMAIL_RE.match(str(value)):
            errors.append(error("must be a valid email address"))

        if prop_type == "url":
            parsed = urlparse(str(value))
            if not parsed.scheme or not parsed.netloc:
                errors.append(error("must be a valid URL"))

        if isinstance(value, str):
            if prop.min_length is not None and len(value) < prop.min_length:
                errors.append(error(f"must be at least {prop.min_length} characters"))
            if prop.max_length is not None and len(value) > prop.max_length:
                errors.append(error(f"must be at most {prop.max_length} characters"))

            if prop.regex:
                try:
                    matched = re.search(prop.regex, value) is not None
                except re.error:
                    logger.warning("Ignoring invalid pattern on %s: %r", prop.name, prop.regex)
                    matched = True
                if not matched:
                    errors.append(error("has an invalid format"))

        return errors


# -----------------------------------------------------------------------------
# 401 handling
# -----------------------------------------------------------------------------
def should_redirect_to_sign_in(pathname: str) -> bool:
    """Auth pages never redirect to sign in, or a failed sign in would loop."""
    return not pathname.startswith("/auth/")


def make_sign_in_redirect(navigate: Callable[[str], None], current_path: Callable[[], str]) -> Callable[[], None]:
    """Build an `on_auth_error` callback that sends the user to the sign in page."""
    def on_auth_error() -> None:
        if should_redirect_to_sign_in(current_path()):
            navigate(SIGN_IN_PATH)

    return on_auth_error
