from __future__ import annotations
import json
import logging
from typing import Any
from urllib.parse import parse_qs

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from utils.forms import transform_form_data

logger = logging.getLogger(__name__)

OVERRIDABLE_METHODS = {"PUT", "PATCH", "DELETE"}
METHOD_FIELD = "_method"

JSON_TYPE = b"application/json"
FORM_TYPE = b"application/x-www-form-urlencoded"


def _parse_form(body: bytes) -> dict[str, Any]:
    parsed = parse_qs(body.decode("utf-8"), keep_blank_values=True)
    return {
        key: values if key.endswith("[]") or len(values) > 1 else values[0]
        for key, values in parsed.items()
    }


class MethodOverrideMiddleware:
    """
    Lets POST-only clients reach PUT, PATCH and DELETE handlers.

    A POST body carrying `_method` is dispatched as that method with the
    field removed. Urlencoded bodies are always re-emitted as JSON so the
    handlers only ever see one content type.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope.get("type") != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        headers = {k.lower(): v for k, v in scope.get("headers", [])}
        content_type = headers.get(b"content-type", b"").split(b";")[0].strip().lower()
        if content_type not in (JSON_TYPE, FORM_TYPE):
            await self.app(scope, receive, send)
            return

        body = await self._read_body(receive)

        try:
            if content_type == FORM_TYPE:
                data = transform_form_data(_parse_form(body))
            else:
                data = json.loads(body) if body else None
        except (UnicodeDecodeError, json.JSONDecodeError):
            # let the handler report the malformed body
            await self.app(scope, self._replay(body, receive), send)
            return

        if isinstance(data, dict) and METHOD_FIELD in data:
            override = str(data.pop(METHOD_FIELD) or "").upper()
            if override in OVERRIDABLE_METHODS:
                logger.debug("Method override POST -> %s for %s", override, scope.get("path"))
                scope = dict(scope, method=override)

        if content_type == FORM_TYPE or isinstance(data, dict):
            body = json.dumps(data if data is not None else {}).encode("utf-8")
            scope = dict(scope, headers=self._rewrite_headers(scope.get("headers", []), body))

        await self.app(scope, self._replay(body, receive), send)

    @staticmethod
    async def _read_body(receive: Receive) -> bytes:
        chunks = []
        more_body = True
        while more_body:
            message = await receive()
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)
        return b"".join(chunks)

    @staticmethod
    def _replay(body: bytes, receive: Receive) -> Receive:
        sent = False

        async def replay() -> Message:
            nonlocal sent
            if sent:
                return await receive()
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        return replay

    @staticmethod
    def _rewrite_headers(raw_headers, body: bytes) -> list[tuple[bytes, bytes]]:
        kept = [
            (k, v) for k, v in raw_headers
            if k.lower() not in (b"content-type", b"content-length")
        ]
        kept.append((b"content-type", JSON_TYPE))
        kept.append((b"content-length", str(len(body)).encode("latin-1")))
        return kept
