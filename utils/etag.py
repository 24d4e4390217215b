import hashlib
import json
from typing import Any

from fastapi import Request, Response
from pydantic import BaseModel


def generate_etag(data: Any) -> str:
    """
    Generate a strong ETag from a payload.

    Raw bytes (a rendered response body) are hashed directly; models and
    plain JSON values are serialized with sorted keys first so equal payloads
    always hash the same.
    """
    if isinstance(data, (bytes, bytearray)):
        content = bytes(data)
    elif isinstance(data, BaseModel):
        content = json.dumps(data.model_dump(mode="json", by_alias=True), sort_keys=True).encode("utf-8")
    else:
        content = json.dumps(data, sort_keys=True, default=str).encode("utf-8")

    etag_hash = hashlib.sha256(content).hexdigest()[:32]
    return f'"{etag_hash}"'


def check_etag_match(request: Request, current_etag: str) -> bool:
    """True when If-None-Match names `current_etag` (or `*`): the client copy is fresh."""
    if_none_match = request.headers.get('if-none-match')
    if not if_none_match:
        return False

    # weak validators compare equal to their strong form
    client_etags = [etag.strip().removeprefix('W/') for etag in if_none_match.split(',')]

    return '*' in client_etags or current_etag in client_etags


def set_etag_headers(response: Response, etag: str, max_age: int = 0) -> None:
    response.headers['ETag'] = etag
    response.headers['Cache-Control'] = f'private, max-age={max_age}, must-revalidate'


def not_modified(etag: str, max_age: int = 0) -> Response:
    response = Response(status_code=304)
    set_etag_headers(response, etag, max_age)
    return response


def handle_conditional_request(request: Request, data: Any) -> tuple[str, bool]:
    """ETag of `data` and whether the request already holds it (answer 304)."""
    current_etag = generate_etag(data)
    return current_etag, check_etag_match(request, current_etag)
