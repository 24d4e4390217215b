from __future__ import annotations
import json
from typing import Any, Mapping

ARRAY_FIELD_SUFFIXES = ("Ids", "[]", "List", "Keys")


def is_array_field(name: str) -> bool:
    """Fields named like `sessionIds`, `tags[]`, `userList` or `scopeKeys` carry lists."""
    return name.endswith(ARRAY_FIELD_SUFFIXES)


def parse_comma_separated(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def transform_form_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Coerce urlencoded form values into the shapes the JSON models expect.

    Array fields given as strings are split on commas, empty strings become
    None, "true"/"false" become booleans and JSON looking strings are
    decoded. Nested mappings are transformed recursively.
    """
    transformed: dict[str, Any] = {}

    for key, value in data.items():
        if value is None:
            continue

        if isinstance(value, str) and is_array_field(key):
            array_key = key.replace("[]", "")
            if value == "":
                transformed[array_key] = []
            elif "," in value:
                transformed[array_key] = parse_comma_separated(value)
            else:
                transformed[array_key] = [value.strip()]
            continue

        if value == "":
            transformed[key] = None
            continue

        if value == "true":
            transformed[key] = True
            continue
        if value == "false":
            transformed[key] = False
            continue

        if isinstance(value, str) and value.startswith(("{", "[")):
            try:
                transformed[key] = json.loads(value)
                continue
            except json.JSONDecodeError:
                pass

        if isinstance(value, list):
            transformed[key.replace("[]", "")] = value
            continue

        if isinstance(value, Mapping):
            transformed[key] = transform_form_data(value)
            continue

        transformed[key] = value

    return transformed


def get_client_ip(headers: Mapping[str, str]) -> str:
    """
    The originating client address.

    Only the first X-Forwarded-For hop is used; proxies append their own
    addresses, which vary between requests from the same client.
    """
    cf_connecting_ip = headers.get("cf-connecting-ip")
    if cf_connecting_ip:
        return cf_connecting_ip.strip()

    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    return "unknown"
