from __future__ import annotations
from typing import Any, Optional

from fastapi.responses import JSONResponse

from models.api_key import ApiKey, ApiKeyRead
from models.auth import AccessContext, AuthContext
from models.hal import HAL_JSON, HalObject, Link, Template, TemplateProperty
from models.navigation import NavGroup, NavItem
from models.paging import PagingInstruction, PagingInstructions
from models.session import Session, SessionRead
from models.user import Role, UserRead
from utils.routes import build_href, route


# -----------------------------------------------------------------------------
# Primitives
# -----------------------------------------------------------------------------
def link(controller: str, action: str, title: Optional[str] = None, **params: str) -> dict[str, Any]:
    return Link(href=build_href(controller, action, **params), title=title).to_wire()


def prop(name: str, **options: Any) -> TemplateProperty:
    return TemplateProperty(name=name, **options)


def template(
    controller: str,
    action: str,
    title: str,
    properties: Optional[list[TemplateProperty]] = None,
    content_type: Optional[str] = "application/json",
    **params: str,
) -> dict[str, Any]:
    return Template(
        title=title,
        method=route(controller, action).method,
        target=build_href(controller, action, **params),
        content_type=content_type,
        properties=properties or [],
    ).to_wire()


def hal_response(
    body: HalObject,
    status_code: int = 200,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(content=body, status_code=status_code, headers=headers, media_type=HAL_JSON)


def paging_property(instruction: Optional[PagingInstruction] = None) -> TemplateProperty:
    return prop(
        "pagingInstruction",
        prompt="Paging Instruction",
        type="hidden",
        required=False,
        value=instruction.to_wire() if instruction else None,
    )


def _paging_templates(controller: str, action: str, paging: PagingInstructions, user_id: str) -> dict[str, Any]:
    templates: dict[str, Any] = {}
    if paging.next:
        templates["next"] = template(controller, action, "Next page", [paging_property(paging.next)], user_id=user_id)
    if paging.previous:
        templates["previous"] = template(
            controller, action, "Previous page", [paging_property(paging.previous)], user_id=user_id
        )
    return templates


def _paging_links(controller: str, action: str, title: str, paging: PagingInstructions, user_id: str) -> dict[str, Any]:
    links = {"self": link(controller, action, title, user_id=user_id)}
    if paging.next:
        links["next"] = link(controller, action, "Next page", user_id=user_id)
    if paging.previous:
        links["previous"] = link(controller, action, "Previous page", user_id=user_id)
    return links


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------
def entry_point_resource(auth_context: AuthContext, version: str, environment: str) -> HalObject:
    user = auth_context.identity
    links: dict[str, Any] = {"self": link("root", "get_root", "API Root")}
    templates: dict[str, Any] = {}

    if user is None:
        links["auth:federate"] = {**link("auth", "federate", "Federate Identity Provider Token"), "method": "POST"}
        templates["federate"] = federate_template()
    else:
        links["auth:verify"] = {**link("auth", "verify", "Verify Session"), "method": "POST"}
        links["auth:revoke"] = {**link("auth", "revoke", "Revoke Session"), "method": "POST"}
        links["user"] = link("users", "get_user", "Profile", user_id=user.user_id)
        links["sessions"] = {**link("sessions", "get_sessions", "User Sessions", user_id=user.user_id), "method": "POST"}
        links["api-keys"] = {**link("api_keys", "get_api_keys", "User API Keys", user_id=user.user_id), "method": "POST"}
        templates.update(user_templates(auth_context))

    links["sitemap"] = link("sitemap", "get_sitemap", "API Navigation")

    return {
        "version": version,
        "environment": environment,
        "authenticated": user is not None,
        "_links": links,
        "_templates": templates,
    }


def federate_template() -> dict[str, Any]:
    return template(
        "auth", "federate", "Sign in",
        [
            prop("sessionKey", prompt="Session Key", type="hidden", required=True, min_length=32, max_length=128),
            prop("email", prompt="Email", type="email", required=True),
            prop("firstName", prompt="First Name", type="text", max_length=255),
            prop("lastName", prompt="Last Name", type="text", max_length=255),
        ],
    )


def user_templates(auth_context: AuthContext) -> dict[str, Any]:
    """Operations every signed in caller can run against their own account."""
    user_id = auth_context.identity.user_id
    templates = {
        "verify": template("auth", "verify", "Verify Session"),
        "sessions": template("sessions", "get_sessions", "Sessions", [paging_property()], user_id=user_id),
        "api-keys": template("api_keys", "get_api_keys", "API Keys", [paging_property()], user_id=user_id),
    }
    # api key callers cannot revoke anything through this endpoint
    if auth_context.access.type == "session":
        templates["revoke"] = template("auth", "revoke", "Revoke current session")
    return templates


# -----------------------------------------------------------------------------
# Authentication
# -----------------------------------------------------------------------------
def access_resource(access: AccessContext, user_id: str) -> HalObject:
    body = access.to_wire()
    if access.type == "session":
        body["_links"] = {"sessions": link("sessions", "get_sessions", "Sessions", user_id=user_id)}
    elif access.type == "apiKey":
        body["_links"] = {"api-keys": link("api_keys", "get_api_keys", "API Keys", user_id=user_id)}
    return body


def auth_context_resource(auth_context: AuthContext, session_token: Optional[str] = None) -> HalObject:
    user = auth_context.identity
    body = user.to_wire()
    body["_links"] = {"self": link("users", "get_user", user_id=user.user_id)}
    body["_templates"] = user_templates(auth_context)
    body["_embedded"] = {"access": access_resource(auth_context.access, user.user_id)}
    if session_token:
        body["sessionToken"] = session_token
    return body


def message_resource(message: str, **fields: Any) -> HalObject:
    return {
        "message": message,
        **fields,
        "_links": {"federate": link("auth", "federate", "Sign in again")},
    }


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------
def user_resource(user: UserRead) -> HalObject:
    body = user.to_wire()
    body["_links"] = {
        "self": link("users", "get_user", f"{user.first_name} {user.last_name}".strip() or "Profile", user_id=user.user_id),
        "sessions": link("sessions", "get_sessions", "Sessions", user_id=user.user_id),
        "api-keys": link("api_keys", "get_api_keys", "API Keys", user_id=user.user_id),
    }
    body["_templates"] = {
        "update": template(
            "users", "update_user", "Update profile",
            [
                prop("firstName", prompt="First Name", type="text", required=True, min_length=1,
                     max_length=255, value=user.first_name or None),
                prop("lastName", prompt="Last Name", type="text", required=True, min_length=1,
                     max_length=255, value=user.last_name or None),
            ],
            user_id=user.user_id,
        ),
    }
    return body


# -----------------------------------------------------------------------------
# Sessions
# -----------------------------------------------------------------------------
def session_collection_resource(
    user_id: str,
    sessions: list[Session],
    paging: PagingInstructions,
    current_signature: Optional[str] = None,
) -> HalObject:
    embedded = []
    for session in sessions:
        item = SessionRead.model_validate(session).to_wire()
        item["isCurrent"] = current_signature is not None and session.session_signature == current_signature
        embedded.append(item)

    templates = _paging_templates("sessions", "get_sessions", paging, user_id)
    templates["delete"] = template(
        "sessions", "delete_sessions", "Delete sessions",
        [prop("sessionIds", prompt="Sessions", type="array", required=True)],
        user_id=user_id,
    )

    return {
        "count": len(embedded),
        "paging": paging.to_wire(),
        "_links": _paging_links("sessions", "get_sessions", "Sessions", paging, user_id),
        "_templates": templates,
        "_embedded": {"sessions": embedded},
    }


def sessions_deleted_resource(user_id: str, deleted_count: int) -> HalObject:
    return {
        "message": f"Deleted {deleted_count} session(s)",
        "deletedCount": deleted_count,
        "_links": {"sessions": link("sessions", "get_sessions", "Sessions", user_id=user_id)},
        "_templates": {
            "collection": template("sessions", "get_sessions", "Back to sessions", [paging_property()], user_id=user_id),
        },
    }


# -----------------------------------------------------------------------------
# API keys
# -----------------------------------------------------------------------------
def _api_key_create_template(user_id: str) -> dict[str, Any]:
    return template(
        "api_keys", "create_api_key", "Create API key",
        [prop("label", prompt="Label", type="text", required=True, min_length=1, max_length=100)],
        user_id=user_id,
    )


def api_key_collection_resource(user_id: str, api_keys: list[ApiKey], paging: PagingInstructions) -> HalObject:
    embedded = [ApiKeyRead.model_validate(api_key).to_wire() for api_key in api_keys]

    templates = _paging_templates("api_keys", "get_api_keys", paging, user_id)
    templates["create"] = _api_key_create_template(user_id)
    templates["delete"] = template(
        "api_keys", "delete_api_keys", "Delete API keys",
        [prop("apiKeyIds", prompt="API Keys", type="array", required=True)],
        user_id=user_id,
    )

    return {
        "count": len(embedded),
        "paging": paging.to_wire(),
        "_links": _paging_links("api_keys", "get_api_keys", "API Keys", paging, user_id),
        "_templates": templates,
        "_embedded": {"apiKeys": embedded},
    }


def api_key_created_resource(api_key: ApiKey, plaintext: str) -> HalObject:
    body = ApiKeyRead.model_validate(api_key).to_wire()
    body["apiKey"] = plaintext
    body["_links"] = {"collection": link("api_keys", "get_api_keys", "API Keys", user_id=api_key.user_id)}
    body["_templates"] = {
        "collection": template(
            "api_keys", "get_api_keys", "Back to API keys", [paging_property()], user_id=api_key.user_id
        ),
    }
    return body


def api_keys_deleted_resource(user_id: str, deleted_count: int) -> HalObject:
    return {
        "message": f"Deleted {deleted_count} API key(s)",
        "deletedCount": deleted_count,
        "_links": {"api-keys": link("api_keys", "get_api_keys", "API Keys", user_id=user_id)},
        "_templates": {
            "collection": template("api_keys", "get_api_keys", "Back to API keys", [paging_property()], user_id=user_id),
        },
    }


# -----------------------------------------------------------------------------
# Sitemap
# -----------------------------------------------------------------------------
ADMIN_LINKS = {
    "admin-reports": {"href": "/admin/reports", "title": "Reports"},
    "admin-settings": {"href": "/admin/settings", "title": "Settings"},
}


def sitemap_resource(user: Optional[UserRead]) -> HalObject:
    links: dict[str, Any] = {
        "self": link("sitemap", "get_sitemap"),
        "home": link("root", "get_root", "Home"),
    }

    if user is None:
        links["auth:federate"] = link("auth", "federate", "Federate Session")
        nav = [NavGroup(title="Public", items=[NavItem(rel="home", type="link")])]
        return {
            "title": "API Sitemap",
            "_nav": [group.model_dump(exclude_none=True) for group in nav],
            "_links": links,
        }

    links["sessions"] = link("sessions", "get_sessions", "Sessions", user_id=user.user_id)
    links["api-keys"] = link("api_keys", "get_api_keys", "API Keys", user_id=user.user_id)
    links["logout"] = link("auth", "revoke", "Logout")

    nav = [
        NavGroup(title="Main Navigation", items=[
            NavItem(rel="home", type="link"),
            NavItem(rel="sessions", type="link"),
            NavItem(rel="api-keys", type="link"),
        ]),
    ]
    if Role(user.role) >= Role.ADMIN:
        links.update(ADMIN_LINKS)
        nav.append(NavGroup(title="Administration", items=[
            NavItem(rel="admin-reports", type="link"),
            NavItem(rel="admin-settings", type="link"),
        ]))
    nav.append(NavGroup(title="User", items=[NavItem(rel="logout", type="template")]))

    return {
        "title": "API Sitemap",
        "_nav": [group.model_dump(exclude_none=True) for group in nav],
        "_links": links,
        "_templates": {"logout": template("auth", "revoke", "Logout")},
    }
