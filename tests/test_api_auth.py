from conftest import OTHER_KEY, federate, make_access_token, new_session_key, session_auth

from config.settings import settings


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------
def test_root_anonymous(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/hal+json")
    body = response.json()
    assert body["authenticated"] is False
    assert set(body["_links"]) == {"self", "auth:federate", "sitemap"}
    assert body["_templates"]["federate"]["target"] == "/auth/federate"
    assert "X-Trace-Id" in response.headers


def test_root_authenticated_advertises_account_links(client):
    body = federate(client, "ada@example.com")
    user_id = body["userId"]

    response = client.get("/", headers=session_auth(body))

    root = response.json()
    assert root["authenticated"] is True
    assert root["_links"]["user"]["href"] == f"/users/{user_id}"
    assert root["_links"]["sessions"]["href"] == f"/users/{user_id}/sessions/list"
    assert root["_links"]["api-keys"]["href"] == f"/users/{user_id}/api-keys/list"
    assert "auth:federate" not in root["_links"]
    assert "revoke" in root["_templates"]


def test_unsupported_authorization_scheme(client):
    response = client.get("/", headers={"Authorization": "Basic dXNlcjpwYXNz"})

    assert response.status_code == 400
    assert response.json()["title"] == "Bad Request"


def test_unknown_route_is_a_problem_document(client):
    response = client.get("/nowhere")

    assert response.status_code == 404
    body = response.json()
    assert body["status"] == 404
    assert body["instance"] == "/nowhere"


# -----------------------------------------------------------------------------
# Federate
# -----------------------------------------------------------------------------
def test_federate_creates_user_and_session(client):
    session_key = new_session_key()
    body = federate(client, "ada@example.com", session_key=session_key)

    assert body["email"] == "ada@example.com"
    assert body["role"] == 0
    assert body["sessionToken"] == f"{session_key}.{body['userId']}"
    assert body["_embedded"]["access"]["type"] == "session"
    assert body["_links"]["self"]["href"] == f"/users/{body['userId']}"
    assert {"verify", "sessions", "api-keys", "revoke"} <= set(body["_templates"])


def test_federate_twice_reuses_user(client):
    first = federate(client, "ada@example.com")
    second = federate(client, "ada@example.com")

    assert first["userId"] == second["userId"]
    assert first["sessionToken"] != second["sessionToken"]


def test_federate_reusing_session_key_conflicts(client):
    session_key = new_session_key()
    federate(client, "ada@example.com", session_key=session_key)

    response = client.post(
        "/auth/federate",
        json={"sessionKey": session_key, "email": "ada@example.com"},
        headers={"Authorization": f"Bearer {make_access_token(sub='ada@example.com')}"},
    )

    assert response.status_code == 409
    assert response.json()["title"] == "Conflict"


def test_federate_sets_cookie_for_json_clients(client):
    federate(client, "ada@example.com", Accept="application/json")

    assert client.cookies.get("session_token")


def test_federate_requires_bearer_token(client):
    response = client.post(
        "/auth/federate",
        json={"sessionKey": new_session_key(), "email": "ada@example.com"},
    )

    assert response.status_code == 401


def test_federate_rejects_token_signed_by_other_key(client):
    response = client.post(
        "/auth/federate",
        json={"sessionKey": new_session_key(), "email": "ada@example.com"},
        headers={"Authorization": f"Bearer {make_access_token(key=OTHER_KEY)}"},
    )

    assert response.status_code == 401


def test_federate_rejects_id_tokens(client):
    response = client.post(
        "/auth/federate",
        json={"sessionKey": new_session_key(), "email": "ada@example.com"},
        headers={"Authorization": f"Bearer {make_access_token(token_use='id')}"},
    )

    assert response.status_code == 401


def test_federate_validates_session_key(client):
    response = client.post(
        "/auth/federate",
        json={"sessionKey": "too-short", "email": "ada@example.com"},
        headers={"Authorization": f"Bearer {make_access_token()}"},
    )

    assert response.status_code == 400
    fields = [v["field"] for v in response.json()["violations"]]
    assert "sessionKey" in fields


# -----------------------------------------------------------------------------
# Verify
# -----------------------------------------------------------------------------
def test_verify_session_token(client):
    body = federate(client, "ada@example.com")

    response = client.post("/auth/verify", headers=session_auth(body))

    assert response.status_code == 200
    verified = response.json()
    assert verified["userId"] == body["userId"]
    assert verified["_embedded"]["access"]["type"] == "session"
    assert "sessionToken" not in verified


def test_verify_fails_from_another_client(client):
    body = federate(client, "ada@example.com")

    response = client.post(
        "/auth/verify",
        headers={**session_auth(body), "User-Agent": "some-other-browser"},
    )

    assert response.status_code == 401


def test_verify_fails_from_another_address(client):
    body = federate(client, "ada@example.com")

    response = client.post(
        "/auth/verify",
        headers={**session_auth(body), "X-Forwarded-For": "203.0.113.9"},
    )

    assert response.status_code == 401


def test_forwarded_address_ignored_from_untrusted_peer(client, monkeypatch):
    monkeypatch.setattr(settings, "TRUSTED_PROXIES", [])

    spoofed = federate(client, "ada@example.com", **{"X-Forwarded-For": "198.51.100.7"})
    response = client.post(
        "/auth/verify",
        headers={**session_auth(spoofed), "X-Forwarded-For": "203.0.113.9"},
    )

    assert response.status_code == 200
    assert response.json()["_embedded"]["access"]["ipAddress"] == "testclient"


def test_verify_rejects_malformed_token(client):
    response = client.post("/auth/verify", headers={"Authorization": "SessionToken garbage"})

    assert response.status_code == 401


def test_verify_without_credentials(client):
    response = client.post("/auth/verify")

    assert response.status_code == 401


def test_verify_with_cookie(client):
    federate(client, "ada@example.com", Accept="application/json")

    response = client.post("/auth/verify")

    assert response.status_code == 200
    assert "session_token=" in response.headers["set-cookie"]


# -----------------------------------------------------------------------------
# Revoke
# -----------------------------------------------------------------------------
def test_revoke_ends_session(client):
    body = federate(client, "ada@example.com")

    response = client.post("/auth/revoke", headers=session_auth(body))

    assert response.status_code == 200
    assert response.json()["revoked"] is True
    assert response.json()["_links"]["federate"]["href"] == "/auth/federate"
    assert client.post("/auth/verify", headers=session_auth(body)).status_code == 401


def test_revoke_is_idempotent(client):
    body = federate(client, "ada@example.com")
    client.post("/auth/revoke", headers=session_auth(body))

    response = client.post("/auth/revoke", headers=session_auth(body))

    assert response.status_code == 200
    assert response.json()["revoked"] is False


def test_revoke_requires_session_token(client):
    response = client.post("/auth/revoke")

    assert response.status_code == 401
