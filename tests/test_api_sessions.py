from datetime import datetime, timedelta, timezone

from conftest import add_sessions, expire_sessions, federate, purge_expired, session_auth, set_role

from models.user import Role


def list_sessions(client, user_id, headers, **kwargs):
    return client.post(f"/users/{user_id}/sessions/list", json=kwargs or {}, headers=headers)


def create_api_key(client, body, label="ci"):
    response = client.post(
        f"/users/{body['userId']}/api-keys/create",
        json={"label": label},
        headers=session_auth(body),
    )
    assert response.status_code == 201, response.text
    return response.json()["apiKey"]


def test_list_sessions_flags_current(client):
    first = federate(client, "ada@example.com")
    second = federate(client, "ada@example.com")
    user_id = second["userId"]

    response = list_sessions(client, user_id, session_auth(second))

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    sessions = body["_embedded"]["sessions"]
    assert [s["isCurrent"] for s in sessions] == [True, False]
    assert body["_templates"]["delete"]["target"] == f"/users/{user_id}/sessions/delete"
    assert body["_links"]["self"]["href"] == f"/users/{user_id}/sessions/list"
    assert first["sessionToken"] != second["sessionToken"]


def test_list_sessions_pages_newest_first(client):
    bodies = [federate(client, "ada@example.com") for _ in range(3)]
    user_id = bodies[0]["userId"]
    headers = session_auth(bodies[-1])

    first_page = list_sessions(client, user_id, headers, pagingInstruction={"size": 2}).json()

    assert first_page["count"] == 2
    assert "next" in first_page["_templates"]
    assert "previous" not in first_page["_templates"]

    next_instruction = first_page["_templates"]["next"]["properties"][0]["value"]
    second_page = list_sessions(client, user_id, headers, pagingInstruction=next_instruction).json()

    assert second_page["count"] == 1
    assert "next" not in second_page["_templates"]
    assert "previous" in second_page["_templates"]
    first_ids = {s["sessionId"] for s in first_page["_embedded"]["sessions"]}
    assert second_page["_embedded"]["sessions"][0]["sessionId"] not in first_ids


def session_ids(page):
    return [s["sessionId"] for s in page["_embedded"]["sessions"]]


def test_list_sessions_pages_through_shared_timestamps(client):
    body = federate(client, "ada@example.com")
    user_id, headers = body["userId"], session_auth(body)
    add_sessions(user_id, 4, datetime.now(timezone.utc) - timedelta(hours=1))

    pages = [list_sessions(client, user_id, headers, pagingInstruction={"size": 2}).json()]
    for _ in range(5):
        if "next" not in pages[-1]["_templates"]:
            break
        instruction = pages[-1]["_templates"]["next"]["properties"][0]["value"]
        pages.append(list_sessions(client, user_id, headers, pagingInstruction=instruction).json())

    seen = [sid for page in pages for sid in session_ids(page)]
    assert [page["count"] for page in pages] == [2, 2, 1]
    assert len(set(seen)) == 5

    instruction = pages[-1]["_templates"]["previous"]["properties"][0]["value"]
    previous = list_sessions(client, user_id, headers, pagingInstruction=instruction).json()
    assert session_ids(previous) == session_ids(pages[1])


def test_list_sessions_is_cached(client):
    body = federate(client, "ada@example.com")
    user_id = body["userId"]

    first = list_sessions(client, user_id, session_auth(body))
    second = list_sessions(client, user_id, session_auth(body))

    assert first.headers["X-Cache"] == "MISS"
    assert second.headers["X-Cache"] == "HIT"
    assert first.headers["ETag"] == second.headers["ETag"]
    assert "max-age=300" in second.headers["Cache-Control"]
    assert second.json() == first.json()


def test_cached_list_refused_to_token_from_another_client(client):
    body = federate(client, "ada@example.com", **{"User-Agent": "browser-A"})
    user_id = body["userId"]
    first = list_sessions(client, user_id, {**session_auth(body), "User-Agent": "browser-A"})
    assert first.headers["X-Cache"] == "MISS"

    replay = list_sessions(client, user_id, {**session_auth(body), "User-Agent": "browser-B"})

    assert replay.status_code == 401
    assert "X-Cache" not in replay.headers
    again = list_sessions(client, user_id, {**session_auth(body), "User-Agent": "browser-A"})
    assert again.headers["X-Cache"] == "HIT"


def test_list_sessions_not_modified(client):
    body = federate(client, "ada@example.com")
    user_id = body["userId"]
    etag = list_sessions(client, user_id, session_auth(body)).headers["ETag"]

    response = list_sessions(client, user_id, {**session_auth(body), "If-None-Match": etag})

    assert response.status_code == 304
    assert response.headers["ETag"] == etag


def test_new_session_invalidates_cached_list(client):
    body = federate(client, "ada@example.com")
    user_id = body["userId"]
    list_sessions(client, user_id, session_auth(body))

    federate(client, "ada@example.com")
    response = list_sessions(client, user_id, session_auth(body))

    assert response.headers["X-Cache"] == "MISS"
    assert response.json()["count"] == 2


def test_list_sessions_of_other_user_forbidden(client):
    ada = federate(client, "ada@example.com")
    bob = federate(client, "bob@example.com")

    response = list_sessions(client, ada["userId"], session_auth(bob))

    assert response.status_code == 403
    assert response.json()["title"] == "Forbidden"


def test_support_can_list_other_users_sessions(client):
    ada = federate(client, "ada@example.com")
    bob = federate(client, "bob@example.com")
    set_role(bob["userId"], Role.SUPPORT)

    response = list_sessions(client, ada["userId"], session_auth(bob))

    assert response.status_code == 200
    assert response.json()["count"] == 1


def test_list_sessions_requires_authentication(client):
    body = federate(client, "ada@example.com")

    response = list_sessions(client, body["userId"], {})

    assert response.status_code == 401


def test_delete_sessions(client):
    old = federate(client, "ada@example.com")
    current = federate(client, "ada@example.com")
    user_id = current["userId"]
    sessions = list_sessions(client, user_id, session_auth(current)).json()["_embedded"]["sessions"]
    old_id = next(s["sessionId"] for s in sessions if not s["isCurrent"])

    response = client.post(
        f"/users/{user_id}/sessions/delete",
        json={"sessionIds": [old_id]},
        headers=session_auth(current),
    )

    assert response.status_code == 200
    assert response.json()["deletedCount"] == 1
    assert client.post("/auth/verify", headers=session_auth(old)).status_code == 401
    remaining = list_sessions(client, user_id, session_auth(current))
    assert remaining.headers["X-Cache"] == "MISS"
    assert remaining.json()["count"] == 1


def test_delete_sessions_from_form_body(client):
    old = federate(client, "ada@example.com")
    current = federate(client, "ada@example.com")
    user_id = current["userId"]
    sessions = list_sessions(client, user_id, session_auth(current)).json()["_embedded"]["sessions"]
    old_id = next(s["sessionId"] for s in sessions if not s["isCurrent"])

    response = client.post(
        f"/users/{user_id}/sessions/delete",
        data={"sessionIds": old_id},
        headers=session_auth(current),
    )

    assert response.status_code == 200
    assert response.json()["deletedCount"] == 1
    assert client.post("/auth/verify", headers=session_auth(old)).status_code == 401


def test_delete_sessions_requires_ids(client):
    body = federate(client, "ada@example.com")

    response = client.post(
        f"/users/{body['userId']}/sessions/delete",
        json={"sessionIds": []},
        headers=session_auth(body),
    )

    assert response.status_code == 400


def test_delete_sessions_refused_for_api_keys(client):
    body = federate(client, "ada@example.com")
    api_key = create_api_key(client, body)

    response = client.post(
        f"/users/{body['userId']}/sessions/delete",
        json={"sessionIds": ["anything"]},
        headers={"Authorization": f"ApiKey {api_key}"},
    )

    assert response.status_code == 403


def test_expired_sessions_are_purged(client):
    body = federate(client, "ada@example.com")
    federate(client, "grace@example.com")
    expire_sessions(body["userId"])

    assert purge_expired() == 1
    response = client.post("/auth/verify", headers=session_auth(body))
    assert response.status_code == 401


def test_cached_list_not_served_after_role_downgrade(client):
    ada = federate(client, "ada@example.com")
    bob = federate(client, "bob@example.com")
    set_role(bob["userId"], Role.SUPPORT)
    assert list_sessions(client, ada["userId"], session_auth(bob)).status_code == 200

    set_role(bob["userId"], Role.BASE)
    response = list_sessions(client, ada["userId"], session_auth(bob))

    assert response.status_code == 403
