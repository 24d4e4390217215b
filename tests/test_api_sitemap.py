from conftest import federate, session_auth, set_role

from models.user import Role


def group_titles(sitemap: dict) -> list[str]:
    return [group["title"] for group in sitemap["_nav"]]


def test_anonymous_sitemap(client):
    response = client.get("/sitemap")

    assert response.status_code == 200
    sitemap = response.json()
    assert group_titles(sitemap) == ["Public"]
    assert sitemap["_nav"][0]["items"] == [{"rel": "home", "type": "link"}]
    assert sitemap["_links"]["home"]["href"] == "/"


def test_user_sitemap(client):
    body = federate(client, "ada@example.com")

    sitemap = client.get("/sitemap", headers=session_auth(body)).json()

    assert group_titles(sitemap) == ["Main Navigation", "User"]
    assert sitemap["_links"]["sessions"]["href"] == f"/users/{body['userId']}/sessions/list"
    assert sitemap["_templates"]["logout"]["target"] == "/auth/revoke"


def test_admin_sitemap_has_administration_group(client):
    body = federate(client, "admin@example.com")
    set_role(body["userId"], Role.ADMIN)

    sitemap = client.get("/sitemap", headers=session_auth(body)).json()

    assert group_titles(sitemap) == ["Main Navigation", "Administration", "User"]
    assert "admin-reports" in sitemap["_links"]


def test_sitemap_not_modified(client):
    etag = client.get("/sitemap").headers["ETag"]

    response = client.get("/sitemap", headers={"If-None-Match": etag})

    assert response.status_code == 304
    assert response.headers["ETag"] == etag


def test_sitemap_etag_varies_by_caller(client):
    anonymous = client.get("/sitemap").headers["ETag"]
    body = federate(client, "ada@example.com")

    signed_in = client.get("/sitemap", headers=session_auth(body)).headers["ETag"]

    assert anonymous != signed_in
