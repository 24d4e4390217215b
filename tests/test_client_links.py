from client.links import (
    expand_template,
    find_link,
    find_link_by_type,
    get_available_relations,
    get_href,
    get_title,
    has_capability,
)

RESOURCE = {
    "_links": {
        "self": {"href": "/", "title": "API Root"},
        "user": {"href": "/users/{user_id}", "templated": True},
        "alternate": [{"href": "/a.json", "type": "application/json"}, {"href": "/a.xml"}],
        "docs": {"href": "/docs", "type": "text/html"},
    },
    "_templates": {"federate": {"method": "POST", "target": "/auth/federate"}},
}


def test_find_link_first_candidate_wins():
    assert find_link(RESOURCE, ["missing", "docs", "self"])["href"] == "/docs"
    assert find_link(RESOURCE, "missing") is None


def test_find_link_takes_first_of_array():
    assert find_link(RESOURCE, "alternate")["href"] == "/a.json"


def test_get_href_expands_templated_links():
    assert get_href(RESOURCE, "user", {"user_id": "u 1"}) == "/users/u%201"
    assert get_href(RESOURCE, "user") == "/users/{user_id}"
    assert get_href(RESOURCE, "missing") is None


def test_get_title():
    assert get_title(RESOURCE["_links"]["self"]) == "API Root"
    assert get_title(None) is None


def test_expand_template_query_forms():
    assert expand_template("/search{?q,page}", {"q": "a b", "page": 2}) == "/search?q=a%20b&page=2"
    assert expand_template("/search{?q,page}", {}) == "/search"
    assert expand_template("/search?x=1{&q}", {"q": "z"}) == "/search?x=1&q=z"


def test_expand_template_leaves_unresolved_path_params():
    assert expand_template("/users/{user_id}/keys/{key_id}", {"user_id": "u1"}) == "/users/u1/keys/{key_id}"


def test_has_capability_covers_links_and_templates():
    assert has_capability(RESOURCE, "docs")
    assert has_capability(RESOURCE, "federate")
    assert has_capability(RESOURCE, ["missing", "federate"])
    assert not has_capability(RESOURCE, "admin")


def test_available_relations():
    assert get_available_relations(RESOURCE) == ["self", "user", "alternate", "docs"]
    assert get_available_relations({}) == []


def test_find_link_by_type():
    assert find_link_by_type(RESOURCE, "docs", "text/html")["href"] == "/docs"
    assert find_link_by_type(RESOURCE, "docs", "application/json") is None
    assert find_link_by_type(RESOURCE, "self", "application/json")["href"] == "/"
