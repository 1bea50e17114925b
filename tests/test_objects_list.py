import logging


def test_list_returns_json_array_in_backend_order(client, storage):
    storage.list_keys = ["a", "b", "c"]

    resp = client.get("/api/mybucket/docs/list")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json"
    assert resp.text == '["a","b","c"]'
    assert storage.list_calls == [{"bucket": "mybucket", "prefix": "docs", "recursive": True}]


def test_list_keeps_unsorted_backend_order(client, storage):
    storage.list_keys = ["z/1", "a/2", "m"]

    resp = client.get("/api/b/p/list")

    assert resp.json() == ["z/1", "a/2", "m"]


def test_empty_listing_is_an_empty_array(client, storage):
    resp = client.get("/api/b/nothing-here/list")

    assert resp.status_code == 200
    assert resp.json() == []


def test_list_aborts_on_first_error_without_partial_json(client, storage, caplog):
    storage.list_keys = ["a", "b", "c", "d", "e"]
    storage.list_error_at = 2
    caplog.set_level(logging.ERROR, logger="gateway.service")

    resp = client.get("/api/b/p/list")

    assert resp.status_code == 500
    assert "[" not in resp.text
    assert resp.text == "Error listing objects\n"
    assert "Error getting list of objects: b/p" in caplog.text
    assert "code: AccessDenied" in caplog.text


def test_list_abort_stops_the_backend_enumeration(client, storage):
    storage.list_keys = ["a", "b", "c", "d", "e"]
    storage.list_error_at = 2

    client.get("/api/b/p/list")

    # the fake would keep going after the error; closing it must stop that
    assert storage.list_pulled == 2
    assert storage.list_closed


def test_list_closes_the_enumeration_on_success(client, storage):
    storage.list_keys = ["a"]

    client.get("/api/b/p/list")

    assert storage.list_closed
