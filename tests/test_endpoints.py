from __future__ import annotations

ROOT = {"Authentication": "root-secret"}


def _data(r):
    body = r.json()
    assert body["error"] is None, body
    return body["data"]


def test_root_operations_require_root_token(client):
    r = client.post("/", json={"name": "shop"})
    assert r.status_code == 401
    assert r.json() == {"error": "Expected an authorization header to be sent", "data": None}

    r = client.post("/", json={"name": "shop"}, headers={"Authentication": "nope"})
    assert r.status_code == 403

    r = client.post("/", json={"name": "shop"}, headers=ROOT)
    assert r.status_code == 200
    assert _data(r) == "shop"

    r = client.post("/", json={"name": "shop"}, headers=ROOT)
    assert r.status_code == 406


def test_public_database_flow(client):
    assert client.post("/", json={"name": "shop"}, headers=ROOT).status_code == 200

    r = client.post("/shop/collections", json={"name": "orders"})
    assert r.status_code == 200
    assert _data(client.get("/shop/collections")) == ["orders"]
    assert _data(client.get("/shop/collections/orders")) == "orders"
    assert client.get("/shop/collections/ghost").status_code == 404

    r = client.post("/shop/collections/orders/setDocument", json={"id": "o1", "status": {"state": "open"}})
    assert _data(r) == "o1"
    r = client.post("/shop/collections/orders/setDocument", json={"status": {"state": "closed"}})
    generated = _data(r)
    r = client.post(
        "/shop/collections/orders/setDocument", params={"idField": "sku"}, json={"sku": "s-9", "status": {}}
    )
    assert _data(r) == "s-9"

    assert sorted(_data(client.get("/shop/collections/orders/documents"))) == sorted(["o1", "s-9", generated])
    assert _data(client.get("/shop/collections/orders/documents/o1")) == {"id": "o1", "status": {"state": "open"}}
    assert client.get("/shop/collections/orders/documents/ghost").status_code == 404

    r = client.post(
        "/shop/collections/orders/findDocumentByKey", json={"key": "status.state", "values": ["str:open"]}
    )
    assert _data(r) == "o1"
    r = client.post(
        "/shop/collections/orders/findManyDocumentsByKey",
        json={"key": "status.state", "values": ["regex:^(open|closed)$"]},
    )
    assert sorted(_data(r)) == sorted(["o1", generated])

    info = _data(client.get("/shop"))
    assert info["size"] > 0
    assert info["requests"] == [3, 3]

    assert client.delete("/shop/collections/orders/documents/o1").status_code == 200
    assert client.delete("/shop/collections/orders/documents/o1").status_code == 404

    assert _data(client.put("/shop/collections/orders", json={"name": "archive"})) == "archive"
    assert _data(client.get("/shop/collections")) == ["archive"]
    assert client.delete("/shop/collections/archive").status_code == 200
    assert _data(client.get("/shop/collections")) == []


def test_private_database_requires_its_token(client):
    client.post("/", json={"name": "vault", "auth": "k3y"}, headers=ROOT)

    assert client.get("/vault/collections").status_code == 401
    assert client.get("/vault/collections", headers={"Authentication": "bad"}).status_code == 403
    r = client.get("/vault/collections", headers={"Authentication": "k3y"})
    assert r.status_code == 200
    assert _data(r) == []


def test_rename_and_delete_database(client):
    client.post("/", json={"name": "a"}, headers=ROOT)
    client.post("/", json={"name": "b"}, headers=ROOT)
    client.post("/a/collections", json={"name": "c"})

    assert client.put("/a", json={"name": "b"}, headers=ROOT).status_code == 406
    assert client.put("/ghost", json={"name": "z"}, headers=ROOT).status_code == 404
    assert _data(client.put("/a", json={"name": "renamed", "auth": "t"}, headers=ROOT)) == "renamed"

    assert client.get("/a/collections").status_code == 404
    assert _data(client.get("/renamed/collections", headers={"Authentication": "t"})) == ["c"]

    assert client.delete("/renamed", headers=ROOT).status_code == 200
    assert client.get("/renamed").status_code == 404


def test_bad_requests(client):
    client.post("/", json={"name": "shop"}, headers=ROOT)
    client.post("/shop/collections", json={"name": "c"})

    assert client.post("/", json={}, headers=ROOT).status_code == 400
    assert client.post("/", content=b"not json", headers=ROOT).status_code == 400
    assert client.post("/", json={"name": "a/b"}, headers=ROOT).status_code in (400, 404)
    assert client.post("/", json={"name": "a:b"}, headers=ROOT).status_code == 400
    assert client.post("/shop/collections", json={"name": "x:y"}).status_code == 400
    assert client.post("/shop/collections", json={"name": "meta.json"}).status_code == 400
    assert client.post("/shop/collections", json={"name": "c"}).status_code == 406

    r = client.post("/shop/collections/c/findDocumentByKey", json={"key": "a", "values": ["untagged"]})
    assert r.status_code == 400
    r = client.post("/shop/collections/c/findDocumentByKey", json={"values": ["str:x"]})
    assert r.status_code == 400
    r = client.post("/shop/collections/c/findManyDocumentsByKey", json={"key": "a"})
    assert r.status_code == 400
    r = client.post("/shop/collections/c/setDocument", content=b"null", headers={"content-type": "application/json"})
    assert r.status_code == 400
    r = client.post(
        "/shop/collections/c/setDocument",
        content=b'{"id": "n", "v": NaN}',
        headers={"content-type": "application/json"},
    )
    assert r.status_code == 400
    assert client.get("/shop/collections/c/documents/n").status_code == 404


def test_unknown_route(client):
    r = client.get("/a/b/c/d/e/f/g")
    assert r.status_code == 404
    assert r.json() == {"error": "The requested route was not found", "data": None}
