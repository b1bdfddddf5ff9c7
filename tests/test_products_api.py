# tests/test_products_api.py
import logging

from app.database import StoreError


def test_welcome_text(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.text.startswith("Welcome to the Product API")


def test_create_lowercases_category(client, auth):
    r = client.post("/api/products", headers=auth, json={
        "name": "Laptop", "description": "Fast", "price": 1299.99, "category": "Electronics",
    })
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    data = body["data"]
    assert data["category"] == "electronics"
    assert data["inStock"] is True
    assert len(data["id"]) == 32
    assert data["createdAt"] == data["updatedAt"]


def test_create_trims_text_fields(create):
    data = create(name="  Desk lamp ", description=" Warm light  ", category="home")
    assert data["name"] == "Desk lamp"
    assert data["description"] == "Warm light"


def test_create_requires_credential(client, auth):
    body = {"name": "Laptop", "description": "Fast", "price": 1, "category": "electronics"}

    r = client.post("/api/products", json=body)
    assert r.status_code == 401
    assert r.json()["success"] is False
    assert r.json()["message"] == "API key is required"

    r = client.post("/api/products", json=body, headers={"X-API-Key": "nope"})
    assert r.status_code == 403
    assert r.json()["message"] == "Invalid API key"


def test_credential_accepted_as_query_param(client):
    r = client.post("/api/products", params={"apiKey": "test-secret"}, json={
        "name": "Ball", "description": "Round", "price": 5, "category": "sports",
    })
    assert r.status_code == 201


def test_auth_runs_before_body_validation(client):
    r = client.post("/api/products", json={})
    assert r.status_code == 401


def test_malformed_json_is_rejected_as_body_error(client):
    # the body is parsed before the credential is checked
    r = client.post("/api/products", content=b'{"name": "Lamp",',
                    headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    body = r.json()
    assert body["message"] == "Validation failed"
    assert body["errors"] == [{"field": "body", "message": "Malformed JSON body"}]


def test_create_reports_every_bad_field(client, auth):
    r = client.post("/api/products", json={}, headers=auth)
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert {e["field"]: e["message"] for e in body["errors"]} == {
        "name": "Name is required",
        "description": "Description is required",
        "price": "Price is required",
        "category": "Category is required",
    }


def test_create_rejects_invariant_violations(client, auth):
    r = client.post("/api/products", headers=auth, json={
        "name": "x" * 101,
        "description": "ok",
        "price": -1,
        "category": "Toys",
        "inStock": "maybe",
    })
    assert r.status_code == 400
    messages = {e["field"]: e["message"] for e in r.json()["errors"]}
    assert messages == {
        "name": "Name cannot be more than 100 characters",
        "price": "Price must be a positive number",
        "category": "toys is not a valid category",
        "inStock": "inStock must be a boolean",
    }
    # nothing reached the store
    assert client.get("/api/products").json()["total"] == 0


def test_create_rejects_non_numeric_price(client, auth):
    r = client.post("/api/products", headers=auth, json={
        "name": "A", "description": "B", "price": "cheap", "category": "other",
    })
    assert r.status_code == 400
    assert r.json()["errors"] == [{"field": "price", "message": "Price must be a number"}]


def test_create_rejects_non_object_body(client, auth):
    r = client.post("/api/products", headers=auth, json=["not", "an", "object"])
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_get_by_id(client, create):
    created = create()
    r = client.get(f"/api/products/{created['id']}")
    assert r.status_code == 200
    assert r.json()["data"] == created


def test_get_unknown_and_malformed_ids(client):
    for pid in ("0" * 32, "not-an-id"):
        r = client.get(f"/api/products/{pid}")
        assert r.status_code == 404
        assert r.json()["message"] == "Product not found"


def test_partial_update_changes_only_given_fields(client, auth, create):
    created = create(price=10)
    r = client.put(f"/api/products/{created['id']}", headers=auth, json={"price": 12.5, "inStock": False})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["price"] == 12.5
    assert data["inStock"] is False
    assert data["name"] == created["name"]
    assert data["createdAt"] == created["createdAt"]
    assert data["updatedAt"] >= created["updatedAt"]


def test_update_stock_flag_alone(client, auth, create):
    created = create()
    assert created["inStock"] is True
    r = client.put(f"/api/products/{created['id']}", headers=auth, json={"inStock": False})
    assert r.status_code == 200
    assert r.json()["data"]["inStock"] is False
    assert client.get(f"/api/products/{created['id']}").json()["data"]["inStock"] is False


def test_snake_case_stock_flag_is_an_unknown_field(client, auth, create):
    created = create(in_stock=False)
    assert created["inStock"] is True
    r = client.put(f"/api/products/{created['id']}", headers=auth, json={"in_stock": False})
    assert r.status_code == 200
    assert r.json()["data"]["inStock"] is True
    assert "in_stock" not in r.json()["data"]


def test_empty_update_is_data_noop(client, auth, create):
    created = create()
    r = client.put(f"/api/products/{created['id']}", headers=auth, json={})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["updatedAt"] >= created["updatedAt"]
    data.pop("updatedAt")
    created.pop("updatedAt")
    assert data == created


def test_update_ignores_immutable_fields(client, auth, create):
    created = create()
    r = client.put(f"/api/products/{created['id']}", headers=auth,
                   json={"id": "f" * 32, "createdAt": "2000-01-01T00:00:00"})
    assert r.status_code == 200
    assert r.json()["data"]["id"] == created["id"]
    assert r.json()["data"]["createdAt"] == created["createdAt"]


def test_update_validates_present_fields_only(client, auth, create):
    created = create()
    r = client.put(f"/api/products/{created['id']}", headers=auth, json={"name": "", "category": "food"})
    assert r.status_code == 400
    assert {e["field"] for e in r.json()["errors"]} == {"name", "category"}


def test_update_unknown_product(client, auth):
    r = client.put(f"/api/products/{'a' * 32}", headers=auth, json={"price": 1})
    assert r.status_code == 404


def test_update_requires_credential(client, create):
    created = create()
    assert client.put(f"/api/products/{created['id']}", json={"price": 1}).status_code == 401


def test_delete(client, auth, create):
    created = create()
    r = client.delete(f"/api/products/{created['id']}", headers=auth)
    assert r.status_code == 204
    assert r.content == b""
    assert client.get(f"/api/products/{created['id']}").status_code == 404


def test_delete_unknown_product(client, auth):
    r = client.delete(f"/api/products/{'b' * 32}", headers=auth)
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Product not found"


def test_delete_requires_credential(client, create):
    created = create()
    assert client.delete(f"/api/products/{created['id']}").status_code == 401
    assert client.delete(f"/api/products/{created['id']}", headers={"X-API-Key": "bad"}).status_code == 403


def test_list_filters_and_paginates(client, create):
    for i in range(6):
        create(name=f"Phone {i}", price=100 + i, category="electronics")
        create(name=f"Shirt {i}", price=200 + i, category="clothing")
    create(name="Old phone", price=1, category="electronics", inStock=False)
    create(name="Pan", price=30, category="kitchen")

    r = client.get("/api/products", params={
        "category": "electronics,clothing", "inStock": "true", "page": 2, "limit": 5, "sort": "price",
    })
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 12
    assert body["count"] == 5
    assert body["page"] == 2
    assert body["totalPages"] == 3
    assert body["hasNextPage"] is True
    assert body["hasPreviousPage"] is True
    assert [p["price"] for p in body["data"]] == [105, 200, 201, 202, 203]
    assert all(p["inStock"] for p in body["data"])
    assert {p["category"] for p in body["data"]} <= {"electronics", "clothing"}


def test_list_last_page_flags(client, create):
    for i in range(3):
        create(name=f"Item {i}", price=i)
    body = client.get("/api/products", params={"page": 2, "limit": 2}).json()
    assert body["count"] == 1
    assert body["hasNextPage"] is False
    assert body["hasPreviousPage"] is True


def test_list_empty_catalog(client):
    body = client.get("/api/products").json()
    assert body == {
        "success": True, "count": 0, "total": 0, "page": 1, "limit": 10, "totalPages": 0,
        "hasNextPage": False, "hasPreviousPage": False, "data": [],
    }


def test_list_price_range_and_name(client, create):
    create(name="Cheap mug", price=5, category="kitchen")
    create(name="Fancy mug", price=50, category="kitchen")
    create(name="Kettle", price=40, category="kitchen")

    body = client.get("/api/products", params={"name": "MUG", "minPrice": "10"}).json()
    assert [p["name"] for p in body["data"]] == ["Fancy mug"]

    body = client.get("/api/products", params={"maxPrice": "45", "minPrice": "oops", "sort": "price"}).json()
    assert [p["name"] for p in body["data"]] == ["Cheap mug", "Kettle"]


def test_list_search_param_matches_description(client, create):
    create(name="Tent", description="Waterproof shelter", category="sports")
    create(name="Boots", description="Leather", category="clothing")
    body = client.get("/api/products", params={"search": "waterproof"}).json()
    assert [p["name"] for p in body["data"]] == ["Tent"]


def test_list_limit_is_capped(client, create):
    create()
    body = client.get("/api/products", params={"limit": 10_000}).json()
    assert body["limit"] == 100


def test_list_repeated_query_key_uses_last_value(client, create):
    for i in range(6):
        create(name=f"Item {i}", price=i, category="home" if i % 2 else "kitchen")
    r = client.get("/api/products", params=[("limit", "2"), ("limit", "5"),
                                            ("category", "home"), ("category", "kitchen")])
    body = r.json()
    assert body["limit"] == 5
    assert body["count"] == 3
    assert {p["category"] for p in body["data"]} == {"kitchen"}


def test_search(client, create):
    create(name="Laptop", description="Fast")
    create(name="Fast charger", description="USB-C")
    create(name="Sofa", description="Comfy", category="home")

    r = client.get("/api/products/search", params={"q": "fast"})
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 2
    assert {p["name"] for p in body["data"]} == {"Laptop", "Fast charger"}


def test_search_escapes_pattern_characters(client, create):
    create(name="C++ primer", description="Book", category="other")
    body = client.get("/api/products/search", params={"q": "c++"}).json()
    assert body["count"] == 1


def test_search_requires_q(client):
    for params in ({}, {"q": "   "}):
        r = client.get("/api/products/search", params=params)
        assert r.status_code == 400
        assert r.json()["message"] == 'Search query parameter "q" is required'


def test_stats(client, create):
    create(name="TV", price=300, category="electronics", inStock=False)
    create(name="Radio", price=100, category="electronics")
    create(name="Hat", price=50, category="clothing")

    r = client.get("/api/products/stats")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["totalProducts"] == 3
    assert data["inStock"] == 2
    assert data["outOfStock"] == 1
    assert data["byCategory"] == [
        {"category": "clothing", "count": 1, "avgPrice": 50, "minPrice": 50, "maxPrice": 50, "totalValue": 50},
        {"category": "electronics", "count": 2, "avgPrice": 200, "minPrice": 100, "maxPrice": 300,
         "totalValue": 400},
    ]
    assert client.get("/api/products/statistics").json() == r.json()


def test_stats_empty(client):
    data = client.get("/api/products/stats").json()["data"]
    assert data == {"totalProducts": 0, "inStock": 0, "outOfStock": 0, "byCategory": []}


def test_unknown_route_is_json_404(client):
    r = client.get("/api/nothing-here")
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["message"] == "Endpoint not found"


def test_store_failure_becomes_500(client, app, monkeypatch):
    async def broken(*args, **kwargs):
        raise StoreError("disk on fire")

    monkeypatch.setattr(app.state.service.products, "count", broken)
    r = client.get("/api/products")
    assert r.status_code == 500
    assert r.json()["success"] is False
    assert r.json()["message"] == "Failed to list products"


def test_store_failure_detail_stays_in_log_in_production(monkeypatch, caplog):
    from fastapi.testclient import TestClient

    from app.config import Settings
    from app.main import create_app

    app = create_app(Settings(api_key="k", environment="production"))

    async def broken(*args, **kwargs):
        raise StoreError("disk on fire")

    monkeypatch.setattr(app.state.service.products, "find", broken)
    caplog.set_level(logging.ERROR, logger="app.service")
    r = TestClient(app).get("/api/products/search", params={"q": "lamp"})
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Search failed"}
    assert any("disk on fire" in rec.getMessage() for rec in caplog.records)


def test_unexpected_error_hides_stack_in_production(monkeypatch):
    from fastapi.testclient import TestClient

    from app.config import Settings
    from app.main import create_app

    app = create_app(Settings(api_key="k", environment="production"))

    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(app.state.service.products, "aggregate", broken)
    r = TestClient(app, raise_server_exceptions=False).get("/api/products/stats")
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Internal Server Error"}


def test_unexpected_error_includes_stack_in_development(monkeypatch, app):
    from fastapi.testclient import TestClient

    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(app.state.service.products, "aggregate", broken)
    r = TestClient(app, raise_server_exceptions=False).get("/api/products/stats")
    assert r.status_code == 500
    assert "RuntimeError: boom" in r.json()["stack"]


def test_access_line_written_for_unhandled_error(monkeypatch, app, caplog):
    from fastapi.testclient import TestClient

    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(app.state.service.products, "aggregate", broken)
    caplog.set_level(logging.INFO, logger="app.access")
    r = TestClient(app, raise_server_exceptions=False).get("/api/products/stats")
    assert r.status_code == 500
    lines = [rec.getMessage() for rec in caplog.records if rec.name == "app.access"]
    assert any(line.startswith("GET /api/products/stats 500 ") for line in lines)
