"""
Tests for the catalog endpoints and app-level handlers.
"""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from storefront.app import create_app
from storefront.domain.exceptions import StorageError


class TestProductReads:

    def test_list_is_public(self, client, product_id):
        response = client.get("/products")

        body = response.json()["payload"]
        assert response.status_code == 200
        assert [doc["id"] for doc in body["docs"]] == [product_id]
        assert body["total_docs"] == 1
        assert body["page"] == 1

    def test_list_sorted_and_filtered(self, client, admin_headers):
        for title, price, category in [("A", 5, "x"), ("B", 50, "x"), ("C", 20, "y")]:
            client.post(
                "/products",
                json={"title": title, "price": price, "category": category},
                headers=admin_headers,
            )

        response = client.get("/products", params={"category": "x", "sort": "asc"})

        assert [doc["title"] for doc in response.json()["payload"]["docs"]] == ["A", "B"]

    def test_list_invalid_sort(self, client):
        response = client.get("/products", params={"sort": "sideways"})

        assert response.status_code == 400

    def test_get_product(self, client, product_id):
        response = client.get(f"/products/{product_id}")

        assert response.status_code == 200
        assert response.json()["payload"]["code"] == "KB-001"

    def test_get_missing_product(self, client):
        response = client.get("/products/ghost")

        assert response.status_code == 404
        assert response.json() == {"status": 404, "response": "Product with ID ghost not found."}


class TestProductWrites:

    def test_create_requires_admin(self, client, user_headers, product_payload):
        response = client.post("/products", json=product_payload, headers=user_headers)

        assert response.status_code == 403

    def test_create_requires_token(self, client, product_payload):
        assert client.post("/products", json=product_payload).status_code == 401

    def test_create_invalid_body(self, client, admin_headers):
        response = client.post("/products", json={"title": "No price"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["status"] == 400

    def test_create_duplicate_code(self, client, admin_headers, product_payload, product_id):
        response = client.post("/products", json=product_payload, headers=admin_headers)

        assert response.status_code == 409

    def test_update(self, client, admin_headers, product_id):
        response = client.put(
            f"/products/{product_id}", json={"price": 79.0}, headers=admin_headers
        )

        payload = response.json()["payload"]
        assert response.status_code == 200
        assert payload["price"] == 79.0
        assert payload["title"] == "Mechanical Keyboard"

    def test_update_missing(self, client, admin_headers):
        response = client.put("/products/ghost", json={"price": 1.0}, headers=admin_headers)

        assert response.status_code == 404

    def test_delete(self, client, admin_headers, product_id):
        response = client.delete(f"/products/{product_id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "success"
        assert client.get(f"/products/{product_id}").status_code == 404

    def test_delete_missing(self, client, admin_headers):
        assert client.delete("/products/ghost", headers=admin_headers).status_code == 404


class TestAppHandlers:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_metrics(self, client):
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "storefront_http_requests_total" in response.text

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/nowhere")

        assert response.status_code == 404
        assert response.json()["status"] == 404

    def test_storage_error_is_opaque(self, container):
        container.product_service.products = AsyncMock()
        container.product_service.products.get.side_effect = StorageError("products.get", "OSError")

        with TestClient(create_app(container)) as client:
            response = client.get("/products/p1")

        assert response.status_code == 500
        assert response.json() == {"status": 500, "response": "Internal server error"}

    def test_unexpected_error_is_opaque(self, container):
        container.product_service.products = AsyncMock()
        container.product_service.products.get.side_effect = RuntimeError("boom")

        with TestClient(create_app(container), raise_server_exceptions=False) as client:
            response = client.get("/products/p1")

        assert response.status_code == 500
        assert response.json() == {"status": 500, "response": "Internal server error"}
