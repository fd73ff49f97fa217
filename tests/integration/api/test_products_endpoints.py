"""
Integration tests for the product endpoints.

Tests the full request pipeline using FastAPI TestClient.
"""

import re
from typing import Any, Dict, List
from unittest.mock import Mock

from fastapi import FastAPI
from fastapi.testclient import TestClient

HEX_ID = re.compile(r"[0-9a-f]{32}")


def create_products(client: TestClient, payloads: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    created = []
    for payload in payloads:
        response = client.post("/v1/products", json=payload)
        assert response.status_code == 201
        created.append(response.json())
    return created


class TestProductEndpoints:
    """Test CRUD through the API."""

    def test_create_and_get(self, test_client: TestClient) -> None:
        """Test a created product can be read back."""
        response = test_client.post(
            "/v1/products",
            json={"name": "Desk", "description": "Oak desk", "price": 250.0, "stock": 12, "category": "office"},
        )

        assert response.status_code == 201
        created = response.json()
        assert created["id"] == 1
        assert created["name"] == "Desk"

        response = test_client.get(f"/v1/products/{created['id']}")
        assert response.status_code == 200
        assert response.json()["price"] == 250.0

    def test_list_products(self, test_client: TestClient, product_payloads: List[Dict[str, Any]]) -> None:
        create_products(test_client, product_payloads)

        response = test_client.get("/v1/products")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 3
        assert [p["name"] for p in body["products"]] == ["Gaming Laptop", "USB Cable", "Notebook"]

    def test_update_and_delete(self, test_client: TestClient) -> None:
        created = create_products(test_client, [{"name": "Lamp", "price": 30.0, "stock": 20}])[0]

        response = test_client.put(
            f"/v1/products/{created['id']}",
            json={"name": "Lamp", "price": 35.0, "stock": 18, "category": "home"},
        )
        assert response.status_code == 200
        assert response.json()["price"] == 35.0
        assert response.json()["created_at"] == created["created_at"]

        response = test_client.delete(f"/v1/products/{created['id']}")
        assert response.status_code == 200
        assert response.json() == {"message": "Product deleted successfully"}

        assert test_client.get(f"/v1/products/{created['id']}").status_code == 404

    def test_query_endpoints(self, test_client: TestClient, product_payloads: List[Dict[str, Any]]) -> None:
        """Test low-stock, top and category listings."""
        create_products(test_client, product_payloads)

        low_stock = test_client.get("/v1/products/low-stock").json()
        assert [p["name"] for p in low_stock["products"]] == ["Gaming Laptop", "Notebook"]

        low_stock = test_client.get("/v1/products/low-stock", params={"max_stock": 1}).json()
        assert [p["name"] for p in low_stock["products"]] == ["Notebook"]

        top = test_client.get("/v1/products/top", params={"limit": 1}).json()
        assert [p["name"] for p in top["products"]] == ["Gaming Laptop"]

        stationery = test_client.get("/v1/products/category/stationery").json()
        assert stationery["count"] == 1


class TestErrorResponses:
    """Test error payloads follow the standard format."""

    def test_not_found(self, test_client: TestClient) -> None:
        response = test_client.get("/v1/products/42")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["details"] == {"entity_id": 42}
        assert "message" in body

    def test_validation_error(self, test_client: TestClient) -> None:
        response = test_client.post("/v1/products", json={"name": "Freebie", "price": 0})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_invalid_id(self, test_client: TestClient) -> None:
        assert test_client.get("/v1/products/0").status_code == 400

    def test_conflict(self, test_client: TestClient) -> None:
        create_products(test_client, [{"name": "Chair", "price": 80.0}])

        response = test_client.post("/v1/products", json={"name": "Chair", "price": 90.0})

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    def test_top_limit_out_of_range(self, test_client: TestClient) -> None:
        response = test_client.get("/v1/products/top", params={"limit": 0})
        assert response.status_code == 400


class TestCorrelationHeaders:
    """Test request and correlation ids on every response."""

    def test_ids_generated(self, test_client: TestClient) -> None:
        response = test_client.get("/v1/products")

        assert HEX_ID.fullmatch(response.headers["X-Request-ID"])
        assert HEX_ID.fullmatch(response.headers["X-Correlation-ID"])

    def test_correlation_id_propagated(self, test_client: TestClient) -> None:
        """Test an upstream correlation id is echoed and a new request id issued."""
        response = test_client.get("/v1/products", headers={"X-Correlation-ID": "upstream-abc"})

        assert response.headers["X-Correlation-ID"] == "upstream-abc"
        assert response.headers["X-Request-ID"] != "upstream-abc"

    def test_request_id_header_used_as_correlation(self, test_client: TestClient) -> None:
        response = test_client.get("/v1/products", headers={"X-Request-ID": "hop-1"})

        assert response.headers["X-Correlation-ID"] == "hop-1"
        assert HEX_ID.fullmatch(response.headers["X-Request-ID"])

    def test_ids_on_error_responses(self, test_client: TestClient) -> None:
        response = test_client.get("/v1/products/42", headers={"X-Trace-ID": "trace-7"})

        assert response.status_code == 404
        assert response.headers["X-Correlation-ID"] == "trace-7"
        assert "X-Request-ID" in response.headers

    def test_unexpected_error_returns_500_with_ids(self, test_app: FastAPI, test_client: TestClient) -> None:
        """Test unhandled exceptions become a 500 that still carries the ids."""
        test_app.state.product_service.list_products = Mock(side_effect=RuntimeError("storage exploded"))

        response = test_client.get("/v1/products", headers={"X-Correlation-ID": "corr-500"})

        assert response.status_code == 500
        assert response.json()["error"] == "internal_server_error"
        assert response.headers["X-Correlation-ID"] == "corr-500"
        assert HEX_ID.fullmatch(response.headers["X-Request-ID"])
