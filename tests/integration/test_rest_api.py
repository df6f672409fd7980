"""Integration tests for the REST API."""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from crm_store import __version__
from crm_store.adapters.inbound import create_app
from crm_store.application import CrmBackend


@pytest.fixture
def client(backend: CrmBackend) -> Generator[TestClient, None, None]:
    """Provide a test client over a started backend."""
    with TestClient(create_app(backend)) as c:
        yield c


def create_customer(client: TestClient, name: str = "Alice", **overrides) -> dict:
    body = {"name": name, "email": f"{name.lower()}@example.com", "phone": "555-0100"}
    body.update(overrides)
    response = client.post("/customers", json=body)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.integration
class TestHealthAndStats:
    """Tests for the service endpoints."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": __version__}

    def test_stats(self, client: TestClient) -> None:
        create_customer(client)
        response = client.get("/stats")

        assert response.status_code == 200
        body = response.json()
        assert body["started"] is True
        assert body["customers"] == 1
        assert body["last_id"] == 1

    def test_not_started(self) -> None:
        """Record endpoints answer 503 until the backend starts."""
        backend = CrmBackend.in_memory()
        client = TestClient(create_app(backend))

        assert client.get("/health").json()["status"] == "unhealthy"
        assert client.get("/stats").status_code == 503
        assert client.get("/customers/1").status_code == 503
        assert client.post(
            "/interactions",
            json={"customer_id": 1, "interaction_type": "Call", "content": "Hi"},
        ).status_code == 503


@pytest.mark.integration
class TestCustomerEndpoints:
    """Tests for /customers."""

    def test_create_and_get(self, client: TestClient) -> None:
        created = create_customer(client)
        assert created["id"] == 1
        assert created["name"] == "Alice"

        response = client.get(f"/customers/{created['id']}")
        assert response.status_code == 200
        assert response.json() == created

    def test_create_invalid(self, client: TestClient) -> None:
        response = client.post(
            "/customers",
            json={"name": "Alice", "email": "not-an-email", "phone": "555"},
        )
        assert response.status_code == 400
        assert response.json() == {
            "kind": "InvalidInput",
            "detail": "Invalid email or phone format",
        }

    def test_get_missing(self, client: TestClient) -> None:
        response = client.get("/customers/77")
        assert response.status_code == 404
        assert response.json()["kind"] == "NotFound"
        assert "id=77" in response.json()["detail"]

    @pytest.mark.parametrize("customer_id", ["-1", str(2**64)])
    def test_id_outside_u64_range(self, client: TestClient, customer_id: str) -> None:
        """Ids that cannot exist are rejected by request validation."""
        assert client.get(f"/customers/{customer_id}").status_code == 422
        assert client.delete(f"/customers/{customer_id}").status_code == 422
        response = client.put(
            f"/customers/{customer_id}",
            json={"name": "A", "email": "a@example.com", "phone": "1"},
        )
        assert response.status_code == 422

    def test_update(self, client: TestClient) -> None:
        created = create_customer(client)
        response = client.put(
            f"/customers/{created['id']}",
            json={"name": "Alicia", "email": "alicia@example.com", "phone": "555-0199"},
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Alicia"
        assert client.get(f"/customers/{created['id']}").json()["phone"] == "555-0199"

    def test_update_missing(self, client: TestClient) -> None:
        response = client.put(
            "/customers/5",
            json={"name": "X", "email": "x@example.com", "phone": "1"},
        )
        assert response.status_code == 404

    def test_delete(self, client: TestClient) -> None:
        created = create_customer(client)

        response = client.delete(f"/customers/{created['id']}")
        assert response.status_code == 200
        assert response.json() == created

        assert client.delete(f"/customers/{created['id']}").status_code == 404

    def test_search(self, client: TestClient) -> None:
        create_customer(client, "Alice")
        create_customer(client, "Bob")
        create_customer(client, "Alice", email="alice2@example.com")

        response = client.get("/customers", params={"name": "Alice", "page_size": 1})
        assert response.status_code == 200
        body = response.json()
        assert body["total_items"] == 2
        assert [c["id"] for c in body["items"]] == [1]

        response = client.get(
            "/customers", params={"name": "Alice", "page_size": 1, "page_number": 2}
        )
        assert [c["id"] for c in response.json()["items"]] == [3]

    def test_search_invalid_page(self, client: TestClient) -> None:
        response = client.get("/customers", params={"page_number": 0})
        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"


@pytest.mark.integration
class TestInteractionEndpoints:
    """Tests for /interactions."""

    def test_lifecycle(self, client: TestClient) -> None:
        customer = create_customer(client)
        body = {"customer_id": customer["id"], "interaction_type": "Call", "content": "Intro"}

        response = client.post("/interactions", json=body)
        assert response.status_code == 201
        created = response.json()
        assert created["id"] == 2
        assert created["updated_at"] is None

        response = client.put(
            f"/interactions/{created['id']}",
            json={**body, "content": "Follow-up"},
        )
        assert response.status_code == 200
        updated = response.json()
        assert updated["content"] == "Follow-up"
        assert updated["updated_at"] >= updated["created_at"]

        assert client.get(f"/interactions/{created['id']}").json() == updated
        assert client.delete(f"/interactions/{created['id']}").status_code == 200
        assert client.get(f"/interactions/{created['id']}").status_code == 404

    def test_invalid_payload(self, client: TestClient) -> None:
        response = client.post(
            "/interactions",
            json={"customer_id": 1, "interaction_type": "", "content": "Hi"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid interaction payload"

    def test_missing_field(self, client: TestClient) -> None:
        """Malformed bodies are rejected by request validation."""
        response = client.post("/interactions", json={"customer_id": 1})
        assert response.status_code == 422

    @pytest.mark.parametrize("customer_id", [-1, 2**64])
    def test_customer_id_outside_u64_range(self, client: TestClient, customer_id: int) -> None:
        """An out-of-range customer_id is rejected without minting an id."""
        response = client.post(
            "/interactions",
            json={"customer_id": customer_id, "interaction_type": "Call", "content": "Hi"},
        )
        assert response.status_code == 422
        assert client.get("/stats").json()["last_id"] == 0

    def test_interaction_id_outside_u64_range(self, client: TestClient) -> None:
        assert client.get("/interactions/-1").status_code == 422
        assert client.delete(f"/interactions/{2**64}").status_code == 422
