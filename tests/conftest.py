# Test configuration
import os

# Set test environment variables BEFORE importing storefront modules
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only-32chars"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"  # Lower rounds for faster tests
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id.apps.googleusercontent.com"
os.environ["LOG_LEVEL"] = "WARNING"

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from storefront.app import create_app
from storefront.config import Settings
from storefront.container import build_container
from storefront.domain.entities import Role, User


@pytest.fixture
def test_settings():
    """Fresh settings read from the test environment."""
    return Settings()


@pytest.fixture
def federated_verifier():
    """Identity provider adapter that never touches the network."""
    verifier = AsyncMock()
    verifier.provider = "google"
    return verifier


@pytest.fixture
def container(test_settings, federated_verifier):
    """In-memory service graph."""
    return build_container(test_settings, federated_verifier=federated_verifier)


@pytest.fixture
def client(container):
    """Test client bound to a fresh app and container."""
    with TestClient(create_app(container)) as test_client:
        yield test_client


@pytest.fixture
def user_token(container):
    """Token for an identity holding the ``user`` role."""
    return container.tokens.issue(User(id="user-1", email="user@example.com", role=Role.USER))


@pytest.fixture
def admin_token(container):
    """Token for an identity holding the ``admin`` role."""
    return container.tokens.issue(User(id="admin-1", email="admin@example.com", role=Role.ADMIN))


@pytest.fixture
def user_headers(user_token):
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def product_payload():
    return {
        "title": "Mechanical Keyboard",
        "description": "Tenkeyless, brown switches",
        "code": "KB-001",
        "price": 89.9,
        "category": "peripherals",
        "status": True,
        "thumbnails": [],
    }


@pytest.fixture
def product_id(client, admin_headers, product_payload):
    """Id of a product created through the API."""
    response = client.post("/products", json=product_payload, headers=admin_headers)
    assert response.status_code == 201
    return response.json()["payload"]["id"]
