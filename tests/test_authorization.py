"""
Tests for the role gate.
"""

import pytest

from storefront.domain.entities import Identity, Role
from storefront.domain.exceptions import AuthorizationDeniedError
from storefront.services.authorization import AuthorizationGate


@pytest.fixture
def gate():
    return AuthorizationGate()


@pytest.fixture
def user_identity():
    return Identity(user_id="u-1", email="user@example.com", role=Role.USER)


@pytest.fixture
def admin_identity():
    return Identity(user_id="a-1", email="admin@example.com", role=Role.ADMIN)


class TestAuthorize:
    """Test exact role matching."""

    def test_user_on_user_route(self, gate, user_identity):
        assert gate.authorize(user_identity, Role.USER).allowed is True

    def test_admin_on_admin_route(self, gate, admin_identity):
        assert gate.authorize(admin_identity, Role.ADMIN).allowed is True

    def test_user_on_admin_route(self, gate, user_identity):
        decision = gate.authorize(user_identity, Role.ADMIN)

        assert decision.allowed is False
        assert "admin" in decision.reason

    def test_admin_on_user_route(self, gate, admin_identity):
        """No hierarchy: admin does not inherit the user role."""
        assert gate.authorize(admin_identity, Role.USER).allowed is False


class TestEnforce:
    """Test the raising form of the gate."""

    def test_returns_identity_when_allowed(self, gate, user_identity):
        assert gate.enforce(user_identity, Role.USER) is user_identity

    def test_raises_on_mismatch(self, gate, user_identity):
        with pytest.raises(AuthorizationDeniedError) as exc_info:
            gate.enforce(user_identity, Role.ADMIN)

        assert exc_info.value.status_code == 403
        assert exc_info.value.required_role == Role.ADMIN
        assert exc_info.value.actual_role == Role.USER
