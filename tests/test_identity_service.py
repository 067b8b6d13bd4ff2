"""
Tests for the identity resolution pipeline.

Covers:
- Local password sign in, including uniform failures
- Bearer token resolution
- Federated account lookup, linking and creation
- Strategy dispatch
- Registration and sign-in flows
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from storefront.domain.entities import Role, TokenInvalidReason, User
from storefront.domain.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    UnauthenticatedError,
    ValidationFailedError,
)
from storefront.repositories.memory_repository import InMemoryUserRepository
from storefront.security import TokenService, hash_password, verify_password
from storefront.services.identity_service import (
    AuthStrategy,
    BearerCredentials,
    BearerTokenStrategy,
    FederatedAssertion,
    FederatedStrategy,
    IdentityResolver,
    LocalPasswordStrategy,
    PasswordCredentials,
    SessionService,
)

SECRET = "identity-tests-secret-key-at-least-32-chars"


@pytest.fixture
def users():
    return InMemoryUserRepository()


@pytest.fixture
def tokens():
    return TokenService(secret_key=SECRET, ttl=timedelta(minutes=15))


@pytest.fixture
def local(users):
    return LocalPasswordStrategy(users)


@pytest.fixture
def bearer(tokens):
    return BearerTokenStrategy(tokens)


@pytest.fixture
def federated(users):
    return FederatedStrategy(users)


@pytest.fixture
def resolver(local, bearer, federated):
    return IdentityResolver([local, bearer, federated])


@pytest.fixture
def sessions(users, tokens, local, federated):
    return SessionService(users, tokens, local, federated)


async def _add_user(users, email="alice@example.com", password="correct-horse", role=Role.USER):
    return await users.create(
        User(id="", email=email, role=role, password_hash=hash_password(password))
    )


class _RacingUserRepository(InMemoryUserRepository):
    """Stores a competing account right before the first insert lands."""

    def __init__(self, competitor: User) -> None:
        super().__init__()
        self.competitor = competitor
        self.raced = False

    async def create(self, user: User) -> User:
        if not self.raced:
            self.raced = True
            await super().create(self.competitor)
        return await super().create(user)


class TestLocalPasswordStrategy:
    """Test email and password authentication."""

    @pytest.mark.asyncio
    async def test_valid_credentials(self, users, local):
        stored = await _add_user(users)

        identity = await local.resolve(PasswordCredentials("alice@example.com", "correct-horse"))

        assert identity.user_id == stored.id
        assert identity.role == Role.USER

    @pytest.mark.asyncio
    async def test_email_lookup_ignores_case(self, users, local):
        await _add_user(users)

        user = await local.authenticate(PasswordCredentials("Alice@Example.COM", "correct-horse"))

        assert user.email == "alice@example.com"

    @pytest.mark.asyncio
    async def test_unknown_email_and_wrong_password_fail_identically(self, users, local):
        await _add_user(users)

        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await local.authenticate(PasswordCredentials("alice@example.com", "nope-nope"))
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await local.authenticate(PasswordCredentials("bob@example.com", "correct-horse"))

        assert wrong_password.value.message == unknown_email.value.message
        assert wrong_password.value.status_code == unknown_email.value.status_code == 401

    @pytest.mark.asyncio
    async def test_password_is_checked_for_unknown_email(self, local):
        with patch(
            "storefront.services.identity_service.verify_password", wraps=verify_password
        ) as check:
            with pytest.raises(InvalidCredentialsError):
                await local.authenticate(PasswordCredentials("ghost@example.com", "whatever"))

        check.assert_called_once_with(None, "whatever")

    @pytest.mark.asyncio
    async def test_federated_only_account_cannot_use_password(self, users, local):
        await users.create(
            User(id="", email="fed@example.com", federated_ids={"google": "g-1"})
        )

        with pytest.raises(InvalidCredentialsError):
            await local.authenticate(PasswordCredentials("fed@example.com", ""))


class TestBearerTokenStrategy:
    """Test stateless bearer token resolution."""

    @pytest.mark.asyncio
    async def test_valid_token(self, tokens, bearer):
        token = tokens.issue(User(id="u-1", email="a@example.com", role=Role.ADMIN))

        identity = await bearer.resolve(BearerCredentials(token))

        assert identity.user_id == "u-1"
        assert identity.role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_expired_token(self, bearer):
        stale = TokenService(
            secret_key=SECRET,
            ttl=timedelta(minutes=1),
            clock=lambda: datetime.now(timezone.utc) - timedelta(minutes=10),
        )
        token = stale.issue(User(id="u-1", email="a@example.com"))

        with pytest.raises(UnauthenticatedError) as exc_info:
            await bearer.resolve(BearerCredentials(token))

        assert exc_info.value.reason == TokenInvalidReason.EXPIRED

    @pytest.mark.asyncio
    async def test_garbage_token(self, bearer):
        with pytest.raises(UnauthenticatedError) as exc_info:
            await bearer.resolve(BearerCredentials("garbage"))

        assert exc_info.value.reason == TokenInvalidReason.MALFORMED

    def test_claims(self, tokens, bearer):
        token = tokens.issue(User(id="u-9", email="nine@example.com"))

        claims = bearer.claims(BearerCredentials(token))

        assert claims.to_dict()["sub"] == "u-9"
        assert claims.to_dict()["role"] == "user"


class TestFederatedStrategy:
    """Test provider identity resolution."""

    @pytest.mark.asyncio
    async def test_first_login_creates_user(self, users, federated):
        assertion = FederatedAssertion("google", "g-42", "new@example.com", "New", "Person")

        user = await federated.authenticate(assertion)

        assert user.role == Role.USER
        assert user.password_hash is None
        assert user.federated_ids == {"google": "g-42"}
        assert (await users.find_by_email("new@example.com")).id == user.id

    @pytest.mark.asyncio
    async def test_repeat_login_returns_same_user(self, federated):
        assertion = FederatedAssertion("google", "g-42", "new@example.com")

        first = await federated.authenticate(assertion)
        second = await federated.authenticate(assertion)

        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_links_existing_local_account(self, users, federated):
        local_user = await _add_user(users, email="alice@example.com")

        user = await federated.authenticate(
            FederatedAssertion("google", "g-alice", "alice@example.com")
        )

        assert user.id == local_user.id
        assert user.federated_ids == {"google": "g-alice"}
        assert user.password_hash == local_user.password_hash

    @pytest.mark.asyncio
    async def test_concurrent_first_login_with_same_subject(self):
        winner = User(id="", email="other@example.com", federated_ids={"google": "g-42"})
        users = _RacingUserRepository(winner)

        user = await FederatedStrategy(users).authenticate(
            FederatedAssertion("google", "g-42", "new@example.com")
        )

        assert user.email == "other@example.com"
        assert await users.find_by_email("new@example.com") is None
        assert len(users._users) == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_login_with_same_email_links_subject(self):
        users = _RacingUserRepository(User(id="", email="new@example.com"))

        user = await FederatedStrategy(users).authenticate(
            FederatedAssertion("google", "g-42", "new@example.com")
        )

        assert user.federated_ids == {"google": "g-42"}
        assert (await users.find_by_federated_id("google", "g-42")).id == user.id
        assert len(users._users) == 1

    @pytest.mark.asyncio
    async def test_conflict_without_visible_account_propagates(self, users, federated):
        with patch.object(users, "create", side_effect=ConflictError("Email already registered")):
            with pytest.raises(ConflictError):
                await federated.authenticate(
                    FederatedAssertion("google", "g-42", "new@example.com")
                )


class TestIdentityResolver:
    """Test dispatch from credential type to strategy."""

    def test_supported_strategies(self, resolver):
        assert set(resolver.supported) == {
            AuthStrategy.LOCAL_PASSWORD,
            AuthStrategy.BEARER_TOKEN,
            AuthStrategy.FEDERATED,
        }

    def test_strategy_for_each_credential_type(self, resolver, local, bearer, federated):
        assert resolver.strategy_for(PasswordCredentials("a@example.com", "x")) is local
        assert resolver.strategy_for(BearerCredentials("t")) is bearer
        assert resolver.strategy_for(FederatedAssertion("google", "s", "a@example.com")) is federated

    def test_unknown_credentials(self, resolver):
        with pytest.raises(TypeError):
            resolver.strategy_for(("user", "pass"))

    @pytest.mark.asyncio
    async def test_resolve_dispatches(self, users, resolver):
        stored = await _add_user(users)

        identity = await resolver.resolve(PasswordCredentials("alice@example.com", "correct-horse"))

        assert identity.user_id == stored.id

    @pytest.mark.asyncio
    async def test_resolver_without_bearer_strategy(self, local):
        resolver = IdentityResolver([local])

        with pytest.raises(TypeError):
            await resolver.resolve(BearerCredentials("token"))


class TestSessionService:
    """Test registration and sign-in flows."""

    @pytest.mark.asyncio
    async def test_register_creates_user_role(self, sessions):
        user = await sessions.register("carol@example.com", "long-enough", "Carol", "King")

        assert user.role == Role.USER
        assert user.password_hash.startswith("$2b$")
        assert user.first_name == "Carol"

    @pytest.mark.asyncio
    async def test_register_rejects_short_password(self, sessions):
        with pytest.raises(ValidationFailedError):
            await sessions.register("carol@example.com", "short")

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, sessions):
        await sessions.register("carol@example.com", "long-enough")

        with pytest.raises(ConflictError):
            await sessions.register("CAROL@example.com", "long-enough")

    @pytest.mark.asyncio
    async def test_sign_in_issues_verifiable_token(self, sessions, tokens):
        registered = await sessions.register("carol@example.com", "long-enough")

        user, token = await sessions.sign_in(PasswordCredentials("carol@example.com", "long-enough"))

        claims = tokens.verify(token)
        assert user.id == registered.id
        assert claims.subject == registered.id
        assert claims.role == Role.USER

    @pytest.mark.asyncio
    async def test_sign_in_federated(self, sessions, tokens):
        user, token = await sessions.sign_in_federated(
            FederatedAssertion("google", "g-7", "fed@example.com")
        )

        assert tokens.verify(token).subject == user.id
