"""
Identity resolution pipeline.

Each supported authentication mode is a tagged credential type paired
with one strategy class. ``IdentityResolver`` dispatches on the
credential type, so the set of modes is fixed by the classes registered
here and new modes never touch the authorization gate or cart code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, Iterable, Optional, Tuple, Type, Union

from ..domain.entities import Identity, Role, TokenClaims, TokenInvalid, User
from ..domain.exceptions import (
    ConflictError,
    InvalidCredentialsError,
    UnauthenticatedError,
    ValidationFailedError,
)
from ..logging_config import get_logger
from ..metrics import track_signin, track_token_verification
from ..repositories.base import IUserRepository
from ..security import TokenService, hash_password, verify_password

logger = get_logger(__name__)


class AuthStrategy(str, Enum):
    """Supported authentication modes."""

    LOCAL_PASSWORD = "local-password"
    BEARER_TOKEN = "bearer-token"
    FEDERATED = "federated"


@dataclass(frozen=True)
class PasswordCredentials:
    """Email and password submitted for a local login."""

    strategy: ClassVar[AuthStrategy] = AuthStrategy.LOCAL_PASSWORD

    email: str
    password: str


@dataclass(frozen=True)
class BearerCredentials:
    """Token taken from the Authorization header or the token cookie."""

    strategy: ClassVar[AuthStrategy] = AuthStrategy.BEARER_TOKEN

    token: str


@dataclass(frozen=True)
class FederatedAssertion:
    """
    Identity vouched for by an external provider.

    Only produced after the provider's own proof (for example a signed ID
    token) has been checked.
    """

    strategy: ClassVar[AuthStrategy] = AuthStrategy.FEDERATED

    provider: str
    subject: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


Credentials = Union[PasswordCredentials, BearerCredentials, FederatedAssertion]


class IdentityStrategy(ABC):
    """Turns one kind of credentials into an authenticated identity."""

    strategy: ClassVar[AuthStrategy]
    credential_type: ClassVar[Type]

    @abstractmethod
    async def resolve(self, credentials) -> Identity:
        """
        Authenticate the credentials.

        Raises:
            InvalidCredentialsError: Local login failed
            UnauthenticatedError: Token missing, malformed, expired or forged
        """
        pass


class LocalPasswordStrategy(IdentityStrategy):
    """Email lookup plus password verification."""

    strategy = AuthStrategy.LOCAL_PASSWORD
    credential_type = PasswordCredentials

    def __init__(self, users: IUserRepository) -> None:
        self.users = users

    async def authenticate(self, credentials: PasswordCredentials) -> User:
        """
        Return the user whose email and password match.

        Unknown emails and wrong passwords fail identically, and the
        password check runs in both cases.
        """
        user = await self.users.find_by_email(credentials.email)
        if not verify_password(user, credentials.password):
            logger.warning("Local sign in failed", email=credentials.email.strip().lower())
            track_signin(self.strategy.value, success=False)
            raise InvalidCredentialsError()

        logger.info("Local sign in succeeded", user_id=user.id)
        track_signin(self.strategy.value, success=True)
        return user

    async def resolve(self, credentials: PasswordCredentials) -> Identity:
        return Identity.from_user(await self.authenticate(credentials))


class BearerTokenStrategy(IdentityStrategy):
    """Stateless verification of a signed access token."""

    strategy = AuthStrategy.BEARER_TOKEN
    credential_type = BearerCredentials

    def __init__(self, tokens: TokenService) -> None:
        self.tokens = tokens

    def claims(self, credentials: BearerCredentials) -> TokenClaims:
        result = self.tokens.verify(credentials.token)
        if isinstance(result, TokenInvalid):
            logger.info(
                "Bearer token rejected",
                reason=result.reason.value,
                detail=result.detail,
            )
            track_token_verification(result.reason.value)
            raise UnauthenticatedError(reason=result.reason)

        track_token_verification("valid")
        return result

    async def resolve(self, credentials: BearerCredentials) -> Identity:
        return self.claims(credentials).to_identity()


class FederatedStrategy(IdentityStrategy):
    """
    Resolve or create the local account for a provider identity.

    Lookup order: provider subject, then email (the subject is linked to
    the existing account), then a new passwordless ``user`` account.
    """

    strategy = AuthStrategy.FEDERATED
    credential_type = FederatedAssertion

    def __init__(self, users: IUserRepository) -> None:
        self.users = users

    async def _find_existing(self, assertion: FederatedAssertion) -> Optional[User]:
        user = await self.users.find_by_federated_id(assertion.provider, assertion.subject)
        if user is not None:
            return user

        user = await self.users.find_by_email(assertion.email)
        if user is None:
            return None
        linked = await self.users.link_federated_id(user.id, assertion.provider, assertion.subject)
        if linked is not None:
            logger.info(
                "Linked federated identity to existing account",
                user_id=linked.id,
                provider=assertion.provider,
            )
        return linked

    async def authenticate(self, assertion: FederatedAssertion) -> User:
        """
        Raises:
            ConflictError: If account creation collides and the colliding
                account cannot be found afterwards
        """
        user = await self._find_existing(assertion)
        if user is None:
            try:
                user = await self.users.create(
                    User(
                        id="",
                        email=assertion.email,
                        role=Role.USER,
                        first_name=assertion.first_name,
                        last_name=assertion.last_name,
                        federated_ids={assertion.provider: assertion.subject},
                    )
                )
                logger.info(
                    "Registered account on first federated login",
                    user_id=user.id,
                    provider=assertion.provider,
                )
            except ConflictError:
                # A concurrent first login for this subject or email won the insert.
                user = await self._find_existing(assertion)
                if user is None:
                    raise
                logger.info(
                    "Federated login joined concurrently created account",
                    user_id=user.id,
                    provider=assertion.provider,
                )

        track_signin(self.strategy.value, success=True)
        return user

    async def resolve(self, assertion: FederatedAssertion) -> Identity:
        return Identity.from_user(await self.authenticate(assertion))


class IdentityResolver:
    """Dispatches credentials to the strategy registered for their type."""

    def __init__(self, strategies: Iterable[IdentityStrategy]) -> None:
        self._strategies: Dict[Type, IdentityStrategy] = {}
        for strategy in strategies:
            self._strategies[strategy.credential_type] = strategy

    @property
    def supported(self) -> Tuple[AuthStrategy, ...]:
        return tuple(s.strategy for s in self._strategies.values())

    def strategy_for(self, credentials: Credentials) -> IdentityStrategy:
        strategy = self._strategies.get(type(credentials))
        if strategy is None:
            raise TypeError(f"No identity strategy registered for {type(credentials).__name__}")
        return strategy

    async def resolve(self, credentials: Credentials) -> Identity:
        return await self.strategy_for(credentials).resolve(credentials)


class SessionService:
    """
    Registration and sign-in flows built on the identity strategies.

    Tokens are stateless: signing out is the client discarding its token,
    which stays valid until it expires.
    """

    MIN_PASSWORD_LENGTH = 8

    def __init__(
        self,
        users: IUserRepository,
        tokens: TokenService,
        local: LocalPasswordStrategy,
        federated: FederatedStrategy,
    ) -> None:
        self.users = users
        self.tokens = tokens
        self.local = local
        self.federated = federated

    async def register(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Create a local account with role ``user``.

        Raises:
            ValidationFailedError: Password too short
            ConflictError: Email already registered
        """
        if len(password) < self.MIN_PASSWORD_LENGTH:
            raise ValidationFailedError(
                f"Password must be at least {self.MIN_PASSWORD_LENGTH} characters long"
            )

        user = await self.users.create(
            User(
                id="",
                email=email,
                role=Role.USER,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
            )
        )
        logger.info("User registered", user_id=user.id)
        return user

    def issue_token(self, user: User) -> str:
        return self.tokens.issue(user)

    async def sign_in(self, credentials: PasswordCredentials) -> Tuple[User, str]:
        user = await self.local.authenticate(credentials)
        return user, self.issue_token(user)

    async def sign_in_federated(self, assertion: FederatedAssertion) -> Tuple[User, str]:
        user = await self.federated.authenticate(assertion)
        return user, self.issue_token(user)
