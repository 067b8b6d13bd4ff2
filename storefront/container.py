"""
Service wiring.

Builds repositories and services for the configured storage backend.
The FastAPI app keeps one container on ``app.state``.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from .config import Settings, settings as default_settings
from .database import DatabaseManager
from .repositories.base import ICartRepository, IProductRepository, IUserRepository
from .repositories.memory_repository import (
    InMemoryCartRepository,
    InMemoryProductRepository,
    InMemoryUserRepository,
)
from .repositories.postgres_repository import (
    PostgresCartRepository,
    PostgresProductRepository,
    PostgresUserRepository,
)
from .security import TokenService
from .services.authorization import AuthorizationGate
from .services.cart_service import CartService
from .services.catalog_service import ProductService
from .services.federated import GoogleIdTokenVerifier, IFederatedVerifier
from .services.identity_service import (
    BearerTokenStrategy,
    FederatedStrategy,
    IdentityResolver,
    LocalPasswordStrategy,
    SessionService,
)


@dataclass
class ServiceContainer:
    users: IUserRepository
    carts: ICartRepository
    products: IProductRepository
    tokens: TokenService
    resolver: IdentityResolver
    bearer: BearerTokenStrategy
    gate: AuthorizationGate
    sessions: SessionService
    cart_service: CartService
    product_service: ProductService
    federated_verifier: IFederatedVerifier
    db: Optional[DatabaseManager] = None
    config: Settings = field(default_factory=lambda: default_settings)

    async def startup(self) -> None:
        if self.db is not None:
            await self.db.connect()
            await self.db.create_schema()

    async def shutdown(self) -> None:
        if self.db is not None:
            await self.db.disconnect()


def build_container(
    config: Optional[Settings] = None,
    tokens: Optional[TokenService] = None,
    federated_verifier: Optional[IFederatedVerifier] = None,
) -> ServiceContainer:
    """
    Assemble the service graph.

    Args:
        config: Settings to use (defaults to the global settings)
        tokens: Token service override, mainly for tests
        federated_verifier: Identity provider adapter override

    Returns:
        A ready-to-use container; call ``startup()`` before serving
    """
    config = config or default_settings

    db: Optional[DatabaseManager] = None
    if config.STORAGE_BACKEND == "postgres":
        db = DatabaseManager(
            config.DATABASE_URL,
            min_size=config.DATABASE_POOL_MIN_SIZE,
            max_size=config.DATABASE_POOL_SIZE,
        )
        users: IUserRepository = PostgresUserRepository(db)
        carts: ICartRepository = PostgresCartRepository(db)
        products: IProductRepository = PostgresProductRepository(db)
    else:
        users = InMemoryUserRepository()
        carts = InMemoryCartRepository()
        products = InMemoryProductRepository()

    tokens = tokens or TokenService(
        secret_key=config.JWT_SECRET_KEY,
        algorithm=config.JWT_ALGORITHM,
        ttl=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    local = LocalPasswordStrategy(users)
    bearer = BearerTokenStrategy(tokens)
    federated = FederatedStrategy(users)

    return ServiceContainer(
        users=users,
        carts=carts,
        products=products,
        tokens=tokens,
        resolver=IdentityResolver([local, bearer, federated]),
        bearer=bearer,
        gate=AuthorizationGate(),
        sessions=SessionService(users, tokens, local, federated),
        cart_service=CartService(carts, products),
        product_service=ProductService(products, default_limit=config.PRODUCTS_DEFAULT_LIMIT),
        federated_verifier=federated_verifier
        or GoogleIdTokenVerifier(
            client_id=config.GOOGLE_CLIENT_ID,
            jwks_url=config.GOOGLE_JWKS_URL,
        ),
        db=db,
        config=config,
    )
