"""Storage adapters for users, carts and products."""

from .base import ICartRepository, IProductRepository, IUserRepository
from .memory_repository import (
    InMemoryCartRepository,
    InMemoryProductRepository,
    InMemoryUserRepository,
)
from .postgres_repository import (
    PostgresCartRepository,
    PostgresProductRepository,
    PostgresUserRepository,
)

__all__ = [
    "ICartRepository",
    "IProductRepository",
    "IUserRepository",
    "InMemoryCartRepository",
    "InMemoryProductRepository",
    "InMemoryUserRepository",
    "PostgresCartRepository",
    "PostgresProductRepository",
    "PostgresUserRepository",
]
