"""Domain layer: entities and exceptions."""

from .entities import (
    Cart,
    CartLine,
    CartMutationResult,
    Identity,
    Product,
    ProductPage,
    ProductQuery,
    Role,
    SortOrder,
    TokenClaims,
    TokenInvalid,
    TokenInvalidReason,
    User,
)
from .exceptions import (
    AuthorizationDeniedError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    StorageError,
    StorefrontError,
    UnauthenticatedError,
    ValidationFailedError,
)

__all__ = [
    "AuthorizationDeniedError",
    "Cart",
    "CartLine",
    "CartMutationResult",
    "ConflictError",
    "Identity",
    "InvalidCredentialsError",
    "NotFoundError",
    "Product",
    "ProductPage",
    "ProductQuery",
    "Role",
    "SortOrder",
    "StorageError",
    "StorefrontError",
    "TokenClaims",
    "TokenInvalid",
    "TokenInvalidReason",
    "UnauthenticatedError",
    "User",
    "ValidationFailedError",
]
