"""Application services: identity, authorization, carts and catalog."""

from .authorization import AuthorizationDecision, AuthorizationGate
from .cart_service import CartService
from .catalog_service import ProductService
from .federated import GoogleIdTokenVerifier, IFederatedVerifier
from .identity_service import (
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

__all__ = [
    "AuthStrategy",
    "AuthorizationDecision",
    "AuthorizationGate",
    "BearerCredentials",
    "BearerTokenStrategy",
    "CartService",
    "FederatedAssertion",
    "FederatedStrategy",
    "GoogleIdTokenVerifier",
    "IFederatedVerifier",
    "IdentityResolver",
    "LocalPasswordStrategy",
    "PasswordCredentials",
    "ProductService",
    "SessionService",
]
