"""
Dependency functions for the storefront routes.

Bearer identity resolution and the role gate, plus accessors for the
services held by the app's container.
"""

from typing import Callable, Optional

from fastapi import Depends, Header, Request

from .container import ServiceContainer
from .domain.entities import Identity, Role, TokenClaims
from .domain.exceptions import UnauthenticatedError
from .security import get_token_from_header
from .services.cart_service import CartService
from .services.catalog_service import ProductService
from .services.identity_service import BearerCredentials, SessionService


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_cart_service(container: ServiceContainer = Depends(get_container)) -> CartService:
    return container.cart_service


def get_product_service(container: ServiceContainer = Depends(get_container)) -> ProductService:
    return container.product_service


def get_session_service(container: ServiceContainer = Depends(get_container)) -> SessionService:
    return container.sessions


def extract_access_token(
    request: Request, authorization: Optional[str], cookie_name: str
) -> Optional[str]:
    """
    Resolve the access token from the Authorization header or the cookie.

    The header wins when both are present.
    """
    token = get_token_from_header(authorization)
    if token:
        return token
    return request.cookies.get(cookie_name)


def get_bearer_credentials(
    request: Request,
    authorization: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
) -> BearerCredentials:
    """
    Raises:
        UnauthenticatedError: If no token was presented
    """
    token = extract_access_token(request, authorization, container.config.TOKEN_COOKIE_NAME)
    if not token:
        raise UnauthenticatedError("Authentication required")
    return BearerCredentials(token=token)


def get_current_claims(
    credentials: BearerCredentials = Depends(get_bearer_credentials),
    container: ServiceContainer = Depends(get_container),
) -> TokenClaims:
    """
    Verify the presented token.

    FastAPI caches this per request, so the role gate and a route asking
    for the claims share a single verification.
    """
    return container.bearer.claims(credentials)


async def get_current_identity(
    request: Request,
    claims: TokenClaims = Depends(get_current_claims),
) -> Identity:
    identity = claims.to_identity()
    request.state.identity = identity
    return identity


def require_role(role: Role) -> Callable:
    """Dependency factory: resolve identity, then apply the role gate."""

    async def dependency(
        identity: Identity = Depends(get_current_identity),
        container: ServiceContainer = Depends(get_container),
    ) -> Identity:
        return container.gate.enforce(identity, role)

    return dependency


__all__ = [
    "extract_access_token",
    "get_bearer_credentials",
    "get_cart_service",
    "get_container",
    "get_current_claims",
    "get_current_identity",
    "get_product_service",
    "get_session_service",
    "require_role",
]
