"""
External identity provider adapters.

A verifier checks the provider's own proof of identity and turns it into
a ``FederatedAssertion``. The redirect/consent flow that produced the
proof happens outside this service.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import jwt

from ..config import settings
from ..domain.exceptions import UnauthenticatedError
from ..logging_config import get_logger
from .identity_service import FederatedAssertion

logger = get_logger(__name__)


class IFederatedVerifier(ABC):
    """Validates a provider credential."""

    provider: str

    @abstractmethod
    async def verify(self, credential: str) -> FederatedAssertion:
        """
        Raises:
            UnauthenticatedError: If the credential is not valid
        """
        pass


class GoogleIdTokenVerifier(IFederatedVerifier):
    """
    Verifies Google-issued OpenID Connect ID tokens.

    Signature keys come from Google's JWKS endpoint; the audience must be
    this application's OAuth client id.
    """

    provider = "google"
    ISSUERS = ("https://accounts.google.com", "accounts.google.com")

    def __init__(
        self,
        client_id: Optional[str] = None,
        jwks_url: Optional[str] = None,
        jwks_client: Optional[jwt.PyJWKClient] = None,
    ) -> None:
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CLIENT_ID
        self.jwks_client = jwks_client or jwt.PyJWKClient(jwks_url or settings.GOOGLE_JWKS_URL)

    async def verify(self, credential: str) -> FederatedAssertion:
        if not self.client_id:
            logger.error("Google login attempted but GOOGLE_CLIENT_ID is not configured")
            raise UnauthenticatedError("Federated login is not configured")

        try:
            signing_key = await asyncio.to_thread(
                self.jwks_client.get_signing_key_from_jwt, credential
            )
            claims = jwt.decode(
                credential,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.client_id,
                options={"require": ["iss", "sub", "aud", "exp", "iat"]},
            )
        except jwt.PyJWTError as e:
            logger.warning("Google ID token rejected", error=str(e))
            raise UnauthenticatedError("Invalid identity provider token") from e

        if claims["iss"] not in self.ISSUERS:
            logger.warning("Google ID token has unexpected issuer", issuer=claims["iss"])
            raise UnauthenticatedError("Invalid identity provider token")

        email = claims.get("email")
        if not email or claims.get("email_verified") is False:
            raise UnauthenticatedError("Identity provider did not supply a verified email")

        return FederatedAssertion(
            provider=self.provider,
            subject=str(claims["sub"]),
            email=email,
            first_name=claims.get("given_name"),
            last_name=claims.get("family_name"),
        )
