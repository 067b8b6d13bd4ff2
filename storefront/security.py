"""
Security utilities for authentication.

Provides password hashing and verification, and the stateless JWT
token service used for bearer authentication.
"""

import hmac
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Optional, Union

import bcrypt
import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidSignatureError, InvalidTokenError

from .config import settings
from .domain.entities import Role, TokenClaims, TokenInvalid, TokenInvalidReason, User
from .logging_config import get_logger

logger = get_logger(__name__)


# ==================== PASSWORD HASHING ====================

# bcrypt only uses the first 72 bytes of a password.
BCRYPT_MAX_PASSWORD_BYTES = 72


def _encode_password(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    salt = bcrypt.gensalt(rounds=settings.PASSWORD_HASH_ROUNDS)
    hashed = bcrypt.hashpw(_encode_password(password), salt)
    return hashed.decode("utf-8")


@lru_cache(maxsize=1)
def _dummy_hash() -> bytes:
    # Same cost factor as real hashes so a missing hash costs the same time.
    return bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=settings.PASSWORD_HASH_ROUNDS))


def check_password(password: str, hashed_password: Optional[str]) -> bool:
    """
    Compare a candidate password with a stored bcrypt hash in constant time.

    The candidate is hashed with the stored salt and the two digests are
    compared with ``hmac.compare_digest``. A missing or unparseable hash
    still pays for one bcrypt round against a dummy hash.

    Args:
        password: Plain text password to verify
        hashed_password: Stored hash, or None for accounts without one

    Returns:
        True if password matches, False otherwise
    """
    candidate = _encode_password(password)

    if hashed_password:
        stored = hashed_password.encode("utf-8")
        try:
            computed = bcrypt.hashpw(candidate, stored)
        except ValueError as e:
            logger.warning("Stored password hash is not a valid bcrypt hash", error=str(e))
        else:
            return hmac.compare_digest(computed, stored)

    dummy = _dummy_hash()
    hmac.compare_digest(bcrypt.hashpw(candidate, dummy), dummy)
    return False


def verify_password(user: Optional[User], password: str) -> bool:
    """
    Verify a candidate password for a user.

    Never raises. Returns False for unknown users and for federated-only
    accounts, after doing the same hashing work as a real comparison.
    """
    return check_password(password, user.password_hash if user else None)


# ==================== JWT TOKENS ====================


class TokenService:
    """
    Issues and verifies signed, time-bound access tokens.

    Tokens are never stored. Validity is proven by the signature and the
    ``exp`` claim alone, so an issued token cannot be revoked before it
    expires.
    """

    REQUIRED_CLAIMS = ["sub", "role", "iat", "exp"]

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.secret_key = secret_key or settings.JWT_SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.ttl = ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, user: User) -> str:
        """
        Create a signed access token for a user.

        Args:
            user: The authenticated user

        Returns:
            Encoded JWT
        """
        now = self._clock()
        expire = now + self.ttl
        payload = {
            "sub": user.id,
            "role": user.role.value,
            "email": user.email,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

        logger.debug("Issued access token", user_id=user.id, expires_at=expire.isoformat())
        return token

    def verify(self, token: Optional[str]) -> Union[TokenClaims, TokenInvalid]:
        """
        Check signature integrity and expiry of a token.

        Args:
            token: Encoded JWT

        Returns:
            TokenClaims when valid, otherwise TokenInvalid naming the reason
        """
        if not token or not isinstance(token, str):
            return TokenInvalid(TokenInvalidReason.MALFORMED, "empty token")

        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": self.REQUIRED_CLAIMS},
            )
        except ExpiredSignatureError:
            return TokenInvalid(TokenInvalidReason.EXPIRED, "token expired")
        except InvalidSignatureError:
            return TokenInvalid(TokenInvalidReason.BAD_SIGNATURE, "signature mismatch")
        except InvalidTokenError as e:
            return TokenInvalid(TokenInvalidReason.MALFORMED, str(e))

        try:
            role = Role(payload["role"])
        except ValueError:
            return TokenInvalid(TokenInvalidReason.MALFORMED, "unknown role")

        return TokenClaims(
            subject=str(payload["sub"]),
            role=role,
            email=payload.get("email", ""),
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )


def get_token_from_header(authorization: Optional[str]) -> Optional[str]:
    """
    Extract Bearer token from Authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Token string if valid Bearer format, None otherwise
    """
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]
