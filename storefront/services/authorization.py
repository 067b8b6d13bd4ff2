"""
Role gate applied after identity resolution.

Roles match exactly. There is no hierarchy, so an admin identity is
denied on routes that require the ``user`` role.
"""

from dataclasses import dataclass
from typing import Optional

from ..domain.entities import Identity, Role
from ..domain.exceptions import AuthorizationDeniedError
from ..logging_config import get_logger
from ..metrics import track_authorization_denied

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: Optional[str] = None


class AuthorizationGate:
    """Allows or rejects continuation for an already-resolved identity."""

    def authorize(self, identity: Identity, required_role: Role) -> AuthorizationDecision:
        if identity.role == required_role:
            return AuthorizationDecision(allowed=True)
        return AuthorizationDecision(
            allowed=False,
            reason=f"role '{identity.role.value}' does not match required role '{required_role.value}'",
        )

    def enforce(self, identity: Identity, required_role: Role) -> Identity:
        """
        Raise unless the identity holds the required role.

        Raises:
            AuthorizationDeniedError: On role mismatch
        """
        decision = self.authorize(identity, required_role)
        if not decision.allowed:
            logger.warning(
                "Authorization denied",
                user_id=identity.user_id,
                reason=decision.reason,
            )
            track_authorization_denied(required_role.value)
            raise AuthorizationDeniedError(required_role, identity.role)
        return identity
