"""
Custom exceptions for the storefront domain.

These exceptions represent domain-level errors and are independent
of infrastructure concerns (HTTP, database, etc.). The HTTP boundary
maps each one to a status code in ``storefront.app``.
"""

from typing import Optional

from .entities import Role, TokenInvalidReason


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    status_code = 500

    def __init__(self, message: str, code: str = "storefront_error"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(StorefrontError):
    """Raised when a cart, product or user does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID {entity_id} not found.", "not_found")


class InvalidCredentialsError(StorefrontError):
    """
    Raised when a local login fails.

    The message is the same for an unknown email and a wrong password.
    """

    status_code = 401

    def __init__(self):
        super().__init__("Invalid email or password", "invalid_credentials")


class UnauthenticatedError(StorefrontError):
    """Raised when no usable bearer token was presented."""

    status_code = 401

    def __init__(
        self,
        message: str = "Invalid or expired token",
        reason: Optional[TokenInvalidReason] = None,
    ):
        self.reason = reason
        super().__init__(message, "unauthenticated")


class AuthorizationDeniedError(StorefrontError):
    """Raised when the identity's role does not match the required role."""

    status_code = 403

    def __init__(self, required_role: Role, actual_role: Role):
        self.required_role = required_role
        self.actual_role = actual_role
        super().__init__(
            f"Role '{required_role.value}' required", "authorization_denied"
        )


class ValidationFailedError(StorefrontError):
    """Raised when an input is well-formed JSON but violates a domain rule."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, "validation_failed")


class ConflictError(StorefrontError):
    """Raised when creating an entity that already exists."""

    status_code = 409

    def __init__(self, message: str):
        super().__init__(message, "conflict")


class StorageError(StorefrontError):
    """Opaque infrastructure failure from the storage layer."""

    status_code = 500

    def __init__(self, operation: str, reason: Optional[str] = None):
        self.operation = operation
        self.reason = reason
        message = f"Storage operation '{operation}' failed"
        if reason:
            message += f": {reason}"
        super().__init__(message, "storage_error")
