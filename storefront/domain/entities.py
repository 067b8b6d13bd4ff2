"""
Domain entities for the storefront.

Users and roles, carts and their lines, catalog products, and the
result shapes returned by the cart and token services. These entities
are framework-agnostic.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Role(str, Enum):
    """Closed set of roles a user can hold."""

    USER = "user"
    ADMIN = "admin"


@dataclass
class User:
    """
    A registered account.

    ``password_hash`` is None for accounts created through federated login.
    ``federated_ids`` maps a provider name to the subject it issued.
    """

    id: str
    email: str
    role: Role = Role.USER
    password_hash: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    federated_ids: Dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_public_dict(self) -> Dict[str, Any]:
        """Serializable view without the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "federated_providers": sorted(self.federated_ids),
        }


@dataclass(frozen=True)
class Identity:
    """Authenticated principal handed to the authorization gate and routes."""

    user_id: str
    email: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, email=user.email, role=user.role)


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access token."""

    subject: str
    role: Role
    email: str
    issued_at: datetime
    expires_at: datetime

    def to_identity(self) -> Identity:
        return Identity(user_id=self.subject, email=self.email, role=self.role)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sub": self.subject,
            "role": self.role.value,
            "email": self.email,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }


class TokenInvalidReason(str, Enum):
    """Why a presented token was rejected."""

    MALFORMED = "malformed"
    EXPIRED = "expired"
    BAD_SIGNATURE = "bad_signature"


@dataclass(frozen=True)
class TokenInvalid:
    """Typed verification failure returned instead of a bare boolean."""

    reason: TokenInvalidReason
    detail: str = ""


@dataclass
class CartLine:
    """One (product, quantity) pair. Quantity is always positive."""

    product_id: str
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"product": self.product_id, "quantity": self.quantity}


@dataclass
class Cart:
    """A cart and its ordered lines, treated as one consistency boundary."""

    id: str
    lines: List[CartLine] = field(default_factory=list)

    def find_line(self, product_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "products": [line.to_dict() for line in self.lines]}


@dataclass
class CartMutationResult:
    """
    Outcome of a product-level cart operation.

    Both existence flags are always evaluated so callers can report either
    failure. ``cart`` is None only when the cart does not exist.
    """

    cart: Optional[Cart]
    product_exists: bool
    cart_exists: bool

    @property
    def ok(self) -> bool:
        return self.product_exists and self.cart_exists


@dataclass
class Product:
    """Catalog product. Carts reference products by id only."""

    id: str
    title: str
    price: float
    category: str
    description: str = ""
    code: Optional[str] = None
    status: bool = True
    thumbnails: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "code": self.code,
            "price": self.price,
            "category": self.category,
            "status": self.status,
            "thumbnails": list(self.thumbnails),
        }


class SortOrder(str, Enum):
    """Price sort direction for catalog listings."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class ProductQuery:
    """Filter and paging options passed through to product storage."""

    limit: int = 10
    page: int = 1
    sort: SortOrder = SortOrder.DESC
    category: Optional[str] = None
    status: Optional[bool] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class ProductPage:
    """One page of catalog results."""

    docs: List[Product]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 1
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "docs": [product.to_dict() for product in self.docs],
            "total_docs": self.total,
            "limit": self.limit,
            "page": self.page,
            "total_pages": self.total_pages,
            "has_prev_page": self.has_prev_page,
            "has_next_page": self.has_next_page,
            "prev_page": self.page - 1 if self.has_prev_page else None,
            "next_page": self.page + 1 if self.has_next_page else None,
        }
