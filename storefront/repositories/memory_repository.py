"""
In-memory repositories.

Used for local development and tests. Each mutation runs without an
await between its read and its write, so it is atomic with respect to
other coroutines on the same event loop.
"""

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..domain.entities import (
    Cart,
    CartLine,
    Product,
    ProductPage,
    ProductQuery,
    SortOrder,
    User,
)
from ..domain.exceptions import ConflictError
from ..logging_config import get_logger
from .base import ICartRepository, IProductRepository, IUserRepository

logger = get_logger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryUserRepository(IUserRepository):
    """User storage backed by a dict keyed by user id."""

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}

    async def find_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        for user in self._users.values():
            if user.email == normalized:
                return copy.deepcopy(user)
        return None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def find_by_federated_id(self, provider: str, subject: str) -> Optional[User]:
        for user in self._users.values():
            if user.federated_ids.get(provider) == subject:
                return copy.deepcopy(user)
        return None

    async def create(self, user: User) -> User:
        stored = copy.deepcopy(user)
        stored.email = stored.email.strip().lower()
        if any(existing.email == stored.email for existing in self._users.values()):
            raise ConflictError("Email already registered")
        for provider, subject in stored.federated_ids.items():
            if any(
                existing.federated_ids.get(provider) == subject
                for existing in self._users.values()
            ):
                raise ConflictError(f"{provider} identity is already linked to an account")

        stored.id = stored.id or _new_id()
        stored.created_at = stored.created_at or datetime.now(timezone.utc)
        self._users[stored.id] = stored
        logger.debug("User stored", user_id=stored.id)
        return copy.deepcopy(stored)

    async def link_federated_id(
        self, user_id: str, provider: str, subject: str
    ) -> Optional[User]:
        user = self._users.get(user_id)
        if user is None:
            return None
        user.federated_ids[provider] = subject
        return copy.deepcopy(user)


class InMemoryCartRepository(ICartRepository):
    """Cart storage backed by a dict keyed by cart id."""

    def __init__(self) -> None:
        self._carts: Dict[str, Cart] = {}

    def _snapshot(self, cart_id: str) -> Optional[Cart]:
        cart = self._carts.get(cart_id)
        return copy.deepcopy(cart) if cart else None

    async def create(self) -> Cart:
        cart = Cart(id=_new_id())
        self._carts[cart.id] = cart
        return copy.deepcopy(cart)

    async def get(self, cart_id: str) -> Optional[Cart]:
        return self._snapshot(cart_id)

    async def replace_lines(self, cart_id: str, lines: List[CartLine]) -> Optional[Cart]:
        cart = self._carts.get(cart_id)
        if cart is None:
            return None
        cart.lines = [CartLine(line.product_id, line.quantity) for line in lines]
        return self._snapshot(cart_id)

    async def add_or_increment_line(self, cart_id: str, product_id: str) -> Optional[Cart]:
        cart = self._carts.get(cart_id)
        if cart is None:
            return None
        line = cart.find_line(product_id)
        if line:
            line.quantity += 1
        else:
            cart.lines.append(CartLine(product_id=product_id, quantity=1))
        return self._snapshot(cart_id)

    async def set_line_quantity(
        self, cart_id: str, product_id: str, quantity: int
    ) -> Optional[Cart]:
        cart = self._carts.get(cart_id)
        if cart is None:
            return None
        line = cart.find_line(product_id)
        if line:
            line.quantity = quantity
        return self._snapshot(cart_id)

    async def remove_line(self, cart_id: str, product_id: str) -> Optional[Cart]:
        cart = self._carts.get(cart_id)
        if cart is None:
            return None
        cart.lines = [line for line in cart.lines if line.product_id != product_id]
        return self._snapshot(cart_id)

    async def clear_lines(self, cart_id: str) -> Optional[Cart]:
        cart = self._carts.get(cart_id)
        if cart is None:
            return None
        cart.lines = []
        return self._snapshot(cart_id)


class InMemoryProductRepository(IProductRepository):
    """Catalog storage backed by an insertion-ordered dict."""

    def __init__(self) -> None:
        self._products: Dict[str, Product] = {}

    async def find(self, query: ProductQuery) -> ProductPage:
        matches = [
            product
            for product in self._products.values()
            if (query.category is None or product.category == query.category)
            and (query.status is None or product.status == query.status)
        ]
        matches.sort(key=lambda p: p.price, reverse=query.sort == SortOrder.DESC)
        window = matches[query.offset : query.offset + query.limit]
        return ProductPage(
            docs=[copy.deepcopy(p) for p in window],
            total=len(matches),
            page=query.page,
            limit=query.limit,
        )

    async def get(self, product_id: str) -> Optional[Product]:
        product = self._products.get(product_id)
        return copy.deepcopy(product) if product else None

    async def exists(self, product_id: str) -> bool:
        return product_id in self._products

    async def create(self, data: Dict[str, Any]) -> Product:
        fields = dict(data)
        fields.setdefault("id", _new_id())
        product = Product(**fields)
        if product.code and any(p.code == product.code for p in self._products.values()):
            raise ConflictError(f"Product code {product.code} already exists")
        self._products[product.id] = product
        return copy.deepcopy(product)

    async def update(self, product_id: str, changes: Dict[str, Any]) -> Optional[Product]:
        product = self._products.get(product_id)
        if product is None:
            return None
        for name, value in changes.items():
            if name != "id" and hasattr(product, name):
                setattr(product, name, value)
        return copy.deepcopy(product)

    async def delete(self, product_id: str) -> bool:
        return self._products.pop(product_id, None) is not None
