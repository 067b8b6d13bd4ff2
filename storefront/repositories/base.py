"""
Repository interfaces (Abstract Base Classes).

Define the narrow storage contracts the services depend on, independent
of the underlying storage engine. Every mutating method is a single
atomic operation from the caller's point of view.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..domain.entities import Cart, CartLine, Product, ProductPage, ProductQuery, User


class IUserRepository(ABC):
    """Credential store: the only storage-facing dependency of the auth core."""

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        """
        Find a user by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            User if found, None otherwise

        Raises:
            StorageError: If the storage engine fails
        """
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Find a user by identifier."""
        pass

    @abstractmethod
    async def find_by_federated_id(self, provider: str, subject: str) -> Optional[User]:
        """Find the user linked to an external provider subject."""
        pass

    @abstractmethod
    async def create(self, user: User) -> User:
        """
        Persist a new user.

        Raises:
            ConflictError: If the email is already registered
        """
        pass

    @abstractmethod
    async def link_federated_id(
        self, user_id: str, provider: str, subject: str
    ) -> Optional[User]:
        """Attach a provider subject to an existing user."""
        pass


class ICartRepository(ABC):
    """
    Cart storage.

    Line mutations return the updated cart, or None when the cart does
    not exist. Implementations must apply each mutation atomically so that
    concurrent callers cannot lose updates.
    """

    @abstractmethod
    async def create(self) -> Cart:
        """Create an empty cart with a fresh identifier."""
        pass

    @abstractmethod
    async def get(self, cart_id: str) -> Optional[Cart]:
        """Fetch a cart by identifier."""
        pass

    @abstractmethod
    async def replace_lines(self, cart_id: str, lines: List[CartLine]) -> Optional[Cart]:
        """Replace the full line collection."""
        pass

    @abstractmethod
    async def add_or_increment_line(self, cart_id: str, product_id: str) -> Optional[Cart]:
        """Increment the product's line by one, or append a new line with quantity 1."""
        pass

    @abstractmethod
    async def set_line_quantity(
        self, cart_id: str, product_id: str, quantity: int
    ) -> Optional[Cart]:
        """Set the quantity of an existing line. Carts without the line are unchanged."""
        pass

    @abstractmethod
    async def remove_line(self, cart_id: str, product_id: str) -> Optional[Cart]:
        """Remove the product's line, keeping the order of the others."""
        pass

    @abstractmethod
    async def clear_lines(self, cart_id: str) -> Optional[Cart]:
        """Remove every line."""
        pass


class IProductRepository(ABC):
    """Catalog storage. Filtering, sorting and paging are storage query options."""

    @abstractmethod
    async def find(self, query: ProductQuery) -> ProductPage:
        """Return one page of products matching the query."""
        pass

    @abstractmethod
    async def get(self, product_id: str) -> Optional[Product]:
        """Fetch a product by identifier."""
        pass

    @abstractmethod
    async def exists(self, product_id: str) -> bool:
        """Check whether a product exists."""
        pass

    @abstractmethod
    async def create(self, data: Dict[str, Any]) -> Product:
        """Persist a new product and return it with its identifier."""
        pass

    @abstractmethod
    async def update(self, product_id: str, changes: Dict[str, Any]) -> Optional[Product]:
        """Apply field changes. Returns None if the product does not exist."""
        pass

    @abstractmethod
    async def delete(self, product_id: str) -> bool:
        """Delete a product. Returns False if it did not exist."""
        pass
