"""
Cart aggregate manager.

Owns the invariants of a cart's line collection:

- at most one line per product; adding a present product increments it
- quantities are positive integers
- line order is insertion order, and removal simply drops the slot

Product-level operations check cart and product existence independently
before mutating and report both in a ``CartMutationResult`` instead of
raising on the first missing entity. Each mutation is delegated to a
single atomic repository call.
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Tuple

from ..domain.entities import Cart, CartLine, CartMutationResult
from ..domain.exceptions import NotFoundError, ValidationFailedError
from ..logging_config import get_logger
from ..metrics import track_cart_operation
from ..repositories.base import ICartRepository, IProductRepository

logger = get_logger(__name__)


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationFailedError("Quantity must be an integer")
    if quantity <= 0:
        raise ValidationFailedError(
            "Quantity must be a positive integer; remove the product to delete its line"
        )
    return quantity


def merge_lines(lines: Iterable[CartLine]) -> List[CartLine]:
    """
    Collapse duplicate products by summing their quantities.

    The first occurrence of a product keeps its position.
    """
    merged: Dict[str, CartLine] = {}
    for line in lines:
        quantity = _validate_quantity(line.quantity)
        if line.product_id in merged:
            merged[line.product_id].quantity += quantity
        else:
            merged[line.product_id] = CartLine(product_id=line.product_id, quantity=quantity)
    return list(merged.values())


class CartService:
    """Cart operations with consistent failure signaling."""

    def __init__(self, carts: ICartRepository, products: IProductRepository) -> None:
        self.carts = carts
        self.products = products

    async def create(self) -> Cart:
        cart = await self.carts.create()
        logger.info("Cart created", cart_id=cart.id)
        track_cart_operation("create", "ok")
        return cart

    async def get_by_id(self, cart_id: str) -> Cart:
        """
        Raises:
            NotFoundError: If the cart does not exist
        """
        cart = await self.carts.get(cart_id)
        if cart is None:
            raise NotFoundError("Cart", cart_id)
        return cart

    async def replace(self, cart_id: str, lines: Iterable[CartLine]) -> Cart:
        """
        Replace the whole line collection.

        Replacing with identical lines is a successful no-op.

        Raises:
            ValidationFailedError: If a quantity is not a positive integer
            NotFoundError: If the cart does not exist
        """
        new_lines = merge_lines(lines)
        cart = await self.carts.replace_lines(cart_id, new_lines)
        if cart is None:
            track_cart_operation("replace", "cart_not_found")
            raise NotFoundError("Cart", cart_id)

        logger.info("Cart lines replaced", cart_id=cart_id, line_count=len(cart.lines))
        track_cart_operation("replace", "ok")
        return cart

    async def add_product(self, cart_id: str, product_id: str) -> CartMutationResult:
        """Add one unit of a product, merging into an existing line."""
        return await self._mutate(
            "add_product",
            cart_id,
            product_id,
            lambda: self.carts.add_or_increment_line(cart_id, product_id),
        )

    async def set_quantity(
        self, cart_id: str, product_id: str, quantity: int
    ) -> CartMutationResult:
        """
        Set the quantity of a product's line.

        A cart that does not contain the product is returned unchanged.

        Raises:
            ValidationFailedError: If quantity is zero, negative or not an integer
        """
        quantity = _validate_quantity(quantity)
        return await self._mutate(
            "set_quantity",
            cart_id,
            product_id,
            lambda: self.carts.set_line_quantity(cart_id, product_id, quantity),
        )

    async def remove_product(self, cart_id: str, product_id: str) -> CartMutationResult:
        """Remove a product's line. Other lines keep their order."""
        return await self._mutate(
            "remove_product",
            cart_id,
            product_id,
            lambda: self.carts.remove_line(cart_id, product_id),
        )

    async def clear_all(self, cart_id: str) -> Cart:
        """
        Empty the cart.

        Raises:
            NotFoundError: If the cart does not exist
        """
        cart = await self.carts.clear_lines(cart_id)
        if cart is None:
            track_cart_operation("clear_all", "cart_not_found")
            raise NotFoundError("Cart", cart_id)

        logger.info("Cart cleared", cart_id=cart_id)
        track_cart_operation("clear_all", "ok")
        return cart

    async def _check_existence(self, cart_id: str, product_id: str) -> Tuple[Optional[Cart], bool]:
        return await asyncio.gather(
            self.carts.get(cart_id),
            self.products.exists(product_id),
        )

    async def _mutate(self, operation: str, cart_id: str, product_id: str, apply) -> CartMutationResult:
        cart, product_exists = await self._check_existence(cart_id, product_id)
        cart_exists = cart is not None

        if not (cart_exists and product_exists):
            outcome = _rejection_outcome(cart_exists, product_exists)
            logger.info(
                "Cart operation rejected",
                operation=operation,
                cart_id=cart_id,
                product_id=product_id,
                outcome=outcome,
            )
            track_cart_operation(operation, outcome)
            return CartMutationResult(cart=cart, product_exists=product_exists, cart_exists=cart_exists)

        updated = await apply()
        if updated is None:
            track_cart_operation(operation, "cart_not_found")
            return CartMutationResult(cart=None, product_exists=True, cart_exists=False)

        logger.info(
            "Cart updated",
            operation=operation,
            cart_id=cart_id,
            product_id=product_id,
            line_count=len(updated.lines),
        )
        track_cart_operation(operation, "ok")
        return CartMutationResult(cart=updated, product_exists=True, cart_exists=True)


def _rejection_outcome(cart_exists: bool, product_exists: bool) -> str:
    if not cart_exists and not product_exists:
        return "both_not_found"
    if not cart_exists:
        return "cart_not_found"
    return "product_not_found"
