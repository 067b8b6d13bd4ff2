"""
Cart endpoints.

Every route requires a bearer token whose role is ``user``.
"""

from fastapi import APIRouter, Depends, status

from ..dependencies import get_cart_service, require_role
from ..domain.entities import CartLine, CartMutationResult, Role
from ..logging_config import get_logger
from ..models import CartReplace, QuantityUpdate
from ..responses import error_response, success
from ..services.cart_service import CartService

logger = get_logger(__name__)

router = APIRouter(
    prefix="/carts",
    tags=["Carts"],
    dependencies=[Depends(require_role(Role.USER))],
)


def _mutation_response(result: CartMutationResult, cart_id: str, product_id: str):
    if result.ok:
        return success(result.cart.to_dict())

    messages = []
    if not result.product_exists:
        messages.append(f"Product with ID {product_id} not found.")
    if not result.cart_exists:
        messages.append(f"Cart with ID {cart_id} not found.")
    logger.info("Cart request failed", cart_id=cart_id, product_id=product_id, reason=messages)
    return error_response(status.HTTP_404_NOT_FOUND, " ".join(messages))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create an empty cart")
async def create_cart(carts: CartService = Depends(get_cart_service)):
    cart = await carts.create()
    return success(cart.to_dict())


@router.get("/{cid}", summary="Get a cart")
async def get_cart(cid: str, carts: CartService = Depends(get_cart_service)):
    cart = await carts.get_by_id(cid)
    return success(cart.to_dict())


@router.post(
    "/{cid}/product/{pid}",
    status_code=status.HTTP_201_CREATED,
    summary="Add one unit of a product to a cart",
)
async def add_product_to_cart(cid: str, pid: str, carts: CartService = Depends(get_cart_service)):
    result = await carts.add_product(cid, pid)
    return _mutation_response(result, cid, pid)


@router.put("/{cid}", summary="Replace every line of a cart")
async def replace_cart(cid: str, body: CartReplace, carts: CartService = Depends(get_cart_service)):
    lines = [CartLine(product_id=item.product, quantity=item.quantity) for item in body.products]
    cart = await carts.replace(cid, lines)
    return success(cart.to_dict())


@router.put("/{cid}/product/{pid}", summary="Set the quantity of a product in a cart")
async def update_product_quantity(
    cid: str,
    pid: str,
    body: QuantityUpdate,
    carts: CartService = Depends(get_cart_service),
):
    result = await carts.set_quantity(cid, pid, body.quantity)
    return _mutation_response(result, cid, pid)


@router.delete("/{cid}/product/{pid}", summary="Remove a product from a cart")
async def remove_product_from_cart(cid: str, pid: str, carts: CartService = Depends(get_cart_service)):
    result = await carts.remove_product(cid, pid)
    return _mutation_response(result, cid, pid)


@router.delete("/{cid}", summary="Remove every product from a cart")
async def clear_cart(cid: str, carts: CartService = Depends(get_cart_service)):
    cart = await carts.clear_all(cid)
    return success(cart.to_dict())
