"""
Catalog endpoints.

Reads are public; writes require the ``admin`` role.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_product_service, require_role
from ..domain.entities import Role
from ..models import ProductCreate, ProductUpdate
from ..responses import success, success_message
from ..services.catalog_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

admin_only = [Depends(require_role(Role.ADMIN))]


@router.get("", summary="List products")
async def list_products(
    limit: Optional[int] = Query(None),
    page: Optional[int] = Query(None),
    sort: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    status: Optional[bool] = Query(None),
    products: ProductService = Depends(get_product_service),
):
    """
    Page through the catalog.

    Filters by ``category`` and ``status``, sorts by price (``asc`` or
    ``desc``) and pages with ``limit`` and ``page``.
    """
    query = products.build_query(
        limit=limit, page=page, sort=sort, category=category, status=status
    )
    page_result = await products.list(query)
    return success(page_result.to_dict())


@router.get("/{pid}", summary="Get a product")
async def get_product(pid: str, products: ProductService = Depends(get_product_service)):
    product = await products.get(pid)
    return success(product.to_dict())


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Add a product",
    dependencies=admin_only,
)
async def create_product(body: ProductCreate, products: ProductService = Depends(get_product_service)):
    product = await products.create(body.model_dump())
    return success(product.to_dict())


@router.put("/{pid}", summary="Update a product", dependencies=admin_only)
async def update_product(
    pid: str,
    body: ProductUpdate,
    products: ProductService = Depends(get_product_service),
):
    product = await products.update(pid, body.model_dump(exclude_unset=True, exclude_none=True))
    return success(product.to_dict())


@router.delete("/{pid}", summary="Delete a product", dependencies=admin_only)
async def delete_product(pid: str, products: ProductService = Depends(get_product_service)):
    await products.delete(pid)
    return success_message(f"Product with ID {pid} deleted")
