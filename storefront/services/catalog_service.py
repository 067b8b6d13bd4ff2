"""
Product catalog operations.

Listing filters, sorting and paging are handed to storage as a
``ProductQuery``; this layer only validates them.
"""

from typing import Any, Dict, Optional

from ..domain.entities import Product, ProductPage, ProductQuery, SortOrder
from ..domain.exceptions import NotFoundError, ValidationFailedError
from ..logging_config import get_logger
from ..repositories.base import IProductRepository

logger = get_logger(__name__)


class ProductService:
    """Catalog reads for everyone, writes for administrators."""

    def __init__(self, products: IProductRepository, default_limit: int = 10) -> None:
        self.products = products
        self.default_limit = default_limit

    def build_query(
        self,
        limit: Optional[int] = None,
        page: Optional[int] = None,
        sort: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[bool] = None,
    ) -> ProductQuery:
        """
        Build a storage query from raw listing parameters.

        Raises:
            ValidationFailedError: On a non-positive limit/page or unknown sort
        """
        limit = self.default_limit if limit is None else limit
        page = 1 if page is None else page
        if limit < 1 or page < 1:
            raise ValidationFailedError("limit and page must be positive integers")
        try:
            order = SortOrder(sort) if sort else SortOrder.DESC
        except ValueError:
            raise ValidationFailedError("sort must be 'asc' or 'desc'")
        return ProductQuery(limit=limit, page=page, sort=order, category=category, status=status)

    async def list(self, query: ProductQuery) -> ProductPage:
        return await self.products.find(query)

    async def get(self, product_id: str) -> Product:
        product = await self.products.get(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def create(self, data: Dict[str, Any]) -> Product:
        product = await self.products.create(data)
        logger.info("Product created", product_id=product.id)
        return product

    async def update(self, product_id: str, changes: Dict[str, Any]) -> Product:
        product = await self.products.update(product_id, changes)
        if product is None:
            raise NotFoundError("Product", product_id)
        logger.info("Product updated", product_id=product_id, fields=sorted(changes))
        return product

    async def delete(self, product_id: str) -> None:
        if not await self.products.delete(product_id):
            raise NotFoundError("Product", product_id)
        logger.info("Product deleted", product_id=product_id)
