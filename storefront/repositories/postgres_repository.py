"""
PostgreSQL repositories.

Persist users, carts and products through the shared ``DatabaseManager``
pool. Cart lines live in a JSONB array on the cart row, and every line
mutation is a single ``UPDATE ... RETURNING`` statement, so concurrent
requests on the same cart serialize on the row lock instead of racing
through a read-modify-write cycle.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

from ..database import DatabaseManager
from ..domain.entities import (
    Cart,
    CartLine,
    Product,
    ProductPage,
    ProductQuery,
    Role,
    SortOrder,
    User,
)
from ..domain.exceptions import ConflictError, StorageError
from ..logging_config import get_logger
from .base import ICartRepository, IProductRepository, IUserRepository

logger = get_logger(__name__)


@asynccontextmanager
async def storage_operation(operation: str) -> AsyncIterator[None]:
    """Translate driver and connection failures into StorageError."""
    try:
        yield
    except (asyncpg.PostgresError, OSError) as e:
        logger.error("Storage operation failed", operation=operation, error=str(e))
        raise StorageError(operation, type(e).__name__) from e


def _load_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


# ==================== USERS ====================


_USER_SELECT = """
    SELECT u.id, u.email, u.password_hash, u.role, u.first_name, u.last_name,
           u.created_at,
           COALESCE(
               jsonb_object_agg(f.provider, f.subject) FILTER (WHERE f.provider IS NOT NULL),
               '{}'::jsonb
           ) AS federated_ids
    FROM users u
    LEFT JOIN user_federated_ids f ON f.user_id = u.id
"""


def _row_to_user(row: asyncpg.Record) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        role=Role(row["role"]),
        password_hash=row["password_hash"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        federated_ids=dict(_load_json(row["federated_ids"], {})),
        created_at=row["created_at"],
    )


class PostgresUserRepository(IUserRepository):
    """User storage in the ``users`` and ``user_federated_ids`` tables."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def find_by_email(self, email: str) -> Optional[User]:
        async with storage_operation("users.find_by_email"):
            row = await self.db.fetchrow(
                _USER_SELECT + " WHERE u.email = $1 GROUP BY u.id",
                email.strip().lower(),
            )
        return _row_to_user(row) if row else None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        async with storage_operation("users.find_by_id"):
            row = await self.db.fetchrow(_USER_SELECT + " WHERE u.id = $1 GROUP BY u.id", user_id)
        return _row_to_user(row) if row else None

    async def find_by_federated_id(self, provider: str, subject: str) -> Optional[User]:
        async with storage_operation("users.find_by_federated_id"):
            user_id = await self.db.fetchval(
                "SELECT user_id FROM user_federated_ids WHERE provider = $1 AND subject = $2",
                provider,
                subject,
            )
        if user_id is None:
            return None
        return await self.find_by_id(user_id)

    async def create(self, user: User) -> User:
        """
        Insert the account and its federated ids as one unit.

        Raises:
            ConflictError: If the email or any (provider, subject) pair is
                already taken; nothing is written in that case
        """
        async with storage_operation("users.create"):
            async with self.db.transaction() as conn:
                try:
                    user_id = await conn.fetchval(
                        """
                        INSERT INTO users (email, password_hash, role, first_name, last_name)
                        VALUES ($1, $2, $3, $4, $5)
                        RETURNING id
                        """,
                        user.email.strip().lower(),
                        user.password_hash,
                        user.role.value,
                        user.first_name,
                        user.last_name,
                    )
                except asyncpg.UniqueViolationError as e:
                    raise ConflictError("Email already registered") from e

                for provider, subject in user.federated_ids.items():
                    try:
                        await conn.execute(
                            """
                            INSERT INTO user_federated_ids (provider, subject, user_id)
                            VALUES ($1, $2, $3)
                            """,
                            provider,
                            subject,
                            user_id,
                        )
                    except asyncpg.UniqueViolationError as e:
                        raise ConflictError(
                            f"{provider} identity is already linked to an account"
                        ) from e

        logger.info("User created", user_id=user_id)
        return await self.find_by_id(user_id)

    async def link_federated_id(
        self, user_id: str, provider: str, subject: str
    ) -> Optional[User]:
        async with storage_operation("users.link_federated_id"):
            try:
                await self.db.execute(
                    """
                    INSERT INTO user_federated_ids (provider, subject, user_id)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (provider, subject) DO UPDATE SET user_id = EXCLUDED.user_id
                    """,
                    provider,
                    subject,
                    user_id,
                )
            except asyncpg.ForeignKeyViolationError:
                return None
        return await self.find_by_id(user_id)


# ==================== CARTS ====================


def _row_to_cart(row: Optional[asyncpg.Record]) -> Optional[Cart]:
    if row is None:
        return None
    lines = _load_json(row["lines"], [])
    return Cart(
        id=row["id"],
        lines=[CartLine(product_id=item["product"], quantity=int(item["quantity"])) for item in lines],
    )


def _lines_to_json(lines: List[CartLine]) -> str:
    return json.dumps([line.to_dict() for line in lines])


class PostgresCartRepository(ICartRepository):
    """Cart storage in the ``carts`` table."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def create(self) -> Cart:
        async with storage_operation("carts.create"):
            row = await self.db.fetchrow("INSERT INTO carts DEFAULT VALUES RETURNING id, lines")
        return _row_to_cart(row)

    async def get(self, cart_id: str) -> Optional[Cart]:
        async with storage_operation("carts.get"):
            row = await self.db.fetchrow("SELECT id, lines FROM carts WHERE id = $1", cart_id)
        return _row_to_cart(row)

    async def replace_lines(self, cart_id: str, lines: List[CartLine]) -> Optional[Cart]:
        async with storage_operation("carts.replace_lines"):
            row = await self.db.fetchrow(
                """
                UPDATE carts SET lines = $2::jsonb, updated_at = NOW()
                WHERE id = $1
                RETURNING id, lines
                """,
                cart_id,
                _lines_to_json(lines),
            )
        return _row_to_cart(row)

    async def add_or_increment_line(self, cart_id: str, product_id: str) -> Optional[Cart]:
        async with storage_operation("carts.add_or_increment_line"):
            row = await self.db.fetchrow(
                """
                UPDATE carts SET
                    lines = CASE
                        WHEN lines @> jsonb_build_array(jsonb_build_object('product', $2::text))
                        THEN (
                            SELECT jsonb_agg(
                                CASE WHEN elem->>'product' = $2::text
                                     THEN jsonb_set(elem, '{quantity}',
                                                    to_jsonb((elem->>'quantity')::int + 1))
                                     ELSE elem
                                END ORDER BY ord)
                            FROM jsonb_array_elements(lines) WITH ORDINALITY AS t(elem, ord)
                        )
                        ELSE lines || jsonb_build_array(
                            jsonb_build_object('product', $2::text, 'quantity', 1))
                    END,
                    updated_at = NOW()
                WHERE id = $1
                RETURNING id, lines
                """,
                cart_id,
                product_id,
            )
        return _row_to_cart(row)

    async def set_line_quantity(
        self, cart_id: str, product_id: str, quantity: int
    ) -> Optional[Cart]:
        async with storage_operation("carts.set_line_quantity"):
            row = await self.db.fetchrow(
                """
                UPDATE carts SET
                    lines = COALESCE((
                        SELECT jsonb_agg(
                            CASE WHEN elem->>'product' = $2::text
                                 THEN jsonb_set(elem, '{quantity}', to_jsonb($3::int))
                                 ELSE elem
                            END ORDER BY ord)
                        FROM jsonb_array_elements(lines) WITH ORDINALITY AS t(elem, ord)
                    ), '[]'::jsonb),
                    updated_at = NOW()
                WHERE id = $1
                RETURNING id, lines
                """,
                cart_id,
                product_id,
                quantity,
            )
        return _row_to_cart(row)

    async def remove_line(self, cart_id: str, product_id: str) -> Optional[Cart]:
        async with storage_operation("carts.remove_line"):
            row = await self.db.fetchrow(
                """
                UPDATE carts SET
                    lines = COALESCE((
                        SELECT jsonb_agg(elem ORDER BY ord)
                        FROM jsonb_array_elements(lines) WITH ORDINALITY AS t(elem, ord)
                        WHERE elem->>'product' <> $2::text
                    ), '[]'::jsonb),
                    updated_at = NOW()
                WHERE id = $1
                RETURNING id, lines
                """,
                cart_id,
                product_id,
            )
        return _row_to_cart(row)

    async def clear_lines(self, cart_id: str) -> Optional[Cart]:
        async with storage_operation("carts.clear_lines"):
            row = await self.db.fetchrow(
                """
                UPDATE carts SET lines = '[]'::jsonb, updated_at = NOW()
                WHERE id = $1
                RETURNING id, lines
                """,
                cart_id,
            )
        return _row_to_cart(row)


# ==================== PRODUCTS ====================


_PRODUCT_COLUMNS = "id, title, description, code, price, category, status, thumbnails"
_UPDATABLE_PRODUCT_FIELDS = ("title", "description", "code", "price", "category", "status", "thumbnails")


def _row_to_product(row: asyncpg.Record) -> Product:
    return Product(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        code=row["code"],
        price=float(row["price"]),
        category=row["category"],
        status=row["status"],
        thumbnails=list(_load_json(row["thumbnails"], [])),
    )


def _product_param(name: str, value: Any) -> Any:
    if name == "thumbnails":
        return json.dumps(list(value or []))
    return value


class PostgresProductRepository(IProductRepository):
    """Catalog storage in the ``products`` table."""

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db

    async def find(self, query: ProductQuery) -> ProductPage:
        conditions: List[str] = []
        args: List[Any] = []
        if query.category is not None:
            args.append(query.category)
            conditions.append(f"category = ${len(args)}")
        if query.status is not None:
            args.append(query.status)
            conditions.append(f"status = ${len(args)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        direction = "ASC" if query.sort == SortOrder.ASC else "DESC"

        async with storage_operation("products.find"):
            total = await self.db.fetchval(f"SELECT COUNT(*) FROM products {where}", *args)
            rows = await self.db.fetch(
                f"""
                SELECT {_PRODUCT_COLUMNS} FROM products {where}
                ORDER BY price {direction}, id
                LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}
                """,
                *args,
                query.limit,
                query.offset,
            )

        return ProductPage(
            docs=[_row_to_product(row) for row in rows],
            total=int(total or 0),
            page=query.page,
            limit=query.limit,
        )

    async def get(self, product_id: str) -> Optional[Product]:
        async with storage_operation("products.get"):
            row = await self.db.fetchrow(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = $1", product_id
            )
        return _row_to_product(row) if row else None

    async def exists(self, product_id: str) -> bool:
        async with storage_operation("products.exists"):
            found = await self.db.fetchval(
                "SELECT EXISTS (SELECT 1 FROM products WHERE id = $1)", product_id
            )
        return bool(found)

    async def create(self, data: Dict[str, Any]) -> Product:
        async with storage_operation("products.create"):
            try:
                row = await self.db.fetchrow(
                    f"""
                    INSERT INTO products (title, description, code, price, category, status, thumbnails)
                    VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb)
                    RETURNING {_PRODUCT_COLUMNS}
                    """,
                    data["title"],
                    data.get("description", ""),
                    data.get("code"),
                    data["price"],
                    data["category"],
                    data.get("status", True),
                    _product_param("thumbnails", data.get("thumbnails")),
                )
            except asyncpg.UniqueViolationError as e:
                raise ConflictError(f"Product code {data.get('code')} already exists") from e
        return _row_to_product(row)

    async def update(self, product_id: str, changes: Dict[str, Any]) -> Optional[Product]:
        fields = [name for name in _UPDATABLE_PRODUCT_FIELDS if name in changes]
        if not fields:
            return await self.get(product_id)

        assignments = []
        args: List[Any] = [product_id]
        for name in fields:
            args.append(_product_param(name, changes[name]))
            cast = "::jsonb" if name == "thumbnails" else ""
            assignments.append(f"{name} = ${len(args)}{cast}")

        async with storage_operation("products.update"):
            try:
                row = await self.db.fetchrow(
                    f"""
                    UPDATE products SET {', '.join(assignments)}
                    WHERE id = $1
                    RETURNING {_PRODUCT_COLUMNS}
                    """,
                    *args,
                )
            except asyncpg.UniqueViolationError as e:
                raise ConflictError(f"Product code {changes.get('code')} already exists") from e
        return _row_to_product(row) if row else None

    async def delete(self, product_id: str) -> bool:
        async with storage_operation("products.delete"):
            status = await self.db.execute("DELETE FROM products WHERE id = $1", product_id)
        return status.endswith(" 1")
