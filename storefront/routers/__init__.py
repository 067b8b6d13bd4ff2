from . import carts_router, products_router, session_router

__all__ = ["carts_router", "products_router", "session_router"]
