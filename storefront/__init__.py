"""Storefront service: product catalog, shopping carts and user sessions."""

__version__ = "1.0.0"
