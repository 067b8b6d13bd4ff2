"""
Pydantic models for request bodies.

Responses use the envelope helpers in ``storefront.responses``.
"""

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

# Session


class UserRegister(BaseModel):
    """Model for user registration."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class UserLogin(BaseModel):
    """Model for email/password sign in."""

    email: EmailStr
    password: str = Field(..., min_length=1)


# Carts


class CartLineIn(BaseModel):
    """One line of a cart replacement body."""

    product: str = Field(..., min_length=1)
    quantity: int = 1


class CartReplace(BaseModel):
    """Model for replacing every line of a cart."""

    products: List[CartLineIn] = Field(default_factory=list)


class QuantityUpdate(BaseModel):
    """Model for setting the quantity of one cart line."""

    quantity: int


# Products


class ProductCreate(BaseModel):
    """Model for adding a catalog product."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    code: Optional[str] = Field(None, max_length=64)
    price: float = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    status: bool = True
    thumbnails: List[str] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    """Model for partially updating a catalog product."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    code: Optional[str] = Field(None, max_length=64)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    status: Optional[bool] = None
    thumbnails: Optional[List[str]] = None
