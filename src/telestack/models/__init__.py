"""
Pydantic data models package.

Contains all data validation models for:
- Product API requests and responses
- Business events
"""

from .events import BusinessEvent
from .product import (
    ErrorResponse,
    MessageResponse,
    Product,
    ProductCreate,
    ProductListResponse,
    ProductUpdate,
)

__all__ = [
    # Product models
    "Product",
    "ProductCreate",
    "ProductUpdate",
    "ProductListResponse",
    "MessageResponse",
    "ErrorResponse",

    # Event models
    "BusinessEvent",
]
