"""
Product data models.

Payload shape is checked here; domain rules live in the service layer.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductBase(BaseModel):
    """Fields shared by create and update payloads."""

    name: str = Field(default="", max_length=255, description="Product name (unique)")
    description: str = Field(
        default="",
        max_length=4096,
        description="Free-form product description"
    )
    price: float = Field(default=0.0, description="Unit price")
    stock: int = Field(default=0, description="Units in stock")
    category: str = Field(
        default="",
        max_length=64,
        description="Product category"
    )


class ProductCreate(ProductBase):
    """Request payload for creating a product."""


class ProductUpdate(ProductBase):
    """Request payload for replacing a product."""


class Product(ProductBase):
    """
    Stored product.

    Copies are handed out by the repository, callers never hold the stored instance.
    """

    id: int = Field(description="Product identifier")
    created_at: datetime = Field(description="Creation time (UTC)")
    updated_at: datetime = Field(description="Last update time (UTC)")

    model_config = ConfigDict(validate_assignment=True)

    def snapshot(self) -> Dict[str, Any]:
        """Audit snapshot used for old/new value diffing."""
        return {
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "stock": self.stock,
            "category": self.category,
        }


class ProductListResponse(BaseModel):
    """Response payload for product collections."""

    products: List[Product] = Field(description="Products")
    count: int = Field(description="Number of products returned")


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str = Field(description="Response message")


class ErrorResponse(BaseModel):
    """
    Standard error response model.
    """

    error: str = Field(description="Error code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
