"""
Product catalogue endpoints.

Handlers stay thin: they resolve the request context and delegate to the
ProductService, which owns validation, storage and business events.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..core.correlation import RequestContext
from ..core.service import DEFAULT_TOP_LIMIT, ProductService
from ..models.product import (
    ErrorResponse,
    MessageResponse,
    Product,
    ProductCreate,
    ProductListResponse,
    ProductUpdate,
)
from .deps import get_product_service, get_request_context

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    404: {"model": ErrorResponse, "description": "Product not found"},
    409: {"model": ErrorResponse, "description": "Product name already taken"},
}


def _listing(products: List[Product]) -> ProductListResponse:
    return ProductListResponse(products=products, count=len(products))


@router.get("/products", response_model=ProductListResponse, summary="List products")
async def list_products(
    ctx: RequestContext = Depends(get_request_context),
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    """List every product. Also refreshes the business metrics gauges."""
    return _listing(service.list_products(ctx))


@router.get(
    "/products/low-stock",
    response_model=ProductListResponse,
    responses=ERROR_RESPONSES,
    summary="List low-stock products",
)
async def list_low_stock(
    max_stock: Optional[int] = Query(default=None, description="Stock strictly below this value"),
    ctx: RequestContext = Depends(get_request_context),
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    return _listing(service.list_low_stock(ctx, max_stock))


@router.get(
    "/products/top",
    response_model=ProductListResponse,
    responses=ERROR_RESPONSES,
    summary="List most expensive products",
)
async def top_most_expensive(
    limit: int = Query(default=DEFAULT_TOP_LIMIT, description="Number of products to return"),
    ctx: RequestContext = Depends(get_request_context),
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    return _listing(service.top_most_expensive(ctx, limit))


@router.get(
    "/products/category/{category}",
    response_model=ProductListResponse,
    responses=ERROR_RESPONSES,
    summary="List products in a category",
)
async def list_by_category(
    category: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ProductService = Depends(get_product_service),
) -> ProductListResponse:
    return _listing(service.list_by_category(ctx, category))


@router.get(
    "/products/{product_id}",
    response_model=Product,
    responses=ERROR_RESPONSES,
    summary="Get a product",
)
async def get_product(
    product_id: int,
    ctx: RequestContext = Depends(get_request_context),
    service: ProductService = Depends(get_product_service),
) -> Product:
    return service.get_product(ctx, product_id)


@router.post(
    "/products",
    response_model=Product,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Create a product",
)
async def create_product(
    payload: ProductCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: ProductService = Depends(get_product_service),
) -> Product:
    return service.create_product(ctx, payload)


@router.put(
    "/products/{product_id}",
    response_model=Product,
    responses=ERROR_RESPONSES,
    summary="Replace a product",
)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    ctx: RequestContext = Depends(get_request_context),
    service: ProductService = Depends(get_product_service),
) -> Product:
    return service.update_product(ctx, product_id, payload)


@router.delete(
    "/products/{product_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Delete a product",
)
async def delete_product(
    product_id: int,
    ctx: RequestContext = Depends(get_request_context),
    service: ProductService = Depends(get_product_service),
) -> MessageResponse:
    service.delete_product(ctx, product_id)
    return MessageResponse(message="Product deleted successfully")
