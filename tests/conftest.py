"""
Pytest configuration and shared fixtures.

Contains common test fixtures and setup for all test modules.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Generator, List

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from telestack.config import MaskingSettings, MetricsSettings, Settings
from telestack.core.aggregator import BusinessMetricsAggregator
from telestack.core.correlation import RequestContext
from telestack.core.events import EventLogger
from telestack.core.masking import Masker, create_masker
from telestack.core.metrics import MetricsRegistry
from telestack.core.repository import ProductRepository
from telestack.core.service import ProductService
from telestack.main import create_app
from telestack.models.product import Product


@pytest.fixture
def metrics_settings() -> MetricsSettings:
    """Metrics settings with liveness limits no test process reaches."""
    return MetricsSettings(
        low_stock_threshold=10,
        high_value_threshold=1000.0,
        slow_bulk_read_ms=100,
        slow_point_read_ms=50,
        memory_limit_bytes=10 ** 12,
        task_limit=10 ** 6,
    )


@pytest.fixture
def test_settings(metrics_settings: MetricsSettings) -> Settings:
    """Application settings for tests."""
    return Settings(
        debug=True,
        log_level="DEBUG",
        service_name="product-service-test",
        masking=MaskingSettings(),
        metrics=metrics_settings,
    )


@pytest.fixture
def masker() -> Masker:
    return create_masker(MaskingSettings())


@pytest.fixture
def registry() -> MetricsRegistry:
    """Fresh registry, never shared between tests."""
    return MetricsRegistry(service_name="product-service-test")


@pytest.fixture
def request_context() -> RequestContext:
    return RequestContext.from_headers({"X-Correlation-ID": "corr-test-123"})


@pytest.fixture
def aggregator(registry: MetricsRegistry, metrics_settings: MetricsSettings) -> BusinessMetricsAggregator:
    return BusinessMetricsAggregator(
        registry,
        low_stock_threshold=metrics_settings.low_stock_threshold,
        high_value_threshold=metrics_settings.high_value_threshold,
    )


@pytest.fixture
def repository(
    registry: MetricsRegistry,
    aggregator: BusinessMetricsAggregator,
    metrics_settings: MetricsSettings,
) -> ProductRepository:
    return ProductRepository(registry, aggregator, metrics_settings)


@pytest.fixture
def product_service(
    repository: ProductRepository,
    masker: Masker,
    registry: MetricsRegistry,
    metrics_settings: MetricsSettings,
) -> ProductService:
    return ProductService(repository, EventLogger(masker), registry, metrics_settings)


@pytest.fixture
def test_app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture
def test_client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    """FastAPI test client with test configuration."""
    with TestClient(test_app) as client:
        yield client


@pytest.fixture
def sample_product() -> Product:
    now = datetime(2025, 9, 22, 10, 30, tzinfo=timezone.utc)
    return Product(
        id=1,
        name="Gaming Laptop",
        description="High-end gaming laptop",
        price=1499.99,
        stock=3,
        category="electronics",
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def product_payloads() -> List[Dict[str, Any]]:
    """Create payloads covering every stock bucket and two categories."""
    return [
        {"name": "Gaming Laptop", "description": "High-end laptop", "price": 1500.0, "stock": 3, "category": "electronics"},
        {"name": "USB Cable", "description": "1m braided cable", "price": 10.0, "stock": 200, "category": "electronics"},
        {"name": "Notebook", "description": "A5 dotted", "price": 5.0, "stock": 0, "category": "stationery"},
    ]
