"""
Telestack - Product catalogue API with request telemetry

A FastAPI-based service that correlates requests across hops, masks
sensitive data before it reaches the logs, and exports request, business
and runtime metrics to Prometheus.
"""

__version__ = "0.1.0"

from .main import app

__all__ = ["app"]
