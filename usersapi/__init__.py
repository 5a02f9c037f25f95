"""HTTP CRUD service for user records stored in a relational table."""

from __future__ import annotations

from typing import Any

from .store import StoreGateway, create_gateway

__version__ = "1.0.0"


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the FastAPI application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "StoreGateway",
    "__version__",
    "create_app",
    "create_gateway",
]
