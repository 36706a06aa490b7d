"""Marketplace HTTP API package."""

from marketplace.api.errors import register_error_handlers
from marketplace.api.routes import commission_router, dispute_router, order_router, stock_router

__all__ = ["order_router", "dispute_router", "commission_router", "stock_router", "register_error_handlers"]
