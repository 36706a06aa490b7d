"""Marketplace bounded context — Orders, Fulfillment, Commission and Disputes.

Handles the multi-vendor order lifecycle (CQRS): order placement with
commission snapshots, per-vendor fulfillment, buyer disputes and the
two-phase gateway refund that reconciles commission bookkeeping.
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
