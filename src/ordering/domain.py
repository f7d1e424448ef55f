"""Ordering bounded context — Order Lifecycle and Transaction Core.

Handles stock reservation against products, ephemeral carts built at the
counter or at checkout, the checkout saga that converts a cart into an order,
order/payment status transitions, and order listings with summary statistics.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
