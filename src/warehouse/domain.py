"""Warehouse bounded context: Tiered Inventory Allocation and Fulfillment.

Converts packaging-tier quantities (carton → box → piece) into base units,
evaluates stock across storage locations and lots, commits stock to
fulfillment items, and drives the fulfillment task/item state machine.
"""

import structlog
from protean.domain import Domain

warehouse = Domain(name="warehouse")

logger = structlog.get_logger(__name__)
