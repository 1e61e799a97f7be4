"""Process-wide engine: one commitment book, resolver and coordinator.

Every caller (command handlers, API routes, tooling) shares the same
instances so that soft commitments are visible to all of them.
"""

import threading

from warehouse.allocation.commitment import CommitmentBook
from warehouse.allocation.resolver import AllocationResolver
from warehouse.sources import get_stock_source, reset_stock_source

_lock = threading.Lock()
_resolver = None
_coordinator = None


def get_resolver() -> AllocationResolver:
    global _resolver
    if _resolver is not None:
        return _resolver
    with _lock:
        if _resolver is None:
            _resolver = AllocationResolver(get_stock_source(), CommitmentBook())
        return _resolver


def get_ledger():
    return get_resolver().ledger


def get_coordinator():
    global _coordinator
    if _coordinator is not None:
        return _coordinator
    resolver = get_resolver()
    with _lock:
        if _coordinator is None:
            from warehouse.fulfillment.coordinator import FulfillmentQueueCoordinator

            _coordinator = FulfillmentQueueCoordinator(resolver)
        return _coordinator


def reset_engine():
    """Drop the engine singletons and the stock source (useful for testing)."""
    global _resolver, _coordinator
    with _lock:
        _resolver = None
        _coordinator = None
    reset_stock_source()
