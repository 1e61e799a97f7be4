"""Stock source abstraction: pluggable access to products, locations and stock records."""

import os

_source_instance = None


def get_stock_source():
    """Return the configured stock source adapter (singleton).

    Uses the repository adapter by default. Configure via the
    STOCK_SOURCE environment variable (``repository`` or ``memory``).
    """
    global _source_instance
    if _source_instance is None:
        adapter = os.environ.get("STOCK_SOURCE", "repository")
        if adapter == "repository":
            from warehouse.sources.repository_adapter import RepositoryStockSource

            _source_instance = RepositoryStockSource()
        elif adapter == "memory":
            from warehouse.sources.memory_adapter import MemoryStockSource

            _source_instance = MemoryStockSource()
        else:
            raise ValueError(f"Unknown stock source adapter: {adapter}")
    return _source_instance


def reset_stock_source():
    """Reset the stock source singleton (useful for testing)."""
    global _source_instance
    _source_instance = None
