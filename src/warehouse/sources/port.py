"""Stock source port: the narrow interface the ledger and resolver read through.

The engine programs against this port; adapters are swapped via
configuration (``STOCK_SOURCE``). Adapters raise ``ProductNotFoundError`` /
``LocationNotFoundError`` for unknown identities.
"""

from abc import ABC, abstractmethod


class StockSource(ABC):
    """Abstract interface for stock source adapters."""

    @abstractmethod
    def get_product(self, sku: str):
        """Return the ``Product`` for ``sku`` or raise ``ProductNotFoundError``."""
        ...

    @abstractmethod
    def find_location(self, code: str):
        """Return the ``Location`` with the normalized ``code``, or None."""
        ...

    @abstractmethod
    def records(self, sku: str | None = None, location_code: str | None = None) -> list:
        """Return ``InventoryRecord`` objects matching the optional filters."""
        ...

    @abstractmethod
    def withdraw(self, record_id: str, quantity: int, product, reference: str | None = None) -> None:
        """Deduct ``quantity`` base units from one record and persist it."""
        ...

    def get_location(self, code: str):
        """Return the ``Location`` for ``code`` or raise ``LocationNotFoundError``."""
        from warehouse.errors import LocationNotFoundError

        location = self.find_location(code)
        if location is None:
            raise LocationNotFoundError(code)
        return location
