"""In-memory stock source: deterministic stock for tests and tooling.

Holds already-built aggregates in dicts. Reads need no domain context, which
makes this adapter safe to exercise from worker threads.
"""

from warehouse.errors import ProductNotFoundError
from warehouse.sources.port import StockSource


class MemoryStockSource(StockSource):
    def __init__(self):
        self.products = {}
        self.locations = {}
        self._records = {}

    def add_product(self, product):
        self.products[str(product.sku)] = product
        return product

    def add_location(self, location):
        self.locations[str(location.code)] = location
        return location

    def add_record(self, record):
        self._records[str(record.id)] = record
        return record

    def clear(self):
        self.products.clear()
        self.locations.clear()
        self._records.clear()

    def get_product(self, sku: str):
        try:
            return self.products[sku]
        except KeyError:
            raise ProductNotFoundError(sku) from None

    def find_location(self, code: str):
        return self.locations.get(code)

    def records(self, sku: str | None = None, location_code: str | None = None) -> list:
        return [
            record
            for record in self._records.values()
            if (not sku or str(record.sku) == sku) and (not location_code or record.location_code == location_code)
        ]

    def withdraw(self, record_id: str, quantity: int, product, reference: str | None = None) -> None:
        self._records[record_id].withdraw(quantity, product, reference=reference)
