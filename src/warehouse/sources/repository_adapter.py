"""Repository-backed stock source: reads the domain's own aggregates."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from warehouse.errors import ProductNotFoundError
from warehouse.location.location import Location
from warehouse.sources.port import StockSource
from warehouse.stock.record import InventoryRecord
from warehouse.units.product import Product


class RepositoryStockSource(StockSource):
    """Stock source over the Product, Location and InventoryRecord repositories.

    Requires an active domain context.
    """

    def get_product(self, sku: str):
        try:
            return current_domain.repository_for(Product).get(sku)
        except ObjectNotFoundError:
            raise ProductNotFoundError(sku) from None

    def find_location(self, code: str):
        try:
            return current_domain.repository_for(Location).get(code)
        except ObjectNotFoundError:
            return None

    def records(self, sku: str | None = None, location_code: str | None = None) -> list:
        return current_domain.repository_for(InventoryRecord).for_stock(sku=sku, location_code=location_code)

    def withdraw(self, record_id: str, quantity: int, product, reference: str | None = None) -> None:
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(record_id)
        record.withdraw(quantity, product, reference=reference)
        repo.add(record)
