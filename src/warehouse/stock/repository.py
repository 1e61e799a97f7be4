"""Repository for the InventoryRecord aggregate."""

from warehouse.domain import warehouse
from warehouse.stock.record import InventoryRecord


@warehouse.repository(part_of=InventoryRecord)
class InventoryRecordRepository:
    def for_stock(self, sku: str | None = None, location_code: str | None = None) -> list[InventoryRecord]:
        """Records of ``sku`` at ``location_code``; either filter may be omitted."""
        filters = {}
        if sku:
            filters["sku"] = sku
        if location_code:
            filters["location_code"] = location_code

        query = self._dao.query
        if filters:
            query = query.filter(**filters)
        return query.all().items
