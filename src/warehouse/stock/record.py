"""InventoryRecord aggregate: one physical stock record at a location.

Several records may share a location and SKU (one per lot). They are never
merged; aggregation happens at read time in the stock ledger.
"""

from datetime import UTC, date, datetime

from protean import atomic_change
from protean.fields import Date, DateTime, Identifier, Integer, String

from warehouse.domain import warehouse
from warehouse.errors import InsufficientStockError
from warehouse.location.codes import normalize_location_code
from warehouse.stock.events import InventoryAdjusted, InventoryRecorded, InventoryWithdrawn
from warehouse.units.conversion import from_base_units, to_base_units


@warehouse.aggregate
class InventoryRecord:
    sku = Identifier(required=True)
    location_code = String(required=True, max_length=20)
    lot = String(max_length=100)
    manufactured_on = Date()
    qty1 = Integer(min_value=0, default=0)
    qty2 = Integer(min_value=0, default=0)
    qty3 = Integer(min_value=0, default=0)
    warehouse_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def record(
        cls,
        sku: str,
        location_code: str,
        qty1: int = 0,
        qty2: int = 0,
        qty3: int = 0,
        lot: str | None = None,
        manufactured_on: date | None = None,
        warehouse_id: str | None = None,
    ):
        now = datetime.now(UTC)
        record = cls(
            sku=sku,
            location_code=normalize_location_code(location_code),
            lot=lot or None,
            manufactured_on=manufactured_on,
            qty1=qty1,
            qty2=qty2,
            qty3=qty3,
            warehouse_id=warehouse_id,
            created_at=now,
            updated_at=now,
        )
        record.raise_(
            InventoryRecorded(
                record_id=str(record.id),
                sku=sku,
                location_code=record.location_code,
                lot=record.lot or "",
                manufactured_on=manufactured_on,
                qty1=record.qty1,
                qty2=record.qty2,
                qty3=record.qty3,
                warehouse_id=warehouse_id or "",
                recorded_at=now,
            )
        )
        return record

    def base_total(self, product) -> int:
        return to_base_units(product, self.qty1 or 0, self.qty2 or 0, self.qty3 or 0)

    def adjust(self, qty1: int, qty2: int, qty3: int, reason: str | None = None) -> None:
        """Replace the counted tier quantities after a recount."""
        previous = (self.qty1, self.qty2, self.qty3)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.qty1 = qty1
            self.qty2 = qty2
            self.qty3 = qty3
            self.updated_at = now
        self.raise_(
            InventoryAdjusted(
                record_id=str(self.id),
                sku=str(self.sku),
                location_code=self.location_code,
                previous_qty1=previous[0],
                previous_qty2=previous[1],
                previous_qty3=previous[2],
                qty1=qty1,
                qty2=qty2,
                qty3=qty3,
                reason=reason or "",
                adjusted_at=now,
            )
        )

    def withdraw(self, quantity: int, product, reference: str | None = None) -> None:
        """Take ``quantity`` base units out of this record.

        The remainder is re-expressed in tiers by greedy decomposition.
        """
        total = self.base_total(product)
        if quantity > total:
            raise InsufficientStockError(quantity - total, sku=str(self.sku), location=self.location_code)

        remaining = from_base_units(product, total - quantity)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.qty1, self.qty2, self.qty3 = remaining
            self.updated_at = now
        self.raise_(
            InventoryWithdrawn(
                record_id=str(self.id),
                sku=str(self.sku),
                location_code=self.location_code,
                lot=self.lot or "",
                quantity=quantity,
                previous_base_total=total,
                new_base_total=total - quantity,
                reference=reference or "",
                withdrawn_at=now,
            )
        )
