"""Stock ledger: read-only aggregation of inventory records.

Records are grouped at read time into one row per (location, SKU), summing
tier quantities and deriving the base-unit total through the product's
conversion rates. Availability subtracts active soft commitments.

Every read holds the commitment book's lock, so a reader never sees a
commitment without the stock movement that belongs to it.
"""

from dataclasses import dataclass
from datetime import date

import structlog

from warehouse.location.codes import location_sort_key, normalize_location_code

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LocationStock:
    location: str
    sku: str
    qty1: int
    qty2: int
    qty3: int
    base_total: int
    capacity: int
    utilization: float
    lots: int
    committed: int
    available: int


@dataclass(frozen=True)
class LotStock:
    location: str
    sku: str
    lot: str | None
    manufactured_on: date | None
    on_hand: int
    committed: int
    available: int


def utilization_percentage(base_total: int, capacity: int) -> float:
    """Share of ``capacity`` in use, clamped to 0-100. No capacity means 0."""
    if not capacity or capacity <= 0:
        return 0.0
    return round(max(0.0, min(100.0, base_total / capacity * 100)), 2)


class StockLedger:
    def __init__(self, source, book):
        self.source = source
        self.book = book

    def _location_utilization(self, code: str, slot, products: dict) -> float:
        """Share of the slot's capacity taken by every SKU stored there.

        Base-unit capacity compares against the slot's base-unit total.
        Tier-1 capacity compares against each SKU's stock expressed in its own
        tier-1 units; SKUs without a tier-1 rate cannot be measured that way
        and are left out.
        """
        if slot is None or not (slot.capacity or slot.capacity_tier1):
            return 0.0

        per_sku: dict[str, int] = {}
        for record in self.source.records(location_code=code):
            item_sku = str(record.sku)
            if item_sku not in products:
                products[item_sku] = self.source.get_product(item_sku)
            per_sku[item_sku] = per_sku.get(item_sku, 0) + record.base_total(products[item_sku])

        if slot.capacity:
            return utilization_percentage(sum(per_sku.values()), slot.capacity)

        used = 0.0
        for item_sku, base_total in per_sku.items():
            rate1 = products[item_sku].rate1
            if rate1 and rate1 > 0:
                used += base_total / rate1
        return round(max(0.0, min(100.0, used / slot.capacity_tier1 * 100)), 2)

    def snapshot(self, location: str | None = None, sku: str | None = None) -> list[LocationStock]:
        """One row per (location, SKU) for the records matching the filters.

        ``capacity`` is the slot's capacity in the row's SKU base units;
        ``utilization`` is the whole slot's, counting every SKU stored there
        even when the snapshot is filtered to one SKU.
        """
        code = normalize_location_code(location) if location else None
        with self.book.lock:
            groups: dict[tuple[str, str], list] = {}
            for record in self.source.records(sku=sku, location_code=code):
                groups.setdefault((record.location_code, str(record.sku)), []).append(record)

            rows = []
            products = {}
            slots = {}
            for (loc, item_sku), records in groups.items():
                if item_sku not in products:
                    products[item_sku] = self.source.get_product(item_sku)
                product = products[item_sku]
                if loc not in slots:
                    slot = self.source.find_location(loc)
                    slots[loc] = (slot, self._location_utilization(loc, slot, products))
                slot, utilization = slots[loc]
                qty1 = sum(r.qty1 or 0 for r in records)
                qty2 = sum(r.qty2 or 0 for r in records)
                qty3 = sum(r.qty3 or 0 for r in records)
                base_total = sum(r.base_total(product) for r in records)
                capacity = slot.capacity_in_base_units(product.rate1) if slot else 0
                committed = self.book.committed(item_sku, loc)
                rows.append(
                    LocationStock(
                        location=loc,
                        sku=item_sku,
                        qty1=qty1,
                        qty2=qty2,
                        qty3=qty3,
                        base_total=base_total,
                        capacity=capacity,
                        utilization=utilization,
                        lots=len({r.lot for r in records}),
                        committed=committed,
                        available=max(0, base_total - committed),
                    )
                )

        rows.sort(key=lambda row: (location_sort_key(row.location), row.sku))
        return rows

    def on_hand(self, sku: str, location: str) -> int:
        product = self.source.get_product(sku)
        with self.book.lock:
            return sum(r.base_total(product) for r in self.source.records(sku=sku, location_code=location))

    def available_base_units(self, sku: str, location: str) -> int:
        """On-hand base units across all lots, minus active commitments."""
        code = normalize_location_code(location)
        with self.book.lock:
            return max(0, self.on_hand(sku, code) - self.book.committed(sku, code))

    def lot_stock(self, sku: str, location: str | None = None) -> list[LotStock]:
        """Per-(location, lot) stock for ``sku``.

        A lot's availability is capped by its location's availability, since
        lot-less commitments draw on every lot at the slot.
        """
        product = self.source.get_product(sku)
        code = normalize_location_code(location) if location else None
        with self.book.lock:
            groups: dict[tuple[str, str | None], list] = {}
            for record in self.source.records(sku=sku, location_code=code):
                groups.setdefault((record.location_code, record.lot or None), []).append(record)

            location_on_hand: dict[str, int] = {}
            for (loc, _), records in groups.items():
                location_on_hand[loc] = location_on_hand.get(loc, 0) + sum(r.base_total(product) for r in records)

            rows = []
            for (loc, lot), records in groups.items():
                on_hand = sum(r.base_total(product) for r in records)
                lot_committed = self.book.committed_by_lot(sku, loc).get(lot, 0) if lot else 0
                location_available = location_on_hand[loc] - self.book.committed(sku, loc)
                dates = [r.manufactured_on for r in records if r.manufactured_on]
                rows.append(
                    LotStock(
                        location=loc,
                        sku=sku,
                        lot=lot,
                        manufactured_on=min(dates) if dates else None,
                        on_hand=on_hand,
                        committed=lot_committed,
                        available=max(0, min(on_hand - lot_committed, location_available)),
                    )
                )
        return rows
