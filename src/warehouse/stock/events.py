"""Domain events for the InventoryRecord aggregate.

Quantities are carried both per tier (as counted on the shelf) and as the
derived base-unit total where the product's rates were known.
"""

from protean.fields import Date, DateTime, Identifier, Integer, String

from warehouse.domain import warehouse


@warehouse.event(part_of="InventoryRecord")
class InventoryRecorded:
    """A physical stock record was created at a location."""

    __version__ = 1

    record_id = Identifier(required=True)
    sku = Identifier(required=True)
    location_code = String(required=True)
    lot = String()
    manufactured_on = Date()
    qty1 = Integer(required=True)
    qty2 = Integer(required=True)
    qty3 = Integer(required=True)
    warehouse_id = String()
    recorded_at = DateTime(required=True)


@warehouse.event(part_of="InventoryRecord")
class InventoryAdjusted:
    """A stock record was recounted and its tier quantities replaced."""

    __version__ = 1

    record_id = Identifier(required=True)
    sku = Identifier(required=True)
    location_code = String(required=True)
    previous_qty1 = Integer(required=True)
    previous_qty2 = Integer(required=True)
    previous_qty3 = Integer(required=True)
    qty1 = Integer(required=True)
    qty2 = Integer(required=True)
    qty3 = Integer(required=True)
    reason = String()
    adjusted_at = DateTime(required=True)


@warehouse.event(part_of="InventoryRecord")
class InventoryWithdrawn:
    """Base units left the record, typically on shipment of a fulfillment task."""

    __version__ = 1

    record_id = Identifier(required=True)
    sku = Identifier(required=True)
    location_code = String(required=True)
    lot = String()
    quantity = Integer(required=True)
    previous_base_total = Integer(required=True)
    new_base_total = Integer(required=True)
    reference = String()
    withdrawn_at = DateTime(required=True)
