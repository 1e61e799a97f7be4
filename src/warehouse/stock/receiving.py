"""Stock receiving and recounts: commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Date, Identifier, Integer, String
from protean.utils.globals import current_domain

from warehouse.domain import warehouse
from warehouse.errors import LocationNotFoundError, ProductNotFoundError
from warehouse.location.codes import normalize_location_code
from warehouse.location.location import Location
from warehouse.stock.record import InventoryRecord
from warehouse.units.product import Product


@warehouse.command(part_of="InventoryRecord")
class RecordInventory:
    """Record stock found at (or put away into) a location."""

    sku = Identifier(required=True)
    location_code = String(required=True, max_length=20)
    lot = String(max_length=100)
    manufactured_on = Date()
    qty1 = Integer(min_value=0, default=0)
    qty2 = Integer(min_value=0, default=0)
    qty3 = Integer(min_value=0, default=0)
    warehouse_id = Identifier()


@warehouse.command(part_of="InventoryRecord")
class AdjustInventory:
    """Replace a record's tier quantities after a recount."""

    record_id = Identifier(required=True)
    qty1 = Integer(required=True, min_value=0)
    qty2 = Integer(required=True, min_value=0)
    qty3 = Integer(required=True, min_value=0)
    reason = String(max_length=255)


@warehouse.command_handler(part_of=InventoryRecord)
class ReceivingHandler:
    @handle(RecordInventory)
    def record_inventory(self, command):
        code = normalize_location_code(command.location_code)
        try:
            current_domain.repository_for(Product).get(command.sku)
        except ObjectNotFoundError:
            raise ProductNotFoundError(command.sku) from None
        try:
            current_domain.repository_for(Location).get(code)
        except ObjectNotFoundError:
            raise LocationNotFoundError(code) from None

        record = InventoryRecord.record(
            sku=command.sku,
            location_code=code,
            qty1=command.qty1 or 0,
            qty2=command.qty2 or 0,
            qty3=command.qty3 or 0,
            lot=command.lot,
            manufactured_on=command.manufactured_on,
            warehouse_id=command.warehouse_id,
        )
        current_domain.repository_for(InventoryRecord).add(record)
        return str(record.id)

    @handle(AdjustInventory)
    def adjust_inventory(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.record_id)
        record.adjust(command.qty1, command.qty2, command.qty3, reason=command.reason)
        repo.add(record)
