"""Item status changes: commands and handler.

Every status change, cancellation included, goes through the coordinator so
that stock commitments move together with the item.
"""

from protean import handle
from protean.fields import Identifier, Integer, String

from warehouse.domain import warehouse
from warehouse.engine import get_coordinator
from warehouse.fulfillment.task import FulfillmentTask


@warehouse.command(part_of="FulfillmentTask")
class AdvanceItem:
    """Move an item to a new status (assigned, picking, completed or cancelled)."""

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    target_status = String(required=True, max_length=20)
    location = String(max_length=20)
    lot = String(max_length=100)
    fulfilled_quantity = Integer(min_value=0)
    expected_status = String(max_length=20)
    reason = String(max_length=500)


@warehouse.command(part_of="FulfillmentTask")
class CancelItem:
    """Cancel an item, releasing any stock committed to it."""

    item_id = Identifier(required=True)
    task_id = Identifier()
    reason = String(max_length=500)


@warehouse.command_handler(part_of=FulfillmentTask)
class ItemAdvancementHandler:
    @handle(AdvanceItem)
    def advance_item(self, command):
        return get_coordinator().advance(
            command.task_id,
            command.item_id,
            command.target_status,
            location=command.location,
            lot=command.lot,
            fulfilled_quantity=command.fulfilled_quantity,
            expected_status=command.expected_status,
            reason=command.reason,
        )

    @handle(CancelItem)
    def cancel_item(self, command):
        return get_coordinator().cancel_item(command.item_id, reason=command.reason, task_id=command.task_id)
