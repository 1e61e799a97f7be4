"""Task shipping: command and handler.

Shipping consumes the stock committed to every completed item.
"""

from protean import handle
from protean.fields import Identifier

from warehouse.domain import warehouse
from warehouse.engine import get_coordinator
from warehouse.fulfillment.task import FulfillmentTask


@warehouse.command(part_of="FulfillmentTask")
class ShipTask:
    """Hand a completed task over to shipping."""

    task_id = Identifier(required=True)


@warehouse.command_handler(part_of=FulfillmentTask)
class ShipTaskHandler:
    @handle(ShipTask)
    def ship_task(self, command):
        task = get_coordinator().ship_task(command.task_id)
        return str(task.id)
