"""Fulfillment task creation: command and handler."""

import json

from protean import handle
from protean.fields import Date, Identifier, String, Text

from warehouse.domain import warehouse
from warehouse.engine import get_coordinator
from warehouse.fulfillment.task import FulfillmentTask


@warehouse.command(part_of="FulfillmentTask")
class CreateFulfillmentTask:
    """Queue a fulfillment task for an order or document."""

    source_ref = String(required=True, max_length=100)
    source_type = String(max_length=20)
    priority = String(max_length=20)
    delivery_date = Date()
    customer_code = String(max_length=50)
    warehouse_id = Identifier()
    items = Text(required=True)  # JSON list of {sku, qty1, qty2, qty3}


@warehouse.command_handler(part_of=FulfillmentTask)
class CreateFulfillmentTaskHandler:
    @handle(CreateFulfillmentTask)
    def create_fulfillment_task(self, command):
        items = json.loads(command.items) if isinstance(command.items, str) else command.items
        task = get_coordinator().create_task(
            source_ref=command.source_ref,
            items=items,
            source_type=command.source_type,
            priority=command.priority,
            delivery_date=command.delivery_date,
            customer_code=command.customer_code,
            warehouse_id=command.warehouse_id,
        )
        return str(task.id)
