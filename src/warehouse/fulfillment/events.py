"""Fulfillment domain events: immutable facts about task and item state changes.

All events are past tense and versioned.
"""

from protean.fields import Date, DateTime, Float, Identifier, Integer, String, Text

from warehouse.domain import warehouse


@warehouse.event(part_of="FulfillmentTask")
class FulfillmentTaskCreated:
    """A fulfillment task entered the queue with all items pending."""

    __version__ = 1

    task_id = Identifier(required=True)
    source_ref = String(required=True)
    source_type = String(required=True)
    priority = String(required=True)
    delivery_date = Date()
    items = Text(required=True)  # JSON list of {sku, requested_quantity}
    item_count = Integer(required=True)
    created_at = DateTime(required=True)


@warehouse.event(part_of="FulfillmentTask")
class ItemAssigned:
    """Stock was committed for an item at a location."""

    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    sku = String(required=True)
    location = String(required=True)
    lot = String()
    quantity = Integer(required=True)
    commit_handle_id = String(required=True)
    previous_location = String()
    assigned_at = DateTime(required=True)


@warehouse.event(part_of="FulfillmentTask")
class ItemPickingStarted:
    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    location = String(required=True)
    started_at = DateTime(required=True)


@warehouse.event(part_of="FulfillmentTask")
class ItemCompleted:
    """An item was picked in full (or in part) from its location."""

    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    location = String(required=True)
    requested_quantity = Integer(required=True)
    fulfilled_quantity = Integer(required=True)
    completed_at = DateTime(required=True)


@warehouse.event(part_of="FulfillmentTask")
class ItemCancelled:
    __version__ = 1

    task_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_status = String(required=True)
    released_handle_id = String()
    reason = String()
    cancelled_at = DateTime(required=True)


@warehouse.event(part_of="FulfillmentTask")
class TaskStatusChanged:
    """The task's derived status moved as a consequence of an item change."""

    __version__ = 1

    task_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    progress = Float(required=True)
    changed_at = DateTime(required=True)


@warehouse.event(part_of="FulfillmentTask")
class TaskShipped:
    __version__ = 1

    task_id = Identifier(required=True)
    source_ref = String(required=True)
    shipped_items = Text(required=True)  # JSON list of {item_id, sku, location, quantity}
    shipped_at = DateTime(required=True)
