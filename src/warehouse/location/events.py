"""Location events."""

from protean.fields import DateTime, Identifier, Integer, String

from warehouse.domain import warehouse


@warehouse.event(part_of="Location")
class LocationRegistered:
    """A storage slot was registered."""

    __version__ = 1

    code = Identifier(required=True)
    row = String(required=True)
    level = Integer(required=True)
    position = Integer(required=True)
    capacity = Integer()
    capacity_tier1 = Integer()
    warehouse_id = String()
    registered_at = DateTime(required=True)


@warehouse.event(part_of="Location")
class LocationCapacityChanged:
    """A storage slot's declared capacity changed."""

    __version__ = 1

    code = Identifier(required=True)
    capacity = Integer()
    capacity_tier1 = Integer()
    changed_at = DateTime(required=True)
