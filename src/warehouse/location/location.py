"""Location aggregate: one physical storage slot.

Capacity may be declared in base units (``capacity``) or in tier-1 units
(``capacity_tier1``). Tier-1 capacity is product-dependent and is converted
per SKU when utilization is computed.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer, String

from warehouse.domain import warehouse
from warehouse.location.codes import format_location_code, parse_location_code
from warehouse.location.events import LocationCapacityChanged, LocationRegistered


@warehouse.aggregate
class Location:
    code = Identifier(identifier=True, required=True)
    row = String(required=True, max_length=1)
    level = Integer(required=True, min_value=1, max_value=4)
    position = Integer(required=True, min_value=1, max_value=99)
    capacity = Integer(min_value=0)
    capacity_tier1 = Integer(min_value=0)
    warehouse_id = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, code: str, capacity=None, capacity_tier1=None, warehouse_id=None):
        parts = parse_location_code(code)
        now = datetime.now(UTC)
        location = cls(
            code=format_location_code(*parts),
            row=parts.row,
            level=parts.level,
            position=parts.position,
            capacity=capacity,
            capacity_tier1=capacity_tier1,
            warehouse_id=warehouse_id,
            created_at=now,
            updated_at=now,
        )
        location.raise_(
            LocationRegistered(
                code=location.code,
                row=parts.row,
                level=parts.level,
                position=parts.position,
                capacity=capacity,
                capacity_tier1=capacity_tier1,
                warehouse_id=warehouse_id or "",
                registered_at=now,
            )
        )
        return location

    def change_capacity(self, capacity=None, capacity_tier1=None) -> None:
        now = datetime.now(UTC)
        self.capacity = capacity
        self.capacity_tier1 = capacity_tier1
        self.updated_at = now
        self.raise_(
            LocationCapacityChanged(
                code=str(self.code),
                capacity=capacity,
                capacity_tier1=capacity_tier1,
                changed_at=now,
            )
        )

    def capacity_in_base_units(self, rate1: int | None) -> int:
        """Declared capacity in base units for a product with the given tier-1 rate.

        Returns 0 when no usable capacity is declared.
        """
        if self.capacity:
            return self.capacity
        if self.capacity_tier1 and rate1 and rate1 > 0:
            return self.capacity_tier1 * rate1
        return 0
