"""Location management: commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from warehouse.domain import warehouse
from warehouse.errors import LocationNotFoundError
from warehouse.location.codes import normalize_location_code
from warehouse.location.location import Location


@warehouse.command(part_of="Location")
class RegisterLocation:
    """Register a storage slot."""

    code = String(required=True, max_length=20)
    capacity = Integer(min_value=0)
    capacity_tier1 = Integer(min_value=0)
    warehouse_id = Identifier()


@warehouse.command(part_of="Location")
class ChangeLocationCapacity:
    code = String(required=True, max_length=20)
    capacity = Integer(min_value=0)
    capacity_tier1 = Integer(min_value=0)


@warehouse.command_handler(part_of=Location)
class LocationManagementHandler:
    @handle(RegisterLocation)
    def register_location(self, command):
        repo = current_domain.repository_for(Location)
        code = normalize_location_code(command.code)
        try:
            repo.get(code)
        except ObjectNotFoundError:
            pass
        else:
            raise ValidationError({"code": [f"Location {code} is already registered"]})

        location = Location.register(
            code=code,
            capacity=command.capacity,
            capacity_tier1=command.capacity_tier1,
            warehouse_id=command.warehouse_id,
        )
        repo.add(location)
        return str(location.code)

    @handle(ChangeLocationCapacity)
    def change_capacity(self, command):
        repo = current_domain.repository_for(Location)
        code = normalize_location_code(command.code)
        try:
            location = repo.get(code)
        except ObjectNotFoundError:
            raise LocationNotFoundError(code) from None
        location.change_capacity(capacity=command.capacity, capacity_tier1=command.capacity_tier1)
        repo.add(location)
