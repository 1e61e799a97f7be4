"""Repository for the FulfillmentTask aggregate."""

from warehouse.domain import warehouse
from warehouse.fulfillment.task import FulfillmentTask


@warehouse.repository(part_of=FulfillmentTask)
class FulfillmentTaskRepository:
    def matching(self, **filters) -> list[FulfillmentTask]:
        """Tasks whose fields equal ``filters``; every task when none are given."""
        query = self._dao.query
        if filters:
            query = query.filter(**filters)
        return query.all().items

    def holding_item(self, item_id: str) -> FulfillmentTask | None:
        return next((task for task in self.matching() if task.has_item(item_id)), None)
