"""FastAPI routes for the Warehouse domain."""

import json
from dataclasses import asdict

from fastapi import APIRouter
from protean.utils.globals import current_domain

from warehouse.api.schemas import (
    AdjustInventoryRequest,
    AdvanceItemRequest,
    AdvanceResponse,
    BaseQuantityRequest,
    BaseQuantityResponse,
    CancelItemRequest,
    CandidateResponse,
    CommitmentResponse,
    CommitmentTotalResponse,
    ChangeCapacityRequest,
    CreateTaskRequest,
    LocationIdResponse,
    LocationStockResponse,
    PickingPlanResponse,
    ProductIdResponse,
    RecordIdResponse,
    RecordInventoryRequest,
    RegisterLocationRequest,
    RegisterProductRequest,
    TaskIdResponse,
    TaskItemResponse,
    TaskResponse,
    TaskStatisticsResponse,
    TierBreakdownResponse,
    TierQuantitiesSchema,
    UpdateRatesRequest,
)
from warehouse.engine import get_coordinator, get_ledger, get_resolver
from warehouse.fulfillment.advancement import AdvanceItem, CancelItem
from warehouse.fulfillment.creation import CreateFulfillmentTask
from warehouse.fulfillment.shipping import ShipTask
from warehouse.location.management import ChangeLocationCapacity, RegisterLocation
from warehouse.stock.receiving import AdjustInventory, RecordInventory
from warehouse.units.conversion import format_quantity, from_base_units, to_base_units
from warehouse.units.registration import RegisterProduct, UpdateConversionRates


def _task_response(task) -> TaskResponse:
    return TaskResponse(
        task_id=str(task.id),
        source_ref=task.source_ref,
        source_type=task.source_type,
        priority=task.priority,
        status=task.status,
        delivery_date=task.delivery_date,
        customer_code=task.customer_code,
        progress=task.progress,
        items_owed=task.items_owed,
        overdue=task.is_overdue(),
        items=[
            TaskItemResponse(
                item_id=str(item.id),
                line_number=item.line_number,
                sku=str(item.sku),
                qty1=item.qty1 or 0,
                qty2=item.qty2 or 0,
                qty3=item.qty3 or 0,
                requested_quantity=item.requested_quantity,
                fulfilled_quantity=item.fulfilled_quantity or 0,
                status=item.status,
                allocated_location=item.allocated_location,
                allocated_lot=item.allocated_lot,
            )
            for item in task.ordered_items
        ],
    )


def _advance_response(result) -> AdvanceResponse:
    return AdvanceResponse(
        task_id=result.task_id,
        item_id=result.item_id,
        previous_status=result.previous_status,
        status=result.status,
        task_status=result.task_status,
        changed=result.changed,
        location=result.location,
    )


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    command = RegisterProduct(**body.model_dump(exclude_none=True))
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(sku=result)


@product_router.put("/{sku}/rates", response_model=ProductIdResponse)
async def update_rates(sku: str, body: UpdateRatesRequest) -> ProductIdResponse:
    command = UpdateConversionRates(sku=sku, rate1=body.rate1, rate2=body.rate2)
    current_domain.process(command, asynchronous=False)
    return ProductIdResponse(sku=sku)


@product_router.post("/{sku}/convert-to-base", response_model=BaseQuantityResponse)
async def convert_to_base(sku: str, body: TierQuantitiesSchema) -> BaseQuantityResponse:
    product = get_resolver().source.get_product(sku)
    return BaseQuantityResponse(sku=sku, base_quantity=to_base_units(product, body.qty1, body.qty2, body.qty3))


@product_router.post("/{sku}/convert-from-base", response_model=TierBreakdownResponse)
async def convert_from_base(sku: str, body: BaseQuantityRequest) -> TierBreakdownResponse:
    product = get_resolver().source.get_product(sku)
    tiers = from_base_units(product, body.base_quantity)
    return TierBreakdownResponse(
        sku=sku,
        base_quantity=body.base_quantity,
        qty1=tiers.qty1,
        qty2=tiers.qty2,
        qty3=tiers.qty3,
        display=format_quantity(product, body.base_quantity),
    )


# ---------------------------------------------------------------------------
# Location Router
# ---------------------------------------------------------------------------
location_router = APIRouter(prefix="/locations", tags=["locations"])


@location_router.post("", status_code=201, response_model=LocationIdResponse)
async def register_location(body: RegisterLocationRequest) -> LocationIdResponse:
    command = RegisterLocation(**body.model_dump(exclude_none=True))
    result = current_domain.process(command, asynchronous=False)
    return LocationIdResponse(code=result)


@location_router.put("/{code}/capacity", response_model=LocationIdResponse)
async def change_capacity(code: str, body: ChangeCapacityRequest) -> LocationIdResponse:
    """Change a location's capacity. Use a dash-separated code in the path (``A-1-05``)."""
    command = ChangeLocationCapacity(code=code, capacity=body.capacity, capacity_tier1=body.capacity_tier1)
    current_domain.process(command, asynchronous=False)
    return LocationIdResponse(code=code)


# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["stock"])


@stock_router.post("", status_code=201, response_model=RecordIdResponse)
async def record_inventory(body: RecordInventoryRequest) -> RecordIdResponse:
    command = RecordInventory(**body.model_dump(exclude_none=True))
    result = current_domain.process(command, asynchronous=False)
    return RecordIdResponse(record_id=result)


@stock_router.put("/{record_id}", response_model=RecordIdResponse)
async def adjust_inventory(record_id: str, body: AdjustInventoryRequest) -> RecordIdResponse:
    command = AdjustInventory(record_id=record_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return RecordIdResponse(record_id=record_id)


@stock_router.get("/snapshot", response_model=list[LocationStockResponse])
async def stock_snapshot(location: str | None = None, sku: str | None = None) -> list[LocationStockResponse]:
    return [LocationStockResponse(**asdict(row)) for row in get_ledger().snapshot(location=location, sku=sku)]


@stock_router.get("/commitments", response_model=list[CommitmentResponse])
async def list_commitments(
    sku: str | None = None,
    location: str | None = None,
    reference: str | None = None,
    status: str = "active",
) -> list[CommitmentResponse]:
    """Soft commitments; ``reference`` takes a task id or ``task_id:item_id``, ``status=all`` lifts the filter."""
    views = get_resolver().commitments(
        sku=sku,
        location=location,
        reference=reference,
        status=None if status == "all" else status,
    )
    return [CommitmentResponse(**asdict(view)) for view in views]


@stock_router.get("/commitments/totals", response_model=list[CommitmentTotalResponse])
async def commitment_totals(sku: str | None = None, location: str | None = None) -> list[CommitmentTotalResponse]:
    totals = get_resolver().commitment_totals(sku=sku, location=location)
    return [CommitmentTotalResponse(**asdict(total)) for total in totals]


@stock_router.get("/candidates", response_model=list[CandidateResponse])
async def find_candidates(sku: str, quantity: int) -> list[CandidateResponse]:
    return [CandidateResponse(**asdict(c)) for c in get_resolver().find_candidates(sku, quantity)]


@stock_router.get("/picking-plan", response_model=PickingPlanResponse)
async def picking_plan(sku: str, quantity: int) -> PickingPlanResponse:
    return PickingPlanResponse(**asdict(get_resolver().plan_picking(sku, quantity)))


# ---------------------------------------------------------------------------
# Task Router
# ---------------------------------------------------------------------------
task_router = APIRouter(prefix="/tasks", tags=["tasks"])


@task_router.post("", status_code=201, response_model=TaskIdResponse)
async def create_task(body: CreateTaskRequest) -> TaskIdResponse:
    command = CreateFulfillmentTask(
        source_ref=body.source_ref,
        source_type=body.source_type,
        priority=body.priority,
        delivery_date=body.delivery_date,
        customer_code=body.customer_code,
        warehouse_id=body.warehouse_id,
        items=json.dumps([item.model_dump() for item in body.items]),
    )
    result = current_domain.process(command, asynchronous=False)
    return TaskIdResponse(task_id=result)


@task_router.get("", response_model=list[TaskResponse])
async def list_tasks(
    status: str | None = None, source_type: str | None = None, include_retired: bool = True
) -> list[TaskResponse]:
    tasks = get_coordinator().list_tasks(status=status, source_type=source_type, include_retired=include_retired)
    return [_task_response(task) for task in tasks]


@task_router.get("/statistics", response_model=TaskStatisticsResponse)
async def task_statistics() -> TaskStatisticsResponse:
    return TaskStatisticsResponse(**get_coordinator().statistics())


@task_router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str) -> TaskResponse:
    return _task_response(get_coordinator().get_task(task_id))


@task_router.put("/{task_id}/items/{item_id}/status", response_model=AdvanceResponse)
async def advance_item(task_id: str, item_id: str, body: AdvanceItemRequest) -> AdvanceResponse:
    command = AdvanceItem(
        task_id=task_id,
        item_id=item_id,
        target_status=body.status,
        location=body.location,
        lot=body.lot,
        fulfilled_quantity=body.fulfilled_quantity,
        expected_status=body.expected_status,
        reason=body.reason,
    )
    return _advance_response(current_domain.process(command, asynchronous=False))


@task_router.put("/{task_id}/ship", response_model=TaskIdResponse)
async def ship_task(task_id: str) -> TaskIdResponse:
    current_domain.process(ShipTask(task_id=task_id), asynchronous=False)
    return TaskIdResponse(task_id=task_id)


# ---------------------------------------------------------------------------
# Item Router
# ---------------------------------------------------------------------------
item_router = APIRouter(prefix="/items", tags=["tasks"])


@item_router.put("/{item_id}/cancel", response_model=AdvanceResponse)
async def cancel_item(item_id: str, body: CancelItemRequest) -> AdvanceResponse:
    command = CancelItem(item_id=item_id, task_id=body.task_id, reason=body.reason)
    return _advance_response(current_domain.process(command, asynchronous=False))
