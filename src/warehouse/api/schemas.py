"""Pydantic request/response schemas for the Warehouse API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands and engine read models.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Product / conversion schemas
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    sku: str
    product_type: str | None = None
    tier1_name: str | None = None
    tier2_name: str | None = None
    tier3_name: str | None = None
    rate1: int | None = Field(default=None, ge=0)
    rate2: int | None = Field(default=None, ge=0)


class UpdateRatesRequest(BaseModel):
    rate1: int = Field(ge=0)
    rate2: int = Field(ge=0)


class TierQuantitiesSchema(BaseModel):
    qty1: int = Field(default=0, ge=0)
    qty2: int = Field(default=0, ge=0)
    qty3: int = Field(default=0, ge=0)


class BaseQuantityRequest(BaseModel):
    base_quantity: int = Field(ge=0)


class BaseQuantityResponse(BaseModel):
    sku: str
    base_quantity: int


class TierBreakdownResponse(BaseModel):
    sku: str
    base_quantity: int
    qty1: int
    qty2: int
    qty3: int
    display: str


class ProductIdResponse(BaseModel):
    sku: str


# ---------------------------------------------------------------------------
# Location schemas
# ---------------------------------------------------------------------------
class RegisterLocationRequest(BaseModel):
    code: str
    capacity: int | None = Field(default=None, ge=0)
    capacity_tier1: int | None = Field(default=None, ge=0)
    warehouse_id: str | None = None


class ChangeCapacityRequest(BaseModel):
    capacity: int | None = Field(default=None, ge=0)
    capacity_tier1: int | None = Field(default=None, ge=0)


class LocationIdResponse(BaseModel):
    code: str


# ---------------------------------------------------------------------------
# Stock schemas
# ---------------------------------------------------------------------------
class RecordInventoryRequest(TierQuantitiesSchema):
    sku: str
    location_code: str
    lot: str | None = None
    manufactured_on: date | None = None
    warehouse_id: str | None = None


class AdjustInventoryRequest(BaseModel):
    qty1: int = Field(ge=0)
    qty2: int = Field(ge=0)
    qty3: int = Field(ge=0)
    reason: str | None = None


class RecordIdResponse(BaseModel):
    record_id: str


class LocationStockResponse(BaseModel):
    location: str
    sku: str
    qty1: int
    qty2: int
    qty3: int
    base_total: int
    capacity: int
    utilization: float
    lots: int
    committed: int
    available: int


class CommitmentResponse(BaseModel):
    handle_id: str
    sku: str
    location: str
    lot: str | None = None
    quantity: int
    qty1: int
    qty2: int
    qty3: int
    reference: str | None = None
    status: str
    created_at: datetime


class CommitmentTotalResponse(BaseModel):
    location: str
    sku: str
    commitments: int
    quantity: int
    qty1: int
    qty2: int
    qty3: int


class CandidateResponse(BaseModel):
    location: str
    lot: str | None = None
    manufactured_on: date | None = None
    on_hand: int
    available: int
    insufficient: bool
    shortage: int


class PickAllocationResponse(BaseModel):
    location: str
    lot: str | None = None
    manufactured_on: date | None = None
    quantity: int


class PickingPlanResponse(BaseModel):
    sku: str
    requested: int
    total_available: int
    status: str
    percentage: float
    shortage: int
    allocations: list[PickAllocationResponse]
    route: list[str]


# ---------------------------------------------------------------------------
# Task schemas
# ---------------------------------------------------------------------------
class TaskItemRequest(TierQuantitiesSchema):
    sku: str


class CreateTaskRequest(BaseModel):
    source_ref: str
    source_type: str | None = None
    priority: str | None = None
    delivery_date: date | None = None
    customer_code: str | None = None
    warehouse_id: str | None = None
    items: list[TaskItemRequest]


class AdvanceItemRequest(BaseModel):
    status: str
    location: str | None = None
    lot: str | None = None
    fulfilled_quantity: int | None = Field(default=None, ge=0)
    expected_status: str | None = None
    reason: str | None = None


class CancelItemRequest(BaseModel):
    task_id: str | None = None
    reason: str | None = None


class TaskIdResponse(BaseModel):
    task_id: str


class AdvanceResponse(BaseModel):
    task_id: str
    item_id: str
    previous_status: str
    status: str
    task_status: str
    changed: bool
    location: str | None = None


class TaskItemResponse(BaseModel):
    item_id: str
    line_number: int
    sku: str
    qty1: int
    qty2: int
    qty3: int
    requested_quantity: int
    fulfilled_quantity: int
    status: str
    allocated_location: str | None = None
    allocated_lot: str | None = None


class TaskResponse(BaseModel):
    task_id: str
    source_ref: str
    source_type: str
    priority: str
    status: str
    delivery_date: date | None = None
    customer_code: str | None = None
    progress: float
    items_owed: int
    overdue: bool
    items: list[TaskItemResponse]


class TaskStatisticsResponse(BaseModel):
    pending: int
    in_progress: int
    completed: int
    cancelled: int
    shipped: int
    total: int
    overdue: int
    urgent: int
