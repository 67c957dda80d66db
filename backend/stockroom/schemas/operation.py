"""Pydantic schemas for operations and operation lines."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from stockroom.models.operation import OperationStatus, OperationType


# ── Create ───────────────────────────────────────────────────

class OperationCreate(BaseModel):
    """Payload for POST /api/operations — a new draft operation."""
    type: OperationType
    warehouse_id: str
    destination_warehouse_id: str | None = None
    supplier_name: str | None = Field(None, max_length=255)
    customer_name: str | None = Field(None, max_length=255)
    notes: str | None = None
    scheduled_date: datetime | None = None

    @model_validator(mode="after")
    def destination_only_for_transfers(self):
        if self.type == OperationType.TRANSFER:
            if not self.destination_warehouse_id:
                raise ValueError("destination_warehouse_id is required for transfers")
            if self.destination_warehouse_id == self.warehouse_id:
                raise ValueError("Transfer source and destination must differ")
        elif self.destination_warehouse_id:
            raise ValueError("destination_warehouse_id is only valid for transfers")
        return self


class OperationLineCreate(BaseModel):
    product_id: str
    # For adjustments this is the counted target quantity (may be 0)
    planned_quantity: int = Field(..., ge=0)
    unit_price: float | None = Field(None, ge=0)


class OperationLineActualUpdate(BaseModel):
    """Record what was actually received / shipped / counted."""
    actual_quantity: int = Field(..., ge=0)


class OperationStatusUpdate(BaseModel):
    status: OperationStatus


# ── Read ─────────────────────────────────────────────────────

class OperationLineOut(BaseModel):
    id: str
    operation_id: str
    product_id: str
    planned_quantity: int
    actual_quantity: int | None = None
    unit_price: float | None = None
    effective_quantity: int

    model_config = {"from_attributes": True}


class OperationOut(BaseModel):
    id: str
    type: str
    reference: str
    status: str
    warehouse_id: str
    destination_warehouse_id: str | None = None
    supplier_name: str | None = None
    customer_name: str | None = None
    notes: str | None = None
    scheduled_date: datetime | None = None
    completed_date: datetime | None = None
    user_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OperationDetailOut(OperationOut):
    """Operation with resolved warehouse names and its lines."""
    warehouse: str
    destination_warehouse: str | None = None
    lines: list[OperationLineOut] = []
    total_items: int


class ProcessResult(BaseModel):
    """Response from POST /api/operations/{id}/process."""
    operation_id: str
    reference: str
    status: str
    completed_date: datetime | None = None
