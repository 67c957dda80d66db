"""Pydantic schemas for stock levels, movements and ledger reconciliation."""

from datetime import datetime

from pydantic import BaseModel


class StockLevelOut(BaseModel):
    id: str
    product_id: str
    warehouse_id: str
    quantity: int
    reserved_quantity: int
    updated_at: datetime

    # Resolved names from relationships
    product_name: str | None = None
    sku: str | None = None
    warehouse_name: str | None = None

    model_config = {"from_attributes": True}


class StockMovementOut(BaseModel):
    id: int
    product_id: str
    warehouse_id: str
    operation_id: str | None = None
    direction: str
    quantity: int
    requested_quantity: int
    previous_quantity: int
    new_quantity: int
    reference: str
    notes: str | None = None
    user_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ChainBreakOut(BaseModel):
    product_id: str
    warehouse_id: str
    movement_id: int
    expected_previous: int
    actual_previous: int


class LevelDriftOut(BaseModel):
    product_id: str
    warehouse_id: str
    stock_quantity: int
    ledger_quantity: int


class ReconciliationReport(BaseModel):
    pairs_checked: int
    chain_breaks: list[ChainBreakOut]
    level_drifts: list[LevelDriftOut]
    is_consistent: bool
