"""Pydantic schemas for categories, warehouses and products."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


# ── Categories ──────────────────────────────────────────────

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class CategoryOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}


# ── Warehouses ──────────────────────────────────────────────

class WarehouseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=30)
    address: str | None = None


class WarehouseOut(BaseModel):
    id: str
    name: str
    code: str
    address: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}


# ── Products ────────────────────────────────────────────────

class ProductCreate(BaseModel):
    """Payload for POST /api/products.

    ``initial_stock`` and ``warehouse_id`` go together: when both are given
    the opening balance is booked through the stock ledger.
    """
    name: str = Field(..., min_length=1, max_length=255)
    sku: str = Field(..., min_length=1, max_length=100)
    category_id: str
    unit_of_measure: str = Field(..., min_length=1, max_length=30)
    reorder_level: int | None = Field(None, ge=0)
    reorder_quantity: int | None = Field(None, ge=0)

    initial_stock: int | None = Field(None, ge=0)
    warehouse_id: str | None = None

    @model_validator(mode="after")
    def initial_stock_needs_warehouse(self):
        if self.initial_stock and not self.warehouse_id:
            raise ValueError("warehouse_id is required when initial_stock is set")
        return self


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    category_id: str | None = None
    unit_of_measure: str | None = Field(None, min_length=1, max_length=30)
    reorder_level: int | None = Field(None, ge=0)
    reorder_quantity: int | None = Field(None, ge=0)


class ProductOut(BaseModel):
    id: str
    name: str
    sku: str
    category_id: str
    unit_of_measure: str
    reorder_level: int | None = None
    reorder_quantity: int | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class WarehouseStockOut(BaseModel):
    warehouse_id: str
    quantity: int
    reserved_quantity: int

    model_config = {"from_attributes": True}


class ProductWithStockOut(ProductOut):
    """Product row enriched with stock totals across warehouses."""
    category: str
    total_stock: int
    total_reserved: int
    available_stock: int
    is_low_stock: bool
    stock_by_warehouse: list[WarehouseStockOut] = []


class LowStockProductOut(ProductOut):
    category: str
    current_stock: int
