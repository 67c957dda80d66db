"""Catalog router — categories, warehouses and products.

Endpoints:
    GET   /api/categories               Active categories
    POST  /api/categories               Create a category
    GET   /api/warehouses               Active warehouses
    POST  /api/warehouses               Create a warehouse (unique code)
    GET   /api/warehouses/{id}          Warehouse detail
    GET   /api/products                 Products with stock totals
    POST  /api/products                 Create a product (unique SKU)
    GET   /api/products/low-stock       Products at or below reorder level
    GET   /api/products/{id}            Product detail
    PATCH /api/products/{id}            Update a product
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.auth.deps import CurrentUser, require_permission
from stockroom.database import get_db
from stockroom.schemas.catalog import (
    CategoryCreate,
    CategoryOut,
    LowStockProductOut,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    ProductWithStockOut,
    WarehouseCreate,
    WarehouseOut,
)
from stockroom.services import catalog, reporting
from stockroom.utils.cache import invalidate_cache

categories_router = APIRouter()
warehouses_router = APIRouter()
products_router = APIRouter()


# ── Categories ──────────────────────────────────────────────

@categories_router.get("/", response_model=list[CategoryOut])
async def list_categories(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.read")),
):
    return await catalog.list_categories(db)


@categories_router.post("/", response_model=CategoryOut, status_code=201)
async def create_category(
    body: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.write")),
):
    return await catalog.create_category(db, body)


# ── Warehouses ──────────────────────────────────────────────

@warehouses_router.get("/", response_model=list[WarehouseOut])
async def list_warehouses(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.read")),
):
    return await catalog.list_warehouses(db)


@warehouses_router.post("/", response_model=WarehouseOut, status_code=201)
async def create_warehouse(
    body: WarehouseCreate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.write")),
):
    return await catalog.create_warehouse(db, body)


@warehouses_router.get("/{warehouse_id}", response_model=WarehouseOut)
async def get_warehouse(
    warehouse_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.read")),
):
    return await catalog.get_warehouse(db, warehouse_id)


# ── Products ────────────────────────────────────────────────

@products_router.get("/", response_model=list[ProductWithStockOut])
async def list_products(
    category_id: str | None = Query(None),
    warehouse_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.read")),
):
    """Active products with total, reserved and available stock."""
    return await reporting.list_products_with_stock(
        db, category_id=category_id, warehouse_id=warehouse_id
    )


@products_router.post("/", response_model=ProductOut, status_code=201)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission("catalog.write")),
):
    """Create a product; an initial stock quantity is booked as an `in` movement."""
    product = await catalog.create_product(db, body, user.id)
    await db.commit()
    await invalidate_cache("dashboard:*")
    return product


@products_router.get("/low-stock", response_model=list[LowStockProductOut])
async def list_low_stock(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.read")),
):
    return await reporting.list_low_stock(db)


@products_router.get("/{product_id}", response_model=ProductOut)
async def get_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.read")),
):
    return await catalog.get_product(db, product_id)


@products_router.patch("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: str,
    body: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(require_permission("catalog.write")),
):
    product = await catalog.update_product(db, product_id, body)
    await db.commit()
    await invalidate_cache("dashboard:*")
    return product
