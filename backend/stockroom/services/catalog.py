"""Catalog & location registry service.

Simple create/read glue for categories, warehouses and products. The only
write that touches stock is a product's opening balance, which goes
through the stock ledger like any other movement.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.exceptions import DuplicateKeyError, ResourceNotFoundError
from stockroom.models.catalog import Category, Product, Warehouse
from stockroom.schemas.catalog import (
    CategoryCreate,
    ProductCreate,
    ProductUpdate,
    WarehouseCreate,
)
from stockroom.services import ledger


# ── Lookups ─────────────────────────────────────────────────

async def get_category(db: AsyncSession, category_id: str) -> Category:
    category = await db.get(Category, category_id)
    if not category:
        raise ResourceNotFoundError("Category", category_id)
    return category


async def get_warehouse(db: AsyncSession, warehouse_id: str) -> Warehouse:
    warehouse = await db.get(Warehouse, warehouse_id)
    if not warehouse:
        raise ResourceNotFoundError("Warehouse", warehouse_id)
    return warehouse


async def get_product(db: AsyncSession, product_id: str) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise ResourceNotFoundError("Product", product_id)
    return product


# ── Categories ──────────────────────────────────────────────

async def list_categories(db: AsyncSession) -> list[Category]:
    result = await db.execute(
        select(Category)
        .where(Category.is_active == True)  # noqa: E712
        .order_by(Category.name)
    )
    return list(result.scalars().all())


async def create_category(db: AsyncSession, body: CategoryCreate) -> Category:
    category = Category(name=body.name, description=body.description, is_active=True)
    db.add(category)
    await db.flush()
    return category


# ── Warehouses ──────────────────────────────────────────────

async def list_warehouses(db: AsyncSession) -> list[Warehouse]:
    result = await db.execute(
        select(Warehouse)
        .where(Warehouse.is_active == True)  # noqa: E712
        .order_by(Warehouse.code)
    )
    return list(result.scalars().all())


async def create_warehouse(db: AsyncSession, body: WarehouseCreate) -> Warehouse:
    existing = await db.execute(select(Warehouse.id).where(Warehouse.code == body.code))
    if existing.scalar_one_or_none():
        raise DuplicateKeyError("Warehouse", "code", body.code)

    warehouse = Warehouse(
        name=body.name,
        code=body.code,
        address=body.address,
        is_active=True,
    )
    db.add(warehouse)
    await db.flush()
    return warehouse


# ── Products ────────────────────────────────────────────────

async def create_product(db: AsyncSession, body: ProductCreate, user_id: str) -> Product:
    """Create a product, booking ``initial_stock`` at ``warehouse_id`` if given."""
    existing = await db.execute(select(Product.id).where(Product.sku == body.sku))
    if existing.scalar_one_or_none():
        raise DuplicateKeyError("Product", "SKU", body.sku)

    await get_category(db, body.category_id)
    if body.warehouse_id:
        await get_warehouse(db, body.warehouse_id)

    product = Product(
        name=body.name,
        sku=body.sku,
        category_id=body.category_id,
        unit_of_measure=body.unit_of_measure,
        reorder_level=body.reorder_level,
        reorder_quantity=body.reorder_quantity,
        is_active=True,
    )
    db.add(product)
    await db.flush()  # populate product.id

    if body.initial_stock and body.warehouse_id:
        applied = await ledger.apply_delta(
            db, product.id, body.warehouse_id, body.initial_stock
        )
        await ledger.record_movement(
            db, applied, "in",
            reference=f"INITIAL-{product.sku}",
            user_id=user_id,
            notes="Initial stock",
        )

    return product


async def update_product(db: AsyncSession, product_id: str, body: ProductUpdate) -> Product:
    product = await get_product(db, product_id)
    updates = body.model_dump(exclude_unset=True)

    if "category_id" in updates and updates["category_id"] is not None:
        await get_category(db, updates["category_id"])

    for field, value in updates.items():
        if value is None and field in ("name", "category_id", "unit_of_measure"):
            continue  # required columns are never cleared
        setattr(product, field, value)

    await db.flush()
    return product
