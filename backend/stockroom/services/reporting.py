"""Read-only reporting over the catalog, stock levels and operations.

Nothing here writes. KPIs are re-aggregated from current state on every
(uncached) call.
"""

from collections import defaultdict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.config import settings
from stockroom.models.catalog import Product
from stockroom.models.operation import Operation, OperationStatus, OperationType
from stockroom.models.stock import StockLevel, StockMovement
from stockroom.utils.cache import cached

PENDING_EXCLUDED = (OperationStatus.DONE.value, OperationStatus.CANCELED.value)


async def _stock_by_product(
    db: AsyncSession, warehouse_id: str | None = None
) -> dict[str, list[StockLevel]]:
    query = select(StockLevel)
    if warehouse_id:
        query = query.where(StockLevel.warehouse_id == warehouse_id)
    levels = (await db.execute(query)).scalars().all()

    grouped: dict[str, list[StockLevel]] = defaultdict(list)
    for level in levels:
        grouped[level.product_id].append(level)
    return grouped


async def _active_products(db: AsyncSession, category_id: str | None = None) -> list[Product]:
    query = select(Product).where(Product.is_active == True)  # noqa: E712
    if category_id:
        query = query.where(Product.category_id == category_id)
    return list((await db.execute(query.order_by(Product.name))).scalars().all())


@cached(ttl=settings.dashboard_cache_ttl, prefix="dashboard")
async def get_dashboard_kpis(db: AsyncSession) -> dict:
    """Headline numbers for the dashboard.

    A product counts as low stock when it has stock but no more than its
    reorder level; products with zero stock count as out of stock only.
    """
    products = await _active_products(db)
    stock = await _stock_by_product(db)

    total_products = low_stock = out_of_stock = 0
    for product in products:
        total = sum(level.quantity for level in stock.get(product.id, []))
        if total > 0:
            total_products += 1
        else:
            out_of_stock += 1
        if product.reorder_level and 0 < total <= product.reorder_level:
            low_stock += 1

    pending = dict(
        (
            await db.execute(
                select(Operation.type, func.count(Operation.id))
                .where(Operation.status.not_in(PENDING_EXCLUDED))
                .group_by(Operation.type)
            )
        ).all()
    )

    return {
        "total_products": total_products,
        "low_stock_items": low_stock,
        "out_of_stock_items": out_of_stock,
        "pending_receipts": pending.get(OperationType.RECEIPT.value, 0),
        "pending_deliveries": pending.get(OperationType.DELIVERY.value, 0),
        "pending_transfers": pending.get(OperationType.TRANSFER.value, 0),
    }


async def list_products_with_stock(
    db: AsyncSession,
    *,
    category_id: str | None = None,
    warehouse_id: str | None = None,
) -> list[dict]:
    """Active products with stock totals (optionally for one warehouse)."""
    products = await _active_products(db, category_id)
    stock = await _stock_by_product(db, warehouse_id)

    rows = []
    for product in products:
        levels = stock.get(product.id, [])
        total = sum(level.quantity for level in levels)
        reserved = sum(level.reserved_quantity for level in levels)
        rows.append({
            **_product_fields(product),
            "category": product.category.name if product.category else "Unknown",
            "total_stock": total,
            "total_reserved": reserved,
            "available_stock": total - reserved,
            "is_low_stock": (
                total <= product.reorder_level if product.reorder_level else False
            ),
            "stock_by_warehouse": [
                {
                    "warehouse_id": level.warehouse_id,
                    "quantity": level.quantity,
                    "reserved_quantity": level.reserved_quantity,
                }
                for level in levels
            ],
        })
    return rows


async def list_low_stock(db: AsyncSession) -> list[dict]:
    """Products with a reorder level whose total stock is at or below it."""
    products = await _active_products(db)
    stock = await _stock_by_product(db)

    rows = []
    for product in products:
        if not product.reorder_level:
            continue
        total = sum(level.quantity for level in stock.get(product.id, []))
        if total <= product.reorder_level:
            rows.append({
                **_product_fields(product),
                "category": product.category.name if product.category else "Unknown",
                "current_stock": total,
            })
    return rows


async def list_stock_levels(
    db: AsyncSession,
    *,
    product_id: str | None = None,
    warehouse_id: str | None = None,
) -> list[StockLevel]:
    query = select(StockLevel)
    if product_id:
        query = query.where(StockLevel.product_id == product_id)
    if warehouse_id:
        query = query.where(StockLevel.warehouse_id == warehouse_id)
    result = await db.execute(
        query.order_by(StockLevel.product_id, StockLevel.warehouse_id)
    )
    return list(result.scalars().all())


async def list_movements(
    db: AsyncSession,
    *,
    product_id: str | None = None,
    warehouse_id: str | None = None,
    operation_id: str | None = None,
    direction: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StockMovement], int]:
    """Movement history, newest first, with the unpaginated total."""
    base = select(StockMovement)
    if product_id:
        base = base.where(StockMovement.product_id == product_id)
    if warehouse_id:
        base = base.where(StockMovement.warehouse_id == warehouse_id)
    if operation_id:
        base = base.where(StockMovement.operation_id == operation_id)
    if direction:
        base = base.where(StockMovement.direction == direction)

    total = (
        await db.execute(select(func.count()).select_from(base.subquery()))
    ).scalar() or 0

    items = (
        await db.execute(
            base.order_by(StockMovement.id.desc()).limit(limit).offset(offset)
        )
    ).scalars().all()
    return list(items), total


def _product_fields(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "sku": product.sku,
        "category_id": product.category_id,
        "unit_of_measure": product.unit_of_measure,
        "reorder_level": product.reorder_level,
        "reorder_quantity": product.reorder_quantity,
        "is_active": product.is_active,
        "created_at": product.created_at,
    }
