"""Stock ledger — the only code that changes stock quantities.

Two primitives, always called inside the caller's transaction:

  apply_delta()      read-modify-write of one StockLevel row (row-locked),
                     with the zero floor enforced
  record_movement()  append one immutable StockMovement carrying the
                     before/after snapshot returned by apply_delta()

Floor policy (settings.negative_stock_policy):
  clamp   over-decrements are truncated at zero; the movement stores the
          applied change in `quantity` and the request in
          `requested_quantity`
  reject  over-decrements raise InsufficientStockError and the enclosing
          transaction rolls back
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.config import settings
from stockroom.exceptions import BusinessLogicError, InsufficientStockError
from stockroom.models.stock import MOVEMENT_DIRECTIONS, StockLevel, StockMovement

logger = logging.getLogger(__name__)

Direction = Literal["in", "out", "adjustment"]
StockPolicy = Literal["clamp", "reject"]


@dataclass(frozen=True, order=True)
class StockKey:
    product_id: str
    warehouse_id: str


@dataclass(frozen=True)
class AppliedDelta:
    """Outcome of one apply_delta() call."""
    product_id: str
    warehouse_id: str
    requested: int
    previous_quantity: int
    new_quantity: int

    @property
    def applied(self) -> int:
        return self.new_quantity - self.previous_quantity

    @property
    def clamped(self) -> bool:
        return self.applied != self.requested


async def _get_stock_level(
    db: AsyncSession, product_id: str, warehouse_id: str
) -> StockLevel | None:
    result = await db.execute(
        select(StockLevel)
        .where(
            StockLevel.product_id == product_id,
            StockLevel.warehouse_id == warehouse_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_quantity(db: AsyncSession, product_id: str, warehouse_id: str) -> int:
    """Current on-hand quantity for a pair (0 when no row exists)."""
    result = await db.execute(
        select(StockLevel.quantity).where(
            StockLevel.product_id == product_id,
            StockLevel.warehouse_id == warehouse_id,
        )
    )
    return result.scalar_one_or_none() or 0


async def lock_stock_levels(db: AsyncSession, keys: Iterable[StockKey]) -> None:
    """Lock existing StockLevel rows for `keys` in (product, warehouse) order.

    Taking every lock up front, in one global order, keeps two processors
    with overlapping pairs from deadlocking on each other.
    """
    ordered = sorted(set(keys))
    if not ordered:
        return
    await db.execute(
        select(StockLevel.id)
        .where(
            or_(*(
                and_(
                    StockLevel.product_id == k.product_id,
                    StockLevel.warehouse_id == k.warehouse_id,
                )
                for k in ordered
            ))
        )
        .order_by(StockLevel.product_id, StockLevel.warehouse_id)
        .with_for_update()
    )


async def apply_delta(
    db: AsyncSession,
    product_id: str,
    warehouse_id: str,
    delta: int,
    *,
    policy: StockPolicy | None = None,
) -> AppliedDelta:
    """Add `delta` to the on-hand quantity of (product, warehouse).

    A missing row is created only for a positive delta; a non-positive
    delta against a missing row changes nothing and reports 0.
    """
    policy = policy or settings.negative_stock_policy
    stock = await _get_stock_level(db, product_id, warehouse_id)

    if stock is None:
        if delta > 0:
            db.add(StockLevel(
                product_id=product_id,
                warehouse_id=warehouse_id,
                quantity=delta,
                reserved_quantity=0,
            ))
            # Surfaces a concurrent insert of the same pair as IntegrityError
            await db.flush()
            return AppliedDelta(product_id, warehouse_id, delta, 0, delta)
        if delta < 0 and policy == "reject":
            raise InsufficientStockError(product_id, warehouse_id, 0, -delta)
        return AppliedDelta(product_id, warehouse_id, delta, 0, 0)

    previous = stock.quantity
    new_quantity = previous + delta
    if new_quantity < 0:
        if policy == "reject":
            raise InsufficientStockError(product_id, warehouse_id, previous, -delta)
        logger.warning(
            "Stock floor hit for product %s at warehouse %s: %s on hand, delta %s",
            product_id, warehouse_id, previous, delta,
        )
        new_quantity = 0

    stock.quantity = new_quantity
    await db.flush()
    return AppliedDelta(product_id, warehouse_id, delta, previous, new_quantity)


async def set_quantity(
    db: AsyncSession,
    product_id: str,
    warehouse_id: str,
    target: int,
    *,
    policy: StockPolicy | None = None,
) -> AppliedDelta:
    """Bring on-hand stock to `target` (stock counts / adjustments)."""
    if target < 0:
        raise BusinessLogicError(f"Adjusted quantity cannot be negative ({target})")
    stock = await _get_stock_level(db, product_id, warehouse_id)
    current = stock.quantity if stock else 0
    return await apply_delta(db, product_id, warehouse_id, target - current, policy=policy)


async def record_movement(
    db: AsyncSession,
    applied: AppliedDelta,
    direction: Direction,
    reference: str,
    user_id: str,
    *,
    operation_id: str | None = None,
    notes: str | None = None,
) -> StockMovement:
    """Append the ledger entry for a change made by apply_delta()."""
    if direction not in MOVEMENT_DIRECTIONS:
        raise ValueError(f"Unknown movement direction: {direction}")

    movement = StockMovement(
        product_id=applied.product_id,
        warehouse_id=applied.warehouse_id,
        operation_id=operation_id,
        direction=direction,
        quantity=applied.applied,
        requested_quantity=applied.requested,
        previous_quantity=applied.previous_quantity,
        new_quantity=applied.new_quantity,
        reference=reference,
        notes=notes,
        user_id=user_id,
    )
    db.add(movement)
    await db.flush()
    return movement
