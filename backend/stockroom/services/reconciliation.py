"""Ledger reconciliation — detects gaps between stock levels and movements.

Two checks, both read-only:

  CHECK 1  movement chain: for each (product, warehouse) pair, walking the
           ledger in insertion order, every movement's previous_quantity
           must equal the new_quantity of the movement before it (the first
           movement must start from 0).
  CHECK 2  level drift: the last movement's new_quantity must equal the
           StockLevel.quantity of the pair (0 when no row exists).

Both hold under single-writer processing; a break means something changed
stock outside the ledger.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.models.stock import StockLevel, StockMovement


@dataclass
class ChainBreak:
    product_id: str
    warehouse_id: str
    movement_id: int
    expected_previous: int
    actual_previous: int


@dataclass
class LevelDrift:
    product_id: str
    warehouse_id: str
    stock_quantity: int
    ledger_quantity: int


def _chain_breaks(movements: list[StockMovement]) -> list[ChainBreak]:
    breaks = []
    expected = 0
    for movement in movements:
        if movement.previous_quantity != expected:
            breaks.append(ChainBreak(
                product_id=movement.product_id,
                warehouse_id=movement.warehouse_id,
                movement_id=movement.id,
                expected_previous=expected,
                actual_previous=movement.previous_quantity,
            ))
        expected = movement.new_quantity
    return breaks


async def verify_movement_chain(
    db: AsyncSession, product_id: str, warehouse_id: str
) -> list[ChainBreak]:
    """CHECK 1 for a single (product, warehouse) pair."""
    result = await db.execute(
        select(StockMovement)
        .where(
            StockMovement.product_id == product_id,
            StockMovement.warehouse_id == warehouse_id,
        )
        .order_by(StockMovement.id)
    )
    return _chain_breaks(list(result.scalars().all()))


async def run_ledger_reconciliation(db: AsyncSession) -> dict:
    """Run both checks over every pair that has stock or movements."""
    movements = (
        await db.execute(select(StockMovement).order_by(StockMovement.id))
    ).scalars().all()
    # Plain rows, not entities, so stale identity-map objects never leak in
    levels = (
        await db.execute(
            select(StockLevel.product_id, StockLevel.warehouse_id, StockLevel.quantity)
        )
    ).all()

    by_pair: dict[tuple[str, str], list[StockMovement]] = {}
    for movement in movements:
        by_pair.setdefault((movement.product_id, movement.warehouse_id), []).append(movement)
    stock = {(product_id, warehouse_id): quantity for product_id, warehouse_id, quantity in levels}

    chain_breaks: list[ChainBreak] = []
    level_drifts: list[LevelDrift] = []
    pairs = sorted(set(by_pair) | set(stock))

    for pair in pairs:
        ledger_rows = by_pair.get(pair, [])
        chain_breaks.extend(_chain_breaks(ledger_rows))

        ledger_quantity = ledger_rows[-1].new_quantity if ledger_rows else 0
        stock_quantity = stock.get(pair, 0)
        if ledger_quantity != stock_quantity:
            level_drifts.append(LevelDrift(
                product_id=pair[0],
                warehouse_id=pair[1],
                stock_quantity=stock_quantity,
                ledger_quantity=ledger_quantity,
            ))

    return {
        "pairs_checked": len(pairs),
        "chain_breaks": [asdict(b) for b in chain_breaks],
        "level_drifts": [asdict(d) for d in level_drifts],
        "is_consistent": not chain_breaks and not level_drifts,
    }
