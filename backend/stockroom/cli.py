"""Management CLI for the stock ledger.

Usage:
    python -m stockroom.cli create-tables   # Create all tables (dev / SQLite)
    python -m stockroom.cli check-ledger    # Reconcile stock levels with movements
"""

import asyncio
import sys

from stockroom.database import Base, async_session, engine
from stockroom.models import *  # noqa: F401,F403
from stockroom.services.reconciliation import run_ledger_reconciliation


async def create_tables() -> None:
    """Create every table on the configured database (no Alembic history)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Tables created.")


async def check_ledger() -> int:
    """Print the reconciliation report; return 1 when the ledger is inconsistent."""
    async with async_session() as db:
        report = await run_ledger_reconciliation(db)
    await engine.dispose()

    print(f"  Pairs checked: {report['pairs_checked']}")
    for b in report["chain_breaks"]:
        print(
            f"  CHAIN BREAK movement {b['movement_id']} "
            f"({b['product_id']} @ {b['warehouse_id']}): "
            f"expected previous {b['expected_previous']}, got {b['actual_previous']}"
        )
    for d in report["level_drifts"]:
        print(
            f"  DRIFT {d['product_id']} @ {d['warehouse_id']}: "
            f"stock {d['stock_quantity']}, ledger {d['ledger_quantity']}"
        )

    if report["is_consistent"]:
        print("  OK")
        return 0
    return 1


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "create-tables":
        asyncio.run(create_tables())
    elif cmd == "check-ledger":
        sys.exit(asyncio.run(check_ledger()))
    else:
        print("Usage: python -m stockroom.cli [create-tables|check-ledger]")
        sys.exit(2)
