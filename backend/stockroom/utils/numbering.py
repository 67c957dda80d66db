"""Operation reference generation.

References look like `{TYPE}-{seq:5}`:
  receipt     → REC-00001
  delivery    → DEL-00001
  transfer    → TRA-00001
  adjustment  → ADJ-00001

The sequence is a per-type counter row in `reference_counters`, locked with
SELECT … FOR UPDATE for the increment, so it stays unique and gap-free
within committed transactions.
"""

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.models.operation import ReferenceCounter

SEQ_WIDTH = 5


def format_reference(operation_type: str, seq_num: int) -> str:
    prefix = operation_type[:3].upper()
    return f"{prefix}-{seq_num:0{SEQ_WIDTH}d}"


async def _ensure_counter(db: AsyncSession, name: str) -> None:
    """Create the counter row if missing; a concurrent creator wins silently."""
    dialect = db.get_bind().dialect.name
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
    await db.execute(
        insert(ReferenceCounter)
        .values(name=name, current_value=0)
        .on_conflict_do_nothing(index_elements=["name"])
    )


async def next_sequence_value(db: AsyncSession, name: str) -> int:
    """Allocate the next value of the named counter."""
    await _ensure_counter(db, name)
    result = await db.execute(
        select(ReferenceCounter)
        .where(ReferenceCounter.name == name)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    counter = result.scalar_one()
    counter.current_value += 1
    await db.flush()
    return counter.current_value


async def next_reference(db: AsyncSession, operation_type: str) -> str:
    """Generate the next reference for an operation of `operation_type`.

    Args:
        db: Database session (the caller's transaction)
        operation_type: One of "receipt", "delivery", "transfer", "adjustment"

    Returns:
        Generated reference, e.g. "REC-00042"
    """
    seq_num = await next_sequence_value(db, operation_type)
    return format_reference(operation_type, seq_num)
