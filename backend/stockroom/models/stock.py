"""Stock levels & movement ledger.

StockLevel holds the current on-hand quantity of one product at one
warehouse. There is at most one row per (product, warehouse) pair.

StockMovement is the append-only audit ledger: every quantity change is
recorded with its before/after snapshot. Rows are never updated or
deleted; the mapper listeners below refuse both.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.database import Base
from stockroom.exceptions import ImmutableMovementError

MOVEMENT_DIRECTIONS = ("in", "out", "adjustment")


class StockLevel(Base):
    """Current on-hand quantity per (product, warehouse)."""
    __tablename__ = "stock_levels"
    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_stock_levels_product_warehouse"),
        CheckConstraint("quantity >= 0", name="ck_stock_levels_quantity_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_stock_levels_reserved_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False, index=True
    )
    warehouse_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("warehouses.id"), nullable=False, index=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Earmarked for pending outbound operations; not yet decremented
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    product = relationship("Product", lazy="selectin")
    warehouse = relationship("Warehouse", lazy="selectin")


class StockMovement(Base):
    """Immutable ledger entry for one stock change."""
    __tablename__ = "stock_movements"

    # Autoincrement id doubles as the ledger's insertion order
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )

    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False, index=True
    )
    warehouse_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("warehouses.id"), nullable=False, index=True
    )
    operation_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("operations.id"), index=True
    )

    # in | out | adjustment
    direction: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # Applied change: positive for stock in, negative for stock out
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Change the caller asked for; differs from quantity when the floor clamped
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    previous_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    reference: Mapped[str] = mapped_column(String(50), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )

    operation = relationship("Operation", back_populates="movements")


@event.listens_for(StockMovement, "before_update")
def _refuse_movement_update(mapper, connection, target: StockMovement) -> None:
    raise ImmutableMovementError(target.id, "modified")


@event.listens_for(StockMovement, "before_delete")
def _refuse_movement_delete(mapper, connection, target: StockMovement) -> None:
    raise ImmutableMovementError(target.id, "deleted")
