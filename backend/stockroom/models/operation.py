"""Operations (receipts, deliveries, transfers, adjustments) and their lines.

Lifecycle:
  draft → waiting → ready → done
  draft | waiting | ready → canceled

`done` is set only by the operation processor; `done` and `canceled` are
terminal.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.database import Base


class OperationType(str, enum.Enum):
    RECEIPT = "receipt"
    DELIVERY = "delivery"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"


class OperationStatus(str, enum.Enum):
    DRAFT = "draft"
    WAITING = "waiting"
    READY = "ready"
    DONE = "done"
    CANCELED = "canceled"


TERMINAL_STATUSES = frozenset({OperationStatus.DONE, OperationStatus.CANCELED})


class Operation(Base):
    __tablename__ = "operations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    reference: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OperationStatus.DRAFT.value, index=True
    )

    warehouse_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("warehouses.id"), nullable=False, index=True
    )
    # Transfers only
    destination_warehouse_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("warehouses.id")
    )

    supplier_name: Mapped[str | None] = mapped_column(String(255))  # receipts
    customer_name: Mapped[str | None] = mapped_column(String(255))  # deliveries
    notes: Mapped[str | None] = mapped_column(Text)

    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime)
    completed_date: Mapped[datetime | None] = mapped_column(DateTime)

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    warehouse = relationship(
        "Warehouse", foreign_keys=[warehouse_id], lazy="selectin"
    )
    destination_warehouse = relationship(
        "Warehouse", foreign_keys=[destination_warehouse_id], lazy="selectin"
    )
    lines = relationship(
        "OperationLine", back_populates="operation", lazy="selectin",
        cascade="all, delete-orphan", order_by="OperationLine.created_at",
    )
    movements = relationship("StockMovement", back_populates="operation")

    @property
    def is_terminal(self) -> bool:
        return self.status in {s.value for s in TERMINAL_STATUSES}


class OperationLine(Base):
    __tablename__ = "operation_lines"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    operation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("operations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id"), nullable=False, index=True
    )

    planned_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Overrides planned_quantity at processing time (partial fulfillment)
    actual_quantity: Mapped[int | None] = mapped_column(Integer)
    unit_price: Mapped[float | None] = mapped_column(Float)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    operation = relationship("Operation", back_populates="lines")
    product = relationship("Product", lazy="selectin")

    @property
    def effective_quantity(self) -> int:
        """Quantity that moves when the operation is processed."""
        if self.actual_quantity is not None:
            return self.actual_quantity
        return self.planned_quantity


class ReferenceCounter(Base):
    """Per-operation-type sequence backing operation references.

    Row-locked on every allocation so concurrent creators never receive the
    same value.
    """
    __tablename__ = "reference_counters"

    name: Mapped[str] = mapped_column(String(30), primary_key=True)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
