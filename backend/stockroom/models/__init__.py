"""Aggregate model imports for Alembic auto-detection."""

# Catalog / location registry
from stockroom.models.catalog import Category, Product, Warehouse  # noqa: F401

# Stock ledger
from stockroom.models.stock import StockLevel, StockMovement  # noqa: F401

# Operations
from stockroom.models.operation import (  # noqa: F401
    Operation,
    OperationLine,
    OperationStatus,
    OperationType,
    ReferenceCounter,
)

__all__ = [
    "Category", "Product", "Warehouse",
    "StockLevel", "StockMovement",
    "Operation", "OperationLine", "OperationStatus", "OperationType",
    "ReferenceCounter",
]
