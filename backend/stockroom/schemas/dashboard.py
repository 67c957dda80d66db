"""Pydantic schema for dashboard KPIs."""

from pydantic import BaseModel


class DashboardKPIs(BaseModel):
    total_products: int
    low_stock_items: int
    out_of_stock_items: int
    pending_receipts: int
    pending_deliveries: int
    pending_transfers: int
