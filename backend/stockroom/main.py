import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockroom.config import settings
from stockroom.middleware.exceptions import register_exception_handlers
from stockroom.routers import catalog, dashboard, health, operations, stock
from stockroom.utils.cache import close_redis

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


app = FastAPI(
    title="Stockroom",
    description="Inventory stock ledger & operation processing",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)

# Catalog / location registry
app.include_router(catalog.categories_router, prefix="/api/categories", tags=["categories"])
app.include_router(catalog.warehouses_router, prefix="/api/warehouses", tags=["warehouses"])
app.include_router(catalog.products_router, prefix="/api/products", tags=["products"])

# Operations & ledger
app.include_router(operations.router, prefix="/api/operations", tags=["operations"])
app.include_router(stock.router, prefix="/api/stock", tags=["stock"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
