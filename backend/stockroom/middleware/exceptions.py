"""Exception handlers that render every error in one envelope.

    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable error message",
            "details": {...}  // Optional additional details
        }
    }

Domain errors carry their own status and code. Database errors that escape
the services are mapped by constraint: both PostgreSQL and SQLite name the
violated constraint (or its table.column) in the driver message, so the
rules below match either spelling.
"""

import logging
from typing import NamedTuple, Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from stockroom.exceptions import StockroomException

logger = logging.getLogger(__name__)


class ConstraintRule(NamedTuple):
    markers: tuple[str, ...]
    status_code: int
    error_code: str
    message: str


# First match wins; markers are lowercase
INTEGRITY_RULES = (
    ConstraintRule(
        ("uq_stock_levels_product_warehouse", "stock_levels.product_id, stock_levels.warehouse_id"),
        status.HTTP_409_CONFLICT,
        "STOCK_LEVEL_CONFLICT",
        "Stock for this product and warehouse was changed concurrently; retry the request",
    ),
    ConstraintRule(
        ("ck_stock_levels_quantity_non_negative", "ck_stock_levels_reserved_non_negative"),
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "NEGATIVE_STOCK",
        "Stock quantities cannot go below zero",
    ),
    ConstraintRule(
        ("ix_products_sku", "products.sku"),
        status.HTTP_409_CONFLICT,
        "DUPLICATE_KEY",
        "A product with this SKU already exists",
    ),
    ConstraintRule(
        ("ix_warehouses_code", "warehouses.code"),
        status.HTTP_409_CONFLICT,
        "DUPLICATE_KEY",
        "A warehouse with this code already exists",
    ),
    ConstraintRule(
        ("operations_reference_key", "operations.reference"),
        status.HTTP_409_CONFLICT,
        "DUPLICATE_REFERENCE",
        "Operation reference already issued; retry the request",
    ),
    ConstraintRule(
        ("foreign key",),
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "UNKNOWN_REFERENCE",
        "A referenced product, warehouse or operation does not exist",
    ),
)

FALLBACK_RULE = ConstraintRule(
    (), status.HTTP_422_UNPROCESSABLE_ENTITY, "INTEGRITY_ERROR", "Database constraint violation"
)


def classify_integrity_error(exc: IntegrityError) -> ConstraintRule:
    message = str(exc.orig).lower()
    for rule in INTEGRITY_RULES:
        if any(marker in message for marker in rule.markers):
            return rule
    return FALLBACK_RULE


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Create standardized error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers,
    )


async def stockroom_exception_handler(
    request: Request,
    exc: StockroomException,
) -> JSONResponse:
    """Handle domain exceptions raised by the services."""
    logger.warning(
        "%s %s -> %s: %s",
        request.method, request.url.path, exc.error_code, exc.message,
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions (auth failures, unknown routes)."""
    if exc.status_code >= 500:
        logger.error(
            "%s %s -> HTTP %d: %s",
            request.method, request.url.path, exc.status_code, exc.detail,
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


def _field_path(loc: tuple) -> str:
    # ("body", "lines", 0, "planned_quantity") -> "lines.0.planned_quantity"
    parts = [str(part) for part in loc]
    if len(parts) > 1 and parts[0] in ("body", "query", "path"):
        parts = parts[1:]
    return ".".join(parts)


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Reject malformed input: bad quantities, unknown enum values, missing fields."""
    errors = [
        {"field": _field_path(error["loc"]), "message": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    logger.warning(
        "%s %s -> VALIDATION_ERROR on %s",
        request.method, request.url.path, ", ".join(e["field"] for e in errors),
    )

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def integrity_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Map a constraint violation that escaped the services to a named code."""
    rule = classify_integrity_error(exc)
    log = logger.error if rule is FALLBACK_RULE else logger.warning
    log("%s %s -> %s: %s", request.method, request.url.path, rule.error_code, exc.orig)

    return create_error_response(
        status_code=rule.status_code,
        message=rule.message,
        error_code=rule.error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """Lock timeouts and lost connections; both are worth retrying."""
    logger.error("%s %s -> database error: %s", request.method, request.url.path, exc.orig)

    if "database is locked" in str(exc.orig).lower():
        return create_error_response(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            message="Stock is being updated by another request. Please try again.",
            error_code="DATABASE_BUSY",
            headers={"Retry-After": "1"},
        )

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.exception(
        "%s %s -> unhandled %s", request.method, request.url.path, type(exc).__name__
    )

    # Don't expose internal details
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(StockroomException, stockroom_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
