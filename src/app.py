"""Warehouse FastAPI application.

Serves the allocation and fulfillment engine over HTTP. Commands are
processed synchronously; every request runs inside the warehouse domain
context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from warehouse.domain import warehouse
from warehouse.utils.logging import configure_logging

configure_logging()
warehouse.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Warehouse API",
    description="Tiered inventory allocation and fulfillment",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the warehouse domain context for each request."""
    with warehouse.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from warehouse.api import (  # noqa: E402
    item_router,
    location_router,
    product_router,
    stock_router,
    task_router,
)

app.include_router(product_router)
app.include_router(location_router)
app.include_router(stock_router)
app.include_router(task_router)
app.include_router(item_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": warehouse.name})
