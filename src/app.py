"""Order lifecycle FastAPI application.

Web server that processes commands synchronously via HTTP. Every API
request runs inside the ordering domain context; payment webhooks act on
the same Order aggregate and share it.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

import os

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay; adapters are chosen through their
# own environment variables (STOCK_STORE, PAYMENT_GATEWAY, CARRIER_ADAPTER...).
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from ordering.domain import ordering  # noqa: E402
from ordering.utils.logging import configure_logging

configure_logging(os.environ.get("LOG_DIR"))
ordering.init()

_DOMAIN_PREFIXES = ("/orders", "/admin", "/cart", "/payments", "/maintenance")


def _resolve_domain(path: str):
    """Return the domain for the given request path, or None."""
    return ordering if path.startswith(_DOMAIN_PREFIXES) else None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Order Lifecycle API",
    description="Order placement, payment confirmation, fulfillment tracking and carts",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.environ.get("FRONTEND_URL", "http://localhost:5173")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ordering domain context for each API request."""
    domain = _resolve_domain(request.url.path)
    if domain is not None:
        with domain.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from ordering.api import (  # noqa: E402
    admin_router,
    cart_router,
    maintenance_router,
    order_router,
    register_error_handlers,
)
from payments.api import payment_router  # noqa: E402

app.include_router(order_router)
app.include_router(admin_router)
app.include_router(cart_router)
app.include_router(maintenance_router)
app.include_router(payment_router)
register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": ordering.name})
