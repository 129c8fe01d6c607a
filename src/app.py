"""Storefront FastAPI application.

Vendor-facing web server: order intake, direct status updates and the
interactive fulfillment workflow. Commands are processed synchronously and
every request runs inside the storefront domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from storefront/domain.toml.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from storefront.domain import storefront  # noqa: E402

storefront.init()

_DOMAIN_PREFIXES = ("/stores",)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Vendor order fulfillment — stock check, pickup point, delivery assignment",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context for domain routes."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with storefront.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.api.errors import register_exception_handlers  # noqa: E402
from storefront.api.routes import order_router  # noqa: E402

app.include_router(order_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "storefront": {"name": storefront.name},
            },
        }
    )
