"""
Application factory for multi-tenant FastAPI applications.

This module provides functions to create FastAPI applications configured
for either single-tenant or multi-tenant operation.
"""

import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import config
from .db import init_db
from .errors import CartNotFoundError, InvalidTransitionError
from .middleware import TenantMiddleware, get_tenant_from_request
from .routes import admin_orders_router, cart_router, limiter, orders_router, pricing_router
from .tenant import TenantManager, get_tenant_manager, set_tenant_manager

logger = logging.getLogger(__name__)


async def _invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    logger.info("Refused status change: %s", exc)
    return JSONResponse(
        status_code=409,
        content={"detail": exc.reason, "current": exc.current, "target": exc.target},
    )


async def _cart_not_found_handler(request: Request, exc: CartNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Cart not found"})


def create_app(
    tenant_slug: Optional[str] = None,
    tenant_manager: Optional[TenantManager] = None,
) -> FastAPI:
    """
    Create a FastAPI application.

    Args:
        tenant_slug: If provided, run in single-tenant mode for this tenant.
                    If None, run in multi-tenant mode with dynamic resolution.
        tenant_manager: Optional tenant manager instance. If not provided,
                       the global instance will be used.

    Returns:
        Configured FastAPI application
    """
    if tenant_manager is not None:
        set_tenant_manager(tenant_manager)

    if tenant_slug:
        mode = f"single-tenant ({tenant_slug})"
    else:
        mode = "multi-tenant"

    logger.info("Creating FastAPI application in %s mode", mode)

    init_db()

    app = FastAPI(
        title="Restaurant Storefront API",
        description="Cart pricing, checkout and order tracking for restaurant storefronts",
        version="1.0.0",
    )

    app.add_middleware(TenantMiddleware, tenant_slug=tenant_slug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Configure rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(InvalidTransitionError, _invalid_transition_handler)
    app.add_exception_handler(CartNotFoundError, _cart_not_found_handler)

    # Include routers with API version prefix
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(pricing_router)
    api_v1.include_router(cart_router)
    api_v1.include_router(orders_router)
    api_v1.include_router(admin_orders_router)
    app.include_router(api_v1)

    # Also mount at root
    app.include_router(pricing_router)
    app.include_router(cart_router)
    app.include_router(orders_router)
    app.include_router(admin_orders_router)

    @app.get("/health")
    def health_check(request: Request):
        return {
            "status": "healthy",
            "mode": mode,
            "tenant": get_tenant_from_request(request),
        }

    logger.info("Application created successfully in %s mode", mode)

    return app


def run_tenant(
    tenant_slug: str,
    host: str = "0.0.0.0",
    port: Optional[int] = None,
    reload: bool = False,
) -> None:
    """
    Run the application for a specific tenant.

    Args:
        tenant_slug: Tenant identifier
        host: Host to bind to
        port: Port to run on (if None, uses tenant's configured port)
        reload: Enable auto-reload for development
    """
    import uvicorn

    manager = get_tenant_manager()
    tenant = manager.get_tenant(tenant_slug)

    if not tenant:
        raise ValueError(f"Unknown tenant: {tenant_slug}")

    if port is None:
        port = tenant.port

    logger.info("Starting server for tenant '%s' on %s:%d", tenant_slug, host, port)

    app = create_app(tenant_slug=tenant_slug)

    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=reload,
    )
