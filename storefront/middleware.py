"""
FastAPI middleware and dependencies for multi-tenant support.
"""

import logging
from typing import Callable, Optional

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .fees import FeeConfig
from .pricing import PricingEngine
from .tenant import (
    TenantConfig,
    get_tenant_manager,
    set_current_tenant,
    clear_current_tenant,
)

logger = logging.getLogger(__name__)


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Middleware that resolves tenant from incoming requests and sets context.

    Tenant resolution order:
    1. X-Tenant-ID header (for testing/debugging)
    2. Host header (domain-based routing)
    3. Server port
    4. Default tenant
    """

    def __init__(self, app, tenant_slug: Optional[str] = None):
        """
        Initialize tenant middleware.

        Args:
            app: FastAPI application
            tenant_slug: If provided, force this tenant for all requests.
                        Used when running a single-tenant instance.
        """
        super().__init__(app)
        self.forced_tenant = tenant_slug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            if self.forced_tenant:
                tenant_slug = self.forced_tenant
            else:
                tenant_slug = self._resolve_tenant(request)

            if not tenant_slug:
                logger.warning("Could not resolve tenant for request: %s", request.url)
                return JSONResponse(status_code=400, content={"detail": "Could not determine tenant"})

            set_current_tenant(tenant_slug)
            request.state.tenant_slug = tenant_slug

            logger.debug("Request tenant resolved: %s", tenant_slug)

            return await call_next(request)

        finally:
            clear_current_tenant()

    def _resolve_tenant(self, request: Request) -> Optional[str]:
        """Resolve tenant from request information."""
        manager = get_tenant_manager()

        tenant_header = request.headers.get("X-Tenant-ID")
        if tenant_header:
            if manager.get_tenant(tenant_header):
                logger.debug("Tenant resolved from header: %s", tenant_header)
                return tenant_header
            logger.warning("Unknown tenant in header: %s", tenant_header)

        host = request.headers.get("host", "")

        server = request.scope.get("server")
        port = server[1] if server and len(server) > 1 else None

        return manager.resolve_tenant_from_request(host=host, port=port)


def get_tenant_from_request(request: Request) -> Optional[str]:
    """
    Get tenant slug from request state.

    Usage:
        @router.get("/items")
        def get_items(tenant_slug: str = Depends(get_tenant_from_request)):
            ...
    """
    return getattr(request.state, "tenant_slug", None)


def get_tenant_config(request: Request) -> TenantConfig:
    """FastAPI dependency: the request's tenant, or the default tenant."""
    manager = get_tenant_manager()
    tenant = manager.get_tenant(get_tenant_from_request(request)) or manager.get_default_tenant()
    if tenant is None:
        raise HTTPException(status_code=500, detail="No tenant configured")
    return tenant


def get_fee_config(request: Request) -> FeeConfig:
    """FastAPI dependency: the request tenant's fee configuration."""
    return get_tenant_config(request).fee_config


def get_pricing_engine(request: Request) -> PricingEngine:
    """FastAPI dependency: a pricing engine bound to the tenant's fees."""
    return PricingEngine(get_fee_config(request))
