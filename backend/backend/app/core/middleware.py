from __future__ import annotations
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from app.core.tenant import set_tenant_id, reset_tenant_id

logger = logging.getLogger(__name__)

class TenantMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        tenant = request.headers.get("X-Tenant-Id") or request.headers.get("x-tenant-id")
        token = set_tenant_id(tenant)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            reset_tenant_id(token)
        logger.debug(
            "%s %s tenant=%s status=%s %.1fms",
            request.method, request.url.path, tenant or "default", response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response
