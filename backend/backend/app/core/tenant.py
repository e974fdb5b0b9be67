from __future__ import annotations
import contextvars

DEFAULT_TENANT = "default"

_tenant: contextvars.ContextVar[str] = contextvars.ContextVar("tenant_id", default=DEFAULT_TENANT)

def set_tenant_id(tenant_id: str | None) -> contextvars.Token:
    return _tenant.set((tenant_id or "").strip() or DEFAULT_TENANT)

def reset_tenant_id(token: contextvars.Token) -> None:
    _tenant.reset(token)

def get_tenant_id() -> str:
    return _tenant.get()

def scoped(query, model):
    """Restrict a query on a tenant-owned model to the current tenant."""
    return query.filter(model.tenant_id == get_tenant_id())
