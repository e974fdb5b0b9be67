from __future__ import annotations

from fastapi import FastAPI
from app.core.logging import configure_logging
from app.core.middleware import TenantMiddleware
from app.db.base import Base
from app.db.session import engine

# Register models
from app.db import models  # noqa: F401

from services.contacts.api import router as contacts_router
from services.projects.api import router as projects_router
from services.purchasing.api import router as purchasing_router
from services.invoicing.api import router as invoicing_router
from services.team.api import router as team_router
from services.exchange_rates.api import router as exchange_rates_router
from services.finance.api import router as finance_router

configure_logging()

app = FastAPI(title="Engineering Services Backend")
app.add_middleware(TenantMiddleware)


@app.on_event("startup")
async def _startup():
    # Dev-friendly schema creation (migrations are available for real upgrades)
    Base.metadata.create_all(bind=engine)


app.include_router(contacts_router)
app.include_router(projects_router)
app.include_router(purchasing_router)
app.include_router(invoicing_router)
app.include_router(team_router)
app.include_router(exchange_rates_router)
app.include_router(finance_router)


@app.get("/health")
def health():
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
