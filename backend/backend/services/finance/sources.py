"""Where the finance views get their rows.

Two interchangeable backends: the local database (used by the API itself)
and the REST API (used by out-of-process consumers such as reports).
Both hand back the frozen records from ``services.finance.records``.
"""
from __future__ import annotations

import abc
import asyncio
import logging
from decimal import Decimal
from typing import Any, Callable, TypeVar

import httpx
from sqlalchemy.orm import Session, joinedload, sessionmaker

from app.core.config import FINANCE_API_TIMEOUT, FINANCE_API_URL
from app.core.tenant import get_tenant_id, scoped
from app.db.models.finance import Invoice, IssuedPO, PurchaseOrder, ReceivedInvoice
from app.db.models.projects import Project, ProjectHourlyRate
from app.db.models.team import TeamMember, Timesheet
from services.finance.records import (
    InvoiceRecord,
    IssuedPORecord,
    ProjectRecord,
    PurchaseOrderRecord,
    ReceivedInvoiceRecord,
    TeamMemberRecord,
    TimesheetRecord,
    to_decimal,
)

log = logging.getLogger(__name__)

R = TypeVar("R")


class FinanceDataSource(abc.ABC):
    @abc.abstractmethod
    async def projects(self) -> list[ProjectRecord]: ...

    @abc.abstractmethod
    async def purchase_orders(self, include_inactive: bool = False) -> list[PurchaseOrderRecord]: ...

    @abc.abstractmethod
    async def invoices(self) -> list[InvoiceRecord]: ...

    @abc.abstractmethod
    async def issued_pos(self) -> list[IssuedPORecord]: ...

    @abc.abstractmethod
    async def received_invoices(self) -> list[ReceivedInvoiceRecord]: ...

    @abc.abstractmethod
    async def timesheets(self) -> list[TimesheetRecord]: ...

    @abc.abstractmethod
    async def team_members(self) -> list[TeamMemberRecord]: ...

    @abc.abstractmethod
    async def project_hourly_rates(self, project_id: str) -> dict[str, Decimal]:
        """team member id -> hourly rate override for one project"""


# ============= DATABASE =============

class SqlFinanceSource(FinanceDataSource):
    """Each call opens its own session on a worker thread.

    ``asyncio.to_thread`` copies the context, so the caller's tenant applies.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _in_session(self, fn: Callable[[Session], R]) -> R:
        with self.session_factory() as db:
            return fn(db)

    async def _run(self, fn: Callable[[Session], R]) -> R:
        return await asyncio.to_thread(self._in_session, fn)

    async def projects(self) -> list[ProjectRecord]:
        def q(db: Session):
            rows = scoped(db.query(Project).options(joinedload(Project.company)), Project).order_by(Project.project_code).all()
            return [ProjectRecord.from_row(r) for r in rows]
        return await self._run(q)

    async def purchase_orders(self, include_inactive: bool = False) -> list[PurchaseOrderRecord]:
        def q(db: Session):
            query = scoped(db.query(PurchaseOrder), PurchaseOrder)
            if not include_inactive:
                query = query.filter(PurchaseOrder.is_active == True)  # noqa: E712
            return [PurchaseOrderRecord.from_row(r) for r in query.order_by(PurchaseOrder.received_date).all()]
        return await self._run(q)

    async def invoices(self) -> list[InvoiceRecord]:
        def q(db: Session):
            rows = scoped(db.query(Invoice), Invoice).order_by(Invoice.invoice_date).all()
            return [InvoiceRecord.from_row(r) for r in rows]
        return await self._run(q)

    async def issued_pos(self) -> list[IssuedPORecord]:
        def q(db: Session):
            rows = scoped(db.query(IssuedPO), IssuedPO).order_by(IssuedPO.issue_date).all()
            return [IssuedPORecord.from_row(r) for r in rows]
        return await self._run(q)

    async def received_invoices(self) -> list[ReceivedInvoiceRecord]:
        def q(db: Session):
            rows = scoped(db.query(ReceivedInvoice), ReceivedInvoice).order_by(ReceivedInvoice.invoice_date).all()
            return [ReceivedInvoiceRecord.from_row(r) for r in rows]
        return await self._run(q)

    async def timesheets(self) -> list[TimesheetRecord]:
        def q(db: Session):
            rows = scoped(db.query(Timesheet), Timesheet).order_by(Timesheet.date).all()
            return [TimesheetRecord.from_row(r) for r in rows]
        return await self._run(q)

    async def team_members(self) -> list[TeamMemberRecord]:
        def q(db: Session):
            rows = scoped(db.query(TeamMember), TeamMember).order_by(TeamMember.name).all()
            return [TeamMemberRecord.from_row(r) for r in rows]
        return await self._run(q)

    async def project_hourly_rates(self, project_id: str) -> dict[str, Decimal]:
        def q(db: Session):
            rows = scoped(db.query(ProjectHourlyRate), ProjectHourlyRate).filter(ProjectHourlyRate.project_id == project_id).all()
            return {r.team_member_id: Decimal(r.hourly_rate) for r in rows}
        return await self._run(q)


# ============= REST API =============

def _unwrap(body: Any) -> list[dict]:
    """Endpoints answer with a bare list or ``{"data": [...]}``."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict) and isinstance(body.get("data"), list):
        return body["data"]
    raise ValueError("Unexpected response shape from finance API")


class ApiFinanceSource(FinanceDataSource):
    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str = FINANCE_API_URL, tenant_id: str | None = None):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=FINANCE_API_TIMEOUT,
            headers={"X-Tenant-Id": tenant_id or get_tenant_id()},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ApiFinanceSource":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _list(self, path: str, params: dict | None = None) -> list[dict]:
        resp = await self.client.get(path, params=params)
        resp.raise_for_status()
        return _unwrap(resp.json())

    async def projects(self) -> list[ProjectRecord]:
        return [ProjectRecord.from_payload(p) for p in await self._list("/projects")]

    async def purchase_orders(self, include_inactive: bool = False) -> list[PurchaseOrderRecord]:
        params = {"include_inactive": "true"} if include_inactive else None
        return [PurchaseOrderRecord.from_payload(p) for p in await self._list("/purchase-orders", params)]

    async def invoices(self) -> list[InvoiceRecord]:
        return [InvoiceRecord.from_payload(p) for p in await self._list("/invoices")]

    async def issued_pos(self) -> list[IssuedPORecord]:
        return [IssuedPORecord.from_payload(p) for p in await self._list("/issued-pos")]

    async def received_invoices(self) -> list[ReceivedInvoiceRecord]:
        return [ReceivedInvoiceRecord.from_payload(p) for p in await self._list("/received-invoices")]

    async def timesheets(self) -> list[TimesheetRecord]:
        return [TimesheetRecord.from_payload(p) for p in await self._list("/timesheets")]

    async def team_members(self) -> list[TeamMemberRecord]:
        return [TeamMemberRecord.from_payload(p) for p in await self._list("/team")]

    async def project_hourly_rates(self, project_id: str) -> dict[str, Decimal]:
        out: dict[str, Decimal] = {}
        for r in await self._list(f"/projects/{project_id}/hourly-rates"):
            member_id = r.get("team_member_id") or r.get("teamMemberId")
            rate = r.get("hourly_rate", r.get("hourlyRate"))
            if member_id and rate is not None:
                out[str(member_id)] = to_decimal(rate)
        return out
