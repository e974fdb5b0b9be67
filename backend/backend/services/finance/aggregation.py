"""Per-project cash tracking: PO received vs invoiced, plus man-hour cost.

Documents are joined to projects by value (project code for POs and invoices,
project id for timesheets). Anything that does not match is left out of the
summaries; ``find_unmatched`` reports it separately.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Sequence, TypeVar

from services.finance.constants import FIXED_HOURLY_RATE, ZERO
from services.finance.records import (
    EngineerCost,
    InvoiceRecord,
    IssuedPORecord,
    OriginalCurrencyAmount,
    ProjectFinanceSummary,
    ProjectRecord,
    PurchaseOrderRecord,
    ReceivedInvoiceRecord,
    TeamMemberRecord,
    TimesheetRecord,
)

UNKNOWN_CLIENT = "Unknown Client"

T = TypeVar("T")


def _original(doc) -> OriginalCurrencyAmount:
    return OriginalCurrencyAmount(amount=doc.amount, currency=doc.currency, amount_myr=doc.effective_amount_myr)


def _total(docs: Iterable) -> Decimal:
    return sum((d.effective_amount_myr for d in docs), ZERO)


def _group(items: Iterable[T], key) -> dict[str, list[T]]:
    out: dict[str, list[T]] = defaultdict(list)
    for item in items:
        out[key(item)].append(item)
    return out


def _variation_orders(projects: Sequence[ProjectRecord]) -> dict[str, list[ProjectRecord]]:
    vos: dict[str, list[ProjectRecord]] = defaultdict(list)
    for p in projects:
        if p.is_variation_order and p.parent_project_id:
            vos[p.parent_project_id].append(p)
    return vos


def engineer_costs(
    timesheets: Iterable[TimesheetRecord],
    members_by_user: dict[str, TeamMemberRecord],
    hourly_rate: Decimal = FIXED_HOURLY_RATE,
) -> list[EngineerCost]:
    """Hours per engineer (first-seen order) costed at one flat rate."""
    hours: dict[str, Decimal] = {}
    for ts in timesheets:
        hours[ts.engineer_id] = hours.get(ts.engineer_id, ZERO) + ts.hours

    out = []
    for engineer_id, h in hours.items():
        member = members_by_user.get(engineer_id)
        out.append(EngineerCost(
            engineer_id=engineer_id,
            engineer_name=member.name if member else "Unknown",
            role=member.role if member else "engineer",
            hours=h,
            hourly_rate=hourly_rate,
            total_cost=h * hourly_rate,
        ))
    return out


def calculate_project_summaries(
    projects: Sequence[ProjectRecord],
    purchase_orders: Iterable[PurchaseOrderRecord],
    invoices: Iterable[InvoiceRecord],
    timesheets: Iterable[TimesheetRecord],
    team_members: Iterable[TeamMemberRecord] = (),
    issued_pos: Iterable[IssuedPORecord] = (),
    received_invoices: Iterable[ReceivedInvoiceRecord] = (),
    *,
    rollup_variation_orders: bool = False,
) -> list[ProjectFinanceSummary]:
    """One summary per project, in input order.

    A project with nothing matched gets zeros and an empty breakdown. With
    ``rollup_variation_orders`` a parent's figures include its variation
    orders and the variation-order rows themselves are not emitted.
    """
    active_pos = _group((po for po in purchase_orders if po.is_active), lambda po: po.project_code)
    invoices_by_code = _group(invoices, lambda inv: inv.project_code)
    timesheets_by_project = _group(timesheets, lambda ts: ts.project_id)

    issued_pos = list(issued_pos)
    issued_by_code = _group(issued_pos, lambda po: po.project_code)
    code_by_issued_id = {po.id: po.project_code for po in issued_pos}
    vendor_invoices_by_code = _group(
        (inv for inv in received_invoices if inv.issued_po_id in code_by_issued_id),
        lambda inv: code_by_issued_id[inv.issued_po_id],
    )

    members_by_user = {m.user_id: m for m in team_members if m.user_id}
    vos_by_parent = _variation_orders(projects)
    project_ids = {p.id for p in projects}

    summaries: list[ProjectFinanceSummary] = []
    for project in projects:
        vos = [] if project.is_variation_order else vos_by_parent.get(project.id, [])
        if rollup_variation_orders and project.is_variation_order and project.parent_project_id in project_ids:
            continue

        members = [project] + (vos if rollup_variation_orders else [])
        codes = [p.project_code for p in members]

        project_pos = [po for code in codes for po in active_pos.get(code, [])]
        project_invoices = [inv for code in codes for inv in invoices_by_code.get(code, [])]
        project_issued = [po for code in codes for po in issued_by_code.get(code, [])]
        project_vendor_invoices = [inv for code in codes for inv in vendor_invoices_by_code.get(code, [])]
        project_timesheets = [ts for p in members for ts in timesheets_by_project.get(p.id, [])]

        po_received = _total(project_pos)
        invoiced = _total(project_invoices)
        breakdown = engineer_costs(project_timesheets, members_by_user)

        summaries.append(ProjectFinanceSummary(
            project_id=project.id,
            project_code=project.project_code,
            project_title=project.title,
            client_name=project.client_name or UNKNOWN_CLIENT,
            status=project.status,
            po_received=po_received,
            invoiced=invoiced,
            outstanding=po_received - invoiced,
            po_received_original=tuple(_original(po) for po in project_pos),
            invoiced_original=tuple(_original(inv) for inv in project_invoices),
            man_hour_cost=sum((e.total_cost for e in breakdown), ZERO),
            actual_hours=sum((ts.hours for ts in project_timesheets), ZERO),
            engineer_breakdown=tuple(breakdown),
            vendor_pos_issued=_total(project_issued),
            vendor_invoices_received=_total(project_vendor_invoices),
            vendor_pos_original=tuple(_original(po) for po in project_issued),
            vendor_invoices_original=tuple(_original(inv) for inv in project_vendor_invoices),
            is_parent_project=bool(vos),
            vo_count=len(vos),
        ))
    return summaries


def filter_by_period(records: Iterable[T], year: int = 0, month: int = 0) -> list[T]:
    """Keep records dated in ``year`` (0 = all time) and ``month`` (0 = every month).

    Undated records only survive the all-time filter.
    """
    if not year:
        return list(records)
    out = []
    for r in records:
        d = r.period_date
        if d is None or d.year != year:
            continue
        if month and d.month != month:
            continue
        out.append(r)
    return out


# ============= ORPHAN REPORTING =============

@dataclass(frozen=True)
class Orphan:
    kind: str          # purchase_order | invoice | issued_po | received_invoice | timesheet
    record_id: str
    key: str           # the value that failed to join
    near_match: str | None = None  # project code equal after trimming and case folding


@dataclass(frozen=True)
class UnmatchedReport:
    orphans: tuple[Orphan, ...] = ()

    @property
    def count(self) -> int:
        return len(self.orphans)

    def by_kind(self, kind: str) -> list[Orphan]:
        return [o for o in self.orphans if o.kind == kind]


def _normal(code: str) -> str:
    return (code or "").strip().casefold()


def find_unmatched(
    projects: Iterable[ProjectRecord],
    purchase_orders: Iterable[PurchaseOrderRecord] = (),
    invoices: Iterable[InvoiceRecord] = (),
    timesheets: Iterable[TimesheetRecord] = (),
    issued_pos: Iterable[IssuedPORecord] = (),
    received_invoices: Iterable[ReceivedInvoiceRecord] = (),
) -> UnmatchedReport:
    """Records whose join key matches no project.

    A code that only differs from a real one in case or surrounding
    whitespace is reported with ``near_match`` set; those are almost
    always data-entry mistakes.
    """
    projects = list(projects)
    codes = {p.project_code for p in projects}
    normalised = {_normal(p.project_code): p.project_code for p in projects}
    ids = {p.id for p in projects}

    orphans: list[Orphan] = []

    def by_code(kind: str, record_id: str, code: str) -> None:
        if code not in codes:
            orphans.append(Orphan(kind, record_id, code, normalised.get(_normal(code))))

    for po in purchase_orders:
        by_code("purchase_order", po.id, po.project_code)
    for inv in invoices:
        by_code("invoice", inv.id, inv.project_code)

    issued_pos = list(issued_pos)
    for po in issued_pos:
        by_code("issued_po", po.id, po.project_code)
    issued_ids = {po.id for po in issued_pos}
    for inv in received_invoices:
        if inv.issued_po_id not in issued_ids:
            orphans.append(Orphan("received_invoice", inv.id, inv.issued_po_id))

    for ts in timesheets:
        if ts.project_id not in ids:
            orphans.append(Orphan("timesheet", ts.id, ts.project_id))

    return UnmatchedReport(tuple(orphans))
