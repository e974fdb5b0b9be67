"""Profitability view.

Unlike the finance overview, labour is costed at the engineer's real rate:
the project's override for that engineer, else the engineer's personal
rate, else DEFAULT_PROFIT_HOURLY_RATE. The overview keeps its flat
FIXED_HOURLY_RATE; the two views are intentionally not reconciled.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Sequence

from services.finance.constants import CENT, DEFAULT_PROFIT_HOURLY_RATE, ZERO
from services.finance.records import (
    InvoiceRecord,
    ProjectRecord,
    PurchaseOrderRecord,
    TeamMemberRecord,
    TimesheetRecord,
)

# project id -> team member id -> hourly rate
ProjectRates = Mapping[str, Mapping[str, Decimal]]


@dataclass(frozen=True)
class BaseCostBreakdown:
    engineer_id: str
    engineer_name: str
    role: str
    hours_logged: Decimal
    hourly_rate: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class ProjectFinance:
    project_id: str
    project_code: str
    project_title: str
    client_name: str
    status: str
    total_revenue: Decimal
    received_pos: Decimal
    invoiced: Decimal
    paid: Decimal
    base_cost: Decimal
    total_cost: Decimal
    gross_profit: Decimal
    profit_margin: Decimal
    budgeted_hours: Decimal
    actual_hours: Decimal
    average_hourly_rate: Decimal


@dataclass(frozen=True)
class ProfitabilitySummary:
    total_revenue: Decimal
    total_cost: Decimal
    total_profit: Decimal
    avg_margin: Decimal


@dataclass(frozen=True)
class CostCategory:
    category: str
    amount: Decimal
    percentage: Decimal


def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def resolve_hourly_rate(
    engineer_id: str,
    member: TeamMemberRecord | None,
    rates: Mapping[str, Decimal] | None,
) -> Decimal:
    rates = rates or {}
    # overrides are keyed by team member id; timesheets carry the user id
    if member is not None and member.id in rates:
        return rates[member.id]
    if engineer_id in rates:
        return rates[engineer_id]
    if member is not None and member.hourly_rate is not None:
        return member.hourly_rate
    return DEFAULT_PROFIT_HOURLY_RATE


def base_cost_breakdowns(
    projects: Iterable[ProjectRecord],
    timesheets: Iterable[TimesheetRecord],
    team_members: Iterable[TeamMemberRecord],
    project_rates: ProjectRates,
) -> dict[str, list[BaseCostBreakdown]]:
    """Per-project, per-engineer labour cost keyed by project id."""
    members_by_user = {m.user_id: m for m in team_members if m.user_id}
    timesheets = list(timesheets)

    out: dict[str, list[BaseCostBreakdown]] = {}
    for project in projects:
        hours: dict[str, Decimal] = {}
        for ts in timesheets:
            if ts.project_id == project.id:
                hours[ts.engineer_id] = hours.get(ts.engineer_id, ZERO) + ts.hours

        rows = []
        for engineer_id, h in hours.items():
            member = members_by_user.get(engineer_id)
            rate = resolve_hourly_rate(engineer_id, member, project_rates.get(project.id))
            rows.append(BaseCostBreakdown(
                engineer_id=engineer_id,
                engineer_name=member.name if member else "Unknown",
                role=member.role if member else "engineer",
                hours_logged=h,
                hourly_rate=rate,
                total_cost=h * rate,
            ))
        out[project.id] = rows
    return out


def calculate_project_finances(
    projects: Sequence[ProjectRecord],
    timesheets: Iterable[TimesheetRecord],
    team_members: Iterable[TeamMemberRecord],
    project_rates: ProjectRates,
    purchase_orders: Iterable[PurchaseOrderRecord] = (),
    invoices: Iterable[InvoiceRecord] = (),
) -> list[ProjectFinance]:
    breakdowns = base_cost_breakdowns(projects, timesheets, team_members, project_rates)
    purchase_orders = [po for po in purchase_orders if po.is_active]
    invoices = list(invoices)

    out = []
    for project in projects:
        rows = breakdowns[project.id]
        base_cost = sum((r.total_cost for r in rows), ZERO)
        actual_hours = sum((r.hours_logged for r in rows), ZERO)

        revenue = sum((po.effective_amount_myr for po in purchase_orders if po.project_code == project.project_code), ZERO)
        project_invoices = [inv for inv in invoices if inv.project_code == project.project_code]
        invoiced = sum((inv.effective_amount_myr for inv in project_invoices), ZERO)
        paid = sum((inv.effective_amount_myr for inv in project_invoices if inv.status == "paid"), ZERO)

        # only timesheet labour is tracked as cost
        total_cost = base_cost
        gross_profit = revenue - total_cost
        margin = gross_profit / revenue * 100 if revenue > 0 else ZERO
        avg_rate = base_cost / actual_hours if actual_hours > 0 else ZERO

        out.append(ProjectFinance(
            project_id=project.id,
            project_code=project.project_code,
            project_title=project.title,
            client_name=project.client_name or "Unknown Client",
            status=project.status,
            total_revenue=revenue,
            received_pos=revenue,
            invoiced=invoiced,
            paid=paid,
            base_cost=base_cost,
            total_cost=total_cost,
            gross_profit=gross_profit,
            profit_margin=_round(margin),
            budgeted_hours=project.planned_hours,
            actual_hours=actual_hours,
            average_hourly_rate=_round(avg_rate),
        ))
    return out


def summary_stats(finances: Sequence[ProjectFinance]) -> ProfitabilitySummary:
    avg = sum((f.profit_margin for f in finances), ZERO) / len(finances) if finances else ZERO
    return ProfitabilitySummary(
        total_revenue=sum((f.total_revenue for f in finances), ZERO),
        total_cost=sum((f.total_cost for f in finances), ZERO),
        total_profit=sum((f.gross_profit for f in finances), ZERO),
        avg_margin=_round(avg),
    )


def cost_breakdown(finances: Iterable[ProjectFinance]) -> list[CostCategory]:
    total = sum((f.base_cost for f in finances), ZERO)
    if total == 0:
        return []
    return [CostCategory("Base Cost", total, Decimal("100"))]
