from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import sessionmaker

from app.db.session import get_session_factory
from services.finance.formatting import format_finance_amount, format_myr, format_total_with_currency
from services.finance.overview import FinanceOverview
from services.finance.profitability import cost_breakdown, summary_stats
from services.finance.records import as_json
from services.finance.sources import SqlFinanceSource
from services.finance.totals import filter_project_summaries

router = APIRouter(prefix="/finance", tags=["finance"])


async def _load(session_factory: sessionmaker, year: int, month: int, rollup_vos: bool = False) -> FinanceOverview:
    overview = FinanceOverview(SqlFinanceSource(session_factory), year=year, month=month, rollup_variation_orders=rollup_vos)
    await overview.refetch()
    if overview.error:
        raise HTTPException(503, overview.error)
    return overview


@router.get("/overview")
async def finance_overview(
    year: int = Query(0, ge=0),
    month: int = Query(0, ge=0, le=12),
    status: str = "all",
    q: str = "",
    show_original: bool = False,
    rollup_vos: bool = False,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    ov = await _load(session_factory, year, month, rollup_vos)
    t = ov.totals
    rows = filter_project_summaries(ov.project_summaries, status, q)
    return {
        "project_summaries": [
            {
                **as_json(s),
                "display": {
                    "po_received": format_finance_amount(s.po_received, s.po_received_original, show_original),
                    "invoiced": format_finance_amount(s.invoiced, s.invoiced_original, show_original),
                    "outstanding": format_myr(s.outstanding),
                    "man_hour_cost": format_myr(s.man_hour_cost),
                },
            }
            for s in rows
        ],
        "totals": {
            **as_json(t),
            "display": {
                "po_received": format_total_with_currency(t.total_po_received, t.po_received_by_currency, show_original),
                "invoiced": format_total_with_currency(t.total_invoiced, t.invoiced_by_currency, show_original),
                "outstanding": format_myr(t.total_outstanding),
                "man_hour_cost": format_myr(t.total_man_hour_cost),
                "vendor_pos_issued": format_total_with_currency(t.total_vendor_pos_issued, t.vendor_pos_by_currency, show_original),
                "vendor_invoices_received": format_total_with_currency(t.total_vendor_invoices_received, t.vendor_invoices_by_currency, show_original),
            },
        },
        "unmatched_count": ov.unmatched.count,
    }


@router.get("/profitability")
async def profitability(
    year: int = Query(0, ge=0),
    month: int = Query(0, ge=0, le=12),
    status: str = "all",
    q: str = "",
    session_factory: sessionmaker = Depends(get_session_factory),
):
    ov = await _load(session_factory, year, month)
    rows = filter_project_summaries(ov.project_finances, status, q)
    return {
        "projects": as_json(rows),
        "summary": as_json(summary_stats(rows)),
        "cost_breakdown": as_json(cost_breakdown(rows)),
        "base_cost_breakdowns": as_json({r.project_id: ov.base_cost_breakdowns.get(r.project_id, []) for r in rows}),
    }


@router.get("/unmatched")
async def unmatched(session_factory: sessionmaker = Depends(get_session_factory)):
    ov = await _load(session_factory, 0, 0)
    return {"count": ov.unmatched.count, "orphans": as_json(list(ov.unmatched.orphans))}
