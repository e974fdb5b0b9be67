from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

from app.core.errors import error_message
from services.finance.aggregation import (
    UnmatchedReport,
    calculate_project_summaries,
    filter_by_period,
    find_unmatched,
)
from services.finance.profitability import (
    BaseCostBreakdown,
    ProjectFinance,
    base_cost_breakdowns,
    calculate_project_finances,
)
from services.finance.records import FinanceTotals, ProjectFinanceSummary, ProjectRecord
from services.finance.sources import FinanceDataSource
from services.finance.totals import calculate_totals

log = logging.getLogger(__name__)

DEFAULT_ERROR = "Failed to load finance data"


class FinanceOverview:
    """Owns one fetch-and-compute cycle of the finance overview.

    ``refetch`` pulls every collection concurrently and gives up on the
    first failure, leaving empty results and a single ``error`` string.
    Per-project rate lookups are the exception: a project whose rates
    cannot be read just falls back to default rates. Nothing is retried;
    call ``refetch`` again.
    """

    def __init__(self, source: FinanceDataSource, year: int = 0, month: int = 0, rollup_variation_orders: bool = False):
        self.source = source
        self.year = year
        self.month = month
        self.rollup_variation_orders = rollup_variation_orders
        self.loading = False
        self.error: str | None = None
        self._clear()

    def _clear(self) -> None:
        self.project_summaries: list[ProjectFinanceSummary] = []
        self.totals = FinanceTotals()
        self.project_finances: list[ProjectFinance] = []
        self.project_rates: dict[str, dict[str, Decimal]] = {}
        self.base_cost_breakdowns: dict[str, list[BaseCostBreakdown]] = {}
        self.unmatched = UnmatchedReport()

    async def _project_rates(self, projects: list[ProjectRecord]) -> dict[str, dict[str, Decimal]]:
        async def one(project: ProjectRecord):
            try:
                return project.id, await self.source.project_hourly_rates(project.id)
            except Exception as e:
                log.debug("hourly rates unavailable for project %s: %s", project.project_code, e)
                return project.id, None

        results = await asyncio.gather(*(one(p) for p in projects))
        return {pid: rates for pid, rates in results if rates is not None}

    async def _fetch_all(self) -> list:
        tasks = [
            asyncio.ensure_future(coro)
            for coro in (
                self.source.projects(),
                self.source.purchase_orders(),
                self.source.invoices(),
                self.source.issued_pos(),
                self.source.received_invoices(),
                self.source.timesheets(),
                self.source.team_members(),
            )
        ]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            # first failure wins; the rest are cancelled and their outcomes collected
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def refetch(self) -> None:
        self.loading = True
        self.error = None
        try:
            projects, pos, invoices, issued, received, timesheets, members = await self._fetch_all()
            rates = await self._project_rates(projects)

            pos = filter_by_period(pos, self.year, self.month)
            invoices = filter_by_period(invoices, self.year, self.month)
            issued = filter_by_period(issued, self.year, self.month)
            received = filter_by_period(received, self.year, self.month)

            summaries = calculate_project_summaries(
                projects, pos, invoices, timesheets, members, issued, received,
                rollup_variation_orders=self.rollup_variation_orders,
            )
            self.project_summaries = summaries
            self.totals = calculate_totals(summaries, pos, invoices, issued, received)
            self.project_finances = calculate_project_finances(projects, timesheets, members, rates, pos, invoices)
            self.project_rates = rates
            self.base_cost_breakdowns = base_cost_breakdowns(projects, timesheets, members, rates)
            self.unmatched = find_unmatched(projects, pos, invoices, timesheets, issued, received)
        except Exception as e:
            log.error("finance overview failed: %s", e)
            self._clear()
            self.error = error_message(e, DEFAULT_ERROR)
        finally:
            self.loading = False

        if self.unmatched.count:
            log.warning(
                "%d finance records do not match any project: %s",
                self.unmatched.count,
                ", ".join(f"{o.kind}:{o.key!r}" for o in self.unmatched.orphans[:10]),
            )
