"""Timesheet aggregation into per-period summaries."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.types import TimesheetSummary
from timesheet_payroll.config import DEFAULT_PAYABLE_STATUSES
from timesheet_payroll.exceptions import InvalidEmploymentDataError
from timesheet_payroll.models import Timesheet

_MINUTE_FIELDS = (
    ("net_worked_minutes", "total_worked_minutes"),
    ("overtime_minutes", "total_overtime_minutes"),
    ("night_minutes", "total_night_minutes"),
    ("holiday_minutes", "total_holiday_minutes"),
    ("late_minutes", "total_late_minutes"),
)


def summarize_records(records: Sequence[Timesheet]) -> TimesheetSummary | None:
    """Sum minute fields across timesheets; one record counts as one day worked.

    Returns None when there are no records, which callers treat as "skip".
    """
    if not records:
        return None

    totals = {summary_field: 0 for _, summary_field in _MINUTE_FIELDS}
    for record in records:
        for record_field, summary_field in _MINUTE_FIELDS:
            minutes = getattr(record, record_field) or 0
            if minutes < 0:
                raise InvalidEmploymentDataError(
                    record.employment_id,
                    f"timesheet {record.id} on {record.work_date} has negative {record_field}",
                )
            totals[summary_field] += minutes

    return TimesheetSummary(days_worked=len(records), **totals)


class TimesheetAggregator:
    """Collects payable timesheets for employees across a date range.

    Payable statuses default to approved, submitted and open so a period can
    be calculated before every timesheet is formally approved.
    """

    def __init__(
        self,
        session: AsyncSession,
        payable_statuses: Iterable[str] = DEFAULT_PAYABLE_STATUSES,
    ):
        self.session = session
        self.payable_statuses = tuple(payable_statuses)

    async def summarize(
        self,
        employment_id: UUID,
        period_start: date,
        period_end: date,
    ) -> TimesheetSummary | None:
        """Summarize one employee's payable timesheets in [period_start, period_end]."""
        records = await self._get_timesheets([employment_id], period_start, period_end)
        return summarize_records(records)

    async def group_records(
        self,
        employment_ids: Sequence[UUID],
        period_start: date,
        period_end: date,
    ) -> dict[UUID, list[Timesheet]]:
        """Fetch payable timesheets for a roster grouped by employment."""
        records = await self._get_timesheets(employment_ids, period_start, period_end)
        grouped: dict[UUID, list[Timesheet]] = defaultdict(list)
        for record in records:
            grouped[record.employment_id].append(record)
        return dict(grouped)

    async def _get_timesheets(
        self,
        employment_ids: Sequence[UUID],
        period_start: date,
        period_end: date,
    ) -> list[Timesheet]:
        """Get payable timesheets in the inclusive date range."""
        if not employment_ids:
            return []

        result = await self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.employment_id.in_(list(employment_ids)),
                Timesheet.work_date >= period_start,
                Timesheet.work_date <= period_end,
                Timesheet.status.in_(self.payable_statuses),
            )
            .order_by(Timesheet.employment_id, Timesheet.work_date)
        )
        return list(result.scalars().all())
