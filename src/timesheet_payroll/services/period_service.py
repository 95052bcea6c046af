"""Payroll period service - lifecycle and read access for periods."""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.exceptions import (
    InvalidPeriodError,
    InvalidTransitionError,
    PeriodNotFoundError,
    RunNotFoundError,
)
from timesheet_payroll.models import PayrollItem, PayrollPeriod, PayrollRun, PayrollSlip
from timesheet_payroll.services.audit import record_audit
from timesheet_payroll.services.slip_writer import SlipWriter
from timesheet_payroll.services.state_machine import (
    PeriodStateMachine,
    PeriodStatus,
    RunStatus,
)

logger = logging.getLogger(__name__)

FREQUENCIES = ("daily", "weekly", "biweekly", "monthly")

PENDING_STATUSES = {PeriodStatus.DRAFT, PeriodStatus.CALCULATING, PeriodStatus.REVIEWING}
SETTLED_STATUSES = {PeriodStatus.APPROVED, PeriodStatus.PAID}


def generate_period_name(period_start: date, frequency: str) -> str:
    """Human-readable period name derived from its start date and frequency."""
    month = calendar.month_name[period_start.month]
    year = period_start.year
    if frequency == "monthly":
        return f"{month} {year}"
    if frequency == "biweekly":
        half = "First" if period_start.day <= 15 else "Second"
        return f"{half} half {month} {year}"
    if frequency == "weekly":
        week = (period_start.day + 6) // 7
        return f"Week {week} {month} {year}"
    return f"{period_start.day} {month} {year}"


class PeriodService:
    """Service for managing payroll period lifecycle.

    Operations:
    - create_period / get_period / list_periods / delete_period
    - transition: user-driven status changes (approve, pay, cancel)
    - get_runs / get_slips / get_items: read access to calculation results
    - get_stats: organization-wide summary
    """

    def __init__(self, session: AsyncSession, organization_id: int):
        self.session = session
        self.organization_id = organization_id
        self.slip_writer = SlipWriter(session)

    async def create_period(
        self,
        period_start: date,
        period_end: date,
        frequency: str = "monthly",
        name: str | None = None,
        payment_date: date | None = None,
        notes: str | None = None,
        created_by: str | None = None,
    ) -> PayrollPeriod:
        """Create a draft period."""
        if period_end < period_start:
            raise InvalidPeriodError(
                f"period_end {period_end} is before period_start {period_start}"
            )
        if frequency not in FREQUENCIES:
            raise InvalidPeriodError(
                f"frequency must be one of {', '.join(FREQUENCIES)}, got '{frequency}'"
            )

        period = PayrollPeriod(
            organization_id=self.organization_id,
            name=name or generate_period_name(period_start, frequency),
            period_start=period_start,
            period_end=period_end,
            payment_date=payment_date,
            frequency=frequency,
            status=PeriodStatus.DRAFT.value,
            notes=notes,
            metadata_json={},
        )
        self.session.add(period)
        await self.session.flush()

        record_audit(
            self.session,
            self.organization_id,
            entity_type="payroll_period",
            entity_id=period.id,
            action="payroll_period.created",
            actor=created_by,
        )
        await self.session.flush()
        logger.info("Created payroll period %s (%s)", period.id, period.name)
        return period

    async def get_period(self, period_id: UUID) -> PayrollPeriod:
        """Load a period owned by the organization."""
        result = await self.session.execute(
            select(PayrollPeriod).where(
                PayrollPeriod.id == period_id,
                PayrollPeriod.organization_id == self.organization_id,
            )
        )
        period = result.scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(period_id, self.organization_id)
        return period

    async def list_periods(
        self,
        status: str | None = None,
        frequency: str | None = None,
        year: int | None = None,
    ) -> list[PayrollPeriod]:
        """List periods, newest first."""
        query = select(PayrollPeriod).where(
            PayrollPeriod.organization_id == self.organization_id
        )
        if status:
            query = query.where(PayrollPeriod.status == status)
        if frequency:
            query = query.where(PayrollPeriod.frequency == frequency)
        if year:
            query = query.where(
                PayrollPeriod.period_start >= date(year, 1, 1),
                PayrollPeriod.period_start <= date(year, 12, 31),
            )

        result = await self.session.execute(query.order_by(PayrollPeriod.period_start.desc()))
        return list(result.scalars().all())

    async def delete_period(self, period_id: UUID, actor: str | None = None) -> None:
        """Delete a period. Only draft periods can be deleted."""
        period = await self.get_period(period_id)
        if period.status != PeriodStatus.DRAFT:
            raise InvalidTransitionError(
                period.status, "deleted", "Only draft periods can be deleted"
            )

        record_audit(
            self.session,
            self.organization_id,
            entity_type="payroll_period",
            entity_id=period.id,
            action="payroll_period.deleted",
            actor=actor,
        )
        await self.session.execute(delete(PayrollPeriod).where(PayrollPeriod.id == period.id))
        await self.session.flush()

    async def transition(
        self,
        period_id: UUID,
        to_status: str,
        actor: str | None = None,
        reason: str | None = None,
    ) -> PayrollPeriod:
        """Transition a period to a new status.

        Handles all side effects of transitions:
        - approved: latest completed run becomes final, its slips approved
        - paid: slips of the final run marked paid
        - cancelled: recorded with the optional reason

        Raises InvalidTransitionError if the transition is not allowed.
        """
        period = await self.get_period(period_id)
        from_status = period.status
        latest_run = await self._get_latest_completed_run(period.id)

        errors = PeriodStateMachine.validate_period_for_transition(period, to_status, latest_run)
        if errors:
            raise InvalidTransitionError(from_status, to_status, "; ".join(errors))

        if to_status == PeriodStatus.APPROVED and latest_run is not None:
            latest_run.is_final = True
            await self.slip_writer.approve_slips(latest_run.id)
            period.approved_at = datetime.now(timezone.utc)
            period.approved_by = actor

        elif to_status == PeriodStatus.PAID:
            final_run = await self._get_final_run(period.id)
            if final_run is not None:
                await self.slip_writer.mark_slips_paid(final_run.id)

        period.status = PeriodStatus(to_status).value

        details: dict[str, Any] = {"from": from_status, "to": period.status}
        if reason:
            details["reason"] = reason
        record_audit(
            self.session,
            self.organization_id,
            entity_type="payroll_period",
            entity_id=period.id,
            action=f"status_change:{from_status}:{period.status}",
            actor=actor,
            details=details,
        )
        await self.session.flush()

        logger.info("Payroll period %s moved from %s to %s", period.id, from_status, period.status)
        return period

    async def get_runs(self, period_id: UUID) -> list[PayrollRun]:
        """List runs for a period, newest first."""
        await self.get_period(period_id)
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.payroll_period_id == period_id)
            .order_by(PayrollRun.run_number.desc())
        )
        return list(result.scalars().all())

    async def get_slips(self, run_id: UUID) -> list[PayrollSlip]:
        """List slips of a run owned by the organization."""
        await self._get_run(run_id)
        result = await self.session.execute(
            select(PayrollSlip)
            .where(PayrollSlip.payroll_run_id == run_id)
            .order_by(PayrollSlip.created_at, PayrollSlip.id)
        )
        return list(result.scalars().all())

    async def get_items(self, slip_id: UUID) -> list[PayrollItem]:
        """List items of a slip owned by the organization."""
        result = await self.session.execute(
            select(PayrollItem)
            .join(PayrollSlip, PayrollItem.payroll_slip_id == PayrollSlip.id)
            .join(PayrollRun, PayrollSlip.payroll_run_id == PayrollRun.id)
            .join(PayrollPeriod, PayrollRun.payroll_period_id == PayrollPeriod.id)
            .where(
                PayrollItem.payroll_slip_id == slip_id,
                PayrollPeriod.organization_id == self.organization_id,
            )
            .order_by(PayrollItem.item_type, PayrollItem.code)
        )
        return list(result.scalars().all())

    async def get_stats(self) -> dict[str, Any]:
        """Counts of pending periods and totals of settled ones."""
        periods = await self.list_periods()
        settled = [p for p in periods if p.status in SETTLED_STATUSES]
        return {
            "total_periods": len(periods),
            "pending_periods": sum(1 for p in periods if p.status in PENDING_STATUSES),
            "total_gross": sum((p.total_gross for p in settled), Decimal("0")),
            "total_net": sum((p.total_net for p in settled), Decimal("0")),
            "total_employer_cost": sum((p.total_employer_cost for p in settled), Decimal("0")),
            "total_employees": max((p.total_employees for p in periods), default=0),
        }

    async def _get_run(self, run_id: UUID) -> PayrollRun:
        result = await self.session.execute(
            select(PayrollRun)
            .join(PayrollPeriod, PayrollRun.payroll_period_id == PayrollPeriod.id)
            .where(
                PayrollRun.id == run_id,
                PayrollPeriod.organization_id == self.organization_id,
            )
        )
        run = result.scalar_one_or_none()
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    async def _get_latest_completed_run(self, period_id: UUID) -> PayrollRun | None:
        result = await self.session.execute(
            select(PayrollRun)
            .where(
                PayrollRun.payroll_period_id == period_id,
                PayrollRun.status == RunStatus.COMPLETED.value,
            )
            .order_by(PayrollRun.run_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _get_final_run(self, period_id: UUID) -> PayrollRun | None:
        result = await self.session.execute(
            select(PayrollRun).where(
                PayrollRun.payroll_period_id == period_id,
                PayrollRun.is_final.is_(True),
            )
        )
        return result.scalar_one_or_none()
