"""Slip writer - persists computed slips and their items."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.types import PaySlipDraft
from timesheet_payroll.models import PayrollItem, PayrollSlip
from timesheet_payroll.services.state_machine import SlipStateMachine, SlipStatus

logger = logging.getLogger(__name__)


class SlipWriter:
    """Writes one slip per (run, employee).

    Slips are append-only across runs: writing never touches slips that
    belong to another run. Each write runs inside its own SAVEPOINT so a
    failed insert leaves the surrounding run transaction usable.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def write(
        self,
        run_id: UUID,
        draft: PaySlipDraft,
        metadata: dict[str, Any] | None = None,
    ) -> PayrollSlip:
        """Insert a draft slip and its items for one employee."""
        slip = PayrollSlip(
            payroll_run_id=run_id,
            employment_id=draft.employment_id,
            currency_code=draft.currency_code,
            base_salary=draft.base_salary,
            salary_period=draft.salary_period.value,
            basic_salary=draft.basic_salary,
            transport_allowance=draft.transport_allowance,
            overtime_pay=draft.overtime_pay,
            night_premium=draft.night_premium,
            holiday_premium=draft.holiday_premium,
            gross_pay=draft.gross_pay,
            health_deduction=draft.health_deduction,
            pension_deduction=draft.pension_deduction,
            solidarity_fund=draft.solidarity_fund,
            tax_withholding=draft.tax_withholding,
            loan_deductions=draft.loan_deductions,
            advance_deductions=draft.advance_deductions,
            total_deductions=draft.total_deductions,
            net_pay=draft.net_pay,
            employer_health=draft.employer_health,
            employer_pension=draft.employer_pension,
            employer_arl=draft.employer_arl,
            employer_parafiscales=draft.employer_parafiscales,
            employer_severance=draft.employer_severance,
            employer_severance_interest=draft.employer_severance_interest,
            employer_vacation_provision=draft.employer_vacation_provision,
            employer_bonus_provision=draft.employer_bonus_provision,
            total_employer_cost=draft.total_employer_cost,
            regular_hours=draft.regular_hours,
            overtime_day_hours=draft.overtime_day_hours,
            overtime_night_hours=draft.overtime_night_hours,
            holiday_hours=draft.holiday_hours,
            status=SlipStatus.DRAFT.value,
            metadata_json={
                "days_worked": draft.days_worked,
                "hourly_rate": str(draft.hourly_rate),
                "rules_fingerprint": draft.rules_fingerprint,
                **(metadata or {}),
            },
        )

        async with self.session.begin_nested():
            self.session.add(slip)
            await self.session.flush()

            for item in draft.items:
                self.session.add(
                    PayrollItem(
                        payroll_slip_id=slip.id,
                        item_type=item.item_type.value,
                        code=item.code,
                        name=item.name,
                        amount=item.amount,
                        quantity=item.quantity,
                        rate=item.rate,
                        base_amount=item.base_amount,
                        percentage=item.percentage,
                        is_taxable=item.is_taxable,
                        affects_social_security=item.affects_social_security,
                        source_type=item.source_type,
                    )
                )
            await self.session.flush()

        logger.debug(
            "Wrote slip %s for employment %s in run %s (%d items)",
            slip.id,
            draft.employment_id,
            run_id,
            len(draft.items),
        )
        return slip

    async def approve_slips(self, run_id: UUID) -> int:
        """Move all draft slips of a run to approved."""
        return await self._advance(run_id, SlipStatus.APPROVED)

    async def mark_slips_paid(self, run_id: UUID) -> int:
        """Move all approved slips of a run to paid."""
        return await self._advance(
            run_id, SlipStatus.PAID, paid_at=datetime.now(timezone.utc)
        )

    async def _advance(self, run_id: UUID, to_status: SlipStatus, **values: Any) -> int:
        """Bulk-advance slip status with a conditional update."""
        from_status = SlipStateMachine.previous_status(to_status).value
        result = await self.session.execute(
            update(PayrollSlip)
            .where(
                PayrollSlip.payroll_run_id == run_id,
                PayrollSlip.status == from_status,
            )
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        logger.info(
            "Moved %d slip(s) of run %s from %s to %s",
            result.rowcount,
            run_id,
            from_status,
            to_status.value,
        )
        return result.rowcount
