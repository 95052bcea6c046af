"""Payroll calculation service - runs a period's calculation end to end."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.pay_calculator import PayCalculator
from timesheet_payroll.calculators.rules import RuleProvider
from timesheet_payroll.calculators.timesheets import TimesheetAggregator, summarize_records
from timesheet_payroll.calculators.types import (
    EmploymentData,
    LaborRules,
    PaySlipDraft,
    TimesheetSummary,
)
from timesheet_payroll.config import Settings, get_settings
from timesheet_payroll.exceptions import (
    CalculationInProgressError,
    InvalidTransitionError,
    PayrollError,
    PeriodNotFoundError,
    RosterUnavailableError,
    SupersessionRequiredError,
)
from timesheet_payroll.models import Employment, Organization, PayrollPeriod, PayrollRun
from timesheet_payroll.services.audit import record_audit
from timesheet_payroll.services.slip_writer import SlipWriter
from timesheet_payroll.services.state_machine import (
    PeriodStateMachine,
    PeriodStatus,
    RunStateMachine,
    RunStatus,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class PayrollCalculationResult:
    """Outcome for one employee: created, updated, skipped or error."""

    employment_id: UUID
    employee_name: str
    status: str
    message: str | None = None
    slip_id: UUID | None = None
    summary: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "employment_id": str(self.employment_id),
            "employee_name": self.employee_name,
            "status": self.status,
        }
        if self.message is not None:
            data["message"] = self.message
        if self.slip_id is not None:
            data["slip_id"] = str(self.slip_id)
        if self.summary is not None:
            data["summary"] = {k: str(v) for k, v in self.summary.items()}
        return data


@dataclass
class PayrollCalculationSummary:
    """Result of calculating an entire period."""

    period_id: UUID
    run_id: UUID
    run_number: int
    rules_fingerprint: str
    total_employees: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_net: Decimal = ZERO
    total_employer_cost: Decimal = ZERO
    results: list[PayrollCalculationResult] = field(default_factory=list)

    @property
    def totals(self) -> dict[str, Decimal]:
        return {
            "gross_pay": self.total_gross,
            "total_deductions": self.total_deductions,
            "net_pay": self.total_net,
            "employer_cost": self.total_employer_cost,
        }

    def add(self, result: PayrollCalculationResult) -> None:
        self.results.append(result)
        if result.status == "created":
            self.created += 1
        elif result.status == "updated":
            self.updated += 1
        elif result.status == "skipped":
            self.skipped += 1
        else:
            self.errors += 1

    def counts(self) -> dict[str, Any]:
        return {
            "total_employees": self.total_employees,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "totals": {k: str(v) for k, v in self.totals.items()},
            "rules_fingerprint": self.rules_fingerprint,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_id": str(self.period_id),
            "run_id": str(self.run_id),
            "run_number": self.run_number,
            **self.counts(),
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class _EmployeeJob:
    """Per-employee work item carried through fan-out and fan-in."""

    employment: Employment
    employee_name: str
    data: EmploymentData | None = None
    summary: TimesheetSummary | None = None
    draft: PaySlipDraft | None = None
    error: Exception | None = None

    @property
    def skipped(self) -> bool:
        return self.error is None and self.summary is None


class PayrollCalculationService:
    """Calculates payroll for a period across the organization's roster.

    Pipeline:
    1) Load the period for the organization
    2) Check the period can be calculated and supersession is explicit
    3) Claim the period (conditional update, one run per period)
    4) Allocate the next run number
    5) Load rules once and the active roster (run-wide preconditions)
    6) Fan out pure calculations over a bounded worker pool
    7) Write slips sequentially, one savepoint each
    8) Aggregate totals once, after every write
    9) Supersede prior completed runs
    10) Complete the run with its summary
    11) Record the audit event
    """

    def __init__(
        self,
        session: AsyncSession,
        organization_id: int,
        settings: Settings | None = None,
    ):
        self.session = session
        self.organization_id = organization_id
        self.settings = settings or get_settings()
        self.rule_provider = RuleProvider(session)
        self.aggregator = TimesheetAggregator(
            session, self.settings.payable_timesheet_statuses
        )
        self.calculator = PayCalculator()
        self.slip_writer = SlipWriter(session)

    async def calculate_period(
        self,
        period_id: UUID,
        executed_by: str,
        *,
        supersede: bool = False,
    ) -> PayrollCalculationSummary:
        """Calculate every active employee for a period.

        Raises:
            PeriodNotFoundError: Period missing or owned by another organization
            InvalidTransitionError: Period status does not allow calculation
            SupersessionRequiredError: A completed run exists and supersede is False
            CalculationInProgressError: Another run holds the period
            RulesNotFoundError, RosterUnavailableError: Run-wide precondition
                failures; the run is committed as ``error`` before re-raising
        """
        period = await self._get_period(period_id)
        previous_status = period.status

        if not PeriodStateMachine.can_calculate(previous_status):
            raise InvalidTransitionError(
                previous_status,
                PeriodStatus.CALCULATING.value,
                f"Cannot calculate period in status '{previous_status}'",
            )

        authoritative = await self._get_authoritative_run(period.id)
        if authoritative is not None and not supersede:
            raise SupersessionRequiredError(period.id, authoritative.id, authoritative.run_number)

        await self._claim_period(period, previous_status)

        run = PayrollRun(
            payroll_period_id=period.id,
            run_number=await self._next_run_number(period.id),
            executed_by=executed_by,
            executed_at=datetime.now(timezone.utc),
            status=RunStatus.CALCULATING.value,
        )
        self.session.add(run)
        await self.session.flush()

        logger.info(
            "Starting payroll run #%d (%s) for period %s [%s..%s]",
            run.run_number,
            run.id,
            period.id,
            period.period_start,
            period.period_end,
        )

        try:
            async with self.session.begin_nested():
                rules = await self._load_rules()
                roster = await self._get_roster()
                grouped = await self.aggregator.group_records(
                    [e.id for e in roster], period.period_start, period.period_end
                )
        except PayrollError as exc:
            await self._fail_run(run, period, previous_status, exc)
            raise

        jobs = self._prepare_jobs(roster, grouped)
        await self._calculate_jobs(jobs, rules)

        summary = PayrollCalculationSummary(
            period_id=period.id,
            run_id=run.id,
            run_number=run.run_number,
            rules_fingerprint=rules.fingerprint,
            total_employees=len(roster),
        )

        for job in jobs:
            summary.add(await self._write_result(run, period, job, grouped))

        # Aggregation barrier: all slip writes are done
        for result in summary.results:
            if result.status != "created":
                continue
            slip_summary = result.summary or {}
            summary.total_gross += slip_summary["gross_pay"]
            summary.total_deductions += slip_summary["total_deductions"]
            summary.total_net += slip_summary["net_pay"]
            summary.total_employer_cost += slip_summary["employer_cost"]

        PeriodStateMachine.validate_transition(period.status, PeriodStatus.REVIEWING)
        period.total_employees = summary.created
        period.total_gross = summary.total_gross
        period.total_deductions = summary.total_deductions
        period.total_net = summary.total_net
        period.total_employer_cost = summary.total_employer_cost
        period.status = PeriodStatus.REVIEWING.value

        superseded = await self._supersede_prior_runs(period.id, run.id)

        RunStateMachine.validate_transition(run.status, RunStatus.COMPLETED)
        run.status = RunStatus.COMPLETED.value
        run.summary = {
            **summary.counts(),
            "rules_source": rules.source,
            "rules_year": rules.year,
            "superseded_runs": [str(run_id) for run_id in superseded],
        }

        record_audit(
            self.session,
            self.organization_id,
            entity_type="payroll_run",
            entity_id=run.id,
            action="payroll_run.completed",
            actor=executed_by,
            details={"period_id": str(period.id), **run.summary},
        )
        await self.session.flush()

        logger.info(
            "Completed payroll run #%d for period %s: %d created, %d skipped, %d errors",
            run.run_number,
            period.id,
            summary.created,
            summary.skipped,
            summary.errors,
        )
        return summary

    async def preview_calculation(
        self,
        period_start: date,
        period_end: date,
    ) -> dict[str, Any]:
        """Estimate totals for a date range without persisting anything."""
        rules = await self._load_rules()
        roster = await self._get_roster()
        grouped = await self.aggregator.group_records(
            [e.id for e in roster], period_start, period_end
        )
        jobs = self._prepare_jobs(roster, grouped)
        await self._calculate_jobs(jobs, rules)

        drafts = [job.draft for job in jobs if job.draft is not None]
        return {
            "employees": len(roster),
            "employees_with_timesheets": len(grouped),
            "timesheets": sum(len(records) for records in grouped.values()),
            "errors": sum(1 for job in jobs if job.error is not None),
            "estimated_gross": sum((d.gross_pay for d in drafts), ZERO),
            "estimated_deductions": sum((d.total_deductions for d in drafts), ZERO),
            "estimated_net": sum((d.net_pay for d in drafts), ZERO),
            "estimated_employer_cost": sum((d.total_employer_cost for d in drafts), ZERO),
            "rules_fingerprint": rules.fingerprint,
        }

    def _prepare_jobs(
        self,
        roster: list[Employment],
        grouped: dict[UUID, list[Any]],
    ) -> list[_EmployeeJob]:
        """Validate employment data and summarize timesheets, in roster order."""
        jobs: list[_EmployeeJob] = []
        for employment in roster:
            job = _EmployeeJob(employment=employment, employee_name=employment.display_name)
            jobs.append(job)
            try:
                records = grouped.get(employment.id)
                if not records:
                    continue
                job.summary = summarize_records(records)
                job.data = EmploymentData.from_model(employment)
            except Exception as exc:
                logger.exception("Failed to prepare payroll for employment %s", employment.id)
                job.error = exc
        return jobs

    async def _calculate_jobs(self, jobs: list[_EmployeeJob], rules: LaborRules) -> None:
        """Run pure calculations on a bounded pool sharing one rules snapshot."""
        pending = [job for job in jobs if job.data is not None and job.summary is not None]
        if not pending:
            return

        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=self.settings.calculation_workers) as executor:
            outcomes = await asyncio.gather(
                *(
                    loop.run_in_executor(
                        executor, self.calculator.calculate, job.data, job.summary, rules
                    )
                    for job in pending
                ),
                return_exceptions=True,
            )

        for job, outcome in zip(pending, outcomes):
            if isinstance(outcome, Exception):
                job.error = outcome
            else:
                job.draft = outcome

    async def _write_result(
        self,
        run: PayrollRun,
        period: PayrollPeriod,
        job: _EmployeeJob,
        grouped: dict[UUID, list[Any]],
    ) -> PayrollCalculationResult:
        """Persist one employee's slip and report the outcome."""
        employment_id = job.employment.id
        if job.error is not None:
            logger.error(
                "Payroll calculation failed for employment %s in run %s: %s",
                employment_id,
                run.id,
                job.error,
                exc_info=job.error,
            )
            return PayrollCalculationResult(
                employment_id, job.employee_name, "error", message=str(job.error)
            )

        if job.skipped:
            return PayrollCalculationResult(
                employment_id,
                job.employee_name,
                "skipped",
                message="No payable timesheets in period",
            )

        draft = job.draft
        try:
            slip = await self.slip_writer.write(
                run.id,
                draft,
                metadata={
                    "timesheets_count": len(grouped.get(employment_id, [])),
                    "period_start": period.period_start.isoformat(),
                    "period_end": period.period_end.isoformat(),
                },
            )
        except SQLAlchemyError as exc:
            logger.exception(
                "Could not write slip for employment %s in run %s", employment_id, run.id
            )
            return PayrollCalculationResult(
                employment_id, job.employee_name, "error", message=str(exc)
            )

        return PayrollCalculationResult(
            employment_id,
            job.employee_name,
            "created",
            slip_id=slip.id,
            summary=draft.summary(),
        )

    async def _get_period(self, period_id: UUID) -> PayrollPeriod:
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

    async def _get_authoritative_run(self, period_id: UUID) -> PayrollRun | None:
        """Get the completed run that currently backs the period's totals."""
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

    async def _claim_period(self, period: PayrollPeriod, seen_status: str) -> None:
        """Move the period to calculating only if nobody else changed it first."""
        PeriodStateMachine.validate_transition(seen_status, PeriodStatus.CALCULATING)
        result = await self.session.execute(
            update(PayrollPeriod)
            .where(
                PayrollPeriod.id == period.id,
                PayrollPeriod.status == seen_status,
            )
            .values(status=PeriodStatus.CALCULATING.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CalculationInProgressError(period.id)
        period.status = PeriodStatus.CALCULATING.value

    async def _next_run_number(self, period_id: UUID) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.max(PayrollRun.run_number), 0)).where(
                PayrollRun.payroll_period_id == period_id
            )
        )
        return result.scalar_one() + 1

    async def _load_rules(self) -> LaborRules:
        """Load the ruleset for the organization's country."""
        organization = await self.session.get(Organization, self.organization_id)
        country_code = (
            organization.country_code
            if organization is not None and organization.country_code
            else self.settings.default_country_code
        )
        return await self.rule_provider.get_rules(country_code)

    async def _get_roster(self) -> list[Employment]:
        """Get active employments for the organization."""
        try:
            result = await self.session.execute(
                select(Employment)
                .where(
                    Employment.organization_id == self.organization_id,
                    Employment.status == "active",
                )
                .order_by(Employment.last_name, Employment.first_name, Employment.id)
            )
        except SQLAlchemyError as exc:
            raise RosterUnavailableError(self.organization_id, exc) from exc
        return list(result.scalars().all())

    async def _supersede_prior_runs(self, period_id: UUID, run_id: UUID) -> list[UUID]:
        """Mark earlier completed runs as superseded by ``run_id``."""
        result = await self.session.execute(
            select(PayrollRun).where(
                PayrollRun.payroll_period_id == period_id,
                PayrollRun.status == RunStatus.COMPLETED.value,
                PayrollRun.id != run_id,
            )
        )
        superseded: list[UUID] = []
        for prior in result.scalars().all():
            RunStateMachine.validate_transition(prior.status, RunStatus.SUPERSEDED)
            prior.status = RunStatus.SUPERSEDED.value
            prior.superseded_by = run_id
            prior.is_final = False
            superseded.append(prior.id)
            logger.info("Run #%d (%s) superseded by %s", prior.run_number, prior.id, run_id)
        return superseded

    async def _fail_run(
        self,
        run: PayrollRun,
        period: PayrollPeriod,
        previous_status: str,
        exc: Exception,
    ) -> None:
        """Record a run-wide failure and release the period.

        Committed here so the failed run survives the caller's rollback.
        """
        logger.error("Payroll run %s aborted for period %s: %s", run.id, period.id, exc)
        RunStateMachine.validate_transition(run.status, RunStatus.ERROR)
        run.status = RunStatus.ERROR.value
        run.error_log = str(exc)
        PeriodStateMachine.validate_transition(period.status, previous_status)
        period.status = previous_status
        record_audit(
            self.session,
            self.organization_id,
            entity_type="payroll_run",
            entity_id=run.id,
            action="payroll_run.failed",
            actor=run.executed_by,
            details={"period_id": str(period.id), "error": str(exc)},
        )
        await self.session.commit()
