"""Tests for the payroll calculation service."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, update
from sqlalchemy.orm.attributes import set_committed_value

from timesheet_payroll.calculators.timesheets import summarize_records
from timesheet_payroll.exceptions import (
    CalculationInProgressError,
    InvalidTransitionError,
    PeriodNotFoundError,
    RulesNotFoundError,
    SupersessionRequiredError,
)
from timesheet_payroll.models import (
    AuditEvent,
    CountryPayrollRules,
    Organization,
    PayrollItem,
    PayrollPeriod,
    PayrollRun,
    PayrollSlip,
)
from timesheet_payroll.services.calculation_service import PayrollCalculationService


async def fetch_all(session, model, *criteria):
    query = select(model).execution_options(populate_existing=True)
    if criteria:
        query = query.where(*criteria)
    result = await session.execute(query)
    return list(result.scalars().all())


@pytest.fixture
def service(session, organization, settings):
    return PayrollCalculationService(session, organization.id, settings)


class TestCalculatePeriod:
    """Test end-to-end period calculation."""

    async def test_single_employee_slip(
        self, service, session, period, make_employment, add_timesheets
    ):
        """Test a minimum-wage employee with 22 worked days."""
        employment = await make_employment()
        await add_timesheets(employment, days=22)

        summary = await service.calculate_period(period.id, "payroll-admin")

        assert summary.run_number == 1
        assert summary.total_employees == 1
        assert summary.created == 1
        assert summary.skipped == 0
        assert summary.errors == 0
        assert summary.total_gross == Decimal("1072133.33")
        assert summary.total_net == Decimal("995866.67")

        [slip] = await fetch_all(session, PayrollSlip, PayrollSlip.payroll_run_id == summary.run_id)
        assert slip.employment_id == employment.id
        assert slip.status == "draft"
        assert slip.basic_salary == Decimal("953333.33")
        assert slip.transport_allowance == Decimal("118800.00")
        assert slip.metadata_json["days_worked"] == 22
        assert slip.metadata_json["timesheets_count"] == 22
        assert slip.metadata_json["rules_fingerprint"] == summary.rules_fingerprint

        items = await fetch_all(session, PayrollItem, PayrollItem.payroll_slip_id == slip.id)
        earnings = sum(i.amount for i in items if i.item_type == "earning")
        assert earnings == slip.gross_pay

    async def test_period_and_run_updated(
        self, service, session, period, make_employment, add_timesheets
    ):
        """Test the period moves to reviewing with totals and the run completes."""
        employment = await make_employment()
        await add_timesheets(employment, days=22)

        summary = await service.calculate_period(period.id, "payroll-admin")

        assert period.status == "reviewing"
        assert period.total_employees == 1
        assert period.total_gross == summary.total_gross
        assert period.total_employer_cost == summary.total_employer_cost

        [run] = await fetch_all(session, PayrollRun, PayrollRun.id == summary.run_id)
        assert run.status == "completed"
        assert run.executed_by == "payroll-admin"
        assert run.summary["created"] == 1
        assert run.summary["rules_source"] == "default"
        assert run.summary["totals"]["gross_pay"] == "1072133.33"

        audit = await fetch_all(session, AuditEvent, AuditEvent.entity_id == run.id)
        assert [event.action for event in audit] == ["payroll_run.completed"]

    async def test_period_totals_equal_sum_of_slips(
        self, service, session, period, make_employment, add_timesheets
    ):
        """Test aggregate totals are the sum over created slips."""
        salaries = ["1300000", "2000000", "6000000", "1750000", "3100000"]
        for index, salary in enumerate(salaries):
            employment = await make_employment(
                employee_code=f"E-{index:03d}",
                last_name=f"Employee {index}",
                base_salary=Decimal(salary),
            )
            await add_timesheets(employment, days=20 + index, overtime_minutes=30 * index)

        summary = await service.calculate_period(period.id, "payroll-admin")
        slips = await fetch_all(session, PayrollSlip, PayrollSlip.payroll_run_id == summary.run_id)

        assert summary.created == len(salaries) == len(slips)
        assert summary.total_gross == sum(s.gross_pay for s in slips)
        assert summary.total_deductions == sum(s.total_deductions for s in slips)
        assert summary.total_net == sum(s.net_pay for s in slips)
        assert summary.total_employer_cost == sum(s.total_employer_cost for s in slips)
        assert {s.metadata_json["rules_fingerprint"] for s in slips} == {summary.rules_fingerprint}

    async def test_results_follow_roster_order(
        self, service, period, make_employment, add_timesheets
    ):
        """Test results are ordered by last name regardless of insertion."""
        zapata = await make_employment(last_name="Zapata", employee_code="E-1")
        arango = await make_employment(last_name="Arango", employee_code="E-2")
        await add_timesheets(zapata, days=10)
        await add_timesheets(arango, days=10)

        summary = await service.calculate_period(period.id, "payroll-admin")

        assert [r.employment_id for r in summary.results] == [arango.id, zapata.id]

    async def test_employee_without_timesheets_skipped(
        self, service, session, period, make_employment, add_timesheets
    ):
        """Test employees without payable timesheets get no slip."""
        worker = await make_employment(last_name="Alvarez", employee_code="E-1")
        await make_employment(last_name="Botero", employee_code="E-2")
        await add_timesheets(worker, days=10)

        summary = await service.calculate_period(period.id, "payroll-admin")

        assert summary.total_employees == 2
        assert summary.created == 1
        assert summary.skipped == 1
        assert summary.results[1].status == "skipped"
        slips = await fetch_all(session, PayrollSlip, PayrollSlip.payroll_run_id == summary.run_id)
        assert len(slips) == 1

    async def test_inactive_employees_ignored(
        self, service, period, make_employment, add_timesheets
    ):
        """Test only active employments are on the roster."""
        active = await make_employment(employee_code="E-1")
        leaver = await make_employment(employee_code="E-2", status="terminated")
        await add_timesheets(active, days=5)
        await add_timesheets(leaver, days=5)

        summary = await service.calculate_period(period.id, "payroll-admin")

        assert summary.total_employees == 1
        assert [r.employment_id for r in summary.results] == [active.id]

    async def test_bad_employee_isolated(
        self, service, session, period, make_employment, add_timesheets
    ):
        """Test one malformed employment does not block the others."""
        good = await make_employment(last_name="Alvarez", employee_code="E-1")
        bad = await make_employment(
            last_name="Botero", employee_code="E-2", salary_period="fortnightly"
        )
        negative = await make_employment(last_name="Castro", employee_code="E-3")
        await add_timesheets(good, days=10)
        await add_timesheets(bad, days=10)
        await add_timesheets(negative, days=1, overtime_minutes=-15)

        summary = await service.calculate_period(period.id, "payroll-admin")

        statuses = {r.employment_id: r.status for r in summary.results}
        assert statuses == {good.id: "created", bad.id: "error", negative.id: "error"}
        assert summary.errors == 2
        assert "fortnightly" in summary.results[1].message
        assert period.status == "reviewing"
        assert period.total_employees == 1

    async def test_non_finite_salary_isolated(
        self, service, session, period, make_employment, add_timesheets
    ):
        """Test a NaN salary fails only its employee."""
        good = await make_employment(last_name="Alvarez", employee_code="E-1")
        bad = await make_employment(last_name="Botero", employee_code="E-2")
        await add_timesheets(good, days=10)
        await add_timesheets(bad, days=10)
        # SQLite cannot store NaN
        set_committed_value(bad, "base_salary", Decimal("NaN"))

        summary = await service.calculate_period(period.id, "payroll-admin")

        statuses = {r.employment_id: r.status for r in summary.results}
        assert statuses == {good.id: "created", bad.id: "error"}
        assert "finite" in summary.results[1].message
        assert period.status == "reviewing"

    async def test_unexpected_error_isolated(
        self, service, session, period, make_employment, add_timesheets, monkeypatch
    ):
        """Test an unexpected exception while preparing one employee is reported for it alone."""
        good = await make_employment(last_name="Alvarez", employee_code="E-1")
        bad = await make_employment(last_name="Botero", employee_code="E-2")
        await add_timesheets(good, days=10)
        await add_timesheets(bad, days=10)

        def summarize(records):
            if records[0].employment_id == bad.id:
                raise RuntimeError("corrupt timesheet row")
            return summarize_records(records)

        monkeypatch.setattr(
            "timesheet_payroll.services.calculation_service.summarize_records", summarize
        )

        summary = await service.calculate_period(period.id, "payroll-admin")

        statuses = {r.employment_id: r.status for r in summary.results}
        assert statuses == {good.id: "created", bad.id: "error"}
        assert summary.results[1].message == "corrupt timesheet row"
        assert summary.created == 1

    async def test_configured_rules_used(
        self, service, session, period, make_employment, add_timesheets
    ):
        """Test an in-force ruleset row replaces the built-in defaults."""
        row = CountryPayrollRules(
            country_code="CO",
            name="Colombia custom",
            year=2024,
            minimum_wage=Decimal("1300000"),
            health_employee_pct=Decimal("5"),
            is_active=True,
            valid_from=date(2024, 1, 1),
        )
        session.add(row)
        employment = await make_employment()
        await add_timesheets(employment, days=30)

        summary = await service.calculate_period(period.id, "payroll-admin")
        [slip] = await fetch_all(session, PayrollSlip, PayrollSlip.payroll_run_id == summary.run_id)

        assert slip.health_deduction == Decimal("65000.00")
        [run] = await fetch_all(session, PayrollRun, PayrollRun.id == summary.run_id)
        assert run.summary["rules_source"] == str(row.id)


class TestRunLifecycle:
    """Test run numbering, supersession and claiming."""

    async def test_recalculation_requires_supersede(
        self, service, period, make_employment, add_timesheets
    ):
        """Test a completed run is never replaced implicitly."""
        employment = await make_employment()
        await add_timesheets(employment, days=10)
        first = await service.calculate_period(period.id, "payroll-admin")

        with pytest.raises(SupersessionRequiredError) as exc_info:
            await service.calculate_period(period.id, "payroll-admin")

        assert exc_info.value.run_id == first.run_id
        assert period.status == "reviewing"

    async def test_supersede_creates_new_run(
        self, service, session, period, make_employment, add_timesheets
    ):
        """Test reruns get the next number and retire the prior run."""
        employment = await make_employment()
        await add_timesheets(employment, days=10)
        first = await service.calculate_period(period.id, "payroll-admin")

        await add_timesheets(employment, days=5, start=date(2024, 6, 20))
        second = await service.calculate_period(period.id, "payroll-admin", supersede=True)

        assert second.run_number == 2
        runs = {
            r.id: r
            for r in await fetch_all(
                session, PayrollRun, PayrollRun.payroll_period_id == period.id
            )
        }
        assert runs[first.run_id].status == "superseded"
        assert runs[first.run_id].superseded_by == second.run_id
        assert runs[second.run_id].status == "completed"
        assert runs[second.run_id].summary["superseded_runs"] == [str(first.run_id)]

        # Slips are append-only across runs
        old_slips = await fetch_all(
            session, PayrollSlip, PayrollSlip.payroll_run_id == first.run_id
        )
        new_slips = await fetch_all(
            session, PayrollSlip, PayrollSlip.payroll_run_id == second.run_id
        )
        assert old_slips[0].metadata_json["days_worked"] == 10
        assert new_slips[0].metadata_json["days_worked"] == 15
        assert period.total_gross == second.total_gross

    async def test_claim_conflict(self, service, session, period):
        """Test a period claimed by another run is rejected."""
        # Another worker moves the period behind this session's back
        await session.execute(
            update(PayrollPeriod)
            .where(PayrollPeriod.id == period.id)
            .values(status="calculating")
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(CalculationInProgressError):
            await service.calculate_period(period.id, "payroll-admin")

        runs = await fetch_all(session, PayrollRun, PayrollRun.payroll_period_id == period.id)
        assert runs == []

    async def test_calculating_period_rejected(self, service, session, period):
        """Test a period already calculating cannot start another run."""
        period.status = "calculating"
        await session.flush()

        with pytest.raises(InvalidTransitionError):
            await service.calculate_period(period.id, "payroll-admin")

    async def test_approved_period_rejected(self, service, session, period):
        """Test an approved period is frozen."""
        period.status = "approved"
        await session.flush()

        with pytest.raises(InvalidTransitionError):
            await service.calculate_period(period.id, "payroll-admin")

    async def test_unknown_period(self, service):
        """Test a missing period raises."""
        with pytest.raises(PeriodNotFoundError):
            await service.calculate_period(uuid4(), "payroll-admin")

    async def test_other_organization_period(self, session, period, settings):
        """Test periods are scoped to the caller's organization."""
        other = Organization(name="Other SAS", country_code="CO")
        session.add(other)
        await session.flush()

        with pytest.raises(PeriodNotFoundError):
            await PayrollCalculationService(session, other.id, settings).calculate_period(
                period.id, "payroll-admin"
            )

    async def test_missing_rules_fails_run(self, session, settings, organization):
        """Test a run-wide precondition failure records an error run."""
        org = Organization(name="Lima SAC", country_code="PE")
        session.add(org)
        await session.flush()
        period = PayrollPeriod(
            organization_id=org.id,
            name="June 2024",
            period_start=date(2024, 6, 1),
            period_end=date(2024, 6, 30),
            frequency="monthly",
            status="draft",
            metadata_json={},
        )
        session.add(period)
        await session.flush()

        with pytest.raises(RulesNotFoundError):
            await PayrollCalculationService(session, org.id, settings).calculate_period(
                period.id, "payroll-admin"
            )

        [run] = await fetch_all(session, PayrollRun, PayrollRun.payroll_period_id == period.id)
        assert run.status == "error"
        assert "PE" in run.error_log
        [reloaded] = await fetch_all(session, PayrollPeriod, PayrollPeriod.id == period.id)
        assert reloaded.status == "draft"
        audit = await fetch_all(session, AuditEvent, AuditEvent.entity_id == run.id)
        assert [event.action for event in audit] == ["payroll_run.failed"]

    async def test_failed_run_number_is_consumed(self, session, settings, organization):
        """Test run numbers keep increasing after a failed run."""
        org = Organization(name="Lima SAC", country_code="PE")
        session.add(org)
        await session.flush()
        period = PayrollPeriod(
            organization_id=org.id,
            period_start=date(2024, 6, 1),
            period_end=date(2024, 6, 30),
            frequency="monthly",
            status="draft",
            metadata_json={},
        )
        session.add(period)
        await session.flush()
        service = PayrollCalculationService(session, org.id, settings)

        with pytest.raises(RulesNotFoundError):
            await service.calculate_period(period.id, "payroll-admin")

        org.country_code = "CO"
        await session.flush()
        summary = await service.calculate_period(period.id, "payroll-admin")

        assert summary.run_number == 2
        assert summary.total_employees == 0


class TestPreviewCalculation:
    """Test side-effect free previews."""

    async def test_preview_totals(self, service, session, period, make_employment, add_timesheets):
        """Test preview estimates without writing runs or slips."""
        employment = await make_employment()
        await make_employment(employee_code="E-002")
        await add_timesheets(employment, days=22)

        preview = await service.preview_calculation(period.period_start, period.period_end)

        assert preview["employees"] == 2
        assert preview["employees_with_timesheets"] == 1
        assert preview["timesheets"] == 22
        assert preview["errors"] == 0
        assert preview["estimated_gross"] == Decimal("1072133.33")
        assert preview["estimated_net"] == Decimal("995866.67")
        assert await fetch_all(session, PayrollRun) == []
        assert period.status == "draft"
