"""Pure pay calculation for one employee in one period."""

from __future__ import annotations

from decimal import Decimal

from timesheet_payroll.calculators.item_builder import PayItemBuilder
from timesheet_payroll.calculators.types import (
    EmploymentData,
    LaborRules,
    PaySlipDraft,
    SalaryPeriod,
    TimesheetSummary,
)
from timesheet_payroll.exceptions import InvalidEmploymentDataError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MINUTES_PER_HOUR = Decimal("60")
DAYS_PER_MONTH = Decimal("30")

# Hours in one salary period
HOURLY_DIVISORS: dict[SalaryPeriod, Decimal] = {
    SalaryPeriod.HOURLY: Decimal("1"),
    SalaryPeriod.DAILY: Decimal("8"),
    SalaryPeriod.WEEKLY: Decimal("48"),
    SalaryPeriod.BIWEEKLY: Decimal("120"),
    SalaryPeriod.MONTHLY: Decimal("240"),
}

# Nominal days in one salary period
PERIOD_DAYS: dict[SalaryPeriod, Decimal] = {
    SalaryPeriod.DAILY: Decimal("1"),
    SalaryPeriod.WEEKLY: Decimal("6"),
    SalaryPeriod.BIWEEKLY: Decimal("15"),
    SalaryPeriod.MONTHLY: DAYS_PER_MONTH,
}


def round_money(amount: Decimal) -> Decimal:
    return PayItemBuilder.round_to_cents(amount)


def pct(value: Decimal, percentage: Decimal) -> Decimal:
    """Apply a percentage expressed in points (4 means 4%), rounded to cents."""
    return round_money(value * percentage / HUNDRED)


def hourly_rate(base_salary: Decimal, salary_period: SalaryPeriod) -> Decimal:
    """Hourly rate for a base salary expressed in ``salary_period``."""
    return PayItemBuilder.round_precise(base_salary / HOURLY_DIVISORS[salary_period])


def minutes_to_hours(minutes: int) -> Decimal:
    return PayItemBuilder.round_precise(Decimal(minutes) / MINUTES_PER_HOUR)


def proportional_salary(
    base_salary: Decimal,
    salary_period: SalaryPeriod,
    days_worked: int,
    regular_hours: Decimal,
    rate: Decimal,
) -> Decimal:
    """Base salary prorated to the days actually worked.

    Hourly employees are paid for hours worked instead.
    """
    if salary_period is SalaryPeriod.HOURLY:
        return round_money(regular_hours * rate)
    return round_money(base_salary * days_worked / PERIOD_DAYS[salary_period])


def proportional_transport(
    base_salary: Decimal,
    days_worked: int,
    rules: LaborRules,
) -> Decimal:
    """Prorated transport allowance, granted only at or below the salary threshold."""
    if base_salary > rules.effective_transport_threshold:
        return ZERO
    return round_money(rules.transport_allowance * days_worked / DAYS_PER_MONTH)


class PayCalculator:
    """Computes a full pay slip from employment data, timesheets and rules.

    Pipeline (stable order):
    1) Hourly rate from base salary and salary period
    2) Hours breakdown from minutes
    3) Proportional basic salary
    4) Overtime pay (day and night)
    5) Night surcharge on night overtime hours
    6) Sunday/holiday premium
    7) Transport allowance under the salary threshold
    8) Gross pay
    9) Employee deductions (health, pension, solidarity fund)
    10) Net pay
    11) Employer contributions and provisions
    12) Total employer cost

    Every money field is rounded to cents at the end of its own derivation.
    Composite fields are sums of rounded components, so gross and net
    reconcile exactly with their parts.
    """

    def calculate(
        self,
        employee: EmploymentData,
        summary: TimesheetSummary,
        rules: LaborRules,
    ) -> PaySlipDraft:
        """Calculate one employee's slip. No I/O."""
        base_salary = employee.base_salary
        rate = hourly_rate(base_salary, employee.salary_period)

        regular_hours = minutes_to_hours(summary.total_worked_minutes)
        overtime_day_hours = minutes_to_hours(
            max(0, summary.total_overtime_minutes - summary.total_night_minutes)
        )
        overtime_night_hours = minutes_to_hours(summary.total_night_minutes)
        holiday_hours = minutes_to_hours(summary.total_holiday_minutes)

        basic_salary = proportional_salary(
            base_salary,
            employee.salary_period,
            summary.days_worked,
            regular_hours,
            rate,
        )

        overtime_day_pay = round_money(overtime_day_hours * rate * rules.overtime_day_multiplier)
        overtime_night_pay = round_money(
            overtime_night_hours * rate * rules.overtime_night_multiplier
        )
        overtime_pay = overtime_day_pay + overtime_night_pay

        # Layered on top of night overtime pay
        night_premium = round_money(
            overtime_night_hours * rate * (rules.night_surcharge_multiplier - 1)
        )
        holiday_premium = round_money(
            holiday_hours * rate * (rules.sunday_holiday_multiplier - 1)
        )
        transport_allowance = proportional_transport(base_salary, summary.days_worked, rules)

        gross_pay = (
            basic_salary + overtime_pay + night_premium + holiday_premium + transport_allowance
        )

        health_deduction = pct(basic_salary, rules.health_employee_pct)
        pension_deduction = pct(basic_salary, rules.pension_employee_pct)
        # Eligibility uses the full base salary, not the prorated one
        if base_salary > rules.solidarity_threshold:
            solidarity_fund = pct(basic_salary, rules.solidarity_fund_pct)
        else:
            solidarity_fund = ZERO
        total_deductions = health_deduction + pension_deduction + solidarity_fund
        net_pay = gross_pay - total_deductions

        arl_pct = rules.arl_rate(employee.arl_risk_level)
        employer_health = pct(basic_salary, rules.health_employer_pct)
        employer_pension = pct(basic_salary, rules.pension_employer_pct)
        employer_arl = pct(basic_salary, arl_pct)
        employer_parafiscales = pct(basic_salary, rules.parafiscales_pct)

        employer_severance = round_money((basic_salary + transport_allowance) * rules.severance_rate)
        employer_severance_interest = round_money(
            employer_severance * rules.severance_interest_rate
        )
        employer_vacation_provision = round_money(basic_salary * rules.vacation_rate)
        employer_bonus_provision = round_money(basic_salary * rules.bonus_rate)

        total_employer_cost = (
            gross_pay
            + employer_health
            + employer_pension
            + employer_arl
            + employer_parafiscales
            + employer_severance
            + employer_severance_interest
            + employer_vacation_provision
            + employer_bonus_provision
        )

        draft = PaySlipDraft(
            employment_id=employee.id,
            currency_code=employee.currency_code,
            base_salary=base_salary,
            salary_period=employee.salary_period,
            hourly_rate=rate,
            days_worked=summary.days_worked,
            regular_hours=regular_hours,
            overtime_day_hours=overtime_day_hours,
            overtime_night_hours=overtime_night_hours,
            holiday_hours=holiday_hours,
            basic_salary=basic_salary,
            overtime_pay=overtime_pay,
            night_premium=night_premium,
            holiday_premium=holiday_premium,
            transport_allowance=transport_allowance,
            gross_pay=gross_pay,
            health_deduction=health_deduction,
            pension_deduction=pension_deduction,
            solidarity_fund=solidarity_fund,
            total_deductions=total_deductions,
            net_pay=net_pay,
            employer_health=employer_health,
            employer_pension=employer_pension,
            employer_arl=employer_arl,
            employer_parafiscales=employer_parafiscales,
            employer_severance=employer_severance,
            employer_severance_interest=employer_severance_interest,
            employer_vacation_provision=employer_vacation_provision,
            employer_bonus_provision=employer_bonus_provision,
            total_employer_cost=total_employer_cost,
            rules_fingerprint=rules.fingerprint,
        )

        draft.items = PayItemBuilder.build_items(
            draft,
            rules,
            overtime_day_pay=overtime_day_pay,
            overtime_night_pay=overtime_night_pay,
            arl_pct=arl_pct,
        )
        errors = PayItemBuilder.validate_item_signs(draft.items)
        errors.extend(PayItemBuilder.reconcile(draft, draft.items))
        if errors:
            raise InvalidEmploymentDataError(
                employee.id, f"pay items do not reconcile: {'; '.join(errors)}"
            )

        return draft
