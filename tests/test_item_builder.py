"""Tests for pay item builder."""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from timesheet_payroll.calculators.item_builder import PayItemBuilder
from timesheet_payroll.calculators.pay_calculator import PayCalculator
from timesheet_payroll.calculators.rules import COLOMBIA_2024
from timesheet_payroll.calculators.types import (
    EmploymentData,
    ItemType,
    PayItemCandidate,
    SalaryPeriod,
    TimesheetSummary,
)


def calculate_standard_draft():
    employee = EmploymentData(
        id=uuid4(),
        employee_name="Luis Pérez",
        base_salary=Decimal("1300000"),
        salary_period=SalaryPeriod.MONTHLY,
    )
    summary = TimesheetSummary(total_worked_minutes=22 * 480, days_worked=22)
    return PayCalculator().calculate(employee, summary, COLOMBIA_2024)


class TestPayItemBuilder:
    """Test pay item builder functionality."""

    def test_round_to_cents(self):
        """Test rounding to 2 decimal places."""
        assert PayItemBuilder.round_to_cents(Decimal("10.125")) == Decimal("10.13")
        assert PayItemBuilder.round_to_cents(Decimal("10.124")) == Decimal("10.12")
        assert PayItemBuilder.round_to_cents(Decimal("10.135")) == Decimal("10.14")

    def test_round_precise(self):
        """Test rounding hours and rates to 4 decimal places."""
        assert PayItemBuilder.round_precise(Decimal("5416.66666")) == Decimal("5416.6667")
        assert PayItemBuilder.round_precise(Decimal("1.00004")) == Decimal("1.0000")

    def test_create_earning(self):
        """Test creating an earning item."""
        item = PayItemBuilder.create_earning(
            "OVERTIME_DAY",
            "Daytime overtime",
            Decimal("12500.004"),
            quantity=Decimal("2.0000"),
            rate=Decimal("6250.00"),
        )

        assert item.item_type == ItemType.EARNING
        assert item.amount == Decimal("12500.00")
        assert item.quantity == Decimal("2.0000")
        assert item.is_taxable is True
        assert item.affects_social_security is True

    def test_negative_amount_kept_and_reported(self):
        """Test a negative deduction is stored as given and flagged by sign validation."""
        item = PayItemBuilder.create_deduction(
            "HEALTH", "Health (employee)", Decimal("-38133.33"), Decimal("953333.33"), Decimal("4")
        )

        assert item.item_type == ItemType.DEDUCTION
        assert item.amount == Decimal("-38133.33")
        assert item.is_taxable is False
        [error] = PayItemBuilder.validate_item_signs([item])
        assert "HEALTH" in error
        assert "negative amount" in error

    def test_create_provision_stores_percentage(self):
        """Test provision rate fractions are stored as percentages."""
        item = PayItemBuilder.create_provision(
            "SEVERANCE", "Severance provision", Decimal("89308.71"), Decimal("1072133.33"), Decimal("0.0833")
        )

        assert item.item_type == ItemType.PROVISION
        assert item.percentage == Decimal("8.33")

    def test_build_items_for_standard_slip(self):
        """Test a plain month produces the expected lines."""
        draft = calculate_standard_draft()
        by_code = {item.code: item for item in draft.items}

        assert by_code["BASIC_SALARY"].amount == Decimal("953333.33")
        assert by_code["BASIC_SALARY"].quantity == Decimal("22")
        assert by_code["TRANSPORT_ALLOWANCE"].amount == Decimal("118800.00")
        assert by_code["TRANSPORT_ALLOWANCE"].is_taxable is False
        assert by_code["TRANSPORT_ALLOWANCE"].affects_social_security is False
        assert by_code["HEALTH"].percentage == Decimal("4")
        assert by_code["ARL"].item_type == ItemType.EMPLOYER_CONTRIBUTION
        assert by_code["BONUS"].item_type == ItemType.PROVISION

    def test_zero_lines_omitted(self):
        """Test zero-valued lines are dropped, basic salary kept."""
        draft = calculate_standard_draft()
        codes = {item.code for item in draft.items}

        assert "OVERTIME_DAY" not in codes
        assert "OVERTIME_NIGHT" not in codes
        assert "NIGHT_SURCHARGE" not in codes
        assert "HOLIDAY_PREMIUM" not in codes
        assert "SOLIDARITY_FUND" not in codes
        assert "BASIC_SALARY" in codes

    def test_validate_item_signs(self):
        """Test negative amounts are reported."""
        items = [
            PayItemCandidate(
                item_type=ItemType.EARNING,
                code="BASIC_SALARY",
                name="Basic salary",
                amount=Decimal("100.00"),
            ),
            PayItemCandidate(
                item_type=ItemType.DEDUCTION,
                code="HEALTH",
                name="Health (employee)",
                amount=Decimal("-4.00"),
            ),
        ]

        errors = PayItemBuilder.validate_item_signs(items)

        assert len(errors) == 1
        assert "HEALTH" in errors[0]

    def test_sum_by_type(self):
        """Test summing items by type."""
        draft = calculate_standard_draft()
        totals = PayItemBuilder.sum_by_type(draft.items)

        assert totals[ItemType.EARNING] == Decimal("1072133.33")
        assert totals[ItemType.DEDUCTION] == Decimal("76266.66")
        assert (
            totals[ItemType.EMPLOYER_CONTRIBUTION] + totals[ItemType.PROVISION]
            == draft.total_employer_cost - draft.gross_pay
        )

    def test_reconcile_clean_draft(self):
        """Test a calculated draft reconciles without errors."""
        draft = calculate_standard_draft()

        assert PayItemBuilder.reconcile(draft, draft.items) == []

    def test_reconcile_detects_mismatch(self):
        """Test a tampered aggregate is reported."""
        draft = calculate_standard_draft()
        tampered = replace(draft, gross_pay=draft.gross_pay + Decimal("0.01"))

        errors = PayItemBuilder.reconcile(tampered, draft.items)

        assert any("gross pay" in error for error in errors)
