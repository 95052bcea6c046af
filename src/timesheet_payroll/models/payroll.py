"""Labor rules, payroll period, run, slip and item models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from timesheet_payroll.models.organization import Employment, Organization


MONEY = Numeric(18, 2)
PERCENT = Numeric(9, 4)
HOURS = Numeric(10, 4)


# ===== Labor Rules =====


class CountryPayrollRules(Base, TimestampMixin):
    """Versioned labor constants for one country and year.

    Null columns fall back to the country's built-in defaults when the row is
    turned into a LaborRules snapshot.
    """

    __tablename__ = "country_payroll_rules"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    minimum_wage: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    minimum_wage_currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    # Employee / employer contributions (percent, e.g. 4 = 4%)
    health_employee_pct: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    pension_employee_pct: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    health_employer_pct: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    pension_employer_pct: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    arl_base_pct: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    parafiscales_pct: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    solidarity_fund_pct: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    solidarity_threshold_multiplier: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)

    transport_allowance: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    transport_allowance_threshold: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)

    # Multipliers
    overtime_day_multiplier: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    overtime_night_multiplier: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    overtime_holiday_day_multiplier: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    overtime_holiday_night_multiplier: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    night_surcharge_multiplier: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    sunday_holiday_multiplier: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)

    # Provision accrual rates (fractions, e.g. 0.0833)
    severance_rate: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    severance_interest_rate: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    vacation_rate: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    bonus_rate: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)

    # Occupational risk table: {"1": 0.522, ..., "5": 6.96}
    arl_rates: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("country_code", "year", "valid_from", name="country_rules_version_unique"),
        CheckConstraint(
            "valid_to IS NULL OR valid_to >= valid_from",
            name="country_rules_dates_check",
        ),
    )

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if ruleset is in force on a given date."""
        if not self.is_active:
            return False
        if self.valid_from > as_of_date:
            return False
        if self.valid_to is not None and self.valid_to < as_of_date:
            return False
        return True


# ===== Periods & Runs =====


class PayrollPeriod(Base, TimestampMixin):
    """Date range for one payroll cycle with accumulated totals."""

    __tablename__ = "payroll_period"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    organization_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    frequency: Mapped[str] = mapped_column(String, nullable=False, default="monthly")
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_net: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_employer_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint(
            "frequency IN ('daily', 'weekly', 'biweekly', 'monthly')",
            name="payroll_period_frequency_check",
        ),
        CheckConstraint(
            "status IN ('draft', 'calculating', 'reviewing', 'approved', 'paid', 'cancelled')",
            name="payroll_period_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_period_dates_check"),
    )

    # Relationships
    organization: Mapped[Organization] = relationship()
    runs: Mapped[list[PayrollRun]] = relationship(
        back_populates="period", order_by="PayrollRun.run_number"
    )


class PayrollRun(Base, TimestampMixin):
    """One calculation attempt against a period."""

    __tablename__ = "payroll_run"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    payroll_period_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_period.id", ondelete="CASCADE"),
        nullable=False,
    )
    run_number: Mapped[int] = mapped_column(Integer, nullable=False)
    executed_by: Mapped[str] = mapped_column(String, nullable=False)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="calculating")
    summary: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    error_log: Mapped[str | None] = mapped_column(Text, nullable=True)
    superseded_by: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_run.id"),
        nullable=True,
    )
    is_final: Mapped[bool] = mapped_column(default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("payroll_period_id", "run_number", name="payroll_run_number_unique"),
        CheckConstraint(
            "status IN ('calculating', 'completed', 'error', 'superseded')",
            name="payroll_run_status_check",
        ),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship(back_populates="runs")
    slips: Mapped[list[PayrollSlip]] = relationship(back_populates="run")


# ===== Slips & Items =====


class PayrollSlip(Base, TimestampMixin):
    """Computed compensation for one employee in one run."""

    __tablename__ = "payroll_slip"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_run.id", ondelete="CASCADE"),
        nullable=False,
    )
    employment_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employment.id", ondelete="CASCADE"),
        nullable=False,
    )
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="COP")
    base_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    salary_period: Mapped[str] = mapped_column(String, nullable=False, default="monthly")

    # Earnings
    basic_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    transport_allowance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    night_premium: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    holiday_premium: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    commissions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    bonuses: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    other_earnings: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    gross_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Employee deductions
    health_deduction: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    pension_deduction: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    solidarity_fund: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    tax_withholding: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    loan_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    advance_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    other_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Employer contributions & provisions
    employer_health: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employer_pension: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employer_arl: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employer_parafiscales: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employer_severance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employer_severance_interest: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    employer_vacation_provision: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    employer_bonus_provision: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    total_employer_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Hours
    regular_hours: Mapped[Decimal] = mapped_column(HOURS, nullable=False, default=Decimal("0"))
    overtime_day_hours: Mapped[Decimal] = mapped_column(HOURS, nullable=False, default=Decimal("0"))
    overtime_night_hours: Mapped[Decimal] = mapped_column(HOURS, nullable=False, default=Decimal("0"))
    holiday_hours: Mapped[Decimal] = mapped_column(HOURS, nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employment_id", name="payroll_slip_one_per_run"),
        CheckConstraint(
            "status IN ('draft', 'approved', 'paid')",
            name="payroll_slip_status_check",
        ),
    )

    # Relationships
    run: Mapped[PayrollRun] = relationship(back_populates="slips")
    employment: Mapped[Employment] = relationship()
    items: Mapped[list[PayrollItem]] = relationship(back_populates="slip")


class PayrollItem(Base):
    """Named earning, deduction, contribution or provision line on a slip."""

    __tablename__ = "payroll_item"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    payroll_slip_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_slip.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_type: Mapped[str] = mapped_column(String, nullable=False)
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    quantity: Mapped[Decimal | None] = mapped_column(HOURS, nullable=True)
    rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    base_amount: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    is_taxable: Mapped[bool] = mapped_column(default=True, nullable=False)
    affects_social_security: Mapped[bool] = mapped_column(default=True, nullable=False)
    source_type: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "item_type IN ('earning', 'deduction', 'employer_contribution', 'provision')",
            name="payroll_item_type_check",
        ),
        CheckConstraint("amount >= 0", name="payroll_item_amount_non_negative"),
    )

    # Relationships
    slip: Mapped[PayrollSlip] = relationship(back_populates="items")


# ===== Audit =====


class AuditEvent(Base, TimestampMixin):
    """Append-only audit record for payroll actions."""

    __tablename__ = "audit_event"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    organization_id: Mapped[int] = mapped_column(Integer, nullable=False)
    actor: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
