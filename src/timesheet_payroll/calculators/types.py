"""Type definitions for the calculation pipeline."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field, fields
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from timesheet_payroll.exceptions import InvalidEmploymentDataError

if TYPE_CHECKING:
    from timesheet_payroll.models import Employment


class SalaryPeriod(str, Enum):
    """Period the base salary is expressed in."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class ItemType(str, Enum):
    """Pay item types."""

    EARNING = "earning"
    DEDUCTION = "deduction"
    EMPLOYER_CONTRIBUTION = "employer_contribution"
    PROVISION = "provision"


@dataclass(frozen=True)
class LaborRules:
    """Immutable labor constants for one jurisdiction and year.

    Contribution fields ending in ``_pct`` are percentages (4 means 4%);
    provision ``*_rate`` fields are fractions (0.0833 means 8.33%).
    """

    country_code: str
    year: int
    minimum_wage: Decimal
    health_employee_pct: Decimal
    pension_employee_pct: Decimal
    health_employer_pct: Decimal
    pension_employer_pct: Decimal
    arl_base_pct: Decimal
    parafiscales_pct: Decimal
    transport_allowance: Decimal
    transport_allowance_threshold: Decimal
    overtime_day_multiplier: Decimal
    overtime_night_multiplier: Decimal
    overtime_holiday_day_multiplier: Decimal
    overtime_holiday_night_multiplier: Decimal
    night_surcharge_multiplier: Decimal
    sunday_holiday_multiplier: Decimal
    severance_rate: Decimal
    severance_interest_rate: Decimal
    vacation_rate: Decimal
    bonus_rate: Decimal
    solidarity_fund_pct: Decimal = Decimal("1")
    solidarity_threshold_multiplier: Decimal = Decimal("4")
    arl_rates: tuple[tuple[int, Decimal], ...] = ()
    source: str = "default"  # 'default' or the configured row id

    @property
    def effective_transport_threshold(self) -> Decimal:
        """Salary ceiling for the transport allowance (2x minimum wage if unset)."""
        return self.transport_allowance_threshold or self.minimum_wage * 2

    @property
    def solidarity_threshold(self) -> Decimal:
        """Base salary above which the solidarity fund applies."""
        return self.minimum_wage * self.solidarity_threshold_multiplier

    def arl_rate(self, risk_level: int | None) -> Decimal:
        """Occupational-risk contribution percentage for a risk tier."""
        level = risk_level or 1
        for tier, pct in self.arl_rates:
            if tier == level:
                return pct
        return self.arl_base_pct

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for hashing (deterministic ordering)."""
        data: dict[str, Any] = {}
        for f in fields(self):
            if f.name == "source":
                continue
            value = getattr(self, f.name)
            if f.name == "arl_rates":
                data[f.name] = {str(tier): str(pct) for tier, pct in value}
            elif isinstance(value, Decimal):
                data[f.name] = str(value.normalize())
            else:
                data[f.name] = value
        return data

    @property
    def fingerprint(self) -> str:
        """Deterministic hash identifying this exact set of constants."""
        json_str = json.dumps(self.to_canonical_dict(), sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


@dataclass(frozen=True)
class EmploymentData:
    """Validated employment fields used by the calculator."""

    id: UUID
    employee_name: str
    base_salary: Decimal
    salary_period: SalaryPeriod
    currency_code: str = "COP"
    employee_code: str | None = None
    branch_id: int | None = None
    arl_risk_level: int | None = None

    @classmethod
    def from_model(cls, employment: Employment) -> EmploymentData:
        """Build from an ORM row, rejecting malformed salary data."""
        if employment.base_salary is None:
            raise InvalidEmploymentDataError(employment.id, "base salary is not set")

        base_salary = Decimal(employment.base_salary)
        if not base_salary.is_finite():
            raise InvalidEmploymentDataError(
                employment.id, f"base salary must be a finite amount ({base_salary})"
            )
        if base_salary < 0:
            raise InvalidEmploymentDataError(
                employment.id, f"base salary cannot be negative ({base_salary})"
            )

        raw_period = employment.salary_period or SalaryPeriod.MONTHLY.value
        try:
            salary_period = SalaryPeriod(raw_period)
        except ValueError:
            raise InvalidEmploymentDataError(
                employment.id, f"unknown salary period '{raw_period}'"
            ) from None

        risk_level = employment.arl_risk_level
        if risk_level is not None and not 1 <= risk_level <= 5:
            raise InvalidEmploymentDataError(
                employment.id, f"occupational risk level must be 1-5, got {risk_level}"
            )

        return cls(
            id=employment.id,
            employee_name=employment.display_name,
            base_salary=base_salary,
            salary_period=salary_period,
            currency_code=employment.currency_code or "COP",
            employee_code=employment.employee_code,
            branch_id=employment.branch_id,
            arl_risk_level=risk_level,
        )


@dataclass(frozen=True)
class TimesheetSummary:
    """Totals of payable timesheets for one employee in one period."""

    total_worked_minutes: int = 0
    total_overtime_minutes: int = 0
    total_night_minutes: int = 0
    total_holiday_minutes: int = 0
    total_late_minutes: int = 0
    days_worked: int = 0


@dataclass
class PayItemCandidate:
    """A pay item before persistence. Amounts are expected to be non-negative."""

    item_type: ItemType
    code: str
    name: str
    amount: Decimal
    quantity: Decimal | None = None
    rate: Decimal | None = None
    base_amount: Decimal | None = None
    percentage: Decimal | None = None
    is_taxable: bool = True
    affects_social_security: bool = True
    source_type: str | None = "calculation"


@dataclass
class PaySlipDraft:
    """Fully computed slip for one employee, ready to be written."""

    employment_id: UUID
    currency_code: str
    base_salary: Decimal
    salary_period: SalaryPeriod
    hourly_rate: Decimal
    days_worked: int

    # Hours
    regular_hours: Decimal
    overtime_day_hours: Decimal
    overtime_night_hours: Decimal
    holiday_hours: Decimal

    # Earnings
    basic_salary: Decimal
    overtime_pay: Decimal
    night_premium: Decimal
    holiday_premium: Decimal
    transport_allowance: Decimal
    gross_pay: Decimal

    # Employee deductions
    health_deduction: Decimal
    pension_deduction: Decimal
    solidarity_fund: Decimal
    total_deductions: Decimal
    net_pay: Decimal

    # Employer side
    employer_health: Decimal
    employer_pension: Decimal
    employer_arl: Decimal
    employer_parafiscales: Decimal
    employer_severance: Decimal
    employer_severance_interest: Decimal
    employer_vacation_provision: Decimal
    employer_bonus_provision: Decimal
    total_employer_cost: Decimal

    rules_fingerprint: str

    # TODO: compute withholding and loan/advance installments once those records are modelled
    tax_withholding: Decimal = Decimal("0")
    loan_deductions: Decimal = Decimal("0")
    advance_deductions: Decimal = Decimal("0")

    items: list[PayItemCandidate] = field(default_factory=list)

    @property
    def employer_contributions(self) -> Decimal:
        """Statutory employer contributions (excludes provisions)."""
        return (
            self.employer_health
            + self.employer_pension
            + self.employer_arl
            + self.employer_parafiscales
        )

    @property
    def employer_provisions(self) -> Decimal:
        """Accrued future obligations."""
        return (
            self.employer_severance
            + self.employer_severance_interest
            + self.employer_vacation_provision
            + self.employer_bonus_provision
        )

    def summary(self) -> dict[str, Any]:
        """Hours and totals reported back to the caller for this slip."""
        return {
            "regular_hours": self.regular_hours,
            "overtime_day_hours": self.overtime_day_hours,
            "overtime_night_hours": self.overtime_night_hours,
            "holiday_hours": self.holiday_hours,
            "gross_pay": self.gross_pay,
            "total_deductions": self.total_deductions,
            "net_pay": self.net_pay,
            "employer_cost": self.total_employer_cost,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain dict (items excluded)."""
        data = asdict(self)
        data.pop("items")
        data["salary_period"] = self.salary_period.value
        return data
