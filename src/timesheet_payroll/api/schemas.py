"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Period schemas
# ============================================================================


class PeriodCreate(BaseModel):
    """Schema for creating a payroll period."""

    period_start: date
    period_end: date
    frequency: Literal["daily", "weekly", "biweekly", "monthly"] = "monthly"
    name: str | None = None
    payment_date: date | None = None
    notes: str | None = None
    created_by: str | None = None


class PeriodResponse(BaseModel):
    """Schema for payroll period response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: int
    name: str | None = None
    period_start: date
    period_end: date
    payment_date: date | None = None
    frequency: str
    status: str
    total_employees: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    total_employer_cost: Decimal
    approved_by: str | None = None
    approved_at: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class PeriodListResponse(BaseModel):
    """Schema for listing payroll periods."""

    items: list[PeriodResponse]
    total: int


class PeriodStatsResponse(BaseModel):
    """Organization-wide period statistics."""

    total_periods: int
    pending_periods: int
    total_gross: Decimal
    total_net: Decimal
    total_employer_cost: Decimal
    total_employees: int


class TransitionRequest(BaseModel):
    """Schema for a user-driven period transition."""

    to_status: Literal["approved", "paid", "cancelled"]
    actor: str | None = None
    reason: str | None = None


# ============================================================================
# Calculation schemas
# ============================================================================


class CalculateRequest(BaseModel):
    """Schema for starting a calculation run."""

    executed_by: str = Field(min_length=1)
    supersede: bool = False


class CalculationResultResponse(BaseModel):
    """Outcome for one employee."""

    employment_id: UUID
    employee_name: str
    status: Literal["created", "updated", "skipped", "error"]
    message: str | None = None
    slip_id: UUID | None = None
    summary: dict[str, Decimal] | None = None


class CalculationTotals(BaseModel):
    """Aggregated run totals."""

    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    employer_cost: Decimal


class CalculationSummaryResponse(BaseModel):
    """Schema for a completed calculation run."""

    period_id: UUID
    run_id: UUID
    run_number: int
    total_employees: int
    created: int
    updated: int
    skipped: int
    errors: int
    totals: CalculationTotals
    rules_fingerprint: str
    results: list[CalculationResultResponse]


class PreviewResponse(BaseModel):
    """Schema for a read-only calculation estimate."""

    period_id: UUID
    employees: int
    employees_with_timesheets: int
    timesheets: int
    errors: int
    estimated_gross: Decimal
    estimated_deductions: Decimal
    estimated_net: Decimal
    estimated_employer_cost: Decimal
    rules_fingerprint: str


# ============================================================================
# Run / Slip / Item schemas
# ============================================================================


class RunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_period_id: UUID
    run_number: int
    executed_by: str
    executed_at: datetime | None = None
    status: str
    summary: dict[str, Any] | None = None
    error_log: str | None = None
    superseded_by: UUID | None = None
    is_final: bool
    created_at: datetime


class SlipResponse(BaseModel):
    """Schema for payroll slip response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_run_id: UUID
    employment_id: UUID
    currency_code: str
    base_salary: Decimal
    salary_period: str
    basic_salary: Decimal
    transport_allowance: Decimal
    overtime_pay: Decimal
    night_premium: Decimal
    holiday_premium: Decimal
    gross_pay: Decimal
    health_deduction: Decimal
    pension_deduction: Decimal
    solidarity_fund: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    employer_health: Decimal
    employer_pension: Decimal
    employer_arl: Decimal
    employer_parafiscales: Decimal
    employer_severance: Decimal
    employer_severance_interest: Decimal
    employer_vacation_provision: Decimal
    employer_bonus_provision: Decimal
    total_employer_cost: Decimal
    regular_hours: Decimal
    overtime_day_hours: Decimal
    overtime_night_hours: Decimal
    holiday_hours: Decimal
    status: str
    paid_at: datetime | None = None
    metadata_json: dict[str, Any]


class ItemResponse(BaseModel):
    """Schema for payroll item response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_slip_id: UUID
    item_type: str
    code: str
    name: str
    amount: Decimal
    quantity: Decimal | None = None
    rate: Decimal | None = None
    base_amount: Decimal | None = None
    percentage: Decimal | None = None
    is_taxable: bool
    affects_social_security: bool


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
