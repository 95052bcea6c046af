"""Domain exceptions for payroll calculation."""

from __future__ import annotations

from datetime import date
from uuid import UUID


class PayrollError(Exception):
    """Base class for payroll engine errors."""

    code = "PAYROLL_ERROR"


class PeriodNotFoundError(PayrollError):
    """Raised when a payroll period does not exist for the organization."""

    code = "PERIOD_NOT_FOUND"

    def __init__(self, period_id: UUID, organization_id: int):
        self.period_id = period_id
        self.organization_id = organization_id
        super().__init__(
            f"Payroll period {period_id} not found for organization {organization_id}"
        )


class InvalidPeriodError(PayrollError):
    """Raised when period fields are inconsistent (dates, frequency)."""

    code = "INVALID_PERIOD"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid payroll period: {reason}")


class RunNotFoundError(PayrollError):
    """Raised when a payroll run does not exist."""

    code = "RUN_NOT_FOUND"

    def __init__(self, run_id: UUID):
        self.run_id = run_id
        super().__init__(f"Payroll run {run_id} not found")


class RulesNotFoundError(PayrollError):
    """Raised when no labor ruleset exists and no default is known."""

    code = "RULES_NOT_FOUND"

    def __init__(
        self,
        country_code: str,
        year: int | None = None,
        as_of: date | None = None,
        reason: str | None = None,
    ):
        self.country_code = country_code
        self.year = year
        self.as_of = as_of
        self.reason = reason
        msg = f"No labor rules configured for country '{country_code}'"
        if year is not None:
            msg += f" in {year}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class RosterUnavailableError(PayrollError):
    """Raised when the active employee roster cannot be loaded."""

    code = "ROSTER_UNAVAILABLE"

    def __init__(self, organization_id: int, cause: Exception):
        self.organization_id = organization_id
        self.cause = cause
        super().__init__(
            f"Could not load employee roster for organization {organization_id}: {cause}"
        )


class InvalidEmploymentDataError(PayrollError):
    """Raised when an employment or its timesheets cannot be calculated."""

    code = "INVALID_EMPLOYMENT_DATA"

    def __init__(self, employment_id: UUID | None, reason: str):
        self.employment_id = employment_id
        self.reason = reason
        super().__init__(f"Employment {employment_id}: {reason}")


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class CalculationInProgressError(PayrollError):
    """Raised when another run already holds the period."""

    code = "CALCULATION_IN_PROGRESS"

    def __init__(self, period_id: UUID):
        self.period_id = period_id
        super().__init__(f"Payroll period {period_id} is already being calculated")


class SupersessionRequiredError(PayrollError):
    """Raised when recalculating over a completed run without asking to supersede it."""

    code = "SUPERSESSION_REQUIRED"

    def __init__(self, period_id: UUID, run_id: UUID, run_number: int):
        self.period_id = period_id
        self.run_id = run_id
        self.run_number = run_number
        super().__init__(
            f"Payroll period {period_id} already has completed run #{run_number} "
            f"({run_id}); pass supersede=True to replace it"
        )
