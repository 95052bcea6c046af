"""ORM models."""

from timesheet_payroll.models.base import Base, TimestampMixin
from timesheet_payroll.models.organization import Employment, Organization
from timesheet_payroll.models.payroll import (
    AuditEvent,
    CountryPayrollRules,
    PayrollItem,
    PayrollPeriod,
    PayrollRun,
    PayrollSlip,
)
from timesheet_payroll.models.timesheet import Timesheet

__all__ = [
    "AuditEvent",
    "Base",
    "CountryPayrollRules",
    "Employment",
    "Organization",
    "PayrollItem",
    "PayrollPeriod",
    "PayrollRun",
    "PayrollSlip",
    "TimestampMixin",
    "Timesheet",
]
