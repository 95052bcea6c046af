"""Payroll services."""

from timesheet_payroll.services.calculation_service import (
    PayrollCalculationResult,
    PayrollCalculationService,
    PayrollCalculationSummary,
)
from timesheet_payroll.services.period_service import PeriodService
from timesheet_payroll.services.slip_writer import SlipWriter
from timesheet_payroll.services.state_machine import (
    PeriodStateMachine,
    PeriodStatus,
    RunStateMachine,
    RunStatus,
    SlipStateMachine,
    SlipStatus,
)

__all__ = [
    "PayrollCalculationResult",
    "PayrollCalculationService",
    "PayrollCalculationSummary",
    "PeriodService",
    "PeriodStateMachine",
    "PeriodStatus",
    "RunStateMachine",
    "RunStatus",
    "SlipStateMachine",
    "SlipStatus",
    "SlipWriter",
]
