"""Payroll calculation pipeline."""

from timesheet_payroll.calculators.item_builder import PayItemBuilder
from timesheet_payroll.calculators.pay_calculator import PayCalculator
from timesheet_payroll.calculators.rules import DEFAULT_RULES, RuleProvider
from timesheet_payroll.calculators.timesheets import TimesheetAggregator
from timesheet_payroll.calculators.types import (
    EmploymentData,
    LaborRules,
    PaySlipDraft,
    TimesheetSummary,
)

__all__ = [
    "DEFAULT_RULES",
    "EmploymentData",
    "LaborRules",
    "PayCalculator",
    "PayItemBuilder",
    "PaySlipDraft",
    "RuleProvider",
    "TimesheetAggregator",
    "TimesheetSummary",
]
