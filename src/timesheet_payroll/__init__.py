"""Timesheet payroll engine.

Turns payable timesheets for a pay period into itemized pay slips using
country labor rules, and tracks each period through calculation, review,
approval and payment.
"""

__version__ = "1.0.0"
