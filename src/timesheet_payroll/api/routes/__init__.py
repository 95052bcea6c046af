"""API routes."""

from timesheet_payroll.api.routes.health import router as health_router
from timesheet_payroll.api.routes.payroll_periods import router as payroll_periods_router

__all__ = ["health_router", "payroll_periods_router"]
