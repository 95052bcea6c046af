"""Period, run and slip state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from timesheet_payroll.exceptions import InvalidTransitionError

if TYPE_CHECKING:
    from timesheet_payroll.models import PayrollPeriod, PayrollRun


class PeriodStatus(str, Enum):
    """Payroll period status values."""

    DRAFT = "draft"
    CALCULATING = "calculating"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class RunStatus(str, Enum):
    """Payroll run status values."""

    CALCULATING = "calculating"
    COMPLETED = "completed"
    ERROR = "error"
    SUPERSEDED = "superseded"


class SlipStatus(str, Enum):
    """Payroll slip status values."""

    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"


class PeriodStateMachine:
    """State machine for payroll period status transitions.

    Allowed transitions:
    - draft → calculating
    - calculating → reviewing
    - calculating → draft (restore after a failed run)
    - reviewing → calculating (recalculate)
    - reviewing → approved
    - approved → paid
    - draft, calculating, reviewing, approved → cancelled
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodStatus.DRAFT: [PeriodStatus.CALCULATING, PeriodStatus.CANCELLED],
        PeriodStatus.CALCULATING: [
            PeriodStatus.REVIEWING,
            PeriodStatus.DRAFT,
            PeriodStatus.CANCELLED,
        ],
        PeriodStatus.REVIEWING: [
            PeriodStatus.CALCULATING,
            PeriodStatus.APPROVED,
            PeriodStatus.CANCELLED,
        ],
        PeriodStatus.APPROVED: [PeriodStatus.PAID, PeriodStatus.CANCELLED],
        PeriodStatus.PAID: [],  # Terminal state
        PeriodStatus.CANCELLED: [],  # Terminal state
    }

    # Statuses a calculation may start from
    CALCULATION_ALLOWED = {
        PeriodStatus.DRAFT,
        PeriodStatus.REVIEWING,
    }

    # Statuses where slips and totals are frozen
    RESULTS_IMMUTABLE = {
        PeriodStatus.APPROVED,
        PeriodStatus.PAID,
        PeriodStatus.CANCELLED,
    }

    # Transitions that are driven by the calculation itself, not by users
    INTERNAL_TRANSITIONS = {
        (PeriodStatus.DRAFT, PeriodStatus.CALCULATING),
        (PeriodStatus.REVIEWING, PeriodStatus.CALCULATING),
        (PeriodStatus.CALCULATING, PeriodStatus.REVIEWING),
        (PeriodStatus.CALCULATING, PeriodStatus.DRAFT),
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_calculate(cls, status: str) -> bool:
        """Check if a calculation may start in this status."""
        return status in cls.CALCULATION_ALLOWED

    @classmethod
    def are_results_immutable(cls, status: str) -> bool:
        """Check if slips and totals are immutable."""
        return status in cls.RESULTS_IMMUTABLE

    @classmethod
    def is_internal(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is reserved for the calculation service."""
        return (from_status, to_status) in cls.INTERNAL_TRANSITIONS

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def validate_period_for_transition(
        cls,
        period: PayrollPeriod,
        to_status: str,
        latest_run: PayrollRun | None,
    ) -> list[str]:
        """Validate a period for a user-requested transition.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = period.status

        if not cls.can_transition(from_status, to_status):
            errors.append(f"Cannot transition from '{from_status}' to '{to_status}'")
            return errors

        if cls.is_internal(from_status, to_status):
            errors.append(f"Transition to '{to_status}' happens through calculation only")
            return errors

        if to_status == PeriodStatus.APPROVED:
            if latest_run is None or latest_run.status != RunStatus.COMPLETED:
                errors.append("Period has no completed run to approve")
            elif not period.total_employees:
                errors.append("Period has no calculated slips")

        return errors


class RunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - calculating → completed
    - calculating → error
    - completed → superseded
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        RunStatus.CALCULATING: [RunStatus.COMPLETED, RunStatus.ERROR],
        RunStatus.COMPLETED: [RunStatus.SUPERSEDED],
        RunStatus.ERROR: [],
        RunStatus.SUPERSEDED: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)


class SlipStateMachine:
    """State machine for payroll slip status: draft → approved → paid."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        SlipStatus.DRAFT: [SlipStatus.APPROVED],
        SlipStatus.APPROVED: [SlipStatus.PAID],
        SlipStatus.PAID: [],
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def previous_status(cls, to_status: str) -> SlipStatus:
        """The single status a slip must be in to move to ``to_status``."""
        for from_status, allowed in cls.VALID_TRANSITIONS.items():
            if to_status in allowed:
                return from_status
        raise InvalidTransitionError("*", to_status, "no status leads here")
