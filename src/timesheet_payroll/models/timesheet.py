"""Daily attendance (timesheet) model."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from timesheet_payroll.models.organization import Employment


class Timesheet(Base, TimestampMixin):
    """Worked, overtime, night and holiday minutes for one employee on one day."""

    __tablename__ = "timesheet"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    employment_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employment.id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    net_worked_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    overtime_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    night_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    holiday_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    late_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'submitted', 'approved', 'rejected')",
            name="timesheet_status_check",
        ),
        Index("timesheet_employment_date_idx", "employment_id", "work_date"),
    )

    # Relationships
    employment: Mapped[Employment] = relationship(back_populates="timesheets")
