"""Organization and employment models."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_payroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from timesheet_payroll.models.timesheet import Timesheet


class Organization(Base, TimestampMixin):
    """Tenant organization."""

    __tablename__ = "organization"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False, default="CO")
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'suspended', 'closed')",
            name="organization_status_check",
        ),
    )

    # Relationships
    employments: Mapped[list[Employment]] = relationship(back_populates="organization")


class Employment(Base, TimestampMixin):
    """Employment record: one person's contract with an organization."""

    __tablename__ = "employment"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    organization_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    base_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    salary_period: Mapped[str | None] = mapped_column(String, nullable=True)
    currency_code: Mapped[str | None] = mapped_column(String(3), nullable=True)
    branch_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    arl_risk_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated')",
            name="employment_status_check",
        ),
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="employments")
    timesheets: Mapped[list[Timesheet]] = relationship(back_populates="employment")

    @property
    def display_name(self) -> str:
        """Get full name, or a placeholder when the profile has none."""
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "Sin nombre"
