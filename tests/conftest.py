"""Pytest fixtures for timesheet payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from timesheet_payroll.config import Settings
from timesheet_payroll.models import (
    Base,
    Employment,
    Organization,
    PayrollPeriod,
    Timesheet,
)

# In-memory SQLite shared across the engine's single connection
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PERIOD_START = date(2024, 6, 1)
PERIOD_END = date(2024, 6, 30)


@pytest.fixture
def settings() -> Settings:
    """Explicit settings so tests never depend on the environment."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        calculation_workers=4,
    )


@pytest.fixture
async def engine():
    """Create a fresh test database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def organization(session: AsyncSession) -> Organization:
    """Create a Colombian test organization."""
    org = Organization(name="Acme Logistics SAS", country_code="CO", status="active")
    session.add(org)
    await session.flush()
    return org


@pytest.fixture
async def period(session: AsyncSession, organization: Organization) -> PayrollPeriod:
    """Create a draft 30-day monthly period."""
    period = PayrollPeriod(
        organization_id=organization.id,
        name="June 2024",
        period_start=PERIOD_START,
        period_end=PERIOD_END,
        frequency="monthly",
        status="draft",
        metadata_json={},
    )
    session.add(period)
    await session.flush()
    return period


@pytest.fixture
def make_employment(
    session: AsyncSession, organization: Organization
) -> Callable[..., Awaitable[Employment]]:
    """Factory for employments of the test organization."""

    async def _make(**overrides: Any) -> Employment:
        values: dict[str, Any] = {
            "organization_id": organization.id,
            "first_name": "Ana",
            "last_name": "Gómez",
            "employee_code": "E-001",
            "base_salary": Decimal("1300000"),
            "salary_period": "monthly",
            "currency_code": "COP",
            "status": "active",
        }
        values.update(overrides)
        employment = Employment(**values)
        session.add(employment)
        await session.flush()
        return employment

    return _make


@pytest.fixture
def add_timesheets(
    session: AsyncSession,
) -> Callable[..., Awaitable[list[Timesheet]]]:
    """Factory adding one timesheet per consecutive day from ``start``."""

    async def _add(
        employment: Employment,
        days: int,
        start: date = PERIOD_START,
        net_worked_minutes: int | None = 480,
        status: str = "approved",
        **minutes: int | None,
    ) -> list[Timesheet]:
        records = [
            Timesheet(
                employment_id=employment.id,
                work_date=start + timedelta(days=offset),
                net_worked_minutes=net_worked_minutes,
                status=status,
                **minutes,
            )
            for offset in range(days)
        ]
        session.add_all(records)
        await session.flush()
        return records

    return _add
