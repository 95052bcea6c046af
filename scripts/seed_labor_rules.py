"""Seed script for the built-in labor rulesets.

Run with:
    python scripts/seed_labor_rules.py

Creates the tables if needed and writes one CountryPayrollRules row per
built-in default (currently Colombia 2024), skipping rows that already exist.
"""

from __future__ import annotations

import asyncio
from dataclasses import fields
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.rules import DEFAULT_RULES
from timesheet_payroll.calculators.types import LaborRules
from timesheet_payroll.database import create_all, dispose_db, get_session, init_db
from timesheet_payroll.models import CountryPayrollRules

_SKIPPED_FIELDS = {"country_code", "year", "arl_rates", "source"}


def rules_to_row(rules: LaborRules) -> CountryPayrollRules:
    """Build a ruleset row carrying every constant of a LaborRules snapshot."""
    values = {
        f.name: getattr(rules, f.name)
        for f in fields(LaborRules)
        if f.name not in _SKIPPED_FIELDS
    }
    return CountryPayrollRules(
        country_code=rules.country_code,
        name=f"{rules.country_code} labor rules {rules.year}",
        year=rules.year,
        arl_rates={str(tier): str(pct) for tier, pct in rules.arl_rates},
        is_active=True,
        valid_from=date(rules.year, 1, 1),
        **values,
    )


async def seed_default_rules(session: AsyncSession) -> int:
    """Insert missing default rulesets. Returns the number created."""
    created = 0
    for country_code, rules in DEFAULT_RULES.items():
        result = await session.execute(
            select(CountryPayrollRules).where(
                CountryPayrollRules.country_code == country_code,
                CountryPayrollRules.year == rules.year,
                CountryPayrollRules.valid_from == date(rules.year, 1, 1),
            )
        )
        if result.scalar_one_or_none() is not None:
            print(f"Labor rules for {country_code} {rules.year} already exist")
            continue

        session.add(rules_to_row(rules))
        created += 1
        print(f"Created labor rules for {country_code} {rules.year}")

    await session.flush()
    return created


async def main():
    """Run seed script."""
    print("Seeding labor rules...")

    engine, _ = init_db()
    await create_all(engine)

    async with get_session() as session:
        created = await seed_default_rules(session)

    await dispose_db()
    print(f"\nDone! {created} ruleset(s) seeded.")


if __name__ == "__main__":
    asyncio.run(main())
