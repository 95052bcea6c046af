"""Labor rule lookup with hardcoded per-country fallbacks."""

from __future__ import annotations

import logging
from dataclasses import fields
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_payroll.calculators.types import LaborRules
from timesheet_payroll.exceptions import RulesNotFoundError
from timesheet_payroll.models import CountryPayrollRules

logger = logging.getLogger(__name__)


COLOMBIA_2024 = LaborRules(
    country_code="CO",
    year=2024,
    minimum_wage=Decimal("1300000"),
    health_employee_pct=Decimal("4"),
    pension_employee_pct=Decimal("4"),
    health_employer_pct=Decimal("8.5"),
    pension_employer_pct=Decimal("12"),
    arl_base_pct=Decimal("0.522"),
    parafiscales_pct=Decimal("9"),
    transport_allowance=Decimal("162000"),
    transport_allowance_threshold=Decimal("2600000"),
    overtime_day_multiplier=Decimal("1.25"),
    overtime_night_multiplier=Decimal("1.75"),
    overtime_holiday_day_multiplier=Decimal("2.0"),
    overtime_holiday_night_multiplier=Decimal("2.5"),
    night_surcharge_multiplier=Decimal("1.35"),
    sunday_holiday_multiplier=Decimal("1.75"),
    severance_rate=Decimal("0.0833"),
    severance_interest_rate=Decimal("0.12"),
    vacation_rate=Decimal("0.0417"),
    bonus_rate=Decimal("0.0833"),
    solidarity_fund_pct=Decimal("1"),
    solidarity_threshold_multiplier=Decimal("4"),
    arl_rates=(
        (1, Decimal("0.522")),
        (2, Decimal("1.044")),
        (3, Decimal("2.436")),
        (4, Decimal("4.350")),
        (5, Decimal("6.960")),
    ),
)

# Only Colombia has built-in defaults; other countries need a configured row.
DEFAULT_RULES: dict[str, LaborRules] = {
    "CO": COLOMBIA_2024,
}

_ROW_FIELDS = tuple(
    f.name
    for f in fields(LaborRules)
    if f.name not in ("country_code", "year", "arl_rates", "source")
)


def labor_rules_from_row(row: CountryPayrollRules) -> LaborRules:
    """Build a LaborRules snapshot from a configured row.

    Null columns take the country default; a country without defaults must
    configure every column.
    """
    fallback = DEFAULT_RULES.get(row.country_code.upper())
    values: dict[str, Any] = {}
    missing: list[str] = []

    for name in _ROW_FIELDS:
        value = getattr(row, name)
        if value is None:
            if fallback is None:
                missing.append(name)
                continue
            value = getattr(fallback, name)
        values[name] = Decimal(value)

    if missing:
        raise RulesNotFoundError(
            row.country_code,
            row.year,
            reason=f"ruleset {row.id} is missing {', '.join(missing)}",
        )

    if row.arl_rates:
        arl_rates = tuple(
            sorted((int(tier), Decimal(str(pct))) for tier, pct in row.arl_rates.items())
        )
    elif fallback is not None:
        arl_rates = fallback.arl_rates
    else:
        arl_rates = ()

    return LaborRules(
        country_code=row.country_code.upper(),
        year=row.year,
        arl_rates=arl_rates,
        source=str(row.id),
        **values,
    )


class RuleProvider:
    """Resolves the labor ruleset in force for a country.

    Selection:
    1. Active rows for the country whose validity range includes as_of
    2. Restricted to ``year`` when given
    3. Most recent year wins, then most recent valid_from
    4. No row: the country's hardcoded default, else RulesNotFoundError
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_rules(
        self,
        country_code: str,
        year: int | None = None,
        as_of: date | None = None,
    ) -> LaborRules:
        """Get the ruleset for a country.

        Args:
            country_code: ISO 3166 alpha-2 country code
            year: Optional rule year to restrict the lookup to
            as_of: Effective date for the lookup (defaults to today)

        Returns:
            A frozen LaborRules snapshot

        Raises:
            RulesNotFoundError: If no row matches and no default exists
        """
        country_code = country_code.upper()
        as_of = as_of or date.today()

        row = await self._get_current_row(country_code, year, as_of)
        if row is not None:
            logger.info(
                "Using configured labor rules %s (%s %s) for %s",
                row.id,
                row.country_code,
                row.year,
                as_of,
            )
            return labor_rules_from_row(row)

        default = DEFAULT_RULES.get(country_code)
        if default is None:
            raise RulesNotFoundError(country_code, year, as_of)

        logger.warning(
            "No configured labor rules for %s on %s; using built-in %s defaults",
            country_code,
            as_of,
            default.year,
        )
        return default

    async def _get_current_row(
        self,
        country_code: str,
        year: int | None,
        as_of: date,
    ) -> CountryPayrollRules | None:
        """Get the most recent in-force row for a country."""
        query = select(CountryPayrollRules).where(
            CountryPayrollRules.country_code == country_code,
            CountryPayrollRules.is_active.is_(True),
            CountryPayrollRules.valid_from <= as_of,
            (
                CountryPayrollRules.valid_to.is_(None)
                | (CountryPayrollRules.valid_to >= as_of)
            ),
        )
        if year is not None:
            query = query.where(CountryPayrollRules.year == year)

        result = await self.session.execute(
            query.order_by(
                CountryPayrollRules.year.desc(),
                CountryPayrollRules.valid_from.desc(),
            ).limit(1)
        )
        return result.scalar_one_or_none()
