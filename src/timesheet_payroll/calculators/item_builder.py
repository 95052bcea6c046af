"""Pay item builder for the per-slip ledger."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from timesheet_payroll.calculators.types import ItemType, PayItemCandidate

if TYPE_CHECKING:
    from timesheet_payroll.calculators.types import LaborRules, PaySlipDraft


class PayItemBuilder:
    """Builds itemized pay lines that reconcile to a slip's aggregate columns.

    Sign convention: amounts are non-negative and the item type decides which
    side of the slip they land on. Creators store the amount as given, so a
    negative value is left for validate_item_signs to report.

    Rounding:
    - Money to 2 decimals with ROUND_HALF_UP
    - Hours and hourly rates to 4 decimals
    """

    PRECISION = Decimal("0.0001")  # hours and rates
    OUTPUT_PRECISION = Decimal("0.01")  # money

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(PayItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def round_precise(value: Decimal) -> Decimal:
        """Round hours or rates to 4 decimal places."""
        return value.quantize(PayItemBuilder.PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def create_earning(
        code: str,
        name: str,
        amount: Decimal,
        quantity: Decimal | None = None,
        rate: Decimal | None = None,
        is_taxable: bool = True,
        affects_social_security: bool = True,
    ) -> PayItemCandidate:
        """Create an earning item."""
        return PayItemCandidate(
            item_type=ItemType.EARNING,
            code=code,
            name=name,
            amount=PayItemBuilder.round_to_cents(amount),
            quantity=quantity,
            rate=rate,
            is_taxable=is_taxable,
            affects_social_security=affects_social_security,
        )

    @staticmethod
    def create_deduction(
        code: str,
        name: str,
        amount: Decimal,
        base_amount: Decimal | None = None,
        percentage: Decimal | None = None,
    ) -> PayItemCandidate:
        """Create an employee deduction item."""
        return PayItemCandidate(
            item_type=ItemType.DEDUCTION,
            code=code,
            name=name,
            amount=PayItemBuilder.round_to_cents(amount),
            base_amount=base_amount,
            percentage=percentage,
            is_taxable=False,
            affects_social_security=False,
        )

    @staticmethod
    def create_employer_contribution(
        code: str,
        name: str,
        amount: Decimal,
        base_amount: Decimal,
        percentage: Decimal,
    ) -> PayItemCandidate:
        """Create an employer contribution item (liability, not paid to the employee)."""
        return PayItemCandidate(
            item_type=ItemType.EMPLOYER_CONTRIBUTION,
            code=code,
            name=name,
            amount=PayItemBuilder.round_to_cents(amount),
            base_amount=base_amount,
            percentage=percentage,
            is_taxable=False,
            affects_social_security=False,
        )

    @staticmethod
    def create_provision(
        code: str,
        name: str,
        amount: Decimal,
        base_amount: Decimal,
        rate: Decimal,
    ) -> PayItemCandidate:
        """Create a provision item. ``rate`` is a fraction and is stored as a percentage."""
        return PayItemCandidate(
            item_type=ItemType.PROVISION,
            code=code,
            name=name,
            amount=PayItemBuilder.round_to_cents(amount),
            base_amount=base_amount,
            percentage=rate * 100,
            is_taxable=False,
            affects_social_security=False,
        )

    @staticmethod
    def build_items(
        draft: PaySlipDraft,
        rules: LaborRules,
        *,
        overtime_day_pay: Decimal,
        overtime_night_pay: Decimal,
        arl_pct: Decimal,
    ) -> list[PayItemCandidate]:
        """Itemize a computed slip.

        Overtime is split into its day and night parts, which sum to the
        slip's overtime pay. Zero-valued lines are omitted, except basic
        salary which is always present.
        """
        b = PayItemBuilder
        basic = draft.basic_salary
        overtime_day_rate = b.round_to_cents(draft.hourly_rate * rules.overtime_day_multiplier)
        overtime_night_rate = b.round_to_cents(draft.hourly_rate * rules.overtime_night_multiplier)
        items = [
            b.create_earning(
                "BASIC_SALARY",
                "Basic salary",
                basic,
                quantity=Decimal(draft.days_worked),
            ),
            b.create_earning(
                "OVERTIME_DAY",
                "Daytime overtime",
                overtime_day_pay,
                quantity=draft.overtime_day_hours,
                rate=overtime_day_rate,
            ),
            b.create_earning(
                "OVERTIME_NIGHT",
                "Night overtime",
                overtime_night_pay,
                quantity=draft.overtime_night_hours,
                rate=overtime_night_rate,
            ),
            b.create_earning(
                "NIGHT_SURCHARGE",
                "Night surcharge",
                draft.night_premium,
                quantity=draft.overtime_night_hours,
            ),
            b.create_earning(
                "HOLIDAY_PREMIUM",
                "Sunday and holiday premium",
                draft.holiday_premium,
                quantity=draft.holiday_hours,
            ),
            # Transport allowance is not salary for contribution purposes
            b.create_earning(
                "TRANSPORT_ALLOWANCE",
                "Transport allowance",
                draft.transport_allowance,
                quantity=Decimal(draft.days_worked),
                is_taxable=False,
                affects_social_security=False,
            ),
            b.create_deduction("HEALTH", "Health (employee)", draft.health_deduction, basic, rules.health_employee_pct),
            b.create_deduction("PENSION", "Pension (employee)", draft.pension_deduction, basic, rules.pension_employee_pct),
            b.create_deduction("SOLIDARITY_FUND", "Pension solidarity fund", draft.solidarity_fund, basic, rules.solidarity_fund_pct),
            b.create_employer_contribution("EMPLOYER_HEALTH", "Health (employer)", draft.employer_health, basic, rules.health_employer_pct),
            b.create_employer_contribution("EMPLOYER_PENSION", "Pension (employer)", draft.employer_pension, basic, rules.pension_employer_pct),
            b.create_employer_contribution("ARL", "Occupational risk insurance", draft.employer_arl, basic, arl_pct),
            b.create_employer_contribution("PARAFISCALES", "Parafiscal contributions", draft.employer_parafiscales, basic, rules.parafiscales_pct),
            b.create_provision(
                "SEVERANCE",
                "Severance provision",
                draft.employer_severance,
                basic + draft.transport_allowance,
                rules.severance_rate,
            ),
            b.create_provision(
                "SEVERANCE_INTEREST",
                "Severance interest provision",
                draft.employer_severance_interest,
                draft.employer_severance,
                rules.severance_interest_rate,
            ),
            b.create_provision("VACATION", "Vacation provision", draft.employer_vacation_provision, basic, rules.vacation_rate),
            b.create_provision("BONUS", "Service bonus provision", draft.employer_bonus_provision, basic, rules.bonus_rate),
        ]
        return [item for item in items if item.code == "BASIC_SALARY" or item.amount != 0]

    @staticmethod
    def validate_item_signs(items: list[PayItemCandidate]) -> list[str]:
        """Validate that all items carry non-negative amounts.

        Returns list of error messages (empty if all valid).
        """
        errors: list[str] = []
        for i, item in enumerate(items):
            if item.amount < 0:
                errors.append(
                    f"Item {i} ({item.item_type.value} {item.code}) has negative amount {item.amount}"
                )
        return errors

    @staticmethod
    def sum_by_type(items: list[PayItemCandidate]) -> dict[ItemType, Decimal]:
        """Sum item amounts by type."""
        totals: dict[ItemType, Decimal] = {it: Decimal("0") for it in ItemType}
        for item in items:
            totals[item.item_type] += item.amount
        return totals

    @staticmethod
    def reconcile(draft: PaySlipDraft, items: list[PayItemCandidate]) -> list[str]:
        """Check that items add up to the slip's aggregate columns.

        - earnings = gross pay
        - deductions = total deductions
        - employer contributions + provisions = employer cost - gross pay
        """
        totals = PayItemBuilder.sum_by_type(items)
        errors: list[str] = []

        if totals[ItemType.EARNING] != draft.gross_pay:
            errors.append(
                f"Earnings {totals[ItemType.EARNING]} do not match gross pay {draft.gross_pay}"
            )
        if totals[ItemType.DEDUCTION] != draft.total_deductions:
            errors.append(
                f"Deductions {totals[ItemType.DEDUCTION]} do not match total deductions "
                f"{draft.total_deductions}"
            )
        employer_side = totals[ItemType.EMPLOYER_CONTRIBUTION] + totals[ItemType.PROVISION]
        if employer_side != draft.total_employer_cost - draft.gross_pay:
            errors.append(
                f"Employer items {employer_side} do not match employer cost "
                f"{draft.total_employer_cost} less gross pay {draft.gross_pay}"
            )
        return errors
