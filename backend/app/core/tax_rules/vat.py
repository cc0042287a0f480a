"""
Value Added Tax (VAT) Calculator
Based on Federal Decree-Law No. 8 of 2017 on Value Added Tax

VAT Rate: 5% on taxable supplies

Key provisions:
  - Article 13: Mandatory registration (taxable supplies above AED 375,000)
  - Article 17: Voluntary registration (above AED 187,500)
  - Article 24: Output tax on taxable supplies
  - Article 45-46: Exempt and zero-rated supplies
  - Article 49: Net tax payable
  - Article 53: Recoverable input tax
  - Article 64: Bad debt relief
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

import structlog

from app.core.tax_rules.audit_trail import AuditTrailEntry, AuditTrailRecorder, StepOutcome
from app.core.tax_rules.errors import InputValidationError
from app.core.tax_rules.filing import add_months_end_of_month
from app.core.tax_rules.money import ZERO, fmt, fmt_rate, quantize, to_decimal
from app.core.tax_rules.rate_schedule import RateSchedule, get_rate_schedule

logger = structlog.get_logger(__name__)


class VATCategory(str, Enum):
    STANDARD = "standard"
    EXEMPT = "exempt"
    ZERO_RATED = "zero_rated"


EXEMPT_CATEGORIES = [
    "banking_services",
    "insurance",
    "education",
    "healthcare_basic",
    "residential_property",
    "local_passenger_transport",
]

ZERO_RATED_CATEGORIES = [
    "exports",
    "international_transport",
    "precious_metals",
]

NON_RECOVERABLE_CATEGORIES = [
    "entertainment",
    "personal_expenses",
    "exempt_supplies_related",
]

FILING_FREQUENCY = "QUARTERLY"


@dataclass(frozen=True)
class VATComputation:
    taxable_sales: Decimal
    taxable_purchases: Decimal
    rate: Decimal
    output_vat: Decimal
    input_vat: Decimal
    net_vat_due: Decimal
    rate_schedule_version: str
    audit_trail: tuple[AuditTrailEntry, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class VATLineItem:
    description: str
    amount: Decimal
    category: VATCategory
    vat_amount: Decimal
    recoverable: bool = True


@dataclass(frozen=True)
class VATAdjustments:
    bad_debt_relief: Decimal = ZERO
    corrections: Decimal = ZERO

    def __post_init__(self):
        object.__setattr__(self, "bad_debt_relief", to_decimal(self.bad_debt_relief, "adjustments.bad_debt_relief"))
        object.__setattr__(self, "corrections", to_decimal(self.corrections, "adjustments.corrections"))
        if self.bad_debt_relief < 0:
            raise InputValidationError("adjustments.bad_debt_relief", "cannot be negative")


@dataclass(frozen=True)
class VATComplianceCheck:
    is_compliant: bool
    registration_required: bool
    filing_frequency: str
    next_filing_due: date
    warnings: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class VATReturn:
    total_taxable_supplies: Decimal
    total_zero_rated_supplies: Decimal
    total_exempt_supplies: Decimal
    output_vat: Decimal
    input_vat: Decimal
    net_vat_due: Decimal
    refund_due: Decimal
    compliance: VATComplianceCheck
    rate_schedule_version: str
    output_items: tuple[VATLineItem, ...] = ()
    input_items: tuple[VATLineItem, ...] = ()
    audit_trail: tuple[AuditTrailEntry, ...] = ()


class VATCalculator:
    """
    Deterministic VAT calculator for UAE businesses.
    All calculations follow Federal Decree-Law No. 8 of 2017.
    """

    def __init__(self, rate_schedule: RateSchedule | None = None):
        self.rate_schedule = rate_schedule or get_rate_schedule()

    def classify_supply(self, category: str) -> VATCategory:
        if category.lower() in EXEMPT_CATEGORIES:
            return VATCategory.EXEMPT
        if category.lower() in ZERO_RATED_CATEGORIES:
            return VATCategory.ZERO_RATED
        return VATCategory.STANDARD

    def _category_of(self, item: dict) -> VATCategory:
        cat_str = str(item.get("category", VATCategory.STANDARD.value))
        if cat_str in {c.value for c in VATCategory}:
            return VATCategory(cat_str)
        return self.classify_supply(cat_str)

    def calculate_vat(self, sales, purchases, exempt_sales=ZERO, exempt_purchases=ZERO, rate=None) -> VATComputation:
        sales = to_decimal(sales, "sales")
        purchases = to_decimal(purchases, "purchases")
        exempt_sales = to_decimal(exempt_sales, "exempt_sales")
        exempt_purchases = to_decimal(exempt_purchases, "exempt_purchases")
        for name, value in (
            ("sales", sales),
            ("purchases", purchases),
            ("exempt_sales", exempt_sales),
            ("exempt_purchases", exempt_purchases),
        ):
            if value < 0:
                raise InputValidationError(name, "cannot be negative")

        vat_rate = self.rate_schedule.vat_standard_rate if rate is None else to_decimal(rate, "rate")
        if vat_rate < 0 or vat_rate > 1:
            raise InputValidationError("rate", "must be a fraction between 0 and 1")

        if exempt_sales > sales:
            raise InputValidationError("exempt_sales", "cannot exceed sales")
        if exempt_purchases > purchases:
            raise InputValidationError("exempt_purchases", "cannot exceed purchases")

        taxable_sales = sales - exempt_sales
        taxable_purchases = purchases - exempt_purchases
        output_vat = quantize(taxable_sales * vat_rate)
        input_vat = quantize(taxable_purchases * vat_rate)
        net_vat_due = max(ZERO, output_vat - input_vat)

        recorder = AuditTrailRecorder("VAT")
        recorder.record(StepOutcome(
            description="Determine taxable sales and purchases",
            calculation=(
                f"Sales ({fmt(sales)}) - Exempt Sales ({fmt(exempt_sales)}) = {fmt(taxable_sales)}; "
                f"Purchases ({fmt(purchases)}) - Exempt Purchases ({fmt(exempt_purchases)}) = {fmt(taxable_purchases)}"
            ),
            result=taxable_sales,
            regulation="UAE VAT Law Articles 45-46",
        ))
        recorder.record(StepOutcome(
            description="Calculate Output VAT on taxable supplies",
            calculation=f"{fmt(taxable_sales)} x {fmt_rate(vat_rate)} = {fmt(output_vat)}",
            result=output_vat,
            regulation="UAE VAT Law Article 24",
        ))
        recorder.record(StepOutcome(
            description="Calculate recoverable Input VAT",
            calculation=f"{fmt(taxable_purchases)} x {fmt_rate(vat_rate)} = {fmt(input_vat)}",
            result=input_vat,
            regulation="UAE VAT Law Article 53",
        ))
        recorder.record(StepOutcome(
            description="Calculate net VAT position",
            calculation=f"max(0, Output VAT ({fmt(output_vat)}) - Input VAT ({fmt(input_vat)})) = {fmt(net_vat_due)}",
            result=net_vat_due,
            regulation="UAE VAT Law Article 49",
        ))

        return VATComputation(
            taxable_sales=taxable_sales,
            taxable_purchases=taxable_purchases,
            rate=vat_rate,
            output_vat=output_vat,
            input_vat=input_vat,
            net_vat_due=net_vat_due,
            rate_schedule_version=self.rate_schedule.version,
            audit_trail=recorder.entries,
        )

    def calculate_return(
        self,
        output_supplies: list[dict] | None = None,
        input_purchases: list[dict] | None = None,
        adjustments: VATAdjustments | None = None,
        as_of: date | None = None,
    ) -> VATReturn:
        if output_supplies is None:
            output_supplies = []
        if input_purchases is None:
            input_purchases = []
        if adjustments is None:
            adjustments = VATAdjustments()
        if as_of is None:
            raise InputValidationError("as_of", "is required to date the next filing")

        rate = self.rate_schedule.vat_standard_rate
        taxable_supplies = ZERO
        zero_rated_supplies = ZERO
        exempt_supplies = ZERO
        output_vat = ZERO
        output_items = []

        for index, supply in enumerate(output_supplies):
            amount = self._amount(supply, f"output_supplies[{index}].amount")
            category = self._category_of(supply)
            vat_amount = quantize(amount * rate) if category == VATCategory.STANDARD else ZERO

            if category == VATCategory.STANDARD:
                taxable_supplies += amount
                output_vat += vat_amount
            elif category == VATCategory.EXEMPT:
                exempt_supplies += amount
            else:
                zero_rated_supplies += amount

            output_items.append(VATLineItem(supply.get("description", ""), amount, category, vat_amount))

        input_vat = ZERO
        input_items = []
        for index, purchase in enumerate(input_purchases):
            amount = self._amount(purchase, f"input_purchases[{index}].amount")
            category = self._category_of(purchase)
            recoverable = (
                category == VATCategory.STANDARD
                and str(purchase.get("category", "")).lower() not in NON_RECOVERABLE_CATEGORIES
            )
            vat_amount = quantize(amount * rate) if recoverable else ZERO
            input_vat += vat_amount
            input_items.append(VATLineItem(purchase.get("description", ""), amount, category, vat_amount, recoverable))

        position = output_vat - input_vat + adjustments.corrections - adjustments.bad_debt_relief
        net_vat_due = max(ZERO, position)
        refund_due = max(ZERO, -position)

        recorder = AuditTrailRecorder("VAT return")
        recorder.record(StepOutcome(
            description="Calculate Output VAT on taxable supplies",
            calculation=f"{fmt(taxable_supplies)} x {fmt_rate(rate)} = {fmt(output_vat)}",
            result=output_vat,
            regulation="UAE VAT Law Article 24",
        ))
        recorder.record(StepOutcome(
            description="Calculate recoverable Input VAT",
            calculation=f"Sum of recoverable purchases x {fmt_rate(rate)} = {fmt(input_vat)}",
            result=input_vat,
            regulation="UAE VAT Law Article 53",
        ))
        recorder.record(StepOutcome(
            description="Apply VAT adjustments and corrections",
            calculation=(
                f"Corrections ({fmt(adjustments.corrections)}) - Bad Debt Relief ({fmt(adjustments.bad_debt_relief)}) "
                f"= {fmt(adjustments.corrections - adjustments.bad_debt_relief)}"
            ),
            result=adjustments.corrections - adjustments.bad_debt_relief,
            regulation="UAE VAT Law Article 64",
        ))
        recorder.record(StepOutcome(
            description="Calculate net VAT position",
            calculation=(
                f"Output VAT ({fmt(output_vat)}) - Input VAT ({fmt(input_vat)}) "
                f"+ Adjustments ({fmt(adjustments.corrections - adjustments.bad_debt_relief)}) = {fmt(position)}"
            ),
            result=position,
            regulation="UAE VAT Law Article 49",
            notes="Refund due" if refund_due > 0 else None,
        ))

        vat_return = VATReturn(
            total_taxable_supplies=taxable_supplies,
            total_zero_rated_supplies=zero_rated_supplies,
            total_exempt_supplies=exempt_supplies,
            output_vat=output_vat,
            input_vat=input_vat,
            net_vat_due=net_vat_due,
            refund_due=refund_due,
            compliance=self.compliance_check(taxable_supplies, exempt_supplies, output_vat, input_vat, as_of),
            rate_schedule_version=self.rate_schedule.version,
            output_items=tuple(output_items),
            input_items=tuple(input_items),
            audit_trail=recorder.entries,
        )

        logger.info(
            "vat_return_calculated",
            output_vat=str(output_vat),
            input_vat=str(input_vat),
            net_vat_due=str(net_vat_due),
            refund_due=str(refund_due),
        )
        return vat_return

    def compliance_check(
        self,
        taxable_supplies: Decimal,
        exempt_supplies: Decimal,
        output_vat: Decimal,
        input_vat: Decimal,
        as_of: date,
    ) -> VATComplianceCheck:
        warnings = []
        recommendations = []

        # Quarterly return figures annualised
        annual_taxable_supplies = taxable_supplies * 4
        registration_required = annual_taxable_supplies > self.rate_schedule.vat_registration_threshold

        if registration_required:
            warnings.append("VAT registration is mandatory for your business turnover")
        elif annual_taxable_supplies > self.rate_schedule.vat_voluntary_threshold:
            recommendations.append("Consider voluntary VAT registration as you are approaching the mandatory threshold")

        if input_vat > output_vat * 2:
            warnings.append("High input VAT relative to output VAT - ensure proper documentation")

        if exempt_supplies > taxable_supplies:
            recommendations.append("Review exempt supplies classification and input VAT recovery rules")

        return VATComplianceCheck(
            is_compliant=not warnings,
            registration_required=registration_required,
            filing_frequency=FILING_FREQUENCY,
            next_filing_due=self.next_filing_due(as_of),
            warnings=tuple(warnings),
            recommendations=tuple(recommendations),
        )

    def next_filing_due(self, as_of: date) -> date:
        quarter_end_month = ((as_of.month - 1) // 3) * 3 + 3
        quarter_end = add_months_end_of_month(as_of.year, quarter_end_month, 0)
        return quarter_end + timedelta(days=self.rate_schedule.vat_filing_deadline_days)

    @staticmethod
    def _amount(item: dict, field_name: str) -> Decimal:
        amount = to_decimal(item.get("amount", ZERO), field_name)
        if amount < 0:
            raise InputValidationError(field_name, "cannot be negative")
        return amount

    def calculate_simple(self, amount) -> dict:
        amount = to_decimal(amount, "amount")
        rate = self.rate_schedule.vat_standard_rate
        vat_amount = quantize(amount * rate)
        return {
            "amount": amount,
            "vat_rate": rate * 100,
            "vat_amount": vat_amount,
            "total_with_vat": quantize(amount + vat_amount),
        }

    def extract_vat_from_inclusive(self, inclusive_amount) -> dict:
        inclusive_amount = to_decimal(inclusive_amount, "inclusive_amount")
        rate = self.rate_schedule.vat_standard_rate
        amount_before_vat = quantize(inclusive_amount / (1 + rate))
        vat_amount = quantize(inclusive_amount - amount_before_vat)
        return {
            "inclusive_amount": inclusive_amount,
            "amount_before_vat": amount_before_vat,
            "vat_amount": vat_amount,
            "vat_rate": rate * 100,
        }
