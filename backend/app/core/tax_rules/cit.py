"""
Corporate Income Tax (CIT) Calculator
Based on Federal Decree-Law No. 47 of 2022 on the Taxation of Corporations and Businesses

CIT Rates (first match wins):
  - Qualifying Free Zone Person: 0%
  - Small Business Relief (taxable income up to AED 3,000,000): 0%
  - Taxable income up to AED 375,000: 0%
  - All other taxable income: 9% on the portion above AED 375,000

Taxable income is built from accounting income in nine ordered steps. Every
step records exactly one audit trail entry before the next step starts:
  1. Accounting income          (Article 16)
  2. Add-backs                  (Articles 22-29)
  3. Deductions                 (Articles 17-21)
  4. Taxable income, floored    (Article 15)
  5. Applicable rate            (Articles 5-7)
  6. Gross liability            (Article 5)
  7. Small Business Relief      (Article 7)
  8. Installments and credits   (Articles 71-74)
  9. Final position             (Article 69)
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, ClassVar

import structlog

from app.core.tax_rules.audit_trail import AuditTrailEntry, AuditTrailRecorder, StepOutcome
from app.core.tax_rules.eligibility import EligibilityAssessment
from app.core.tax_rules.errors import InputValidationError
from app.core.tax_rules.money import ZERO, fmt, fmt_rate, quantize, to_decimal
from app.core.tax_rules.rate_schedule import RateSchedule, get_rate_schedule
from app.core.tax_rules.thresholds import ThresholdSnapshot

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LineItemDefinition:
    key: str
    description: str
    citation: str


ADD_BACK_ITEMS: tuple[LineItemDefinition, ...] = (
    LineItemDefinition("non_deductible_expenses", "Non-deductible business expenses", "UAE CIT Law Article 22"),
    LineItemDefinition("depreciation_adjustment", "Accounting depreciation adjustment", "UAE CIT Law Article 23"),
    LineItemDefinition("provisions_reversals", "Provision reversals and adjustments", "UAE CIT Law Article 24"),
    LineItemDefinition("penalties_fines", "Penalties and fines (non-deductible)", "UAE CIT Law Article 25"),
    LineItemDefinition("entertainment_expenses", "Entertainment expenses (50% limit)", "UAE CIT Law Article 26"),
    LineItemDefinition("excessive_compensation", "Excessive compensation to connected persons", "UAE CIT Law Article 36"),
    LineItemDefinition("related_party_expenses", "Related party expenses above arm's length", "UAE CIT Law Article 34"),
    LineItemDefinition("other", "Other non-deductible items", "UAE CIT Law Articles 22-29"),
)

DEDUCTION_ITEMS: tuple[LineItemDefinition, ...] = (
    LineItemDefinition("accelerated_depreciation", "Accelerated depreciation allowance", "UAE CIT Law Article 17"),
    LineItemDefinition("research_development", "Research and development expenses", "UAE CIT Law Article 18"),
    LineItemDefinition("capital_allowances", "Capital allowances for assets", "UAE CIT Law Article 19"),
    LineItemDefinition("business_provisions", "Business-related provisions", "UAE CIT Law Article 20"),
    LineItemDefinition("carry_forward_losses", "Tax losses carried forward", "UAE CIT Law Article 21"),
    LineItemDefinition("other", "Other allowable deductions", "UAE CIT Law Articles 17-21"),
)


def _non_negative(value, field_name: str) -> Decimal:
    amount = to_decimal(value, field_name)
    if amount < 0:
        raise InputValidationError(field_name, "cannot be negative")
    return amount


@dataclass(frozen=True)
class _LineItemAmounts:
    catalogue: ClassVar[tuple[LineItemDefinition, ...]] = ()
    prefix: ClassVar[str] = ""

    def __post_init__(self):
        for f in fields(self):
            object.__setattr__(self, f.name, _non_negative(getattr(self, f.name), f"{self.prefix}.{f.name}"))

    def items(self) -> tuple[tuple[LineItemDefinition, Decimal], ...]:
        return tuple((item, getattr(self, item.key)) for item in self.catalogue)

    @property
    def total(self) -> Decimal:
        return sum((amount for _, amount in self.items()), ZERO)


@dataclass(frozen=True)
class AddBacks(_LineItemAmounts):
    catalogue: ClassVar[tuple[LineItemDefinition, ...]] = ADD_BACK_ITEMS
    prefix: ClassVar[str] = "add_backs"

    non_deductible_expenses: Decimal = ZERO
    depreciation_adjustment: Decimal = ZERO
    provisions_reversals: Decimal = ZERO
    penalties_fines: Decimal = ZERO
    entertainment_expenses: Decimal = ZERO
    excessive_compensation: Decimal = ZERO
    related_party_expenses: Decimal = ZERO
    other: Decimal = ZERO


@dataclass(frozen=True)
class Deductions(_LineItemAmounts):
    catalogue: ClassVar[tuple[LineItemDefinition, ...]] = DEDUCTION_ITEMS
    prefix: ClassVar[str] = "deductions"

    accelerated_depreciation: Decimal = ZERO
    research_development: Decimal = ZERO
    capital_allowances: Decimal = ZERO
    business_provisions: Decimal = ZERO
    carry_forward_losses: Decimal = ZERO
    other: Decimal = ZERO


@dataclass(frozen=True)
class FreeZoneInfo:
    is_free_zone: bool = False
    free_zone_name: str | None = None
    qualifying_income: Decimal = ZERO
    non_qualifying_income: Decimal = ZERO
    qualifies_for_qfzp: bool = False

    def __post_init__(self):
        for name in ("qualifying_income", "non_qualifying_income"):
            object.__setattr__(self, name, _non_negative(getattr(self, name), f"free_zone.{name}"))


@dataclass(frozen=True)
class SmallBusinessReliefInfo:
    qualifies_for_relief: bool = False
    relief_amount: Decimal = ZERO

    def __post_init__(self):
        object.__setattr__(
            self, "relief_amount", _non_negative(self.relief_amount, "small_business_relief.relief_amount")
        )


@dataclass(frozen=True)
class Installments:
    q1_paid: Decimal = ZERO
    q2_paid: Decimal = ZERO
    q3_paid: Decimal = ZERO
    q4_paid: Decimal = ZERO

    def __post_init__(self):
        for f in fields(self):
            object.__setattr__(self, f.name, _non_negative(getattr(self, f.name), f"installments.{f.name}"))

    @property
    def total(self) -> Decimal:
        return self.q1_paid + self.q2_paid + self.q3_paid + self.q4_paid


@dataclass(frozen=True)
class CalculationInput:
    entity_id: str
    tax_year: int
    accounting_income: Decimal
    add_backs: AddBacks = field(default_factory=AddBacks)
    deductions: Deductions = field(default_factory=Deductions)
    free_zone: FreeZoneInfo = field(default_factory=FreeZoneInfo)
    small_business_relief: SmallBusinessReliefInfo = field(default_factory=SmallBusinessReliefInfo)
    installments: Installments = field(default_factory=Installments)
    withholding_credits: Decimal = ZERO
    foreign_tax_credits: Decimal = ZERO
    currency: str = "AED"

    def __post_init__(self):
        if not self.entity_id:
            raise InputValidationError("entity_id", "is required")
        if isinstance(self.tax_year, bool) or not isinstance(self.tax_year, int) or self.tax_year <= 0:
            raise InputValidationError("tax_year", "must be a positive year")
        # Accounting income is the one signed figure: a loss is negative
        object.__setattr__(self, "accounting_income", to_decimal(self.accounting_income, "accounting_income"))
        for name in ("withholding_credits", "foreign_tax_credits"):
            object.__setattr__(self, name, _non_negative(getattr(self, name), name))


class BreakdownType(str, Enum):
    ADD_BACK = "ADD_BACK"
    DEDUCTION = "DEDUCTION"
    CREDIT = "CREDIT"
    LIABILITY = "LIABILITY"


@dataclass(frozen=True)
class BreakdownItem:
    category: str
    description: str
    amount: Decimal
    type: BreakdownType
    regulation: str


class RateBasis(str, Enum):
    QFZP = "QFZP"
    SMALL_BUSINESS_RELIEF = "SMALL_BUSINESS_RELIEF"
    BELOW_MINIMUM_THRESHOLD = "BELOW_MINIMUM_THRESHOLD"
    STANDARD = "STANDARD"


@dataclass(frozen=True)
class RateDetermination:
    basis: RateBasis
    rate: Decimal
    taxable_at_rate: Decimal
    regulation: str
    explanation: str


@dataclass(frozen=True)
class CITSummary:
    accounting_income: Decimal
    total_add_backs: Decimal
    total_deductions: Decimal
    taxable_income: Decimal
    applicable_rate: Decimal
    gross_liability: Decimal
    relief_applied: Decimal
    net_liability: Decimal
    installments_paid: Decimal
    withholding_credits: Decimal
    foreign_tax_credits: Decimal
    total_credits: Decimal
    net_tax_due: Decimal
    refund_due: Decimal


@dataclass(frozen=True)
class ComplianceCheck:
    is_compliant: bool
    filing_required: bool
    installment_payments_required: bool
    qualifies_for_small_business_relief: bool
    qualifies_for_qfzp: bool
    loss_carry_forward_available: Decimal
    warnings: tuple[str, ...] = ()
    requirements: tuple[str, ...] = ()
    next_installment_due: date | None = None


@dataclass(frozen=True)
class CITComputation:
    summary: CITSummary
    breakdown: tuple[BreakdownItem, ...]
    audit_trail: tuple[AuditTrailEntry, ...]
    compliance: ComplianceCheck
    rate_basis: RateBasis
    rate_schedule_version: str


@dataclass(frozen=True)
class _CITState:
    """Running totals threaded through the nine steps."""

    calc_input: CalculationInput
    schedule: RateSchedule
    total_add_backs: Decimal = ZERO
    total_deductions: Decimal = ZERO
    adjusted_income: Decimal = ZERO
    taxable_income: Decimal = ZERO
    rate: RateDetermination | None = None
    gross_liability: Decimal = ZERO
    relief_applied: Decimal = ZERO
    net_liability: Decimal = ZERO
    installments_paid: Decimal = ZERO
    total_credits: Decimal = ZERO
    net_tax_due: Decimal = ZERO
    refund_due: Decimal = ZERO
    breakdown: tuple[BreakdownItem, ...] = ()

    def with_items(self, *items: BreakdownItem) -> tuple[BreakdownItem, ...]:
        return self.breakdown + tuple(item for item in items if item.amount != 0)


CITStep = Callable[[_CITState], tuple[_CITState, StepOutcome]]


def determine_rate(
    taxable_income: Decimal,
    free_zone: FreeZoneInfo,
    relief: SmallBusinessReliefInfo,
    schedule: RateSchedule,
) -> RateDetermination:
    if free_zone.is_free_zone and free_zone.qualifies_for_qfzp:
        return RateDetermination(
            basis=RateBasis.QFZP,
            rate=schedule.qfzp_rate,
            taxable_at_rate=taxable_income,
            regulation="UAE CIT Law Article 6",
            explanation=f"Qualifying Free Zone Person: rate = {fmt_rate(schedule.qfzp_rate)}",
        )

    if taxable_income <= schedule.small_business_relief_threshold and relief.qualifies_for_relief:
        return RateDetermination(
            basis=RateBasis.SMALL_BUSINESS_RELIEF,
            rate=ZERO,
            taxable_at_rate=taxable_income,
            regulation="UAE CIT Law Article 7",
            explanation=(
                f"Small Business Relief: {fmt(taxable_income)} <= "
                f"{fmt(schedule.small_business_relief_threshold)}: rate = 0%"
            ),
        )

    if taxable_income <= schedule.cit_zero_rate_band:
        return RateDetermination(
            basis=RateBasis.BELOW_MINIMUM_THRESHOLD,
            rate=ZERO,
            taxable_at_rate=taxable_income,
            regulation="UAE CIT Law Article 5",
            explanation=f"Below minimum threshold: {fmt(taxable_income)} <= {fmt(schedule.cit_zero_rate_band)}: rate = 0%",
        )

    return RateDetermination(
        basis=RateBasis.STANDARD,
        rate=schedule.cit_standard_rate,
        taxable_at_rate=taxable_income - schedule.cit_zero_rate_band,
        regulation="UAE CIT Law Article 5",
        explanation=(
            f"Standard rate: {fmt(taxable_income)} > {fmt(schedule.cit_zero_rate_band)}: "
            f"rate = {fmt_rate(schedule.cit_standard_rate)} above the zero-rate band"
        ),
    )


def _step_accounting_income(state: _CITState) -> tuple[_CITState, StepOutcome]:
    income = state.calc_input.accounting_income
    return state, StepOutcome(
        description="Starting point: Accounting Income/Loss",
        calculation=f"Accounting Income = {fmt(income)}",
        result=income,
        regulation="UAE CIT Law Article 16",
        notes="Income determined in accordance with accounting standards",
    )


def _step_add_backs(state: _CITState) -> tuple[_CITState, StepOutcome]:
    add_backs = state.calc_input.add_backs
    total = add_backs.total
    items = [
        BreakdownItem(item.key, item.description, amount, BreakdownType.ADD_BACK, item.citation)
        for item, amount in add_backs.items()
    ]
    terms = " + ".join(f"{item.description}: {fmt(amount)}" for item, amount in add_backs.items())
    return replace(state, total_add_backs=total, breakdown=state.with_items(*items)), StepOutcome(
        description="Add back non-deductible expenses",
        calculation=f"{terms} = {fmt(total)}",
        result=total,
        regulation="UAE CIT Law Articles 22-29",
    )


def _step_deductions(state: _CITState) -> tuple[_CITState, StepOutcome]:
    deductions = state.calc_input.deductions
    total = deductions.total
    items = [
        BreakdownItem(item.key, item.description, amount, BreakdownType.DEDUCTION, item.citation)
        for item, amount in deductions.items()
    ]
    terms = " + ".join(f"{item.description}: {fmt(amount)}" for item, amount in deductions.items())
    return replace(state, total_deductions=total, breakdown=state.with_items(*items)), StepOutcome(
        description="Apply allowable deductions",
        calculation=f"{terms} = {fmt(total)}",
        result=total,
        regulation="UAE CIT Law Articles 17-21",
    )


def _step_taxable_income(state: _CITState) -> tuple[_CITState, StepOutcome]:
    income = state.calc_input.accounting_income
    adjusted = income + state.total_add_backs - state.total_deductions
    taxable = max(ZERO, adjusted)
    notes = None
    if adjusted < 0:
        notes = f"Tax loss of {fmt(-adjusted)} available for carry forward to future periods"
    return replace(state, adjusted_income=adjusted, taxable_income=taxable), StepOutcome(
        description="Calculate taxable income",
        calculation=(
            f"max(0, Accounting Income ({fmt(income)}) + Add backs ({fmt(state.total_add_backs)}) "
            f"- Deductions ({fmt(state.total_deductions)})) = {fmt(taxable)}"
        ),
        result=taxable,
        regulation="UAE CIT Law Article 15",
        notes=notes,
    )


def _step_rate(state: _CITState) -> tuple[_CITState, StepOutcome]:
    determination = determine_rate(
        state.taxable_income,
        state.calc_input.free_zone,
        state.calc_input.small_business_relief,
        state.schedule,
    )
    return replace(state, rate=determination), StepOutcome(
        description="Determine applicable CIT rate",
        calculation=determination.explanation,
        result=determination.rate,
        regulation=determination.regulation,
        notes=f"Rate schedule {state.schedule.version}",
    )


def _step_gross_liability(state: _CITState) -> tuple[_CITState, StepOutcome]:
    determination = state.rate
    gross = quantize(determination.taxable_at_rate * determination.rate)

    if determination.basis == RateBasis.STANDARD:
        calculation = (
            f"(Taxable Income ({fmt(state.taxable_income)}) - Zero-rate band ({fmt(state.schedule.cit_zero_rate_band)}))"
            f" x Rate ({fmt_rate(determination.rate)}) = {fmt(gross)}"
        )
    else:
        calculation = f"Taxable Income ({fmt(state.taxable_income)}) x Rate ({fmt_rate(determination.rate)}) = {fmt(gross)}"

    liability = BreakdownItem(
        "gross_cit_liability", "Gross CIT liability", gross, BreakdownType.LIABILITY, "UAE CIT Law Article 5"
    )
    return replace(state, gross_liability=gross, breakdown=state.with_items(liability)), StepOutcome(
        description="Calculate gross CIT liability",
        calculation=calculation,
        result=gross,
        regulation="UAE CIT Law Article 5",
    )


def _step_relief(state: _CITState) -> tuple[_CITState, StepOutcome]:
    relief = state.calc_input.small_business_relief
    gross = state.gross_liability

    if relief.qualifies_for_relief:
        applied = quantize(min(gross, relief.relief_amount))
        calculation = (
            f"Relief = min({fmt(gross)}, {fmt(relief.relief_amount)}) = {fmt(applied)}; "
            f"Net = {fmt(gross)} - {fmt(applied)} = {fmt(gross - applied)}"
        )
    else:
        applied = ZERO
        calculation = f"No Small Business Relief elected; Net = {fmt(gross)} - 0.00 = {fmt(gross)}"

    net = gross - applied
    credit = BreakdownItem(
        "small_business_relief", "Small Business Relief", applied, BreakdownType.CREDIT, "UAE CIT Law Article 7"
    )
    return replace(state, relief_applied=applied, net_liability=net, breakdown=state.with_items(credit)), StepOutcome(
        description="Apply Small Business Relief",
        calculation=calculation,
        result=net,
        regulation="UAE CIT Law Article 7",
    )


def _step_installments_and_credits(state: _CITState) -> tuple[_CITState, StepOutcome]:
    calc_input = state.calc_input
    paid = calc_input.installments.total
    credits = calc_input.withholding_credits + calc_input.foreign_tax_credits
    installments = calc_input.installments

    items = [
        BreakdownItem(
            f"installment_q{quarter}",
            f"Q{quarter} installment paid",
            amount,
            BreakdownType.CREDIT,
            "UAE CIT Law Articles 71-74",
        )
        for quarter, amount in enumerate(
            (installments.q1_paid, installments.q2_paid, installments.q3_paid, installments.q4_paid), start=1
        )
    ]
    items.append(
        BreakdownItem(
            "withholding_credits", "Withholding tax credits", calc_input.withholding_credits,
            BreakdownType.CREDIT, "UAE CIT Law Article 46",
        )
    )
    items.append(
        BreakdownItem(
            "foreign_tax_credits", "Foreign tax credits", calc_input.foreign_tax_credits,
            BreakdownType.CREDIT, "UAE CIT Law Article 47",
        )
    )

    return replace(state, installments_paid=paid, total_credits=credits, breakdown=state.with_items(*items)), StepOutcome(
        description="Apply installments and credits",
        calculation=(
            f"Installments Paid: {fmt(paid)} + Withholding Credits: {fmt(calc_input.withholding_credits)} "
            f"+ Foreign Tax Credits: {fmt(calc_input.foreign_tax_credits)} = {fmt(paid + credits)}"
        ),
        result=paid + credits,
        regulation="UAE CIT Law Articles 71-74",
    )


def _step_final_position(state: _CITState) -> tuple[_CITState, StepOutcome]:
    settled = state.installments_paid + state.total_credits
    net_tax_due = max(ZERO, state.net_liability - settled)
    refund_due = max(ZERO, settled - state.net_liability)

    position = net_tax_due if net_tax_due > 0 else -refund_due
    return replace(state, net_tax_due=net_tax_due, refund_due=refund_due), StepOutcome(
        description="Calculate final tax position",
        calculation=(
            f"Net CIT Liability ({fmt(state.net_liability)}) - Installments ({fmt(state.installments_paid)}) "
            f"- Credits ({fmt(state.total_credits)}) = {fmt(state.net_liability - settled)}"
        ),
        result=position,
        regulation="UAE CIT Law Article 69",
        notes="Refund due" if refund_due > 0 else "Tax due" if net_tax_due > 0 else "Nil position",
    )


CIT_STEPS: tuple[CITStep, ...] = (
    _step_accounting_income,
    _step_add_backs,
    _step_deductions,
    _step_taxable_income,
    _step_rate,
    _step_gross_liability,
    _step_relief,
    _step_installments_and_credits,
    _step_final_position,
)


class CITCalculator:
    """
    Deterministic Corporate Income Tax calculator for UAE businesses.
    All figures follow the rate schedule the calculator was built with.
    """

    def __init__(self, rate_schedule: RateSchedule | None = None):
        self.rate_schedule = rate_schedule or get_rate_schedule()

    def calculate(
        self,
        calc_input: CalculationInput,
        eligibility: EligibilityAssessment | None = None,
        thresholds: ThresholdSnapshot | None = None,
    ) -> CITComputation:
        recorder = AuditTrailRecorder("CIT")
        state = _CITState(calc_input=calc_input, schedule=self.rate_schedule)

        for step in CIT_STEPS:
            state, outcome = step(state)
            recorder.record(outcome)

        summary = CITSummary(
            accounting_income=calc_input.accounting_income,
            total_add_backs=state.total_add_backs,
            total_deductions=state.total_deductions,
            taxable_income=state.taxable_income,
            applicable_rate=state.rate.rate,
            gross_liability=state.gross_liability,
            relief_applied=state.relief_applied,
            net_liability=state.net_liability,
            installments_paid=state.installments_paid,
            withholding_credits=calc_input.withholding_credits,
            foreign_tax_credits=calc_input.foreign_tax_credits,
            total_credits=state.total_credits,
            net_tax_due=state.net_tax_due,
            refund_due=state.refund_due,
        )

        logger.debug(
            "cit_calculated",
            entity_id=calc_input.entity_id,
            tax_year=calc_input.tax_year,
            rate_basis=state.rate.basis.value,
            taxable_income=str(summary.taxable_income),
            net_tax_due=str(summary.net_tax_due),
        )

        return CITComputation(
            summary=summary,
            breakdown=state.breakdown,
            audit_trail=recorder.entries,
            compliance=self.compliance_check(state, eligibility, thresholds),
            rate_basis=state.rate.basis,
            rate_schedule_version=self.rate_schedule.version,
        )

    def compliance_check(
        self,
        state: _CITState,
        eligibility: EligibilityAssessment | None = None,
        thresholds: ThresholdSnapshot | None = None,
    ) -> ComplianceCheck:
        warnings = []
        requirements = []

        filing_required = state.taxable_income > self.rate_schedule.cit_zero_rate_band
        if filing_required:
            requirements.append("CIT return filing is required")

        installments_required = state.net_liability > 0
        if installments_required:
            requirements.append("Quarterly installment payments required for following year")

        loss = max(ZERO, -state.adjusted_income)
        if loss > 0:
            warnings.append(f"Tax loss of AED {fmt(loss)} incurred - consider carry forward provisions")

        qfzp_claimed = state.rate.basis == RateBasis.QFZP
        if qfzp_claimed and eligibility is not None and not eligibility.is_eligible:
            failed = ", ".join(name for name, passed in eligibility.tests.items() if not passed)
            warnings.append(f"QFZP rate claimed but eligibility assessment failed: {failed} test(s)")

        free_zone = state.calc_input.free_zone
        if eligibility is not None and free_zone.is_free_zone:
            assessed = eligibility.income_test
            if (assessed.qualifying_income, assessed.excluded_income) != (
                free_zone.qualifying_income,
                free_zone.non_qualifying_income,
            ):
                warnings.append(
                    f"QFZP eligibility was assessed on qualifying income AED {fmt(assessed.qualifying_income)} "
                    f"and excluded income AED {fmt(assessed.excluded_income)}, but this return declares "
                    f"AED {fmt(free_zone.qualifying_income)} and AED {fmt(free_zone.non_qualifying_income)}"
                )

        if thresholds is not None:
            requirements.extend(alert.message for alert in thresholds.alerts if alert.action_required)

        return ComplianceCheck(
            is_compliant=not warnings,
            filing_required=filing_required,
            installment_payments_required=installments_required,
            qualifies_for_small_business_relief=state.rate.basis == RateBasis.SMALL_BUSINESS_RELIEF,
            qualifies_for_qfzp=qfzp_claimed,
            loss_carry_forward_available=loss,
            warnings=tuple(warnings),
            requirements=tuple(requirements),
        )
