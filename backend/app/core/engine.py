"""
Tax Compliance Engine
Turns a validated calculation input into one immutable CalculationResult:

  eligibility (QFZP tests) ─┐
                            ├─> CIT liability (nine audited steps) ─> filing schedule
  revenue thresholds ───────┘

Eligibility and threshold monitoring run independently of each other. The
result is checked against the arithmetic invariants before it is returned;
a result that fails a check is never handed to the caller.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

import structlog

from app.core.tax_rules.audit_trail import AuditTrailEntry
from app.core.tax_rules.cit import (
    CIT_STEPS,
    BreakdownItem,
    CalculationInput,
    CITCalculator,
    CITSummary,
    ComplianceCheck,
    RateBasis,
)
from app.core.tax_rules.eligibility import EligibilityAssessment, EligibilityAssessor, QFZPProfile
from app.core.tax_rules.errors import ArithmeticInvariantError, InputValidationError
from app.core.tax_rules.filing import FilingRequirements, FilingScheduleGenerator
from app.core.tax_rules.money import CENT, ZERO
from app.core.tax_rules.rate_schedule import RateSchedule, get_rate_schedule
from app.core.tax_rules.serialization import fingerprint, to_jsonable
from app.core.tax_rules.thresholds import ThresholdMonitor, ThresholdSnapshot
from app.core.tax_rules.vat import VATCalculator

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CalculationResult:
    entity_id: str
    tax_year: int
    currency: str
    rate_schedule_version: str
    rate_basis: RateBasis
    summary: CITSummary
    breakdown: tuple[BreakdownItem, ...]
    compliance: ComplianceCheck
    audit_trail: tuple[AuditTrailEntry, ...]
    filing_requirements: FilingRequirements
    eligibility: EligibilityAssessment | None = None
    thresholds: ThresholdSnapshot | None = None

    def to_dict(self, as_of: date | None = None, paid_to_date: Decimal = ZERO) -> dict:
        """
        JSON-ready rendering. Installment status depends on the date it is
        viewed from, so it only appears when `as_of` is given.
        """
        data = to_jsonable(self)
        if as_of is not None:
            schedule = data["filing_requirements"]["installment_schedule"]
            for rendered, entry in zip(schedule, self.filing_requirements.installment_schedule):
                rendered["status"] = entry.status_on(as_of, paid_to_date).value
        data["fingerprint"] = self.fingerprint
        return data

    @property
    def fingerprint(self) -> str:
        return fingerprint(self)


class TaxComplianceEngine:
    def __init__(self, rate_schedule: RateSchedule | None = None):
        self.rate_schedule = rate_schedule or get_rate_schedule()
        self.eligibility_assessor = EligibilityAssessor(self.rate_schedule)
        self.threshold_monitor = ThresholdMonitor(self.rate_schedule)
        self.cit_calculator = CITCalculator(self.rate_schedule)
        self.vat_calculator = VATCalculator(self.rate_schedule)
        self.filing_generator = FilingScheduleGenerator(self.rate_schedule)

    def calculate(
        self,
        calc_input: CalculationInput,
        as_of: date,
        qfzp_profile: QFZPProfile | None = None,
        current_revenue=None,
        elapsed_months: int = 12,
    ) -> CalculationResult:
        if not isinstance(as_of, date):
            raise InputValidationError("as_of", "must be a date")

        eligibility = self.eligibility_assessor.assess(qfzp_profile) if qfzp_profile is not None else None
        thresholds = (
            self.threshold_monitor.project(current_revenue, elapsed_months) if current_revenue is not None else None
        )

        computation = self.cit_calculator.calculate(calc_input, eligibility=eligibility, thresholds=thresholds)
        summary = computation.summary

        filing = self.filing_generator.schedule(
            calc_input.tax_year, summary.net_liability, taxable_income=summary.taxable_income
        )
        compliance = replace(
            computation.compliance,
            next_installment_due=self.filing_generator.next_installment_due(filing, as_of),
        )

        result = CalculationResult(
            entity_id=calc_input.entity_id,
            tax_year=calc_input.tax_year,
            currency=calc_input.currency,
            rate_schedule_version=self.rate_schedule.version,
            rate_basis=computation.rate_basis,
            summary=summary,
            breakdown=computation.breakdown,
            compliance=compliance,
            audit_trail=computation.audit_trail,
            filing_requirements=filing,
            eligibility=eligibility,
            thresholds=thresholds,
        )
        self.verify(result)

        logger.info(
            "cit_calculation_completed",
            entity_id=result.entity_id,
            tax_year=result.tax_year,
            rate_schedule_version=result.rate_schedule_version,
            rate_basis=result.rate_basis.value,
            net_tax_due=str(summary.net_tax_due),
            refund_due=str(summary.refund_due),
            fingerprint=result.fingerprint,
        )
        return result

    def verify(self, result: CalculationResult) -> None:
        summary = result.summary
        checks = (
            ("net_tax_due_and_refund_exclusive", summary.net_tax_due * summary.refund_due == 0),
            ("taxable_income_non_negative", summary.taxable_income >= 0),
            ("net_liability_reconciles", summary.net_liability == summary.gross_liability - summary.relief_applied),
            (
                "audit_trail_contiguous",
                [entry.step for entry in result.audit_trail] == list(range(1, len(CIT_STEPS) + 1)),
            ),
            ("installment_schedule_reconciles", self._schedule_reconciles(result)),
        )

        for invariant, holds in checks:
            if not holds:
                logger.error(
                    "arithmetic_invariant_violated",
                    invariant=invariant,
                    entity_id=result.entity_id,
                    tax_year=result.tax_year,
                )
                raise ArithmeticInvariantError(
                    invariant, {"entity_id": result.entity_id, "tax_year": result.tax_year}
                )

    def _schedule_reconciles(self, result: CalculationResult) -> bool:
        schedule = result.filing_requirements.installment_schedule
        if not schedule:
            return result.summary.net_liability <= 0
        if len(schedule) != self.rate_schedule.installments_per_year:
            return False
        drift = abs(result.filing_requirements.total_installments - result.summary.net_liability)
        return drift <= CENT * len(schedule)
