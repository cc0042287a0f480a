"""
Compliance Report Generator
Generates free zone and CIT compliance reports as structured data.
Plain-text rendering is provided for the QFZP report; every other
rendering is left to the caller.

Report Types:
  - QFZP Compliance Report
  - Free Zone Compliance Report (substance and transfer pricing)
  - CIT Compliance Checklist
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from app.core.engine import CalculationResult
from app.core.tax_rules.eligibility import EligibilityAssessment, EligibilityAssessor, QFZPProfile
from app.core.tax_rules.filing import InstallmentStatus
from app.core.tax_rules.money import fmt
from app.core.tax_rules.rate_schedule import RateSchedule, get_rate_schedule


class QFZPStatus(str, Enum):
    ELIGIBLE = "ELIGIBLE"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"


@dataclass(frozen=True)
class QFZPComplianceReport:
    company_name: str
    trn: str
    financial_year: str
    free_zone_authority: str
    status: QFZPStatus
    assessment: EligibilityAssessment
    generated_on: date
    text: str


@dataclass(frozen=True)
class EconomicSubstanceCompliance:
    has_substance: bool
    controlled_in_uae: bool
    core_income: Decimal


@dataclass(frozen=True)
class TransferPricingCompliance:
    has_related_party_transactions: bool
    documentation_required: bool
    local_file_required: bool
    master_file_required: bool = False


@dataclass(frozen=True)
class FreeZoneComplianceReport:
    company_trn: str
    free_zone_authority: str
    reporting_period: str
    qfzp_status: QFZPStatus
    economic_substance: EconomicSubstanceCompliance
    transfer_pricing: TransferPricingCompliance
    recommendations: tuple[str, ...]
    generated_on: date


@dataclass(frozen=True)
class ComplianceChecklistItem:
    title: str
    description: str
    due_date: date | None
    status: str
    tax_type: str
    action_required: str


@dataclass(frozen=True)
class ComplianceChecklist:
    entity_id: str
    tax_year: int
    generated_on: date
    items: tuple[ComplianceChecklistItem, ...] = field(default_factory=tuple)
    summary: str = ""
    disclaimer: str = (
        "DISCLAIMER: This checklist is generated for informational purposes only. "
        "Filing deadlines and requirements may change. Always verify with the Federal Tax "
        "Authority or a qualified tax agent."
    )


class ComplianceReportGenerator:
    """
    Builds compliance reports from engine outputs.
    The report date is always supplied by the caller.
    """

    def __init__(self, rate_schedule: RateSchedule | None = None):
        self.rate_schedule = rate_schedule or get_rate_schedule()
        self.assessor = EligibilityAssessor(self.rate_schedule)

    def qfzp_report(self, profile: QFZPProfile, as_of: date) -> QFZPComplianceReport:
        assessment = self.assessor.assess(profile)
        status = QFZPStatus.ELIGIBLE if assessment.is_eligible else QFZPStatus.NOT_ELIGIBLE

        return QFZPComplianceReport(
            company_name=profile.company_name,
            trn=profile.trn,
            financial_year=profile.financial_year,
            free_zone_authority=profile.free_zone_authority,
            status=status,
            assessment=assessment,
            generated_on=as_of,
            text=self.render_qfzp_text(profile, assessment, as_of),
        )

    @staticmethod
    def render_qfzp_text(profile: QFZPProfile, assessment: EligibilityAssessment, as_of: date) -> str:
        def outcome(passed: bool) -> str:
            return "PASS" if passed else "FAIL"

        lines = [
            f"QFZP Compliance Report for {profile.company_name}",
            f"TRN: {profile.trn}",
            f"Financial Year: {profile.financial_year}",
            f"Free Zone Authority: {profile.free_zone_authority}",
            "",
            f"ELIGIBILITY STATUS: {'ELIGIBLE' if assessment.is_eligible else 'NOT ELIGIBLE'}",
            f"Score: {assessment.score:.0f}%",
            "",
            "Test Results:",
            f"- Income Test: {outcome(assessment.income_test.passed)}",
            f"- Activity Test: {outcome(assessment.activity_test.passed)}",
            f"- Management Test: {outcome(assessment.management_test.passed)}",
            f"- Ownership Test: {outcome(assessment.ownership_test.passed)}",
            "",
            "Income Analysis:",
            f"- Qualifying Income: AED {fmt(profile.qualifying_income)}",
            f"- Excluded Income: AED {fmt(profile.excluded_income)}",
            f"- Qualifying Percentage: {assessment.income_test.percentage:.2f}%",
            "",
            f"Generated on: {as_of.isoformat()}",
        ]
        return "\n".join(lines)

    def free_zone_report(self, profile: QFZPProfile, as_of: date) -> FreeZoneComplianceReport:
        assessment = self.assessor.assess(profile)
        tp_threshold = self.rate_schedule.transfer_pricing_threshold
        above_tp_threshold = profile.connected_person_transactions > tp_threshold

        return FreeZoneComplianceReport(
            company_trn=profile.trn,
            free_zone_authority=profile.free_zone_authority,
            reporting_period=profile.financial_year,
            qfzp_status=QFZPStatus.ELIGIBLE if assessment.is_eligible else QFZPStatus.NOT_ELIGIBLE,
            economic_substance=EconomicSubstanceCompliance(
                has_substance=profile.has_adequate_substance,
                controlled_in_uae=profile.controlled_in_uae,
                core_income=profile.qualifying_income,
            ),
            transfer_pricing=TransferPricingCompliance(
                has_related_party_transactions=profile.connected_person_transactions > 0,
                documentation_required=above_tp_threshold,
                local_file_required=above_tp_threshold,
            ),
            recommendations=assessment.recommendations,
            generated_on=as_of,
        )

    def compliance_checklist(
        self,
        result: CalculationResult,
        as_of: date,
        filed_returns: list[str] | None = None,
        paid_to_date=0,
    ) -> ComplianceChecklist:
        if filed_returns is None:
            filed_returns = []

        items = []
        filing = result.filing_requirements

        if filing.filing_required:
            cit_status = "completed" if "cit_annual" in filed_returns else (
                "overdue" if as_of > filing.filing_deadline else "pending"
            )
            items.append(ComplianceChecklistItem(
                title="Annual Corporate Tax Return",
                description=f"File your {result.tax_year} CIT return with the Federal Tax Authority.",
                due_date=filing.filing_deadline,
                status=cit_status,
                tax_type="CIT",
                action_required="File via the EmaraTax portal" if cit_status != "completed" else "None, already filed",
            ))

        for entry in filing.installment_schedule:
            status = entry.status_on(as_of, paid_to_date)
            items.append(ComplianceChecklistItem(
                title=f"{entry.quarter} CIT Installment",
                description=f"Pay AED {fmt(entry.estimated_amount)} towards the {result.tax_year + 1} liability.",
                due_date=entry.due_date,
                status="completed" if status == InstallmentStatus.PAID else status.value.lower(),
                tax_type="CIT",
                action_required="Pay via the EmaraTax portal" if status != InstallmentStatus.PAID else "None, already paid",
            ))

        items.append(ComplianceChecklistItem(
            title="Record Retention",
            description=(
                f"Keep the audit trail and supporting schedules for {self.rate_schedule.record_retention_years} years."
            ),
            due_date=None,
            status="pending",
            tax_type="CIT",
            action_required="Archive the calculation result and its fingerprint",
        ))

        completed = sum(1 for i in items if i.status == "completed")
        return ComplianceChecklist(
            entity_id=result.entity_id,
            tax_year=result.tax_year,
            generated_on=as_of,
            items=tuple(items),
            summary=f"{completed}/{len(items)} compliance items completed for {result.tax_year}.",
        )
