"""
Qualifying Free Zone Person (QFZP) Eligibility Assessor
Based on Federal Decree-Law No. 47 of 2022, Article 18 and Cabinet Decision No. 55 of 2023

Four independent tests, all of which must pass:
  1. Income test: qualifying income is at least 90% of total income and does
     not exceed the QFZP income cap (AED 375,000)
  2. Activity test: at least one qualifying activity and no excluded activity
  3. Management test: adequate substance in the free zone, controlled in the UAE
  4. Ownership test: natural persons own at least 50%

Score = tests passed / 4 x 100.
"""

from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from app.core.tax_rules.errors import InputValidationError
from app.core.tax_rules.money import HUNDRED, ZERO, quantize, to_decimal
from app.core.tax_rules.rate_schedule import RateSchedule, get_rate_schedule

logger = structlog.get_logger(__name__)


QUALIFYING_ACTIVITIES = (
    "trading",
    "distribution",
    "logistics",
    "manufacturing",
    "holding",
    "treasury",
    "financing",
    "leasing",
)

EXCLUDED_ACTIVITIES = (
    "banking",
    "insurance",
    "investment_fund_management",
    "real_estate",
)

INCOME_RATIO_RECOMMENDATION = "Increase qualifying income to at least 90% of total income"
INCOME_CAP_RECOMMENDATION = "Consider income optimization to stay within small business threshold"

FAILED_TEST_RECOMMENDATIONS = {
    "activity": (
        "Review business activities to ensure compliance with QFZP qualifying activities",
        "Avoid excluded activities such as banking, insurance, or investment fund management",
    ),
    "management": (
        "Establish adequate economic substance in the UAE free zone",
        "Ensure management and control functions are performed in the UAE",
    ),
    "ownership": (
        "Increase natural person ownership to at least 50%",
        "Review ownership structure for QFZP compliance",
    ),
}

STANDING_RECOMMENDATIONS = (
    "Maintain detailed records of all qualifying and excluded income",
    "Document economic substance requirements annually",
    "Consider quarterly QFZP status reviews to ensure ongoing compliance",
)


@dataclass(frozen=True)
class QFZPProfile:
    qualifying_income: Decimal
    excluded_income: Decimal = ZERO
    activities: tuple[str, ...] = ()
    has_adequate_substance: bool = False
    controlled_in_uae: bool = False
    natural_person_ownership: Decimal = ZERO
    connected_person_transactions: Decimal = ZERO
    company_name: str = ""
    trn: str = ""
    free_zone_authority: str = ""
    financial_year: str = ""

    def __post_init__(self):
        for name in ("qualifying_income", "excluded_income", "connected_person_transactions"):
            amount = to_decimal(getattr(self, name), name)
            if amount < 0:
                raise InputValidationError(name, "cannot be negative")
            object.__setattr__(self, name, amount)

        ownership = to_decimal(self.natural_person_ownership, "natural_person_ownership")
        if ownership < 0 or ownership > HUNDRED:
            raise InputValidationError("natural_person_ownership", "must be between 0 and 100")
        object.__setattr__(self, "natural_person_ownership", ownership)
        object.__setattr__(self, "activities", tuple(self.activities))


@dataclass(frozen=True)
class IncomeTestResult:
    passed: bool
    qualifying_income: Decimal
    excluded_income: Decimal
    percentage: Decimal
    minimum_percentage: Decimal
    income_cap: Decimal


@dataclass(frozen=True)
class ActivityTestResult:
    passed: bool
    declared_activities: tuple[str, ...]
    qualifying_matches: tuple[str, ...]
    excluded_matches: tuple[str, ...]


@dataclass(frozen=True)
class ManagementTestResult:
    passed: bool
    adequate_substance: bool
    controlled_in_uae: bool


@dataclass(frozen=True)
class OwnershipTestResult:
    passed: bool
    natural_person_ownership: Decimal
    minimum_required: Decimal


@dataclass(frozen=True)
class EligibilityAssessment:
    income_test: IncomeTestResult
    activity_test: ActivityTestResult
    management_test: ManagementTestResult
    ownership_test: OwnershipTestResult
    score: Decimal
    is_eligible: bool
    rate_schedule_version: str
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def tests(self) -> dict[str, bool]:
        return {
            "income": self.income_test.passed,
            "activity": self.activity_test.passed,
            "management": self.management_test.passed,
            "ownership": self.ownership_test.passed,
        }

    @property
    def passed_count(self) -> int:
        return sum(1 for passed in self.tests.values() if passed)


class EligibilityAssessor:
    """
    Deterministic QFZP eligibility assessment.
    Substance and UAE control are inputs: they come from a separate
    substance-verification process and are never assumed here.
    """

    def __init__(self, rate_schedule: RateSchedule | None = None):
        self.rate_schedule = rate_schedule or get_rate_schedule()

    def income_test(self, profile: QFZPProfile) -> IncomeTestResult:
        total_income = profile.qualifying_income + profile.excluded_income
        qualifying_pct = profile.qualifying_income / total_income * HUNDRED if total_income else ZERO
        cap = self.rate_schedule.qfzp_income_cap
        minimum = self.rate_schedule.qfzp_min_qualifying_ratio

        return IncomeTestResult(
            passed=qualifying_pct >= minimum and profile.qualifying_income <= cap,
            qualifying_income=profile.qualifying_income,
            excluded_income=profile.excluded_income,
            percentage=quantize(qualifying_pct),
            minimum_percentage=minimum,
            income_cap=cap,
        )

    def activity_test(self, profile: QFZPProfile) -> ActivityTestResult:
        qualifying = tuple(a for a in profile.activities if a.lower() in QUALIFYING_ACTIVITIES)
        excluded = tuple(a for a in profile.activities if a.lower() in EXCLUDED_ACTIVITIES)

        return ActivityTestResult(
            passed=bool(qualifying) and not excluded,
            declared_activities=profile.activities,
            qualifying_matches=qualifying,
            excluded_matches=excluded,
        )

    def management_test(self, profile: QFZPProfile) -> ManagementTestResult:
        return ManagementTestResult(
            passed=profile.has_adequate_substance and profile.controlled_in_uae,
            adequate_substance=profile.has_adequate_substance,
            controlled_in_uae=profile.controlled_in_uae,
        )

    def ownership_test(self, profile: QFZPProfile) -> OwnershipTestResult:
        minimum = self.rate_schedule.qfzp_min_natural_person_ownership
        return OwnershipTestResult(
            passed=profile.natural_person_ownership >= minimum,
            natural_person_ownership=profile.natural_person_ownership,
            minimum_required=minimum,
        )

    def assess(self, profile: QFZPProfile) -> EligibilityAssessment:
        income = self.income_test(profile)
        activity = self.activity_test(profile)
        management = self.management_test(profile)
        ownership = self.ownership_test(profile)

        passed_count = sum(1 for t in (income, activity, management, ownership) if t.passed)
        score = Decimal(passed_count) / Decimal(4) * HUNDRED

        assessment = EligibilityAssessment(
            income_test=income,
            activity_test=activity,
            management_test=management,
            ownership_test=ownership,
            score=score,
            is_eligible=passed_count == 4,
            rate_schedule_version=self.rate_schedule.version,
            recommendations=self._recommendations(income, activity, management, ownership),
        )

        logger.info(
            "qfzp_eligibility_assessed",
            is_eligible=assessment.is_eligible,
            score=str(score),
            failed_tests=[name for name, passed in assessment.tests.items() if not passed],
        )
        return assessment

    def _recommendations(
        self,
        income: IncomeTestResult,
        activity: ActivityTestResult,
        management: ManagementTestResult,
        ownership: OwnershipTestResult,
    ) -> tuple[str, ...]:
        recommendations = []

        if not income.passed:
            if income.percentage < income.minimum_percentage:
                recommendations.append(INCOME_RATIO_RECOMMENDATION)
            if income.qualifying_income > income.income_cap:
                recommendations.append(INCOME_CAP_RECOMMENDATION)
        if not activity.passed:
            recommendations.extend(FAILED_TEST_RECOMMENDATIONS["activity"])
        if not management.passed:
            recommendations.extend(FAILED_TEST_RECOMMENDATIONS["management"])
        if not ownership.passed:
            recommendations.extend(FAILED_TEST_RECOMMENDATIONS["ownership"])

        recommendations.extend(STANDING_RECOMMENDATIONS)
        return tuple(recommendations)
