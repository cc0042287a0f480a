"""
Tests for the Qualifying Free Zone Person (QFZP) Eligibility Assessor.

Four tests: income (≥ 90% qualifying, ≤ AED 375,000 cap), activity,
management (substance + UAE control) and ownership (≥ 50% natural persons).
"""

from decimal import Decimal

import pytest
from app.core.tax_rules.eligibility import (
    INCOME_CAP_RECOMMENDATION,
    INCOME_RATIO_RECOMMENDATION,
    STANDING_RECOMMENDATIONS,
    EligibilityAssessor,
    QFZPProfile,
)
from app.core.tax_rules.errors import InputValidationError


@pytest.fixture
def assessor():
    return EligibilityAssessor()


def make_profile(**overrides):
    values = dict(
        qualifying_income=200_000,
        excluded_income=10_000,
        activities=("trading",),
        has_adequate_substance=True,
        controlled_in_uae=True,
        natural_person_ownership=60,
    )
    values.update(overrides)
    return QFZPProfile(**values)


class TestIncomeTest:
    def test_passes_above_ratio_within_cap(self, assessor):
        result = assessor.income_test(make_profile())
        assert result.passed is True
        assert result.percentage == Decimal("95.24")

    def test_exact_ratio_passes(self, assessor):
        result = assessor.income_test(make_profile(qualifying_income=90_000, excluded_income=10_000))
        assert result.passed is True

    def test_just_below_ratio_fails_even_when_display_rounds_up(self, assessor):
        result = assessor.income_test(make_profile(qualifying_income=89_999, excluded_income=10_001))
        assert result.percentage == Decimal("90.00")
        assert result.passed is False

    def test_income_above_cap_fails(self, assessor):
        result = assessor.income_test(make_profile(qualifying_income=500_000, excluded_income=0))
        assert result.passed is False
        assert result.income_cap == Decimal("375000")

    def test_no_income_fails(self, assessor):
        result = assessor.income_test(make_profile(qualifying_income=0, excluded_income=0))
        assert result.passed is False
        assert result.percentage == 0


class TestActivityTest:
    def test_qualifying_activity_passes(self, assessor):
        assert assessor.activity_test(make_profile(activities=("logistics",))).passed is True

    def test_case_insensitive(self, assessor):
        assert assessor.activity_test(make_profile(activities=("Trading",))).passed is True

    def test_excluded_activity_fails(self, assessor):
        result = assessor.activity_test(make_profile(activities=("trading", "banking")))
        assert result.passed is False
        assert result.excluded_matches == ("banking",)

    def test_no_declared_activity_fails(self, assessor):
        assert assessor.activity_test(make_profile(activities=())).passed is False


class TestManagementAndOwnership:
    def test_substance_without_control_fails(self, assessor):
        assert assessor.management_test(make_profile(controlled_in_uae=False)).passed is False

    def test_ownership_boundary_passes(self, assessor):
        assert assessor.ownership_test(make_profile(natural_person_ownership=50)).passed is True

    def test_ownership_below_minimum_fails(self, assessor):
        assert assessor.ownership_test(make_profile(natural_person_ownership="49.99")).passed is False


class TestAssessment:
    def test_banking_scenario_scores_75(self, assessor):
        assessment = assessor.assess(make_profile(activities=("trading", "banking")))
        assert assessment.is_eligible is False
        assert assessment.score == 75
        assert assessment.passed_count == 3
        assert assessment.tests == {"income": True, "activity": False, "management": True, "ownership": True}

    def test_all_tests_pass(self, assessor):
        assessment = assessor.assess(make_profile())
        assert assessment.is_eligible is True
        assert assessment.score == 100
        assert assessment.recommendations == STANDING_RECOMMENDATIONS

    def test_recommendations_follow_failures(self, assessor):
        assessment = assessor.assess(make_profile(
            qualifying_income=500_000,
            excluded_income=100_000,
            natural_person_ownership=10,
        ))
        assert INCOME_RATIO_RECOMMENDATION in assessment.recommendations
        assert INCOME_CAP_RECOMMENDATION in assessment.recommendations
        assert "Increase natural person ownership to at least 50%" in assessment.recommendations
        assert assessment.recommendations[-3:] == STANDING_RECOMMENDATIONS

    def test_assessment_is_deterministic(self, assessor):
        profile = make_profile(activities=("banking",))
        assert assessor.assess(profile) == assessor.assess(profile)

    def test_schedule_version_recorded(self, assessor):
        assert assessor.assess(make_profile()).rate_schedule_version == "UAE-2023.1"


class TestProfileValidation:
    def test_negative_income_raises(self):
        with pytest.raises(InputValidationError):
            make_profile(excluded_income=-1)

    def test_ownership_above_100_raises(self):
        with pytest.raises(InputValidationError):
            make_profile(natural_person_ownership=120)

    def test_activities_become_tuple(self):
        assert make_profile(activities=["trading"]).activities == ("trading",)
