"""
Tests for the Tax Compliance Engine: end-to-end scenarios, result
invariants and property-based checks over generated inputs.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from app.core.engine import TaxComplianceEngine
from app.core.tax_rules.cit import (
    ADD_BACK_ITEMS,
    AddBacks,
    CalculationInput,
    Deductions,
    FreeZoneInfo,
    Installments,
    SmallBusinessReliefInfo,
)
from app.core.tax_rules.eligibility import QFZPProfile
from app.core.tax_rules.errors import ArithmeticInvariantError, InputValidationError, TaxEngineError

AS_OF = date(2025, 1, 10)


@pytest.fixture
def engine():
    return TaxComplianceEngine()


def make_input(accounting_income, **kwargs):
    return CalculationInput(entity_id="ENT-001", tax_year=2024, accounting_income=accounting_income, **kwargs)


money = st.decimals(min_value=Decimal("0"), max_value=Decimal("5000000"), places=2)
signed_money = st.decimals(min_value=Decimal("-5000000"), max_value=Decimal("10000000"), places=2)


@st.composite
def calculation_inputs(draw):
    return CalculationInput(
        entity_id="ENT-PROP",
        tax_year=draw(st.integers(min_value=2023, max_value=2030)),
        accounting_income=draw(signed_money),
        add_backs=AddBacks(**{item.key: draw(money) for item in ADD_BACK_ITEMS}),
        deductions=Deductions(carry_forward_losses=draw(money), capital_allowances=draw(money)),
        free_zone=FreeZoneInfo(is_free_zone=draw(st.booleans()), qualifies_for_qfzp=draw(st.booleans())),
        small_business_relief=SmallBusinessReliefInfo(
            qualifies_for_relief=draw(st.booleans()),
            relief_amount=draw(money),
        ),
        installments=Installments(q1_paid=draw(money), q2_paid=draw(money)),
        withholding_credits=draw(money),
    )


class TestScenarios:
    def test_standard_rate_scenario(self, engine):
        result = engine.calculate(make_input(400_000), as_of=AS_OF)
        assert result.summary.net_tax_due == Decimal("2250.00")
        assert result.filing_requirements.filing_deadline == date(2025, 9, 30)
        assert len(result.filing_requirements.installment_schedule) == 4
        assert result.compliance.next_installment_due == date(2025, 3, 15)

    def test_below_threshold_scenario(self, engine):
        result = engine.calculate(make_input(250_000), as_of=AS_OF)
        assert result.summary.net_tax_due == 0
        assert result.filing_requirements.installment_schedule == ()
        assert result.compliance.next_installment_due is None

    def test_qfzp_scenario(self, engine):
        free_zone = FreeZoneInfo(is_free_zone=True, qualifying_income=2_000_000, qualifies_for_qfzp=True)
        result = engine.calculate(
            make_input(2_000_000, add_backs=AddBacks(penalties_fines=50_000), free_zone=free_zone),
            as_of=AS_OF,
        )
        assert result.summary.net_tax_due == 0

    def test_eligibility_and_thresholds_attached(self, engine):
        profile = QFZPProfile(qualifying_income=200_000, excluded_income=10_000, activities=("banking",))
        result = engine.calculate(
            make_input(400_000),
            as_of=AS_OF,
            qfzp_profile=profile,
            current_revenue=320_000,
            elapsed_months=12,
        )
        assert result.eligibility.is_eligible is False
        assert result.thresholds.alerts[0].message == "Approaching VAT registration threshold"
        assert "Approaching VAT registration threshold" in result.compliance.requirements

    def test_oversized_amount_raises_engine_error(self, engine):
        with pytest.raises(TaxEngineError):
            engine.calculate(make_input(Decimal("1e27")), as_of=AS_OF)

    def test_as_of_must_be_a_date(self, engine):
        with pytest.raises(InputValidationError):
            engine.calculate(make_input(400_000), as_of="2025-01-10")


class TestResultRendering:
    def test_to_dict_renders_decimals_as_strings(self, engine):
        data = engine.calculate(make_input(400_000), as_of=AS_OF).to_dict()
        assert data["summary"]["net_tax_due"] == "2250.00"
        assert data["rate_basis"] == "STANDARD"
        assert data["filing_requirements"]["filing_deadline"] == "2025-09-30"
        assert len(data["audit_trail"]) == 9
        assert "status" not in data["filing_requirements"]["installment_schedule"][0]

    def test_to_dict_derives_installment_status(self, engine):
        result = engine.calculate(make_input(400_000), as_of=AS_OF)
        data = result.to_dict(as_of=date(2025, 7, 1), paid_to_date=Decimal("562.50"))
        statuses = [entry["status"] for entry in data["filing_requirements"]["installment_schedule"]]
        assert statuses == ["PAID", "OVERDUE", "PENDING", "PENDING"]

    def test_fingerprint_is_stable(self, engine):
        first = engine.calculate(make_input(400_000), as_of=AS_OF)
        second = engine.calculate(make_input(400_000), as_of=AS_OF)
        assert first == second
        assert first.fingerprint == second.fingerprint
        assert len(first.fingerprint) == 64

    def test_fingerprint_changes_with_input(self, engine):
        first = engine.calculate(make_input(400_000), as_of=AS_OF)
        second = engine.calculate(make_input(400_001), as_of=AS_OF)
        assert first.fingerprint != second.fingerprint


class TestInvariantChecks:
    def test_tampered_result_is_rejected(self, engine):
        result = engine.calculate(make_input(400_000), as_of=AS_OF)
        tampered = replace(result, summary=replace(result.summary, refund_due=Decimal("1.00")))
        with pytest.raises(ArithmeticInvariantError) as exc:
            engine.verify(tampered)
        assert exc.value.invariant == "net_tax_due_and_refund_exclusive"

    def test_truncated_audit_trail_is_rejected(self, engine):
        result = engine.calculate(make_input(400_000), as_of=AS_OF)
        with pytest.raises(ArithmeticInvariantError):
            engine.verify(replace(result, audit_trail=result.audit_trail[:-1]))

    def test_unreconciled_liability_is_rejected(self, engine):
        result = engine.calculate(make_input(400_000), as_of=AS_OF)
        with pytest.raises(ArithmeticInvariantError):
            engine.verify(replace(result, summary=replace(result.summary, relief_applied=Decimal("10.00"))))


class TestProperties:
    @settings(max_examples=75, deadline=None)
    @given(calc_input=calculation_inputs())
    def test_due_and_refund_are_exclusive(self, calc_input):
        result = TaxComplianceEngine().calculate(calc_input, as_of=AS_OF)
        assert result.summary.net_tax_due * result.summary.refund_due == 0
        assert result.summary.taxable_income >= 0

    @settings(max_examples=75, deadline=None)
    @given(calc_input=calculation_inputs())
    def test_qfzp_always_zero_rate(self, calc_input):
        calc_input = replace(calc_input, free_zone=FreeZoneInfo(is_free_zone=True, qualifies_for_qfzp=True))
        result = TaxComplianceEngine().calculate(calc_input, as_of=AS_OF)
        assert result.summary.applicable_rate == 0
        assert result.summary.gross_liability == 0

    @settings(max_examples=75, deadline=None)
    @given(
        calc_input=calculation_inputs(),
        item=st.sampled_from(ADD_BACK_ITEMS),
        increase=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1000000"), places=2),
    )
    def test_add_backs_never_reduce_tax_due(self, calc_input, item, increase):
        engine = TaxComplianceEngine()
        bigger = replace(
            calc_input,
            add_backs=replace(calc_input.add_backs, **{item.key: getattr(calc_input.add_backs, item.key) + increase}),
        )
        before = engine.calculate(calc_input, as_of=AS_OF)
        after = engine.calculate(bigger, as_of=AS_OF)
        assert after.summary.net_tax_due >= before.summary.net_tax_due

    @settings(max_examples=50, deadline=None)
    @given(calc_input=calculation_inputs())
    def test_identical_inputs_give_identical_results(self, calc_input):
        first = TaxComplianceEngine().calculate(calc_input, as_of=AS_OF)
        second = TaxComplianceEngine().calculate(calc_input, as_of=AS_OF)
        assert first.to_dict(as_of=AS_OF) == second.to_dict(as_of=AS_OF)

    @settings(max_examples=50, deadline=None)
    @given(calc_input=calculation_inputs())
    def test_audit_trail_always_has_nine_steps(self, calc_input):
        result = TaxComplianceEngine().calculate(calc_input, as_of=AS_OF)
        assert [e.step for e in result.audit_trail] == list(range(1, 10))
