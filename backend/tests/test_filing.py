"""
Tests for the CIT Filing Schedule Generator.

- Return due 9 months after 31 December (30 September of the following year)
- Four installments on the 15th of March, June, September and December
"""

from datetime import date
from decimal import Decimal

import pytest
from app.core.tax_rules.errors import InputValidationError
from app.core.tax_rules.filing import (
    REQUIRED_DOCUMENTS,
    DeadlineType,
    FilingScheduleGenerator,
    InstallmentStatus,
    add_months_end_of_month,
)


@pytest.fixture
def generator():
    return FilingScheduleGenerator()


class TestDeadline:
    def test_filing_deadline_is_end_of_september(self, generator):
        assert generator.filing_deadline(2024) == date(2025, 9, 30)

    def test_month_arithmetic_clamps_to_month_end(self):
        assert add_months_end_of_month(2024, 12, 2) == date(2025, 2, 28)
        assert add_months_end_of_month(2023, 12, 2) == date(2024, 2, 29)
        assert add_months_end_of_month(2025, 3, 0) == date(2025, 3, 31)


class TestInstallmentSchedule:
    def test_four_quarterly_installments(self, generator):
        requirements = generator.schedule(2024, Decimal("2250.00"))
        schedule = requirements.installment_schedule
        assert [e.quarter for e in schedule] == ["Q1 2025", "Q2 2025", "Q3 2025", "Q4 2025"]
        assert [e.due_date for e in schedule] == [
            date(2025, 3, 15),
            date(2025, 6, 15),
            date(2025, 9, 15),
            date(2025, 12, 15),
        ]
        assert all(e.estimated_amount == Decimal("562.50") for e in schedule)

    def test_rounding_absorbed_by_last_installment(self, generator):
        requirements = generator.schedule(2024, Decimal("1000.01"))
        amounts = [e.estimated_amount for e in requirements.installment_schedule]
        assert amounts == [Decimal("250.00"), Decimal("250.00"), Decimal("250.00"), Decimal("250.01")]
        assert requirements.total_installments == Decimal("1000.01")

    def test_no_liability_no_schedule(self, generator):
        requirements = generator.schedule(2024, 0)
        assert requirements.installment_schedule == ()
        assert requirements.filing_required is False

    def test_filing_required_follows_taxable_income(self, generator):
        assert generator.schedule(2024, 0, taxable_income=400_000).filing_required is True
        assert generator.schedule(2024, 0, taxable_income=375_000).filing_required is False

    def test_required_documents(self, generator):
        assert generator.schedule(2024, 100).required_documents == REQUIRED_DOCUMENTS
        assert "Audited Financial Statements" in REQUIRED_DOCUMENTS

    def test_negative_liability_raises(self, generator):
        with pytest.raises(InputValidationError):
            generator.schedule(2024, -1)

    def test_invalid_year_raises(self, generator):
        with pytest.raises(InputValidationError):
            generator.schedule(0, 100)


class TestInstallmentStatus:
    def test_status_is_derived_from_date_and_payments(self, generator):
        q1, q2 = generator.schedule(2024, Decimal("2250.00")).installment_schedule[:2]
        as_of = date(2025, 4, 1)
        assert q1.status_on(as_of) == InstallmentStatus.OVERDUE
        assert q2.status_on(as_of) == InstallmentStatus.PENDING
        assert q1.status_on(as_of, Decimal("562.50")) == InstallmentStatus.PAID
        assert q2.status_on(as_of, Decimal("562.50")) == InstallmentStatus.PENDING
        assert q2.status_on(as_of, 1125) == InstallmentStatus.PAID

    def test_due_today_is_pending(self, generator):
        q1 = generator.schedule(2024, 400).installment_schedule[0]
        assert q1.status_on(date(2025, 3, 15)) == InstallmentStatus.PENDING

    def test_next_installment_due(self, generator):
        requirements = generator.schedule(2024, 400)
        assert generator.next_installment_due(requirements, date(2025, 1, 1)) == date(2025, 3, 15)
        assert generator.next_installment_due(requirements, date(2025, 3, 15)) == date(2025, 6, 15)
        assert generator.next_installment_due(requirements, date(2026, 1, 1)) is None


class TestDeadlineAlerts:
    def test_overdue_and_approaching(self, generator):
        requirements = generator.schedule(2024, Decimal("2250.00"), taxable_income=400_000)
        alerts = generator.deadline_alerts(requirements, date(2025, 9, 10))
        assert [a.due_date for a in alerts] == [
            date(2025, 3, 15),
            date(2025, 6, 15),
            date(2025, 9, 15),
            date(2025, 9, 30),
        ]
        assert alerts[0].is_overdue is True
        assert alerts[2].days_remaining == 5
        assert alerts[3].deadline_type == DeadlineType.CIT_RETURN
        assert alerts[3].description == "CIT return for 2024 due in 20 days"

    def test_paid_installments_do_not_alert(self, generator):
        requirements = generator.schedule(2024, Decimal("2250.00"), taxable_income=400_000)
        alerts = generator.deadline_alerts(requirements, date(2025, 9, 10), paid_to_date=Decimal("1125.00"))
        assert [a.deadline_type for a in alerts] == [DeadlineType.INSTALLMENT, DeadlineType.CIT_RETURN]

    def test_no_alerts_far_from_deadlines(self, generator):
        requirements = generator.schedule(2024, Decimal("2250.00"), taxable_income=400_000)
        assert generator.deadline_alerts(requirements, date(2025, 1, 2)) == ()
