"""
CIT Filing Schedule Generator
Based on Federal Decree-Law No. 47 of 2022, Articles 53 and 71-74

- CIT return due 9 months after the end of the financial year (31 December)
- Where a liability exists, four quarterly installments fall due in the
  following year on the 15th of March, June, September and December
- Installment status is never stored; it is derived for a given date
"""

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

import structlog

from app.core.tax_rules.errors import InputValidationError
from app.core.tax_rules.money import ZERO, quantize, to_decimal
from app.core.tax_rules.rate_schedule import RateSchedule, get_rate_schedule

logger = structlog.get_logger(__name__)

FINANCIAL_YEAR_END_MONTH = 12
DEADLINE_ALERT_WINDOW_DAYS = 30

REQUIRED_DOCUMENTS = (
    "Audited Financial Statements",
    "Tax Computation Schedule",
    "Transfer Pricing Documentation (if applicable)",
    "Supporting Schedules and Details",
)


class InstallmentStatus(str, Enum):
    PAID = "PAID"
    PENDING = "PENDING"
    OVERDUE = "OVERDUE"


@dataclass(frozen=True)
class InstallmentScheduleEntry:
    quarter: str
    due_date: date
    estimated_amount: Decimal
    cumulative_amount: Decimal

    def status_on(self, as_of: date, paid_to_date=ZERO) -> InstallmentStatus:
        """PAID once cumulative payments cover every installment up to and including this one."""
        if to_decimal(paid_to_date, "paid_to_date") >= self.cumulative_amount:
            return InstallmentStatus.PAID
        if self.due_date < as_of:
            return InstallmentStatus.OVERDUE
        return InstallmentStatus.PENDING


@dataclass(frozen=True)
class FilingRequirements:
    tax_year: int
    filing_required: bool
    filing_deadline: date
    required_documents: tuple[str, ...] = REQUIRED_DOCUMENTS
    installment_schedule: tuple[InstallmentScheduleEntry, ...] = field(default_factory=tuple)

    @property
    def total_installments(self) -> Decimal:
        return sum((entry.estimated_amount for entry in self.installment_schedule), ZERO)


class DeadlineType(str, Enum):
    CIT_RETURN = "CIT_RETURN"
    INSTALLMENT = "INSTALLMENT"


@dataclass(frozen=True)
class DeadlineAlert:
    deadline_type: DeadlineType
    description: str
    due_date: date
    days_remaining: int

    @property
    def is_overdue(self) -> bool:
        return self.days_remaining < 0


def add_months_end_of_month(year: int, month: int, months: int) -> date:
    """Last day of the month `months` after (year, month)."""
    index = year * 12 + (month - 1) + months
    target_year, target_month = divmod(index, 12)
    target_month += 1
    return date(target_year, target_month, calendar.monthrange(target_year, target_month)[1])


class FilingScheduleGenerator:
    def __init__(self, rate_schedule: RateSchedule | None = None):
        self.rate_schedule = rate_schedule or get_rate_schedule()

    def filing_deadline(self, tax_year: int) -> date:
        return add_months_end_of_month(tax_year, FINANCIAL_YEAR_END_MONTH, self.rate_schedule.filing_deadline_months)

    def schedule(self, tax_year: int, net_liability, taxable_income=None) -> FilingRequirements:
        if isinstance(tax_year, bool) or not isinstance(tax_year, int) or tax_year <= 0:
            raise InputValidationError("tax_year", "must be a positive year")
        liability = to_decimal(net_liability, "net_liability")
        if liability < 0:
            raise InputValidationError("net_liability", "cannot be negative")

        if taxable_income is None:
            filing_required = liability > 0
        else:
            filing_required = to_decimal(taxable_income, "taxable_income") > self.rate_schedule.cit_zero_rate_band

        requirements = FilingRequirements(
            tax_year=tax_year,
            filing_required=filing_required,
            filing_deadline=self.filing_deadline(tax_year),
            installment_schedule=self._installments(tax_year, liability),
        )

        logger.debug(
            "filing_schedule_generated",
            tax_year=tax_year,
            filing_deadline=requirements.filing_deadline.isoformat(),
            installments=len(requirements.installment_schedule),
        )
        return requirements

    def _installments(self, tax_year: int, liability: Decimal) -> tuple[InstallmentScheduleEntry, ...]:
        if liability <= 0:
            return ()

        count = self.rate_schedule.installments_per_year
        months_apart = 12 // count
        next_year = tax_year + 1
        per_quarter = quantize(liability / count)

        entries = []
        cumulative = ZERO
        for q in range(1, count + 1):
            # The final installment absorbs rounding so the schedule sums to the liability
            amount = per_quarter if q < count else liability - per_quarter * (count - 1)
            cumulative += amount
            entries.append(
                InstallmentScheduleEntry(
                    quarter=f"Q{q} {next_year}",
                    due_date=date(next_year, q * months_apart, self.rate_schedule.installment_due_day),
                    estimated_amount=amount,
                    cumulative_amount=cumulative,
                )
            )
        return tuple(entries)

    @staticmethod
    def next_installment_due(requirements: FilingRequirements, as_of: date) -> date | None:
        for entry in requirements.installment_schedule:
            if entry.due_date > as_of:
                return entry.due_date
        return None

    def deadline_alerts(
        self, requirements: FilingRequirements, as_of: date, paid_to_date=ZERO
    ) -> tuple[DeadlineAlert, ...]:
        alerts = []

        if requirements.filing_required:
            days = (requirements.filing_deadline - as_of).days
            if days <= DEADLINE_ALERT_WINDOW_DAYS:
                alerts.append(
                    DeadlineAlert(
                        deadline_type=DeadlineType.CIT_RETURN,
                        description=f"CIT return for {requirements.tax_year} "
                        + ("is overdue" if days < 0 else f"due in {days} days"),
                        due_date=requirements.filing_deadline,
                        days_remaining=days,
                    )
                )

        for entry in requirements.installment_schedule:
            if entry.status_on(as_of, paid_to_date) == InstallmentStatus.PAID:
                continue
            days = (entry.due_date - as_of).days
            if days <= DEADLINE_ALERT_WINDOW_DAYS:
                alerts.append(
                    DeadlineAlert(
                        deadline_type=DeadlineType.INSTALLMENT,
                        description=f"{entry.quarter} installment " + ("is overdue" if days < 0 else f"due in {days} days"),
                        due_date=entry.due_date,
                        days_remaining=days,
                    )
                )

        return tuple(sorted(alerts, key=lambda a: a.due_date))
