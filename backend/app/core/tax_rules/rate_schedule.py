"""
UAE Tax Rate Schedule
Based on Federal Decree-Law No. 47 of 2022 (Corporate Tax) and
Federal Decree-Law No. 8 of 2017 (VAT)

Every rate and threshold the engine reads comes from one versioned
RateSchedule, so an audit trail can cite the exact schedule it was built on.

Key constants (UAE-2023.1):
  - CIT standard rate: 9% on taxable income above AED 375,000
  - Small Business Relief: taxable income up to AED 3,000,000
  - QFZP: 0% on qualifying income; eligibility income cap AED 375,000
  - VAT: 5%, mandatory registration above AED 375,000
  - CIT return due 9 months after financial year end
"""

from dataclasses import dataclass, fields, asdict
from datetime import date
from decimal import Decimal

import structlog

from app.core.tax_rules.errors import ConfigurationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateSchedule:
    version: str
    effective_from: date
    legislation: str

    # Corporate Income Tax
    cit_standard_rate: Decimal
    cit_zero_rate_band: Decimal
    small_business_relief_threshold: Decimal
    qfzp_rate: Decimal

    # QFZP eligibility tests
    qfzp_income_cap: Decimal
    qfzp_min_qualifying_ratio: Decimal
    qfzp_min_natural_person_ownership: Decimal

    # VAT
    vat_standard_rate: Decimal
    vat_registration_threshold: Decimal
    vat_voluntary_threshold: Decimal
    vat_filing_deadline_days: int

    # Threshold monitoring
    audit_threshold: Decimal
    audit_alert_ratio: Decimal
    vat_alert_ratio: Decimal
    accrual_basis_threshold: Decimal
    accrual_alert_floor: Decimal

    # Filing
    filing_deadline_months: int
    installments_per_year: int
    installment_due_day: int
    transfer_pricing_threshold: Decimal
    record_retention_years: int

    @classmethod
    def required_constants(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_mapping(cls, data: dict) -> "RateSchedule":
        """
        Build a schedule from plain configuration data.
        A missing constant is fatal: there are no defaults.
        """
        missing = [name for name in cls.required_constants() if data.get(name) is None]
        if missing:
            raise ConfigurationError(
                f"Rate schedule {data.get('version', '<unversioned>')} is missing: {', '.join(missing)}"
            )

        values = {}
        for f in fields(cls):
            raw = data[f.name]
            try:
                if f.type is Decimal:
                    values[f.name] = Decimal(str(raw))
                elif f.type is int:
                    values[f.name] = int(raw)
                elif f.type is date:
                    values[f.name] = raw if isinstance(raw, date) else date.fromisoformat(str(raw))
                else:
                    values[f.name] = str(raw)
            except (ValueError, ArithmeticError) as e:
                raise ConfigurationError(f"Rate schedule constant {f.name} is invalid: {raw!r}") from e

        return cls(**values)

    def to_dict(self) -> dict:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, (Decimal, date)):
                data[key] = str(value)
        return data


UAE_2023_1 = RateSchedule(
    version="UAE-2023.1",
    effective_from=date(2023, 6, 1),
    legislation="Federal Decree-Law No. 47 of 2022; Federal Decree-Law No. 8 of 2017",
    cit_standard_rate=Decimal("0.09"),
    cit_zero_rate_band=Decimal("375000"),
    small_business_relief_threshold=Decimal("3000000"),
    qfzp_rate=Decimal("0"),
    qfzp_income_cap=Decimal("375000"),
    qfzp_min_qualifying_ratio=Decimal("90"),
    qfzp_min_natural_person_ownership=Decimal("50"),
    vat_standard_rate=Decimal("0.05"),
    vat_registration_threshold=Decimal("375000"),
    vat_voluntary_threshold=Decimal("187500"),
    vat_filing_deadline_days=28,
    audit_threshold=Decimal("50000000"),
    audit_alert_ratio=Decimal("0.7"),
    vat_alert_ratio=Decimal("0.8"),
    accrual_basis_threshold=Decimal("3000000"),
    accrual_alert_floor=Decimal("2500000"),
    filing_deadline_months=9,
    installments_per_year=4,
    installment_due_day=15,
    transfer_pricing_threshold=Decimal("1000000"),
    record_retention_years=7,
)

DEFAULT_RATE_SCHEDULE_VERSION = UAE_2023_1.version

_RATE_SCHEDULES: dict[str, RateSchedule] = {UAE_2023_1.version: UAE_2023_1}


def register_rate_schedule(schedule: RateSchedule) -> RateSchedule:
    """
    Add a schedule version. An existing version can never be redefined,
    otherwise results already audited against it would stop being reproducible.
    """
    existing = _RATE_SCHEDULES.get(schedule.version)
    if existing is not None:
        if existing != schedule:
            raise ConfigurationError(
                f"Rate schedule {schedule.version} is already registered with different values"
            )
        return existing

    _RATE_SCHEDULES[schedule.version] = schedule
    logger.info("rate_schedule_registered", version=schedule.version, effective_from=str(schedule.effective_from))
    return schedule


def get_rate_schedule(version: str | None = None) -> RateSchedule:
    if version is None:
        version = DEFAULT_RATE_SCHEDULE_VERSION
    schedule = _RATE_SCHEDULES.get(version)
    if schedule is None:
        raise ConfigurationError(f"Unknown rate schedule version: {version}")
    return schedule


def available_versions() -> list[str]:
    return sorted(_RATE_SCHEDULES)
