"""
Revenue Threshold Monitor
Projects annual revenue and flags the regulatory thresholds a business is approaching.

Alerts (independent, may fire together):
  - VAT registration: revenue within 80%-100% of the AED 375,000 registration threshold
  - Audit requirement: projected annual revenue above 70% of the AED 50M audit threshold
  - Accounting basis change: revenue between AED 2.5M and AED 3M (cash to accrual)
"""

import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

import structlog

from app.core.tax_rules.errors import InputValidationError
from app.core.tax_rules.money import HUNDRED, quantize, to_decimal
from app.core.tax_rules.rate_schedule import RateSchedule, get_rate_schedule

logger = structlog.get_logger(__name__)

DAYS_PER_MONTH = 30
MONTHS_PER_YEAR = 12


class ThresholdAlertType(str, Enum):
    VAT_REGISTRATION = "VAT_REGISTRATION"
    AUDIT_REQUIREMENT = "AUDIT_REQUIREMENT"
    ACCOUNTING_BASIS_CHANGE = "ACCOUNTING_BASIS_CHANGE"


@dataclass(frozen=True)
class ThresholdAlert:
    alert_type: ThresholdAlertType
    message: str
    days_to_threshold: int
    action_required: bool


@dataclass(frozen=True)
class ThresholdSnapshot:
    current_revenue: Decimal
    elapsed_months: int
    projected_annual_revenue: Decimal
    vat_threshold: Decimal
    vat_threshold_progress: Decimal
    cit_threshold: Decimal
    cit_threshold_progress: Decimal
    audit_threshold: Decimal
    audit_threshold_progress: Decimal
    rate_schedule_version: str
    alerts: tuple[ThresholdAlert, ...] = field(default_factory=tuple)

    @property
    def action_required(self) -> bool:
        return any(alert.action_required for alert in self.alerts)


class ThresholdMonitor:
    def __init__(self, rate_schedule: RateSchedule | None = None):
        self.rate_schedule = rate_schedule or get_rate_schedule()

    def project(self, current_revenue, elapsed_months: int = MONTHS_PER_YEAR) -> ThresholdSnapshot:
        revenue = to_decimal(current_revenue, "current_revenue")
        if revenue < 0:
            raise InputValidationError("current_revenue", "cannot be negative")

        months = max(int(elapsed_months), 1)
        projected = revenue * Decimal(MONTHS_PER_YEAR) / Decimal(months)
        schedule = self.rate_schedule

        alerts = [
            alert
            for alert in (
                self._vat_registration_alert(revenue, months),
                self._audit_alert(projected, months),
                self._accounting_basis_alert(revenue, months),
            )
            if alert is not None
        ]

        snapshot = ThresholdSnapshot(
            current_revenue=revenue,
            elapsed_months=months,
            projected_annual_revenue=quantize(projected),
            vat_threshold=schedule.vat_registration_threshold,
            vat_threshold_progress=self._progress(revenue, schedule.vat_registration_threshold),
            cit_threshold=schedule.cit_zero_rate_band,
            cit_threshold_progress=self._progress(revenue, schedule.cit_zero_rate_band),
            audit_threshold=schedule.audit_threshold,
            audit_threshold_progress=self._progress(revenue, schedule.audit_threshold),
            rate_schedule_version=schedule.version,
            alerts=tuple(alerts),
        )

        logger.info(
            "revenue_thresholds_projected",
            current_revenue=str(revenue),
            projected_annual_revenue=str(snapshot.projected_annual_revenue),
            alerts=[a.alert_type.value for a in alerts],
        )
        return snapshot

    @staticmethod
    def _progress(revenue: Decimal, threshold: Decimal) -> Decimal:
        return min(quantize(revenue / threshold * HUNDRED), HUNDRED)

    @staticmethod
    def _days_to_reach(threshold: Decimal, revenue: Decimal, months: int) -> int:
        average_daily = revenue / Decimal(months * DAYS_PER_MONTH)
        if average_daily <= 0:
            return 0
        return max(math.ceil((threshold - revenue) / average_daily), 0)

    def _vat_registration_alert(self, revenue: Decimal, months: int) -> ThresholdAlert | None:
        threshold = self.rate_schedule.vat_registration_threshold
        if not (threshold * self.rate_schedule.vat_alert_ratio <= revenue < threshold):
            return None
        return ThresholdAlert(
            alert_type=ThresholdAlertType.VAT_REGISTRATION,
            message="Approaching VAT registration threshold",
            days_to_threshold=self._days_to_reach(threshold, revenue, months),
            action_required=True,
        )

    def _audit_alert(self, projected: Decimal, months: int) -> ThresholdAlert | None:
        threshold = self.rate_schedule.audit_threshold
        if projected <= threshold * self.rate_schedule.audit_alert_ratio:
            return None
        return ThresholdAlert(
            alert_type=ThresholdAlertType.AUDIT_REQUIREMENT,
            message="May require financial statement audit next year",
            days_to_threshold=max((MONTHS_PER_YEAR - months) * DAYS_PER_MONTH, 0),
            action_required=False,
        )

    def _accounting_basis_alert(self, revenue: Decimal, months: int) -> ThresholdAlert | None:
        threshold = self.rate_schedule.accrual_basis_threshold
        if not (self.rate_schedule.accrual_alert_floor < revenue < threshold):
            return None
        return ThresholdAlert(
            alert_type=ThresholdAlertType.ACCOUNTING_BASIS_CHANGE,
            message=f"Will need to switch to accrual accounting at AED {threshold:,.0f}",
            days_to_threshold=self._days_to_reach(threshold, revenue, months),
            action_required=True,
        )
