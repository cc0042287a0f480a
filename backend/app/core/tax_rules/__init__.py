from app.core.tax_rules.cit import CITCalculator, CalculationInput
from app.core.tax_rules.eligibility import EligibilityAssessor, QFZPProfile
from app.core.tax_rules.filing import FilingScheduleGenerator
from app.core.tax_rules.rate_schedule import RateSchedule, get_rate_schedule
from app.core.tax_rules.thresholds import ThresholdMonitor
from app.core.tax_rules.vat import VATCalculator

__all__ = [
    "CITCalculator",
    "CalculationInput",
    "EligibilityAssessor",
    "QFZPProfile",
    "FilingScheduleGenerator",
    "RateSchedule",
    "get_rate_schedule",
    "ThresholdMonitor",
    "VATCalculator",
]
