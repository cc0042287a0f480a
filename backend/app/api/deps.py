"""
Shared API dependencies.
Provides the tax engine and report generator bound to the configured rate schedule.
"""

from functools import lru_cache

from fastapi import Depends

from app.config import Settings, get_settings
from app.core.engine import TaxComplianceEngine
from app.core.reports import ComplianceReportGenerator
from app.core.tax_rules.rate_schedule import get_rate_schedule


@lru_cache()
def _engine_for(version: str) -> TaxComplianceEngine:
    return TaxComplianceEngine(get_rate_schedule(version))


def get_engine(settings: Settings = Depends(get_settings)) -> TaxComplianceEngine:
    """
    Engine for the configured rate schedule version.
    Use as a FastAPI dependency: Depends(get_engine)
    """
    return _engine_for(settings.RATE_SCHEDULE_VERSION)


def get_report_generator(engine: TaxComplianceEngine = Depends(get_engine)) -> ComplianceReportGenerator:
    return ComplianceReportGenerator(engine.rate_schedule)
