"""
Tax calculation API routes.
Exposes the UAE tax compliance engine via REST endpoints.
"""

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_engine, get_report_generator
from app.core.engine import TaxComplianceEngine
from app.core.reports import ComplianceReportGenerator
from app.core.tax_rules.errors import ConfigurationError, InputValidationError
from app.core.tax_rules.rate_schedule import available_versions, get_rate_schedule
from app.core.tax_rules.serialization import to_jsonable
from app.schemas.schemas import (
    CITCalculateRequest,
    QFZPProfileSchema,
    QFZPReportRequest,
    ThresholdMonitorRequest,
    VATCalculateRequest,
    VATReturnRequest,
    VATSimpleRequest,
)

router = APIRouter()


def _invalid(e: InputValidationError) -> HTTPException:
    return HTTPException(status_code=422, detail=[{"field": e.field, "message": e.message}])


@router.post("/cit/calculate")
async def calculate_cit(data: CITCalculateRequest, engine: TaxComplianceEngine = Depends(get_engine)):
    """Calculate UAE Corporate Income Tax with a full audit trail."""
    try:
        result = engine.calculate(
            data.to_calculation_input(),
            as_of=data.as_of,
            qfzp_profile=data.qfzp_profile.to_profile() if data.qfzp_profile else None,
            current_revenue=data.current_revenue,
            elapsed_months=data.elapsed_months,
        )
        return result.to_dict(as_of=data.as_of)
    except InputValidationError as e:
        raise _invalid(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/vat/calculate")
async def calculate_vat(data: VATCalculateRequest, engine: TaxComplianceEngine = Depends(get_engine)):
    """Calculate output, input and net VAT for a period."""
    try:
        result = engine.vat_calculator.calculate_vat(
            sales=data.sales,
            purchases=data.purchases,
            exempt_sales=data.exempt_sales,
            exempt_purchases=data.exempt_purchases,
            rate=data.rate,
        )
        return to_jsonable(result)
    except InputValidationError as e:
        raise _invalid(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/vat/return")
async def calculate_vat_return(data: VATReturnRequest, engine: TaxComplianceEngine = Depends(get_engine)):
    """Calculate a quarterly VAT return from classified supplies and purchases."""
    try:
        result = engine.vat_calculator.calculate_return(
            output_supplies=[line.model_dump() for line in data.output_supplies],
            input_purchases=[line.model_dump() for line in data.input_purchases],
            adjustments=data.to_adjustments(),
            as_of=data.as_of,
        )
        return to_jsonable(result)
    except InputValidationError as e:
        raise _invalid(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/vat/simple")
async def calculate_vat_simple(data: VATSimpleRequest, engine: TaxComplianceEngine = Depends(get_engine)):
    """Calculate VAT at 5% on a single amount."""
    try:
        if data.is_inclusive:
            return to_jsonable(engine.vat_calculator.extract_vat_from_inclusive(data.amount))
        return to_jsonable(engine.vat_calculator.calculate_simple(data.amount))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/qfzp/assess")
async def assess_qfzp(data: QFZPProfileSchema, engine: TaxComplianceEngine = Depends(get_engine)):
    """Run the four Qualifying Free Zone Person tests."""
    try:
        assessment = engine.eligibility_assessor.assess(data.to_profile())
        return {**to_jsonable(assessment), "tests": assessment.tests}
    except InputValidationError as e:
        raise _invalid(e)


@router.post("/qfzp/report")
async def qfzp_report(
    data: QFZPReportRequest,
    generator: ComplianceReportGenerator = Depends(get_report_generator),
):
    """QFZP and free zone compliance reports for one entity."""
    try:
        profile = data.to_profile()
        return {
            "qfzp": to_jsonable(generator.qfzp_report(profile, data.as_of)),
            "free_zone": to_jsonable(generator.free_zone_report(profile, data.as_of)),
        }
    except InputValidationError as e:
        raise _invalid(e)


@router.post("/thresholds/monitor")
async def monitor_thresholds(data: ThresholdMonitorRequest, engine: TaxComplianceEngine = Depends(get_engine)):
    """Project annual revenue against VAT, CIT and audit thresholds."""
    try:
        snapshot = engine.threshold_monitor.project(data.current_revenue, data.elapsed_months)
        return {**to_jsonable(snapshot), "action_required": snapshot.action_required}
    except InputValidationError as e:
        raise _invalid(e)


@router.get("/filing/schedule")
async def filing_schedule(
    tax_year: int = Query(..., ge=2023, le=2100),
    net_liability: Decimal = Query(..., ge=0),
    taxable_income: Decimal | None = Query(default=None, ge=0),
    as_of: date | None = None,
    paid_to_date: Decimal = Query(default=Decimal("0"), ge=0),
    engine: TaxComplianceEngine = Depends(get_engine),
):
    """CIT filing deadline, installment schedule and, given a date, deadline alerts."""
    try:
        generator = engine.filing_generator
        requirements = generator.schedule(tax_year, net_liability, taxable_income=taxable_income)
        data = to_jsonable(requirements)
        if as_of is not None:
            for rendered, entry in zip(data["installment_schedule"], requirements.installment_schedule):
                rendered["status"] = entry.status_on(as_of, paid_to_date).value
            data["next_installment_due"] = to_jsonable(generator.next_installment_due(requirements, as_of))
            data["alerts"] = to_jsonable(generator.deadline_alerts(requirements, as_of, paid_to_date))
        return data
    except InputValidationError as e:
        raise _invalid(e)


@router.get("/rate-schedules")
async def list_rate_schedules():
    return {"versions": available_versions()}


@router.get("/rate-schedules/{version}")
async def rate_schedule(version: str):
    try:
        return get_rate_schedule(version).to_dict()
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))
