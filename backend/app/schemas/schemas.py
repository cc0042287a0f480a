"""
Pydantic schemas for API request validation.
Each request converts itself into the engine's own input types; the engine
re-validates everything it is given.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from app.core.tax_rules.cit import (
    AddBacks,
    CalculationInput,
    Deductions,
    FreeZoneInfo,
    Installments,
    SmallBusinessReliefInfo,
)
from app.core.tax_rules.eligibility import QFZPProfile
from app.core.tax_rules.vat import VATAdjustments


# ── CIT Schemas ──

class AddBacksSchema(BaseModel):
    non_deductible_expenses: Decimal = Field(default=Decimal("0"), ge=0)
    depreciation_adjustment: Decimal = Field(default=Decimal("0"), ge=0)
    provisions_reversals: Decimal = Field(default=Decimal("0"), ge=0)
    penalties_fines: Decimal = Field(default=Decimal("0"), ge=0)
    entertainment_expenses: Decimal = Field(default=Decimal("0"), ge=0)
    excessive_compensation: Decimal = Field(default=Decimal("0"), ge=0)
    related_party_expenses: Decimal = Field(default=Decimal("0"), ge=0)
    other: Decimal = Field(default=Decimal("0"), ge=0)


class DeductionsSchema(BaseModel):
    accelerated_depreciation: Decimal = Field(default=Decimal("0"), ge=0)
    research_development: Decimal = Field(default=Decimal("0"), ge=0)
    capital_allowances: Decimal = Field(default=Decimal("0"), ge=0)
    business_provisions: Decimal = Field(default=Decimal("0"), ge=0)
    carry_forward_losses: Decimal = Field(default=Decimal("0"), ge=0)
    other: Decimal = Field(default=Decimal("0"), ge=0)


class FreeZoneSchema(BaseModel):
    is_free_zone: bool = False
    free_zone_name: str | None = None
    qualifying_income: Decimal = Field(default=Decimal("0"), ge=0)
    non_qualifying_income: Decimal = Field(default=Decimal("0"), ge=0)
    qualifies_for_qfzp: bool = False


class SmallBusinessReliefSchema(BaseModel):
    qualifies_for_relief: bool = False
    relief_amount: Decimal = Field(default=Decimal("0"), ge=0)


class InstallmentsSchema(BaseModel):
    q1_paid: Decimal = Field(default=Decimal("0"), ge=0)
    q2_paid: Decimal = Field(default=Decimal("0"), ge=0)
    q3_paid: Decimal = Field(default=Decimal("0"), ge=0)
    q4_paid: Decimal = Field(default=Decimal("0"), ge=0)


class QFZPProfileSchema(BaseModel):
    qualifying_income: Decimal = Field(..., ge=0)
    excluded_income: Decimal = Field(default=Decimal("0"), ge=0)
    activities: list[str] = Field(default_factory=list)
    has_adequate_substance: bool = False
    controlled_in_uae: bool = False
    natural_person_ownership: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    connected_person_transactions: Decimal = Field(default=Decimal("0"), ge=0)
    company_name: str = ""
    trn: str = ""
    free_zone_authority: str = ""
    financial_year: str = ""

    def to_profile(self) -> QFZPProfile:
        return QFZPProfile(
            qualifying_income=self.qualifying_income,
            excluded_income=self.excluded_income,
            activities=tuple(self.activities),
            has_adequate_substance=self.has_adequate_substance,
            controlled_in_uae=self.controlled_in_uae,
            natural_person_ownership=self.natural_person_ownership,
            connected_person_transactions=self.connected_person_transactions,
            company_name=self.company_name,
            trn=self.trn,
            free_zone_authority=self.free_zone_authority,
            financial_year=self.financial_year,
        )


class CITCalculateRequest(BaseModel):
    entity_id: str = Field(..., min_length=1)
    tax_year: int = Field(..., ge=2023, le=2100)
    accounting_income: Decimal
    add_backs: AddBacksSchema = Field(default_factory=AddBacksSchema)
    deductions: DeductionsSchema = Field(default_factory=DeductionsSchema)
    free_zone: FreeZoneSchema = Field(default_factory=FreeZoneSchema)
    small_business_relief: SmallBusinessReliefSchema = Field(default_factory=SmallBusinessReliefSchema)
    installments: InstallmentsSchema = Field(default_factory=InstallmentsSchema)
    withholding_credits: Decimal = Field(default=Decimal("0"), ge=0)
    foreign_tax_credits: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = "AED"
    as_of: date
    qfzp_profile: QFZPProfileSchema | None = None
    current_revenue: Decimal | None = Field(default=None, ge=0)
    elapsed_months: int = Field(default=12, ge=1, le=12)

    def to_calculation_input(self) -> CalculationInput:
        return CalculationInput(
            entity_id=self.entity_id,
            tax_year=self.tax_year,
            accounting_income=self.accounting_income,
            add_backs=AddBacks(**self.add_backs.model_dump()),
            deductions=Deductions(**self.deductions.model_dump()),
            free_zone=FreeZoneInfo(**self.free_zone.model_dump()),
            small_business_relief=SmallBusinessReliefInfo(**self.small_business_relief.model_dump()),
            installments=Installments(**self.installments.model_dump()),
            withholding_credits=self.withholding_credits,
            foreign_tax_credits=self.foreign_tax_credits,
            currency=self.currency,
        )


# ── VAT Schemas ──

class VATCalculateRequest(BaseModel):
    sales: Decimal = Field(..., ge=0)
    purchases: Decimal = Field(default=Decimal("0"), ge=0)
    exempt_sales: Decimal = Field(default=Decimal("0"), ge=0)
    exempt_purchases: Decimal = Field(default=Decimal("0"), ge=0)
    rate: Decimal | None = Field(default=None, ge=0, le=1)


class VATSimpleRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    is_inclusive: bool = False


class VATLineRequest(BaseModel):
    description: str = ""
    amount: Decimal = Field(..., ge=0)
    category: str = "standard"


class VATAdjustmentsSchema(BaseModel):
    bad_debt_relief: Decimal = Field(default=Decimal("0"), ge=0)
    corrections: Decimal = Decimal("0")


class VATReturnRequest(BaseModel):
    output_supplies: list[VATLineRequest] = Field(default_factory=list)
    input_purchases: list[VATLineRequest] = Field(default_factory=list)
    adjustments: VATAdjustmentsSchema = Field(default_factory=VATAdjustmentsSchema)
    as_of: date

    def to_adjustments(self) -> VATAdjustments:
        return VATAdjustments(**self.adjustments.model_dump())


# ── QFZP and Threshold Schemas ──

class QFZPReportRequest(QFZPProfileSchema):
    as_of: date


class ThresholdMonitorRequest(BaseModel):
    current_revenue: Decimal = Field(..., ge=0)
    elapsed_months: int = Field(default=12, ge=1, le=12)
