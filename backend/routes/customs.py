"""
Transit Hub - Customs Router

Indicative duty calculations for the calculator screen.
"""

from fastapi import APIRouter, HTTPException
from typing import Optional
from pydantic import BaseModel, Field

from services.customs_calculator import calculate_duties, estimate_import_duties

router = APIRouter(prefix="/customs", tags=["customs"])


class QuoteRequest(BaseModel):
    value: float = Field(..., gt=0)
    currency: str = "USD"
    hs_code: Optional[str] = None


class DutiesRequest(BaseModel):
    cif_gnf: float = Field(..., ge=0)


@router.post("/calculate")
async def calculate_customs(request: QuoteRequest):
    """Quick quote from a CIF value in any supported currency."""
    return estimate_import_duties(request.value, request.currency, request.hs_code)


@router.post("/duties")
async def calculate_im4_duties(request: DutiesRequest):
    """IM4 duty breakdown for a CIF value already converted to GNF."""
    try:
        breakdown = calculate_duties(request.cif_gnf)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return breakdown.to_dict()
