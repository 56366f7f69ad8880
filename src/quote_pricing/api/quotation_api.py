"""
Quotation API - FastAPI router for payload assembly and the place-order gate.
"""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Any, Dict, List, Optional

from ..engine.quotation_payload import assemble
from ..engine.seller_cart import PricingResolutionReport
from ..exceptions import ContractError
from ..policy.order_policy import validate_place_order

router = APIRouter(prefix="/quotation", tags=["quotation"])


# Pydantic models for API
class AssembleRequest(BaseModel):
    """Request model for assembling a submission payload."""
    form_values: Any = None
    overview_values: Optional[Dict[str, Any]] = None
    previously_persisted: Optional[Dict[str, Any]] = None
    display_name: Optional[str] = None
    company_name: Optional[str] = None
    version_timestamp: Optional[str] = None


class PlaceOrderRequest(BaseModel):
    """Request model for the place-order check."""
    buyer_status: Optional[str] = None
    validity_till: Optional[str] = None
    reorder: bool = False
    as_of: Optional[str] = None
    products_without_pricing: List[Dict[str, Any]] = []


@router.post("/assemble")
async def assemble_quotation(req: AssembleRequest):
    """Build the order/quote submission body."""
    try:
        payload = assemble(
            req.form_values,
            req.overview_values,
            req.previously_persisted,
            display_name=req.display_name,
            company_name=req.company_name,
            version_timestamp=req.version_timestamp,
        )
    except ContractError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    return payload.to_dict()


@router.post("/validate-order")
async def validate_order(req: PlaceOrderRequest):
    """Check whether the quote may be placed as an order."""
    report = PricingResolutionReport(products_without_pricing=req.products_without_pricing)
    result = validate_place_order(req.buyer_status, req.validity_till, req.reorder,
                                  as_of=req.as_of, pricing_report=report)
    return result.to_dict()
