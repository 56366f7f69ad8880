from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Any, Dict, List, Literal, Optional
import logging

from quote_pricing import __version__
from quote_pricing.config.settings import CalculationSettings
from quote_pricing.engine import (
    attach_pricing,
    calc_embedded,
    calc_tiered,
    group,
    overall_summary,
    price_all,
    resolve_tax,
)
from quote_pricing.exceptions import PricingError
from quote_pricing.api.quotation_api import router as quotation_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Quote Pricing API",
    description="Recompute surface for cart and quote pricing",
    version=__version__
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include quotation API
app.include_router(quotation_router)


def raise_http(e: Exception):
    """Contract and config errors are the caller's fault (422); anything else is ours (500)."""
    if isinstance(e, PricingError):
        raise HTTPException(status_code=422, detail=e.to_dict())
    logger.exception("Unhandled error in pricing request")
    raise HTTPException(status_code=500, detail=str(e))


class TaxRequest(BaseModel):
    lines: List[Dict[str, Any]] = []
    product_tax_details: Any = None
    is_inter: bool = True
    is_tax_exempt: bool = False


class VolumeDiscountRequest(BaseModel):
    mode: Literal["tiered", "embedded"] = "tiered"
    lines: List[Dict[str, Any]] = []
    tier_list: List[Dict[str, Any]] = []
    is_inter: bool = True
    sub_total: float = 0
    pf_rate_base: float = 0
    insurance_charges: float = 0
    overall_shipping: float = 0
    before_tax: bool = False
    tax_rate_percent: float = 0
    settings: Optional[Dict[str, Any]] = None


class CartRequest(BaseModel):
    lines: List[Dict[str, Any]] = []
    pricing_table: Optional[Dict[str, List[Dict[str, Any]]]] = None
    tier_data: Optional[Dict[str, List[Dict[str, Any]]]] = None
    params: Dict[str, Any] = {}


@app.get("/")
async def root():
    return {"status": "online", "message": "Quote Pricing API Active", "version": __version__}


@app.post("/calculate/tax")
async def calculate_tax(req: TaxRequest):
    try:
        lines = resolve_tax(req.lines, req.product_tax_details, req.is_inter, req.is_tax_exempt)
        return {"lines": [line.to_dict() for line in lines]}
    except Exception as e:
        raise_http(e)


@app.post("/calculate/volume-discount")
async def calculate_volume_discount(req: VolumeDiscountRequest):
    try:
        settings = CalculationSettings.from_dict(req.settings)
        if req.mode == "embedded":
            result = calc_embedded(req.is_inter, req.lines, req.sub_total, req.insurance_charges,
                                   req.before_tax, req.tax_rate_percent, req.pf_rate_base, settings,
                                   precision=settings.precision,
                                   overall_shipping=req.overall_shipping)
        else:
            result = calc_tiered(req.is_inter, req.lines, req.tier_list, req.sub_total,
                                 req.pf_rate_base, settings, req.before_tax, req.tax_rate_percent,
                                 precision=settings.precision,
                                 overall_shipping=req.overall_shipping)
        return result.to_dict()
    except Exception as e:
        raise_http(e)


@app.post("/calculate/cart")
async def calculate_cart(req: CartRequest):
    try:
        groups = group(req.lines)
        report = None
        if req.pricing_table is not None:
            groups, report = attach_pricing(groups, req.pricing_table)
        priced = price_all(groups, req.params, req.tier_data)
        return {
            "sellerCarts": {key: cart.to_dict() for key, cart in priced.items()},
            "overallSummary": overall_summary(priced).to_dict(),
            "pricingResolution": report.to_dict() if report is not None else None,
        }
    except Exception as e:
        raise_http(e)
