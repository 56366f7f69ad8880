"""
Order Policy - decides whether a quote may be converted into an order.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from ..engine.seller_cart import PricingResolutionReport

logger = logging.getLogger(__name__)

CANCELLED = "CANCELLED"
OPEN = "OPEN"
ORDER_PLACED = "ORDER PLACED"
QUOTE_RECEIVED = "QUOTE RECEIVED"

HOLD_MISSING_PRICING = "HOLD_MISSING_PRICING"


@dataclass
class PlaceOrderValidation:
    """Outcome of the place-order gate."""
    is_valid: bool
    message: Optional[str] = None
    variant: Optional[str] = None
    holds: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"isValid": self.is_valid, "message": self.message,
                "variant": self.variant, "holds": self.holds}


def _to_utc(value: Any) -> Optional[datetime]:
    """Parse an ISO date/datetime (or pass one through) as a naive UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning("Unparseable validity date %r ignored", value)
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _invalid(message: str, holds: Optional[List[Dict[str, Any]]] = None) -> PlaceOrderValidation:
    return PlaceOrderValidation(is_valid=False, message=message, variant="info", holds=holds or [])


def _compute_holds(report: Optional[PricingResolutionReport]) -> List[Dict[str, Any]]:
    holds = []
    if report is not None and report.products_without_pricing:
        holds.append({
            "code": HOLD_MISSING_PRICING,
            "message": "Pricing is not available for some products in this quote.",
            "details": {"products": [p.get("productId") for p in report.products_without_pricing]},
        })
    return holds


def validate_place_order(
    buyer_status: Optional[str],
    validity_till: Any = None,
    reorder: bool = False,
    as_of: Any = None,
    pricing_report: Optional[PricingResolutionReport] = None,
) -> PlaceOrderValidation:
    """
    Gate order placement for a quote.

    Checks, in order: cancelled, validity expired, still open, already
    ordered, products without pricing. A reorder within validity or a
    received quote may then be placed; anything else waits on the quote owner.

    Args:
        buyer_status: Quote status as seen by the buyer (``updatedBuyerStatus``)
        validity_till: ISO date/datetime the quote is valid until
        reorder: Quote is being reordered
        as_of: Evaluation time; defaults to now (UTC)
        pricing_report: Pricing resolution report for the quote's lines
    """
    now = _to_utc(as_of) or datetime.now(timezone.utc).replace(tzinfo=None)
    validity = _to_utc(validity_till)

    if buyer_status == CANCELLED:
        return _invalid("Quote was cancelled already")
    if validity is not None and now > validity:
        return _invalid("Contract validity expired")
    if buyer_status == OPEN:
        return _invalid("Quote owner is working on this quote, wait for quote owner to respond")
    if buyer_status == ORDER_PLACED:
        return _invalid("Quote was converted to order already")

    holds = _compute_holds(pricing_report)
    if holds:
        logger.warning("Order placement held: %s", [h["code"] for h in holds])
        return _invalid(holds[0]["message"], holds)

    if (reorder and validity is not None and now < validity) or buyer_status == QUOTE_RECEIVED:
        return PlaceOrderValidation(is_valid=True)

    return _invalid("Quote owner is working on this quote")
