import pytest

from quote_pricing.engine.seller_cart import PricingResolutionReport
from quote_pricing.policy.order_policy import HOLD_MISSING_PRICING, validate_place_order

AS_OF = "2026-10-17T12:00:00"


@pytest.mark.parametrize("status,message", [
    ("CANCELLED", "Quote was cancelled already"),
    ("OPEN", "Quote owner is working on this quote, wait for quote owner to respond"),
    ("ORDER PLACED", "Quote was converted to order already"),
    ("NEGOTIATION", "Quote owner is working on this quote"),
])
def test_blocked_statuses(status, message):
    result = validate_place_order(status, as_of=AS_OF)
    assert result.is_valid is False
    assert result.message == message
    assert result.variant == "info"


def test_received_quote_may_be_placed():
    result = validate_place_order("QUOTE RECEIVED", "2026-12-31", as_of=AS_OF)
    assert result.is_valid is True
    assert result.to_dict() == {"isValid": True, "message": None, "variant": None, "holds": []}


def test_expired_validity_blocks_before_status():
    result = validate_place_order("QUOTE RECEIVED", "2026-10-01", as_of=AS_OF)
    assert result.is_valid is False
    assert result.message == "Contract validity expired"


def test_cancelled_wins_over_expiry():
    result = validate_place_order("CANCELLED", "2026-10-01", as_of=AS_OF)
    assert result.message == "Quote was cancelled already"


def test_reorder_within_validity():
    assert validate_place_order("ORDER CONFIRMED", "2026-11-01", reorder=True, as_of=AS_OF).is_valid
    assert not validate_place_order("ORDER CONFIRMED", None, reorder=True, as_of=AS_OF).is_valid


def test_validity_timezones_compare_in_utc():
    # 2026-02-28T23:00-02:00 is 2026-03-01T01:00 UTC
    result = validate_place_order("QUOTE RECEIVED", "2026-03-01T00:00:00Z",
                                  as_of="2026-02-28T23:00:00-02:00")
    assert result.message == "Contract validity expired"


def test_unparseable_validity_is_ignored():
    assert validate_place_order("QUOTE RECEIVED", "not a date", as_of=AS_OF).is_valid


def test_missing_pricing_holds_the_order():
    report = PricingResolutionReport(products_without_pricing=[
        {"productId": 11, "productName": "Widget", "sellerId": "s1"}])

    result = validate_place_order("QUOTE RECEIVED", as_of=AS_OF, pricing_report=report)

    assert result.is_valid is False
    assert result.message == "Pricing is not available for some products in this quote."
    assert result.holds == [{
        "code": HOLD_MISSING_PRICING,
        "message": "Pricing is not available for some products in this quote.",
        "details": {"products": [11]},
    }]


def test_empty_report_does_not_hold():
    result = validate_place_order("QUOTE RECEIVED", as_of=AS_OF,
                                  pricing_report=PricingResolutionReport())
    assert result.is_valid is True
