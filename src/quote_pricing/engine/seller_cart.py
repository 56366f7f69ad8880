"""
Seller Cart Aggregator - splits a cart by seller and prices each seller group.

Grouping key resolution:
1. sellerId
2. vendorId
3. partnerId
4. "no-seller" bucket

Pricing lookup (special-pricing table keyed by seller):
1. Seller-specific entry (sellerId, vendorId, partnerId)
2. "no-seller-id" entry
3. No pricing -> line is flagged and reported, never priced at zero silently
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from ..config.settings import CalculationSettings
from .cart_calculator import calculate_cart, prepare_lines
from .models import (
    NO_SELLER_KEY,
    NO_SELLER_PRICING_KEY,
    UNKNOWN_SELLER_LOCATION,
    UNKNOWN_SELLER_NAME,
    CamelDictMixin,
    LineItem,
    OverallSummary,
    PricedSellerGroup,
    SellerGroup,
    SellerInfo,
)
from .money import round_half_up, to_number
from .volume_discount import TierLookupStrategy, calc_tiered

logger = logging.getLogger(__name__)

SELLER_SPECIFIC = "seller-specific"
NO_PRICING = "no-pricing"

# Resolution levels, in fallback order
SELLER_ID = "seller-id"
VENDOR_ID = "vendor-id"
PARTNER_ID = "partner-id"
NO_SELLER = "no-seller"


def _present(value: Any) -> bool:
    return value is not None and value != ""


@dataclass
class SellerKeyResolution:
    """Group key for a line and the identifier that produced it."""
    key: str
    level: str


def resolve_seller_id(line: LineItem) -> SellerKeyResolution:
    """First present identifier of sellerId, vendorId, partnerId; else the no-seller bucket."""
    for level, value in ((SELLER_ID, line.seller_id),
                         (VENDOR_ID, line.vendor_id),
                         (PARTNER_ID, line.partner_id)):
        if _present(value):
            return SellerKeyResolution(key=str(value), level=level)
    return SellerKeyResolution(key=NO_SELLER_KEY, level=NO_SELLER)


def group(lines: Optional[Iterable[Any]]) -> dict[str, SellerGroup]:
    """
    Group lines by seller, preserving first-seen seller order and line order.

    Seller name and location come from the first line of each group.
    """
    groups: dict[str, SellerGroup] = {}
    for raw in lines or []:
        line = copy.deepcopy(LineItem.from_dict(raw))
        resolution = resolve_seller_id(line)
        seller_group = groups.get(resolution.key)
        if seller_group is None:
            seller_group = SellerGroup(
                key=resolution.key,
                seller=SellerInfo(
                    id=resolution.key,
                    seller_id=line.seller_id,
                    name=line.seller_name or line.vendor_name or UNKNOWN_SELLER_NAME,
                    location=(line.seller_location or line.vendor_location
                              or UNKNOWN_SELLER_LOCATION),
                ),
                resolution_level=resolution.level,
            )
            groups[resolution.key] = seller_group
        seller_group.items.append(line)
        seller_group.item_count += 1
        seller_group.total_quantity += to_number(line.quantity)

    logger.debug("Grouped cart into %d seller groups", len(groups))
    return groups


@dataclass
class CalculationParams:
    """Cart-wide inputs shared by every seller group."""
    is_inter: bool = True
    insurance_charges: float = 0.0
    tax_exemption: bool = False
    before_tax: bool = False
    tax_rate_percent: float = 0.0
    already_paid: float = 0.0
    settings: Optional[CalculationSettings] = None

    @classmethod
    def from_dict(cls, data: Any) -> "CalculationParams":
        """Accept camelCase or snake_case keys; ``Settings``/``settings`` carries tenant settings."""
        if isinstance(data, CalculationParams):
            return data
        data = data or {}

        def pick(*keys, default=None):
            for key in keys:
                if key in data:
                    return data[key]
            return default

        return cls(
            is_inter=bool(pick("isInter", "is_inter", default=True)),
            insurance_charges=to_number(pick("insuranceCharges", "insurance_charges")),
            tax_exemption=bool(pick("taxExemption", "tax_exemption", default=False)),
            before_tax=bool(pick("beforeTax", "before_tax", default=False)),
            tax_rate_percent=to_number(pick("beforeTaxPercentage", "taxRatePercent",
                                            "tax_rate_percent")),
            already_paid=to_number(pick("alreadyPaid", "already_paid")),
            settings=CalculationSettings.from_dict(pick("Settings", "settings")),
        )


def price_group(seller_group: SellerGroup, params: Any = None,
                tiers: Optional[Iterable[Any]] = None) -> PricedSellerGroup:
    """Price one seller group; volume discount runs only when ``tiers`` is non-empty."""
    params = CalculationParams.from_dict(params)
    settings = CalculationSettings.from_dict(params.settings)
    lines = prepare_lines(seller_group.items, params.tax_exemption, settings)

    vd_details = None
    tiers = list(tiers or [])
    if tiers:
        # Tier lines are discounted off list price; the rest keep their prepared price
        strategy = TierLookupStrategy(tiers)
        sub_total = sum(
            round_half_up(line.unit_list_price * line.asked, settings.precision)
            if strategy.resolve(line).applied else line.total_price
            for line in lines)
        overall_shipping = sum(line.shipping_charges for line in lines)
        vd = calc_tiered(params.is_inter, lines, tiers, sub_total, 0, settings,
                         params.before_tax, params.tax_rate_percent,
                         precision=settings.precision, overall_shipping=overall_shipping,
                         reprice_unmatched=False)
        lines = vd.lines
        vd_details = vd.vd_details

    pricing, items = calculate_cart(lines, params.is_inter, params.insurance_charges,
                                    settings, params.already_paid)
    if vd_details is not None:
        pricing.volume_discount_details = vd_details
        pricing.add_trace("Volume Discount", f"Applied to seller {seller_group.key}",
                          vd_details.volume_discount_applied)

    return PricedSellerGroup(
        key=seller_group.key,
        seller=seller_group.seller,
        items=items,
        pricing=pricing,
        item_count=seller_group.item_count,
        total_quantity=seller_group.total_quantity,
        volume_discount_details=vd_details,
    )


def price_all(groups: Mapping[str, SellerGroup], params: Any = None,
              tier_data: Optional[Mapping[str, Iterable[Any]]] = None) -> dict[str, PricedSellerGroup]:
    """
    Price every seller group.

    Args:
        groups: Output of ``group``
        params: CalculationParams or a camelCase dict of the same
        tier_data: Volume discount tiers keyed by seller key

    Returns:
        {seller_key: PricedSellerGroup}; empty for no groups
    """
    tier_data = tier_data or {}
    return {key: price_group(seller_group, params, tier_data.get(key))
            for key, seller_group in (groups or {}).items()}


def overall_summary(priced_groups: Mapping[str, PricedSellerGroup],
                    precision: int = 2) -> OverallSummary:
    """Totals across seller groups; all zero for an empty cart."""
    summary = OverallSummary(total_sellers=len(priced_groups or {}))
    for priced in (priced_groups or {}).values():
        summary.total_items += priced.pricing.total_items
        summary.total_value += priced.pricing.total_value
        summary.total_tax += priced.pricing.total_tax
        summary.grand_total += priced.pricing.grand_total
    summary.total_value = round_half_up(summary.total_value, precision)
    summary.total_tax = round_half_up(summary.total_tax, precision)
    summary.grand_total = round_half_up(summary.grand_total, precision)
    return summary


# ---------------------------------------------------------------------------
# Special pricing
# ---------------------------------------------------------------------------

@dataclass
class PricingMatch:
    """A pricing-table entry matched to a line."""
    entry: dict
    source: str
    matched_seller_id: str

    @property
    def price(self) -> Optional[float]:
        master = self.entry.get("MasterPrice")
        base = self.entry.get("BasePrice")
        value = master if master is not None else base
        return None if value is None else to_number(value)

    def to_dict(self) -> dict:
        return {**self.entry, "price": self.price, "pricingSource": self.source,
                "matchedSellerId": self.matched_seller_id}


def is_valid_pricing(entry: Optional[Mapping[str, Any]]) -> bool:
    """Usable only with a MasterPrice or BasePrice and no ``priceNotAvailable`` flag."""
    if not entry:
        return False
    has_price = entry.get("MasterPrice") is not None or entry.get("BasePrice") is not None
    return has_price and not entry.get("priceNotAvailable")


def _find_entry(entries: Optional[Iterable[Mapping[str, Any]]], product_id: Any) -> Optional[dict]:
    for entry in entries or []:
        if str(entry.get("ProductVariantId", entry.get("productId"))) == str(product_id):
            return dict(entry)
    return None


def resolve_pricing(line: Any, pricing_table: Optional[Mapping[str, Any]]) -> Optional[PricingMatch]:
    """Seller-specific entry first, then the shared "no-seller-id" entries, else None."""
    if not pricing_table:
        return None
    line = LineItem.from_dict(line)

    for identifier in (line.seller_id, line.vendor_id, line.partner_id):
        if not _present(identifier):
            continue
        entries = pricing_table.get(identifier, pricing_table.get(str(identifier)))
        entry = _find_entry(entries, line.product_id)
        if entry is not None:
            return PricingMatch(entry=entry, source=SELLER_SPECIFIC,
                                matched_seller_id=str(identifier))

    entry = _find_entry(pricing_table.get(NO_SELLER_PRICING_KEY), line.product_id)
    if entry is not None:
        return PricingMatch(entry=entry, source=NO_SELLER_PRICING_KEY,
                            matched_seller_id=NO_SELLER_PRICING_KEY)
    return None


def _apply_price_list(line: LineItem, entry: Mapping[str, Any]):
    master = entry.get("MasterPrice")
    base = entry.get("BasePrice")
    line.master_price = None if master is None else to_number(master)
    line.base_price = None if base is None else to_number(base)
    line.unit_list_price = line.master_price if line.master_price is not None else line.base_price
    if line.master_price and line.base_price is not None:
        line.discount = round_half_up((line.master_price - line.base_price) / line.master_price * 100)
    line.is_product_available_in_price_list = entry.get("isProductAvailableInPriceList", True) is not False
    line.price_not_available = False
    line.show_price = True


def attach_line_pricing(lines: Iterable[Any], pricing_table: Optional[Mapping[str, Any]]) -> list[LineItem]:
    """
    Resolve special pricing for each line.

    Matched lines take the entry's prices and record ``pricing_source`` and
    ``matched_seller_id``. Unmatched or invalid matches are flagged
    ``price_not_available`` with source "no-pricing".
    """
    attached = []
    for raw in lines or []:
        line = copy.deepcopy(LineItem.from_dict(raw))
        match = resolve_pricing(line, pricing_table)
        if match is not None and is_valid_pricing(match.entry):
            _apply_price_list(line, match.entry)
            line.pricing_source = match.source
            line.matched_seller_id = match.matched_seller_id
            line.add_trace("Pricing", f"Resolved from {match.source}", match.price)
        else:
            line.price_not_available = True
            line.show_price = False
            line.pricing_source = NO_PRICING
            reason = "invalid pricing entry" if match is not None else "no pricing entry"
            line.add_trace("Pricing", f"No usable price ({reason})")
            line.add_warning(f"No pricing for product {line.product_id}")
            logger.warning("No usable pricing for product %s (%s)", line.product_id, reason)
        attached.append(line)
    return attached


@dataclass
class PricingResolutionReport(CamelDictMixin):
    """Where each product's price came from, and which products have none."""
    total_sellers: int = 0
    total_products: int = 0
    pricing_by_sources: dict[str, int] = field(default_factory=lambda: {
        SELLER_SPECIFIC: 0, NO_SELLER_PRICING_KEY: 0, NO_PRICING: 0})
    products_without_pricing: list[dict] = field(default_factory=list)

    @property
    def has_missing_pricing(self) -> bool:
        return bool(self.products_without_pricing)


def pricing_resolution_summary(groups: Mapping[str, Any]) -> PricingResolutionReport:
    """Count pricing sources across seller groups (SellerGroup or PricedSellerGroup)."""
    report = PricingResolutionReport()
    for seller_key, seller_group in (groups or {}).items():
        report.total_sellers += 1
        for line in seller_group.items:
            report.total_products += 1
            if line.pricing_source in (SELLER_SPECIFIC, NO_SELLER_PRICING_KEY):
                report.pricing_by_sources[line.pricing_source] += 1
            elif line.price_not_available or line.pricing_source == NO_PRICING:
                report.pricing_by_sources[NO_PRICING] += 1
                report.products_without_pricing.append({
                    "productId": line.product_id,
                    "productName": line.product_name,
                    "sellerId": seller_key,
                })
    return report


def attach_pricing(groups: Mapping[str, SellerGroup], pricing_table: Optional[Mapping[str, Any]]
                   ) -> tuple[dict[str, SellerGroup], PricingResolutionReport]:
    """
    Resolve special pricing for every line of every seller group.

    Returns new groups (input groups untouched) and the resolution report;
    callers block order placement when the report lists products without pricing.
    """
    attached = {}
    for key, seller_group in (groups or {}).items():
        attached[key] = SellerGroup(
            key=seller_group.key,
            seller=copy.deepcopy(seller_group.seller),
            items=attach_line_pricing(seller_group.items, pricing_table),
            item_count=seller_group.item_count,
            total_quantity=seller_group.total_quantity,
            resolution_level=seller_group.resolution_level,
        )
    report = pricing_resolution_summary(attached)
    if report.has_missing_pricing:
        logger.warning("%d products without pricing", len(report.products_without_pricing))
    return attached, report
