"""
Volume Discount Engine - applies volume discount percentages to priced lines.

Both calculation modes run the same arithmetic core (``apply_discount``); they
differ only in how the percentage for a line is found:

- Tiered (Mode A): an externally supplied tier list, matched by item number
  or product id (``TierLookupStrategy``)
- Embedded (Mode B): a ``volume_discount_obj`` carried on the line itself,
  subject to combinability rules (``EmbeddedObjectStrategy``)

Totals rule per mode:
- Tiered:   grandTotal = subTotalVolume + overallTax + pfRate + overallShipping
            (no insurance, no rounding adjustment)
- Embedded: calculatedTotal adds insuranceCharges; grandTotal is rounded to a
            whole amount when the roundingAdjustment setting is on
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..config.settings import CalculationSettings
from .cart_calculator import apply_margin
from .models import LineItem, VolumeDiscountDetails, VolumeDiscountTier
from .money import round_half_up, to_number
from .tax_resolver import compute_line_tax, order_compound_last

logger = logging.getLogger(__name__)

TIER = "tier"
EMBEDDED = "embedded"
FORCED = "embedded-forced"
NOT_COMBINABLE = "not-combinable"
NO_DISCOUNT = "none"


@dataclass
class DiscountResolution:
    """Percentage chosen for a line and which rule produced it."""
    percentage: float = 0.0
    source: str = NO_DISCOUNT
    tier: Optional[VolumeDiscountTier] = None

    @property
    def applied(self) -> bool:
        return self.percentage > 0


class TierLookupStrategy:
    """Mode A: percentages come from an externally supplied tier list."""

    name = "tiered"
    backs_out_inclusive_tax = False
    includes_insurance = False

    def __init__(self, tier_list: Optional[Iterable[Any]] = None):
        self.tiers = [VolumeDiscountTier.from_dict(t) for t in (tier_list or [])]

    def resolve(self, line: LineItem) -> DiscountResolution:
        """First matching tier wins."""
        for tier in self.tiers:
            if tier.matches(line):
                return DiscountResolution(percentage=tier.applied_discount, source=TIER, tier=tier)
        return DiscountResolution()

    def on_applied(self, line: LineItem, resolution: DiscountResolution):
        pass


class EmbeddedObjectStrategy:
    """
    Mode B: percentages come from the line's own ``volume_discount_obj``.

    The object applies when ``disc_changed`` forces it, or when the line may
    be combined with other discounts. Otherwise the line gets no volume discount.
    """

    name = "embedded"
    backs_out_inclusive_tax = True
    includes_insurance = True

    def resolve(self, line: LineItem) -> DiscountResolution:
        obj = line.volume_discount_obj
        if obj is None or obj.percentage <= 0:
            return DiscountResolution()
        if line.disc_changed:
            return DiscountResolution(percentage=obj.percentage, source=FORCED)
        if not line.cannot_combine_with_other_discounts:
            return DiscountResolution(percentage=obj.percentage, source=EMBEDDED)
        return DiscountResolution(source=NOT_COMBINABLE)

    def on_applied(self, line: LineItem, resolution: DiscountResolution):
        """Record the volume discount in ``additional_discounts`` for the breakdown view."""
        line.additional_discounts.append(line.volume_discount_obj.to_additional_discount())


def resolve_pf_percentage(line: LineItem, settings: CalculationSettings,
                          pf_rate_base: float = 0.0, sub_total: float = 0.0) -> float:
    """
    P&F percentage for a line.

    Order: line ``pf_item_value`` -> tenant ``pf_percentage`` -> the share the
    cart-level P&F amount (``pf_rate_base``) represents of ``sub_total``.
    """
    if line.pf_item_value is not None:
        return line.pf_item_value
    if settings.pf_percentage:
        return settings.pf_percentage
    if pf_rate_base and sub_total:
        return pf_rate_base / sub_total * 100
    return 0.0


def _line_shipping_tax(line: LineItem, is_inter: bool, precision: int) -> float:
    """Item-wise shipping tax: component rates on shipping, compound ones on the non-compound tax."""
    breakup = line.inter_tax_breakup if is_inter else line.intra_tax_breakup
    shipping = line.shipping_charges * line.asked
    non_compound = 0.0
    compound = 0.0
    for entry in order_compound_last(breakup):
        if entry.compound:
            compound += round_half_up(non_compound * entry.tax_percentage / 100, precision)
        else:
            non_compound += round_half_up(shipping * entry.tax_percentage / 100, precision)
    return round_half_up(non_compound + compound, precision)


def apply_discount(
    line: LineItem,
    percent: Any,
    settings: CalculationSettings,
    is_inter: bool,
    before_tax: bool = False,
    pf_percentage: float = 0.0,
    back_out_inclusive_tax: bool = False,
    precision: Optional[int] = None,
    base_price: Any = None,
) -> LineItem:
    """
    Reprice ``line`` in place at ``percent`` off its list price.

    Sets unit/total price, P&F, taxable amount, volume price, margin and the
    line tax. A missing list price counts as 0 and a zero quantity never divides.
    ``base_price`` replaces the list price as the starting point when given.
    """
    precision = settings.precision if precision is None else precision
    percent = to_number(percent)
    asked = line.asked

    if base_price is not None:
        base = to_number(base_price)
    else:
        base = line.unit_list_price
        if back_out_inclusive_tax and line.tax_inclusive:
            base = base / (1 + line.tax / 100)

    line.applied_discount = percent
    line.volume_discount = percent
    line.volume_discount_applied = percent > 0
    line.unit_price = round_half_up(base - base * percent / 100, precision)
    line.total_price = round_half_up(asked * line.unit_price, precision)
    line.pf_rate = round_half_up(line.total_price * pf_percentage / 100, precision)

    taxable = line.unit_price + (line.pf_rate / asked if asked else 0.0)
    if before_tax and settings.item_wise_shipping_tax:
        taxable += line.shipping_charges
    line.item_taxable_amount = round_half_up(taxable, precision)

    line.unit_volume_price = line.unit_price if percent > 0 else round_half_up(base, precision)
    line.total_volume_discount_price = round_half_up(asked * line.unit_volume_price, precision)
    apply_margin(line, line.unit_volume_price, precision)

    line.total_tax, line.tax_values = compute_line_tax(line, is_inter, precision)
    line.shipping_tax = (_line_shipping_tax(line, is_inter, precision)
                         if before_tax and settings.item_wise_shipping_tax else 0.0)
    line.tax_volume_discount_percentage = round_half_up(line.total_tax + line.shipping_tax,
                                                        precision)
    return line


@dataclass
class VolumeDiscountResult:
    """Repriced lines, the VD totals view, and the aggregate P&F."""
    lines: list[LineItem] = field(default_factory=list)
    vd_details: VolumeDiscountDetails = field(default_factory=VolumeDiscountDetails)
    pf_rate: float = 0.0

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self.lines],
            "vdDetails": self.vd_details.to_dict(),
            "pfRate": self.pf_rate,
        }


class VolumeDiscountEngine:
    """
    Runs one discount strategy over a batch of lines and totals the result.

    Usage:
        engine = VolumeDiscountEngine(TierLookupStrategy(tiers), settings)
        result = engine.calculate(lines, is_inter=True, sub_total=1000)
    """

    def __init__(self, strategy, settings: Optional[CalculationSettings] = None,
                 precision: Optional[int] = None, reprice_unmatched: bool = True):
        self.strategy = strategy
        self.settings = CalculationSettings.from_dict(settings)
        self.precision = self.settings.precision if precision is None else precision
        # False keeps an unmatched line at its already prepared unit price
        self.reprice_unmatched = reprice_unmatched

    def calculate(
        self,
        lines: Iterable[Any],
        is_inter: bool,
        sub_total: Any,
        before_tax: bool = False,
        tax_rate_percent: Any = 0,
        pf_rate_base: Any = 0,
        overall_shipping: Any = 0,
        insurance_charges: Any = 0,
    ) -> VolumeDiscountResult:
        """
        Args:
            lines: Tax-annotated lines; never mutated
            is_inter: Inter-state flag selecting the tax breakup
            sub_total: Cart value before volume discount
            before_tax: Shipping is taxed (and counted in the taxable amount)
            tax_rate_percent: Rate applied to overall shipping when shipping tax
                is not item-wise
            pf_rate_base: Cart-level P&F amount, used when no percentage is configured
            overall_shipping: Cart-level shipping charges
            insurance_charges: Cart-level insurance (embedded mode only)
        """
        precision = self.precision
        settings = self.settings
        sub_total = to_number(sub_total)
        pf_rate_base = to_number(pf_rate_base)
        overall_shipping = to_number(overall_shipping)
        tax_rate_percent = to_number(tax_rate_percent)

        details = VolumeDiscountDetails(sub_total=sub_total)
        priced = []
        sub_total_volume = 0.0
        pf_total = 0.0
        tax_total = 0.0
        applied_count = 0

        for raw in lines or []:
            line = copy.deepcopy(LineItem.from_dict(raw))
            resolution = self.strategy.resolve(line)
            pf_percentage = resolve_pf_percentage(line, settings, pf_rate_base, sub_total)

            apply_discount(
                line, resolution.percentage, settings, is_inter,
                before_tax=before_tax,
                pf_percentage=pf_percentage,
                back_out_inclusive_tax=self.strategy.backs_out_inclusive_tax,
                precision=precision,
                base_price=(None if resolution.applied or self.reprice_unmatched
                            else line.unit_price),
            )
            if resolution.applied:
                self.strategy.on_applied(line, resolution)
                applied_count += 1
            line.add_trace("Volume Discount",
                           f"{self.strategy.name} resolution: {resolution.source}",
                           f"{resolution.percentage:g}%")

            for name, amount in line.tax_values.items():
                details.tax_totals[name] = round_half_up(
                    details.tax_totals.get(name, 0.0) + amount, precision)

            sub_total_volume += line.total_price
            pf_total += line.pf_rate
            tax_total += line.tax_volume_discount_percentage
            details.shipping_tax += line.shipping_tax
            priced.append(line)

        if before_tax and not settings.item_wise_shipping_tax:
            overall_shipping_tax = round_half_up(overall_shipping * tax_rate_percent / 100, precision)
            details.shipping_tax += overall_shipping_tax
            tax_total += overall_shipping_tax

        details.shipping_tax = round_half_up(details.shipping_tax, precision)
        details.sub_total_volume = round_half_up(sub_total_volume, precision)
        details.volume_discount_applied = round_half_up(sub_total - details.sub_total_volume,
                                                        precision)
        details.pf_rate = round_half_up(pf_total, precision)
        details.overall_tax = round_half_up(tax_total, precision)
        details.total_tax = details.overall_tax
        details.taxable_amount = round_half_up(
            details.sub_total_volume + details.pf_rate + (overall_shipping if before_tax else 0.0),
            precision)

        total = (details.sub_total_volume + details.overall_tax + details.pf_rate
                 + overall_shipping)
        if self.strategy.includes_insurance:
            details.insurance_charges = round_half_up(insurance_charges, precision)
            details.calculated_total = round_half_up(total + details.insurance_charges, precision)
            details.grand_total = (round_half_up(details.calculated_total, 0)
                                   if settings.rounding_adjustment else details.calculated_total)
        else:
            details.calculated_total = round_half_up(total, precision)
            details.grand_total = details.calculated_total
        details.rounding_adjustment = round_half_up(
            details.grand_total - details.calculated_total, precision)

        details.add_trace("Volume Discount", f"{applied_count} of {len(priced)} lines discounted",
                          details.volume_discount_applied)
        logger.debug("Volume discount (%s): %d/%d lines, saved %s", self.strategy.name,
                     applied_count, len(priced), details.volume_discount_applied)
        return VolumeDiscountResult(lines=priced, vd_details=details, pf_rate=details.pf_rate)


def calc_tiered(
    is_inter: bool,
    lines: Iterable[Any],
    tier_list: Optional[Iterable[Any]],
    sub_total: Any,
    pf_rate_base: Any,
    settings: Optional[CalculationSettings],
    before_tax: bool,
    tax_rate_percent: Any,
    precision: int = 2,
    overall_shipping: Any = 0,
    reprice_unmatched: bool = True,
) -> VolumeDiscountResult:
    """Mode A: volume discount from an externally supplied tier list."""
    engine = VolumeDiscountEngine(TierLookupStrategy(tier_list), settings, precision,
                                  reprice_unmatched=reprice_unmatched)
    return engine.calculate(lines, is_inter, sub_total, before_tax=before_tax,
                            tax_rate_percent=tax_rate_percent, pf_rate_base=pf_rate_base,
                            overall_shipping=overall_shipping)


def calc_embedded(
    is_inter: bool,
    lines: Iterable[Any],
    sub_total: Any,
    insurance_charges: Any,
    before_tax: bool,
    tax_rate_percent: Any,
    pf_rate_base: Any,
    settings: Optional[CalculationSettings],
    precision: int = 2,
    overall_shipping: Any = 0,
) -> VolumeDiscountResult:
    """Mode B: volume discount from each line's embedded discount object."""
    engine = VolumeDiscountEngine(EmbeddedObjectStrategy(), settings, precision)
    return engine.calculate(lines, is_inter, sub_total, before_tax=before_tax,
                            tax_rate_percent=tax_rate_percent, pf_rate_base=pf_rate_base,
                            overall_shipping=overall_shipping,
                            insurance_charges=insurance_charges)
