"""
Cart Calculator - per-line pricing and cart totals without volume discount.

``prepare_lines`` turns freshly added lines into priced lines (list-price
discount, bundles, MOQ, tax-inclusive prices, margin); ``calculate_cart``
rolls them up into a PricingResult. Lines already priced by the volume
discount engine keep their unit and total price.
"""
import copy
import logging
from typing import Any, Iterable, Optional

from ..config.settings import CalculationSettings
from .models import LineItem, PricingResult
from .money import round_half_up, to_number
from .tax_resolver import compute_line_tax

logger = logging.getLogger(__name__)


def pf_percentage_for(line: LineItem, settings: CalculationSettings) -> float:
    """Line-level P&F percentage wins over the tenant default."""
    if line.pf_item_value is not None:
        return line.pf_item_value
    return settings.pf_percentage


def apply_margin(line: LineItem, price: float, precision: int = 2) -> LineItem:
    """DMC = (cost + addon) / price * 100; no cost or no price means DMC 100, margin 0."""
    if line.product_cost > 0 and price > 0:
        line.dmc = round_half_up((line.product_cost + line.addon_cost) / price * 100, precision)
    else:
        line.dmc = 100.0
    line.margin_percentage = round_half_up(100 - line.dmc, precision)
    return line


def _apply_bundle_selection(line: LineItem, precision: int):
    """Unselected bundle products come off both the list price and the unit price."""
    if not line.bundle_products:
        return
    unit_list_price = line.unit_list_price
    unit_price = line.unit_price
    for bundle in line.bundle_products:
        if not bundle.is_selected:
            unit_price -= bundle.unit_list_price - bundle.unit_list_price * line.discount / 100
        if not bundle.bundle_selected or not bundle.is_selected:
            unit_list_price -= bundle.unit_list_price
    line.unit_list_price = round_half_up(unit_list_price, precision)
    line.unit_price = round_half_up(unit_price, precision)
    line.discounted_price = round_half_up(
        line.unit_list_price - line.unit_list_price * line.discount_percentage / 100, precision)


def prepare_lines(
    lines: Iterable[Any],
    tax_exempt: bool = False,
    settings: Optional[CalculationSettings] = None,
) -> list[LineItem]:
    """Normalize and price lines ahead of ``calculate_cart``. Inputs are not mutated."""
    settings = CalculationSettings.from_dict(settings)
    precision = settings.precision
    prepared = []

    for raw in lines or []:
        line = copy.deepcopy(LineItem.from_dict(raw))

        if line.asked_quantity is None:
            line.asked_quantity = line.quantity
        if line.min_order_quantity is None and line.packaging_qty is not None:
            line.min_order_quantity = line.packaging_qty
        line.check_moq = (line.min_order_quantity is not None
                          and line.min_order_quantity > line.asked_quantity)
        if line.check_moq:
            line.add_warning(
                f"Quantity {line.asked_quantity:g} below minimum order quantity "
                f"{line.min_order_quantity:g} for product {line.product_id}")

        line.discount_percentage = line.discount
        line.discounted_price = round_half_up(
            line.unit_list_price - line.unit_list_price * line.discount / 100, precision)

        if not line.volume_discount_applied:
            line.unit_price = line.discounted_price
            _apply_bundle_selection(line, precision)
            if line.tax_inclusive:
                line.unit_price = round_half_up(line.unit_price / (1 + line.tax / 100), precision)
                line.add_trace("Tax Inclusive", f"Backed out {line.tax}% tax", line.unit_price)
            line.total_price = round_half_up(line.asked * line.unit_price, precision)

        if tax_exempt:
            line.tax = 0.0
            line.total_inter_tax = 0.0
            line.total_intra_tax = 0.0
            for entry in line.inter_tax_breakup + line.intra_tax_breakup + line.product_taxes:
                entry.tax_percentage = 0.0

        if not line.show_price or line.price_not_available:
            line.discounted_price = 0.0
            line.unit_price = 0.0
            line.unit_list_price = 0.0
            line.total_price = 0.0
            line.add_trace("Price Resolution", "Price not available, line zero-priced")

        apply_margin(line, line.unit_price, precision)
        prepared.append(line)

    return prepared


def calculate_cart(
    lines: Iterable[Any],
    is_inter: bool = True,
    insurance_charges: Any = 0,
    settings: Optional[CalculationSettings] = None,
    already_paid: Any = 0,
) -> tuple[PricingResult, list[LineItem]]:
    """
    Price every line and roll up the cart totals.

    Args:
        lines: Prepared lines (see ``prepare_lines``); never mutated
        is_inter: Inter-state flag selecting the tax breakup
        insurance_charges: Cart-level insurance
        settings: Tenant calculation settings
        already_paid: Amount paid so far on partial-payment orders

    Returns:
        (PricingResult, processed lines)
    """
    settings = CalculationSettings.from_dict(settings)
    precision = settings.precision
    processed = [copy.deepcopy(LineItem.from_dict(raw)) for raw in lines or []]

    result = PricingResult(total_items=len(processed), already_paid=to_number(already_paid))
    result.hide_list_price_public = any(line.list_price_public is False for line in processed)

    for line in processed:
        asked = line.asked

        if line.cash_discount_value > 0:
            if line.original_unit_price is None:
                line.original_unit_price = line.unit_price
            cash_discount = line.original_unit_price * line.cash_discount_value / 100
            line.unit_price = round_half_up(line.original_unit_price - cash_discount, precision)
            line.cash_discounted_price = round_half_up(cash_discount * asked, precision)
            result.total_cash_discount += line.cash_discounted_price
            result.cash_discount_value = line.cash_discount_value

        if not line.volume_discount_applied:
            line.total_price = round_half_up(asked * line.unit_price, precision)

        line.pf_rate = round_half_up(line.total_price * pf_percentage_for(line, settings) / 100,
                                     precision)
        line.item_taxable_amount = round_half_up(
            line.unit_price + (line.pf_rate / asked if asked else 0.0), precision)

        line.total_tax, line.tax_values = compute_line_tax(line, is_inter, precision)
        for name, amount in line.tax_values.items():
            result.tax_totals[name] = round_half_up(result.tax_totals.get(name, 0.0) + amount,
                                                    precision)

        line.total_lp = round_half_up(line.unit_list_price * asked, precision)
        if line.unit_list_price > line.unit_price:
            line.basic_discounted_price = round_half_up(
                (line.unit_list_price - line.unit_price) * asked, precision)
            result.total_basic_discount += line.basic_discounted_price

        result.total_shipping += line.shipping_charges * asked
        result.total_lp += line.total_lp
        result.total_tax += line.total_tax
        result.total_value += line.total_price
        result.pf_rate += line.pf_rate

        if line.total_price < 0:
            result.has_products_with_negative_total_price = True
        if not line.is_product_available_in_price_list:
            result.has_all_products_available_in_price_list = False

    result.total_value = round_half_up(result.total_value, precision)
    result.total_tax = round_half_up(result.total_tax, precision)
    result.total_lp = round_half_up(result.total_lp, precision)
    result.total_shipping = round_half_up(result.total_shipping, precision)
    result.pf_rate = round_half_up(result.pf_rate, precision)
    result.total_basic_discount = round_half_up(result.total_basic_discount, precision)
    result.total_cash_discount = round_half_up(result.total_cash_discount, precision)

    result.taxable_amount = round_half_up(result.total_value + result.pf_rate, precision)
    result.insurance_charges = round_half_up(insurance_charges, precision)
    result.calculated_total = round_half_up(
        result.total_tax + result.total_value + result.pf_rate
        + result.total_shipping + result.insurance_charges, precision)
    result.grand_total = (round_half_up(result.calculated_total, 0)
                          if settings.rounding_adjustment else result.calculated_total)
    result.rounding_adjustment = round_half_up(result.grand_total - result.calculated_total,
                                               precision)

    result.add_trace("Cart Totals", f"{result.total_items} lines priced", result.grand_total)
    logger.debug("Cart priced: %d lines, grand total %s", result.total_items, result.grand_total)
    return result, processed
