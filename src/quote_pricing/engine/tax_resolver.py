"""
Tax Resolver - annotates lines with their HSN tax breakup.

Resolution per line:
1. Take ``hsnDetails`` from the catalog lookup when the product is found
2. Otherwise keep whatever the line already carried (tax data is sticky)
3. No ``hsnDetails`` at all -> zero tax, empty breakups
4. Build inter and intra breakups with compound components ordered last
5. Tax exemption zeroes every rate but keeps the component names
"""
import copy
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from .models import HsnDetails, LineItem, TaxBreakupEntry, TaxRegime
from .money import round_half_up

logger = logging.getLogger(__name__)

INTER = "interTax"
INTRA = "intraTax"
MISSING = "missing"


@dataclass
class TaxBreakupResolution:
    """Which tax regime applies to a line, and where it came from."""
    regime: Optional[TaxRegime]
    source: str  # "interTax", "intraTax" or "missing"


def resolve_tax_breakup(hsn: Optional[HsnDetails], is_inter: bool) -> TaxBreakupResolution:
    """Pick the inter-state or intra-state regime from ``hsn``."""
    if hsn is None:
        return TaxBreakupResolution(regime=None, source=MISSING)
    regime = hsn.inter_tax if is_inter else hsn.intra_tax
    if regime is None:
        return TaxBreakupResolution(regime=None, source=MISSING)
    return TaxBreakupResolution(regime=regime, source=INTER if is_inter else INTRA)


def order_compound_last(entries: Iterable[Any]) -> list:
    """Stable partition: non-compound entries first, compound entries after."""
    entries = list(entries)
    return ([e for e in entries if not e.compound] +
            [e for e in entries if e.compound])


def build_breakup(regime: Optional[TaxRegime], tax_exempt: bool = False) -> list[TaxBreakupEntry]:
    """Copy a regime's components into breakup entries."""
    if regime is None:
        return []
    return order_compound_last(
        TaxBreakupEntry(
            tax_name=component.tax_name,
            tax_percentage=0.0 if tax_exempt else component.rate,
            compound=component.compound,
        )
        for component in regime.components
    )


def _tax_lookup(product_tax_details: Any) -> dict[str, Any]:
    """Accept either ``{productId: hsnDetails}`` or a list of ``{productId, hsnDetails}``."""
    if not product_tax_details:
        return {}
    if isinstance(product_tax_details, Mapping):
        return {str(k): v for k, v in product_tax_details.items()}
    lookup = {}
    for entry in product_tax_details:
        if isinstance(entry, LineItem):
            product_id, hsn = entry.product_id, entry.hsn_details
        else:
            product_id = entry.get("productId", entry.get("product_id"))
            hsn = entry.get("hsnDetails", entry.get("hsn_details"))
        if product_id is not None and str(product_id) not in lookup:
            lookup[str(product_id)] = hsn
    return lookup


def apply_tax_details(line: LineItem, is_inter: bool, is_tax_exempt: bool) -> LineItem:
    """Fill tax fields on ``line`` (in place) from its current ``hsn_details``."""
    hsn = line.hsn_details
    if hsn is None:
        line.tax = 0.0
        line.total_inter_tax = 0.0
        line.total_intra_tax = 0.0
        line.inter_tax_breakup = []
        line.intra_tax_breakup = []
        line.product_taxes = []
        return line

    line.tax = hsn.tax
    line.total_inter_tax = hsn.inter_tax.total_tax if hsn.inter_tax else 0.0
    line.total_intra_tax = hsn.intra_tax.total_tax if hsn.intra_tax else 0.0
    line.inter_tax_breakup = build_breakup(hsn.inter_tax, is_tax_exempt)
    line.intra_tax_breakup = build_breakup(hsn.intra_tax, is_tax_exempt)

    if is_tax_exempt:
        line.tax = 0.0
        line.total_inter_tax = 0.0
        line.total_intra_tax = 0.0

    # Same list object, so later edits to the active breakup show through the alias
    line.product_taxes = line.inter_tax_breakup if is_inter else line.intra_tax_breakup
    return line


def resolve_tax(
    existing_lines: Iterable[Any],
    product_tax_details: Any,
    is_inter: bool,
    is_tax_exempt: bool = False,
) -> list[LineItem]:
    """
    Annotate every line with tax rate, totals and breakup.

    Args:
        existing_lines: Raw dicts or LineItems; never mutated
        product_tax_details: Catalog lookup, ``{productId: hsnDetails}`` or a list of
            ``{productId, hsnDetails}`` entries
        is_inter: Inter-state transaction flag shared by the whole cart
        is_tax_exempt: Zero every rate, keeping component names

    Returns:
        New LineItems, one per input line, in input order
    """
    lookup = _tax_lookup(product_tax_details)
    resolved = []

    for raw in existing_lines or []:
        line = copy.deepcopy(LineItem.from_dict(raw))
        key = str(line.product_id) if line.product_id is not None else None

        if key is not None and lookup.get(key) is not None:
            line.hsn_details = HsnDetails.from_dict(lookup[key])
            line.add_trace("Tax Lookup", "Using catalog hsnDetails", key)
        elif line.hsn_details is not None:
            line.add_trace("Tax Lookup", "Product not in lookup, keeping stored hsnDetails", key)
        else:
            logger.warning("No tax details for product %s, defaulting to zero tax", key)
            line.add_trace("Tax Lookup", "No hsnDetails available, zero tax", key)
            line.add_warning(f"No tax details for product {key}")

        apply_tax_details(line, is_inter, is_tax_exempt)

        resolution = resolve_tax_breakup(line.hsn_details, is_inter)
        line.add_trace("Tax Regime", f"Active breakup from {resolution.source}",
                       ", ".join(f"{e.tax_name} {e.tax_percentage}%" for e in line.product_taxes) or None)
        if is_tax_exempt:
            line.add_trace("Tax Exemption", "All tax rates set to 0")
        resolved.append(line)

    return resolved


def compute_line_tax(line: LineItem, is_inter: bool, precision: int = 2,
                     base: Optional[float] = None) -> tuple[float, dict[str, float]]:
    """
    Tax amount on ``base`` (defaults to total price + P&F) for the active regime.

    Non-compound components apply to the base; a compound component applies to
    the non-compound tax only, never to another compound amount. Without a
    breakup, the single regime rate (or the line's base rate) applies to the base.

    Returns (total_tax, {tax_name: amount}).
    """
    if base is None:
        base = line.total_price + (line.pf_rate or 0.0)
    breakup = line.inter_tax_breakup if is_inter else line.intra_tax_breakup

    values: dict[str, float] = {}
    if breakup:
        non_compound = 0.0
        running = 0.0
        for entry in order_compound_last(breakup):
            if entry.compound:
                amount = round_half_up(non_compound * entry.tax_percentage / 100, precision)
            else:
                amount = round_half_up(base * entry.tax_percentage / 100, precision)
                non_compound += amount
            running += amount
            values[entry.tax_name] = round_half_up(values.get(entry.tax_name, 0.0) + amount, precision)
        return round_half_up(running, precision), values

    rate = line.total_inter_tax if is_inter else line.total_intra_tax
    if not rate:
        rate = line.tax
    return round_half_up(base * rate / 100, precision), values
