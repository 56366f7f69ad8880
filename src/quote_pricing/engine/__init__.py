"""Engine subpackage - tax, discount, cart and payload calculations."""
from .cart_calculator import calculate_cart, prepare_lines
from .models import LineItem, PricingResult, VolumeDiscountDetails
from .quotation_payload import QuotationPayload, assemble
from .seller_cart import attach_pricing, group, overall_summary, price_all, resolve_pricing
from .tax_resolver import resolve_tax
from .volume_discount import VolumeDiscountEngine, calc_embedded, calc_tiered

__all__ = [
    'resolve_tax', 'calc_tiered', 'calc_embedded', 'VolumeDiscountEngine',
    'prepare_lines', 'calculate_cart', 'group', 'price_all', 'overall_summary',
    'resolve_pricing', 'attach_pricing', 'assemble', 'QuotationPayload',
    'LineItem', 'PricingResult', 'VolumeDiscountDetails',
]
