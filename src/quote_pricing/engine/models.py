"""
Data models for the quote pricing engine.

Uses dataclasses for structured, type-safe data representation. Line items
arrive from the storefront as loosely-shaped camelCase dicts; ``from_dict``
normalizes them once at the ingress boundary and ``to_dict`` turns them back
into the camelCase shape the submission API expects.
"""
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Optional

from .money import to_number


NO_SELLER_KEY = "no-seller"
NO_SELLER_PRICING_KEY = "no-seller-id"
UNKNOWN_SELLER_NAME = "Unknown Seller"
UNKNOWN_SELLER_LOCATION = "Location not specified"


def snake_to_camel(name: str) -> str:
    """tax_name -> taxName"""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value


class CamelDictMixin:
    """
    Shared camelCase (de)serialisation for dataclasses.

    ``KEY_ALIASES`` maps a field name to the wire keys it may arrive under; the
    first alias is the one written back out.
    """

    KEY_ALIASES: ClassVar[dict[str, tuple[str, ...]]] = {}
    SKIP_OUTPUT: ClassVar[tuple[str, ...]] = ("trace", "warnings", "extra")

    @classmethod
    def _wire_keys(cls, name: str) -> tuple[str, ...]:
        return cls.KEY_ALIASES.get(name, ()) + (snake_to_camel(name), name)

    @classmethod
    def _pick(cls, data: dict, name: str, default: Any = None) -> Any:
        for key in cls._wire_keys(name):
            if key in data:
                return data[key]
        return default

    @classmethod
    def _consumed_keys(cls) -> set[str]:
        keys = set()
        for f in fields(cls):
            keys.update(cls._wire_keys(f.name))
        return keys

    def to_dict(self) -> dict:
        """camelCase dict, extra passthrough keys first so computed fields win."""
        out = dict(getattr(self, "extra", None) or {})
        for f in fields(self):
            if f.name in self.SKIP_OUTPUT:
                continue
            out[self._wire_keys(f.name)[0]] = _serialize(getattr(self, f.name))
        return out


@dataclass
class TraceStep:
    """A single step in the pricing resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


class TraceMixin:
    """Trace and warning collection shared by lines and results."""

    def add_trace(self, step: str, description: str, value: Any = None):
        """Add a step to the trace."""
        self.trace.append(TraceStep(step=step, description=description,
                                    value=None if value is None else str(value)))

    def add_warning(self, warning: str):
        """Add a warning, ignoring duplicates."""
        if warning not in self.warnings:
            self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Tax metadata
# ---------------------------------------------------------------------------

@dataclass
class TaxComponent(CamelDictMixin):
    """One named tax inside an HSN regime (e.g. CGST 9%)."""
    tax_name: str
    rate: float = 0.0
    compound: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "TaxComponent":
        return cls(
            tax_name=str(data.get("taxName") or data.get("tax_name") or ""),
            rate=to_number(data.get("rate", data.get("taxPercentage"))),
            compound=bool(data.get("compound", False)),
        )


@dataclass
class TaxRegime(CamelDictMixin):
    """Inter-state or intra-state tax object: a total rate and its components."""
    total_tax: float = 0.0
    components: list[TaxComponent] = field(default_factory=list)

    KEY_ALIASES = {"components": ("taxReqLs",)}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["TaxRegime"]:
        if not data:
            return None
        raw = cls._pick(data, "components") or []
        return cls(
            total_tax=to_number(cls._pick(data, "total_tax")),
            components=[c if isinstance(c, TaxComponent) else TaxComponent.from_dict(c)
                        for c in raw],
        )


@dataclass
class HsnDetails(CamelDictMixin):
    """Tax classification attached to a product."""
    tax: float = 0.0
    inter_tax: Optional[TaxRegime] = None
    intra_tax: Optional[TaxRegime] = None
    hsn_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["HsnDetails"]:
        if data is None:
            return None
        if isinstance(data, HsnDetails):
            return data
        return cls(
            tax=to_number(data.get("tax")),
            inter_tax=TaxRegime.from_dict(cls._pick(data, "inter_tax")),
            intra_tax=TaxRegime.from_dict(cls._pick(data, "intra_tax")),
            hsn_code=cls._pick(data, "hsn_code"),
        )


@dataclass
class TaxBreakupEntry(CamelDictMixin):
    """A resolved tax component on a line, ready for payload serialisation."""
    tax_name: str
    tax_percentage: float = 0.0
    compound: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "TaxBreakupEntry":
        if isinstance(data, TaxBreakupEntry):
            return data
        return cls(
            tax_name=str(data.get("taxName") or data.get("tax_name") or ""),
            tax_percentage=to_number(data.get("taxPercentage", data.get("rate"))),
            compound=bool(data.get("compound", False)),
        )


# ---------------------------------------------------------------------------
# Discounts and bundles
# ---------------------------------------------------------------------------

@dataclass
class DiscountDetails(CamelDictMixin):
    """Price-list discount attached to a line (discount id, percentage, price snapshot)."""
    discount_id: Any = None
    percentage: float = 0.0
    base_price: Optional[float] = None
    master_price: Optional[float] = None

    KEY_ALIASES = {
        "discount_id": ("discountId", "DiscountId"),
        "percentage": ("Value", "discountPercentage", "Percentage"),
        "base_price": ("BasePrice",),
        "master_price": ("MasterPrice",),
    }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["DiscountDetails"]:
        if not data:
            return None
        if isinstance(data, DiscountDetails):
            return data
        base = cls._pick(data, "base_price")
        master = cls._pick(data, "master_price")
        return cls(
            discount_id=cls._pick(data, "discount_id"),
            percentage=to_number(cls._pick(data, "percentage")),
            base_price=None if base is None else to_number(base),
            master_price=None if master is None else to_number(master),
        )


@dataclass
class VolumeDiscountObject(CamelDictMixin):
    """Volume discount embedded directly on a line by the discount service."""
    discount_id: Any = None
    percentage: float = 0.0
    extra: dict = field(default_factory=dict)

    KEY_ALIASES = {
        "discount_id": ("DiscountId", "discountId"),
        "percentage": ("Percentage", "percentage"),
    }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["VolumeDiscountObject"]:
        if not data:
            return None
        if isinstance(data, VolumeDiscountObject):
            return data
        consumed = cls._consumed_keys()
        return cls(
            discount_id=cls._pick(data, "discount_id"),
            percentage=to_number(cls._pick(data, "percentage")),
            extra={k: v for k, v in data.items() if k not in consumed},
        )

    def to_additional_discount(self) -> dict:
        """Entry appended to a line's ``additionalDiscounts`` when the VD is applied."""
        entry = self.to_dict()
        entry["discounId"] = self.discount_id
        entry["discountPercentage"] = self.percentage
        entry["source"] = "volume-discount"
        return entry


@dataclass
class VolumeDiscountTier(CamelDictMixin):
    """Externally supplied volume discount tier, matched to a line by item number or product id."""
    applied_discount: float = 0.0
    item_no: Any = None
    product_id: Any = None
    seller_id: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "VolumeDiscountTier":
        if isinstance(data, VolumeDiscountTier):
            return data
        return cls(
            applied_discount=to_number(cls._pick(data, "applied_discount")),
            item_no=cls._pick(data, "item_no"),
            product_id=cls._pick(data, "product_id"),
            seller_id=cls._pick(data, "seller_id"),
        )

    def matches(self, line: "LineItem") -> bool:
        """Item number wins when both sides carry one; otherwise fall back to product id."""
        if self.item_no is not None and line.item_no is not None:
            return str(self.item_no) == str(line.item_no)
        if self.product_id is not None and line.product_id is not None:
            return str(self.product_id) == str(line.product_id)
        return False


@dataclass
class BundleProduct(CamelDictMixin):
    """Optional sub-product of a bundle line."""
    product_id: Any = None
    unit_list_price: float = 0.0
    bundle_selected: bool = False
    is_selected: bool = False
    extra: dict = field(default_factory=dict)

    KEY_ALIASES = {"is_selected": ("isBundleSelected_fe",)}

    @classmethod
    def from_dict(cls, data: Any) -> "BundleProduct":
        if isinstance(data, BundleProduct):
            return data
        consumed = cls._consumed_keys()
        return cls(
            product_id=cls._pick(data, "product_id"),
            unit_list_price=to_number(cls._pick(data, "unit_list_price")),
            bundle_selected=bool(cls._pick(data, "bundle_selected", False)),
            is_selected=bool(cls._pick(data, "is_selected", False)),
            extra={k: v for k, v in data.items() if k not in consumed},
        )

    def to_dict(self) -> dict:
        out = dict(self.extra)
        out["productId"] = self.product_id
        out["unitListPrice"] = self.unit_list_price
        out["bundleSelected"] = 1 if self.bundle_selected else 0
        out["isBundleSelected_fe"] = 1 if self.is_selected else 0
        return out


# ---------------------------------------------------------------------------
# Line item
# ---------------------------------------------------------------------------

@dataclass
class LineItem(CamelDictMixin, TraceMixin):
    """
    A cart / quote line.

    Input fields come from the storefront; the computed block is filled in by
    the tax resolver, cart calculator and volume discount engine.
    """
    # Identity
    product_id: Any = None
    item_no: Any = None
    line_no: Any = None
    product_name: Optional[str] = None
    is_new: bool = False

    # Seller
    seller_id: Any = None
    vendor_id: Any = None
    partner_id: Any = None
    seller_name: Optional[str] = None
    vendor_name: Optional[str] = None
    seller_location: Optional[str] = None
    vendor_location: Optional[str] = None

    # Quantities
    quantity: float = 0.0
    asked_quantity: Optional[float] = None
    packaging_qty: Optional[float] = None
    min_order_quantity: Optional[float] = None
    check_moq: bool = False

    # Prices
    unit_list_price: float = 0.0
    unit_price: float = 0.0
    total_price: float = 0.0
    discount: float = 0.0
    discount_percentage: float = 0.0
    discounted_price: float = 0.0
    original_unit_price: Optional[float] = None
    cash_discount_value: float = 0.0
    cash_discounted_price: float = 0.0
    basic_discounted_price: float = 0.0
    total_lp: float = 0.0
    shipping_charges: float = 0.0
    pf_item_value: Optional[float] = None
    pf_rate: float = 0.0
    item_taxable_amount: float = 0.0

    # Cost / margin
    product_cost: float = 0.0
    addon_cost: float = 0.0
    dmc: float = 100.0
    margin_percentage: float = 0.0

    # Tax
    hsn_details: Optional[HsnDetails] = None
    tax: float = 0.0
    total_inter_tax: float = 0.0
    total_intra_tax: float = 0.0
    inter_tax_breakup: list[TaxBreakupEntry] = field(default_factory=list)
    intra_tax_breakup: list[TaxBreakupEntry] = field(default_factory=list)
    product_taxes: list[TaxBreakupEntry] = field(default_factory=list)
    total_tax: float = 0.0
    tax_values: dict[str, float] = field(default_factory=dict)
    shipping_tax: float = 0.0
    tax_inclusive: bool = False

    # Discounts
    discount_details: Optional[DiscountDetails] = None
    volume_discount_obj: Optional[VolumeDiscountObject] = None
    cannot_combine_with_other_discounts: bool = False
    disc_changed: bool = False
    volume_discount_applied: bool = False
    volume_discount: float = 0.0
    applied_discount: float = 0.0
    unit_volume_price: float = 0.0
    total_volume_discount_price: float = 0.0
    tax_volume_discount_percentage: float = 0.0
    additional_discounts: list[dict] = field(default_factory=list)

    # Bundles
    bundle_products: list[BundleProduct] = field(default_factory=list)

    # Price list
    show_price: bool = True
    price_not_available: bool = False
    is_product_available_in_price_list: bool = True
    list_price_public: Optional[bool] = None
    pricing_source: Optional[str] = None
    matched_seller_id: Any = None
    master_price: Optional[float] = None
    base_price: Optional[float] = None

    # References flattened by the payload assembler
    account_owner: Any = None
    business_unit: Any = None
    division: Any = None
    warehouse: Any = None
    tentative_delivery_date: Optional[str] = None

    extra: dict = field(default_factory=dict)
    trace: list[TraceStep] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    KEY_ALIASES = {
        "is_new": ("new",),
        "cash_discount_value": ("cashdiscountValue",),
        "cannot_combine_with_other_discounts": (
            "cannotCombineWithOtherDiscounts", "CantCombineWithOtherDisCounts"),
        "warehouse": ("wareHouse",),
        "master_price": ("MasterPrice",),
        "base_price": ("BasePrice",),
        "volume_discount_obj": ("volume_discount_obj",),
        "total_lp": ("totalLP",),
        "disc_changed": ("discChanged",),
    }

    NUMERIC_FIELDS: ClassVar[frozenset] = frozenset({
        "quantity", "unit_list_price", "unit_price", "total_price", "discount",
        "discount_percentage", "discounted_price", "cash_discount_value",
        "cash_discounted_price", "basic_discounted_price", "total_lp",
        "shipping_charges", "pf_rate", "item_taxable_amount", "product_cost",
        "addon_cost", "dmc", "margin_percentage", "tax", "total_inter_tax",
        "total_intra_tax", "total_tax", "shipping_tax", "volume_discount",
        "applied_discount", "unit_volume_price", "total_volume_discount_price",
        "tax_volume_discount_percentage",
    })
    OPTIONAL_NUMERIC_FIELDS: ClassVar[frozenset] = frozenset({
        "asked_quantity", "packaging_qty", "min_order_quantity", "pf_item_value",
        "original_unit_price", "master_price", "base_price",
    })
    NESTED: ClassVar[dict] = {
        "hsn_details": HsnDetails.from_dict,
        "discount_details": DiscountDetails.from_dict,
        "volume_discount_obj": VolumeDiscountObject.from_dict,
    }
    NESTED_LISTS: ClassVar[dict] = {
        "inter_tax_breakup": TaxBreakupEntry.from_dict,
        "intra_tax_breakup": TaxBreakupEntry.from_dict,
        "product_taxes": TaxBreakupEntry.from_dict,
        "bundle_products": BundleProduct.from_dict,
    }

    @classmethod
    def from_dict(cls, data: Any) -> "LineItem":
        """Normalize a raw storefront line. Already-built LineItems pass through."""
        if isinstance(data, LineItem):
            return data
        data = data or {}
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            if f.name in ("extra", "trace", "warnings"):
                continue
            marker = object()
            raw = cls._pick(data, f.name, marker)
            if raw is marker:
                continue
            if f.name in cls.NUMERIC_FIELDS:
                kwargs[f.name] = to_number(raw)
            elif f.name in cls.OPTIONAL_NUMERIC_FIELDS:
                kwargs[f.name] = None if raw is None else to_number(raw)
            elif f.name in cls.NESTED:
                kwargs[f.name] = cls.NESTED[f.name](raw)
            elif f.name in cls.NESTED_LISTS:
                kwargs[f.name] = [cls.NESTED_LISTS[f.name](v) for v in (raw or [])]
            elif f.name == "tax_values":
                kwargs[f.name] = {str(k): to_number(v) for k, v in (raw or {}).items()}
            elif f.name == "additional_discounts":
                kwargs[f.name] = list(raw or [])
            elif f.type in (bool, "bool"):
                kwargs[f.name] = bool(raw)
            else:
                kwargs[f.name] = raw
        consumed = cls._consumed_keys()
        kwargs["extra"] = {k: v for k, v in data.items() if k not in consumed}
        return cls(**kwargs)

    @property
    def asked(self) -> float:
        """Quantity used for pricing: asked quantity when set, else quantity."""
        return self.asked_quantity if self.asked_quantity is not None else self.quantity


# ---------------------------------------------------------------------------
# Seller grouping
# ---------------------------------------------------------------------------

@dataclass
class SellerInfo(CamelDictMixin):
    """Display metadata for a seller group, taken from its first line."""
    id: str
    seller_id: Any = None
    name: str = UNKNOWN_SELLER_NAME
    location: str = UNKNOWN_SELLER_LOCATION


@dataclass
class SellerGroup(CamelDictMixin):
    """Lines belonging to one seller."""
    key: str
    seller: SellerInfo
    items: list[LineItem] = field(default_factory=list)
    item_count: int = 0
    total_quantity: float = 0.0
    resolution_level: str = "no-seller"


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

@dataclass
class PricingResult(CamelDictMixin, TraceMixin):
    """Cart or seller-group pricing aggregate."""
    total_items: int = 0
    total_value: float = 0.0
    total_lp: float = 0.0
    total_tax: float = 0.0
    total_shipping: float = 0.0
    pf_rate: float = 0.0
    taxable_amount: float = 0.0
    insurance_charges: float = 0.0
    calculated_total: float = 0.0
    grand_total: float = 0.0
    rounding_adjustment: float = 0.0
    already_paid: float = 0.0
    total_basic_discount: float = 0.0
    total_cash_discount: float = 0.0
    cash_discount_value: float = 0.0
    tax_totals: dict[str, float] = field(default_factory=dict)
    hide_list_price_public: bool = False
    has_products_with_negative_total_price: bool = False
    has_all_products_available_in_price_list: bool = True
    volume_discount_details: Optional["VolumeDiscountDetails"] = None
    trace: list[TraceStep] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    KEY_ALIASES = {"total_lp": ("totalLP",)}


@dataclass
class VolumeDiscountDetails(CamelDictMixin, TraceMixin):
    """VD-specific view of the totals; read instead of PricingResult when VD is applied."""
    sub_total: float = 0.0
    sub_total_volume: float = 0.0
    volume_discount_applied: float = 0.0
    overall_tax: float = 0.0
    taxable_amount: float = 0.0
    pf_rate: float = 0.0
    shipping_tax: float = 0.0
    total_tax: float = 0.0
    insurance_charges: float = 0.0
    calculated_total: float = 0.0
    grand_total: float = 0.0
    rounding_adjustment: float = 0.0
    tax_totals: dict[str, float] = field(default_factory=dict)
    trace: list[TraceStep] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class PricedSellerGroup(CamelDictMixin):
    """A seller group after cart pricing (and volume discount when tiers exist)."""
    key: str
    seller: SellerInfo
    items: list[LineItem]
    pricing: PricingResult
    item_count: int = 0
    total_quantity: float = 0.0
    volume_discount_details: Optional[VolumeDiscountDetails] = None


@dataclass
class OverallSummary(CamelDictMixin):
    """Totals across every seller group."""
    total_sellers: int = 0
    total_items: int = 0
    total_value: float = 0.0
    total_tax: float = 0.0
    grand_total: float = 0.0
