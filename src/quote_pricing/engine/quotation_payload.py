"""
Quotation Payload Assembler - builds the order/quote submission body.

Every scalar resolves through the same chain: current form value, then the
previously persisted quote version, then a structural default. Totals come
from the volume discount view when ``VDapplied`` is set, else from the plain
cart pricing. The assembler is pure: identical inputs give identical payloads
(the version timestamp is an input, never read from the clock).
"""
import copy
import logging
from typing import Annotated, Any, Iterable, Mapping, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..exceptions import ContractError
from .models import LineItem, snake_to_camel
from .money import to_number

logger = logging.getLogger(__name__)

LINES_KEY = "dbProductDetails"
REMOVED_LINES_KEY = "removedDbProductDetails"

ADDRESS_TEXT_KEYS = ("addressLine", "branchName", "city", "state", "country", "countryCode",
                     "pinCodeId", "gst", "district", "locality", "mobileNo", "phone")
ADDRESS_NULL_KEYS = ("email", "billToCode", "shipToCode", "soldToCode")
ADDRESS_BLOCKS = ("registerAddressDetails", "billingAddressDetails", "shippingAddressDetails",
                  "sellerAddressDetail")

# Carried from the last saved version when the form does not set them
PERSISTED_PASSTHROUGH = ("shippingAddressId", "shippingIncluded", "quotationDescription",
                         "quoteName", "overallShipping", "salesBranchCode", "salesOrgCode")

# Line keys whose values the submission API requires to be finite numbers
LINE_MONEY_KEYS = tuple(sorted(snake_to_camel(name) for name in LineItem.NUMERIC_FIELDS))

Money = Annotated[float, BeforeValidator(to_number)]


class QuotationPayload(BaseModel):
    """Submission body. Declared fields are the computed ones; form passthrough keys ride along as extras."""
    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)

    version_created_timestamp: Optional[Any] = None
    modified_by_username: str = ""
    buyer_reference_number: Optional[Any] = None
    comment: Optional[str] = None
    is_inter: bool = False

    sub_total: Money = 0.0
    sub_total_with_vd: Optional[Money] = Field(default=None, alias="subTotalWithVD")
    overall_tax: Money = 0.0
    taxable_amount: Money = 0.0
    calculated_total: Money = 0.0
    rounding_adjustment: Money = 0.0
    grand_total: Money = 0.0
    total_pf_value: Money = 0.0
    total_lp: Money = Field(default=0.0, alias="totalLP")
    version_level_volume_discount: bool = Field(default=False, alias="versionLevelVolumeDisscount")

    quote_users: list[Any] = Field(default_factory=list)
    deletable_quote_users: list[Any] = Field(default_factory=list)
    tags_list: list[Any] = Field(default_factory=list)
    deletable_tags_list: list[Any] = Field(default_factory=list)
    quote_division_id: Optional[Any] = None
    quote_type_id: Optional[int] = None
    buyer_currency_id: Optional[Any] = None

    db_product_details: list[dict] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _first_of(*values: Any, default: Any = None) -> Any:
    """First truthy value, else ``default``."""
    for value in values:
        if value:
            return value
    return default


def _ref_id(ref: Any) -> Any:
    """Bare id from a reference object ({id: ...}), or the value itself when already bare."""
    if isinstance(ref, Mapping):
        return ref.get("id", ref.get("userId"))
    return ref


def _int_id(ref: Any) -> Optional[int]:
    value = _ref_id(ref)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Non-numeric reference id %r dropped", value)
        return None


def _flatten_ids(refs: Any) -> list:
    if not isinstance(refs, list):
        return []
    return [i for i in (_ref_id(r) for r in refs) if i is not None]


def _trimmed(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def format_address(address: Optional[Mapping[str, Any]]) -> Optional[dict]:
    """Fixed key set; text fields default to "" and codes/email to None."""
    if not address:
        return None
    formatted = {key: address.get(key) or "" for key in ADDRESS_TEXT_KEYS}
    formatted["pinCodeId"] = address.get("pinCodeId") or address.get("pincode") or ""
    for key in ADDRESS_NULL_KEYS:
        formatted[key] = address.get(key) or None
    return formatted


def form_bundle_products_payload(bundles: Optional[Iterable[Any]]) -> list[dict]:
    """Normalize selection flags to 1/0 and keep only selected bundle products."""
    payload = []
    for bundle in bundles or []:
        entry = bundle.to_dict() if hasattr(bundle, "to_dict") else dict(bundle)
        entry["bundleSelected"] = 1 if entry.get("bundleSelected") else 0
        entry["isBundleSelected_fe"] = 1 if entry.get("isBundleSelected_fe") else 0
        if entry["isBundleSelected_fe"]:
            payload.append(entry)
    return payload


def _product_discounts(discount_details: Any) -> list[dict]:
    if not isinstance(discount_details, Mapping):
        return []
    discount_id = _first_of(discount_details.get("discountId"), discount_details.get("DiscountId"))
    if not discount_id:
        return []
    percentage = discount_details.get("Value", discount_details.get("discountPercentage"))
    return [{
        "id": None,
        "discounId": discount_id,
        "discounCode": None,
        "orderProduct": None,
        "discountPercentage": to_number(percentage),
        "BasePrice": discount_details.get("BasePrice"),
        "MasterPrice": discount_details.get("MasterPrice"),
    }]


def map_line(raw: Any, is_inter: bool, pf_percentage: Optional[float]) -> dict:
    """Flatten one cart line into its submission shape."""
    line = raw.to_dict() if isinstance(raw, LineItem) else copy.deepcopy(dict(raw or {}))
    is_new = bool(line.get("new"))

    warehouse = line.pop("wareHouse", None) or line.pop("warehouse", None)
    line["accountOwnerId"] = _int_id(line.pop("accountOwner", None))
    line["businessUnitId"] = _ref_id(line.pop("businessUnit", None)) or ""
    line["divisionId"] = _int_id(line.pop("division", None))
    line["orderWareHouseId"] = _ref_id(warehouse) or None
    line["orderWareHouseName"] = (warehouse.get("wareHouseName") if isinstance(warehouse, Mapping)
                                  else None) or None

    line["lineNo"] = None if is_new else line.get("lineNo")
    line["itemNo"] = None if is_new else line.get("itemNo")
    line["pfValue"] = None
    line["pfPercentage"] = pf_percentage
    line["tentativeDeliveryDate"] = line.get("tentativeDeliveryDate") or None
    line["productTaxes"] = list(line.get("interTaxBreakup" if is_inter else "intraTaxBreakup") or [])
    line["productDiscounts"] = _product_discounts(line.get("discountDetails"))
    line["bundleProducts"] = form_bundle_products_payload(line.get("bundleProducts"))

    for key in LINE_MONEY_KEYS:
        if key in line:
            line[key] = to_number(line[key])
    return line


def _persisted_detail(previously_persisted: Optional[Mapping[str, Any]]) -> dict:
    """The first saved quotation detail, from either ``{quotationDetails: [...]}`` or a bare detail."""
    if not previously_persisted:
        return {}
    details = previously_persisted.get("quotationDetails")
    if isinstance(details, list):
        return dict(details[0]) if details else {}
    return dict(previously_persisted)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def assemble(
    form_values: Mapping[str, Any],
    overview_values: Optional[Mapping[str, Any]] = None,
    previously_persisted: Optional[Mapping[str, Any]] = None,
    *,
    display_name: Optional[str] = None,
    company_name: Optional[str] = None,
    version_timestamp: Optional[str] = None,
) -> QuotationPayload:
    """
    Build the submission payload.

    Args:
        form_values: Current quote form state; must carry a ``dbProductDetails`` list
        overview_values: Overview section (reference number, comment, users, tags, division, type)
        previously_persisted: Last saved version, ``{quotationDetails: [...]}`` or a bare detail
        display_name, company_name: Editing user, for ``modifiedByUsername``
        version_timestamp: ISO timestamp for ``versionCreatedTimestamp``

    Raises:
        ContractError: form values are not a mapping or have no line-item container
    """
    if not isinstance(form_values, Mapping):
        raise ContractError("Form values must be a mapping",
                            code="CONTRACT_FORM_VALUES",
                            details={"type": type(form_values).__name__})
    if not isinstance(form_values.get(LINES_KEY), list):
        raise ContractError(f"Form values have no '{LINES_KEY}' line container",
                            code="CONTRACT_MISSING_LINES")

    values = copy.deepcopy(dict(form_values))
    overview = copy.deepcopy(dict(overview_values or {}))
    persisted = copy.deepcopy(_persisted_detail(previously_persisted))
    body = dict(values)

    body["versionCreatedTimestamp"] = _first_of(version_timestamp,
                                                values.get("versionCreatedTimestamp"))
    body["uploadedDocumentDetails"] = overview.get("uploadedDocumentDetails") or []
    body["modifiedByUsername"] = ", ".join(
        part for part in (_trimmed(display_name), _trimmed(company_name)) if part)

    body["buyerReferenceNumber"] = _first_of(overview.get("buyerReferenceNumber"),
                                             persisted.get("buyerReferenceNumber"))
    body["comment"] = _first_of(_trimmed(overview.get("comment")), _trimmed(persisted.get("comment")))

    for block in ADDRESS_BLOCKS:
        address = format_address(_first_of(values.get(block), persisted.get(block)))
        if address is None:
            body.pop(block, None)
            continue
        if block == "sellerAddressDetail":
            source = values.get(block) or persisted.get(block) or {}
            address["sellerCompanyName"] = source.get("sellerCompanyName") or ""
            address["sellerBranchName"] = source.get("sellerBranchName") or ""
        body[block] = address

    register = body.get("registerAddressDetails") or {}
    body["payerCode"] = register.get("soldToCode")
    body["payerBranchName"] = register.get("branchName")

    register_raw = values.get("registerAddressDetails") or {}
    body["buyerBranchId"] = _first_of(values.get("buyerBranchId"), register_raw.get("branchId"),
                                      persisted.get("buyerBranchId"))
    for key in ("buyerCompanyId", "sellerBranchId", "sellerCompanyId"):
        body[key] = _first_of(values.get(key), persisted.get(key))
    for key in ("buyerBranchName", "buyerCompanyName", "sellerBranchName", "sellerCompanyName"):
        body[key] = _first_of(values.get(key), persisted.get(key), default="")
    body["customerRequiredDate"] = _first_of(values.get("customerRequiredDate"),
                                             persisted.get("customerRequiredDate"))

    currency = values.get("buyerCurrencyId")
    body["buyerCurrencyId"] = _first_of(_int_id(currency), _ref_id(persisted.get("buyerCurrencyId")))
    body["buyerCurrency"] = _first_of(currency, persisted.get("buyerCurrency"))

    is_inter = values.get("isInter")
    body["isInter"] = bool(is_inter if is_inter is not None else persisted.get("isInter", False))

    cart = values.get("cartValue") or {}
    vd_applied = bool(values.get("VDapplied"))
    if vd_applied:
        vd = values.get("VDDetails") or {}
        body["subTotal"] = vd.get("subTotal")
        body["subTotalWithVD"] = vd.get("subTotalVolume")
        body["overallTax"] = vd.get("overallTax")
        body["taxableAmount"] = vd.get("taxableAmount")
        body["calculatedTotal"] = vd.get("calculatedTotal")
        body["roundingAdjustment"] = vd.get("roundingAdjustment")
        body["grandTotal"] = vd.get("grandTotal")
    else:
        body["subTotal"] = cart.get("totalValue")
        body["subTotalWithVD"] = None
        body["overallTax"] = cart.get("totalTax")
        body["taxableAmount"] = cart.get("taxableAmount")
        body["calculatedTotal"] = cart.get("calculatedTotal")
        body["roundingAdjustment"] = cart.get("roundingAdjustment")
        body["grandTotal"] = cart.get("grandTotal")
    body["subTotal_bc"] = ""
    body["totalPfValue"] = cart.get("pfRate")
    body["totalLP"] = cart.get("totalLP")

    active_lines = values.get(LINES_KEY) or []
    body["versionLevelVolumeDisscount"] = any(
        (line.volume_discount_applied if isinstance(line, LineItem)
         else bool(line.get("volumeDiscountApplied")))
        for line in active_lines)

    body["quoteUsers"] = _flatten_ids(_first_of(overview.get("quoteUsers"), persisted.get("quoteUsers")))
    body["deletableQuoteUsers"] = list(overview.get("deletableQuoteUsers") or [])
    body["tagsList"] = _flatten_ids(_first_of(overview.get("tagsList"), persisted.get("tagsList")))
    body["deletableTagsList"] = list(overview.get("deletableTagsList") or [])

    division = overview.get("quoteDivisionId")
    body["quoteDivisionId"] = _ref_id(division if division is not None
                                      else persisted.get("quoteDivisionId"))
    body["quoteTypeId"] = _int_id(_first_of(overview.get("quoteType"), persisted.get("quoteType")))

    business_unit = _ref_id(values.get("branchBusinessUnit")) or ""
    body["branchBusinessUnit"] = business_unit
    body["branchBusinessUnitId"] = business_unit

    quote_terms = values.get("quoteTerms") if isinstance(values.get("quoteTerms"), Mapping) else {}
    # The terms percentage only switches P&F on; the value sent is the form's pfRate
    pf_rate = values.get("pfRate")
    pf_percentage = None
    if (quote_terms.get("pfPercentage") or pf_rate) and pf_rate is not None:
        pf_percentage = to_number(pf_rate)

    removed_lines = values.get(REMOVED_LINES_KEY) or []
    body[LINES_KEY] = [map_line(line, body["isInter"], pf_percentage)
                       for line in list(active_lines) + list(removed_lines)]
    body.pop(REMOVED_LINES_KEY, None)

    for key in PERSISTED_PASSTHROUGH:
        if body.get(key) in (None, "") and persisted.get(key) not in (None, ""):
            body[key] = persisted[key]

    persisted_terms = persisted.get("quoteTerms") if isinstance(persisted.get("quoteTerms"), Mapping) else {}
    if "additionalTerms" in quote_terms:
        body["additionalTerms"] = _trimmed(quote_terms.get("additionalTerms")) or ""
    elif "additionalTerms" in persisted_terms:
        body["additionalTerms"] = _trimmed(persisted_terms.get("additionalTerms")) or ""

    logger.debug("Assembled payload with %d lines (VD applied: %s)", len(body[LINES_KEY]), vd_applied)
    return QuotationPayload.model_validate(body)
