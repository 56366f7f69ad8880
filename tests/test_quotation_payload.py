import copy

import pytest

from quote_pricing.engine.models import LineItem
from quote_pricing.engine.quotation_payload import (
    QuotationPayload,
    assemble,
    form_bundle_products_payload,
    format_address,
    map_line,
)
from quote_pricing.exceptions import ContractError

TIMESTAMP = "2026-10-17T09:30:00"


@pytest.fixture
def form_values():
    return {
        "isInter": True,
        "VDapplied": False,
        "cartValue": {"totalValue": 1000, "totalTax": 180, "taxableAmount": 1000,
                      "calculatedTotal": 1180.4, "roundingAdjustment": -0.4, "grandTotal": 1180,
                      "pfRate": 0, "totalLP": 1200},
        "VDDetails": {"subTotal": 1000, "subTotalVolume": 900, "overallTax": 162,
                      "taxableAmount": 900, "calculatedTotal": 1062, "roundingAdjustment": 0,
                      "grandTotal": 1062},
        "quoteTerms": {"pfPercentage": 2, "additionalTerms": "  Net 30  "},
        "pfRate": 2,
        "registerAddressDetails": {"addressLine": "1 Main St", "city": "Pune", "branchId": 77,
                                   "branchName": "HQ", "soldToCode": "S-1", "pincode": "411001"},
        "dbProductDetails": [
            {"productId": 1, "lineNo": 1, "itemNo": "A1", "quantity": 10, "unitPrice": "100",
             "accountOwner": {"id": "5"}, "division": {"id": 3}, "businessUnit": {"id": "BU1"},
             "wareHouse": {"id": 9, "wareHouseName": "Central"},
             "interTaxBreakup": [{"taxName": "IGST", "taxPercentage": 18}],
             "intraTaxBreakup": [{"taxName": "CGST", "taxPercentage": 9},
                                 {"taxName": "SGST", "taxPercentage": 9}],
             "discountDetails": {"discountId": "D1", "Value": 10, "BasePrice": 90,
                                 "MasterPrice": 100}},
            {"productId": 2, "new": True, "lineNo": 2, "itemNo": "B2", "quantity": 1,
             "unitPrice": None, "volumeDiscountApplied": False},
        ],
        "removedDbProductDetails": [{"productId": 3, "lineNo": 3, "itemNo": "C3", "quantity": 0}],
    }


@pytest.fixture
def overview_values():
    return {
        "buyerReferenceNumber": "PO-42",
        "comment": "   ",
        "quoteUsers": [{"id": 11}, {"userId": 12}, 13],
        "tagsList": [{"id": "t1"}],
        "quoteDivisionId": {"id": 4},
        "quoteType": {"id": "2"},
    }


def build(form_values, overview_values=None, persisted=None):
    return assemble(form_values, overview_values, persisted,
                    display_name="Jane Doe ", company_name="Acme", version_timestamp=TIMESTAMP)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

def test_assemble_is_idempotent(form_values, overview_values):
    first = build(form_values, overview_values).to_json()
    second = build(form_values, overview_values).to_json()
    assert first == second


def test_assemble_does_not_mutate_inputs(form_values, overview_values):
    before = copy.deepcopy(form_values)
    build(form_values, overview_values)
    assert form_values == before


@pytest.mark.parametrize("bad,code", [
    (None, "CONTRACT_FORM_VALUES"),
    ([], "CONTRACT_FORM_VALUES"),
    ({"isInter": True}, "CONTRACT_MISSING_LINES"),
    ({"dbProductDetails": None}, "CONTRACT_MISSING_LINES"),
])
def test_assemble_rejects_malformed_form(bad, code):
    with pytest.raises(ContractError) as exc:
        assemble(bad)
    assert exc.value.code == code
    assert exc.value.to_dict()["code"] == code


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def test_totals_from_cart_when_no_volume_discount(form_values):
    payload = build(form_values).to_dict()

    assert payload["subTotal"] == 1000
    assert payload["subTotalWithVD"] is None
    assert payload["overallTax"] == 180
    assert payload["calculatedTotal"] == 1180.4
    assert payload["roundingAdjustment"] == -0.4
    assert payload["grandTotal"] == 1180
    assert payload["totalLP"] == 1200
    assert payload["versionLevelVolumeDisscount"] is False


def test_totals_from_volume_discount_view(form_values):
    form_values["VDapplied"] = True
    form_values["dbProductDetails"][1]["volumeDiscountApplied"] = True

    payload = build(form_values).to_dict()

    assert payload["subTotal"] == 1000
    assert payload["subTotalWithVD"] == 900
    assert payload["overallTax"] == 162
    assert payload["grandTotal"] == 1062
    assert payload["versionLevelVolumeDisscount"] is True


def test_missing_totals_become_zero():
    payload = assemble({"dbProductDetails": []}, version_timestamp=TIMESTAMP)
    assert payload.grand_total == 0
    assert payload.sub_total == 0
    assert payload.db_product_details == []
    assert payload.version_created_timestamp == TIMESTAMP


# ---------------------------------------------------------------------------
# Header fields
# ---------------------------------------------------------------------------

def test_header_fields(form_values, overview_values):
    payload = build(form_values, overview_values).to_dict()

    assert payload["versionCreatedTimestamp"] == TIMESTAMP
    assert payload["modifiedByUsername"] == "Jane Doe, Acme"
    assert payload["buyerReferenceNumber"] == "PO-42"
    assert payload["comment"] is None
    assert payload["quoteUsers"] == [11, 12, 13]
    assert payload["tagsList"] == ["t1"]
    assert payload["quoteDivisionId"] == 4
    assert payload["quoteTypeId"] == 2
    assert payload["buyerBranchId"] == 77
    assert payload["payerCode"] == "S-1"
    assert payload["payerBranchName"] == "HQ"
    assert payload["additionalTerms"] == "Net 30"
    assert "removedDbProductDetails" not in payload


def test_falls_back_to_persisted_version(form_values):
    persisted = {"quotationDetails": [{
        "buyerReferenceNumber": "PO-OLD",
        "comment": " keep me ",
        "quoteUsers": [{"id": 1}],
        "quoteType": 5,
        "quoteName": "Spring order",
        "sellerCompanyName": "Seller Co",
        "shippingAddressDetails": {"city": "Mumbai", "email": ""},
    }]}

    payload = build(form_values, {}, persisted).to_dict()

    assert payload["buyerReferenceNumber"] == "PO-OLD"
    assert payload["comment"] == "keep me"
    assert payload["quoteUsers"] == [1]
    assert payload["quoteTypeId"] == 5
    assert payload["quoteName"] == "Spring order"
    assert payload["sellerCompanyName"] == "Seller Co"
    assert payload["shippingAddressDetails"]["city"] == "Mumbai"
    assert payload["shippingAddressDetails"]["email"] is None


def test_modified_by_username_skips_blank_parts(form_values):
    payload = assemble(form_values, display_name="  ", company_name="Acme",
                       version_timestamp=TIMESTAMP)
    assert payload.modified_by_username == "Acme"


def test_numeric_header_values_pass_through():
    payload = assemble({"dbProductDetails": [], "versionCreatedTimestamp": 1760693400},
                       {"buyerReferenceNumber": 12345})
    out = payload.to_dict()
    assert out["buyerReferenceNumber"] == 12345
    assert out["versionCreatedTimestamp"] == 1760693400


def test_format_address_fixed_keys():
    address = format_address({"city": "Pune", "pincode": 411001, "email": "", "extra": "x"})

    assert address["city"] == "Pune"
    assert address["addressLine"] == ""
    assert address["pinCodeId"] == 411001
    assert address["email"] is None
    assert address["billToCode"] is None
    assert "extra" not in address
    assert format_address(None) is None


# ---------------------------------------------------------------------------
# Lines
# ---------------------------------------------------------------------------

def test_lines_are_flattened(form_values):
    lines = build(form_values).to_dict()["dbProductDetails"]

    existing = lines[0]
    assert existing["lineNo"] == 1
    assert existing["itemNo"] == "A1"
    assert existing["accountOwnerId"] == 5
    assert existing["divisionId"] == 3
    assert existing["businessUnitId"] == "BU1"
    assert existing["orderWareHouseId"] == 9
    assert existing["orderWareHouseName"] == "Central"
    for nested in ("accountOwner", "division", "businessUnit", "wareHouse"):
        assert nested not in existing
    assert existing["unitPrice"] == 100
    assert existing["pfPercentage"] == 2
    assert existing["pfValue"] is None
    assert existing["productDiscounts"][0]["discounId"] == "D1"
    assert existing["productDiscounts"][0]["discountPercentage"] == 10


@pytest.mark.parametrize("terms_pf,pf_rate,expected", [
    (5, 2, 2),
    (None, 3, 3),
    (5, None, None),
    (0, 0, None),
    (5, 0, 0),
])
def test_pf_percentage_is_sent_from_pf_rate(form_values, terms_pf, pf_rate, expected):
    form_values["quoteTerms"]["pfPercentage"] = terms_pf
    form_values["pfRate"] = pf_rate

    lines = build(form_values).to_dict()["dbProductDetails"]

    assert [line["pfPercentage"] for line in lines] == [expected] * 3


def test_new_line_has_no_line_or_item_number(form_values):
    new_line = build(form_values).to_dict()["dbProductDetails"][1]
    assert new_line["lineNo"] is None
    assert new_line["itemNo"] is None
    assert new_line["unitPrice"] == 0
    assert new_line["accountOwnerId"] is None
    assert new_line["businessUnitId"] == ""


def test_removed_lines_are_mapped_after_active_lines(form_values):
    lines = build(form_values).to_dict()["dbProductDetails"]
    assert [line["productId"] for line in lines] == [1, 2, 3]
    assert lines[2]["lineNo"] == 3


@pytest.mark.parametrize("is_inter,expected", [
    (True, ["IGST"]),
    (False, ["CGST", "SGST"]),
])
def test_product_taxes_follow_regime(form_values, is_inter, expected):
    form_values["isInter"] = is_inter
    line = build(form_values).to_dict()["dbProductDetails"][0]
    assert [t["taxName"] for t in line["productTaxes"]] == expected


def test_map_line_accepts_line_items():
    line = LineItem.from_dict({"productId": 1, "unitListPrice": "12", "bundleProducts": []})
    mapped = map_line(line, is_inter=True, pf_percentage=None)
    assert mapped["unitListPrice"] == 12
    assert mapped["pfPercentage"] is None
    assert mapped["productDiscounts"] == []


def test_only_selected_bundle_products_are_sent():
    payload = form_bundle_products_payload([
        {"productId": 1, "bundleSelected": True, "isBundleSelected_fe": True},
        {"productId": 2, "bundleSelected": True, "isBundleSelected_fe": False},
        {"productId": 3, "bundleSelected": False, "isBundleSelected_fe": 1},
    ])
    assert [b["productId"] for b in payload] == [1, 3]
    assert [b["bundleSelected"] for b in payload] == [1, 0]


def test_payload_model_keeps_wire_names():
    payload = QuotationPayload(sub_total_with_vd=5, version_level_volume_discount=True)
    out = payload.to_dict()
    assert out["subTotalWithVD"] == 5
    assert out["versionLevelVolumeDisscount"] is True
