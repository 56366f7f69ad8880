"""
Golden test cases for volume discount regression testing.
These capture the expected single-line Mode A pricing and should fail if
discount, P&F or tax arithmetic changes unexpectedly.
"""
import csv
import os

import pytest

from conftest import gst_hsn
from quote_pricing.config.settings import CalculationSettings
from quote_pricing.engine.tax_resolver import resolve_tax
from quote_pricing.engine.volume_discount import calc_tiered


def load_golden_cases():
    """Load golden test cases from CSV."""
    cases_path = os.path.join(os.path.dirname(__file__), 'golden_cases.csv')

    cases = []
    with open(cases_path, 'r', newline='', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for row in reader:
            cases.append(row)

    return cases


@pytest.mark.parametrize("case", load_golden_cases(), ids=lambda c: c['case'])
def test_golden_case(case):
    """Tiered discount pricing matches the expected golden case."""
    line = {"productId": 1, "itemNo": "A1",
            "unitListPrice": float(case['unit_list_price']),
            "quantity": float(case['quantity'])}
    lines = resolve_tax([line], {1: gst_hsn(float(case['tax_rate']))}, is_inter=True)
    tiers = [{"itemNo": "A1", "appliedDiscount": float(case['applied_discount'])}]

    result = calc_tiered(True, lines, tiers, float(case['sub_total']),
                         float(case['pf_rate_base']), CalculationSettings(), False, 0)

    priced = result.lines[0]
    assert priced.unit_price == float(case['expected_unit_price']), \
        f"Unit price mismatch for {case['case']}: got {priced.unit_price}"
    assert priced.total_price == float(case['expected_total_price'])
    assert priced.pf_rate == float(case['expected_pf_rate'])
    assert priced.total_tax == float(case['expected_tax'])
    assert result.vd_details.grand_total == float(case['expected_grand_total']), \
        f"Grand total mismatch for {case['case']}: got {result.vd_details.grand_total}"
