import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_pricing.config.settings import ENV_VAR_MAPPING, CalculationSettings, reset_settings


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Every test starts from built-in defaults, whatever the shell exports."""
    for env_var in ENV_VAR_MAPPING:
        monkeypatch.delenv(env_var, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return CalculationSettings()


def gst_hsn(rate=18.0, cess=0.0):
    """HSN details with IGST inter-state and CGST/SGST intra-state, optional compound CESS."""
    inter = [{"taxName": "IGST", "rate": rate, "compound": False}]
    intra = [{"taxName": "CGST", "rate": rate / 2, "compound": False},
             {"taxName": "SGST", "rate": rate / 2, "compound": False}]
    if cess:
        inter.insert(0, {"taxName": "CESS", "rate": cess, "compound": True})
        intra.insert(0, {"taxName": "CESS", "rate": cess, "compound": True})
    return {
        "tax": rate,
        "hsnCode": "8471",
        "interTax": {"totalTax": rate, "taxReqLs": inter},
        "intraTax": {"totalTax": rate, "taxReqLs": intra},
    }
