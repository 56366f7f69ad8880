"""
Pricing Tables - loads discount tier and special-pricing exports.

Both collaborators ship flat CSV exports; these loaders turn them into the
in-memory shapes the engine consumes:
- Tier list: ``list[VolumeDiscountTier]`` (optionally keyed by seller)
- Pricing table: ``{seller_key: [pricing entry, ...]}`` with blank sellers
  under "no-seller-id"
"""
import logging
from pathlib import Path
from typing import Any, Union

import pandas as pd

from ..engine.models import NO_SELLER_KEY, NO_SELLER_PRICING_KEY, VolumeDiscountTier

logger = logging.getLogger(__name__)

TableSource = Union[str, Path, pd.DataFrame]

TIER_COLUMNS = {
    "itemNo": "item_no",
    "ITEM_NBR": "item_no",
    "productId": "product_id",
    "appliedDiscount": "applied_discount",
    "sellerId": "seller_id",
}
PRICING_ID_COLUMNS = {"ProductVariantId": str, "sellerId": str}


def _read_table(source: TableSource, dtype: Any = None) -> pd.DataFrame:
    """Read a CSV export, or copy a DataFrame, with stripped headers."""
    if isinstance(source, pd.DataFrame):
        df = source.copy()
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Pricing table not found: {path}")
        df = pd.read_csv(path, dtype=dtype)
    df.columns = [str(c).strip() for c in df.columns]
    return df


def _clean(value: Any) -> Any:
    """NaN cells become None; stray whitespace is stripped from text."""
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if hasattr(value, "item"):
        return value.item()
    return value


def _records(df: pd.DataFrame) -> list[dict]:
    return [{k: _clean(v) for k, v in row.items()} for row in df.to_dict(orient="records")]


def load_tier_list(source: TableSource) -> list[VolumeDiscountTier]:
    """Tier rows with itemNo/productId, appliedDiscount and optional sellerId."""
    df = _read_table(source, dtype={"itemNo": str, "ITEM_NBR": str, "productId": str, "sellerId": str})
    df = df.rename(columns={k: v for k, v in TIER_COLUMNS.items() if k in df.columns})
    if "applied_discount" not in df.columns:
        logger.warning("Tier table has no appliedDiscount column, no tiers loaded")
        return []

    df["applied_discount"] = pd.to_numeric(df["applied_discount"], errors="coerce").fillna(0)
    id_columns = [c for c in ("item_no", "product_id") if c in df.columns]
    if id_columns:
        df = df.dropna(subset=id_columns, how="all")

    tiers = [VolumeDiscountTier.from_dict(row) for row in _records(df)]
    logger.debug("Loaded %d volume discount tiers", len(tiers))
    return tiers


def load_tier_lists_by_seller(source: TableSource) -> dict[str, list[VolumeDiscountTier]]:
    """Tier list split by seller; rows without a seller land in the no-seller bucket."""
    by_seller: dict[str, list[VolumeDiscountTier]] = {}
    for tier in load_tier_list(source):
        key = str(tier.seller_id) if tier.seller_id is not None else NO_SELLER_KEY
        by_seller.setdefault(key, []).append(tier)
    return by_seller


def load_pricing_table(source: TableSource) -> dict[str, list[dict]]:
    """
    Seller-keyed special-pricing entries.

    Columns: sellerId (blank -> "no-seller-id"), ProductVariantId,
    MasterPrice, BasePrice, priceNotAvailable.
    """
    df = _read_table(source, dtype=PRICING_ID_COLUMNS)
    if "ProductVariantId" not in df.columns:
        logger.warning("Pricing table has no ProductVariantId column, no entries loaded")
        return {}

    for column in ("MasterPrice", "BasePrice"):
        if column in df.columns:
            df[column] = pd.to_numeric(df[column], errors="coerce")
    if "priceNotAvailable" in df.columns:
        df["priceNotAvailable"] = (df["priceNotAvailable"].astype(str).str.strip().str.lower()
                                   .isin(["true", "1", "yes"]))

    table: dict[str, list[dict]] = {}
    for entry in _records(df.dropna(subset=["ProductVariantId"])):
        seller = entry.pop("sellerId", None)
        key = str(seller) if seller is not None else NO_SELLER_PRICING_KEY
        table.setdefault(key, []).append(entry)

    logger.debug("Loaded pricing for %d sellers", len(table))
    return table
