"""
Pricing extraction — pull per-part pricing and catalog ids out of supplier responses.
Version: 1.0.0
"""
import logging
from typing import Any, Dict, List, Optional

from supplier_sync.core.constants.sync import DEFAULT_CURRENCY

logger = logging.getLogger("pricing_extract")


def to_float(value: Any) -> Optional[float]:
    """Convert value to float, returning None if missing or invalid."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def _rows(data: Any, *keys: str) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return [row for row in data if isinstance(row, dict)]
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return [row for row in value if isinstance(row, dict)]
    return []


def _part_id(row: Dict[str, Any]) -> str:
    return str(row.get("partId") or row.get("vcpn") or row.get("part_id") or "").strip()


def extract_pricing_rows(data: Any) -> Dict[str, Dict[str, Any]]:
    """
    Map part id to normalized pricing fields for a bulk pricing response.

    Accepts {"prices": [...]}, {"items": [...]} or a bare list. Rows without a
    part id are skipped; keys are upper-cased so lookups ignore case.
    """
    default_currency = data.get("currency", DEFAULT_CURRENCY) if isinstance(data, dict) else DEFAULT_CURRENCY
    pricing = {}
    for row in _rows(data, "prices", "items", "parts"):
        part_id = _part_id(row)
        if not part_id:
            logger.warning(f"Skipping pricing row without part id: {str(row)[:200]}")
            continue
        pricing[part_id.upper()] = {
            "price": to_float(row.get("price")),
            "cost": to_float(row.get("cost")),
            "list_price": to_float(row.get("listPrice")),
            "core_charge": to_float(row.get("coreCharge")),
            "currency": row.get("currency") or default_currency,
        }
    return pricing


def extract_catalog_part_ids(data: Any) -> List[str]:
    """Part ids from a full inventory/catalog response, in supplier order, without duplicates."""
    seen = set()
    part_ids = []
    for row in _rows(data, "items", "parts", "inventory"):
        part_id = _part_id(row)
        if part_id and part_id not in seen:
            seen.add(part_id)
            part_ids.append(part_id)
    return part_ids
