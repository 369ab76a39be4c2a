"""
Catalog loading from CSV exports.
"""

import csv
import logging
import uuid
from collections import Counter
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List

from .models import CatalogEntry
from .utils import to_decimal

logger = logging.getLogger(__name__)

# Accepted column names per field, first non-empty wins
COLUMN_ALIASES = {
    "code": ["code", "skuCode", "sku_code", "SKU Code", "SKU", "id"],
    "name": ["name", "Name", "Product Name"],
    "description": ["description", "Description"],
    "category": ["category", "Category"],
    "pack_size": ["packSize", "pack_size", "Pack Size", "Pack"],
    "unit_cost": ["unitCost", "unit_cost", "baseCost", "Base Cost", "Cost"],
}

UNKNOWN_CODE = "UNKNOWN"


def _field(row: Dict, key: str) -> str:
    for column in COLUMN_ALIASES[key]:
        value = row.get(column)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def parse_catalog_row(row: Dict) -> CatalogEntry:
    """Map one loosely-named CSV row to a CatalogEntry, defaulting bad fields."""
    cost = to_decimal(_field(row, "unit_cost"), default=Decimal("0"))
    if cost < 0:
        cost = Decimal("0")
    return CatalogEntry(
        id=uuid.uuid4().hex[:12],
        code=_field(row, "code") or UNKNOWN_CODE,
        name=_field(row, "name"),
        description=_field(row, "description"),
        category=_field(row, "category"),
        pack_size=_field(row, "pack_size"),
        unit_cost=cost,
    )


def parse_catalog_rows(rows: Iterable[Dict]) -> List[CatalogEntry]:
    """Convert CSV rows to catalog entries, skipping fully blank rows."""
    entries = []
    for row in rows:
        if not any(str(v).strip() for v in row.values() if v is not None):
            continue
        entries.append(parse_catalog_row(row))
    return entries


def load_catalog_csv(path: Path) -> List[CatalogEntry]:
    """
    Load a catalog CSV export.

    Raises:
        FileNotFoundError: if the file does not exist
    """
    with path.open("r", newline="", encoding="utf-8-sig") as f:
        entries = parse_catalog_rows(csv.DictReader(f))

    counts = Counter(e.code for e in entries)
    duplicates = sorted(code for code, n in counts.items() if n > 1)
    if duplicates:
        logger.warning("Duplicate SKU codes in %s: %s", path.name, ", ".join(duplicates))
    logger.info("Loaded %d SKU(s) from %s", len(entries), path.name)
    return entries
