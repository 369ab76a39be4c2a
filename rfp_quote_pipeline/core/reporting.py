"""
Quote output: priced line items as CSV and proposal data as JSON.

Numbers are written exactly as the pricing step computed them; nothing here
recomputes a price.
"""

import csv
import json
from pathlib import Path
from typing import Dict, List

from .models import ResolvedLineItem, RfpRecord
from .pricing import proposal_totals
from .utils import money_fmt

CSV_FIELDS = ["id", "description", "quantity", "unit", "notes", "sku_code", "sku_name",
              "confidence", "rationale", "unit_price", "total_price"]


def write_csv(items: List[ResolvedLineItem], out_csv: Path):
    """Write priced line items to CSV file."""
    with out_csv.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        w.writeheader()
        for item in items:
            w.writerow(item.to_dict())


def build_proposal_data(record: RfpRecord) -> Dict:
    """Everything a proposal document needs: RFP header, priced items, totals."""
    totals = proposal_totals(record.line_items)
    data = record.to_dict()
    data["totals"] = {
        "subtotal": f"{totals['subtotal']:.2f}",
        "priced_items": totals["priced_items"],
        "unpriced_items": totals["unpriced_items"],
    }
    return data


def write_proposal_json(record: RfpRecord, out_json: Path):
    """Write proposal data to JSON file."""
    with out_json.open("w", encoding="utf-8") as f:
        json.dump(build_proposal_data(record), f, indent=2)
        f.write("\n")


def format_summary(record: RfpRecord) -> List[str]:
    """Console lines summarising a priced RFP."""
    lines = []
    for item in record.line_items:
        sku = item.matched_entry.code if item.matched_entry else "NO MATCH"
        price = money_fmt(item.total_price) or "TBD"
        lines.append(f"  {item.id}: {item.description[:50]:<50} {sku:<12} {price:>12}")
    totals = proposal_totals(record.line_items)
    lines.append(f"  Subtotal: {money_fmt(totals['subtotal'])} "
                 f"({totals['priced_items']} priced, {totals['unpriced_items']} need a quote)")
    return lines
