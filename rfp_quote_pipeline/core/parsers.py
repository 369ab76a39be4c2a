"""
Parsers for coercing free-form oracle output into structured data.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from .models import MatchVerdict
from .utils import to_decimal

logger = logging.getLogger(__name__)

JSON_FENCE_PATTERN = re.compile(r"```json\s*([\s\S]*?)```", re.IGNORECASE)
ANY_FENCE_PATTERN = re.compile(r"```(?:[^\n`]*\n)?([\s\S]*?)```")

VERDICT_CODE_KEYS = ("chosenSkuCode", "chosenCode", "chosen_code")


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def extract_json(text: Optional[str]) -> Any:
    """
    Extract a JSON value from an LLM response.

    Tries, in order: the whole response, the contents of a ```json fenced
    block, then the contents of any fenced block. Returns None when nothing
    parses.
    """
    if not text:
        return None

    result = _try_json(text.strip())
    if result is not None:
        return result

    for pattern in (JSON_FENCE_PATTERN, ANY_FENCE_PATTERN):
        for m in pattern.finditer(text):
            result = _try_json(m.group(1).strip())
            if result is not None:
                return result
            logger.debug("Failed to parse fenced block: %.200s", m.group(1))

    return None


def parse_confidence(value) -> int:
    """Coerce an oracle confidence to an int in [0, 100]; junk becomes 0."""
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    d = to_decimal(value)
    if d is None:
        return 0
    return max(0, min(100, int(d)))


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    if not s or s.lower() in ("null", "none"):
        return None
    return s


def parse_verdict(raw: Optional[str]) -> Optional[MatchVerdict]:
    """
    Parse an oracle response into a MatchVerdict.

    Returns None if no JSON object can be recovered from the response.
    """
    payload = extract_json(raw)
    if not isinstance(payload, dict):
        return None

    code = None
    for key in VERDICT_CODE_KEYS:
        if key in payload:
            code = _optional_str(payload[key])
            break

    rationale = payload.get("rationale") or payload.get("reasoning") or ""
    return MatchVerdict(
        chosen_code=code,
        confidence=parse_confidence(payload.get("confidence", 0)),
        rationale=str(rationale).strip(),
    )


def _str_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def parse_rfp_fields(raw: Optional[str]) -> Optional[Dict]:
    """
    Parse RFP header fields (buyer, deadline, summary, requirements).

    Returns None if the response holds no JSON object.
    """
    payload = extract_json(raw)
    if not isinstance(payload, dict):
        return None
    return {
        "buyer_name": _optional_str(payload.get("buyerName")),
        "deadline": _optional_str(payload.get("deadline")),
        "summary": str(payload.get("summary") or "").strip(),
        "key_requirements": _str_list(payload.get("keyRequirements")),
        "disqualifying_conditions": _str_list(payload.get("disqualifyingConditions")),
    }


def parse_line_items(raw: Optional[str]) -> List[Dict]:
    """
    Parse extracted line items.

    Accepts a bare JSON array or an object wrapping it under "lineItems" or
    "items". Entries without a description are dropped. Returns [] on failure.
    """
    payload = extract_json(raw)
    if isinstance(payload, dict):
        payload = payload.get("lineItems", payload.get("items"))
    if not isinstance(payload, list):
        return []

    items = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        description = _optional_str(entry.get("description"))
        if not description:
            continue
        quantity = to_decimal(entry.get("quantity"))
        items.append({
            "description": description,
            "quantity": quantity if quantity is not None and quantity > 0 else None,
            "unit": _optional_str(entry.get("unit")),
            "notes": _optional_str(entry.get("notes")),
        })
    return items
