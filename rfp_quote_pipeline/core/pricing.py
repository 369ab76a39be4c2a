"""
Margin-based pricing for matched line items.
"""

import logging
from decimal import Decimal, DecimalException, localcontext
from typing import Dict, Iterable, List

from .models import Number, ResolvedLineItem
from .utils import coerce_quantity, round_money, to_decimal

logger = logging.getLogger(__name__)

# Significant digits for price arithmetic; larger results are left unpriced
PRICE_PRECISION = 60


def unit_price_for(unit_cost: Decimal, margin_percent: Number) -> Decimal:
    """Sale price per unit: cost marked up by margin_percent, rounded half-up to cents."""
    margin = to_decimal(margin_percent, default=Decimal(0))
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        return round_money(unit_cost * (1 + margin / 100))


def enrich(item: ResolvedLineItem, margin_percent: Number) -> ResolvedLineItem:
    """
    Compute unit and total price for a line item.

    Prices are always recomputed from the matched entry's cost, so repeated
    enrichment with the same margin yields the same numbers. The total is
    derived from the rounded unit price, the way a reader would check it.
    An amount too large to represent in cents leaves the item unpriced.
    """
    entry = item.matched_entry
    if entry is None:
        return item.with_pricing(None, None)

    try:
        unit_price = unit_price_for(entry.unit_cost, margin_percent)
        with localcontext() as ctx:
            ctx.prec = PRICE_PRECISION
            total_price = round_money(unit_price * coerce_quantity(item.quantity))
    except DecimalException as e:
        logger.warning("Cannot price line item %s (quantity %s): %r", item.id, item.quantity, e)
        return item.with_pricing(None, None)
    return item.with_pricing(unit_price, total_price)


def enrich_all(items: Iterable[ResolvedLineItem], margin_percent: Number) -> List[ResolvedLineItem]:
    """Enrich a batch with a single margin rate."""
    return [enrich(item, margin_percent) for item in items]


def proposal_totals(items: Iterable[ResolvedLineItem]) -> Dict:
    """Subtotal of priced items and count of items still needing a quote."""
    subtotal = Decimal("0.00")
    priced = 0
    unpriced = 0
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        for item in items:
            if item.total_price is None:
                unpriced += 1
            else:
                subtotal += item.total_price
                priced += 1
    return {"subtotal": subtotal, "priced_items": priced, "unpriced_items": unpriced}
