"""
Main RFP processing orchestration: analyze, match, price.
"""

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .candidates import DEFAULT_CANDIDATE_LIMIT, select_candidates
from .llm import (FALLBACK_RATIONALE, NO_MATCH_MAX_CONFIDENCE, ReasoningOracle, analyze_rfp,
                  extract_line_items, match_line_item)
from .models import CatalogEntry, LineItemRequest, Number, ResolvedLineItem, RfpRecord
from .pricing import enrich_all
from .stores import CatalogStore, RfpStore
from .utils import to_decimal

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class RfpProcessor:
    """Orchestrates RFP analysis, per-item SKU matching and pricing."""

    def __init__(self, oracle: ReasoningOracle,
                 catalog_store: Optional[CatalogStore] = None,
                 rfp_store: Optional[RfpStore] = None,
                 candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
                 max_workers: int = DEFAULT_MAX_WORKERS):
        """
        Initialize RFP processor.

        Args:
            oracle: Reasoning oracle used for extraction and matching
            catalog_store: Catalog snapshot holder (empty store if not given)
            rfp_store: Store for analyzed RFPs (empty store if not given)
            candidate_limit: Shortlist size passed to the oracle per line item
            max_workers: Upper bound on simultaneous oracle calls
        """
        self.oracle = oracle
        self.catalog_store = catalog_store if catalog_store is not None else CatalogStore()
        self.rfp_store = rfp_store if rfp_store is not None else RfpStore()
        self.candidate_limit = candidate_limit
        self.max_workers = max(1, max_workers)

    @staticmethod
    def query_text(item: LineItemRequest) -> str:
        """Free text used to shortlist catalog entries for an item."""
        return " ".join(part for part in (item.description, item.notes) if part)

    def resolve_item(self, item: LineItemRequest,
                     catalog: Sequence[CatalogEntry]) -> ResolvedLineItem:
        """
        Match a single line item against a catalog snapshot.

        A code the oracle returns that was not among the candidates it was
        shown is discarded and the item resolves to no match, confidence 0.
        A no-match verdict keeps its confidence only up to
        NO_MATCH_MAX_CONFIDENCE.
        """
        resolved = ResolvedLineItem.from_request(item)
        candidates = select_candidates(self.query_text(item), catalog, self.candidate_limit)
        verdict = match_line_item(item, candidates, self.oracle)

        if not verdict.is_match:
            confidence = min(verdict.confidence, NO_MATCH_MAX_CONFIDENCE)
            logger.debug("No match for %s (confidence %d): %s",
                         item.id, confidence, verdict.rationale)
            return resolved.with_match(None, confidence, verdict.rationale)

        entry = next((c for c in candidates if c.code == verdict.chosen_code), None)
        if entry is None:
            logger.warning("Oracle chose %r for %s, which was not among its %d candidate(s)",
                           verdict.chosen_code, item.id, len(candidates))
            return resolved.with_match(
                None, 0, f"oracle chose unknown SKU {verdict.chosen_code!r}; discarded")

        logger.debug("Matched %s -> %s (confidence %d)", item.id, entry.code, verdict.confidence)
        return resolved.with_match(entry, verdict.confidence, verdict.rationale)

    def match_all(self, items: Sequence[LineItemRequest],
                  catalog: Optional[Sequence[CatalogEntry]] = None) -> List[ResolvedLineItem]:
        """
        Match every line item concurrently.

        Items are independent: a failure for one degrades it to no match and
        never affects the others. Results come back in input order.

        Args:
            items: Line items to match
            catalog: Catalog snapshot (taken from the catalog store if not given)

        Returns:
            Resolved line items with match fields populated and pricing unset
        """
        if catalog is None:
            catalog = self.catalog_store.snapshot()
        catalog = tuple(catalog)
        if not items:
            return []

        logger.info("Matching %d line item(s) against %d SKU(s)", len(items), len(catalog))
        workers = min(self.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sku-match") as executor:
            futures = [executor.submit(self.resolve_item, item, catalog) for item in items]

            results = []
            for item, future in zip(items, futures):
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error("Matching failed for line item %s: %s", item.id, e)
                    results.append(ResolvedLineItem.from_request(item).with_match(
                        None, 0, FALLBACK_RATIONALE))

        matched = sum(1 for r in results if r.matched_entry is not None)
        logger.info("Matched %d of %d line item(s)", matched, len(results))
        return results

    def analyze(self, rfp_text: str) -> RfpRecord:
        """
        Extract header fields and line items from RFP text and store the record.

        Raises:
            ValueError: if the text is empty
            OracleError: if the oracle fails during analysis
        """
        if not rfp_text or not rfp_text.strip():
            raise ValueError("No RFP text provided")

        fields = analyze_rfp(rfp_text, self.oracle)
        raw_items = extract_line_items(rfp_text, self.oracle)

        rfp_id = f"RFP-{uuid.uuid4().hex[:8]}"
        line_items = [
            ResolvedLineItem(id=f"{rfp_id}-L{index}", **raw)
            for index, raw in enumerate(raw_items)
        ]
        record = RfpRecord(id=rfp_id, raw_text=rfp_text, line_items=line_items, **fields)
        logger.info("Analyzed %s: buyer=%s, %d line item(s)",
                    rfp_id, record.buyer_name or "(unknown)", len(line_items))
        return self.rfp_store.add(record)

    def match_rfp(self, rfp_id: str) -> RfpRecord:
        """
        Match all line items of a stored RFP against the current catalog.

        Raises:
            RfpNotFoundError: if the RFP id is unknown
        """
        record = self.rfp_store.get(rfp_id)
        catalog = self.catalog_store.snapshot()
        if not catalog:
            logger.warning("Catalog is empty; every line item will resolve to no match")
        requests = [li.to_request() for li in record.line_items]
        record.line_items = self.match_all(requests, catalog)
        record.margin_percent = None
        return record

    def price_rfp(self, rfp_id: str, margin_percent: Number) -> RfpRecord:
        """
        Price all line items of a stored RFP with a single margin rate.

        Raises:
            RfpNotFoundError: if the RFP id is unknown
            ValueError: if the margin is not a number
        """
        margin = to_decimal(margin_percent)
        if margin is None:
            raise ValueError(f"Invalid margin percent: {margin_percent!r}")
        record = self.rfp_store.get(rfp_id)
        record.line_items = enrich_all(record.line_items, margin)
        record.margin_percent = margin
        return record

    def run(self, rfp_text: str, margin_percent: Number) -> RfpRecord:
        """Analyze, match and price an RFP in one go."""
        record = self.analyze(rfp_text)
        self.match_rfp(record.id)
        return self.price_rfp(record.id, margin_percent)
