"""
Lexical candidate selection against the catalog.
"""

from typing import List, Sequence, Set

from .models import CatalogEntry
from .utils import tokenize

DEFAULT_CANDIDATE_LIMIT = 5


def score_entry(query_tokens: Set[str], entry: CatalogEntry) -> int:
    """Number of query tokens present in the entry's name/description/category/pack size."""
    return len(query_tokens & tokenize(entry.search_text()))


def select_candidates(query_text: str, catalog: Sequence[CatalogEntry],
                      limit: int = DEFAULT_CANDIDATE_LIMIT) -> List[CatalogEntry]:
    """
    Shortlist catalog entries for a line item, best-first.

    Entries are ranked by token overlap with the query. Ties keep catalog
    order. Zero-score entries still fill the shortlist so the oracle always
    has something to reject. With no query tokens, the first `limit` entries
    are returned unscored.

    Args:
        query_text: Free text of the requested line item
        catalog: Catalog snapshot
        limit: Maximum number of candidates

    Returns:
        At most `limit` entries (exactly `limit` when the catalog is large enough)
    """
    if limit <= 0 or not catalog:
        return []

    query_tokens = tokenize(query_text)
    if not query_tokens:
        return list(catalog[:limit])

    # sorted() is stable, so equal scores keep catalog order
    scored = sorted(catalog, key=lambda entry: score_entry(query_tokens, entry), reverse=True)
    return scored[:limit]
