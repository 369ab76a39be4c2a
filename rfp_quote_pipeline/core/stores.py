"""
In-memory stores for the catalog snapshot and analyzed RFPs.
"""

import threading
from typing import Dict, Iterable, Optional, Tuple

from .models import CatalogEntry, RfpRecord


class RfpNotFoundError(KeyError):
    """Raised when an RFP id is not in the store."""


class CatalogStore:
    """
    Holds the current catalog snapshot.

    The catalog is replaced wholesale on reload. Readers take an immutable
    snapshot and keep using it even if a reload happens meanwhile.
    """

    def __init__(self, entries: Optional[Iterable[CatalogEntry]] = None):
        self._lock = threading.Lock()
        self._entries: Tuple[CatalogEntry, ...] = tuple(entries or ())

    def replace(self, entries: Iterable[CatalogEntry]) -> int:
        """Swap in a new catalog. Returns the number of entries loaded."""
        snapshot = tuple(entries)
        with self._lock:
            self._entries = snapshot
        return len(snapshot)

    def snapshot(self) -> Tuple[CatalogEntry, ...]:
        with self._lock:
            return self._entries


class RfpStore:
    """Analyzed RFP records keyed by id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, RfpRecord] = {}

    def add(self, record: RfpRecord) -> RfpRecord:
        with self._lock:
            self._records[record.id] = record
        return record

    def get(self, rfp_id: str) -> RfpRecord:
        with self._lock:
            try:
                return self._records[rfp_id]
            except KeyError:
                raise RfpNotFoundError(rfp_id) from None
