"""Shared test fixtures for the RFP quote pipeline test suite."""

import json
import re
import threading
from decimal import Decimal

import pytest

from rfp_quote_pipeline.core.llm import (ANALYZE_INSTRUCTIONS, EXTRACT_INSTRUCTIONS,
                                         MATCH_INSTRUCTIONS, ReasoningOracle)
from rfp_quote_pipeline.core.models import CatalogEntry, LineItemRequest


class FakeOracle(ReasoningOracle):
    """
    Scripted oracle.

    Match requests are answered from `verdicts`, keyed by line item
    description; each value is a raw response string or an Exception to raise.
    Unknown descriptions get a no-match JSON verdict.
    """

    def __init__(self, verdicts=None, analysis=None, line_items=None):
        self.verdicts = verdicts or {}
        self.analysis = analysis
        self.line_items = line_items
        self.calls = []
        self._lock = threading.Lock()

    def complete(self, instructions, context):
        with self._lock:
            self.calls.append((instructions, context))

        if instructions == ANALYZE_INSTRUCTIONS:
            return self._respond(self.analysis)
        if instructions == EXTRACT_INSTRUCTIONS:
            return self._respond(self.line_items)
        assert instructions == MATCH_INSTRUCTIONS

        description = re.search(r"^Description: (.*)$", context, re.MULTILINE).group(1)
        response = self.verdicts.get(description)
        if response is None:
            return json.dumps({"chosenSkuCode": None, "confidence": 10, "rationale": "nothing fits"})
        return self._respond(response)

    @staticmethod
    def _respond(response):
        if isinstance(response, Exception):
            raise response
        if response is None:
            return ""
        return response

    def match_calls(self):
        return [c for c in self.calls if c[0] == MATCH_INSTRUCTIONS]


def verdict_json(code, confidence=80, rationale="pack size and product type match"):
    return json.dumps({"chosenSkuCode": code, "confidence": confidence, "rationale": rationale})


def make_entry(code, name="", description="", category="", pack_size="", unit_cost="0"):
    return CatalogEntry(id=f"id-{code}", code=code, name=name, description=description,
                        category=category, pack_size=pack_size, unit_cost=Decimal(unit_cost))


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def catalog():
    """Small beverage/packaging catalog."""
    return [
        make_entry("W500", "Still Water", "Natural spring water PET bottle", "Beverages", "500ml", "0.40"),
        make_entry("W1500", "Still Water", "Natural spring water PET bottle", "Beverages", "1.5L", "0.85"),
        make_entry("S330", "Sparkling Water", "Carbonated mineral water aluminium can", "Beverages", "330ml", "0.55"),
        make_entry("OJ1", "Orange Juice", "Not from concentrate orange juice carton", "Juices", "1L", "1.90"),
        make_entry("CUP8", "Paper Cup", "Single wall hot drink cup", "Disposables", "8oz x 50", "3.10"),
        make_entry("NAP1", "Napkins", "White two-ply paper napkins", "Disposables", "pack of 100", "2.00"),
    ]


@pytest.fixture
def line_items():
    return [
        LineItemRequest(id="R-L0", description="500ml still water PET bottles", quantity=240, unit="bottle"),
        LineItemRequest(id="R-L1", description="Orange juice 1L cartons", quantity=24, unit="carton"),
        LineItemRequest(id="R-L2", description="Hot drink paper cups 8oz", quantity=10, unit="pack"),
        LineItemRequest(id="R-L3", description="Folding banquet tables", quantity=4, unit=None),
    ]
