"""Tests for the oracle adapter and the provider-backed oracle."""

import json

import pytest

from rfp_quote_pipeline.core import llm
from rfp_quote_pipeline.core.llm import (FALLBACK_RATIONALE, LLMOracle, LLMProvider, OracleError,
                                         analyze_rfp, build_match_context, extract_line_items,
                                         match_line_item)
from rfp_quote_pipeline.core.models import LineItemRequest, MatchVerdict

from conftest import FakeOracle, verdict_json


ITEM = LineItemRequest(id="R-L0", description="500ml still water PET bottles",
                       quantity=240, unit="bottle", notes="case packs preferred")


class TestMatchLineItem:

    def test_parses_oracle_verdict(self, catalog):
        oracle = FakeOracle(verdicts={ITEM.description: verdict_json("W500", 90, "exact")})
        verdict = match_line_item(ITEM, catalog[:3], oracle)
        assert verdict == MatchVerdict(chosen_code="W500", confidence=90, rationale="exact")

    def test_fenced_response(self, catalog):
        raw = 'Sure! ```json\n{"chosenSkuCode":"W500","confidence":70,"rationale":"pack size matches"}\n```'
        oracle = FakeOracle(verdicts={ITEM.description: raw})
        verdict = match_line_item(ITEM, catalog[:3], oracle)
        assert verdict == MatchVerdict(chosen_code="W500", confidence=70, rationale="pack size matches")

    def test_garbage_falls_back(self, catalog):
        oracle = FakeOracle(verdicts={ITEM.description: "I think the water one?"})
        verdict = match_line_item(ITEM, catalog[:3], oracle)
        assert verdict == MatchVerdict(chosen_code=None, confidence=0,
                                       rationale="oracle failed to produce a parseable verdict")

    def test_oracle_exception_falls_back(self, catalog):
        oracle = FakeOracle(verdicts={ITEM.description: OracleError("connection refused")})
        verdict = match_line_item(ITEM, catalog[:3], oracle)
        assert verdict.chosen_code is None
        assert verdict.confidence == 0
        assert verdict.rationale == FALLBACK_RATIONALE

    def test_timeout_treated_like_parse_failure(self, catalog):
        oracle = FakeOracle(verdicts={ITEM.description: TimeoutError("read timed out")})
        assert match_line_item(ITEM, catalog[:3], oracle).rationale == FALLBACK_RATIONALE

    def test_empty_candidates_skip_oracle(self):
        oracle = FakeOracle()
        verdict = match_line_item(ITEM, [], oracle)
        assert verdict.chosen_code is None
        assert verdict.confidence == 0
        assert oracle.calls == []

    def test_adapter_does_not_validate_code(self, catalog):
        # validation against the candidate set is the caller's job
        oracle = FakeOracle(verdicts={ITEM.description: verdict_json("Z9")})
        assert match_line_item(ITEM, catalog[:3], oracle).chosen_code == "Z9"

    def test_context_lists_only_candidates(self, catalog):
        oracle = FakeOracle()
        match_line_item(ITEM, catalog[:2], oracle)
        instructions, context = oracle.calls[0]
        assert "Pack size must match" in instructions
        assert "W500" in context and "W1500" in context
        assert "S330" not in context


class TestBuildMatchContext:

    def test_includes_item_fields_and_candidates(self, catalog):
        context = build_match_context(ITEM, catalog[:1])
        assert "Description: 500ml still water PET bottles" in context
        assert "Quantity: 240" in context
        assert "Notes: case packs preferred" in context
        candidates = json.loads(context.split("Candidate SKUs:\n", 1)[1])
        assert candidates == [{
            "skuCode": "W500",
            "name": "Still Water",
            "description": "Natural spring water PET bottle",
            "category": "Beverages",
            "packSize": "500ml",
        }]

    def test_unknown_fields(self, catalog):
        item = LineItemRequest(id="x", description="cups")
        context = build_match_context(item, catalog[:1])
        assert "Quantity: unspecified" in context
        assert "Unit: unspecified" in context
        assert "Notes: none" in context


class TestAnalyzeAndExtract:

    def test_analyze_rfp(self):
        oracle = FakeOracle(analysis='{"buyerName": "Acme", "summary": "Water", "keyRequirements": []}')
        fields = analyze_rfp("RFP body", oracle)
        assert fields["buyer_name"] == "Acme"
        assert oracle.calls[0][1].startswith("RFP Text:\nRFP body")

    def test_analyze_rfp_unparseable_raises(self):
        with pytest.raises(OracleError):
            analyze_rfp("RFP body", FakeOracle(analysis="no idea"))

    def test_analyze_rfp_propagates_oracle_failure(self):
        with pytest.raises(OracleError):
            analyze_rfp("RFP body", FakeOracle(analysis=OracleError("down")))

    def test_long_rfp_text_is_truncated(self, monkeypatch):
        monkeypatch.setattr(llm, "MAX_RFP_CHARS", 10)
        oracle = FakeOracle(analysis='{"summary": ""}')
        analyze_rfp("0123456789ABCDEF", oracle)
        assert oracle.calls[0][1] == "RFP Text:\n0123456789"

    def test_extract_line_items(self):
        oracle = FakeOracle(line_items='[{"description": "Napkins", "quantity": 5}]')
        items = extract_line_items("RFP body", oracle)
        assert [i["description"] for i in items] == ["Napkins"]

    def test_extract_line_items_unparseable_is_empty(self):
        assert extract_line_items("RFP body", FakeOracle(line_items="nothing")) == []


class TestLLMOracle:

    def test_default_models(self):
        assert LLMOracle("openai").model == "gpt-4o-mini"
        assert LLMOracle("groq").model == "llama-3.3-70b-versatile"
        assert LLMOracle("anthropic", model="claude-x").model == "claude-x"

    def test_unsupported_provider(self):
        with pytest.raises(ValueError, match="Unsupported LLM provider"):
            LLMOracle("palm")

    def test_client_is_not_created_eagerly(self):
        oracle = LLMOracle("openai")
        assert oracle._client is None

    def test_routes_anthropic_separately(self, monkeypatch):
        oracle = LLMOracle("anthropic")
        monkeypatch.setattr(oracle, "_call_anthropic", lambda i, c: f"anthropic:{c}")
        assert oracle.complete("do it", "ctx") == "anthropic:ctx"
        assert oracle.provider == LLMProvider.ANTHROPIC

    def test_retries_then_succeeds(self, monkeypatch):
        oracle = LLMOracle("openai", max_retries=2, retry_backoff=0)
        attempts = []

        def flaky(instructions, context):
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("reset by peer")
            return "{}"

        monkeypatch.setattr(oracle, "_call_chat_completions", flaky)
        assert oracle.complete("i", "c") == "{}"
        assert len(attempts) == 3

    def test_gives_up_after_bounded_retries(self, monkeypatch):
        oracle = LLMOracle("groq", max_retries=1, retry_backoff=0)
        attempts = []

        def down(instructions, context):
            attempts.append(1)
            raise ConnectionError("unreachable")

        monkeypatch.setattr(oracle, "_call_chat_completions", down)
        with pytest.raises(OracleError, match="after 2 attempt"):
            oracle.complete("i", "c")
        assert len(attempts) == 2

    def test_failure_degrades_through_adapter(self, monkeypatch, catalog):
        oracle = LLMOracle("openai", max_retries=0)

        def down(instructions, context):
            raise ConnectionError("down")

        monkeypatch.setattr(oracle, "_call_chat_completions", down)
        verdict = match_line_item(ITEM, catalog[:2], oracle)
        assert verdict.rationale == FALLBACK_RATIONALE

    def test_permanent_errors_are_not_retried(self, monkeypatch):
        oracle = LLMOracle("anthropic", max_retries=2, retry_backoff=0)
        attempts = []

        def empty_content(instructions, context):
            attempts.append(1)
            raise IndexError("list index out of range")

        monkeypatch.setattr(oracle, "_call_anthropic", empty_content)
        with pytest.raises(OracleError, match="anthropic call failed"):
            oracle.complete("i", "c")
        assert len(attempts) == 1

    def test_sdk_connection_error_is_retried(self, monkeypatch):
        openai = pytest.importorskip("openai")
        httpx = pytest.importorskip("httpx")
        oracle = LLMOracle("openai", max_retries=1, retry_backoff=0)
        attempts = []

        def unreachable(instructions, context):
            attempts.append(1)
            raise openai.APIConnectionError(
                request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))

        monkeypatch.setattr(oracle, "_call_chat_completions", unreachable)
        with pytest.raises(OracleError, match="after 2 attempt"):
            oracle.complete("i", "c")
        assert len(attempts) == 2

    def test_sdk_retries_disabled(self):
        assert LLMOracle("openai")._client_kwargs() == {"max_retries": 0}
        assert LLMOracle("groq", timeout=5)._client_kwargs() == {"max_retries": 0, "timeout": 5}
