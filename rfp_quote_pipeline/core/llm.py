"""
LLM-backed reasoning oracle and the prompts that drive it.

Supports multiple providers (OpenAI, Anthropic, Azure OpenAI, Groq). The
oracle is treated as a black box: it takes instructions plus context and
returns free-form text. Everything that turns that text into structured
data lives in parsers.py.
"""

import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .models import CatalogEntry, LineItemRequest, MatchVerdict
from .parsers import parse_verdict, parse_rfp_fields, parse_line_items

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    AZURE_OPENAI = "azure-openai"
    GROQ = "groq"


# Default models for each provider
DEFAULT_MODELS = {
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.ANTHROPIC: "claude-3-5-haiku-20241022",
    LLMProvider.AZURE_OPENAI: "gpt-4o-mini",
    LLMProvider.GROQ: "llama-3.3-70b-versatile",
}

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

# Network-level failures worth another attempt regardless of provider
TRANSIENT_ERRORS = (ConnectionError, TimeoutError)

# Keep prompts within context limits for long RFPs
MAX_RFP_CHARS = 24000

FALLBACK_RATIONALE = "oracle failed to produce a parseable verdict"
NO_CANDIDATES_RATIONALE = "no catalog candidates to match against"

# Highest confidence a no-match verdict may carry
NO_MATCH_MAX_CONFIDENCE = 20


class OracleError(RuntimeError):
    """Raised when the oracle cannot be reached or returns nothing usable."""


class ReasoningOracle(ABC):
    """Black-box text generation: instructions + context in, free text out."""

    @abstractmethod
    def complete(self, instructions: str, context: str) -> str:
        """Return the raw oracle response."""


class LLMOracle(ReasoningOracle):
    """ReasoningOracle backed by a chat-completion API."""

    def __init__(self, provider: str = "openai", model: Optional[str] = None,
                 temperature: float = 0.2, max_tokens: int = 2048,
                 timeout: Optional[float] = None, max_retries: int = 2,
                 retry_backoff: float = 1.0):
        """
        Args:
            provider: LLM provider ("openai", "anthropic", "azure-openai", "groq")
            model: Model name (uses default for provider if not specified)
            temperature: Sampling temperature
            max_tokens: Response token limit
            timeout: Per-request timeout in seconds (SDK default if None)
            max_retries: Extra attempts after a transient failure (the SDKs do not retry on their own)
            retry_backoff: Seconds to wait per attempt number before retrying
        """
        try:
            self.provider = LLMProvider(provider)
        except ValueError:
            raise ValueError(f"Unsupported LLM provider: {provider}") from None
        self.model = model or DEFAULT_MODELS[self.provider]
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_backoff = retry_backoff
        self._client = None
        self._client_lock = threading.Lock()

    def _client_kwargs(self) -> Dict:
        kwargs = {"max_retries": 0}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs

    def _transient_errors(self) -> Tuple[type, ...]:
        """Errors that may succeed on retry: connection, timeout, rate limit, server side."""
        if self.provider == LLMProvider.ANTHROPIC:
            import anthropic as sdk
        else:
            import openai as sdk
        return TRANSIENT_ERRORS + (sdk.APIConnectionError, sdk.RateLimitError, sdk.InternalServerError)

    def _get_client(self):
        """Get or create the provider client (lazy initialization)."""
        with self._client_lock:
            if self._client is None:
                self._client = self._create_client()
            return self._client

    def _create_client(self):
        if self.provider == LLMProvider.ANTHROPIC:
            import anthropic
            return anthropic.Anthropic(**self._client_kwargs())  # Uses ANTHROPIC_API_KEY env var

        import openai
        if self.provider == LLMProvider.AZURE_OPENAI:
            return openai.AzureOpenAI(
                api_key=os.getenv("AZURE_OPENAI_API_KEY"),
                api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                azure_endpoint=os.getenv("AZURE_OPENAI_ENDPOINT"),
                **self._client_kwargs()
            )
        if self.provider == LLMProvider.GROQ:
            return openai.OpenAI(
                api_key=os.getenv("GROQ_API_KEY"),
                base_url=os.getenv("GROQ_BASE_URL", GROQ_BASE_URL),
                **self._client_kwargs()
            )
        return openai.OpenAI(**self._client_kwargs())  # Uses OPENAI_API_KEY env var

    def _call_anthropic(self, instructions: str, context: str) -> str:
        response = self._get_client().messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=instructions,
            messages=[{"role": "user", "content": context}]
        )
        return response.content[0].text.strip()

    def _call_chat_completions(self, instructions: str, context: str) -> str:
        response = self._get_client().chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": instructions},
                {"role": "user", "content": context},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        return (response.choices[0].message.content or "").strip()

    def complete(self, instructions: str, context: str) -> str:
        call = (self._call_anthropic if self.provider == LLMProvider.ANTHROPIC
                else self._call_chat_completions)

        transient = self._transient_errors()
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return call(instructions, context)
            except transient as e:
                if attempt == attempts:
                    raise OracleError(
                        f"{self.provider.value} call failed after {attempts} attempt(s): {e}"
                    ) from e
                wait = self.retry_backoff * attempt
                logger.warning("%s call failed (attempt %d/%d), retrying in %.1fs: %s",
                               self.provider.value, attempt, attempts, wait, e)
                time.sleep(wait)
            except Exception as e:
                raise OracleError(f"{self.provider.value} call failed: {e}") from e


MATCH_INSTRUCTIONS = """You are a sales engineer matching RFP line items to a product catalog.
Task: pick the best matching SKU for the requested line item from the candidate SKUs provided.
Only choose a skuCode that appears in the candidate list.

Matching policy:
- Pack size must match. If the best candidate's pack size differs from the request, confidence must be 40 or lower.
- A semantic match on product type is the strongest signal.
- A container-type mismatch (e.g. bottle vs. can, pouch vs. jar, as described in the text) reduces confidence.
- Category is a secondary signal that can corroborate a match but never decides it alone.
- When several candidates satisfy both pack size and product type, prefer the most specific one.
- If no candidate is a reasonable match, return "chosenSkuCode": null with confidence 20 or lower.

Return ONLY a JSON object (no markdown, no explanation):
{
  "chosenSkuCode": "SKU code of the best match, or null",
  "confidence": 0,
  "rationale": "Brief reason for the decision"
}"""

ANALYZE_INSTRUCTIONS = """You are an expert RFP analyzer.
Analyze the provided RFP text and extract the following fields.

Return ONLY a JSON object (no markdown, no conversational text):
{
  "buyerName": "string or null",
  "deadline": "string or null",
  "summary": "string",
  "keyRequirements": ["string"],
  "disqualifyingConditions": ["string"]
}"""

EXTRACT_INSTRUCTIONS = """You are an expert RFP extraction tool.
Extract the list of line items (products or services requested) from the RFP text.
Focus on specific SKUs, products, or services. Ignore general legal boilerplate.

Return ONLY a JSON array (no markdown, no explanation):
[
  {
    "description": "string",
    "quantity": 0,
    "unit": "string or null",
    "notes": "string or null"
  }
]
Use null for quantity when the RFP does not state one."""


def build_match_context(item: LineItemRequest, candidates: Sequence[CatalogEntry]) -> str:
    """Describe the line item and its candidate SKUs for the oracle."""
    candidate_data = [
        {
            "skuCode": c.code,
            "name": c.name,
            "description": c.description,
            "category": c.category,
            "packSize": c.pack_size,
        }
        for c in candidates
    ]
    return (
        "Line Item Requested:\n"
        f"Description: {item.description}\n"
        f"Quantity: {item.quantity if item.quantity is not None else 'unspecified'}\n"
        f"Unit: {item.unit or 'unspecified'}\n"
        f"Notes: {item.notes or 'none'}\n\n"
        "Candidate SKUs:\n"
        f"{json.dumps(candidate_data, indent=2)}"
    )


def fallback_verdict() -> MatchVerdict:
    return MatchVerdict(chosen_code=None, confidence=0, rationale=FALLBACK_RATIONALE)


def match_line_item(item: LineItemRequest, candidates: Sequence[CatalogEntry],
                    oracle: ReasoningOracle) -> MatchVerdict:
    """
    Ask the oracle to pick the best candidate for a line item.

    Never raises: an unreachable oracle or an unparseable response degrades
    to a no-match verdict with confidence 0. The returned code is NOT checked
    against the candidates here; callers must validate it.
    """
    if not candidates:
        return MatchVerdict(chosen_code=None, confidence=0, rationale=NO_CANDIDATES_RATIONALE)

    try:
        raw = oracle.complete(MATCH_INSTRUCTIONS, build_match_context(item, candidates))
    except Exception as e:
        logger.warning("Oracle call failed for line item %s: %s", item.id, e)
        return fallback_verdict()

    verdict = parse_verdict(raw)
    if verdict is None:
        logger.warning("Unparseable oracle verdict for line item %s: %.200s", item.id, raw)
        return fallback_verdict()
    return verdict


def _rfp_context(raw_text: str) -> str:
    return f"RFP Text:\n{raw_text[:MAX_RFP_CHARS]}"


def analyze_rfp(raw_text: str, oracle: ReasoningOracle) -> Dict:
    """
    Extract RFP header fields (buyer, deadline, summary, requirements).

    Raises:
        OracleError: if the oracle fails or returns no JSON object
    """
    raw = oracle.complete(ANALYZE_INSTRUCTIONS, _rfp_context(raw_text))
    fields = parse_rfp_fields(raw)
    if fields is None:
        raise OracleError("Failed to parse oracle response for RFP analysis")
    return fields


def extract_line_items(raw_text: str, oracle: ReasoningOracle) -> List[Dict]:
    """Extract requested line items; an unparseable response yields []."""
    raw = oracle.complete(EXTRACT_INSTRUCTIONS, _rfp_context(raw_text))
    items = parse_line_items(raw)
    if not items:
        logger.warning("No line items extracted from RFP text")
    return items
