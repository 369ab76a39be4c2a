#!/usr/bin/env python3
"""
Main CLI entrypoint for the RFP quote pipeline.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from rfp_quote_pipeline.core.catalog import load_catalog_csv
from rfp_quote_pipeline.core.candidates import DEFAULT_CANDIDATE_LIMIT
from rfp_quote_pipeline.core.ingest import load_rfp_text
from rfp_quote_pipeline.core.llm import LLMOracle, LLMProvider, OracleError
from rfp_quote_pipeline.core.processor import RfpProcessor, DEFAULT_MAX_WORKERS
from rfp_quote_pipeline.core.reporting import write_csv, write_proposal_json, format_summary
from rfp_quote_pipeline.core.stores import CatalogStore

PROVIDER_CHOICES = [p.value for p in LLMProvider]


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        print(f"[WARN] Ignoring invalid {name}={value!r}")
        return default


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract line items from an RFP, match them to a SKU catalog and price the quote",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Quote an RFP with the default 20% margin
  rfp-quote --rfp ./rfp.txt --catalog ./catalog.csv

  # Use Groq with a 15% margin and write to a custom folder
  rfp-quote --rfp ./rfp.pdf --catalog ./catalog.csv --margin 15 --llm-provider groq --output ./quotes
        """
    )
    parser.add_argument("--rfp", required=True,
                        help="RFP text file (.txt, .md) or PDF with a text layer")
    parser.add_argument("--catalog", required=True,
                        help="Catalog CSV (code, name, description, category, packSize, unitCost)")
    parser.add_argument("--output", default="./output",
                        help="Root folder for quote output (default: ./output)")
    parser.add_argument("--margin", type=float,
                        help="Margin percent applied to unit cost (default: 20, or RFP_MARGIN_PERCENT env var)")
    parser.add_argument("--limit", type=int, default=DEFAULT_CANDIDATE_LIMIT,
                        help=f"Candidate SKUs shown to the LLM per line item (default: {DEFAULT_CANDIDATE_LIMIT})")
    parser.add_argument("--max-workers", type=int,
                        help=f"Concurrent LLM calls (default: {DEFAULT_MAX_WORKERS}, or RFP_MAX_WORKERS env var)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show detailed matching information for debugging")

    # LLM configuration
    parser.add_argument("--llm-provider", choices=PROVIDER_CHOICES,
                        help="LLM provider to use (default: openai, or LLM_PROVIDER env var)")
    parser.add_argument("--llm-model",
                        help="LLM model to use (uses provider default if not specified, or LLM_MODEL env var)")
    parser.add_argument("--timeout", type=float,
                        help="Per-request LLM timeout in seconds")
    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    # Keep SDK request logging out of the console
    for noisy in ("httpx", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    llm_provider = args.llm_provider or os.getenv("LLM_PROVIDER", "openai")
    if llm_provider not in PROVIDER_CHOICES:
        print(f"[ERROR] Invalid LLM provider: {llm_provider}")
        print(f"[ERROR] Must be one of: {', '.join(PROVIDER_CHOICES)}")
        return 1
    llm_model = args.llm_model or os.getenv("LLM_MODEL")

    margin = args.margin if args.margin is not None else _env_float("RFP_MARGIN_PERCENT", 20.0)
    max_workers = args.max_workers or int(_env_float("RFP_MAX_WORKERS", DEFAULT_MAX_WORKERS))

    try:
        catalog = load_catalog_csv(Path(args.catalog))
        rfp_text = load_rfp_text(Path(args.rfp))
    except (OSError, ValueError) as e:
        print(f"[ERROR] {e}")
        return 1

    oracle = LLMOracle(provider=llm_provider, model=llm_model, timeout=args.timeout)
    print(f"[INFO] LLM: {llm_provider} ({oracle.model})")

    processor = RfpProcessor(
        oracle=oracle,
        catalog_store=CatalogStore(catalog),
        candidate_limit=args.limit,
        max_workers=max_workers,
    )

    try:
        record = processor.run(rfp_text, margin)
    except (OracleError, ValueError) as e:
        print(f"[ERROR] RFP processing failed: {e}")
        return 1

    if not record.line_items:
        print("[WARN] No line items found in RFP; nothing to quote.")

    out_dir = Path(args.output) / record.id
    out_dir.mkdir(parents=True, exist_ok=True)

    out_csv = out_dir / "line_items.csv"
    write_csv(record.line_items, out_csv)
    print(f"[OK] Wrote {out_csv}")

    out_json = out_dir / "proposal.json"
    write_proposal_json(record, out_json)
    print(f"[OK] Wrote {out_json}")

    print(f"[INFO] Quote for {record.buyer_name or 'Client'} at {margin:g}% margin:")
    for line in format_summary(record):
        print(line)

    return 0


if __name__ == "__main__":
    sys.exit(main())
