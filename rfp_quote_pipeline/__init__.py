"""
RFP Quote Pipeline

A local, scriptable pipeline that turns free-text procurement requests into
priced quotes: LLM-extracted line items, catalog SKU matching and
margin-based pricing.
"""

__version__ = "1.0.0"
__author__ = "RFP Quote Pipeline Contributors"

from rfp_quote_pipeline.core.models import (CatalogEntry, LineItemRequest, MatchVerdict,
                                            ResolvedLineItem, RfpRecord)

__all__ = ["CatalogEntry", "LineItemRequest", "MatchVerdict", "ResolvedLineItem", "RfpRecord"]
