"""
Data models for RFP matching and pricing.
"""

from dataclasses import dataclass, field, asdict, replace
from decimal import Decimal
from typing import Dict, List, Optional, Union


Number = Union[int, float, Decimal]


def _money(v: Optional[Decimal]) -> Optional[str]:
    return f"{v:.2f}" if v is not None else None


@dataclass(frozen=True)
class CatalogEntry:
    """A catalog SKU the supplier can sell against a request line."""
    id: str
    code: str
    name: str = ""
    description: str = ""
    category: str = ""
    pack_size: str = ""
    unit_cost: Decimal = Decimal("0")

    def search_text(self) -> str:
        """Text the candidate selector scores against."""
        return " ".join([self.name, self.description, self.category, self.pack_size])

    def to_dict(self):
        """Convert to dictionary."""
        d = asdict(self)
        d["unit_cost"] = _money(self.unit_cost)
        return d


@dataclass(frozen=True)
class LineItemRequest:
    """One requested product/quantity extracted from an RFP."""
    id: str
    description: str
    quantity: Optional[Number] = None
    unit: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class MatchVerdict:
    """Oracle verdict for a single line item."""
    chosen_code: Optional[str]
    confidence: int
    rationale: str

    @property
    def is_match(self) -> bool:
        return self.chosen_code is not None


@dataclass(frozen=True)
class ResolvedLineItem:
    """
    A line item with its match and pricing fields.

    Match fields are None until matching runs; pricing fields are None until
    enrichment runs. Instances are never mutated, re-runs produce new ones.
    """
    id: str
    description: str
    quantity: Optional[Number] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    matched_entry: Optional[CatalogEntry] = None
    confidence: Optional[int] = None
    rationale: Optional[str] = None
    unit_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None

    @classmethod
    def from_request(cls, item: LineItemRequest) -> "ResolvedLineItem":
        return cls(id=item.id, description=item.description,
                   quantity=item.quantity, unit=item.unit, notes=item.notes)

    def to_request(self) -> LineItemRequest:
        return LineItemRequest(id=self.id, description=self.description,
                               quantity=self.quantity, unit=self.unit, notes=self.notes)

    def with_match(self, entry: Optional[CatalogEntry], confidence: Optional[int],
                   rationale: Optional[str]) -> "ResolvedLineItem":
        return replace(self, matched_entry=entry, confidence=confidence,
                       rationale=rationale, unit_price=None, total_price=None)

    def with_pricing(self, unit_price: Optional[Decimal],
                     total_price: Optional[Decimal]) -> "ResolvedLineItem":
        return replace(self, unit_price=unit_price, total_price=total_price)

    def to_dict(self):
        """Convert to dictionary."""
        entry = self.matched_entry
        quantity = self.quantity
        if isinstance(quantity, Decimal):
            quantity = float(quantity)
        return {
            "id": self.id,
            "description": self.description,
            "quantity": quantity,
            "unit": self.unit,
            "notes": self.notes,
            "sku_code": entry.code if entry else None,
            "sku_name": entry.name if entry else None,
            "confidence": self.confidence,
            "rationale": self.rationale,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
        }


@dataclass
class RfpRecord:
    """An analyzed RFP with its header fields and line items."""
    id: str
    raw_text: str
    buyer_name: Optional[str] = None
    deadline: Optional[str] = None
    summary: str = ""
    key_requirements: List[str] = field(default_factory=list)
    disqualifying_conditions: List[str] = field(default_factory=list)
    line_items: List[ResolvedLineItem] = field(default_factory=list)
    margin_percent: Optional[Decimal] = None

    def header(self) -> Dict:
        """Header fields without raw text or line items."""
        return {
            "id": self.id,
            "buyer_name": self.buyer_name,
            "deadline": self.deadline,
            "summary": self.summary,
            "key_requirements": list(self.key_requirements),
            "disqualifying_conditions": list(self.disqualifying_conditions),
            "margin_percent": f"{self.margin_percent}" if self.margin_percent is not None else None,
        }

    def to_dict(self):
        """Convert to dictionary."""
        d = self.header()
        d["line_items"] = [li.to_dict() for li in self.line_items]
        return d
