"""Pydantic schemas for the receipt domain.

Pydantic models are used for validating and serialising data that
crosses a boundary: records read from and written to the store,
structured output returned by the vision model and the JSON bodies
served by the inspection API.

Schemas are intentionally separate from the SQLAlchemy rows in
``receipt_bot.models.tables`` so the flows can work on plain objects
and the store stays the only place that knows the table layout.
Whenever you modify a table remember to update the matching schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from receipt_bot.models.enums import ReceiptStatus
from receipt_bot.utils.helpers import utcnow


class Category(BaseModel):
    """Static reference category."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=3, max_length=3)
    name: str
    description: str = ""


class LineItem(BaseModel):
    """One product on a receipt."""

    name: str
    category: str
    price: float = Field(ge=0)
    is_shared: bool = False

    @field_validator("price")
    @classmethod
    def _round_price(cls, value: float) -> float:
        return round(float(value), 2)


class TokenUsage(BaseModel):
    """Token accounting for a single transcription call."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class StatusEntry(BaseModel):
    """One entry of the append-only status history."""

    status: ReceiptStatus
    timestamp: datetime = Field(default_factory=utcnow)
    details: Optional[str] = None


class ReceiptRecord(BaseModel):
    """Durable aggregate representing one purchase event and its processing state."""

    id: Optional[int] = None
    source_path: str = ""
    comments: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    store: Optional[str] = None
    products: List[LineItem] = Field(default_factory=list)
    total_amount: float = 0.0
    usage: TokenUsage = Field(default_factory=TokenUsage)
    status: ReceiptStatus = ReceiptStatus.RECEIVED
    status_history: List[StatusEntry] = Field(default_factory=list)

    @classmethod
    def new(cls, source_path: str = "", details: Optional[str] = None) -> "ReceiptRecord":
        """Return a fresh record whose history holds the initial RECEIVED entry."""
        now = utcnow()
        return cls(
            source_path=source_path,
            created_at=now,
            status=ReceiptStatus.RECEIVED,
            status_history=[StatusEntry(status=ReceiptStatus.RECEIVED, timestamp=now, details=details)],
        )

    def set_products(self, products: List[LineItem]) -> None:
        """Replace the product list and recompute the derived total."""
        self.products = list(products)
        self.recompute_total()

    def recompute_total(self) -> float:
        self.total_amount = round(sum(p.price for p in self.products), 2)
        return self.total_amount

    def record_status(self, entry: StatusEntry) -> None:
        """Mirror a persisted status entry on this in-memory copy."""
        self.status = entry.status
        self.status_history.append(entry)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


# ---------------------------------------------------------------------------
# Structured output of the transcription service


class AnalyzedProduct(BaseModel):
    """A product as reported by the vision model (category not yet resolved)."""

    name: str
    price: float
    category: str


class ReceiptAnalysis(BaseModel):
    """Receipt fields extracted by the vision model."""

    store_name: str = ""
    products: List[AnalyzedProduct] = Field(default_factory=list)
    total_amount: float = 0.0


class AnalysisResult(BaseModel):
    """Transcription output together with the token usage of the call."""

    analysis: ReceiptAnalysis
    usage: TokenUsage = Field(default_factory=TokenUsage)


class CostBreakdown(BaseModel):
    """Estimated cost of a transcription call, in PLN."""

    input_cost: float
    output_cost: float
    total_cost: float


# ---------------------------------------------------------------------------
# API response schemas


class ReceiptSummary(BaseModel):
    id: int
    created_at: datetime
    store: Optional[str] = None
    total_amount: float
    status: ReceiptStatus
    product_count: int
