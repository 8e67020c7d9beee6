from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ..status import QuoteStatus
from .quote import QuoteBreakdown, QuoteSnapshot


class QuoteRecord(BaseModel):
    id: str
    status: QuoteStatus = QuoteStatus.draft
    snapshot: QuoteSnapshot = Field(default_factory=QuoteSnapshot)
    totals: QuoteBreakdown = Field(default_factory=QuoteBreakdown)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    sent_at: datetime | None = None

    @property
    def quote_number(self) -> str:
        return self.snapshot.customer.quote_number


__all__ = ["QuoteRecord"]
