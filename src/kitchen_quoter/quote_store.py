from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Dict, Protocol

from .errors import QuoteNotFound
from .models.quote import QuoteBreakdown, QuoteSnapshot
from .models.record import QuoteRecord
from .status import QuoteStatus


class QuoteStore(Protocol):
    def create(
        self,
        snapshot: QuoteSnapshot,
        *,
        totals: QuoteBreakdown,
        status: QuoteStatus = QuoteStatus.draft,
    ) -> QuoteRecord:
        ...

    def get(self, quote_id: str) -> QuoteRecord | None:
        ...

    def save(self, quote_id: str, snapshot: QuoteSnapshot, *, totals: QuoteBreakdown) -> QuoteRecord:
        """Replace the stored snapshot and totals; repeating a save stores the same state."""
        ...

    def update_status(
        self,
        quote_id: str,
        status: QuoteStatus,
        *,
        sent_at: datetime | None = None,
    ) -> QuoteRecord:
        ...

    def find_by_quote_number(self, quote_number: str) -> QuoteRecord | None:
        ...

    def list_quotes(self, *, status: QuoteStatus | None = None, limit: int = 100) -> list[QuoteRecord]:
        ...


class InMemoryQuoteStore:
    def __init__(self) -> None:
        self._quotes: Dict[str, QuoteRecord] = {}
        self._lock = threading.Lock()

    def create(
        self,
        snapshot: QuoteSnapshot,
        *,
        totals: QuoteBreakdown,
        status: QuoteStatus = QuoteStatus.draft,
    ) -> QuoteRecord:
        with self._lock:
            quote_id = self._generate_id()
            record = QuoteRecord(id=quote_id, status=status, snapshot=snapshot, totals=totals)
            self._quotes[quote_id] = record
            return record

    def get(self, quote_id: str) -> QuoteRecord | None:
        with self._lock:
            return self._quotes.get(quote_id)

    def save(self, quote_id: str, snapshot: QuoteSnapshot, *, totals: QuoteBreakdown) -> QuoteRecord:
        with self._lock:
            record = self._require(quote_id)
            updated = record.model_copy(
                update={"snapshot": snapshot, "totals": totals, "updated_at": datetime.utcnow()}
            )
            self._quotes[quote_id] = updated
            return updated

    def update_status(
        self,
        quote_id: str,
        status: QuoteStatus,
        *,
        sent_at: datetime | None = None,
    ) -> QuoteRecord:
        with self._lock:
            record = self._require(quote_id)
            changes: dict = {"status": status, "updated_at": datetime.utcnow()}
            if sent_at is not None:
                changes["sent_at"] = sent_at
            updated = record.model_copy(update=changes)
            self._quotes[quote_id] = updated
            return updated

    def find_by_quote_number(self, quote_number: str) -> QuoteRecord | None:
        with self._lock:
            for record in self._quotes.values():
                if record.quote_number == quote_number:
                    return record
            return None

    def list_quotes(self, *, status: QuoteStatus | None = None, limit: int = 100) -> list[QuoteRecord]:
        with self._lock:
            records = [
                record
                for record in self._quotes.values()
                if status is None or record.status is status
            ]
        records.sort(key=lambda record: record.created_at, reverse=True)
        return records[:limit]

    def _require(self, quote_id: str) -> QuoteRecord:
        record = self._quotes.get(quote_id)
        if record is None:
            raise QuoteNotFound(quote_id)
        return record

    def _generate_id(self) -> str:
        ts = datetime.utcnow().strftime("%Y%m%d%H%M%S")
        return f"quote_{ts}_{uuid.uuid4().hex[:6]}"


__all__ = ["QuoteStore", "InMemoryQuoteStore"]
