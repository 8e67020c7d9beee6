from __future__ import annotations

import logging
from datetime import datetime

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .errors import QuoteNotFound
from .models.quote import QuoteBreakdown, QuoteSnapshot
from .models.record import QuoteRecord
from .status import QuoteStatus

logger = logging.getLogger(__name__)


class FirestoreQuoteStore:
    """Firestore-backed quote store for production use."""

    COLLECTION_NAME = "quotes"

    def __init__(self, project_id: str | None = None, *, client: firestore.Client | None = None) -> None:
        self._db = client or firestore.Client(project=project_id)
        self._collection = self._db.collection(self.COLLECTION_NAME)

    def create(
        self,
        snapshot: QuoteSnapshot,
        *,
        totals: QuoteBreakdown,
        status: QuoteStatus = QuoteStatus.draft,
    ) -> QuoteRecord:
        """Create a quote document; Firestore assigns the id."""
        now = datetime.utcnow()
        doc_ref = self._collection.document()

        record = QuoteRecord(
            id=doc_ref.id,
            status=status,
            snapshot=snapshot,
            totals=totals,
            created_at=now,
            updated_at=now,
        )
        doc_ref.set(self._to_firestore_dict(record))

        logger.info(
            "Created quote",
            extra={
                "quote_id": record.id,
                "quote_number": record.quote_number,
                "status": status.value,
            },
        )

        return record

    def get(self, quote_id: str) -> QuoteRecord | None:
        doc = self._collection.document(quote_id).get()

        if not doc.exists:
            return None

        return self._from_firestore_dict(doc.id, doc.to_dict())

    def save(self, quote_id: str, snapshot: QuoteSnapshot, *, totals: QuoteBreakdown) -> QuoteRecord:
        """Overwrite the snapshot and totals of an existing quote.

        The whole snapshot is written each time, so replaying a save leaves
        the document unchanged apart from ``updated_at``.
        """
        doc_ref = self._collection.document(quote_id)
        if not doc_ref.get().exists:
            raise QuoteNotFound(quote_id)

        doc_ref.update(
            {
                "snapshot": snapshot.model_dump(mode="json"),
                "totals": totals.model_dump(mode="json"),
                "quote_number": snapshot.customer.quote_number,
                "updated_at": datetime.utcnow(),
            }
        )

        logger.info(
            "Saved quote",
            extra={"quote_id": quote_id, "total": totals.total},
        )

        updated_doc = doc_ref.get()
        return self._from_firestore_dict(updated_doc.id, updated_doc.to_dict())

    def update_status(
        self,
        quote_id: str,
        status: QuoteStatus,
        *,
        sent_at: datetime | None = None,
    ) -> QuoteRecord:
        doc_ref = self._collection.document(quote_id)
        if not doc_ref.get().exists:
            raise QuoteNotFound(quote_id)

        update_data: dict = {"status": status.value, "updated_at": datetime.utcnow()}
        if sent_at is not None:
            update_data["sent_at"] = sent_at

        doc_ref.update(update_data)

        logger.info(
            "Updated quote status",
            extra={"quote_id": quote_id, "status": status.value},
        )

        updated_doc = doc_ref.get()
        return self._from_firestore_dict(updated_doc.id, updated_doc.to_dict())

    def find_by_quote_number(self, quote_number: str) -> QuoteRecord | None:
        query = self._collection.where(filter=FieldFilter("quote_number", "==", quote_number)).limit(1)
        for doc in query.stream():
            return self._from_firestore_dict(doc.id, doc.to_dict())
        return None

    def list_quotes(self, *, status: QuoteStatus | None = None, limit: int = 100) -> list[QuoteRecord]:
        query = self._collection

        if status is not None:
            query = query.where(filter=FieldFilter("status", "==", status.value))

        query = query.order_by("created_at", direction=firestore.Query.DESCENDING).limit(limit)

        return [self._from_firestore_dict(doc.id, doc.to_dict()) for doc in query.stream()]

    def _to_firestore_dict(self, record: QuoteRecord) -> dict:
        return {
            "status": record.status.value,
            "quote_number": record.quote_number,
            "snapshot": record.snapshot.model_dump(mode="json"),
            "totals": record.totals.model_dump(mode="json"),
            "created_at": record.created_at,
            "updated_at": record.updated_at,
            "sent_at": record.sent_at,
        }

    def _from_firestore_dict(self, quote_id: str, data: dict) -> QuoteRecord:
        return QuoteRecord(
            id=quote_id,
            status=QuoteStatus(data["status"]),
            snapshot=QuoteSnapshot.model_validate(data.get("snapshot") or {}),
            totals=QuoteBreakdown.model_validate(data.get("totals") or {}),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            sent_at=data.get("sent_at"),
        )


__all__ = ["FirestoreQuoteStore"]
