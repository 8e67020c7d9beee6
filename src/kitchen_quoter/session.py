from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import date, datetime, timedelta

from .autosave import AutosaveCoordinator, AutosaveStatus
from .catalog import HouseTypeDirectory, ProductCatalog
from .config import EngineSettings
from .delivery import PubSubQuoteDelivery, QuoteDelivery
from .editor import QuoteEditor, compute_breakdown
from .errors import DeliveryFailure, QuoteNotFound
from .firestore_quote_store import FirestoreQuoteStore
from .logging_config import set_session_id
from .models.quote import CustomerInfo, QuoteSnapshot
from .models.record import QuoteRecord
from .pubsub_client import PubSubClient
from .quote_store import InMemoryQuoteStore, QuoteStore
from .status import QuoteStatus, allows_autosave

logger = logging.getLogger(__name__)


def build_quote_store(settings: EngineSettings) -> QuoteStore:
    # Firestore in production, in-memory for dev
    if settings.store_backend == "firestore":
        return FirestoreQuoteStore(project_id=settings.project_id)
    return InMemoryQuoteStore()


def build_delivery(settings: EngineSettings) -> QuoteDelivery | None:
    if not settings.project_id:
        return None
    return PubSubQuoteDelivery(PubSubClient(project_id=settings.project_id), topic_id=settings.delivery_topic)


class QuoteSession:
    """One editing session: a ``QuoteEditor`` kept in sync with a ``QuoteStore``.

    Edits are autosaved only once the quote has been saved at least once and
    only while it is a draft. Lifecycle changes are written straight through.
    """

    def __init__(
        self,
        *,
        store: QuoteStore,
        catalog: ProductCatalog,
        house_types: HouseTypeDirectory,
        settings: EngineSettings | None = None,
        delivery: QuoteDelivery | None = None,
        snapshot: QuoteSnapshot | None = None,
        status: QuoteStatus = QuoteStatus.draft,
        quote_id: str | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._house_types = house_types
        self._settings = settings or EngineSettings()
        self._delivery = delivery
        self.session_id = uuid.uuid4().hex[:12]
        self.editor = QuoteEditor(
            catalog=catalog,
            house_types=house_types,
            settings=self._settings,
            snapshot=snapshot,
            status=status,
            quote_id=quote_id,
        )
        self.autosave = AutosaveCoordinator(
            save=self._persist_snapshot,
            delay_ms=self._settings.autosave_delay_ms,
            enabled=self._autosave_enabled,
        )
        if quote_id is not None:
            self.autosave.mark_saved(self.editor.snapshot)
        self._unsubscribe = self.editor.subscribe(self.autosave.notify)

    @classmethod
    def start(
        cls,
        *,
        store: QuoteStore,
        catalog: ProductCatalog,
        house_types: HouseTypeDirectory,
        settings: EngineSettings | None = None,
        delivery: QuoteDelivery | None = None,
        customer: CustomerInfo | None = None,
        house_type_id: str | None = None,
        today: date | None = None,
    ) -> "QuoteSession":
        """Open a new, unsaved draft valid for the configured number of days."""
        settings = settings or EngineSettings()
        valid_until = (today or date.today()) + timedelta(days=settings.quote_validity_days)
        session = cls(
            store=store,
            catalog=catalog,
            house_types=house_types,
            settings=settings,
            delivery=delivery,
            snapshot=QuoteSnapshot(customer=customer or CustomerInfo(), valid_until=valid_until),
        )
        if house_type_id:
            session.editor.select_house_type(house_type_id)
        return session

    @classmethod
    def resume(
        cls,
        quote_id: str,
        *,
        store: QuoteStore,
        catalog: ProductCatalog,
        house_types: HouseTypeDirectory,
        settings: EngineSettings | None = None,
        delivery: QuoteDelivery | None = None,
    ) -> "QuoteSession":
        record = store.get(quote_id)
        if record is None:
            raise QuoteNotFound(quote_id)
        return cls(
            store=store,
            catalog=catalog,
            house_types=house_types,
            settings=settings,
            delivery=delivery,
            snapshot=record.snapshot,
            status=record.status,
            quote_id=record.id,
        )

    @property
    def quote_id(self) -> str | None:
        return self.editor.quote_id

    @property
    def autosave_status(self) -> AutosaveStatus:
        return self.autosave.status

    def save(self) -> QuoteRecord:
        """Explicit save; the first one creates the record and assigns the id."""
        if self.editor.quote_id is None:
            return self._create()
        snapshot = self.editor.snapshot
        record = self._store.save(self.editor.quote_id, snapshot, totals=self.editor.breakdown)
        self.autosave.mark_saved(snapshot)
        return record

    def finalize(self) -> QuoteRecord:
        self.editor.finalize()
        return self._write_through()

    def save_as_complete(self) -> QuoteRecord:
        self.editor.save_as_complete()
        return self._write_through()

    def archive(self) -> QuoteRecord:
        self.editor.archive()
        return self._write_through()

    def send(self) -> QuoteRecord:
        if self._delivery is None:
            raise DeliveryFailure("No delivery service configured", quote_id=self.quote_id)
        self.editor.send(self._delivery)
        return self._write_through(sent_at=datetime.utcnow())

    def duplicate(self) -> "QuoteSession":
        """Store a DRAFT copy of this quote under a fresh quote number and open it."""
        source = self.editor.snapshot
        quote_number = self._copy_quote_number(source.customer.quote_number)
        snapshot = source.model_copy(
            update={"customer": source.customer.model_copy(update={"quote_number": quote_number})}
        )
        record = self._store.create(
            snapshot,
            totals=compute_breakdown(snapshot, self._settings),
            status=QuoteStatus.draft,
        )
        logger.info(
            "Quote duplicated",
            extra={"quote_id": record.id, "duplicated_from": self.quote_id, "quote_number": quote_number},
        )
        return QuoteSession(
            store=self._store,
            catalog=self._catalog,
            house_types=self._house_types,
            settings=self._settings,
            delivery=self._delivery,
            snapshot=record.snapshot,
            status=record.status,
            quote_id=record.id,
        )

    def close(self) -> None:
        """Stop autosaving; a save already in flight runs to completion."""
        self._unsubscribe()
        self.autosave.close()

    def _autosave_enabled(self) -> bool:
        return self.editor.quote_id is not None and allows_autosave(self.editor.status)

    async def _persist_snapshot(self, snapshot: QuoteSnapshot) -> None:
        set_session_id(self.session_id)
        quote_id = self.editor.quote_id
        totals = compute_breakdown(snapshot, self._settings)
        await asyncio.to_thread(self._store.save, quote_id, snapshot, totals=totals)

    def _create(self) -> QuoteRecord:
        snapshot = self.editor.snapshot
        record = self._store.create(snapshot, totals=self.editor.breakdown, status=self.editor.status)
        self.autosave.mark_saved(snapshot)
        self.editor.assign_id(record.id)
        logger.info(
            "Quote created",
            extra={"quote_id": record.id, "quote_number": record.quote_number, "status": record.status.value},
        )
        return record

    def _write_through(self, *, sent_at: datetime | None = None) -> QuoteRecord:
        if self.editor.quote_id is None:
            return self._create()
        snapshot = self.editor.snapshot
        self._store.save(self.editor.quote_id, snapshot, totals=self.editor.breakdown)
        self.autosave.mark_saved(snapshot)
        return self._store.update_status(self.editor.quote_id, self.editor.status, sent_at=sent_at)

    def _copy_quote_number(self, quote_number: str) -> str:
        stamp = str(int(time.time() * 1000))[-6:]
        candidate = f"{quote_number}-COPY-{stamp}"
        counter = 1
        while self._store.find_by_quote_number(candidate) is not None:
            candidate = f"{quote_number}-COPY-{stamp}-{counter}"
            counter += 1
        return candidate


__all__ = ["QuoteSession", "build_quote_store", "build_delivery"]
