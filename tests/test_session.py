import asyncio
import time
from datetime import date

import pytest
from conftest import RecordingDelivery, run

from kitchen_quoter.autosave import AutosaveStatus
from kitchen_quoter.config import EngineSettings
from kitchen_quoter.errors import DeliveryFailure, QuoteNotFound
from kitchen_quoter.models.quote import CustomerInfo
from kitchen_quoter.quote_store import InMemoryQuoteStore
from kitchen_quoter.session import QuoteSession, build_delivery, build_quote_store
from kitchen_quoter.status import QuoteStatus

SETTLE = 0.15


@pytest.fixture
def store() -> InMemoryQuoteStore:
    return InMemoryQuoteStore()


@pytest.fixture
def fast_settings() -> EngineSettings:
    return EngineSettings(autosave_delay_ms=30)


def start_session(store, catalog, settings, **kwargs) -> QuoteSession:
    return QuoteSession.start(
        store=store,
        catalog=catalog,
        house_types=catalog,
        settings=settings,
        customer=CustomerInfo(quote_number="Q-1001", customer_name="Jo Bloggs"),
        house_type_id="ht-flat-bung-1",
        **kwargs,
    )


def test_start_sets_validity_and_allowance(store, catalog, fast_settings):
    session = start_session(store, catalog, fast_settings, today=date(2024, 3, 1))

    assert session.quote_id is None
    assert session.editor.snapshot.valid_until == date(2024, 3, 31)
    assert session.editor.breakdown.total == 940.80


def test_no_autosave_until_first_save(store, catalog, fast_settings):
    async def scenario():
        session = start_session(store, catalog, fast_settings)
        session.editor.add_product("prod-bu-600", 2)
        await asyncio.sleep(SETTLE)
        assert store.list_quotes() == []

        record = session.save()
        assert record.id == session.quote_id
        assert record.totals.total == 1240.80
        assert not session.autosave.pending

    run(scenario())


def test_edits_after_first_save_are_autosaved(store, catalog, fast_settings):
    async def scenario():
        session = start_session(store, catalog, fast_settings)
        session.save()
        item = session.editor.add_product("prod-bu-600", 1)
        session.editor.update_quantity(item.id, 2)
        session.editor.set_bespoke_uplift_qty(1)
        await asyncio.sleep(SETTLE)
        await session.autosave.wait_idle()
        return session

    session = run(scenario())
    record = store.get(session.quote_id)
    assert session.autosave_status is AutosaveStatus.saved
    assert record.snapshot.items[0].quantity == 2
    assert record.totals.bespoke_uplift_total == 30.0
    assert record.totals.total == 1270.80


def test_finalize_writes_through_and_stops_autosave(store, catalog, fast_settings):
    async def scenario():
        session = start_session(store, catalog, fast_settings)
        session.save()
        session.editor.add_product("prod-bu-600", 2)
        record = session.finalize()
        assert not session.autosave.pending
        await asyncio.sleep(SETTLE)
        return session, record

    session, record = run(scenario())
    assert record.status is QuoteStatus.finalized
    assert record.totals.total == 1240.80
    assert store.get(session.quote_id).status is QuoteStatus.finalized
    assert not session.autosave.is_enabled()


def test_send_records_sent_at(store, catalog, fast_settings):
    delivery = RecordingDelivery()

    async def scenario():
        session = start_session(store, catalog, fast_settings, delivery=delivery)
        session.editor.update_customer(customer_email="buyer@example.com")
        session.save()
        session.editor.add_product("prod-bu-600", 1)
        session.finalize()
        return session.send()

    record = run(scenario())
    assert record.status is QuoteStatus.sent
    assert record.sent_at is not None
    assert delivery.deliveries[0][0] == record.id


def test_send_without_delivery_service(store, catalog, fast_settings):
    async def scenario():
        session = start_session(store, catalog, fast_settings)
        session.editor.update_customer(customer_email="buyer@example.com")
        session.save()
        session.editor.add_product("prod-bu-600", 1)
        session.finalize()
        with pytest.raises(DeliveryFailure):
            session.send()
        return session

    session = run(scenario())
    assert store.get(session.quote_id).status is QuoteStatus.finalized


def test_save_as_complete_and_archive(store, catalog, fast_settings):
    session = start_session(store, catalog, fast_settings)
    record = session.save_as_complete()
    assert record.status is QuoteStatus.saved
    assert record.id == session.quote_id

    assert session.archive().status is QuoteStatus.archived


def test_duplicate_creates_unique_draft_copies(store, catalog, fast_settings, monkeypatch):
    monkeypatch.setattr("kitchen_quoter.session.time.time", lambda: 1700000123.0)

    async def scenario():
        session = start_session(store, catalog, fast_settings)
        session.editor.add_product("prod-bu-600", 1)
        session.save()
        session.finalize()
        first = session.duplicate()
        second = session.duplicate()
        return session, first, second

    session, first, second = run(scenario())
    assert first.editor.customer.quote_number == "Q-1001-COPY-123000"
    assert second.editor.customer.quote_number == "Q-1001-COPY-123000-1"
    assert first.editor.status is QuoteStatus.draft
    assert store.get(first.quote_id).status is QuoteStatus.draft
    assert first.editor.items[0].product_id == "prod-bu-600"
    assert len({session.quote_id, first.quote_id, second.quote_id}) == 3


def test_resume_restores_saved_state(store, catalog, fast_settings):
    async def scenario():
        session = start_session(store, catalog, fast_settings)
        session.editor.add_product("prod-bu-600", 2)
        session.save()
        session.close()
        return session.quote_id

    quote_id = run(scenario())
    resumed = QuoteSession.resume(quote_id, store=store, catalog=catalog, house_types=catalog, settings=fast_settings)

    assert resumed.editor.status is QuoteStatus.draft
    assert resumed.editor.breakdown.total == 1240.80
    assert not resumed.autosave.pending

    with pytest.raises(QuoteNotFound):
        QuoteSession.resume("quote_missing", store=store, catalog=catalog, house_types=catalog)


def test_builders_follow_settings():
    settings = EngineSettings()
    assert isinstance(build_quote_store(settings), InMemoryQuoteStore)
    assert build_delivery(settings) is None


class SlowFirstSaveStore(InMemoryQuoteStore):
    """Store whose first save call blocks long enough for a second one to be dispatched."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self._delay = delay
        self.save_calls = 0

    def save(self, quote_id, snapshot, *, totals):
        self.save_calls += 1
        if self.save_calls == 1:
            time.sleep(self._delay)
        return super().save(quote_id, snapshot, totals=totals)


def test_store_keeps_latest_state_when_first_autosave_is_slow(catalog, fast_settings):
    store = SlowFirstSaveStore(delay=0.3)

    async def scenario():
        session = start_session(store, catalog, fast_settings)
        session.save()
        item = session.editor.add_product("prod-bu-600", 1)
        await asyncio.sleep(0.08)
        session.editor.update_quantity(item.id, 2)
        await asyncio.sleep(0.08)
        await session.autosave.wait_idle()
        return session

    session = run(scenario())
    record = store.get(session.quote_id)
    assert record.snapshot.items[0].quantity == 2
    assert record.totals.total == 1240.80
    assert session.autosave_status is AutosaveStatus.saved


def test_edit_without_event_loop_after_save(store, catalog, fast_settings):
    session = start_session(store, catalog, fast_settings)
    session.save()

    item = session.editor.add_product("prod-bu-600", 2)

    assert session.editor.item(item.id).quantity == 2
    assert session.autosave.pending
    assert len(store.get(session.quote_id).snapshot.items) == 0

    assert run(session.autosave.flush()) is AutosaveStatus.saved
    assert store.get(session.quote_id).totals.total == 1240.80
