from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from kitchen_quoter.catalog import LocalCatalog
from kitchen_quoter.config import EngineSettings
from kitchen_quoter.editor import QuoteEditor

CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "catalog"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def catalog() -> LocalCatalog:
    return LocalCatalog(base_path=CATALOG_PATH)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def editor(catalog: LocalCatalog, settings: EngineSettings) -> QuoteEditor:
    return QuoteEditor(catalog=catalog, house_types=catalog, settings=settings)


class RecordingSave:
    """Async save double that records every snapshot it is handed."""

    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.calls = []
        self.fail = fail
        self.delay = delay

    async def __call__(self, snapshot) -> None:
        self.calls.append(snapshot)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("store unavailable")


class RecordingDelivery:
    def __init__(self, *, fail: bool = False) -> None:
        self.deliveries = []
        self.fail = fail

    def deliver(self, *, quote_id, snapshot, totals) -> None:
        if self.fail:
            raise ConnectionError("smtp relay down")
        self.deliveries.append((quote_id, snapshot, totals))
