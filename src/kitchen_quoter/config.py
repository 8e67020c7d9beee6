from __future__ import annotations

import os
from enum import Enum
from typing import Literal, Mapping

from pydantic import BaseModel, Field

AUTOSAVE_DELAY_MS = 2000
BESPOKE_UNIT_PRICE = 30.0
DEFAULT_VAT_RATE = 20.0
QUOTE_VALIDITY_DAYS = 30


class PricingMode(str, Enum):
    vat_inclusive = "VAT_INCLUSIVE"
    vat_exclusive = "VAT_EXCLUSIVE"


class EngineSettings(BaseModel):
    environment: str = "dev"
    project_id: str | None = None
    pricing_mode: PricingMode = PricingMode.vat_inclusive
    vat_rate_percent: float = Field(default=DEFAULT_VAT_RATE, ge=0)
    bespoke_unit_price: float = Field(default=BESPOKE_UNIT_PRICE, ge=0)
    autosave_delay_ms: int = Field(default=AUTOSAVE_DELAY_MS, ge=0)
    quote_validity_days: int = Field(default=QUOTE_VALIDITY_DAYS, ge=0)
    store_backend: Literal["memory", "firestore"] = "memory"
    delivery_topic: str = "quote-deliveries"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        environment = env.get("ENVIRONMENT", "dev")
        default_backend = "memory" if environment == "dev" else "firestore"
        return cls(
            environment=environment,
            project_id=env.get("PROJECT_ID"),
            pricing_mode=env.get("QUOTE_PRICING_MODE", PricingMode.vat_inclusive.value),
            vat_rate_percent=env.get("QUOTE_VAT_RATE", DEFAULT_VAT_RATE),
            bespoke_unit_price=env.get("QUOTE_BESPOKE_UNIT_PRICE", BESPOKE_UNIT_PRICE),
            autosave_delay_ms=env.get("QUOTE_AUTOSAVE_DELAY_MS", AUTOSAVE_DELAY_MS),
            quote_validity_days=env.get("QUOTE_VALIDITY_DAYS", QUOTE_VALIDITY_DAYS),
            store_backend=env.get("QUOTE_STORE_BACKEND", default_backend),
            delivery_topic=env.get("PUBSUB_TOPIC_QUOTE_DELIVERY", "quote-deliveries"),
        )

    @property
    def autosave_delay_seconds(self) -> float:
        return self.autosave_delay_ms / 1000


__all__ = [
    "AUTOSAVE_DELAY_MS",
    "BESPOKE_UNIT_PRICE",
    "DEFAULT_VAT_RATE",
    "QUOTE_VALIDITY_DAYS",
    "PricingMode",
    "EngineSettings",
]
