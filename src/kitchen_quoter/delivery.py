from __future__ import annotations

import logging
from typing import Protocol

from google.api_core import exceptions as gcp_exceptions

from .errors import DeliveryFailure
from .models.quote import QuoteBreakdown, QuoteSnapshot
from .pubsub_client import PubSubClient

logger = logging.getLogger(__name__)


class QuoteDelivery(Protocol):
    def deliver(self, *, quote_id: str, snapshot: QuoteSnapshot, totals: QuoteBreakdown) -> None:
        """Deliver the quote to the customer; raise to report failure."""
        ...


class PubSubQuoteDelivery:
    """Hands quotes to the rendering/e-mail service over Pub/Sub."""

    def __init__(self, client: PubSubClient, *, topic_id: str = "quote-deliveries") -> None:
        self._client = client
        self._topic_id = topic_id

    def deliver(self, *, quote_id: str, snapshot: QuoteSnapshot, totals: QuoteBreakdown) -> None:
        recipient = snapshot.customer.customer_email
        if not recipient:
            raise DeliveryFailure("No customer email address", quote_id=quote_id)
        try:
            self._client.publish_delivery_request(
                topic_id=self._topic_id,
                quote_id=quote_id,
                quote_number=snapshot.customer.quote_number,
                recipient=recipient,
                payload={
                    "snapshot": snapshot.model_dump(mode="json"),
                    "totals": totals.model_dump(mode="json"),
                },
            )
        except gcp_exceptions.GoogleAPIError as exc:
            raise DeliveryFailure(str(exc), quote_id=quote_id) from exc


__all__ = ["QuoteDelivery", "PubSubQuoteDelivery"]
