import json

import pytest
from google.api_core import exceptions as gcp_exceptions

from kitchen_quoter.delivery import PubSubQuoteDelivery
from kitchen_quoter.errors import DeliveryFailure
from kitchen_quoter.models.quote import CustomerInfo, QuoteBreakdown, QuoteSnapshot
from kitchen_quoter.pubsub_client import PubSubClient


class FakeFuture:
    def __init__(self, message_id: str) -> None:
        self._message_id = message_id

    def result(self) -> str:
        return self._message_id


class FakePublisher:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.published = []
        self.error = error

    def topic_path(self, project_id: str, topic_id: str) -> str:
        return f"projects/{project_id}/topics/{topic_id}"

    def publish(self, topic_path: str, data: bytes, **attributes):
        if self.error is not None:
            raise self.error
        self.published.append((topic_path, json.loads(data), attributes))
        return FakeFuture("msg-1")


def make_snapshot(email: str | None) -> QuoteSnapshot:
    return QuoteSnapshot(customer=CustomerInfo(quote_number="Q-77", customer_email=email))


def test_delivery_publishes_quote_request():
    publisher = FakePublisher()
    delivery = PubSubQuoteDelivery(PubSubClient("kitchens", publisher=publisher), topic_id="deliveries")

    delivery.deliver(quote_id="quote_1", snapshot=make_snapshot("buyer@example.com"), totals=QuoteBreakdown(total=99))

    topic_path, message, attributes = publisher.published[0]
    assert topic_path == "projects/kitchens/topics/deliveries"
    assert message["recipient"] == "buyer@example.com"
    assert message["quote_number"] == "Q-77"
    assert message["quote"]["totals"]["total"] == 99
    assert attributes == {"quote_id": "quote_1", "event_type": "quote_delivery_requested"}


def test_delivery_requires_customer_email():
    publisher = FakePublisher()
    delivery = PubSubQuoteDelivery(PubSubClient("kitchens", publisher=publisher))

    with pytest.raises(DeliveryFailure):
        delivery.deliver(quote_id="quote_1", snapshot=make_snapshot(None), totals=QuoteBreakdown())
    assert publisher.published == []


def test_publish_errors_become_delivery_failures():
    publisher = FakePublisher(error=gcp_exceptions.ServiceUnavailable("pubsub down"))
    delivery = PubSubQuoteDelivery(PubSubClient("kitchens", publisher=publisher))

    with pytest.raises(DeliveryFailure) as excinfo:
        delivery.deliver(quote_id="quote_1", snapshot=make_snapshot("buyer@example.com"), totals=QuoteBreakdown())
    assert excinfo.value.quote_id == "quote_1"
