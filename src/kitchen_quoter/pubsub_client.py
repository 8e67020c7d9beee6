from __future__ import annotations

import json
import logging
from typing import Any

from google.cloud import pubsub_v1

logger = logging.getLogger(__name__)


class PubSubClient:
    """Wrapper for Google Cloud Pub/Sub operations."""

    def __init__(self, project_id: str, *, publisher: pubsub_v1.PublisherClient | None = None) -> None:
        self.project_id = project_id
        self.publisher = publisher or pubsub_v1.PublisherClient()

    def publish(
        self,
        topic_id: str,
        message: dict[str, Any],
        *,
        attributes: dict[str, str] | None = None,
    ) -> str:
        """Publish a JSON message and block until Pub/Sub acknowledges it.

        Args:
            topic_id: The topic ID (e.g., "quote-deliveries")
            message: The message payload as a dictionary
            attributes: Optional message attributes

        Returns:
            Message ID from Pub/Sub
        """
        topic_path = self.publisher.topic_path(self.project_id, topic_id)
        data = json.dumps(message).encode("utf-8")

        future = self.publisher.publish(topic_path, data, **(attributes or {}))
        message_id = future.result()

        logger.info(
            "Published message to Pub/Sub",
            extra={
                "topic_id": topic_id,
                "message_id": message_id,
                "attributes": attributes,
            },
        )

        return message_id

    def publish_delivery_request(
        self,
        *,
        topic_id: str,
        quote_id: str,
        quote_number: str,
        recipient: str,
        payload: dict[str, Any],
    ) -> str:
        """Ask the delivery service to render and e-mail a quote.

        Args:
            topic_id: Delivery request topic
            quote_id: Quote identifier
            quote_number: Human-facing quote number, used in the e-mail subject
            recipient: Customer e-mail address
            payload: Snapshot and totals to render

        Returns:
            Message ID from Pub/Sub
        """
        message = {
            "quote_id": quote_id,
            "quote_number": quote_number,
            "recipient": recipient,
            "quote": payload,
        }
        attributes = {
            "quote_id": quote_id,
            "event_type": "quote_delivery_requested",
        }
        return self.publish(topic_id, message, attributes=attributes)


__all__ = ["PubSubClient"]
