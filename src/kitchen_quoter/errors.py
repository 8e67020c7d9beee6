from __future__ import annotations


class QuoteEngineError(Exception):
    """Base class for every error raised by the quote engine."""


class InvalidQuantity(QuoteEngineError, ValueError):
    def __init__(self, quantity: object, *, field: str = "quantity") -> None:
        super().__init__(f"Invalid {field}: {quantity!r}")
        self.quantity = quantity
        self.field = field


class QuoteLocked(QuoteEngineError):
    def __init__(self, status: object) -> None:
        value = getattr(status, "value", status)
        super().__init__(f"Quote is {value} and can no longer be edited")
        self.status = status


class InvalidTransition(QuoteEngineError):
    def __init__(self, status: object, event: object, reason: str | None = None) -> None:
        status_value = getattr(status, "value", status)
        event_value = getattr(event, "value", event)
        message = f"Cannot {event_value} a quote in status {status_value}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.status = status
        self.event = event
        self.reason = reason


class PersistenceFailure(QuoteEngineError):
    """The store reported a failed save. Raised inside the autosave task only."""

    def __init__(self, reason: str, *, quote_id: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.quote_id = quote_id


class DeliveryFailure(QuoteEngineError):
    def __init__(self, reason: str, *, quote_id: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.quote_id = quote_id


class _LookupError(QuoteEngineError, KeyError):
    label = "Entity"

    def __init__(self, identifier: str) -> None:
        super().__init__(identifier)
        self.identifier = identifier

    def __str__(self) -> str:
        return f"{self.label} not found: {self.identifier}"


class HouseTypeNotFound(_LookupError):
    label = "House type"


class ProductNotFound(_LookupError):
    label = "Product"


class ItemNotFound(_LookupError):
    label = "Quote item"


class CostNotFound(_LookupError):
    label = "Additional cost"


class QuoteNotFound(_LookupError):
    label = "Quote"


__all__ = [
    "QuoteEngineError",
    "InvalidQuantity",
    "QuoteLocked",
    "InvalidTransition",
    "PersistenceFailure",
    "DeliveryFailure",
    "HouseTypeNotFound",
    "ProductNotFound",
    "ItemNotFound",
    "CostNotFound",
    "QuoteNotFound",
]
