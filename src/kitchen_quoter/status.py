from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from .errors import InvalidTransition, QuoteLocked


class QuoteStatus(str, Enum):
    draft = "DRAFT"
    finalized = "FINALIZED"
    sent = "SENT"
    saved = "SAVED"
    archived = "ARCHIVED"


class QuoteEvent(str, Enum):
    finalize = "finalize"
    send = "send"
    save_as_complete = "save-as-complete"
    archive = "archive"


@dataclass(frozen=True)
class TransitionContext:
    """Facts about the quote that transition guards look at."""

    item_count: int = 0
    customer_email: str | None = None


_TRANSITIONS: Mapping[tuple[QuoteStatus, QuoteEvent], QuoteStatus] = {
    (QuoteStatus.draft, QuoteEvent.finalize): QuoteStatus.finalized,
    (QuoteStatus.finalized, QuoteEvent.send): QuoteStatus.sent,
    (QuoteStatus.sent, QuoteEvent.send): QuoteStatus.sent,
    (QuoteStatus.draft, QuoteEvent.save_as_complete): QuoteStatus.saved,
    (QuoteStatus.draft, QuoteEvent.archive): QuoteStatus.archived,
    (QuoteStatus.finalized, QuoteEvent.archive): QuoteStatus.archived,
    (QuoteStatus.sent, QuoteEvent.archive): QuoteStatus.archived,
    (QuoteStatus.saved, QuoteEvent.archive): QuoteStatus.archived,
}


def _guard_failure(event: QuoteEvent, context: TransitionContext) -> str | None:
    if event is QuoteEvent.finalize and context.item_count < 1:
        return "quote has no items"
    if event is QuoteEvent.send and not context.customer_email:
        return "no customer email address"
    return None


def can_transition(
    current: QuoteStatus,
    event: QuoteEvent,
    context: TransitionContext | None = None,
) -> bool:
    if (current, event) not in _TRANSITIONS:
        return False
    return _guard_failure(event, context or TransitionContext()) is None


def next_status(
    current: QuoteStatus,
    event: QuoteEvent,
    context: TransitionContext | None = None,
) -> QuoteStatus:
    """Return the status reached by applying ``event`` to ``current``.

    Raises:
        InvalidTransition: the table has no such edge, or its guard fails.
    """
    target = _TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransition(current, event)
    reason = _guard_failure(event, context or TransitionContext())
    if reason is not None:
        raise InvalidTransition(current, event, reason)
    return target


def is_editable(status: QuoteStatus) -> bool:
    return status is QuoteStatus.draft


def allows_autosave(status: QuoteStatus) -> bool:
    return status is QuoteStatus.draft


def ensure_editable(status: QuoteStatus) -> None:
    if not is_editable(status):
        raise QuoteLocked(status)


__all__ = [
    "QuoteStatus",
    "QuoteEvent",
    "TransitionContext",
    "can_transition",
    "next_status",
    "is_editable",
    "allows_autosave",
    "ensure_editable",
]
