"""
Notification dispatcher interface.

Delivery (socket fan-out, push, receipt e-mail) belongs to external services. The fee engine only
hands over (audience, event_kind, payload) after its transaction has committed; dispatch failures
are logged and never propagated.
"""

import logging
from typing import Any, Dict, List, NamedTuple, Tuple
from uuid import UUID

from app.core.enums import NotificationAudience, NotificationEvent

logger = logging.getLogger(__name__)


class Audience(NamedTuple):
    kind: NotificationAudience
    target_id: UUID  # tenant id for STAFF, student id for STUDENT


def staff_of(tenant_id: UUID) -> Audience:
    return Audience(NotificationAudience.STAFF, tenant_id)


def student(student_id: UUID) -> Audience:
    return Audience(NotificationAudience.STUDENT, student_id)


class NotificationDispatcher:
    async def dispatch(self, audience: Audience, event_kind: NotificationEvent, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Default dispatcher: records the event in the application log."""

    async def dispatch(self, audience: Audience, event_kind: NotificationEvent, payload: Dict[str, Any]) -> None:
        logger.info(
            "notify %s:%s %s %s",
            audience.kind.value,
            audience.target_id,
            event_kind.value,
            payload,
        )


class RecordingNotificationDispatcher(NotificationDispatcher):
    """Keeps every dispatched event in memory. Used by tests and local tooling."""

    def __init__(self) -> None:
        self.events: List[Tuple[Audience, NotificationEvent, Dict[str, Any]]] = []

    async def dispatch(self, audience: Audience, event_kind: NotificationEvent, payload: Dict[str, Any]) -> None:
        self.events.append((audience, event_kind, payload))

    def of_kind(self, event_kind: NotificationEvent) -> List[Tuple[Audience, NotificationEvent, Dict[str, Any]]]:
        return [e for e in self.events if e[1] == event_kind]


_default_dispatcher = LoggingNotificationDispatcher()


def get_notifier() -> NotificationDispatcher:
    """FastAPI dependency; override to plug in a real delivery service."""
    return _default_dispatcher


async def notify_safely(
    notifier: NotificationDispatcher,
    audience: Audience,
    event_kind: NotificationEvent,
    payload: Dict[str, Any],
) -> bool:
    """Dispatch and swallow failures. Returns False when delivery failed."""
    try:
        await notifier.dispatch(audience, event_kind, payload)
    except Exception:
        logger.exception(
            "Notification %s to %s:%s failed",
            event_kind.value,
            audience.kind.value,
            audience.target_id,
        )
        return False
    return True
