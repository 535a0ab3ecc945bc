from __future__ import annotations

import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import requests


logger = logging.getLogger(__name__)


class EventType(str, enum.Enum):
    CREATED = "created"
    EXPIRED = "expired"
    DELETED = "deleted"
    ORPHANED = "orphaned"


@dataclass(frozen=True)
class PasteEvent:
    event_type: EventType
    paste_id: str
    language: Optional[str] = None
    expires_at: Optional[datetime] = None
    extra: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "eventType": self.event_type.value,
            "id": self.paste_id,
            "language": self.language,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.expires_at is not None:
            payload["expiresAt"] = self.expires_at.isoformat()
        payload.update(self.extra)
        return payload


class EventNotifier(Protocol):
    def notify(self, event: PasteEvent) -> None: ...


class LoggingNotifier:
    """Notifier used when no external channel is configured."""

    def notify(self, event: PasteEvent) -> None:
        logger.info(
            "Paste lifecycle event",
            extra={
                "event": "paste_lifecycle_event",
                "event_type": event.event_type.value,
                "paste_id": event.paste_id,
            },
        )


class WebhookNotifier:
    """
    Fire-and-forget JSON webhook delivery.

    ``created`` events go to ``created_url``; ``expired``, ``deleted`` and
    ``orphaned`` go to ``deleted_url``. Posts run on a small thread pool so
    the lifecycle operation never waits on the network, and delivery errors
    are only logged.
    """

    def __init__(
        self,
        *,
        created_url: Optional[str],
        deleted_url: Optional[str],
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self._created_url = created_url
        self._deleted_url = deleted_url
        self._timeout = timeout
        self._session = session or requests.Session()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2,
            thread_name_prefix="webhook",
        )

    def url_for(self, event_type: EventType) -> Optional[str]:
        if event_type is EventType.CREATED:
            return self._created_url
        return self._deleted_url

    def notify(self, event: PasteEvent) -> None:
        url = self.url_for(event.event_type)
        if not url:
            return
        self._executor.submit(self._deliver, url, event)

    def _deliver(self, url: str, event: PasteEvent) -> None:
        try:
            response = self._session.post(
                url,
                json=event.to_payload(),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException:
            logger.warning(
                "Webhook delivery failed",
                exc_info=True,
                extra={
                    "event": "webhook_delivery_failed",
                    "event_type": event.event_type.value,
                    "paste_id": event.paste_id,
                },
            )


def build_notifier(config: dict[str, Any]) -> EventNotifier:
    """Pick a webhook notifier when any webhook URL is configured."""

    created_url = config.get("WEBHOOK_CREATED_URL")
    deleted_url = config.get("WEBHOOK_DELETED_URL")
    if not created_url and not deleted_url:
        return LoggingNotifier()
    return WebhookNotifier(
        created_url=created_url,
        deleted_url=deleted_url,
        timeout=config.get("WEBHOOK_TIMEOUT_SECONDS", 5.0),
    )
