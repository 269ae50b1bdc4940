# marketplace/services/events.py
"""Lifecycle events and the publishers that carry them.

Publishing is best effort: whatever goes wrong while serializing or handing
an event to the transport is logged and swallowed, the state change that
triggered it is already committed. Each event kind is its own topic and
messages are keyed by entity id, so events of one task stay in commit order.
"""
from __future__ import annotations
import atexit
import enum
import json
import logging
from typing import Callable, Optional

from confluent_kafka import Producer
from flask import current_app

log = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    TASK_POSTED = "task_posted"
    FREELANCER_ASSIGNED = "freelancer_assigned"
    TASK_ACCEPTED = "task_accepted"
    FREELANCER_REMOVED = "freelancer_removed"
    TASK_SEND_ON_REVIEW = "task_send_on_review"
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"


TASK_EVENTS = frozenset({
    EventKind.TASK_POSTED,
    EventKind.FREELANCER_ASSIGNED,
    EventKind.TASK_ACCEPTED,
    EventKind.FREELANCER_REMOVED,
    EventKind.TASK_SEND_ON_REVIEW,
})
USER_EVENTS = frozenset({EventKind.USER_CREATED, EventKind.USER_UPDATED, EventKind.USER_DELETED})


# ---- payloads ----

def user_snapshot(user) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "username": user.username, "email": user.email}


def task_snapshot(task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "status": task.status.value if task.status else None,
        "type": task.type.value if task.type else None,
        "payment": float(task.payment) if task.payment is not None else None,
        "deadline": task.deadline.isoformat() if task.deadline else None,
        "customer": user_snapshot(task.customer),
        "freelancer": user_snapshot(task.freelancer),
    }


# ---- publishers ----

class EventPublisher:
    """Base publisher. Subclasses implement ``_send``."""

    def publish(self, kind, payload: dict) -> None:
        try:
            kind = EventKind(kind)
            key = str(payload.get("id")) if payload.get("id") is not None else None
            body = json.dumps(payload, default=str)
            self._send(kind, key, body)
            log.info("event %s published (key=%s)", kind.value, key)
        except Exception:
            log.exception("publishing event %s failed", kind)

    def _send(self, kind: EventKind, key: Optional[str], body: str) -> None:
        raise NotImplementedError

    def flush(self, timeout: Optional[float] = None) -> None:
        pass


class InMemoryEventPublisher(EventPublisher):
    """Keeps published events in a list; used by tests and local runs."""

    def __init__(self):
        self.published: list[tuple[str, dict]] = []

    def _send(self, kind, key, body):
        self.published.append((kind.value, json.loads(body)))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.published]

    def clear(self) -> None:
        self.published.clear()


class InlineEventPublisher(EventPublisher):
    """Hands events straight to the notification dispatcher in this process."""

    def __init__(self, dispatch: Optional[Callable[[str, dict], None]] = None):
        if dispatch is None:
            from ..notifications.dispatcher import dispatch
        self._dispatch = dispatch

    def _send(self, kind, key, body):
        self._dispatch(kind.value, json.loads(body))


class KafkaEventPublisher(EventPublisher):
    def __init__(self, bootstrap_servers: str, client_id: str = "marketplace",
                 timeout: float = 5.0, producer=None):
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._timeout = timeout
        self._producer = producer

    def _get_producer(self):
        if self._producer is None:
            self._producer = Producer(
                {
                    "bootstrap.servers": self._bootstrap_servers,
                    "client.id": self._client_id,
                    "acks": "all",
                    "enable.idempotence": True,
                    "message.timeout.ms": int(self._timeout * 1000),
                    "request.timeout.ms": int(self._timeout * 1000),
                }
            )
        return self._producer

    @staticmethod
    def _on_delivery(err, msg):
        if err is not None:
            log.error("event delivery to %s failed: %s", msg.topic(), err)

    def _send(self, kind, key, body):
        producer = self._get_producer()
        producer.produce(topic=kind.value, key=key, value=body.encode("utf-8"),
                         on_delivery=self._on_delivery)
        # serve delivery callbacks without blocking the request
        producer.poll(0)

    def flush(self, timeout: Optional[float] = None) -> None:
        if self._producer is not None:
            remaining = self._producer.flush(self._timeout if timeout is None else timeout)
            if remaining:
                log.warning("%d event(s) still queued after flush", remaining)


def init_event_publisher(app) -> EventPublisher:
    backend = (app.config.get("EVENT_BACKEND") or "inline").lower()
    if backend == "kafka":
        publisher = KafkaEventPublisher(
            app.config["KAFKA_BOOTSTRAP_SERVERS"],
            client_id=app.config.get("KAFKA_CLIENT_ID", "marketplace"),
            timeout=app.config.get("KAFKA_TIMEOUT_SECONDS", 5.0),
        )
        # hand over whatever librdkafka still buffers before the process goes away
        atexit.register(publisher.flush)
    elif backend == "memory":
        publisher = InMemoryEventPublisher()
    elif backend == "inline":
        publisher = InlineEventPublisher()
    else:
        raise ValueError(f"Unknown EVENT_BACKEND: {backend}")
    app.extensions["event_publisher"] = publisher
    app.logger.info("Event publisher: %s", publisher.__class__.__name__)
    return publisher


def get_publisher() -> EventPublisher:
    return current_app.extensions["event_publisher"]
