# marketplace/notifications/worker.py
"""Kafka consumer that turns lifecycle events into notification emails.

Offsets are committed only after a message was dispatched, so a crash
replays the message instead of dropping it. Messages that cannot be
decoded or name an unknown event are logged and committed.
"""
import json
import logging
from typing import Optional

from confluent_kafka import Consumer

from ..services.events import EventKind
from .dispatcher import dispatch

log = logging.getLogger(__name__)

TOPICS = [kind.value for kind in EventKind]


class NotificationWorker:
    def __init__(self, app, consumer=None, poll_timeout: float = 1.0):
        self.app = app
        self._consumer = consumer
        self._poll_timeout = poll_timeout
        self._running = False

    def _get_consumer(self):
        if self._consumer is None:
            cfg = self.app.config
            self._consumer = Consumer({
                "bootstrap.servers": cfg["KAFKA_BOOTSTRAP_SERVERS"],
                "group.id": cfg.get("KAFKA_GROUP_ID", "marketplace-notifications"),
                "client.id": cfg.get("KAFKA_CLIENT_ID", "marketplace") + "-worker",
                "auto.offset.reset": "earliest",
                "enable.auto.commit": False,
            })
            self._consumer.subscribe(TOPICS)
            log.info("Notification worker subscribed to %s", ", ".join(TOPICS))
        return self._consumer

    def handle(self, message) -> Optional[int]:
        """Dispatch one consumed message; returns emails sent, None if skipped."""
        try:
            payload = json.loads(message.value())
            kind = EventKind(message.topic())
        except ValueError as e:
            log.error("Skipping undecodable message on %s: %s", message.topic(), e)
            return None
        with self.app.app_context():
            return dispatch(kind.value, payload)

    def run(self, max_messages: Optional[int] = None) -> int:
        """Poll until stopped (or ``max_messages`` were handled)."""
        self._running = True
        consumer = self._get_consumer()
        handled = 0
        try:
            while self._running:
                message = consumer.poll(timeout=self._poll_timeout)
                if message is None:
                    continue
                if message.error():
                    log.error("Consumer error: %s", message.error())
                    continue

                self.handle(message)
                consumer.commit(message=message, asynchronous=False)
                handled += 1
                if max_messages is not None and handled >= max_messages:
                    break
        except KeyboardInterrupt:
            log.info("Notification worker interrupted")
        finally:
            self._running = False
            consumer.close()
            log.info("Consumer closed")
        return handled

    def stop(self) -> None:
        log.info("Notification worker stop requested")
        self._running = False
