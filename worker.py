# worker.py
"""Run the notification worker: consume lifecycle events from Kafka and send emails."""
import logging
import signal

from marketplace import create_app
from marketplace.notifications.worker import NotificationWorker

log = logging.getLogger("marketplace.worker")


def main():
    app = create_app()
    worker = NotificationWorker(app)

    def _stop(signum, frame):
        worker.stop()

    signal.signal(signal.SIGTERM, _stop)
    handled = worker.run()
    log.info("Notification worker exited after %d message(s)", handled)


if __name__ == "__main__":
    main()
