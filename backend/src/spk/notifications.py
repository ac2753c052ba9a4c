"""
Best-effort notification emission.

A notification accompanies every successful transition but is never part of
it: failures are logged and parked for retry_failed(), and the transition
that triggered them stays committed.
"""
import threading
from typing import Any, Dict, List

from .config import config
from .logging import logger
from .sqs import send_message, send_message_batch
from .utils import format_timestamp, utc_now


class Notifier:
    """Publishes (recipient, event kind, order) events to the notifications queue."""

    def __init__(self, queue_url: str = None):
        self.queue_url = config.NOTIFICATIONS_QUEUE_URL if queue_url is None else queue_url
        self._failed: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    @property
    def pending_retries(self) -> int:
        with self._lock:
            return len(self._failed)

    def notify(self, recipient_id: str, event_kind: str, order_id: str) -> bool:
        """Send one event. Returns False (and keeps it for retry) on failure."""
        message = {
            'recipientId': recipient_id,
            'eventKind': event_kind,
            'workOrderId': order_id,
            'createdAt': format_timestamp(utc_now()),
        }
        if not self.queue_url:
            logger.debug(f"Notifications disabled, dropping {event_kind} for {recipient_id}")
            return True

        try:
            sent = self.publish(message)
        except Exception as e:
            logger.warning(f"Notification {event_kind} for order {order_id} raised: {e}")
            sent = False

        if not sent:
            logger.warning(f"Notification {event_kind} to {recipient_id} for order {order_id} failed, queued for retry")
            with self._lock:
                self._failed.append(message)
        return sent

    def publish(self, message: Dict[str, Any]) -> bool:
        return send_message(self.queue_url, message)

    def retry_failed(self) -> int:
        """Re-send parked notifications. Returns how many are still failing."""
        with self._lock:
            messages, self._failed = self._failed, []
        if not messages:
            return 0

        failed_idx = send_message_batch(self.queue_url, messages)
        if failed_idx:
            with self._lock:
                self._failed.extend(messages[i] for i in failed_idx)
        logger.info(f"Retried {len(messages)} notifications, {len(failed_idx)} still failing")
        return len(failed_idx)


class RecordingNotifier(Notifier):
    """Notifier that keeps events in memory (local runs with STORAGE_BACKEND=memory)."""

    def __init__(self):
        super().__init__(queue_url='memory://notifications')
        self.sent: List[Dict[str, Any]] = []

    def publish(self, message: Dict[str, Any]) -> bool:
        self.sent.append(message)
        return True

    def retry_failed(self) -> int:
        with self._lock:
            messages, self._failed = self._failed, []
        for message in messages:
            self.publish(message)
        return 0
