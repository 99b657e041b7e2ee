"""Per-source, per-pod store of notifications received over the control protocol."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .control import MessageHandler, ServiceMessage

_log = logging.getLogger(__name__)

PayloadParser = Callable[[bytes], Any]
ValueMerger = Callable[[Any, Any], Any]
EnqueueKey = Callable[["NamespacedName"], None]


@dataclass(frozen=True)
class NamespacedName:
    """Identifies a resource by namespace and name."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


def pass_new_value(old: Any, new: Any) -> Any:
    """Merger that always keeps the newly received value, discarding the old one."""
    _previous, latest = old, new
    return latest


class NotificationStore:
    """Stores parsed notifications per source and pod, triggering a reconcile on change."""

    def __init__(self, enqueue_key: EnqueueKey, payload_parser: PayloadParser):
        self._enqueue_key = enqueue_key
        self._payload_parser = payload_parser
        self._lock = threading.Lock()
        self._store: dict[NamespacedName, dict[str, Any]] = {}

    def message_handler(
        self, src_name: NamespacedName, pod: str, value_merger: ValueMerger = pass_new_value
    ) -> MessageHandler:
        """Return a handler that stores messages received from ``pod`` of ``src_name``."""

        def handle(message: ServiceMessage) -> None:
            try:
                parsed = self._payload_parser(message.payload)
            except Exception as err:
                _log.error(
                    "Cannot parse the payload of the received message with opcode %d "
                    "(sounds like a programming error of the adapter): %s",
                    message.headers.opcode,
                    err,
                )
                return

            should_reconcile = self._store_new_value(src_name, pod, value_merger, parsed)
            message.ack()
            if should_reconcile:
                self._enqueue_key(src_name)

        return handle

    def get_pods_notifications(self, src_name: NamespacedName) -> Optional[dict[str, Any]]:
        """Return a copy of the notifications of every pod of ``src_name``, or None."""
        with self._lock:
            pods = self._store.get(src_name)
            return dict(pods) if pods is not None else None

    def get_pod_notification(self, src_name: NamespacedName, pod: str) -> Optional[Any]:
        """Return the notification stored for ``pod`` of ``src_name``, or None."""
        with self._lock:
            pods = self._store.get(src_name)
            if pods is None:
                return None
            return pods.get(pod)

    def clean_pods_notifications(self, src_name: NamespacedName) -> None:
        """Forget every notification of ``src_name``."""
        with self._lock:
            self._store.pop(src_name, None)

    def clean_pod_notification(self, src_name: NamespacedName, pod: str) -> None:
        """Forget the notification of ``pod`` of ``src_name``."""
        with self._lock:
            pods = self._store.get(src_name)
            if pods is None:
                return
            pods.pop(pod, None)
            if not pods:
                del self._store[src_name]

    def _store_new_value(
        self, src_name: NamespacedName, pod: str, value_merger: ValueMerger, new_value: Any
    ) -> bool:
        with self._lock:
            pods = self._store.setdefault(src_name, {})
            had_old = pod in pods
            old_value = pods.get(pod)
            value = value_merger(old_value, new_value) if had_old else new_value

            if value is not None:
                pods[pod] = value
                return not had_old or old_value != value

            pods.pop(pod, None)
            if not pods:
                del self._store[src_name]
            return True