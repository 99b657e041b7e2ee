"""A service wrapper that skips resending the last payload of an opcode."""

from __future__ import annotations

import logging
import threading
from typing import Any

from .control import ErrorHandler, MessageHandler, Service, ServiceWrapper

_log = logging.getLogger(__name__)


class CachingService(Service):
    """Remembers the last payload acked per opcode and skips identical resends."""

    def __init__(self, service: Service):
        self._service = service
        self._lock = threading.Lock()
        self._sent: dict[int, Any] = {}

    def send_and_wait_for_ack(self, opcode: int, payload: Any = None) -> None:
        with self._lock:
            cached = opcode in self._sent and self._sent[opcode] == payload
        if cached:
            _log.debug("Message with opcode %d already sent with payload: %r", opcode, payload)
            return
        self._service.send_and_wait_for_ack(opcode, payload)
        with self._lock:
            self._sent[opcode] = payload

    def on_message(self, handler: MessageHandler) -> None:
        self._service.on_message(handler)

    def on_error(self, handler: ErrorHandler) -> None:
        self._service.on_error(handler)


def with_caching_service() -> ServiceWrapper:
    """Return a wrapper that puts a CachingService around a service."""
    return CachingService