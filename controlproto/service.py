"""A control service sending messages with acks over a connection."""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Optional

from .control import (
    ACK_OPCODE,
    AckError,
    AckTimeoutError,
    Connection,
    ErrorHandler,
    Message,
    MessageHandler,
    Service,
    ServiceClosedError,
    ServiceMessage,
    encode_payload,
)
from .handlers import logger_error_handler, noop_message_handler

_log = logging.getLogger(__name__)

SEND_TIMEOUT = 15.0


def new_ack_message(message_uuid: uuid.UUID, err: Optional[BaseException]) -> Message:
    """Build the ack of a message, carrying the error text if any."""
    payload = str(err).encode("utf-8") if err is not None else b""
    return Message(message_uuid, ACK_OPCODE, payload)


class ControlService(Service):
    """Service polling a connection in background threads."""

    def __init__(self, connection: Connection, *, send_timeout: float = SEND_TIMEOUT):
        self._connection = connection
        self._send_timeout = send_timeout
        self._lock = threading.Lock()
        self._waiting_acks: dict[uuid.UUID, Future] = {}
        self._closed = False
        self._handlers_lock = threading.Lock()
        self._handler: MessageHandler = noop_message_handler
        self._error_handler: ErrorHandler = logger_error_handler
        self._start_polling()

    def send_and_wait_for_ack(self, opcode: int, payload: Any = None) -> None:
        data = encode_payload(payload)
        if opcode == ACK_OPCODE:
            raise ValueError("you cannot send an ack manually")
        message = Message(uuid.uuid4(), opcode, data)
        _log.debug("Going to send message with opcode %d and uuid %s", opcode, message.uuid)

        ack: Future = Future()
        with self._lock:
            if self._closed:
                raise ServiceClosedError(f"service closed, dropping message: {message.uuid}")
            self._waiting_acks[message.uuid] = ack
        try:
            self._connection.write_message(message)
            try:
                ack.result(timeout=self._send_timeout)
            except FutureTimeoutError:
                _log.debug("Timeout waiting for the ack: %s", message.uuid)
                raise AckTimeoutError(
                    f"timeout exceeded for outgoing message: {message.uuid}"
                ) from None
        finally:
            with self._lock:
                self._waiting_acks.pop(message.uuid, None)

    def on_message(self, handler: MessageHandler) -> None:
        with self._handlers_lock:
            self._handler = handler

    def on_error(self, handler: ErrorHandler) -> None:
        with self._handlers_lock:
            self._error_handler = handler

    def close(self) -> None:
        """Stop the service, failing every send still waiting for an ack."""
        with self._lock:
            self._closed = True
            pending = list(self._waiting_acks.values())
        for ack in pending:
            try:
                ack.set_exception(ServiceClosedError("service closed"))
            except InvalidStateError:
                pass

    def _start_polling(self) -> None:
        threading.Thread(target=self._read_loop, daemon=True).start()
        threading.Thread(target=self._error_loop, daemon=True).start()

    def _read_loop(self) -> None:
        while True:
            message = self._connection.read_message()
            if message is None or self._closed:
                return
            threading.Thread(target=self._accept, args=(message,), daemon=True).start()

    def _error_loop(self) -> None:
        while True:
            err = self._connection.read_error()
            if err is None or self._closed:
                _log.debug("Closing error polling loop of control service")
                return
            threading.Thread(target=self._accept_error, args=(err,), daemon=True).start()

    def _accept(self, message: Message) -> None:
        if message.is_ack:
            with self._lock:
                ack = self._waiting_acks.get(message.uuid)
            if ack is None:
                _log.debug("Ack received but nobody is waiting: %s", message.uuid)
                return
            try:
                if message.length:
                    ack.set_exception(AckError(message.payload.decode("utf-8", "replace")))
                else:
                    ack.set_result(None)
            except InvalidStateError:
                return
            _log.debug("Acked message: %s", message.uuid)
            return

        def ack_func(err: Optional[BaseException]) -> None:
            self._connection.write_message(new_ack_message(message.uuid, err))

        with self._handlers_lock:
            handler = self._handler
        try:
            handler(ServiceMessage(message, ack_func))
        except Exception:
            _log.exception("Message handler failed for message %s", message.uuid)

    def _accept_error(self, err: BaseException) -> None:
        with self._handlers_lock:
            handler = self._error_handler
        try:
            handler(err)
        except Exception:
            _log.exception("Error handler failed")