"""Core types of the control protocol: messages, connections and services."""

from __future__ import annotations

import abc
import collections
import uuid as _uuid
from dataclasses import dataclass
from typing import Any, Callable, Deque, Optional

ACK_OPCODE = 0xFF
"""Opcode reserved for acknowledgements."""


class ControlError(Exception):
    """Base class of control protocol errors."""


class AckError(ControlError):
    """The other end acknowledged a message with an error."""


class AckTimeoutError(ControlError, TimeoutError):
    """No acknowledgement arrived in time."""


class ServiceClosedError(ControlError):
    """The service was closed while or before sending."""


def encode_payload(payload: Any) -> bytes:
    """Turn a payload into bytes: None is empty, bytes-like or ``__bytes__`` objects are converted."""
    if payload is None:
        return b""
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if not hasattr(type(payload), "__bytes__"):
        raise TypeError(f"cannot encode payload of type {type(payload).__name__}")
    return bytes(payload)


@dataclass(frozen=True)
class Message:
    """A control message: identifier, opcode and payload."""

    uuid: _uuid.UUID
    opcode: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        if not 0 <= self.opcode <= 0xFF:
            raise ValueError(f"opcode out of range: {self.opcode}")
        object.__setattr__(self, "payload", bytes(self.payload))

    @property
    def length(self) -> int:
        return len(self.payload)

    @property
    def is_ack(self) -> bool:
        return self.opcode == ACK_OPCODE


class ServiceMessage:
    """An inbound message handed to a message handler, which must ack it."""

    __slots__ = ("_message", "_ack_func")

    def __init__(self, message: Message, ack_func: Callable[[Optional[BaseException]], None]):
        self._message = message
        self._ack_func = ack_func

    @property
    def headers(self) -> Message:
        return self._message

    @property
    def payload(self) -> bytes:
        return self._message.payload

    def ack(self) -> None:
        """Ack this message to the other end of the connection."""
        self._ack_func(None)

    def ack_with_error(self, err: BaseException) -> None:
        """Ack this message, propagating an error raised while handling it."""
        self._ack_func(err)


MessageHandler = Callable[[ServiceMessage], None]
ErrorHandler = Callable[[BaseException], None]


class Connection(abc.ABC):
    """A bidirectional message transport."""

    @abc.abstractmethod
    def write_message(self, message: Message) -> None:
        """Queue a message for the other end."""

    @abc.abstractmethod
    def read_message(self) -> Optional[Message]:
        """Block until a message arrives; None means the connection is closed."""

    def _pending_errors(self) -> Deque[BaseException]:
        return self.__dict__.setdefault("_errors", collections.deque())

    def report_error(self, err: BaseException) -> None:
        """Record a connection error to be handed out by ``read_error``."""
        self._pending_errors().append(err)

    def read_error(self) -> Optional[BaseException]:
        """Return the next recorded connection error; None means no more errors."""
        try:
            return self._pending_errors().popleft()
        except IndexError:
            return None


class Service(abc.ABC):
    """Sends messages waiting for acks and dispatches inbound messages."""

    @abc.abstractmethod
    def send_and_wait_for_ack(self, opcode: int, payload: Any = None) -> None:
        """Send a message to the other end and wait for its ack."""

    @abc.abstractmethod
    def on_message(self, handler: MessageHandler) -> None:
        """Set the handler of inbound messages."""

    @abc.abstractmethod
    def on_error(self, handler: ErrorHandler) -> None:
        """Set the handler of connection errors."""


ServiceWrapper = Callable[[Service], Service]