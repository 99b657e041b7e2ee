"""Built-in message and error handlers, and an opcode router."""

from __future__ import annotations

import logging

from .control import ControlError, MessageHandler, ServiceMessage

_log = logging.getLogger(__name__)


def noop_message_handler(message: ServiceMessage) -> None:
    """Log and ack the message without doing anything else."""
    _log.warning("Discarding control message '%s'", message.headers.uuid)
    message.ack()


def logger_error_handler(err: BaseException) -> None:
    """Log a connection error."""
    _log.debug("Error from the connection: %s", err)


class MessageRouter(dict[int, MessageHandler]):
    """Dispatches messages to handlers by opcode; unknown opcodes are acked with an error."""

    def __call__(self, message: ServiceMessage) -> None:
        opcode = message.headers.opcode
        handler = self.get(opcode)
        if handler is not None:
            handler(message)
            return
        message.ack_with_error(
            ControlError(f"received an unknown opcode '{opcode}', I don't know what to do with it")
        )
        _log.warning(
            "Received an unknown message, I don't know what to do with it: opcode=%d payload=%r",
            opcode,
            message.payload,
        )