import queue

import pytest

from controlproto.caching import CachingService, with_caching_service
from controlproto.control import ACK_OPCODE, AckError, Connection, Message, Service
from controlproto.service import ControlService

SOME_PAYLOAD = b"Funky!"


class RecordingService(Service):
    def __init__(self, failures=()):
        self.sent = []
        self.failures = list(failures)
        self.handler = None
        self.error_handler = None

    def send_and_wait_for_ack(self, opcode, payload=None):
        self.sent.append((opcode, payload))
        if self.failures:
            raise self.failures.pop(0)

    def on_message(self, handler):
        self.handler = handler

    def on_error(self, handler):
        self.error_handler = handler


class AutoAckConnection(Connection):
    def __init__(self):
        self.inbox = queue.Queue()
        self.outbound = []

    def write_message(self, message):
        self.outbound.append(message)
        if message.opcode != ACK_OPCODE:
            self.inbox.put(Message(message.uuid, ACK_OPCODE))

    def read_message(self):
        return self.inbox.get()


def test_caching_service_with_control_service():
    connection = AutoAckConnection()
    inner = ControlService(connection, send_timeout=5)
    svc = with_caching_service()(inner)
    try:
        for _ in range(5):
            svc.send_and_wait_for_ack(10, SOME_PAYLOAD)
    finally:
        inner.close()
        connection.inbox.put(None)

    assert len(connection.outbound) == 1
    assert connection.outbound[0].opcode == 10
    assert connection.outbound[0].length == len(SOME_PAYLOAD)


def test_same_payload_sent_once():
    inner = RecordingService()
    svc = CachingService(inner)
    for _ in range(10):
        svc.send_and_wait_for_ack(1, SOME_PAYLOAD)
    assert inner.sent == [(1, SOME_PAYLOAD)]


def test_changed_payload_sent_again():
    inner = RecordingService()
    svc = CachingService(inner)
    svc.send_and_wait_for_ack(1, b"a")
    svc.send_and_wait_for_ack(1, b"b")
    svc.send_and_wait_for_ack(1, b"b")
    assert inner.sent == [(1, b"a"), (1, b"b")]


def test_cache_is_per_opcode():
    inner = RecordingService()
    svc = CachingService(inner)
    svc.send_and_wait_for_ack(1, SOME_PAYLOAD)
    svc.send_and_wait_for_ack(2, SOME_PAYLOAD)
    assert inner.sent == [(1, SOME_PAYLOAD), (2, SOME_PAYLOAD)]


def test_failed_send_is_not_cached():
    inner = RecordingService(failures=[AckError("nope")])
    svc = CachingService(inner)
    with pytest.raises(AckError, match="nope"):
        svc.send_and_wait_for_ack(1, SOME_PAYLOAD)
    svc.send_and_wait_for_ack(1, SOME_PAYLOAD)
    assert len(inner.sent) == 2


def test_handlers_are_delegated():
    inner = RecordingService()
    svc = CachingService(inner)

    def handler(message):
        return None

    def error_handler(err):
        return None

    svc.on_message(handler)
    svc.on_error(error_handler)
    assert inner.handler is handler
    assert inner.error_handler is error_handler