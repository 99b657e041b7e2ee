# controlproto

A small library for exchanging control messages between a control plane and
its data planes. Every message is acknowledged by the other end, and an
acknowledgement may carry an error back to the sender.

## Modules

- `controlproto.control`: the core types.
  - `Message(uuid, opcode, payload=b"")`: a frozen message. The opcode must be
    in `0..255`, otherwise `ValueError` is raised. `length` is the payload
    size and `is_ack` is true for the reserved `ACK_OPCODE` (`0xFF`).
  - `ServiceMessage`: what a message handler receives. It exposes `headers`
    (the `Message`), `payload`, `ack()` and `ack_with_error(err)`.
  - `Connection`: abstract transport with `write_message(message)` and a
    blocking `read_message()` that returns `None` once the connection is
    closed. Errors recorded with `report_error(err)` are handed out by
    `read_error()`, which returns `None` when there are no more. The default
    `read_error()` does not block; override it for a transport that reports
    errors over time.
  - `Service`: abstract interface with `send_and_wait_for_ack(opcode,
    payload=None)`, `on_message(handler)` and `on_error(handler)`.
  - `encode_payload(payload)`: `None` becomes `b""`, bytes-like objects and
    objects with `__bytes__` are converted, anything else raises `TypeError`.
  - Errors: `ControlError`, and its subclasses `AckError`, `AckTimeoutError`
    (also a `TimeoutError`) and `ServiceClosedError`.
- `controlproto.service`: `ControlService(connection, send_timeout=15.0)`
  polls a `Connection` in background threads.
  `send_and_wait_for_ack(opcode, payload)` sends a message with a fresh UUID
  and blocks until it is acked. It raises `AckError` with the error text if
  the ack carries one, `AckTimeoutError` if no ack arrives in time,
  `ServiceClosedError` if the service is or gets closed, and `ValueError` if
  you try to send with `ACK_OPCODE`. Inbound messages go to the handler set
  with `on_message(handler)` (by default `noop_message_handler`), and
  connection errors go to the one set with `on_error(handler)` (by default
  `logger_error_handler`). `close()` fails every send still waiting.
  `new_ack_message(message_uuid, err)` builds an ack carrying `str(err)`, or
  an empty payload.
- `controlproto.handlers`: `MessageRouter`, a `dict` from opcode to handler
  that can itself be used as a handler. An unknown opcode is acked with a
  `ControlError`. Also provides `noop_message_handler` (logs and acks) and
  `logger_error_handler` (logs at debug level).
- `controlproto.caching`: `CachingService(service)`, also returned as a
  wrapper by `with_caching_service()`. It remembers the last payload acked
  for each opcode and does not send again when the same opcode is sent with
  an equal payload.
- `controlproto.notification_store`: `NotificationStore(enqueue_key,
  payload_parser)` keeps one parsed notification per `NamespacedName` and
  pod. `message_handler(src_name, pod, value_merger=pass_new_value)` returns
  a message handler that parses the payload, merges it with the stored value
  and acks. It calls `enqueue_key(src_name)` when the stored value changed or
  the merger returned `None`, which removes the value. Payloads that fail to
  parse are logged and not acked. Read with `get_pod_notification` and
  `get_pods_notifications` (a copy), and clear with `clean_pod_notification`
  and `clean_pods_notifications`.
- `controlproto.connection_pool`: `ControlPlaneConnectionPool(client_factory,
  *options)` keeps one service per host for each key. `client_factory(host)`
  must return a started `Service`. If that service has a `close` method, the
  pool calls it when the connection is removed. The pool provides
  `dial_control_service`, `resolve_control_interface` (which returns
  `(None, None)` when the host is not connected), `get_connected_hosts`,
  `get_services`, `remove_connection`, `remove_all_connections` and `close`.
  `reconcile_connections(key, want_connections, new_service_cb,
  old_service_cb)` dials the wanted hosts that are missing and drops the
  hosts that are no longer wanted. A failed dial is raised as `ControlError`.
  `with_service_wrapper(wrapper)` is an option that wraps every newly dialed
  service.
- `controlproto.pod_ip_getter`: `PodIpGetter(lister)`, where
  `lister(namespace, selector)` yields objects with a `pod_ip` attribute.
  `get_all_pods_ip(namespace, selector=None)` returns the non-empty IPs.

## Example

Two services talking over an in-memory connection:

```python
import queue

from controlproto.control import Connection
from controlproto.handlers import MessageRouter
from controlproto.service import ControlService


class QueueConnection(Connection):
    def __init__(self, inbox, outbox):
        self._inbox, self._outbox = inbox, outbox

    def write_message(self, message):
        self._outbox.put(message)

    def read_message(self):
        return self._inbox.get()


a_to_b, b_to_a = queue.Queue(), queue.Queue()
sender = ControlService(QueueConnection(b_to_a, a_to_b))
receiver = ControlService(QueueConnection(a_to_b, b_to_a))


def on_start(message):
    print("start:", message.payload)
    message.ack()


receiver.on_message(MessageRouter({1: on_start}))
sender.send_and_wait_for_ack(1, b"hello")  # returns once acked
```

## What it does not do

The package has no network transport. It has no TCP or TLS client or
server, and no certificate handling. You supply a `Connection` for your
transport, and a `client_factory` that dials hosts for the connection pool.
It does not talk to Kubernetes either: `PodIpGetter` works with whatever
lister you pass in.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```