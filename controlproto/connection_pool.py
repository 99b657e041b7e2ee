"""A pool of control service connections, grouped by key and host."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .control import ControlError, Service, ServiceWrapper

_log = logging.getLogger(__name__)

ClientFactory = Callable[[str], Service]
ConnectionPoolOption = Callable[["ControlPlaneConnectionPool"], None]
NewServiceCallback = Callable[[str, Service], None]
OldServiceCallback = Callable[[str], None]


@dataclass
class _Holder:
    service: Service
    cancel: Optional[Callable[[], None]] = None

    def close(self) -> None:
        if self.cancel is not None:
            self.cancel()


def with_service_wrapper(wrapper: ServiceWrapper) -> ConnectionPoolOption:
    """Option wrapping every newly dialed service with ``wrapper``."""

    def apply(pool: "ControlPlaneConnectionPool") -> None:
        pool._wrappers.append(wrapper)

    return apply


def _set_difference(a: Iterable[str], b: Iterable[str]) -> list[str]:
    exclude = set(b)
    return [item for item in a if item not in exclude]


class ControlPlaneConnectionPool:
    """Keeps one control service per host for each key.

    ``client_factory`` dials a host and returns a started service; if that
    service has a ``close`` method it is called when the connection is removed.
    """

    def __init__(self, client_factory: ClientFactory, *options: ConnectionPoolOption):
        self._client_factory = client_factory
        self._wrappers: list[ServiceWrapper] = []
        self._lock = threading.Lock()
        self._conns: dict[str, dict[str, _Holder]] = {}
        for option in options:
            option(self)

    def get_connected_hosts(self, key: str) -> list[str]:
        with self._lock:
            return list(self._conns.get(key, {}))

    def get_services(self, key: str) -> dict[str, Service]:
        with self._lock:
            return {host: holder.service for host, holder in self._conns.get(key, {}).items()}

    def resolve_control_interface(
        self, key: str, host: str
    ) -> tuple[Optional[str], Optional[Service]]:
        """Return ``(host, service)`` if connected, otherwise ``(None, None)``."""
        with self._lock:
            holder = self._conns.get(key, {}).get(host)
            if holder is None:
                return None, None
            return host, holder.service

    def remove_connection(self, key: str, host: str) -> None:
        with self._lock:
            hosts = self._conns.get(key)
            if hosts is None or host not in hosts:
                return
            hosts.pop(host).close()
            if not hosts:
                del self._conns[key]

    def remove_all_connections(self, key: str) -> None:
        with self._lock:
            hosts = self._conns.pop(key, None)
            if hosts is None:
                return
            for holder in hosts.values():
                holder.close()

    def close(self) -> None:
        """Close every connection; the pool can be used again afterwards."""
        with self._lock:
            for hosts in self._conns.values():
                for holder in hosts.values():
                    holder.close()
            self._conns = {}

    def reconcile_connections(
        self,
        key: str,
        want_connections: Iterable[str],
        new_service_cb: Optional[NewServiceCallback] = None,
        old_service_cb: Optional[OldServiceCallback] = None,
    ) -> dict[str, Service]:
        """Dial wanted hosts not yet connected and drop connected hosts no longer wanted."""
        want = list(want_connections)
        existing = self.get_connected_hosts(key)

        new_connections = _set_difference(want, existing)
        old_connections = _set_difference(existing, want)

        _log.debug("New connections: %s", new_connections)
        _log.debug("Old connections: %s", old_connections)

        for host in new_connections:
            _log.debug("Creating a new control connection: %s", host)
            try:
                _, service = self.dial_control_service(key, host)
            except Exception as err:
                raise ControlError(f"cannot connect to the pod: {err}") from err
            if new_service_cb is not None:
                new_service_cb(host, service)

        for host in old_connections:
            _log.debug("Cleaning up old connection: %s", host)
            if old_service_cb is not None:
                old_service_cb(host)
            self.remove_connection(key, host)

        _log.debug("Now connected to: %s", self.get_connected_hosts(key))
        return self.get_services(key)

    def dial_control_service(self, key: str, host: str) -> tuple[str, Service]:
        """Dial ``host``, register it under ``key`` and return ``(host, service)``."""
        raw = self._client_factory(host)
        cancel = getattr(raw, "close", None)

        service = raw
        for wrap in self._wrappers:
            service = wrap(service)

        with self._lock:
            self._conns.setdefault(key, {})[host] = _Holder(service, cancel)
        return host, service