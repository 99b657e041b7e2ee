"""Collects the IP addresses of pods listed by a pod lister."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

PodLister = Callable[[str, Any], Iterable[Any]]


@dataclass(frozen=True)
class PodIpGetter:
    """Lists pods through ``lister(namespace, selector)``; each pod has a ``pod_ip`` attribute."""

    lister: PodLister

    def get_all_pods_ip(self, namespace: str, selector: Any = None) -> list[str]:
        """Return the IPs of the matching pods, skipping pods without one."""
        return [pod.pod_ip for pod in self.lister(namespace, selector) if pod.pod_ip]