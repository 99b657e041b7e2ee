"""Acknowledged control-plane messaging: services, opcode routing, send caching, notification stores and connection pools."""

__version__ = "0.1.0"

__all__ = [
    "caching",
    "connection_pool",
    "control",
    "handlers",
    "notification_store",
    "pod_ip_getter",
    "service",
]