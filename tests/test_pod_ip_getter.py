from dataclasses import dataclass, field

import pytest

from controlproto.pod_ip_getter import PodIpGetter

NAMESPACE = "abc"


@dataclass
class _Pod:
    name: str
    namespace: str
    pod_ip: str = ""
    labels: dict = field(default_factory=dict)


class _Lister:
    def __init__(self, pods):
        self.pods = pods
        self.calls = []

    def __call__(self, namespace, selector):
        self.calls.append((namespace, selector))
        return [
            p
            for p in self.pods
            if p.namespace == namespace and (selector is None or selector(p.labels))
        ]


@pytest.mark.parametrize(
    "pods, want",
    [
        ([], []),
        ([_Pod("pod-a", NAMESPACE, "10.0.0.1")], ["10.0.0.1"]),
        (
            [_Pod("pod-a", NAMESPACE, "10.0.0.1"), _Pod("pod-b", NAMESPACE, "10.0.0.2")],
            ["10.0.0.1", "10.0.0.2"],
        ),
    ],
    ids=["no pods", "get one pod ip", "get different pod ip"],
)
def test_get_all_pods_ip(pods, want):
    getter = PodIpGetter(lister=_Lister(pods))
    assert sorted(getter.get_all_pods_ip(NAMESPACE)) == sorted(want)


def test_skips_pods_without_ip_and_other_namespaces():
    pods = [
        _Pod("pod-a", NAMESPACE, "10.0.0.1"),
        _Pod("pod-b", NAMESPACE, ""),
        _Pod("pod-c", "other", "10.0.0.3"),
    ]
    getter = PodIpGetter(lister=_Lister(pods))
    assert getter.get_all_pods_ip(NAMESPACE) == ["10.0.0.1"]


def test_selector_passed_to_lister():
    pods = [
        _Pod("pod-a", NAMESPACE, "10.0.0.1", {"app": "x"}),
        _Pod("pod-b", NAMESPACE, "10.0.0.2", {"app": "y"}),
    ]
    lister = _Lister(pods)
    selector = lambda labels: labels.get("app") == "y"  # noqa: E731
    assert PodIpGetter(lister).get_all_pods_ip(NAMESPACE, selector) == ["10.0.0.2"]
    assert lister.calls == [(NAMESPACE, selector)]


def test_lister_error_propagates():
    def failing(namespace, selector):
        raise RuntimeError("lister unavailable")

    with pytest.raises(RuntimeError, match="lister unavailable"):
        PodIpGetter(failing).get_all_pods_ip(NAMESPACE)