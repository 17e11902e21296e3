#!/usr/bin/env python3
"""
KUBESTATUS NORMALIZER TESTS
---------------------------
Generic Tree projection, dotted access and the typed views used by the
augmentors and rule functions.

Author: KubeStatus Team
Date: 2026-10-19
"""

import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

import pytest
from kubernetes import client

from kubestatus.cluster.normalizer import (
    IngressView,
    PodView,
    ServiceView,
    dig,
    object_ref,
    to_tree,
    to_typed,
)
from kubestatus.core.errors import ConversionError

from fake_cluster import make


def test_to_tree_of_a_tree_is_equal_and_independent():
    original = make("Deployment", "web", labels={"app": "web"}, spec={"replicas": 3})
    tree = to_tree(original)

    assert tree == original
    tree["spec"]["replicas"] = 1
    tree["metadata"]["labels"]["app"] = "changed"
    assert original["spec"]["replicas"] == 3
    assert original["metadata"]["labels"]["app"] == "web"


def test_to_tree_of_a_model_uses_wire_names():
    pod = client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(name="web-1", namespace="prod", labels={"app": "web"}),
        spec=client.V1PodSpec(node_name="node-a", containers=[client.V1Container(name="web", image="nginx")]),
    )
    tree = to_tree(pod)

    assert tree["apiVersion"] == "v1"
    assert tree["spec"]["nodeName"] == "node-a"
    assert tree["spec"]["containers"][0]["name"] == "web"
    assert tree["metadata"]["labels"] == {"app": "web"}


@pytest.mark.parametrize("broken", [
    {"metadata": {"name": "x"}},
    {"kind": "Pod"},
    {"kind": "Pod", "metadata": {"namespace": "prod"}},
])
def test_to_tree_requires_kind_and_name(broken):
    with pytest.raises(ConversionError):
        to_tree(broken)


def test_to_tree_rejects_arbitrary_objects():
    with pytest.raises(ConversionError):
        to_tree(object())


def test_dig():
    tree = {"spec": {"ports": [{"port": 80}, {"port": 443}], "empty": None}}
    assert dig(tree, "spec", "ports", 1, "port") == 443
    assert dig(tree, "spec", "ports", 5, "port") is None
    assert dig(tree, "spec", "missing", default="x") == "x"
    assert dig(tree, "spec", "empty", default={}) == {}
    assert dig(tree, "spec", "ports", "port") is None


def test_object_ref():
    assert object_ref(make("Pod", "web", namespace="prod")) == "Pod/web -n prod"
    assert object_ref(make("Node", "node-a")) == "Node/node-a"


def test_to_typed_pod():
    pod = to_typed(make("Pod", "web", namespace="prod", labels={"app": "web"}, spec={"nodeName": "n1"}), "Pod")
    assert isinstance(pod, PodView)
    assert (pod.name, pod.namespace, pod.node_name, pod.labels) == ("web", "prod", "n1", {"app": "web"})


def test_to_typed_service_defaults_to_cluster_ip():
    svc = to_typed(make("Service", "web", spec={"selector": {"app": "web"}}), "Service")
    assert isinstance(svc, ServiceView)
    assert svc.type == "ClusterIP"
    assert svc.selector == {"app": "web"}


def test_to_typed_kind_mismatch():
    with pytest.raises(ConversionError):
        to_typed(make("Service", "web"), "Pod")


def test_to_typed_without_projection():
    with pytest.raises(ConversionError):
        to_typed(make("ConfigMap", "cfg"), "ConfigMap")


def test_ingress_view_collects_backends_in_order_without_duplicates():
    ingress = make("Ingress", "web", spec={
        "defaultBackend": {"service": {"name": "fallback", "port": {"number": 80}}},
        "rules": [
            {"http": {"paths": [
                {"path": "/", "backend": {"service": {"name": "web"}}},
                {"path": "/api", "backend": {"service": {"name": "api"}}},
                {"path": "/v2", "backend": {"service": {"name": "web"}}},
            ]}},
            {"host": "legacy.example.com", "http": {"paths": [
                {"backend": {"serviceName": "legacy", "servicePort": 80}},
            ]}},
        ],
    })
    view = to_typed(ingress, "Ingress")
    assert isinstance(view, IngressView)
    assert view.backend_services == ["fallback", "web", "api", "legacy"]
