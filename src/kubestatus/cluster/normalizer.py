#!/usr/bin/env python3
"""
KUBESTATUS NORMALIZER - Generic Trees & Typed Views
---------------------------------------------------
Projects whatever the resolver hands us (kubernetes model objects, dynamic
ResourceInstances, ruamel CommentedMaps, plain dicts) into a plain-dict
Generic Tree, and offers small typed views of a tree for the few places
that want attribute access instead of nested .get() chains.

Author: KubeStatus Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from kubernetes.client import ApiClient

from kubestatus.core.errors import ConversionError
from kubestatus.core.models import Tree

# Kinds that never carry metadata.namespace
CLUSTER_SCOPED_KINDS = {
    "Namespace", "Node", "PersistentVolume", "StorageClass",
    "ClusterRole", "ClusterRoleBinding", "CustomResourceDefinition",
    "PriorityClass", "IngressClass", "RuntimeClass", "CSIDriver", "CSINode",
    "VolumeAttachment", "APIService", "MutatingWebhookConfiguration",
    "ValidatingWebhookConfiguration", "CertificateSigningRequest",
    "ComponentStatus",
}

_sanitizer: Optional[ApiClient] = None


def _sanitize(value: Any) -> Any:
    global _sanitizer
    if _sanitizer is None:
        _sanitizer = ApiClient()
    return _sanitizer.sanitize_for_serialization(value)


def is_cluster_scoped(kind: str) -> bool:
    return kind in CLUSTER_SCOPED_KINDS


def _plain(value: Any) -> Any:
    """Recursively copies mappings/sequences into dicts and lists."""
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def to_tree(obj: Any) -> Tree:
    """
    Lossless projection into a Generic Tree. Normalizing a tree returns an
    equal (but independent) tree.
    """
    if isinstance(obj, dict):
        data = obj
    elif hasattr(obj, "openapi_types"):
        # kubernetes.client model: attribute names -> camelCase wire names
        data = _sanitize(obj)
    elif hasattr(obj, "to_dict"):
        # dynamic ResourceInstance / ResourceField
        data = obj.to_dict()
    else:
        raise ConversionError(f"Cannot normalize object of type {type(obj).__name__}")

    tree = _plain(_sanitize(data))
    if not isinstance(tree, dict):
        raise ConversionError("Normalized object is not a mapping")

    if not tree.get("kind"):
        raise ConversionError("Object has no kind")
    metadata = tree.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise ConversionError(f"{tree['kind']} object has no metadata.name")
    return tree


def dig(tree: Any, *path: Any, default: Any = None) -> Any:
    """Walks nested dicts/lists, returning default on any missing step."""
    current = tree
    for step in path:
        if isinstance(current, dict):
            if step not in current:
                return default
            current = current[step]
        elif isinstance(current, list) and isinstance(step, int):
            if step >= len(current) or step < -len(current):
                return default
            current = current[step]
        else:
            return default
    return default if current is None else current


def object_ref(tree: Tree) -> str:
    """Human reference like 'Deployment/web -n prod'."""
    name = f"{tree.get('kind', '?')}/{dig(tree, 'metadata', 'name', default='?')}"
    namespace = dig(tree, "metadata", "namespace")
    return f"{name} -n {namespace}" if namespace else name


# --- Typed projections -------------------------------------------------------

@dataclass
class PodView:
    name: str
    namespace: str
    node_name: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_tree(cls, tree: Tree) -> "PodView":
        meta = tree["metadata"]
        return cls(
            name=meta["name"],
            namespace=meta.get("namespace", ""),
            node_name=dig(tree, "spec", "nodeName"),
            labels=dict(meta.get("labels") or {}),
        )


@dataclass
class NodeView:
    name: str
    labels: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_tree(cls, tree: Tree) -> "NodeView":
        meta = tree["metadata"]
        return cls(name=meta["name"], labels=dict(meta.get("labels") or {}))


@dataclass
class ServiceView:
    name: str
    namespace: str
    type: str = "ClusterIP"
    selector: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_tree(cls, tree: Tree) -> "ServiceView":
        meta = tree["metadata"]
        return cls(
            name=meta["name"],
            namespace=meta.get("namespace", ""),
            type=dig(tree, "spec", "type", default="ClusterIP"),
            selector=dict(dig(tree, "spec", "selector", default={})),
        )


@dataclass
class StatefulSetView:
    name: str
    namespace: str
    uid: Optional[str] = None
    match_labels: Dict[str, str] = field(default_factory=dict)
    update_revision: Optional[str] = None
    current_revision: Optional[str] = None

    @classmethod
    def from_tree(cls, tree: Tree) -> "StatefulSetView":
        meta = tree["metadata"]
        return cls(
            name=meta["name"],
            namespace=meta.get("namespace", ""),
            uid=meta.get("uid"),
            match_labels=dict(dig(tree, "spec", "selector", "matchLabels", default={})),
            update_revision=dig(tree, "status", "updateRevision"),
            current_revision=dig(tree, "status", "currentRevision"),
        )


@dataclass
class IngressView:
    name: str
    namespace: str
    backend_services: List[str] = field(default_factory=list)

    @classmethod
    def from_tree(cls, tree: Tree) -> "IngressView":
        spec = tree.get("spec") or {}
        backends = [spec.get("defaultBackend"), spec.get("backend")]
        for rule in spec.get("rules") or []:
            for path in dig(rule, "http", "paths", default=[]):
                backends.append(path.get("backend"))

        names: List[str] = []
        for backend in backends:
            if not backend:
                continue
            # networking.k8s.io/v1 first, then the extensions/v1beta1 field
            name = dig(backend, "service", "name") or backend.get("serviceName")
            if name and name not in names:
                names.append(name)

        meta = tree["metadata"]
        return cls(name=meta["name"], namespace=meta.get("namespace", ""), backend_services=names)


PROJECTIONS: Dict[str, Callable[[Tree], Any]] = {
    "Pod": PodView.from_tree,
    "Node": NodeView.from_tree,
    "Service": ServiceView.from_tree,
    "StatefulSet": StatefulSetView.from_tree,
    "Ingress": IngressView.from_tree,
}


def to_typed(tree: Tree, kind_hint: str) -> Any:
    """Strongly typed view of a tree; the tree must be of kind_hint."""
    kind = tree.get("kind") if isinstance(tree, dict) else None
    if kind != kind_hint:
        raise ConversionError(f"Cannot convert {kind or 'untyped object'} to {kind_hint}")
    projection = PROJECTIONS.get(kind_hint)
    if projection is None:
        raise ConversionError(f"No typed projection registered for {kind_hint}")
    try:
        return projection(tree)
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise ConversionError(f"Malformed {kind_hint} object", e)
