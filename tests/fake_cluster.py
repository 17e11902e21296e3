"""
In-memory stand-in for ClusterAccess. Same surface, no network: objects are
plain trees, selectors support equality and inequality terms, and every
read is recorded so tests can assert how many calls were made.
"""

import copy
from typing import Any, Dict, List, Optional, Tuple

from kubestatus.cluster.access import KIND_ALIASES
from kubestatus.cluster.normalizer import dig, is_cluster_scoped
from kubestatus.core.errors import ClusterAccessError, ObjectNotFoundError, ResolutionError


def _matches(selector: Optional[str], lookup) -> bool:
    for term in (selector or "").split(","):
        term = term.strip()
        if not term:
            continue
        if "!=" in term:
            key, value = term.split("!=", 1)
            if str(lookup(key)) == value:
                return False
        else:
            key, value = term.split("=", 1)
            if str(lookup(key)) != value:
                return False
    return True


def make(kind: str, name: str, namespace: Optional[str] = "default", **fields: Any) -> Dict[str, Any]:
    """Small tree builder: make('Pod', 'web', labels={...}, spec={...})."""
    metadata = {"name": name}
    if namespace and not is_cluster_scoped(kind):
        metadata["namespace"] = namespace
    for key in ("labels", "uid", "ownerReferences", "creationTimestamp", "generation"):
        if key in fields:
            metadata[key] = fields.pop(key)
    tree = {"apiVersion": fields.pop("apiVersion", "v1"), "kind": kind, "metadata": metadata}
    tree.update(fields)
    return tree


class FakeCluster:
    default_namespace = "default"

    def __init__(self, objects=(), stats: Optional[Dict[str, Any]] = None,
                 failures: Optional[Dict[Tuple[str, str], Exception]] = None):
        self.objects: List[Dict[str, Any]] = [copy.deepcopy(o) for o in objects]
        self.stats = stats or {}
        self.failures = failures or {}
        self.reads: List[Tuple[Any, ...]] = []

    def add(self, *objects: Dict[str, Any]):
        self.objects.extend(copy.deepcopy(o) for o in objects)

    def _maybe_fail(self, op: str, kind: str):
        error = self.failures.get((op, kind))
        if error is not None:
            raise error

    def resolve_kind(self, token: str) -> str:
        alias = KIND_ALIASES.get(token.lower())
        if alias:
            return alias
        if any(o["kind"] == token for o in self.objects):
            return token
        raise ResolutionError(f"the server doesn't have a resource type \"{token}\"")

    def is_namespaced(self, kind: str) -> bool:
        return not is_cluster_scoped(kind)

    def list(self, kind: str, namespace: Optional[str] = None,
             label_selector: Optional[str] = None, field_selector: Optional[str] = None):
        self.reads.append(("list", kind, namespace, label_selector, field_selector))
        self._maybe_fail("list", kind)
        out = []
        for obj in self.objects:
            if obj["kind"] != kind:
                continue
            if namespace is not None and dig(obj, "metadata", "namespace") != namespace:
                continue
            labels = dig(obj, "metadata", "labels", default={})
            if not _matches(label_selector, lambda k: labels.get(k)):
                continue
            if not _matches(field_selector, lambda k: dig(obj, *k.split("."))):
                continue
            out.append(copy.deepcopy(obj))
        return out

    def get(self, kind: str, name: str, namespace: Optional[str] = None):
        self.reads.append(("get", kind, name, namespace))
        self._maybe_fail("get", kind)
        for obj in self.objects:
            if obj["kind"] != kind or dig(obj, "metadata", "name") != name:
                continue
            if self.is_namespaced(kind) and dig(obj, "metadata", "namespace") != (namespace or self.default_namespace):
                continue
            return copy.deepcopy(obj)
        raise ObjectNotFoundError(f"Error from server (NotFound): {kind} \"{name}\" not found")

    def node_stats_summary(self, node_name: str):
        self.reads.append(("stats", node_name))
        self._maybe_fail("stats", "Node")
        if node_name not in self.stats:
            raise ClusterAccessError(f"no stats summary for node \"{node_name}\"")
        return copy.deepcopy(self.stats[node_name])
