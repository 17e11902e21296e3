#!/usr/bin/env python3
"""
KUBESTATUS RULE FUNCTIONS - Data Access While Rendering
-------------------------------------------------------
Rules read live cluster state and compose other objects' reports through
the functions bound on a RenderContext. A context is built per render
pass and handed to every step explicitly; nothing is kept in module state,
so independent queries in one process never see each other's bindings.

The context talks to the cluster through a Lookups object:
- ClusterLookups  resolver-backed, errors become empty results
- LocalLookups    local manifest rendering, never touches the network

Author: KubeStatus Team
Date: 2026-10-19
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from kubestatus.cluster.normalizer import PodView, ServiceView, dig, object_ref, to_typed
from kubestatus.cluster.resolver import Resolver
from kubestatus.core.errors import ConversionError
from kubestatus.core.models import Tree

logger = logging.getLogger("kubestatus.rules")

EXTERNAL_NAME = "ExternalName"

RenderObject = Callable[[Tree, int], Tuple[str, Optional[Exception]]]


def is_subset(a: Optional[Mapping[str, Any]], b: Optional[Mapping[str, Any]]) -> bool:
    """True iff every key of a exists in b with an equal value."""
    b = b or {}
    for key, value in (a or {}).items():
        if key not in b or b[key] != value:
            return False
    return True


def label_selector(labels: Optional[Mapping[str, Any]]) -> str:
    return ",".join(f"{k}={v}" for k, v in sorted((labels or {}).items()))


def indent(text: str, prefix: str = "  ") -> str:
    return "\n".join(prefix + line if line else line for line in text.splitlines())


class ClusterLookups:
    """Live lookups through the resolver's ad hoc path."""

    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    def by_scope(self, namespace: str, *args: str) -> List[Tree]:
        return self.resolver.resolve_adhoc(namespace, *args)

    def by_selector(self, namespace: str, kind: str, label_selector: str = "",
                    field_selector: str = "") -> List[Tree]:
        return self.resolver.list_by_selector(namespace, kind, label_selector, field_selector)


class LocalLookups:
    """Cluster-free lookups: every query finds nothing."""

    def by_scope(self, namespace: str, *args: str) -> List[Tree]:
        return []

    def by_selector(self, namespace: str, kind: str, label_selector: str = "",
                    field_selector: str = "") -> List[Tree]:
        return []


def _no_render(tree: Tree, depth: int) -> Tuple[str, Optional[Exception]]:
    return "", None


@dataclass
class RenderContext:
    """
    Everything a rule step may call besides the tree itself.

    render_object renders one tree (augmentation included) at a given
    nesting depth; the Renderer supplies it.
    """
    lookups: Any = field(default_factory=LocalLookups)
    render_object: RenderObject = _no_render
    depth: int = 0
    max_depth: int = 3
    event_limit: int = 10
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # --- lookups -----------------------------------------------------------

    def fetch_by_scope(self, namespace: str, *args: str) -> List[Tree]:
        return self.lookups.by_scope(namespace, *args)

    def fetch_first_by_scope(self, namespace: str, *args: str) -> Tree:
        found = self.fetch_by_scope(namespace, *args)
        return found[0] if found else {}

    def fetch_by_label_set(self, namespace: str, kind: str, labels: Mapping[str, Any]) -> List[Tree]:
        selector = label_selector(labels)
        return [t for t in self.lookups.by_selector(namespace, kind, selector)
                if is_subset(labels, dig(t, "metadata", "labels", default={}))]

    def fetch_services_matching_pod(self, pod_tree: Tree) -> List[Tree]:
        try:
            pod: PodView = to_typed(pod_tree, "Pod")
        except ConversionError as e:
            logger.debug(f"Not matching services: {e}")
            return []
        out = []
        for svc_tree in self.lookups.by_selector(pod.namespace, "Service"):
            svc: ServiceView = to_typed(svc_tree, "Service")
            # ExternalName services carry no selector semantics
            if svc.type == EXTERNAL_NAME:
                continue
            if is_subset(svc.selector, pod.labels):
                out.append(svc_tree)
        return out

    def fetch_events(self, tree: Tree) -> Dict[str, Any]:
        meta = tree.get("metadata") or {}
        involved = {
            "involvedObject.name": meta.get("name"),
            "involvedObject.namespace": meta.get("namespace"),
            "involvedObject.kind": tree.get("kind"),
            "involvedObject.uid": meta.get("uid"),
        }
        selector = ",".join(f"{k}={v}" for k, v in involved.items() if v)
        items = self.lookups.by_selector(meta.get("namespace", ""), "Event", field_selector=selector)
        items.sort(key=lambda e: e.get("lastTimestamp") or e.get("eventTime") or "")
        return {"apiVersion": "v1", "kind": "EventList", "items": items}

    # --- composition -------------------------------------------------------

    def _render_many(self, trees: List[Tree]) -> str:
        if self.depth >= self.max_depth:
            logger.debug(f"Inline nesting limit {self.max_depth} reached")
            return ""
        blocks = []
        for tree in trees:
            text, error = self.render_object(tree, self.depth + 1)
            if error is not None:
                logger.warning(f"Inline report for {object_ref(tree)} is incomplete: {error}")
            if text:
                blocks.append(indent(text))
        return "\n".join(blocks)

    def render_inline(self, namespace: str, *args: str) -> str:
        if not namespace and not args:
            return ""
        trees = self.fetch_by_scope(namespace, *args)
        trees.sort(key=lambda t: dig(t, "metadata", "creationTimestamp", default=""))
        return self._render_many(trees)

    def render_owner_inline(self, tree: Tree) -> str:
        owners = dig(tree, "metadata", "ownerReferences", default=[])
        if not owners:
            return ""
        # First reference, controller flag or not
        owner = owners[0]
        return self.render_inline(dig(tree, "metadata", "namespace", default=""),
                                  owner.get("kind", ""), owner.get("name", ""))

    def render_tree(self, tree: Tree) -> str:
        return self._render_many([tree])
