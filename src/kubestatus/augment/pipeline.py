#!/usr/bin/env python3
"""
KUBESTATUS AUGMENTATION PIPELINE
--------------------------------
Before a tree is rendered, kind-specific augmentors inject facts that are
not part of the object itself: pods scheduled on a node, live usage from
the kubelet, the diff of a StatefulSet's last revision, the Services behind
an Ingress.

Each kind owns an ordered list of augmentors. They run strictly in
registration order against the same tree and the first failure stops the
list for that object; other objects in the batch are unaffected.

Author: KubeStatus Team
Date: 2026-10-19
"""

import logging
from typing import Any, Callable, Dict, List, Optional


from kubestatus.augment.networking import include_ingress_services
from kubestatus.augment.nodes import include_node_stats_summary, include_pod_metrics, include_pods_on_node
from kubestatus.augment.workloads import include_statefulset_diff
from kubestatus.core.errors import AugmentationError
from kubestatus.core.models import Tree

logger = logging.getLogger("kubestatus.augment")

# (typed view, cluster access handle, mutable tree) -> None, raising on failure
Augmentor = Callable[[Any, Any, Tree], None]

DEFAULT_AUGMENTORS: Dict[str, List[Augmentor]] = {
    "Node": [include_pods_on_node, include_node_stats_summary],
    "Pod": [include_pod_metrics],
    "StatefulSet": [include_statefulset_diff],
    "Ingress": [include_ingress_services],
}


class AugmentationPipeline:
    """
    Registry of kind -> ordered augmentors. Kinds without an entry simply
    get no augmentation.
    """

    def __init__(self, registry: Optional[Dict[str, List[Augmentor]]] = None):
        source = DEFAULT_AUGMENTORS if registry is None else registry
        self.registry: Dict[str, List[Augmentor]] = {k: list(v) for k, v in source.items()}

    def register(self, kind: str, augmentor: Augmentor):
        self.registry.setdefault(kind, []).append(augmentor)

    def augmentors_for(self, kind: str) -> List[Augmentor]:
        return self.registry.get(kind, [])

    def augment(self, kind: str, typed: Any, cluster: Any, tree: Tree):
        """Runs every augmentor for kind; raises AugmentationError on the first failure."""
        for augmentor in self.augmentors_for(kind):
            name = getattr(augmentor, "__name__", repr(augmentor))
            logger.debug(f"Augmenting {kind}/{tree['metadata']['name']} with {name}")
            try:
                augmentor(typed, cluster, tree)
            except AugmentationError:
                raise
            except Exception as e:
                # Any failure, malformed payloads included, stays scoped to this object
                raise AugmentationError(
                    f"Failed {name} for {kind}/{tree['metadata']['name']}", e, augmentor=name
                )
