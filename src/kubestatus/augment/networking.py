"""Ingress augmentor: resolve the backend Services an Ingress points at."""

from typing import Any, List

from kubestatus.cluster.normalizer import IngressView, to_tree
from kubestatus.core.errors import ObjectNotFoundError
from kubestatus.core.models import Tree


def include_ingress_services(ingress: IngressView, cluster: Any, tree: Tree):
    """
    Injects ingressServices (Service trees, in backend order) and
    missingIngressServices (backend names that do not exist).
    """
    found: List[Tree] = []
    missing: List[str] = []
    for name in ingress.backend_services:
        try:
            found.append(to_tree(cluster.get("Service", name, ingress.namespace)))
        except ObjectNotFoundError:
            missing.append(name)
    tree.setdefault("ingressServices", found)
    tree.setdefault("missingIngressServices", missing)
