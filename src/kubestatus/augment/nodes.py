"""Node and Pod augmentors: scheduled pods and kubelet usage summaries."""

from typing import Any, Dict, List

from kubestatus.cluster.normalizer import NodeView, PodView, dig
from kubestatus.core.models import Tree


def _inject(tree: Tree, key: str, value: Any):
    # Enrichment only; never clobber what the object already carries
    if key not in tree:
        tree[key] = value


def _brief_pod(pod: Tree) -> Dict[str, Any]:
    statuses = dig(pod, "status", "containerStatuses", default=[])
    containers = dig(pod, "spec", "containers", default=[])
    ready = sum(1 for s in statuses if s.get("ready"))
    return {
        "namespace": dig(pod, "metadata", "namespace", default=""),
        "name": dig(pod, "metadata", "name", default=""),
        "phase": dig(pod, "status", "phase", default="Unknown"),
        "ready": f"{ready}/{len(containers)}",
        "restarts": sum(int(s.get("restartCount") or 0) for s in statuses),
    }


def include_pods_on_node(node: NodeView, cluster: Any, tree: Tree):
    """Injects podsOnNode: a brief line per Pod scheduled on this node."""
    pods = cluster.list("Pod", namespace=None, field_selector=f"spec.nodeName={node.name}")
    _inject(tree, "podsOnNode", [_brief_pod(p) for p in pods])


def include_node_stats_summary(node: NodeView, cluster: Any, tree: Tree):
    """Injects nodeStats: the node section of /proxy/stats/summary."""
    summary = cluster.node_stats_summary(node.name)
    _inject(tree, "nodeStats", summary.get("node") or {})


def include_pod_metrics(pod: PodView, cluster: Any, tree: Tree):
    """
    Injects podMetrics.containers from the stats summary of the Pod's node,
    matching the pods[] entry by namespace/name. Unscheduled Pods have no
    node to ask and are left as they are.
    """
    if not pod.node_name:
        return
    summary = cluster.node_stats_summary(pod.node_name)
    for entry in summary.get("pods") or []:
        ref = entry.get("podRef") or {}
        if ref.get("name") == pod.name and ref.get("namespace") == pod.namespace:
            containers: List[Dict[str, Any]] = []
            for c in entry.get("containers") or []:
                containers.append({
                    "name": c.get("name"),
                    "cpu": c.get("cpu") or {},
                    "memory": c.get("memory") or {},
                })
            _inject(tree, "podMetrics", {"containers": containers})
            return
