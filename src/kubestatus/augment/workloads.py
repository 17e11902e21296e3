"""StatefulSet augmentor: diff against the previous controller revision."""

import logging
from typing import Any, List

from kubestatus.cluster.normalizer import StatefulSetView, dig
from kubestatus.core.models import Tree
from kubestatus.rollout.diff import unified_diff

logger = logging.getLogger("kubestatus.augment")


def _owned_by(revision: Tree, sts: StatefulSetView) -> bool:
    for ref in dig(revision, "metadata", "ownerReferences", default=[]):
        if ref.get("kind") != "StatefulSet":
            continue
        if sts.uid and ref.get("uid") == sts.uid:
            return True
        if not sts.uid and ref.get("name") == sts.name:
            return True
    return False


def include_statefulset_diff(sts: StatefulSetView, cluster: Any, tree: Tree):
    """
    Injects controllerRevisionDiff: unified diff from the revision before the
    update revision to the update revision. With fewer than two revisions
    there is nothing to compare and nothing is injected.
    """
    selector = ",".join(f"{k}={v}" for k, v in sorted(sts.match_labels.items()))
    revisions: List[Tree] = [
        r for r in cluster.list("ControllerRevision", namespace=sts.namespace, label_selector=selector or None)
        if _owned_by(r, sts)
    ]
    if len(revisions) < 2:
        return
    revisions.sort(key=lambda r: int(r.get("revision") or 0))

    latest = revisions[-1]
    if sts.update_revision:
        latest = next((r for r in revisions if r["metadata"]["name"] == sts.update_revision), latest)
    older = [r for r in revisions if int(r.get("revision") or 0) < int(latest.get("revision") or 0)]
    if not older:
        return
    previous = older[-1]

    logger.debug(f"Diffing {previous['metadata']['name']} -> {latest['metadata']['name']}")
    if "controllerRevisionDiff" not in tree:
        tree["controllerRevisionDiff"] = unified_diff(
            cluster, "ControllerRevision", sts.namespace,
            previous["metadata"]["name"], latest["metadata"]["name"],
        )
