#!/usr/bin/env python3
"""
KUBESTATUS ROLLOUT STATUS
-------------------------
Classifies a workload tree as rollout ongoing / failed / done by comparing
spec targets with status counters and conditions, using the same wording
as `kubectl rollout status`.

Author: KubeStatus Team
Date: 2026-10-19
"""

from typing import Callable, Dict

from kubestatus.cluster.normalizer import dig
from kubestatus.core.models import RolloutStatus, Tree

ROLLING_UPDATE = "RollingUpdate"
TIMED_OUT_REASON = "ProgressDeadlineExceeded"


def _int(tree: Tree, *path: str) -> int:
    try:
        return int(dig(tree, *path, default=0))
    except (TypeError, ValueError):
        return 0


def _observed(tree: Tree) -> bool:
    return _int(tree, "metadata", "generation") <= _int(tree, "status", "observedGeneration")


def deployment_status(tree: Tree) -> RolloutStatus:
    name = dig(tree, "metadata", "name", default="")
    if not _observed(tree):
        return RolloutStatus(False, "Waiting for deployment spec update to be observed...")

    for cond in dig(tree, "status", "conditions", default=[]):
        if cond.get("type") == "Progressing" and cond.get("reason") == TIMED_OUT_REASON:
            return RolloutStatus(False, error=f"deployment \"{name}\" exceeded its progress deadline")

    desired = dig(tree, "spec", "replicas")
    replicas = _int(tree, "status", "replicas")
    updated = _int(tree, "status", "updatedReplicas")
    available = _int(tree, "status", "availableReplicas")

    if desired is not None and updated < int(desired):
        return RolloutStatus(False, f"Waiting for deployment \"{name}\" rollout to finish: "
                                    f"{updated} out of {desired} new replicas have been updated...")
    if replicas > updated:
        return RolloutStatus(False, f"Waiting for deployment \"{name}\" rollout to finish: "
                                    f"{replicas - updated} old replicas are pending termination...")
    if available < updated:
        return RolloutStatus(False, f"Waiting for deployment \"{name}\" rollout to finish: "
                                    f"{available} of {updated} updated replicas are available...")
    return RolloutStatus(True, f"deployment \"{name}\" successfully rolled out")


def daemonset_status(tree: Tree) -> RolloutStatus:
    name = dig(tree, "metadata", "name", default="")
    if dig(tree, "spec", "updateStrategy", "type", default=ROLLING_UPDATE) != ROLLING_UPDATE:
        return RolloutStatus(False, error=f"rollout status is only available for {ROLLING_UPDATE} strategy type")
    if not _observed(tree):
        return RolloutStatus(False, "Waiting for daemon set spec update to be observed...")

    desired = _int(tree, "status", "desiredNumberScheduled")
    updated = _int(tree, "status", "updatedNumberScheduled")
    available = _int(tree, "status", "numberAvailable")
    if updated < desired:
        return RolloutStatus(False, f"Waiting for daemon set \"{name}\" rollout to finish: "
                                    f"{updated} out of {desired} new pods have been updated...")
    if available < desired:
        return RolloutStatus(False, f"Waiting for daemon set \"{name}\" rollout to finish: "
                                    f"{available} of {desired} updated pods are available...")
    return RolloutStatus(True, f"daemon set \"{name}\" successfully rolled out")


def statefulset_status(tree: Tree) -> RolloutStatus:
    strategy = dig(tree, "spec", "updateStrategy", default={})
    if strategy.get("type", ROLLING_UPDATE) != ROLLING_UPDATE:
        return RolloutStatus(False, error=f"rollout status is only available for {ROLLING_UPDATE} strategy type")

    observed = _int(tree, "status", "observedGeneration")
    if observed == 0 or _int(tree, "metadata", "generation") > observed:
        return RolloutStatus(False, "Waiting for statefulset spec update to be observed...")

    desired = dig(tree, "spec", "replicas")
    ready = _int(tree, "status", "readyReplicas")
    if desired is not None and ready < int(desired):
        return RolloutStatus(False, f"Waiting for {int(desired) - ready} pods to be ready...")

    partition = dig(strategy, "rollingUpdate", "partition")
    if partition is not None:
        if desired is not None:
            target = int(desired) - int(partition)
            updated = _int(tree, "status", "updatedReplicas")
            if updated < target:
                return RolloutStatus(False, f"Waiting for partitioned roll out to finish: "
                                            f"{updated} out of {target} new pods have been updated...")
        return RolloutStatus(True, f"partitioned roll out complete: "
                                   f"{_int(tree, 'status', 'updatedReplicas')} new pods have been updated...")

    update_revision = dig(tree, "status", "updateRevision")
    current_revision = dig(tree, "status", "currentRevision")
    if update_revision != current_revision:
        return RolloutStatus(False, f"waiting for statefulset rolling update to complete "
                                    f"{_int(tree, 'status', 'updatedReplicas')} pods at revision {update_revision}...")
    return RolloutStatus(True, f"statefulset rolling update complete "
                               f"{_int(tree, 'status', 'currentReplicas')} pods at revision {current_revision}...")


STATUS_VIEWERS: Dict[str, Callable[[Tree], RolloutStatus]] = {
    "Deployment": deployment_status,
    "DaemonSet": daemonset_status,
    "StatefulSet": statefulset_status,
}


def determine_rollout_status(tree: Tree) -> RolloutStatus:
    viewer = STATUS_VIEWERS.get(tree.get("kind", ""))
    if viewer is None:
        return RolloutStatus(False, error=f"no rollout status available for kind {tree.get('kind')}")
    return viewer(tree)
