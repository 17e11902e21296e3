#!/usr/bin/env python3
"""
KUBESTATUS ROLLOUT TESTS
------------------------
Classification of Deployment / DaemonSet / StatefulSet trees into
ongoing, failed and done.

Author: KubeStatus Team
Date: 2026-10-19
"""

import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

import pytest

from kubestatus.rollout.status import determine_rollout_status

from fake_cluster import make


def deployment(spec_replicas=3, generation=2, **status):
    status.setdefault("observedGeneration", 2)
    return make("Deployment", "web", generation=generation, spec={"replicas": spec_replicas}, status=status)


def test_deployment_done():
    result = determine_rollout_status(deployment(replicas=3, updatedReplicas=3, availableReplicas=3))
    assert result.done
    assert not result.failed
    assert result.message == 'deployment "web" successfully rolled out'


@pytest.mark.parametrize("tree,fragment", [
    (deployment(generation=3, replicas=3, updatedReplicas=3, availableReplicas=3),
     "spec update to be observed"),
    (deployment(replicas=3, updatedReplicas=1, availableReplicas=1),
     "1 out of 3 new replicas have been updated"),
    (deployment(replicas=4, updatedReplicas=3, availableReplicas=3),
     "1 old replicas are pending termination"),
    (deployment(replicas=3, updatedReplicas=3, availableReplicas=2),
     "2 of 3 updated replicas are available"),
])
def test_deployment_ongoing(tree, fragment):
    result = determine_rollout_status(tree)
    assert not result.done
    assert not result.failed
    assert fragment in result.message


def test_deployment_progress_deadline_is_failure():
    tree = deployment(replicas=3, updatedReplicas=1, conditions=[
        {"type": "Progressing", "status": "False", "reason": "ProgressDeadlineExceeded"},
    ])
    result = determine_rollout_status(tree)
    assert not result.done
    assert result.failed
    assert "exceeded its progress deadline" in result.error


def test_daemonset():
    ds = make("DaemonSet", "agent", generation=1, status={
        "observedGeneration": 1, "desiredNumberScheduled": 4,
        "updatedNumberScheduled": 4, "numberAvailable": 3,
    })
    result = determine_rollout_status(ds)
    assert not result.done
    assert "3 of 4 updated pods are available" in result.message

    ds["status"]["numberAvailable"] = 4
    assert determine_rollout_status(ds).done


def test_daemonset_on_delete_strategy_is_failure():
    ds = make("DaemonSet", "agent", spec={"updateStrategy": {"type": "OnDelete"}}, status={})
    result = determine_rollout_status(ds)
    assert result.failed
    assert "RollingUpdate" in result.error


def statefulset(strategy=None, **status):
    status.setdefault("observedGeneration", 1)
    spec = {"replicas": 3}
    if strategy is not None:
        spec["updateStrategy"] = strategy
    return make("StatefulSet", "db", generation=1, spec=spec, status=status)


def test_statefulset_waits_for_ready_pods():
    result = determine_rollout_status(statefulset(readyReplicas=1))
    assert not result.done
    assert result.message == "Waiting for 2 pods to be ready..."


def test_statefulset_partition():
    strategy = {"type": "RollingUpdate", "rollingUpdate": {"partition": 1}}
    ongoing = determine_rollout_status(statefulset(strategy, readyReplicas=3, updatedReplicas=1))
    assert not ongoing.done
    assert "1 out of 2 new pods have been updated" in ongoing.message

    done = determine_rollout_status(statefulset(strategy, readyReplicas=3, updatedReplicas=2))
    assert done.done


def test_statefulset_revisions():
    ongoing = determine_rollout_status(statefulset(
        readyReplicas=3, updatedReplicas=1, updateRevision="db-2", currentRevision="db-1"))
    assert not ongoing.done
    assert "revision db-2" in ongoing.message

    done = determine_rollout_status(statefulset(
        readyReplicas=3, currentReplicas=3, updateRevision="db-2", currentRevision="db-2"))
    assert done.done


def test_statefulset_unobserved():
    assert not determine_rollout_status(statefulset(observedGeneration=0, readyReplicas=3)).done


def test_unknown_kind_has_no_rollout_status():
    result = determine_rollout_status(make("Service", "web"))
    assert result.failed
    assert "Service" in result.error
