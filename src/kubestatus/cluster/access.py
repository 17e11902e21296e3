#!/usr/bin/env python3
"""
KUBESTATUS CLUSTER ACCESS - The Only Door to the API Server
-----------------------------------------------------------
ClusterAccess is the single place where kubeconfig is loaded and where
kubernetes client exceptions are translated into kubestatus errors.
Everything above this layer speaks Generic Trees and kind strings.

Reads are kind-agnostic through the DynamicClient; the node stats summary
goes through the CoreV1Api node proxy. The discovery client is created on
first use, so constructing a handle costs no network round trips.

Author: KubeStatus Team
Date: 2026-10-19
"""

import json
import logging
from typing import Any, Dict, List, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import DynamicApiError, NotFoundError

from kubestatus.cluster.normalizer import is_cluster_scoped
from kubestatus.core.errors import ClusterAccessError, ObjectNotFoundError, ResolutionError
from kubestatus.core.models import Tree

logger = logging.getLogger("kubestatus.cluster")

# kubectl-style names and short names for the kinds we render most.
# Anything else falls through to API discovery.
KIND_ALIASES: Dict[str, str] = {}
for _kind, _aliases in {
    "Pod": ["po", "pod", "pods"],
    "Node": ["no", "node", "nodes"],
    "Namespace": ["ns", "namespace", "namespaces"],
    "Service": ["svc", "service", "services"],
    "Endpoints": ["ep", "endpoints"],
    "Event": ["ev", "event", "events"],
    "ConfigMap": ["cm", "configmap", "configmaps"],
    "Secret": ["secret", "secrets"],
    "ServiceAccount": ["sa", "serviceaccount", "serviceaccounts"],
    "PersistentVolume": ["pv", "persistentvolume", "persistentvolumes"],
    "PersistentVolumeClaim": ["pvc", "persistentvolumeclaim", "persistentvolumeclaims"],
    "Deployment": ["deploy", "deployment", "deployments"],
    "ReplicaSet": ["rs", "replicaset", "replicasets"],
    "StatefulSet": ["sts", "statefulset", "statefulsets"],
    "DaemonSet": ["ds", "daemonset", "daemonsets"],
    "ControllerRevision": ["controllerrevision", "controllerrevisions"],
    "Job": ["job", "jobs"],
    "CronJob": ["cj", "cronjob", "cronjobs"],
    "Ingress": ["ing", "ingress", "ingresses"],
    "HorizontalPodAutoscaler": ["hpa", "horizontalpodautoscaler", "horizontalpodautoscalers"],
    "PodDisruptionBudget": ["pdb", "poddisruptionbudget", "poddisruptionbudgets"],
    "StorageClass": ["sc", "storageclass", "storageclasses"],
}.items():
    for _alias in _aliases:
        KIND_ALIASES[_alias] = _kind


class ClusterAccess:
    """
    Thin, synchronous, read-only handle over one cluster connection.
    No retries and no caching of objects; only API discovery is memoized.
    """

    def __init__(self, api_client: client.ApiClient, default_namespace: str = "default"):
        self.api_client = api_client
        self.default_namespace = default_namespace or "default"
        self._dynamic: Optional[DynamicClient] = None
        self._resources: Dict[str, Any] = {}

    @classmethod
    def from_kubeconfig(cls, kubeconfig: Optional[str] = None,
                        context: Optional[str] = None) -> "ClusterAccess":
        """Loads kubeconfig (or the in-cluster service account as a fallback)."""
        namespace = "default"
        try:
            api_client = config.new_client_from_config(config_file=kubeconfig, context=context)
            _, active = config.list_kube_config_contexts(config_file=kubeconfig)
            if context:
                contexts, _ = config.list_kube_config_contexts(config_file=kubeconfig)
                active = next((c for c in contexts if c.get("name") == context), active)
            namespace = (active or {}).get("context", {}).get("namespace") or namespace
        except ConfigException as e:
            if kubeconfig or context:
                raise ResolutionError("Failed loading kubeconfig", e)
            logger.debug(f"No usable kubeconfig ({e}), trying in-cluster config")
            try:
                config.load_incluster_config()
            except ConfigException as incluster_error:
                raise ResolutionError("Failed loading cluster configuration", incluster_error)
            api_client = client.ApiClient()
        return cls(api_client, default_namespace=namespace)

    @property
    def dynamic(self) -> DynamicClient:
        if self._dynamic is None:
            try:
                self._dynamic = DynamicClient(self.api_client)
            except (ApiException, urllib3.exceptions.HTTPError) as e:
                raise ResolutionError("Failed discovering cluster API resources", e)
        return self._dynamic

    # --- kinds -------------------------------------------------------------

    def resolve_kind(self, token: str) -> str:
        """Maps 'po', 'pods', 'Pod', 'deployments.apps' ... to a Kind."""
        key = token.strip()
        if not key:
            raise ResolutionError("Empty resource type")
        alias = KIND_ALIASES.get(key.lower().split(".")[0])
        if alias:
            return alias
        return self._discover(key).kind

    def is_namespaced(self, kind: str) -> bool:
        if is_cluster_scoped(kind):
            return False
        if kind in KIND_ALIASES.values():
            return True
        return bool(self._discover(kind).namespaced)

    def _discover(self, token: str) -> Any:
        if token in self._resources:
            return self._resources[token]

        name, _, group = token.partition(".")
        candidates: List[Any] = []
        try:
            for query in ({"kind": name}, {"name": name.lower()}, {"singular_name": name.lower()}):
                if group:
                    query["group"] = group
                candidates = [r for r in self.dynamic.resources.search(**query)
                              if "/" not in getattr(r, "name", "/") and hasattr(r, "namespaced")]
                if candidates:
                    break
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise ResolutionError(f"Failed discovering resource type \"{token}\"", e)

        if not candidates:
            raise ResolutionError(f"the server doesn't have a resource type \"{token}\"")

        # Core group wins over e.g. events.k8s.io, then the preferred version
        candidates.sort(key=lambda r: (r.group != "", not getattr(r, "preferred", False)))
        resource = candidates[0]
        self._resources[token] = resource
        self._resources[resource.kind] = resource
        return resource

    # --- reads -------------------------------------------------------------

    def list(self, kind: str, namespace: Optional[str] = None,
             label_selector: Optional[str] = None,
             field_selector: Optional[str] = None) -> List[Tree]:
        """Lists objects; namespace=None means every namespace."""
        resource = self._discover(kind)
        kwargs: Dict[str, Any] = {}
        if resource.namespaced and namespace:
            kwargs["namespace"] = namespace
        if label_selector:
            kwargs["label_selector"] = label_selector
        if field_selector:
            kwargs["field_selector"] = field_selector

        logger.debug(f"LIST {kind} {kwargs}")
        result = self._call(resource.get, f"listing {kind}", **kwargs)
        items = result.to_dict().get("items") or []
        for item in items:
            item.setdefault("apiVersion", resource.group_version)
            item.setdefault("kind", resource.kind)
        return items

    def get(self, kind: str, name: str, namespace: Optional[str] = None) -> Tree:
        resource = self._discover(kind)
        kwargs: Dict[str, Any] = {"name": name}
        if resource.namespaced:
            kwargs["namespace"] = namespace or self.default_namespace

        logger.debug(f"GET {kind} {kwargs}")
        result = self._call(resource.get, f"getting {kind} \"{name}\"", **kwargs).to_dict()
        result.setdefault("apiVersion", resource.group_version)
        result.setdefault("kind", resource.kind)
        return result

    def node_stats_summary(self, node_name: str) -> Dict[str, Any]:
        """kubectl get --raw /api/v1/nodes/<node>/proxy/stats/summary"""
        core = client.CoreV1Api(self.api_client)
        logger.debug(f"GET nodes/{node_name}/proxy/stats/summary")
        response = self._call(
            core.connect_get_node_proxy_with_path, f"reading stats summary of node \"{node_name}\"",
            node_name, "stats/summary", _preload_content=False,
        )
        try:
            summary = json.loads(response.data)
        except (TypeError, ValueError) as e:
            raise ClusterAccessError(f"Malformed stats summary from node \"{node_name}\"", e)
        if not isinstance(summary, dict):
            raise ClusterAccessError(f"Malformed stats summary from node \"{node_name}\": expected an object")
        return summary

    def _call(self, fn: Any, action: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except NotFoundError as e:
            raise ObjectNotFoundError(f"Error from server (NotFound) {action}", e)
        except DynamicApiError as e:
            raise ClusterAccessError(f"Error from server {action}", e)
        except ApiException as e:
            if e.status == 404:
                raise ObjectNotFoundError(f"Error from server (NotFound) {action}", e)
            raise ClusterAccessError(f"Error from server {action}", e)
        except urllib3.exceptions.HTTPError as e:
            raise ResolutionError(f"Unable to connect to the server while {action}", e)
