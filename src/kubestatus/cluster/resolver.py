#!/usr/bin/env python3
"""
KUBESTATUS RESOLVER - From Query Scope to Objects
-------------------------------------------------
Turns a QueryScope into Generic Trees, either by querying the cluster or by
reading manifests from disk (and then re-reading their live state).

Two entry points:
1. resolve(scope)            user-facing query; per-item failures collected,
                             a query that cannot run raises ResolutionError.
2. resolve_adhoc(ns, *args)  rule-time lookups; every failure becomes [].

Author: KubeStatus Team
Date: 2026-10-19
"""

import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubestatus.cluster.access import ClusterAccess
from kubestatus.cluster.normalizer import dig, is_cluster_scoped, to_tree
from kubestatus.core.errors import (
    ClusterAccessError,
    ConversionError,
    KubeStatusError,
    ObjectNotFoundError,
    ResolutionError,
)
from kubestatus.core.models import QueryScope, Resolution, Tree

logger = logging.getLogger("kubestatus.resolver")

MANIFEST_EXTENSIONS = (".yaml", ".yml", ".json")

# (type token, object name or None for "all of that type")
Target = Tuple[str, Optional[str]]


def parse_resource_args(args: List[str]) -> List[Target]:
    """
    kubectl's TYPE[,TYPE...] [NAME...] | TYPE/NAME... argument grammar.

    >>> parse_resource_args(["deploy/web", "svc/web"])
    [('deploy', 'web'), ('svc', 'web')]
    >>> parse_resource_args(["po,svc", "a"])
    [('po', 'a'), ('svc', 'a')]
    """
    args = [a for a in args if a.strip()]
    if not args:
        return []

    slashed = [a for a in args if "/" in a]
    if slashed:
        if len(slashed) != len(args):
            raise ResolutionError(
                "there is no need to specify a resource type as a separate argument "
                "when passing arguments in resource/name form"
            )
        targets = []
        for arg in args:
            kind, _, name = arg.partition("/")
            if not kind or not name or "/" in name:
                raise ResolutionError(f"arguments in resource/name form must have a single resource and name: \"{arg}\"")
            targets.append((kind, name))
        return targets

    kinds = [k for k in args[0].split(",")]
    if any(not k.strip() for k in kinds):
        raise ResolutionError(f"Malformed resource type list \"{args[0]}\"")
    names = args[1:]
    if not names:
        return [(k, None) for k in kinds]
    return [(k, n) for k in kinds for n in names]


class Resolver:
    """Builds cluster and file queries on top of a ClusterAccess handle."""

    def __init__(self, cluster: ClusterAccess):
        self.cluster = cluster
        self.yaml = YAML(typ="safe")

    # --- user queries ------------------------------------------------------

    def resolve(self, scope: QueryScope) -> Resolution:
        if scope.filenames and scope.args:
            raise ResolutionError(
                "when paths, URLs, or stdin is provided as input, "
                "you may not specify a resource by arguments as well"
            )

        if scope.filenames:
            resolution = self._resolve_files(scope)
        elif scope.args:
            resolution = self._resolve_args(scope)
        else:
            raise ResolutionError("You must provide one or more resources by argument or filename.")

        if not resolution.objects and not resolution.errors:
            if not scope.all_namespaces and scope.namespace:
                resolution.notice = f"No resources found in {scope.namespace} namespace."
            else:
                resolution.notice = "No resources found."
        logger.debug(f"Resolved {len(resolution.objects)} objects, {len(resolution.errors)} errors")
        return resolution

    def _namespace_for(self, scope: QueryScope) -> str:
        return scope.namespace or self.cluster.default_namespace

    def _resolve_args(self, scope: QueryScope) -> Resolution:
        targets = parse_resource_args(list(scope.args))
        named = any(name for _, name in targets)
        if named and (scope.label_selector or scope.field_selector):
            raise ResolutionError("name cannot be provided when a selector is specified")
        if named and scope.all_namespaces:
            raise ResolutionError("a resource cannot be retrieved by name across all namespaces")

        resolution = Resolution()
        for token, name in targets:
            kind = self.cluster.resolve_kind(token)
            namespaced = self.cluster.is_namespaced(kind)
            if name is None:
                namespace = None if scope.all_namespaces else self._namespace_for(scope)
                try:
                    items = self.cluster.list(
                        kind,
                        namespace=namespace if namespaced else None,
                        label_selector=scope.label_selector or None,
                        field_selector=scope.field_selector or None,
                    )
                except ClusterAccessError as e:
                    raise ResolutionError(f"Failed querying {kind} resources", e)
                self._collect(resolution, items)
            else:
                namespace = self._namespace_for(scope) if namespaced else None
                self._fetch_into(resolution, kind, name, namespace)
        return resolution

    def _resolve_files(self, scope: QueryScope) -> Resolution:
        resolution = Resolution()
        for doc in self.load_manifests(scope.filenames):
            kind = doc["kind"]
            name = doc["metadata"]["name"]
            namespace = None
            if not is_cluster_scoped(kind) and self.cluster.is_namespaced(kind):
                namespace = dig(doc, "metadata", "namespace")
                if scope.enforce_namespace and namespace and scope.namespace and namespace != scope.namespace:
                    raise ResolutionError(
                        f"the namespace from the provided object \"{namespace}\" does not match "
                        f"the namespace \"{scope.namespace}\". You must pass '--namespace={namespace}' "
                        f"to perform this operation."
                    )
                namespace = namespace or self._namespace_for(scope)
            # Latest(): report on live state, not on the file contents
            self._fetch_into(resolution, kind, name, namespace)
        return resolution

    def _fetch_into(self, resolution: Resolution, kind: str, name: str, namespace: Optional[str]):
        try:
            resolution.objects.append(to_tree(self.cluster.get(kind, name, namespace)))
        except (ObjectNotFoundError, ClusterAccessError, ConversionError) as e:
            logger.debug(f"Skipping {kind}/{name}: {e}")
            resolution.errors.append(e)

    def _collect(self, resolution: Resolution, items: List[Any]):
        for item in items:
            try:
                resolution.objects.append(to_tree(item))
            except ConversionError as e:
                resolution.errors.append(e)

    def fetch(self, kind: str, name: str, namespace: Optional[str] = None) -> Tree:
        """Single named read with errors propagated."""
        return to_tree(self.cluster.get(self.cluster.resolve_kind(kind), name, namespace))

    # --- manifests ---------------------------------------------------------

    def load_manifests(self, paths: Any) -> List[Tree]:
        """Reads YAML/JSON manifests (files or directories), flattening Lists."""
        docs: List[Tree] = []
        for raw_path in paths:
            path = Path(raw_path)
            if path.is_dir():
                files = sorted(
                    f for f in path.rglob("*")
                    if f.is_file() and not f.is_symlink() and f.suffix.lower() in MANIFEST_EXTENSIONS
                )
            elif path.exists():
                files = [path]
            else:
                raise ResolutionError(f"the path \"{raw_path}\" does not exist")

            for file_path in files:
                docs.extend(self._load_file(file_path))
        return docs

    def _load_file(self, path: Path) -> List[Tree]:
        try:
            raw_docs = list(self.yaml.load_all(path.read_text(encoding="utf-8-sig")))
        except (OSError, UnicodeDecodeError, YAMLError) as e:
            raise ResolutionError(f"error parsing {path}", e)

        docs: List[Tree] = []
        for raw in raw_docs:
            if raw is None:
                continue
            if not isinstance(raw, dict):
                raise ResolutionError(f"error parsing {path}: document is not a mapping")
            items = raw.get("items") if str(raw.get("kind", "")).endswith("List") else [raw]
            for item in items or []:
                try:
                    docs.append(to_tree(item))
                except ConversionError as e:
                    raise ResolutionError(f"error parsing {path}", e)
        return docs

    # --- rule-time lookups -------------------------------------------------

    def resolve_adhoc(self, namespace: str, *args: str) -> List[Tree]:
        """
        Lookup for rule functions: no user selectors, and "nothing found" is
        a perfectly good answer, so every failure becomes an empty list.
        """
        try:
            targets = parse_resource_args(list(args))
            out: List[Tree] = []
            for token, name in targets:
                kind = self.cluster.resolve_kind(token)
                namespaced = self.cluster.is_namespaced(kind)
                if name is None:
                    for item in self.cluster.list(kind, namespace=(namespace or None) if namespaced else None):
                        out.append(to_tree(item))
                else:
                    try:
                        out.append(to_tree(self.cluster.get(kind, name, (namespace or None) if namespaced else None)))
                    except ObjectNotFoundError:
                        continue
            return out
        except KubeStatusError as e:
            logger.debug(f"Ad hoc lookup {namespace!r} {args} found nothing: {e}")
            return []

    def list_by_selector(self, namespace: str, kind: str, label_selector: str = "",
                         field_selector: str = "") -> List[Tree]:
        """Selector lookup for rule functions; failures become []."""
        try:
            resolved = self.cluster.resolve_kind(kind)
            items = self.cluster.list(
                resolved,
                namespace=(namespace or None) if self.cluster.is_namespaced(resolved) else None,
                label_selector=label_selector or None,
                field_selector=field_selector or None,
            )
            return [to_tree(item) for item in items]
        except KubeStatusError as e:
            logger.debug(f"Selector lookup {kind} {label_selector!r} {field_selector!r} failed: {e}")
            return []
