#!/usr/bin/env python3
"""
KUBESTATUS REVISION DIFF
------------------------
Serializes the spec-equivalent part of two revisions of the same lineage
to canonical YAML and produces a line-based unified diff. The diff text is
uncolored; diff_line_tag() tells the presentation layer which lines were
added or removed.

Author: KubeStatus Team
Date: 2026-10-19
"""

import difflib
import io
from typing import Any, Optional

from ruamel.yaml import YAML

from kubestatus.cluster.access import ClusterAccess
from kubestatus.cluster.resolver import Resolver
from kubestatus.core.models import Tree

# Which top-level field carries the "desired state" of a kind
SPEC_FIELDS = {
    "ControllerRevision": "data",
    "ConfigMap": "data",
    "Secret": "data",
}


class CanonicalSerializer:
    """Dumps trees as YAML with sorted keys so diffs only show real changes."""

    def __init__(self):
        self.yaml = YAML(typ="rt")
        # Standard K8s: 2 spaces, sequences indented 4 (offset 2)
        self.yaml.indent(mapping=2, sequence=4, offset=2)
        self.yaml.width = 4096

    def _sorted(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: self._sorted(data[key]) for key in sorted(data, key=str)}
        if isinstance(data, list):
            return [self._sorted(item) for item in data]
        return data

    def spec_of(self, tree: Tree) -> Any:
        return tree.get(SPEC_FIELDS.get(tree.get("kind", ""), "spec"))

    def dump(self, tree: Tree) -> str:
        section = self.spec_of(tree)
        if section is None:
            return ""
        stream = io.StringIO()
        self.yaml.dump(self._sorted(section), stream)
        return stream.getvalue()


def diff_text(from_text: str, to_text: str, from_label: str, to_label: str) -> str:
    return "\n".join(difflib.unified_diff(
        from_text.splitlines(),
        to_text.splitlines(),
        fromfile=from_label,
        tofile=to_label,
        lineterm="",
    ))


def diff_trees(old: Tree, new: Tree, serializer: Optional[CanonicalSerializer] = None) -> str:
    serializer = serializer or CanonicalSerializer()
    return diff_text(
        serializer.dump(old),
        serializer.dump(new),
        f"{old.get('kind')}/{old['metadata']['name']}",
        f"{new.get('kind')}/{new['metadata']['name']}",
    )


def unified_diff(cluster: ClusterAccess, kind: str, namespace: str, from_name: str, to_name: str) -> str:
    """Fetches both revisions and diffs them. Lookup errors propagate."""
    resolver = Resolver(cluster)
    old = resolver.fetch(kind, from_name, namespace)
    new = resolver.fetch(kind, to_name, namespace)
    return diff_trees(old, new)


def diff_line_tag(line: str) -> str:
    """added / removed / header / context"""
    if line.startswith(("+++", "---", "@@")):
        return "header"
    if line.startswith("+"):
        return "added"
    if line.startswith("-"):
        return "removed"
    return "context"
