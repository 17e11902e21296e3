#!/usr/bin/env python3
"""
KUBESTATUS CORE MODELS
----------------------
Defines the fundamental data structures shared across the engine.
Generic Trees themselves are plain dicts; these records describe what
flows around them.

Author: KubeStatus Team
Date: 2026-10-19
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# A kind-agnostic resource document: apiVersion, kind, metadata, spec, status
# plus anything augmentors inject.
Tree = Dict[str, Any]


@dataclass(frozen=True)
class QueryScope:
    """
    What the user asked for. Created once per invocation and never mutated.
    """
    namespace: str = ""                     # Explicit -n value, empty when unset
    all_namespaces: bool = False            # -A overrides namespace scoping
    enforce_namespace: bool = False         # File objects must match namespace
    filenames: Tuple[str, ...] = ()         # Manifest files or directories
    label_selector: str = ""                # e.g. 'app=web,tier!=db'
    field_selector: str = ""                # e.g. 'status.phase=Running'
    args: Tuple[str, ...] = ()              # Positional TYPE[/NAME] arguments


@dataclass(frozen=True)
class RolloutStatus:
    """
    Derived rollout state of a workload.

    ongoing: done=False, error=None
    failed:  done=False, error set
    done:    done=True
    """
    done: bool
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class Resolution:
    """Outcome of resolving a Query Scope."""
    objects: List[Tree] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    notice: Optional[str] = None
