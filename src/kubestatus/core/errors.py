#!/usr/bin/env python3
"""
KUBESTATUS ERRORS - Failure Taxonomy
------------------------------------
Every failure raised inside the rendering pipeline derives from
KubeStatusError. The class decides the blast radius:

- ResolutionError / RuleSyntaxError abort the whole invocation.
- ObjectNotFoundError / ClusterAccessError are collected per resolved item.
- AugmentationError / RenderError are scoped to one object.
- ConversionError is scoped to one call site and is usually wrapped
  into one of the per-object errors above.

Author: KubeStatus Team
Date: 2026-10-19
"""

from typing import Optional


class KubeStatusError(Exception):
    """Base class for all kubestatus failures."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None and str(self.cause):
            return f"{self.message}: {self.cause}"
        return self.message


class ResolutionError(KubeStatusError):
    """The query scope could not be turned into a cluster or file query."""


class RuleSyntaxError(KubeStatusError):
    """The rule document is malformed."""


class ObjectNotFoundError(KubeStatusError):
    """A named object does not exist."""


class ClusterAccessError(KubeStatusError):
    """The API server rejected a single read."""


class ConversionError(KubeStatusError):
    """Typed and generic representations do not line up."""


class AugmentationError(KubeStatusError):
    """A kind-specific enrichment step failed for one object."""

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 augmentor: str = ""):
        super().__init__(message, cause)
        self.augmentor = augmentor


class RenderError(KubeStatusError):
    """A rule, or a function it called, failed while rendering one object."""

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 partial_output: str = ""):
        super().__init__(message, cause)
        self.partial_output = partial_output
