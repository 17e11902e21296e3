#!/usr/bin/env python3
"""
KUBESTATUS ENGINE - The Renderer
--------------------------------
ResourceStatusQuery drives one invocation through its phases:

1. Resolve   QueryScope -> Generic Trees (fatal errors stop here)
2. Augment   kind-specific enrichers inject extra cluster facts
3. Select    exact-kind rule, or DefaultResource
4. Render    run the rule with a per-pass RenderContext
5. Write     each report framed by blank lines, errors collected

Objects are processed one at a time in discovery order; a failure on one
object is recorded and the loop moves on.

Author: KubeStatus Team
Date: 2026-10-19
"""

import logging
from typing import List, Optional, Tuple

from kubestatus.augment.pipeline import AugmentationPipeline
from kubestatus.cli.formatter import ReportWriter
from kubestatus.cluster.access import ClusterAccess
from kubestatus.cluster.normalizer import object_ref, to_typed
from kubestatus.cluster.resolver import Resolver
from kubestatus.core.config import StatusConfig
from kubestatus.core.errors import AugmentationError, ConversionError, KubeStatusError, ResolutionError
from kubestatus.core.models import QueryScope, Tree
from kubestatus.rules.engine import RuleEngine
from kubestatus.rules.functions import ClusterLookups, LocalLookups, RenderContext

logger = logging.getLogger("kubestatus.engine")


class ResourceStatusQuery:
    """
    One invocation against one cluster. The rule document is compiled once
    here; lookups and inline rendering are bound to this query only.
    """

    def __init__(self, scope: QueryScope, cluster: ClusterAccess,
                 config: Optional[StatusConfig] = None,
                 writer: Optional[ReportWriter] = None,
                 engine: Optional[RuleEngine] = None,
                 pipeline: Optional[AugmentationPipeline] = None):
        self.scope = scope
        self.cluster = cluster
        self.config = config or StatusConfig()
        self.writer = writer or ReportWriter(color_system=self.config.color_system)
        self.engine = engine or RuleEngine.from_file(self.config.rules_path)
        self.pipeline = pipeline or AugmentationPipeline()
        self.resolver = Resolver(cluster)
        self.lookups = ClusterLookups(self.resolver)

    def _context(self, depth: int) -> RenderContext:
        return RenderContext(
            lookups=self.lookups,
            render_object=self.render_object,
            depth=depth,
            max_depth=self.config.max_inline_depth,
            event_limit=self.config.event_limit,
        )

    def render_object(self, tree: Tree, depth: int = 0) -> Tuple[str, Optional[KubeStatusError]]:
        """Augment + render a single tree. Never raises for per-object failures."""
        kind = tree.get("kind", "")
        if self.pipeline.augmentors_for(kind):
            try:
                typed = to_typed(tree, kind)
                self.pipeline.augment(kind, typed, self.cluster, tree)
            except ConversionError as e:
                return "", AugmentationError(f"Failed preparing {object_ref(tree)} for augmentation", e)
            except AugmentationError as e:
                logger.debug(f"Augmentation failed: {e}")
                return "", e
        return self.engine.render(tree, self._context(depth))

    def render_all(self) -> List[KubeStatusError]:
        """
        Resolves the scope and writes every report. Returns the per-object
        errors; a ResolutionError propagates to the caller.
        """
        try:
            resolution = self.resolver.resolve(self.scope)
        except ResolutionError:
            raise
        except KubeStatusError as e:
            raise ResolutionError("Failed getting resource infos", e)

        if resolution.notice:
            self.writer.write_notice(resolution.notice)

        errors: List[KubeStatusError] = list(resolution.errors)
        for tree in resolution.objects:
            output, error = self.render_object(tree)
            self.writer.write_report(output)
            if error is not None:
                errors.append(error)
        return errors


def new_query(scope: QueryScope, cluster: ClusterAccess, config: Optional[StatusConfig] = None,
              writer: Optional[ReportWriter] = None) -> ResourceStatusQuery:
    return ResourceStatusQuery(scope, cluster, config=config, writer=writer)


def render_local_file(path: str, config: Optional[StatusConfig] = None,
                      engine: Optional[RuleEngine] = None) -> str:
    """
    Renders a manifest without a cluster: no augmentation, and every lookup
    a rule makes comes back empty without a single network read.
    """
    config = config or StatusConfig()
    engine = engine or RuleEngine.from_file(config.rules_path)
    # Resolver only used for parsing here; it never reaches the cluster handle
    docs = Resolver(cluster=None).load_manifests([path])

    def render_nested(tree: Tree, depth: int) -> Tuple[str, Optional[KubeStatusError]]:
        return engine.render(tree, local_context(depth))

    def local_context(depth: int) -> RenderContext:
        return RenderContext(lookups=LocalLookups(), render_object=render_nested, depth=depth,
                             max_depth=config.max_inline_depth, event_limit=config.event_limit)

    outputs = []
    for tree in docs:
        output, error = engine.render(tree, local_context(0))
        if error is not None:
            raise error
        outputs.append(output)
    return "\n\n".join(outputs)
