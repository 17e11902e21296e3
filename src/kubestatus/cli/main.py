#!/usr/bin/env python3
"""
KUBESTATUS CLI - Human-Readable Status Reports
----------------------------------------------
Translates kubectl-style arguments into a QueryScope and hands it to the
Renderer. Reports go to stdout, errors to stderr.

Exit codes: 0 success, 1 one or more objects failed, 2 fatal error.

Author: KubeStatus Team
Date: 2026-10-19
"""

import sys
import argparse
import dataclasses
import logging
from typing import List, Optional

from kubestatus.cli.formatter import ReportWriter
from kubestatus.cluster.access import ClusterAccess
from kubestatus.core.config import load_config
from kubestatus.core.engine import new_query, render_local_file
from kubestatus.core.errors import KubeStatusError
from kubestatus.core.models import QueryScope

__version__ = "0.1.0"

EXIT_OK = 0
EXIT_OBJECT_ERRORS = 1
EXIT_FATAL = 2


class KubeStatusCLI:
    """
    CLI wrapper that translates user commands into Renderer actions.
    """

    def __init__(self, writer: Optional[ReportWriter] = None):
        self.writer = writer
        self.parser = argparse.ArgumentParser(
            prog="kubestatus",
            description="kubestatus - show the status of Kubernetes resources in a human-friendly way",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=(
                "Examples:\n"
                "  kubestatus deploy/web -n prod\n"
                "  kubestatus pods -l app=web\n"
                "  kubestatus -f manifests/\n"
                "  kubestatus --local pod.yaml"
            ),
        )
        self._setup_args()

    def _setup_args(self):
        """Configures the kubectl-compatible flags."""
        p = self.parser
        p.add_argument("-v", "--version", action="version", version=f"kubestatus v{__version__}")
        p.add_argument("args", nargs="*", metavar="TYPE[/NAME]", help="Resources to report on")
        p.add_argument("-n", "--namespace", default="", help="Namespace scope for this request")
        p.add_argument("-A", "--all-namespaces", action="store_true",
                       help="List the requested objects across all namespaces")
        p.add_argument("-f", "--filename", action="append", default=[],
                       help="Files or directories identifying the resources (repeatable)")
        p.add_argument("-l", "--selector", default="", help="Label selector to filter on")
        p.add_argument("--field-selector", default="", help="Field selector to filter on")
        p.add_argument("--kubeconfig", default=None, help="Path to the kubeconfig file")
        p.add_argument("--context", default=None, help="The kubeconfig context to use")
        p.add_argument("--local", metavar="FILE", default=None,
                       help="Render a manifest without contacting a cluster")
        p.add_argument("--rules", default=None, help="Path to a custom rule document")
        p.add_argument("--config", default=None, help="Path to the kubestatus config file")
        p.add_argument("--debug", action="store_true", help="Enable debug logging on stderr")

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Primary routing entry point; returns the process exit code."""
        opts = self.parser.parse_args(argv)
        logging.basicConfig(
            level=logging.DEBUG if opts.debug else logging.WARNING,
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

        config = load_config(opts.config)
        overrides = {k: v for k, v in {
            "rules_path": opts.rules,
            "kubeconfig": opts.kubeconfig,
            "context": opts.context,
        }.items() if v is not None}
        config = dataclasses.replace(config, **overrides)
        writer = self.writer or ReportWriter(color_system=config.color_system)

        try:
            if opts.local:
                writer.write_report(render_local_file(opts.local, config))
                return EXIT_OK

            cluster = ClusterAccess.from_kubeconfig(config.kubeconfig, config.context)
            scope = QueryScope(
                namespace=opts.namespace,
                all_namespaces=opts.all_namespaces,
                enforce_namespace=bool(opts.namespace),
                filenames=tuple(opts.filename),
                label_selector=opts.selector,
                field_selector=opts.field_selector,
                args=tuple(opts.args),
            )
            errors = new_query(scope, cluster, config=config, writer=writer).render_all()
        except KubeStatusError as e:
            writer.write_error(e)
            return EXIT_FATAL

        for error in errors:
            writer.write_error(error)
        return EXIT_OBJECT_ERRORS if errors else EXIT_OK


def main():
    """Application entry point with interrupt handling."""
    try:
        sys.exit(KubeStatusCLI().run())
    except KeyboardInterrupt:
        sys.stderr.write("\nTerminated by user.\n")
        sys.exit(130)


if __name__ == "__main__":
    main()
