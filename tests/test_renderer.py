#!/usr/bin/env python3
"""
KUBESTATUS RENDERER TESTS
-------------------------
End-to-end runs of ResourceStatusQuery and render_local_file against the
in-memory cluster, plus the CLI exit codes.

Author: KubeStatus Team
Date: 2026-10-19
"""

import io
import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

import pytest
from rich.console import Console
from rich.text import Text

from kubestatus.cli import main as cli_main
from kubestatus.cli.formatter import ReportWriter
from kubestatus.cluster.resolver import Resolver
from kubestatus.core.engine import ResourceStatusQuery, new_query, render_local_file
from kubestatus.core.errors import (
    AugmentationError,
    ClusterAccessError,
    ObjectNotFoundError,
    RenderError,
    ResolutionError,
)
from kubestatus.core.models import QueryScope
from kubestatus.rules.engine import RuleEngine
from kubestatus.rules.library import SECTIONS, SectionSpec

from fake_cluster import FakeCluster, make


class RecordingWriter:
    def __init__(self):
        self.reports, self.notices, self.errors = [], [], []

    def write_report(self, markup):
        self.reports.append(Text.from_markup(markup).plain)

    def write_notice(self, message):
        self.notices.append(message)

    def write_error(self, error):
        self.errors.append(error)


def web_cluster(**kwargs):
    return FakeCluster([
        make("Pod", "web-1", namespace="prod", labels={"app": "web"},
             ownerReferences=[{"kind": "ReplicaSet", "name": "web-abc"}],
             status={"phase": "Running"}),
        make("Pod", "web-2", namespace="prod", labels={"app": "web"}, status={"phase": "Pending"}),
        make("ReplicaSet", "web-abc", namespace="prod", spec={"replicas": 2},
             status={"replicas": 2, "readyReplicas": 1}),
        make("Service", "web", namespace="prod", spec={"selector": {"app": "web"}}),
        make("Node", "node-a"),
    ], **kwargs)


def query(cluster, writer, *args, **scope):
    return new_query(QueryScope(args=args, **scope), cluster, writer=writer)


def test_render_all_writes_one_report_per_object():
    writer = RecordingWriter()
    errors = query(web_cluster(), writer, "pods", namespace="prod").render_all()

    assert errors == []
    assert writer.notices == []
    assert [r.splitlines()[0] for r in writer.reports] == ["Pod/web-1 -n prod by ReplicaSet/web-abc",
                                                           "Pod/web-2 -n prod"]


def test_pod_report_inlines_owner_and_services():
    writer = RecordingWriter()
    query(web_cluster(), writer, "pods/web-1", namespace="prod").render_all()

    report = writer.reports[0]
    assert "Services matching this pod: web (ClusterIP)" in report
    assert "  ReplicaSet/web-abc -n prod" in report.splitlines()
    assert "Not Ready Replicas: 1 replicas are not Ready." in report


def test_render_all_aggregates_per_object_errors():
    writer = RecordingWriter()
    errors = query(web_cluster(), writer, "pods/web-1", "pods/missing", namespace="prod").render_all()

    assert len(writer.reports) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], ObjectNotFoundError)


def test_render_all_notice_when_nothing_found():
    writer = RecordingWriter()
    errors = query(web_cluster(), writer, "deploy").render_all()

    assert errors == []
    assert writer.reports == []
    assert writer.notices == ["No resources found."]


def test_fatal_resolution_errors_propagate():
    with pytest.raises(ResolutionError):
        query(web_cluster(), RecordingWriter()).render_all()


def test_node_augmentation_failure_is_scoped_to_the_object():
    cluster = web_cluster(failures={("list", "Pod"): ClusterAccessError("Forbidden")})
    q = ResourceStatusQuery(QueryScope(args=("nodes",)), cluster, writer=RecordingWriter())

    output, error = q.render_object(make("Node", "node-a"))

    assert output == ""
    assert isinstance(error, AugmentationError)
    assert not any(r[0] == "stats" for r in cluster.reads)


def test_render_all_continues_after_augmentation_failure():
    cluster = web_cluster()
    cluster.add(make("Node", "node-b"))
    cluster.stats["node-a"] = {"node": {"cpu": {"usageNanoCores": 1000000}}}
    writer = RecordingWriter()

    errors = query(cluster, writer, "nodes").render_all()

    assert len(writer.reports) == 2
    assert writer.reports[0].startswith("Node/node-a")
    assert "Usage: cpu 1m, memory 0Mi" in writer.reports[0]
    assert writer.reports[1] == ""
    assert len(errors) == 1
    assert isinstance(errors[0], AugmentationError)


def test_malformed_stats_summary_is_scoped_to_its_node():
    cluster = web_cluster(stats={"node-a": {"node": {"cpu": {"usageNanoCores": 1000000}}}, "node-b": []})
    cluster.add(make("Node", "node-b"))
    writer = RecordingWriter()

    errors = query(cluster, writer, "nodes").render_all()

    assert len(writer.reports) == 2
    assert "Usage: cpu 1m" in writer.reports[0]
    assert writer.reports[1] == ""
    assert len(errors) == 1
    assert isinstance(errors[0], AugmentationError)
    assert errors[0].augmentor == "include_node_stats_summary"


def test_report_writer_frames_reports_with_blank_lines():
    out, err = io.StringIO(), io.StringIO()
    writer = ReportWriter(console=Console(file=out, color_system=None, width=200),
                          err_console=Console(file=err, color_system=None, width=200))

    writer.write_report("[bold]Pod[/bold]/a")
    writer.write_error(ObjectNotFoundError("pods \"b\" not found"))

    assert out.getvalue() == "\nPod/a\n\n"
    assert err.getvalue() == "Error: pods \"b\" not found\n"


# --- local rendering ----------------------------------------------------------

MANIFEST = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: web
  namespace: prod
  ownerReferences:
  - kind: Something
    name: parent
spec:
  replicas: 3
status:
  replicas: 3
  readyReplicas: 0
---
apiVersion: v1
kind: Service
metadata:
  name: web
  namespace: prod
spec:
  selector:
    app: web
"""


@pytest.fixture
def no_cluster_reads(monkeypatch):
    def forbidden(*args, **kwargs):
        raise AssertionError("local rendering must not read from the cluster")
    monkeypatch.setattr(Resolver, "resolve_adhoc", forbidden)
    monkeypatch.setattr(Resolver, "list_by_selector", forbidden)


def test_render_local_file(tmp_path, no_cluster_reads):
    manifest = tmp_path / "web.yaml"
    manifest.write_text(MANIFEST)

    text = Text.from_markup(render_local_file(str(manifest))).plain

    assert text.startswith("Deployment/web -n prod by Something/parent")
    assert "Outage: Deployment has no Ready replicas." in text
    assert "Service/web -n prod" in text


def test_render_local_file_parse_failure(tmp_path):
    manifest = tmp_path / "broken.yaml"
    manifest.write_text("kind: [\n")
    with pytest.raises(ResolutionError):
        render_local_file(str(manifest))


def test_render_local_file_render_failure(tmp_path):
    manifest = tmp_path / "web.yaml"
    manifest.write_text(MANIFEST)

    def boom(tree, ctx):
        raise ValueError("bad")

    sections = dict(SECTIONS)
    sections["boom"] = SectionSpec(boom)
    engine = RuleEngine.compile("DefaultResource:\n  - header\n  - boom\n", sections)

    with pytest.raises(RenderError) as info:
        render_local_file(str(manifest), engine=engine)
    assert Text.from_markup(info.value.partial_output).plain.startswith("Deployment/web")


# --- CLI ----------------------------------------------------------------------

@pytest.fixture
def cli(monkeypatch, tmp_path):
    cluster = web_cluster()
    monkeypatch.setattr(cli_main.ClusterAccess, "from_kubeconfig",
                        classmethod(lambda cls, kubeconfig=None, context=None: cluster))
    writer = RecordingWriter()

    def run(*argv):
        return cli_main.KubeStatusCLI(writer=writer).run(["--config", str(tmp_path / "none.yaml"), *argv])
    run.writer = writer
    return run


def test_cli_success(cli):
    assert cli("pods", "-n", "prod") == cli_main.EXIT_OK
    assert len(cli.writer.reports) == 2


def test_cli_per_object_errors(cli):
    assert cli("pods/web-1", "pods/nope", "-n", "prod") == cli_main.EXIT_OBJECT_ERRORS
    assert len(cli.writer.errors) == 1


def test_cli_fatal_error(cli):
    assert cli("pods/web-1", "-l", "app=web") == cli_main.EXIT_FATAL
    assert isinstance(cli.writer.errors[0], ResolutionError)


def test_cli_local(cli, tmp_path, no_cluster_reads):
    manifest = tmp_path / "web.yaml"
    manifest.write_text(MANIFEST)
    assert cli("--local", str(manifest)) == cli_main.EXIT_OK
    assert cli.writer.reports[0].startswith("Deployment/web")


def test_cli_survives_bad_config_values(monkeypatch, tmp_path, capsys):
    cluster = web_cluster()
    monkeypatch.setattr(cli_main.ClusterAccess, "from_kubeconfig",
                        classmethod(lambda cls, kubeconfig=None, context=None: cluster))
    config = tmp_path / "kubestatus.yaml"
    config.write_text("color_system: rainbow\nrules_path: [a, b]\n")

    code = cli_main.KubeStatusCLI().run(["--config", str(config), "pods/web-2", "-n", "prod"])

    assert code == cli_main.EXIT_OK
    assert "Pod/web-2 -n prod" in capsys.readouterr().out
