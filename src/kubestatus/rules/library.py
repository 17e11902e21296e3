#!/usr/bin/env python3
"""
KUBESTATUS RULE LIBRARY - Report Sections
-----------------------------------------
The building blocks a rule document strings together. Every section takes
(tree, ctx, **args) and returns a list of rich-markup lines. Values coming
from the cluster are always escaped before they are embedded in markup.

Author: KubeStatus Team
Date: 2026-10-19
"""

import string
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from rich.markup import escape

from kubestatus.cluster.normalizer import dig
from kubestatus.core.models import RolloutStatus, Tree
from kubestatus.rollout.diff import diff_line_tag
from kubestatus.rollout.status import ROLLING_UPDATE, STATUS_VIEWERS, determine_rollout_status

Lines = List[str]

# Conditions where "True" is the bad state
NEGATIVE_CONDITIONS = {
    "MemoryPressure", "DiskPressure", "PIDPressure", "NetworkUnavailable",
    "ReplicaFailure", "Failed", "Stalled", "Suspended",
}
GOOD_PHASES = {"Running", "Succeeded", "Bound", "Available", "Active", "Complete"}
BAD_PHASES = {"Failed", "Lost", "Unknown", "Terminating"}

DIFF_STYLES = {"added": "green", "removed": "red", "header": "bold", "context": "dim"}


# --- helpers -----------------------------------------------------------------

def parse_time(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def human_duration(seconds: float) -> str:
    """kubectl-style short durations: 45s, 5m30s, 3h, 4d, 2y."""
    seconds = int(max(seconds, 0))
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    if seconds < 120:
        return f"{seconds}s"
    if minutes < 10:
        return f"{minutes}m{seconds % 60}s" if seconds % 60 else f"{minutes}m"
    if minutes < 180:
        return f"{minutes}m"
    if hours < 8:
        return f"{hours}h{minutes % 60}m" if minutes % 60 else f"{hours}h"
    if hours < 48:
        return f"{hours}h"
    if hours < 24 * 8:
        return f"{days}d{hours % 24}h" if hours % 24 else f"{days}d"
    if days < 365 * 2:
        return f"{days}d"
    return f"{days // 365}y"


def ago(value: Any, now: datetime) -> str:
    then = parse_time(value)
    if then is None:
        return ""
    if then.tzinfo is None:
        then = then.replace(tzinfo=now.tzinfo)
    return human_duration((now - then).total_seconds())


def as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def cpu_text(nano_cores: Any) -> str:
    return f"{as_int(nano_cores) // 1_000_000}m"


def memory_text(num_bytes: Any) -> str:
    return f"{as_int(num_bytes) // (1024 * 1024)}Mi"


def phase_markup(phase: str) -> str:
    if phase in GOOD_PHASES:
        return f"[green]{escape(phase)}[/green]"
    if phase in BAD_PHASES:
        return f"[red bold]{escape(phase)}[/red bold]"
    return f"[yellow]{escape(phase)}[/yellow]"


class TreeFormatter(string.Formatter):
    """str.format with dotted tree paths: '{status.replicas}', '{spec.ports.0.port}'."""

    def get_field(self, field_name: str, args: Any, kwargs: Any) -> Tuple[Any, str]:
        path = [int(p) if p.lstrip("-").isdigit() else p for p in field_name.split(".")]
        return dig(kwargs["__tree__"], *path, default=""), field_name

    def format_field(self, value: Any, format_spec: str) -> str:
        return escape(super().format_field(value, format_spec))

    def render(self, template: str, tree: Tree) -> str:
        return self.vformat(template, (), {"__tree__": tree})


FORMATTER = TreeFormatter()


# --- section registry ----------------------------------------------------------

@dataclass(frozen=True)
class SectionSpec:
    fn: Callable[..., Lines]
    args: Tuple[str, ...] = ()
    required: Tuple[str, ...] = ()
    templates: Tuple[str, ...] = ()     # args holding {path} templates


SECTIONS: Dict[str, SectionSpec] = {}


def section(name: str, args: Tuple[str, ...] = (), required: Tuple[str, ...] = (),
            templates: Tuple[str, ...] = ()):
    def register(fn: Callable[..., Lines]) -> Callable[..., Lines]:
        SECTIONS[name] = SectionSpec(fn, args, required, templates)
        return fn
    return register


# --- generic sections ----------------------------------------------------------

@section("header")
def header(tree: Tree, ctx: Any) -> Lines:
    meta = tree.get("metadata") or {}
    text = f"[bold]{escape(tree.get('kind', ''))}[/bold]/[bold]{escape(meta.get('name', ''))}[/bold]"
    if meta.get("namespace"):
        text += f" -n {escape(meta['namespace'])}"
    age = ago(meta.get("creationTimestamp"), ctx.now)
    if age:
        text += f", created {age} ago"
    owners = meta.get("ownerReferences") or []
    if owners:
        text += f" by {escape(owners[0].get('kind', ''))}/{escape(owners[0].get('name', ''))}"
    lines = [text]
    if meta.get("deletionTimestamp"):
        lines.append(f"  [red bold]Terminating[/red bold]: deletion requested "
                     f"{ago(meta['deletionTimestamp'], ctx.now)} ago.")
    return lines


@section("line", args=("text",), required=("text",), templates=("text",))
def line(tree: Tree, ctx: Any, text: str) -> Lines:
    return ["  " + FORMATTER.render(text, tree)]


@section("phase")
def phase(tree: Tree, ctx: Any) -> Lines:
    value = dig(tree, "status", "phase")
    if not value:
        return []
    return [f"  Phase: {phase_markup(value)}"]


@section("conditions")
def conditions(tree: Tree, ctx: Any) -> Lines:
    """Only the conditions that report trouble."""
    lines = []
    for cond in dig(tree, "status", "conditions", default=[]):
        ctype = cond.get("type", "")
        healthy = (cond.get("status") == "True") != (ctype in NEGATIVE_CONDITIONS)
        if healthy:
            continue
        detail = ", ".join(escape(str(cond[k])) for k in ("reason", "message") if cond.get(k))
        when = ago(cond.get("lastTransitionTime"), ctx.now)
        text = f"  [red]{escape(ctype)}[/red]: {escape(str(cond.get('status', '')))}"
        if detail:
            text += f", {detail}"
        if when:
            text += f" for {when}"
        lines.append(text)
    return lines


@section("owners")
def owners(tree: Tree, ctx: Any) -> Lines:
    out = ctx.render_owner_inline(tree)
    return [out] if out else []


@section("inline", args=("kind", "name", "namespace"), required=("kind",), templates=("name", "namespace"))
def inline(tree: Tree, ctx: Any, kind: str, name: str = "", namespace: str = "") -> Lines:
    ns = FORMATTER.render(namespace, tree) if namespace else dig(tree, "metadata", "namespace", default="")
    args = [kind]
    if name:
        args.append(FORMATTER.render(name, tree))
    out = ctx.render_inline(ns, *args)
    return [out] if out else []


@section("events")
def events(tree: Tree, ctx: Any) -> Lines:
    items = ctx.fetch_events(tree).get("items") or []
    # newest last; a zero limit hides the section
    items = items[-ctx.event_limit:] if ctx.event_limit > 0 else []
    if not items:
        return []
    lines = ["  Events:"]
    for event in items:
        style = "yellow" if event.get("type") == "Warning" else "dim"
        seen = ago(event.get("lastTimestamp") or event.get("eventTime"), ctx.now)
        count = as_int(event.get("count"))
        text = f"    [{style}]{escape(event.get('reason', ''))}[/{style}]"
        if seen:
            text += f" {seen} ago"
        if count > 1:
            text += f" (x{count})"
        text += f": {escape((event.get('message') or '').strip())}"
        lines.append(text)
    return lines


# --- workloads -------------------------------------------------------------

# kind -> (total, ready, unavailable) status counters
REPLICA_COUNTERS = {
    "DaemonSet": ("desiredNumberScheduled", "numberReady", "numberUnavailable"),
}
DEFAULT_COUNTERS = ("replicas", "readyReplicas", "unavailableReplicas")


@section("rollout")
def rollout(tree: Tree, ctx: Any) -> Lines:
    """
    At most one of Outage / Not Ready Replicas / Unavailable Replicas, then
    the rollout progress when it is not done.
    """
    kind = tree.get("kind", "")
    # OnDelete workloads have no rollout to follow, only replica counters
    manual = dig(tree, "spec", "updateStrategy", "type", default=ROLLING_UPDATE) != ROLLING_UPDATE
    if kind in STATUS_VIEWERS and not manual:
        status = determine_rollout_status(tree)
    else:
        status = RolloutStatus(True)

    total_key, ready_key, unavailable_key = REPLICA_COUNTERS.get(kind, DEFAULT_COUNTERS)
    total = as_int(dig(tree, "status", total_key))
    ready = as_int(dig(tree, "status", ready_key))
    unavailable = as_int(dig(tree, "status", unavailable_key))

    lines = []
    if total > 0 and ready == 0:
        lines.append(f"  [red bold]Outage[/red bold]: {escape(kind)} has no Ready replicas.")
    elif status.done and ready < total:
        lines.append(f"  [yellow bold]Not Ready Replicas[/yellow bold]: {total - ready} replicas are not Ready.")
    elif status.done and unavailable > 0:
        lines.append(f"  [yellow bold]Unavailable Replicas[/yellow bold]: {unavailable} replicas are Unavailable.")

    if status.failed:
        lines.append(f"  [red bold]Rollout failed[/red bold]: {escape(status.error)}")
    elif not status.done and status.message:
        lines.append(f"  [yellow]Ongoing rollout[/yellow]: {escape(status.message)}")
    return lines


@section("replicas")
def replicas(tree: Tree, ctx: Any) -> Lines:
    desired = dig(tree, "spec", "replicas")
    if desired is None:
        return []
    st = tree.get("status") or {}
    parts = [f"{as_int(desired)} desired"]
    for key, label in (("updatedReplicas", "updated"), ("readyReplicas", "ready"),
                       ("availableReplicas", "available")):
        if key in st:
            parts.append(f"{as_int(st[key])} {label}")
    return ["  [dim]Replicas: " + ", ".join(parts) + "[/dim]"]


@section("selected_pods")
def selected_pods(tree: Tree, ctx: Any) -> Lines:
    labels = dig(tree, "spec", "selector", "matchLabels")
    if not labels:
        return []
    pods = ctx.fetch_by_label_set(dig(tree, "metadata", "namespace", default=""), "Pod", labels)
    if not pods:
        return ["  Pods: [yellow]none[/yellow]"]
    counts: Dict[str, int] = {}
    for pod in pods:
        p = dig(pod, "status", "phase", default="Unknown")
        counts[p] = counts.get(p, 0) + 1
    return ["  Pods: " + ", ".join(f"{n} {phase_markup(p)}" for p, n in sorted(counts.items()))]


@section("job_status")
def job_status(tree: Tree, ctx: Any) -> Lines:
    st = tree.get("status") or {}
    completions = dig(tree, "spec", "completions")
    parts = [f"{as_int(st.get('succeeded'))}" + (f"/{completions}" if completions is not None else "") + " succeeded"]
    if st.get("active"):
        parts.append(f"{as_int(st['active'])} active")
    if st.get("failed"):
        parts.append(f"[red]{as_int(st['failed'])} failed[/red]")
    lines = ["  Job: " + ", ".join(parts)]
    if st.get("completionTime"):
        lines.append(f"  [green]Completed[/green] {ago(st['completionTime'], ctx.now)} ago")
    return lines


@section("cronjob_jobs")
def cronjob_jobs(tree: Tree, ctx: Any) -> Lines:
    meta = tree.get("metadata") or {}
    lines = []
    last = dig(tree, "status", "lastScheduleTime")
    if last:
        lines.append(f"  Last scheduled {ago(last, ctx.now)} ago")
    owned = []
    for job in ctx.fetch_by_scope(meta.get("namespace", ""), "jobs"):
        for ref in dig(job, "metadata", "ownerReferences", default=[]):
            if ref.get("kind") == "CronJob" and (ref.get("uid") == meta.get("uid") or ref.get("name") == meta.get("name")):
                owned.append(job)
                break
    owned.sort(key=lambda j: dig(j, "metadata", "creationTimestamp", default=""))
    for job in owned[-3:]:
        st = job.get("status") or {}
        if st.get("succeeded"):
            state = "[green]succeeded[/green]"
        elif st.get("failed"):
            state = "[red]failed[/red]"
        else:
            state = "[yellow]running[/yellow]"
        lines.append(f"  Job {escape(job['metadata']['name'])}: {state}")
    return lines


@section("revision_diff")
def revision_diff(tree: Tree, ctx: Any) -> Lines:
    diff = tree.get("controllerRevisionDiff")
    if not diff:
        return []
    lines = ["  Changes in the last revision:"]
    for diff_line in diff.splitlines():
        style = DIFF_STYLES[diff_line_tag(diff_line)]
        lines.append(f"    [{style}]{escape(diff_line)}[/{style}]")
    return lines


# --- pods & nodes ----------------------------------------------------------

def _container_line(status: Dict[str, Any], ctx: Any, init: bool = False) -> str:
    name = escape(status.get("name", ""))
    label = "Init container" if init else "Container"
    ready = "[green]ready[/green]" if status.get("ready") else "[red]not ready[/red]"
    text = f"  {label} {name}: {ready}"
    restarts = as_int(status.get("restartCount"))
    if restarts:
        text += f", [yellow]{restarts} restarts[/yellow]"
    state = status.get("state") or {}
    if "waiting" in state:
        waiting = state["waiting"] or {}
        text += f", waiting: {escape(waiting.get('reason', ''))}"
        if waiting.get("message"):
            text += f" ({escape(waiting['message'])})"
    elif "terminated" in state:
        term = state["terminated"] or {}
        text += f", terminated: {escape(term.get('reason', ''))} exit code {as_int(term.get('exitCode'))}"
    last = dig(status, "lastState", "terminated")
    if last:
        text += (f", last terminated {ago(last.get('finishedAt'), ctx.now)} ago: "
                 f"{escape(last.get('reason', ''))} exit code {as_int(last.get('exitCode'))}")
    return text


@section("pod_status")
def pod_status(tree: Tree, ctx: Any) -> Lines:
    st = tree.get("status") or {}
    phase_value = st.get("phase", "Unknown")
    text = f"  Phase: {phase_markup(phase_value)}"
    if st.get("reason"):
        text += f", {escape(st['reason'])}"
    if st.get("message"):
        text += f": {escape(st['message'])}"
    lines = [text]
    for status in st.get("initContainerStatuses") or []:
        if not dig(status, "state", "terminated") or as_int(dig(status, "state", "terminated", "exitCode")):
            lines.append(_container_line(status, ctx, init=True))
    for status in st.get("containerStatuses") or []:
        lines.append(_container_line(status, ctx))
    return lines


@section("pod_metrics")
def pod_metrics(tree: Tree, ctx: Any) -> Lines:
    containers = dig(tree, "podMetrics", "containers", default=[])
    lines = []
    for c in containers:
        lines.append(f"  Usage {escape(c.get('name') or '')}: "
                     f"cpu {cpu_text(dig(c, 'cpu', 'usageNanoCores'))}, "
                     f"memory {memory_text(dig(c, 'memory', 'workingSetBytes'))}")
    return lines


@section("pod_services")
def pod_services(tree: Tree, ctx: Any) -> Lines:
    services = ctx.fetch_services_matching_pod(tree)
    if not services:
        return []
    names = [f"{escape(s['metadata']['name'])} ({escape(dig(s, 'spec', 'type', default='ClusterIP'))})"
             for s in services]
    return ["  Services matching this pod: " + ", ".join(names)]


@section("node_status")
def node_status(tree: Tree, ctx: Any) -> Lines:
    lines = []
    if dig(tree, "spec", "unschedulable"):
        lines.append("  [yellow bold]Unschedulable[/yellow bold]: node is cordoned.")
    for taint in dig(tree, "spec", "taints", default=[]):
        value = f"={taint['value']}" if taint.get("value") else ""
        lines.append(f"  Taint: {escape(taint.get('key', ''))}{escape(value)}:{escape(taint.get('effect', ''))}")
    info = dig(tree, "status", "nodeInfo", default={})
    if info:
        lines.append(f"  [dim]{escape(info.get('osImage', ''))}, kubelet {escape(info.get('kubeletVersion', ''))}, "
                     f"{escape(info.get('containerRuntimeVersion', ''))}[/dim]")
    return lines


@section("node_stats")
def node_stats(tree: Tree, ctx: Any) -> Lines:
    stats = tree.get("nodeStats")
    if not stats:
        return []
    cpu = dig(stats, "cpu", "usageNanoCores")
    memory = dig(stats, "memory", "workingSetBytes")
    text = f"  Usage: cpu {cpu_text(cpu)}, memory {memory_text(memory)}"
    allocatable_cpu = dig(tree, "status", "allocatable", "cpu")
    if allocatable_cpu:
        text += f" (allocatable cpu {escape(str(allocatable_cpu))}, memory " \
                f"{escape(str(dig(tree, 'status', 'allocatable', 'memory', default='?')))})"
    lines = [text]
    fs = stats.get("fs") or {}
    if fs.get("capacityBytes"):
        used = as_int(fs.get("usedBytes")) * 100 // as_int(fs["capacityBytes"])
        style = "red" if used >= 85 else "dim"
        lines.append(f"  [{style}]Filesystem {used}% used[/{style}]")
    return lines


@section("node_pods")
def node_pods(tree: Tree, ctx: Any) -> Lines:
    pods = tree.get("podsOnNode")
    if pods is None:
        return []
    troubled = [p for p in pods if p.get("phase") not in ("Running", "Succeeded")]
    lines = [f"  Pods: {len(pods)} scheduled, {len(troubled)} not running"]
    for p in troubled:
        lines.append(f"    {escape(p['namespace'])}/{escape(p['name'])}: {phase_markup(p.get('phase', 'Unknown'))}, "
                     f"ready {escape(p.get('ready', ''))}, restarts {as_int(p.get('restarts'))}")
    return lines


# --- networking ------------------------------------------------------------

@section("service_endpoints")
def service_endpoints(tree: Tree, ctx: Any) -> Lines:
    spec = tree.get("spec") or {}
    if spec.get("type") == "ExternalName":
        return [f"  External name: {escape(spec.get('externalName', ''))}"]

    lines = []
    if spec.get("type") == "LoadBalancer" and not dig(tree, "status", "loadBalancer", "ingress"):
        lines.append("  [yellow]Pending LoadBalancer[/yellow]: no ingress address assigned yet.")
    if not spec.get("selector"):
        lines.append("  [dim]No selector; endpoints are managed externally.[/dim]")
        return lines

    meta = tree["metadata"]
    endpoints = ctx.fetch_first_by_scope(meta.get("namespace", ""), "Endpoints", meta["name"])
    ready = not_ready = 0
    for subset in endpoints.get("subsets") or []:
        ready += len(subset.get("addresses") or [])
        not_ready += len(subset.get("notReadyAddresses") or [])
    if ready == 0:
        lines.append("  [red bold]No ready endpoints[/red bold]: "
                     f"{not_ready} not ready addresses.")
    else:
        text = f"  Endpoints: [green]{ready} ready[/green]"
        if not_ready:
            text += f", [yellow]{not_ready} not ready[/yellow]"
        lines.append(text)
    return lines


@section("ingress_backends")
def ingress_backends(tree: Tree, ctx: Any) -> Lines:
    lines = []
    for name in tree.get("missingIngressServices") or []:
        lines.append(f"  [red bold]Missing backend[/red bold]: Service/{escape(name)} does not exist.")
    for service in tree.get("ingressServices") or []:
        out = ctx.render_tree(service)
        if out:
            lines.append(out)
    return lines
