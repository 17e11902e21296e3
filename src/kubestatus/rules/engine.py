#!/usr/bin/env python3
"""
KUBESTATUS RULE ENGINE
----------------------
Compiles the rule document (YAML, one block per kind plus DefaultResource)
into immutable rules and executes them against Generic Trees.

Rule document shape:

    Deployment:
      - header                       # bare section name
      - section: line                # section with arguments
        if: spec.paused              # optional guard, dotted tree path
        text: "Paused since {metadata.annotations.pausedAt}"
      - section: include             # run another rule on the same tree
        rule: DefaultResource

Execution is a single synchronous pass. The first failing step ends the
object's report; what was produced so far is returned with a RenderError.

Author: KubeStatus Team
Date: 2026-10-19
"""

import logging
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from kubernetes.client import ApiException
from rich.errors import MarkupError
from rich.text import Text
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kubestatus.cluster.normalizer import dig, object_ref
from kubestatus.core.errors import KubeStatusError, RenderError, RuleSyntaxError
from kubestatus.core.models import Tree
from kubestatus.rules.functions import RenderContext
from kubestatus.rules.library import SECTIONS, SectionSpec

logger = logging.getLogger("kubestatus.rules")

DEFAULT_RULE = "DefaultResource"
INCLUDE = "include"
MAX_INCLUDE_DEPTH = 8
STEP_KEYS = {"section", "if", "unless"}


@dataclass(frozen=True)
class Step:
    section: str
    args: Mapping[str, Any] = field(default_factory=dict)
    when: Optional[str] = None
    unless: Optional[str] = None

    def applies_to(self, tree: Tree) -> bool:
        if self.when and not _lookup(tree, self.when):
            return False
        if self.unless and _lookup(tree, self.unless):
            return False
        return True


@dataclass(frozen=True)
class RuleSet:
    rules: Mapping[str, Tuple[Step, ...]]

    def __contains__(self, name: object) -> bool:
        return name in self.rules


def _lookup(tree: Tree, path: str) -> Any:
    steps = [int(p) if p.lstrip("-").isdigit() else p for p in path.split(".")]
    return dig(tree, *steps)


# --- compile -------------------------------------------------------------------

def _check_template(rule: str, value: Any):
    if not isinstance(value, str):
        raise RuleSyntaxError(f"Rule {rule}: template must be a string, got {type(value).__name__}")
    try:
        literal = "".join(text for text, _, _, _ in string.Formatter().parse(value))
    except ValueError as e:
        raise RuleSyntaxError(f"Rule {rule}: malformed template {value!r}", e)
    try:
        Text.from_markup(literal)
    except MarkupError as e:
        raise RuleSyntaxError(f"Rule {rule}: malformed markup in {value!r}", e)


def _compile_step(rule: str, raw: Any, sections: Mapping[str, SectionSpec]) -> Step:
    if isinstance(raw, str):
        raw = {"section": raw}
    if not isinstance(raw, dict) or "section" not in raw:
        raise RuleSyntaxError(f"Rule {rule}: each step must be a section name or a mapping with 'section'")

    name = raw["section"]
    args = {k: v for k, v in raw.items() if k not in STEP_KEYS}
    for guard in ("if", "unless"):
        if guard in raw and not isinstance(raw[guard], str):
            raise RuleSyntaxError(f"Rule {rule}: '{guard}' must be a dotted path")

    if name == INCLUDE:
        if set(args) != {"rule"} or not isinstance(args["rule"], str):
            raise RuleSyntaxError(f"Rule {rule}: include takes exactly one 'rule' argument")
    else:
        spec = sections.get(name)
        if spec is None:
            raise RuleSyntaxError(f"Rule {rule}: unknown section '{name}'")
        unknown = set(args) - set(spec.args)
        if unknown:
            raise RuleSyntaxError(f"Rule {rule}: section '{name}' does not take {sorted(unknown)}")
        missing = set(spec.required) - set(args)
        if missing:
            raise RuleSyntaxError(f"Rule {rule}: section '{name}' requires {sorted(missing)}")
        for key in spec.templates:
            if key in args:
                _check_template(rule, args[key])

    return Step(section=name, args=args, when=raw.get("if"), unless=raw.get("unless"))


def compile_rules(source: str, sections: Optional[Mapping[str, SectionSpec]] = None) -> RuleSet:
    """Parses the rule document. Raises RuleSyntaxError on any malformation."""
    sections = SECTIONS if sections is None else sections
    try:
        document = YAML(typ="safe").load(source)
    except YAMLError as e:
        raise RuleSyntaxError("Rule document is not valid YAML", e)

    if not isinstance(document, dict):
        raise RuleSyntaxError("Rule document must map rule names to step lists")

    rules: Dict[str, Tuple[Step, ...]] = {}
    for name, raw_steps in document.items():
        if not isinstance(raw_steps, list):
            raise RuleSyntaxError(f"Rule {name}: expected a list of steps")
        rules[str(name)] = tuple(_compile_step(str(name), raw, sections) for raw in raw_steps)

    if DEFAULT_RULE not in rules:
        raise RuleSyntaxError(f"Rule document has no {DEFAULT_RULE} rule")
    for name, steps in rules.items():
        for step in steps:
            if step.section == INCLUDE and step.args["rule"] not in rules:
                raise RuleSyntaxError(f"Rule {name}: include of undefined rule '{step.args['rule']}'")
    return RuleSet(rules=rules)


# --- select & render -----------------------------------------------------------

def select_rule(ruleset: RuleSet, kind: str) -> str:
    """Exact kind match, otherwise the default rule. Never fails."""
    return kind if kind in ruleset else DEFAULT_RULE


def _run(ruleset: RuleSet, name: str, tree: Tree, ctx: RenderContext,
         sections: Mapping[str, SectionSpec], out: List[str], depth: int = 0):
    if depth > MAX_INCLUDE_DEPTH:
        raise RenderError(f"Rule {name}: include nesting deeper than {MAX_INCLUDE_DEPTH}")
    for step in ruleset.rules[name]:
        if not step.applies_to(tree):
            continue
        if step.section == INCLUDE:
            _run(ruleset, step.args["rule"], tree, ctx, sections, out, depth + 1)
            continue
        out.extend(sections[step.section].fn(tree, ctx, **step.args))


def render(ruleset: RuleSet, name: str, tree: Tree, ctx: RenderContext,
           sections: Optional[Mapping[str, SectionSpec]] = None) -> Tuple[str, Optional[RenderError]]:
    """Executes a rule; returns (output, None) or (partial output, RenderError)."""
    sections = SECTIONS if sections is None else sections
    out: List[str] = []
    try:
        _run(ruleset, name, tree, ctx, sections, out)
    except (KubeStatusError, ApiException, KeyError, TypeError, ValueError, AttributeError) as e:
        partial = "\n".join(out)
        if isinstance(e, RenderError) and not e.partial_output:
            e.partial_output = partial
            return partial, e
        return partial, RenderError(f"Failed rendering {object_ref(tree)} with rule {name}", e,
                                    partial_output=partial)
    return "\n".join(out), None


class RuleEngine:
    """A compiled rule set plus the section library it was compiled against."""

    def __init__(self, ruleset: RuleSet, sections: Optional[Mapping[str, SectionSpec]] = None):
        self.ruleset = ruleset
        self.sections = SECTIONS if sections is None else sections

    @classmethod
    def compile(cls, source: str, sections: Optional[Mapping[str, SectionSpec]] = None) -> "RuleEngine":
        return cls(compile_rules(source, sections), sections)

    @classmethod
    def from_file(cls, path: str) -> "RuleEngine":
        try:
            source = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise RuleSyntaxError(f"Cannot read rule document {path}", e)
        return cls.compile(source)

    def select_rule(self, kind: str) -> str:
        return select_rule(self.ruleset, kind)

    def render(self, tree: Tree, ctx: RenderContext, rule: Optional[str] = None) -> Tuple[str, Optional[RenderError]]:
        name = rule or self.select_rule(tree.get("kind", ""))
        logger.debug(f"Rendering {object_ref(tree)} with rule {name}")
        return render(self.ruleset, name, tree, ctx, self.sections)
