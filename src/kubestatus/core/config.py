"""Configuration loading for kubestatus.

Values come from, in increasing priority: dataclass defaults, an optional
YAML config file, and ``KUBESTATUS_*`` environment variables. The CLI applies
its own flags on top with :func:`dataclasses.replace`.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

logger = logging.getLogger("kubestatus.config")

DEFAULT_RULES_PATH = str(Path(__file__).resolve().parent.parent / "rules" / "rules.yaml")
DEFAULT_CONFIG_PATH = "~/.kube/kubestatus.yaml"

ENV_OVERRIDES = {
    "rules_path": "KUBESTATUS_RULES",
    "max_inline_depth": "KUBESTATUS_MAX_INLINE_DEPTH",
    "event_limit": "KUBESTATUS_EVENT_LIMIT",
    "color_system": "KUBESTATUS_COLOR_SYSTEM",
}

INT_FIELDS = ("max_inline_depth", "event_limit")
STR_FIELDS = ("rules_path", "kubeconfig", "context", "color_system")
OPTIONAL_FIELDS = ("kubeconfig", "context")

# rich Console color systems, plus "none" for plain output
COLOR_SYSTEMS = ("auto", "standard", "256", "truecolor", "windows", "none")


@dataclass(frozen=True)
class StatusConfig:
    rules_path: str = DEFAULT_RULES_PATH
    max_inline_depth: int = 3
    event_limit: int = 10
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    color_system: str = "auto"


def _read_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = YAML(typ="safe").load(path.read_text(encoding="utf-8"))
    except (OSError, YAMLError) as e:
        logger.warning(f"Ignoring unreadable config file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {path}: top level is not a mapping")
        return {}
    return data


def load_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> StatusConfig:
    """Build a StatusConfig from an optional YAML file plus the environment.

    Unknown keys in the file are ignored. Values of the wrong type, negative
    integers and unknown color systems keep their default and log a warning.
    """
    environ = os.environ if environ is None else environ
    file_path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    raw = _read_file(file_path)

    known = {f.name: f for f in fields(StatusConfig)}
    values: Dict[str, Any] = {k: v for k, v in raw.items() if k in known}

    for name, env_key in ENV_OVERRIDES.items():
        if env_key in environ:
            values[name] = environ[env_key]

    for name in INT_FIELDS:
        if name in values:
            try:
                parsed = -1 if isinstance(values[name], bool) else int(values[name])
            except (TypeError, ValueError):
                parsed = -1
            if parsed < 0:
                logger.warning(f"Invalid {name} '{values[name]}'. Falling back to default.")
                del values[name]
            else:
                values[name] = parsed

    # YAML reads an unquoted 256 as an integer
    if type(values.get("color_system")) is int:
        values["color_system"] = str(values["color_system"])

    for name in STR_FIELDS:
        if name in values and not isinstance(values[name], str) and not (
                values[name] is None and name in OPTIONAL_FIELDS):
            logger.warning(f"Invalid {name} '{values[name]}'. Falling back to default.")
            del values[name]

    if "color_system" in values and values["color_system"] not in COLOR_SYSTEMS:
        logger.warning(f"Invalid color_system '{values['color_system']}'. Falling back to default.")
        del values["color_system"]

    return StatusConfig(**values)
