"""Configuration objects, constants and config-file merging for the checker."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from .models import FatalError

logger = logging.getLogger("mdlinkcheck.config")

DEFAULT_JOURNAL_PATH = Path("data.json")
DEFAULT_ALIVE_STATUS_CODES: FrozenSet[int] = frozenset({200})
DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRY_COUNT = 2
DEFAULT_FALLBACK_RETRY_DELAY = 60.0

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*(ms|s|m|h)", re.IGNORECASE)
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass(frozen=True)
class CheckOptions:
    """Settings passed to the link checker for a single input."""

    base_url: str = ""
    project_base_url: str = ""
    show_progress_bar: bool = False
    quiet: bool = False
    verbose: bool = False
    retry_on_429: bool = False
    alive_status_codes: FrozenSet[int] = DEFAULT_ALIVE_STATUS_CODES
    ignore_patterns: Tuple[Dict[str, Any], ...] = ()
    replacement_patterns: Tuple[Dict[str, Any], ...] = ()
    http_headers: Tuple[Dict[str, Any], ...] = ()
    timeout: float = DEFAULT_TIMEOUT
    ignore_disable: bool = False
    retry_count: int = DEFAULT_RETRY_COUNT
    fallback_retry_delay: float = DEFAULT_FALLBACK_RETRY_DELAY


def parse_duration(value: Union[int, float, str, None], default: float = 0.0) -> float:
    """Convert ``10``, ``"500ms"``, ``"10s"`` or ``"1m30s"`` into seconds."""
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return default
    try:
        return float(text)
    except ValueError:
        pass
    parts = _DURATION_PART.findall(text)
    if not parts or _DURATION_PART.sub("", text).strip():
        raise ValueError(f"Invalid duration: {value!r}")
    return sum(float(amount) * _DURATION_UNITS[unit.lower()] for amount, unit in parts)


def parse_status_codes(value: str) -> FrozenSet[int]:
    """Parse a comma-separated list such as ``200,206`` into status codes."""
    codes = set()
    for chunk in value.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        if not chunk.isdigit():
            raise ValueError(f"Invalid HTTP status code: {chunk!r}")
        codes.add(int(chunk))
    if not codes:
        raise ValueError("At least one HTTP status code is required")
    return frozenset(codes)


def _status_code_set(value: Any) -> FrozenSet[int]:
    if isinstance(value, str):
        return parse_status_codes(value)
    codes = frozenset(int(code) for code in value)
    if not codes:
        raise ValueError("aliveStatusCodes must not be empty")
    return codes


def _flag(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected true or false, got {value!r}")
    return value


def _pattern_list(value: Any) -> Tuple[Dict[str, Any], ...]:
    if not isinstance(value, list):
        raise ValueError(f"Expected a list, got {type(value).__name__}")
    return tuple(dict(item) for item in value)


# JSON key -> (CheckOptions field, converter)
CONFIG_FIELDS = {
    "ignorePatterns": ("ignore_patterns", _pattern_list),
    "replacementPatterns": ("replacement_patterns", _pattern_list),
    "httpHeaders": ("http_headers", _pattern_list),
    "timeout": ("timeout", lambda value: parse_duration(value, DEFAULT_TIMEOUT)),
    "ignoreDisable": ("ignore_disable", _flag),
    "retryOn429": ("retry_on_429", _flag),
    "retryCount": ("retry_count", int),
    "fallbackRetryDelay": (
        "fallback_retry_delay",
        lambda value: parse_duration(value, DEFAULT_FALLBACK_RETRY_DELAY),
    ),
    "aliveStatusCodes": ("alive_status_codes", _status_code_set),
}


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read the JSON config file once per run.

    An unreadable file is fatal; a parse error propagates to the caller.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise FatalError(f"Cannot access config file {path}: {exc}") from exc
    config = json.loads(raw)
    if not isinstance(config, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    logger.debug("Loaded config from %s (%d keys)", path, len(config))
    return config


def apply_config(options: CheckOptions, config: Optional[Mapping[str, Any]]) -> CheckOptions:
    """Overlay config-file values onto ``options``; config always wins."""
    if not config:
        return options
    changes: Dict[str, Any] = {}
    for key, value in config.items():
        target = CONFIG_FIELDS.get(key)
        if target is None:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        name, convert = target
        changes[name] = convert(value)
    return replace(options, **changes)


def describe(options: CheckOptions) -> List[str]:
    """Short human-readable summary used for debug logging."""
    return [
        f"base_url={options.base_url or '-'}",
        f"alive={','.join(str(code) for code in sorted(options.alive_status_codes))}",
        f"timeout={options.timeout:g}s",
        f"retry_on_429={options.retry_on_429}",
    ]
