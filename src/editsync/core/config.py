"""Default engine config generation and validation."""

from __future__ import annotations

import copy
import json
from typing import TypedDict

from editsync.core.errors import ConfigError


class RetryConfig(TypedDict, total=False):
    base_delay_ms: int
    multiplier: float
    max_delay_ms: int
    max_attempts: int
    jitter: float


class EngineConfig(TypedDict, total=False):
    schema_version: int
    settle_window_ms: int
    save_timeout_ms: int
    retry: RetryConfig
    drafts_dir: str


def default_config() -> EngineConfig:
    """Return the default engine configuration.

    The returned dict, when serialized with
    ``json.dumps(data, sort_keys=True, indent=2) + "\\n"``,
    produces the canonical default config.json.
    """
    return {
        "schema_version": 1,
        "settle_window_ms": 2000,
        "save_timeout_ms": 10000,
        "retry": {
            "base_delay_ms": 1000,
            "multiplier": 2.0,
            "max_delay_ms": 30000,
            "max_attempts": 3,
            "jitter": 0.0,
        },
        "drafts_dir": "drafts",
    }


def serialize_config(config: EngineConfig | dict[str, object]) -> str:
    """Serialize a config dict to the canonical JSON format."""
    return json.dumps(config, sort_keys=True, indent=2) + "\n"


def load_config(raw: str) -> dict:
    """Parse a JSON config string and return it merged over the defaults.

    This is a pure function (no I/O).  The CLI layer reads the file
    and passes the raw string here.
    """
    return merge_config(json.loads(raw))


def merge_config(overrides: dict | None) -> dict:
    """Return the default config with *overrides* applied (one level deep for ``retry``)."""
    config: dict = copy.deepcopy(dict(default_config()))
    if not overrides:
        return config
    for key, value in overrides.items():
        if key == "retry" and isinstance(value, dict):
            config["retry"].update(value)
        else:
            config[key] = value
    return config


def resolve_config(overrides: dict | None) -> dict:
    """Merge *overrides* over the defaults and validate the result.

    Raises:
        ConfigError: If the merged config fails ``validate_config``.
    """
    config = merge_config(overrides)
    ok, failures = validate_config(config)
    if not ok:
        raise ConfigError("; ".join(failures))
    return config


def validate_config(config: dict) -> tuple[bool, list[str]]:
    """Check a (merged) config for values the engine cannot run with.

    Returns ``(True, [])`` when valid, ``(False, [reason, ...])`` otherwise.
    """
    failures: list[str] = []

    for key in ("settle_window_ms", "save_timeout_ms"):
        value = config.get(key)
        if not _is_number(value) or value < 0:
            failures.append(f"{key} must be a non-negative number")

    retry = config.get("retry")
    if not isinstance(retry, dict):
        failures.append("retry must be an object")
        return (False, failures)

    if not _is_number(retry.get("base_delay_ms")) or retry["base_delay_ms"] < 0:
        failures.append("retry.base_delay_ms must be a non-negative number")
    if not _is_number(retry.get("multiplier")) or retry["multiplier"] < 1:
        failures.append("retry.multiplier must be >= 1")
    if not _is_number(retry.get("max_delay_ms")) or retry["max_delay_ms"] < 0:
        failures.append("retry.max_delay_ms must be a non-negative number")
    max_attempts = retry.get("max_attempts")
    if not isinstance(max_attempts, int) or isinstance(max_attempts, bool) or max_attempts < 1:
        failures.append("retry.max_attempts must be an integer >= 1")
    jitter = retry.get("jitter", 0.0)
    if not _is_number(jitter) or not 0 <= jitter <= 1:
        failures.append("retry.jitter must be between 0 and 1")

    return (len(failures) == 0, failures)


def get_setting(config: dict, dotted_key: str) -> object:
    """Look up ``retry.max_attempts``-style keys.  Raises KeyError if missing."""
    node: object = config
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(dotted_key)
        node = node[part]
    return node


def set_setting(config: dict, dotted_key: str, value: object) -> dict:
    """Return a copy of *config* with *dotted_key* set to *value*."""
    updated = copy.deepcopy(config)
    parts = dotted_key.split(".")
    node = updated
    for part in parts[:-1]:
        node = node.setdefault(part, {})
    node[parts[-1]] = value
    return updated


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
