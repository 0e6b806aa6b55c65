"""Configuration helpers for itack.

This module reads the global ``config.json`` file, validates it
with Pydantic models, and applies environment overrides.

Example:
    >>> from itack.config import format_timestamp, utc_now
    >>> format_timestamp(utc_now()).endswith("Z")
    True
"""

import datetime as dt
import json
import os
from pathlib import Path

from pydantic import ValidationError

from . import paths
from .errors import ValidationFailedError
from .models import GlobalConfig

_ENV_OVERRIDES = {
    "ITACK_DATA_BRANCH": "data_branch",
    "ITACK_MERGE_BRANCH": "merge_branch",
    "ITACK_ASSIGNEE": "default_assignee",
    "ITACK_EDITOR": "editor",
}


def utc_now() -> dt.datetime:
    """Return the current UTC time truncated to whole seconds.

    Example:
        >>> utc_now().tzinfo is not None
        True
    """
    return dt.datetime.now(tz=dt.timezone.utc).replace(microsecond=0)


def format_timestamp(value: dt.datetime) -> str:
    """Return a UTC timestamp in ISO-8601 ``Z`` form.

    Example:
        >>> format_timestamp(dt.datetime(2026, 1, 18, 12, 34, 56, tzinfo=dt.timezone.utc))
        '2026-01-18T12:34:56Z'
    """
    normalized = value.astimezone(dt.timezone.utc).replace(microsecond=0)
    return normalized.isoformat().replace("+00:00", "Z")


def load_json(path: Path) -> dict | None:
    """Load a JSON file if it exists.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed payload as a dict, or ``None`` if the file does not exist.

    Example:
        >>> from pathlib import Path
        >>> load_json(Path("missing.json")) is None
        True
    """
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def parse_global_config(payload: dict, source: Path | str | None = None) -> GlobalConfig:
    """Validate a global config payload."""
    try:
        return GlobalConfig.model_validate(payload)
    except ValidationError as exc:
        location = f" at {source}" if source else ""
        raise ValidationFailedError(f"invalid itack config{location}:\n{exc}") from exc


def _apply_env_overrides(payload: dict) -> dict:
    merged = dict(payload)
    for env_name, key in _ENV_OVERRIDES.items():
        if env_name in os.environ:
            merged[key] = os.environ[env_name]
    return merged


def load_global_config(path: Path | None = None) -> GlobalConfig:
    """Load the global config, falling back to defaults when missing.

    Environment variables (``ITACK_DATA_BRANCH``, ``ITACK_MERGE_BRANCH``,
    ``ITACK_ASSIGNEE``, ``ITACK_EDITOR``) take precedence over the file.
    An empty ``ITACK_MERGE_BRANCH`` selects data-only mode.
    """
    config_path = path or paths.global_config_path()
    try:
        payload = load_json(config_path) or {}
    except json.JSONDecodeError as exc:
        raise ValidationFailedError(f"invalid itack config at {config_path}: {exc}") from exc
    return parse_global_config(_apply_env_overrides(payload), config_path)


def resolve_assignee(config: GlobalConfig, explicit: str | None) -> str | None:
    """Return the explicit assignee or the configured default.

    Example:
        >>> resolve_assignee(GlobalConfig(default_assignee="agent-1"), None)
        'agent-1'
        >>> resolve_assignee(GlobalConfig(default_assignee="agent-1"), " bot ")
        'bot'
    """
    if explicit is not None and explicit.strip():
        return explicit.strip()
    return config.default_assignee
