"""
Secrets store utilities.

YAML-backed storage for the CalDAV password and other confidential values,
kept apart from settings.yaml so the settings file can be shared freely.
"""

from __future__ import annotations

import os
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Optional

import yaml

from caltrigger.runtime.paths import get_system_root


SECRETS_PATH_ENV = "SECRETS_PATH"


class _SecretsDumper(yaml.SafeDumper):
    """Custom YAML dumper that renders None values as empty strings."""


def _represent_none(self, _):  # type: ignore[override]
    return self.represent_scalar("tag:yaml.org,2002:null", "")


_SecretsDumper.add_representer(type(None), _represent_none)


def _resolve_secrets_path() -> Path:
    """Determine the active secrets file path."""
    override = os.environ.get(SECRETS_PATH_ENV)
    if override:
        return Path(override)
    return get_system_root() / "secrets.yaml"


def _ensure_file(path: Path) -> None:
    """Ensure the secrets file exists."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_text("", encoding="utf-8")


def _read_raw(path: Path, include_empty: bool = False) -> "OrderedDict[str, Optional[str]]":
    """Read raw secrets mapping from disk."""
    _ensure_file(path)
    raw_text = path.read_text(encoding="utf-8")
    if not raw_text.strip():
        return OrderedDict()

    data = yaml.safe_load(raw_text) or {}
    if not isinstance(data, dict):
        raise ValueError("Secrets file must contain a mapping of key/value pairs.")

    normalized: "OrderedDict[str, Optional[str]]" = OrderedDict()
    for key, value in data.items():
        if not isinstance(key, str):
            raise ValueError("Secret names must be strings.")
        if value is None or (isinstance(value, str) and not value.strip()):
            if include_empty:
                normalized[key] = None
            continue
        if not isinstance(value, (str, int)):
            raise ValueError(f"Secret '{key}' must be stored as a string.")
        normalized[key] = str(value)
    return normalized


def _write_raw(path: Path, data: Dict[str, Optional[str]]) -> None:
    """Persist secrets mapping to disk using an atomic write."""
    _ensure_file(path)
    tmp_path = path.with_suffix(".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        if data:
            yaml.dump(
                dict(data),
                handle,
                sort_keys=False,
                default_flow_style=False,
                allow_unicode=False,
                Dumper=_SecretsDumper,
            )
    os.replace(tmp_path, path)


def get_secret_value(name: str) -> Optional[str]:
    """Return the stored value for a secret, if set."""
    if not name:
        return None
    value = _read_raw(_resolve_secrets_path()).get(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def set_secret_value(name: str, value: Optional[str]) -> None:
    """Create or update a secret value; blank values are stored as empty."""
    if not name:
        raise ValueError("Secret name cannot be empty.")

    path = _resolve_secrets_path()
    secrets = _read_raw(path, include_empty=True)

    normalized = (value or "").strip()
    secrets[name] = normalized or None

    _write_raw(path, secrets)


def secret_has_value(name: str) -> bool:
    """Return True when the secret exists and has non-empty value."""
    return bool(get_secret_value(name))
