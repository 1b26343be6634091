from __future__ import annotations

from dataclasses import dataclass, fields, replace
import logging
from pathlib import Path
import tomllib
from typing import Any, Mapping

logger = logging.getLogger(__name__)

PYPROJECT_TABLE = "autoreplay"


@dataclass(frozen=True, slots=True)
class AutoReplaySettings:
    runs_dir: str = ".autoreplay/runs"
    export_dir: str = "tests/autoreplay"
    validation_timeout_ms: int = 2000
    text_snippet_limit: int = 100


DEFAULT_SETTINGS = AutoReplaySettings()


def settings_from_mapping(values: Mapping[str, Any]) -> AutoReplaySettings:
    settings = DEFAULT_SETTINGS
    known = {item.name: type(getattr(DEFAULT_SETTINGS, item.name)) for item in fields(AutoReplaySettings)}
    for raw_key, value in values.items():
        key = str(raw_key).replace("-", "_")
        expected = known.get(key)
        if expected is None:
            continue
        if expected is int:
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                logger.warning("Ignoring invalid %s value in [tool.%s]: %r", key, PYPROJECT_TABLE, value)
                continue
        elif not isinstance(value, str) or not value.strip():
            logger.warning("Ignoring invalid %s value in [tool.%s]: %r", key, PYPROJECT_TABLE, value)
            continue
        settings = replace(settings, **{key: value})
    return settings


def load_settings(cwd: Path | str) -> AutoReplaySettings:
    pyproject = Path(cwd) / "pyproject.toml"
    if not pyproject.is_file():
        return DEFAULT_SETTINGS
    try:
        with pyproject.open("rb") as handle:
            payload = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Could not read %s, using defaults: %s", pyproject.name, exc)
        return DEFAULT_SETTINGS

    table = payload.get("tool", {}).get(PYPROJECT_TABLE, {})
    if not isinstance(table, dict):
        return DEFAULT_SETTINGS
    return settings_from_mapping(table)
