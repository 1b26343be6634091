from __future__ import annotations

from pathlib import Path, PurePath
import re

from .config import DEFAULT_SETTINGS, AutoReplaySettings

_NON_WORD = re.compile(r"\W+")
_MARKDOWN_SUFFIX = re.compile(r"\.(md|markdown)$", re.IGNORECASE)

MAX_NAME_LENGTH = 200


def sanitize_module_name(value: str) -> str:
    """Collapses separators, traversal and unsafe characters into ``_``."""
    safe = _NON_WORD.sub("_", value).strip("_")
    return safe[:MAX_NAME_LENGTH].rstrip("_")


def _spec_relative_path(spec_path: str, cwd: Path | str) -> str:
    path = PurePath(spec_path)
    if not path.is_absolute():
        return path.as_posix()
    try:
        return path.relative_to(PurePath(cwd)).as_posix()
    except ValueError:
        return path.name


def generate_export_file_name(spec_path: str, cwd: Path | str) -> str:
    """``specs/saucedemo-01-login.md`` -> ``test_specs_saucedemo_01_login.py``."""
    relative = _MARKDOWN_SUFFIX.sub("", _spec_relative_path(spec_path, cwd))
    return f"test_{sanitize_module_name(relative) or 'spec'}.py"


def generate_test_function_name(spec_path: str) -> str:
    stem = _MARKDOWN_SUFFIX.sub("", PurePath(spec_path.replace("\\", "/")).name)
    name = sanitize_module_name(stem).lower() or "exported"
    return f"test_{name}"


def get_export_dir(cwd: Path | str, settings: AutoReplaySettings | None = None) -> Path:
    return Path(cwd) / (settings or DEFAULT_SETTINGS).export_dir


def get_export_path(cwd: Path | str, spec_path: str, settings: AutoReplaySettings | None = None) -> Path:
    return get_export_dir(cwd, settings) / generate_export_file_name(spec_path, cwd)


def get_relative_export_path(cwd: Path | str, spec_path: str, settings: AutoReplaySettings | None = None) -> str:
    export_dir = PurePath((settings or DEFAULT_SETTINGS).export_dir).as_posix()
    return f"{export_dir}/{generate_export_file_name(spec_path, cwd)}"


def ensure_export_dir(cwd: Path | str, settings: AutoReplaySettings | None = None) -> Path:
    export_dir = get_export_dir(cwd, settings)
    export_dir.mkdir(parents=True, exist_ok=True)
    return export_dir
