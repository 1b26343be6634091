from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
import re
import threading
from typing import Iterable

from .config import DEFAULT_SETTINGS, AutoReplaySettings
from .models import ActionRecord

IR_FILENAME = "ir.jsonl"

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
_SEPARATORS = re.compile(r"[\\/]+")


@dataclass(frozen=True, slots=True)
class IRWriteResult:
    ok: bool
    message: str


def sanitize_path_segment(segment: str | None) -> str:
    if not segment or not isinstance(segment, str):
        return "unknown"

    safe = segment.replace("..", "")
    safe = _UNSAFE_CHARS.sub("", safe)
    safe = safe.lstrip(".")
    safe = _SEPARATORS.sub("_", safe)
    safe = re.sub(r"_+", "_", safe)
    safe = safe.lstrip("_").strip()

    if not safe or safe in {".", ".."}:
        safe = "unknown"
    return safe[:200]


def build_ir_path(cwd: Path | str, run_id: str, settings: AutoReplaySettings | None = None) -> Path:
    """Always resolves to ``<cwd>/<runs_dir>/<sanitized run id>/ir.jsonl``."""
    runs_dir = (settings or DEFAULT_SETTINGS).runs_dir
    return Path(cwd) / runs_dir / sanitize_path_segment(run_id) / IR_FILENAME


def to_safe_relative_path(path: Path | str, cwd: Path | str) -> str:
    absolute = Path(path)
    try:
        return absolute.relative_to(Path(cwd)).as_posix()
    except ValueError:
        pass

    parts = absolute.parts
    if "runs" in parts:
        start = parts.index("runs")
        if start > 0:
            return Path(*parts[start - 1 :]).as_posix()
    return f"{DEFAULT_SETTINGS.runs_dir}/[redacted]/{IR_FILENAME}"


class IRWriter:
    """Appends action records to one run's JSONL log.

    Appends are serialized with a lock so records written from several
    in-flight actions never interleave within a line.
    """

    def __init__(self, cwd: Path | str, run_id: str, settings: AutoReplaySettings | None = None) -> None:
        self.cwd = Path(cwd)
        self.run_id = run_id
        self.ir_path = build_ir_path(self.cwd, run_id, settings)
        self._lock = threading.Lock()
        self._initialized = False

    def relative_path(self) -> str:
        return to_safe_relative_path(self.ir_path, self.cwd)

    def _ensure_dir(self) -> None:
        if self._initialized:
            return
        self.ir_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = True

    def write(self, record: ActionRecord) -> IRWriteResult:
        try:
            line = json.dumps(record.to_dict(), ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            logger.warning("Action record for %s is not serializable: %s", record.tool_name, exc)
            return IRWriteResult(False, f"Record is not serializable: {exc}")

        with self._lock:
            try:
                self._ensure_dir()
                with self.ir_path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
            except OSError as exc:
                logger.warning("Failed to append action record to %s: %s", self.relative_path(), exc)
                return IRWriteResult(False, f"Could not write action record: {exc}")
        return IRWriteResult(True, "ok")

    def write_all(self, records: Iterable[ActionRecord]) -> IRWriteResult:
        written = 0
        for record in records:
            result = self.write(record)
            if not result.ok:
                return IRWriteResult(False, f"{result.message} (after {written} record(s))")
            written += 1
        return IRWriteResult(True, f"Wrote {written} record(s).")


def create_ir_writer(cwd: Path | str, run_id: str, settings: AutoReplaySettings | None = None) -> IRWriter:
    return IRWriter(cwd, run_id, settings)
