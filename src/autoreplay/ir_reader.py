from __future__ import annotations

import json
import logging
from pathlib import Path
import re
from typing import Sequence

from .config import AutoReplaySettings
from .ir_writer import build_ir_path
from .models import ActionRecord, RecordFormatError, is_element_targeting_tool, is_usable_candidate

logger = logging.getLogger(__name__)


def read_ir_file(cwd: Path | str, run_id: str, settings: AutoReplaySettings | None = None) -> list[ActionRecord]:
    """Reads every well-formed record of a run.

    A missing log yields ``[]``; blank and malformed lines are skipped. Other
    I/O errors propagate as :class:`OSError`.
    """
    ir_path = build_ir_path(cwd, run_id, settings)
    try:
        content = ir_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []

    records: list[ActionRecord] = []
    # U+2028 and friends are legal inside a JSON string; only "\n" ends a record.
    for line_number, line in enumerate(content.split("\n"), start=1):
        trimmed = line.strip()
        if not trimmed:
            continue
        try:
            records.append(ActionRecord.from_dict(json.loads(trimmed)))
        except (json.JSONDecodeError, RecordFormatError) as exc:
            logger.debug("Skipping malformed action record at line %d: %s", line_number, exc)
    return records


def _normalize(path: str) -> str:
    return re.sub(r"[\\/]+", "/", path).strip()


def _basename(normalized: str) -> str:
    return normalized.rsplit("/", 1)[-1]


def filter_by_spec_path(records: Sequence[ActionRecord], spec_path: str) -> list[ActionRecord]:
    spec_norm = _normalize(spec_path)
    if not spec_norm:
        return []

    exact = [record for record in records if _normalize(record.spec_path) == spec_norm]
    if exact:
        return exact

    # Reconcile absolute and relative forms on a separator boundary.
    if "/" in spec_norm:
        ending: list[ActionRecord] = []
        for record in records:
            record_norm = _normalize(record.spec_path)
            if record_norm.endswith(f"/{spec_norm}") or spec_norm.endswith(f"/{record_norm}"):
                ending.append(record)
        if ending:
            return ending

    spec_basename = _basename(spec_norm)
    if not spec_basename:
        return []
    by_basename = [record for record in records if _basename(_normalize(record.spec_path)) == spec_basename]
    distinct_paths = {_normalize(record.spec_path) for record in by_basename}
    if len(distinct_paths) == 1:
        return by_basename
    return []


def get_spec_action_records(
    cwd: Path | str,
    run_id: str,
    spec_path: str,
    settings: AutoReplaySettings | None = None,
) -> list[ActionRecord]:
    return filter_by_spec_path(read_ir_file(cwd, run_id, settings), spec_path)


def has_valid_chosen_locator(record: ActionRecord) -> bool:
    if record.element is None or record.element.chosen_locator is None:
        return False
    return is_usable_candidate(record.element.chosen_locator, record.tool_name)


def get_missing_locator_actions(records: Sequence[ActionRecord]) -> list[ActionRecord]:
    return [
        record
        for record in records
        if is_element_targeting_tool(record.tool_name)
        and record.outcome.ok
        and not has_valid_chosen_locator(record)
    ]


def describe_record_location(record: ActionRecord) -> str:
    step = f"step {record.step_index}" if record.step_index is not None else "unknown step"
    return f"{record.tool_name} at {step}"
