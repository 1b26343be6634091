from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import re
import tempfile
from typing import Any, Sequence

from .config import AutoReplaySettings
from .export_paths import (
    ensure_export_dir,
    generate_test_function_name,
    get_export_path,
    get_relative_export_path,
)
from .ir_reader import (
    describe_record_location,
    get_missing_locator_actions,
    get_spec_action_records,
    has_valid_chosen_locator,
)
from .models import ActionRecord, AuthoredSpec, AuthoredStep, ExportFailure, ExportResult, ExportSuccess
from .step_matching import (
    INTENT_TOOLS,
    StepMatch,
    assertion_records_for_step,
    detect_step_intent,
    match_steps,
    parse_fill_step,
    parse_navigate_step,
    parse_select_step,
)

logger = logging.getLogger(__name__)

INDENT = "    "
_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class StepCode:
    lines: tuple[str, ...] = ()
    error: str | None = None


def _literal(value: str) -> str:
    return repr(value)


def _single_line(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _chosen_code(record: ActionRecord) -> str | None:
    if record.element is None or record.element.chosen_locator is None:
        return None
    if not has_valid_chosen_locator(record):
        return None
    return record.element.chosen_locator.code


def navigate_code(target: str) -> str:
    if _ABSOLUTE_URL.match(target):
        return f"page.goto({_literal(target)})"
    return f"page.goto(urljoin(BASE_URL, {_literal(target)}))"


def _input_str(record: ActionRecord, key: str) -> str | None:
    value = record.tool_input.get(key)
    return value if isinstance(value, str) and value.strip() else None


def _input_number(record: ActionRecord, key: str) -> float | None:
    value: Any = record.tool_input.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _visible_nth(record: ActionRecord) -> int | None:
    value = record.tool_input.get("visibleNth")
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def generate_assertion_code(step: AuthoredStep, records: Sequence[ActionRecord]) -> StepCode:
    assertion_records = assertion_records_for_step(step, records)
    if not assertion_records:
        return StepCode(error=f"Assertion step {step.index} missing assertion IR record")

    lines: list[str] = []
    for position, record in enumerate(assertion_records, start=1):
        variable = f"locator_{step.index}_{position}"
        if record.tool_name == "assertTextPresent":
            text = _input_str(record, "text")
            if text is None:
                return StepCode(error=f"Assertion step {step.index} missing text in IR")
            nth = _visible_nth(record)
            if nth is None:
                lines.append(f"expect(page.get_by_text({_literal(text)}).first).to_be_visible()")
            else:
                lines.append(f"{variable} = page.get_by_text({_literal(text)})")
                lines.append(f"expect({variable}.nth({nth})).to_be_visible()")
            continue

        locator = _chosen_code(record)
        if locator is None:
            return StepCode(error=f"Assertion step {step.index} missing valid chosenLocator")
        lines.append(f"{variable} = {locator}")
        lines.append(f"expect({variable}).to_have_count(1)")
        lines.append(f"expect({variable}).to_be_visible()")

    return StepCode(lines=tuple(lines))


def generate_action_code(step: AuthoredStep, match: StepMatch | None) -> StepCode:
    record = match.record if match else None
    if record is None:
        reason = match.reason if match and match.reason else "no matching record"
        return StepCode(error=f"Step {step.index} has no recorded action ({reason})")

    tool = record.tool_name
    intent = detect_step_intent(step.text)
    if intent is not None and INTENT_TOOLS[intent] != tool:
        return StepCode(error=f"Step {step.index} reads as {intent} but the recorded action is {tool}")

    if tool == "navigate":
        target = parse_navigate_step(step.text) or _input_str(record, "url")
        if target is None:
            return StepCode(error=f"Navigate step {step.index} has no target URL")
        return StepCode(lines=(navigate_code(target),))

    if tool == "fill":
        locator = _chosen_code(record)
        if locator is None:
            return StepCode(error=f"Fill action at step {step.index} missing valid chosenLocator")
        # Stored fill text is redacted; the value must come from the authored step.
        fill = parse_fill_step(step.text)
        if fill is None:
            return StepCode(error=f"Fill step {step.index} does not state a value: {_single_line(step.text)!r}")
        return StepCode(lines=(f"{locator}.fill({_literal(fill.value)})",))

    if tool == "click":
        locator = _chosen_code(record)
        if locator is None:
            return StepCode(error=f"Click action at step {step.index} missing valid chosenLocator")
        return StepCode(lines=(f"{locator}.click()",))

    if tool == "select_option":
        locator = _chosen_code(record)
        if locator is None:
            return StepCode(error=f"Select action at step {step.index} missing valid chosenLocator")
        parsed = parse_select_step(step.text)
        label = parsed.label if parsed else _input_str(record, "label")
        if label is None:
            return StepCode(error=f"Select step {step.index} does not state an option label")
        return StepCode(lines=(f"{locator}.select_option(label={_literal(label)})",))

    if tool == "scroll":
        amount = _input_number(record, "amount")
        direction = _input_str(record, "direction")
        if amount is None or direction not in {"up", "down"}:
            return StepCode(error=f"Scroll step {step.index} has no direction/amount in IR")
        delta = -amount if direction == "up" else amount
        return StepCode(lines=(f"page.mouse.wheel(0, {delta:g})",))

    if tool == "wait":
        seconds = _input_number(record, "seconds")
        if seconds is None or seconds < 0:
            return StepCode(error=f"Wait step {step.index} has no duration in IR")
        return StepCode(lines=(f"page.wait_for_timeout({seconds * 1000:g})",))

    return StepCode(error=f"Cannot generate code for step {step.index}: {_single_line(step.text)!r}")


def build_test_source(
    spec_path: str,
    spec: AuthoredSpec,
    records: Sequence[ActionRecord],
    base_url: str,
) -> tuple[str, list[str]]:
    """Renders the pytest-playwright module; returns (source, per-step errors)."""
    matches = match_steps(spec.steps, records)
    errors: list[str] = []
    body: list[str] = []

    for step in spec.steps:
        if step.kind == "assertion":
            step_code = generate_assertion_code(step, records)
        else:
            step_code = generate_action_code(step, matches.get(step.index))
        if step_code.error:
            errors.append(step_code.error)
            continue
        body.append(f"{INDENT}# Step {step.index}: {_single_line(step.text)}")
        body.extend(f"{INDENT}{line}" for line in step_code.lines)

    if not body:
        body.append(f"{INDENT}pass")

    header: list[str] = []
    if any("urljoin(BASE_URL" in line for line in body):
        header.extend(["from urllib.parse import urljoin", ""])
    header += [
        "from playwright.sync_api import Page, expect",
        "",
        f"BASE_URL = {_literal(base_url)}",
        "",
        "",
        f"def {generate_test_function_name(spec_path)}(page: Page) -> None:",
    ]
    return "\n".join(header + body) + "\n", errors


def _write_atomic(target_file: Path, content: str) -> tuple[bool, str]:
    temp_path: Path | None = None
    try:
        fd, temp_name = tempfile.mkstemp(prefix=f".{target_file.name}.", suffix=".tmp", dir=str(target_file.parent))
        temp_path = Path(temp_name)
        with os.fdopen(fd, "w", encoding="utf-8") as temp_file:
            temp_file.write(content)
            temp_file.flush()
            os.fsync(temp_file.fileno())
        temp_path.replace(target_file)
    except OSError as exc:
        if temp_path and temp_path.exists():
            temp_path.unlink(missing_ok=True)
        return False, f"Failed to write export file: {exc}"
    return True, "ok"


def export_playwright_test(
    *,
    cwd: Path | str,
    run_id: str,
    spec_path: str,
    spec: AuthoredSpec,
    base_url: str,
    settings: AutoReplaySettings | None = None,
) -> ExportResult:
    """Compiles one spec's recorded run into a replayable test file.

    Fails closed: any step without proven evidence fails the whole export and
    no file is written.
    """
    try:
        records = get_spec_action_records(cwd, run_id, spec_path, settings)
    except OSError as exc:
        return ExportFailure(reason=f"Failed to read IR file: {exc}")

    if not records:
        return ExportFailure(reason="Export failed: No IR records found for spec")

    missing = tuple(describe_record_location(record) for record in get_missing_locator_actions(records))
    source, step_errors = build_test_source(spec_path, spec, records, base_url)

    if missing or step_errors:
        reasons: list[str] = []
        if missing:
            reasons.append(f"{len(missing)} action(s) missing valid chosenLocator")
        reasons.extend(step_errors)
        failure = ExportFailure(reason=f"Export failed: {'; '.join(reasons)}", missing_locators=missing)
        logger.info("Export refused for %s: %s", spec_path, failure.reason)
        return failure

    try:
        ensure_export_dir(cwd, settings)
    except OSError as exc:
        return ExportFailure(reason=f"Failed to create export directory: {exc}")

    export_path = get_export_path(cwd, spec_path, settings)
    ok, message = _write_atomic(export_path, source)
    if not ok:
        return ExportFailure(reason=message)

    relative_path = get_relative_export_path(cwd, spec_path, settings)
    logger.info("Exported %s to %s", spec_path, relative_path)
    return ExportSuccess(export_path=export_path, relative_path=relative_path)


@dataclass(frozen=True, slots=True)
class Exportability:
    exportable: bool
    reason: str = ""


def is_spec_exportable(
    cwd: Path | str,
    run_id: str,
    spec_path: str,
    settings: AutoReplaySettings | None = None,
) -> Exportability:
    try:
        records = get_spec_action_records(cwd, run_id, spec_path, settings)
    except OSError as exc:
        return Exportability(False, f"Failed to check exportability: {exc}")

    if not records:
        return Exportability(False, "No IR records found for spec")

    missing = get_missing_locator_actions(records)
    if missing:
        return Exportability(False, f"{len(missing)} action(s) missing valid chosenLocator")
    return Exportability(True)
