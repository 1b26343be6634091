from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Mapping

from .config import DEFAULT_SETTINGS, AutoReplaySettings
from .fingerprint import EXTRACTION_FAILED, FingerprintExtractionError, extract_fingerprint
from .ir_writer import IRWriter, IRWriteResult
from .locator_candidates import generate_candidates
from .locator_validator import choose_locator, get_validation_failure_summary, validate_candidates
from .models import ActionOutcome, ActionRecord, ActionType, ElementRecord, IRToolName, IR_TOOL_NAMES
from .redaction import Redactor, redact_tool_input_for_ir, redact_url_credentials

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Page

ELEMENT_NOT_FOUND = "ELEMENT_NOT_FOUND"

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ElementRecordResult:
    ok: bool
    record: ElementRecord | None = None
    error_code: str | None = None
    message: str = ""


async def build_element_record(
    page: Page,
    element: ElementHandle | None,
    action_type: ActionType | str,
    *,
    settings: AutoReplaySettings | None = None,
) -> ElementRecordResult:
    """Fingerprints ``element``, validates its candidates and picks one.

    A record without ``chosen_locator`` is still a successful result: the
    action may have resolved its target some other way, it just cannot be
    exported later.
    """
    if element is None:
        return ElementRecordResult(False, error_code=ELEMENT_NOT_FOUND, message="No element handle to record.")

    resolved = settings or DEFAULT_SETTINGS
    try:
        fingerprint = await extract_fingerprint(element, resolved.text_snippet_limit)
    except FingerprintExtractionError as exc:
        logger.warning("Element fingerprint unavailable for %s: %s", action_type, exc.message)
        return ElementRecordResult(False, error_code=EXTRACTION_FAILED, message=exc.message)

    candidates = generate_candidates(fingerprint, element)
    validated = await validate_candidates(
        candidates,
        page=page,
        action_type=action_type,
        original_fingerprint=fingerprint,
        timeout_ms=resolved.validation_timeout_ms,
        text_limit=resolved.text_snippet_limit,
    )
    chosen = choose_locator(validated, action_type)
    if chosen is None:
        summary = get_validation_failure_summary(validated) or "no locator candidates"
        logger.info("No stable locator for %s: %s", action_type, summary)

    return ElementRecordResult(
        True,
        record=ElementRecord(fingerprint=fingerprint, locator_candidates=validated, chosen_locator=chosen),
        message="Locator chosen." if chosen else "No usable locator candidate.",
    )


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class ActionRecorder:
    """Turns finished tool calls into persisted action records for one spec."""

    def __init__(
        self,
        writer: IRWriter,
        *,
        run_id: str,
        spec_path: str,
        redact: Redactor = redact_tool_input_for_ir,
        clock: Callable[[], int] = _epoch_millis,
    ) -> None:
        self.writer = writer
        self.run_id = run_id
        self.spec_path = spec_path
        self._redact = redact
        self._clock = clock

    def _build_record(
        self,
        tool_name: IRToolName,
        tool_input: Mapping[str, Any],
        outcome: ActionOutcome,
        *,
        step_index: int | None = None,
        step_text: str | None = None,
        page_url: str | None = None,
        element: ElementRecord | None = None,
    ) -> ActionRecord:
        return ActionRecord(
            run_id=self.run_id,
            spec_path=self.spec_path,
            step_index=step_index,
            step_text=step_text,
            tool_name=tool_name,
            tool_input=self._redact(tool_name, tool_input),
            outcome=outcome,
            page_url=redact_url_credentials(page_url) if page_url else None,
            element=element,
            timestamp=self._clock(),
        )

    def record(
        self,
        tool_name: IRToolName,
        tool_input: Mapping[str, Any],
        outcome: ActionOutcome,
        *,
        step_index: int | None = None,
        step_text: str | None = None,
        page_url: str | None = None,
        element: ElementRecord | None = None,
    ) -> IRWriteResult:
        if tool_name not in IR_TOOL_NAMES:
            return IRWriteResult(False, f"Unsupported tool for action records: {tool_name!r}")
        record = self._build_record(
            tool_name,
            tool_input,
            outcome,
            step_index=step_index,
            step_text=step_text,
            page_url=page_url,
            element=element,
        )
        return self.writer.write(record)
