from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

from playwright.async_api import Error as PlaywrightError

from .fingerprint import TEXT_SNIPPET_LIMIT, FingerprintExtractionError, extract_fingerprint, fingerprints_match
from .locator_candidates import css_attribute_selector, is_css_safe_id, parse_attr_value, parse_role_value
from .models import ActionType, ElementFingerprint, LocatorCandidate, LocatorValidation, is_usable_candidate

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Locator, Page

DEFAULT_TIMEOUT_MS = 2000

logger = logging.getLogger(__name__)


def build_locator(page: Page, candidate: LocatorCandidate) -> Locator | None:
    value = candidate.value
    try:
        if candidate.kind == "getByTestId":
            return page.get_by_test_id(value) if value else None

        if candidate.kind == "getByRole":
            role, name = parse_role_value(value)
            if not role:
                return None
            if name is None:
                return page.get_by_role(role)  # type: ignore[arg-type]
            return page.get_by_role(role, name=name, exact=True)  # type: ignore[arg-type]

        if candidate.kind == "getByLabel":
            return page.get_by_label(value, exact=True) if value else None

        if candidate.kind == "getByPlaceholder":
            return page.get_by_placeholder(value, exact=True) if value else None

        if candidate.kind == "cssId":
            if not value or not is_css_safe_id(value):
                return None
            return page.locator(f"#{value}")

        if candidate.kind == "cssAttr":
            parsed = parse_attr_value(value)
            if parsed is None:
                return None
            return page.locator(css_attribute_selector(*parsed))

        if candidate.kind == "text":
            return page.get_by_text(value, exact=True) if value else None
    except Exception:
        return None

    return None


@dataclass(slots=True)
class _Probe:
    page: Page
    candidate: LocatorCandidate
    action_type: str
    original_fingerprint: ElementFingerprint
    timeout_ms: int
    text_limit: int
    validation: LocatorValidation
    locator: Locator | None = None
    handle: ElementHandle | None = None


# A gate returns True to let the next gate run, False to stop with the current result.
Gate = Callable[[_Probe], Awaitable[bool]]


async def _build_gate(probe: _Probe) -> bool:
    probe.locator = build_locator(probe.page, probe.candidate)
    if probe.locator is None:
        probe.validation.error = "Failed to build locator"
        return False
    return True


async def _uniqueness_gate(probe: _Probe) -> bool:
    if probe.locator is None:
        return False
    count = await probe.locator.count()
    probe.validation.unique = count == 1
    if count == 0:
        probe.validation.error = "No elements found"
        return False
    if count > 1:
        probe.validation.error = f"Multiple elements found: {count}"
        return False
    return True


async def _visibility_gate(probe: _Probe) -> bool:
    if probe.locator is None:
        return False
    try:
        probe.validation.visible = await asyncio.wait_for(
            probe.locator.is_visible(),
            timeout=probe.timeout_ms / 1000,
        )
    except (asyncio.TimeoutError, PlaywrightError):
        probe.validation.visible = False

    if probe.validation.visible is False:
        probe.validation.error = "Element not visible"
        return False
    return True


async def _actionability_gate(probe: _Probe) -> bool:
    if probe.locator is None:
        return False
    if probe.action_type == "click":
        try:
            probe.validation.enabled = await probe.locator.is_enabled(timeout=probe.timeout_ms)
        except PlaywrightError:
            probe.validation.enabled = None
        if probe.validation.enabled is False:
            probe.validation.error = "Element not enabled"
            return False

    if probe.action_type == "fill":
        try:
            probe.validation.editable = await probe.locator.is_editable(timeout=probe.timeout_ms)
        except PlaywrightError:
            probe.validation.editable = None
        if probe.validation.editable is False:
            probe.validation.error = "Element not editable"
            return False

    return True


async def _fingerprint_gate(probe: _Probe) -> bool:
    if probe.locator is None:
        return False
    try:
        probe.handle = await probe.locator.element_handle(timeout=probe.timeout_ms)
        if probe.handle is None:
            return True
        resolved = await extract_fingerprint(probe.handle, probe.text_limit)
    except (PlaywrightError, FingerprintExtractionError):
        probe.validation.fingerprint_match = None
        return True

    probe.validation.fingerprint_match = fingerprints_match(probe.original_fingerprint, resolved)
    if probe.validation.fingerprint_match is False:
        probe.validation.error = "Fingerprint mismatch"
        return False
    return True


VALIDATION_GATES: tuple[Gate, ...] = (
    _build_gate,
    _uniqueness_gate,
    _visibility_gate,
    _actionability_gate,
    _fingerprint_gate,
)


async def _release(probe: _Probe) -> None:
    if probe.handle is None:
        return
    handle, probe.handle = probe.handle, None
    try:
        await handle.dispose()
    except PlaywrightError as exc:
        logger.debug("Element handle dispose failed for %s: %s", probe.candidate.kind, exc.message)


async def validate_candidate(
    candidate: LocatorCandidate,
    *,
    page: Page,
    action_type: ActionType | str,
    original_fingerprint: ElementFingerprint,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    text_limit: int = TEXT_SNIPPET_LIMIT,
) -> LocatorCandidate:
    """Re-resolves ``candidate`` on the live page using read-only probes only.

    Never raises: every failure ends up in ``validation.error`` with the
    relevant flag left ``False`` or ``None``.
    """
    probe = _Probe(
        page=page,
        candidate=candidate,
        action_type=action_type,
        original_fingerprint=original_fingerprint,
        timeout_ms=timeout_ms,
        text_limit=text_limit,
        validation=LocatorValidation(unique=False),
    )
    try:
        for gate in VALIDATION_GATES:
            if not await gate(probe):
                break
    except Exception as exc:
        message = exc.message if isinstance(exc, PlaywrightError) else str(exc)
        probe.validation.error = message or type(exc).__name__
    finally:
        await _release(probe)

    logger.debug(
        "Validated %s(%s): unique=%s visible=%s error=%s",
        candidate.kind,
        candidate.value[:30],
        probe.validation.unique,
        probe.validation.visible,
        probe.validation.error,
    )
    return replace(candidate, validation=probe.validation)


async def validate_candidates(
    candidates: Sequence[LocatorCandidate],
    *,
    page: Page,
    action_type: ActionType | str,
    original_fingerprint: ElementFingerprint,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    text_limit: int = TEXT_SNIPPET_LIMIT,
) -> list[LocatorCandidate]:
    if not candidates:
        return []
    results = await asyncio.gather(
        *(
            validate_candidate(
                candidate,
                page=page,
                action_type=action_type,
                original_fingerprint=original_fingerprint,
                timeout_ms=timeout_ms,
                text_limit=text_limit,
            )
            for candidate in candidates
        )
    )
    return list(results)


def filter_valid_candidates_by_action(
    candidates: Sequence[LocatorCandidate],
    action_type: ActionType | str | None = None,
) -> list[LocatorCandidate]:
    return [candidate for candidate in candidates if is_usable_candidate(candidate, action_type)]


def filter_valid_candidates(candidates: Sequence[LocatorCandidate]) -> list[LocatorCandidate]:
    return filter_valid_candidates_by_action(candidates)


def choose_locator(
    candidates: Sequence[LocatorCandidate],
    action_type: ActionType | str | None = None,
) -> LocatorCandidate | None:
    """First usable candidate; generation order already ranks stability."""
    valid = filter_valid_candidates_by_action(candidates, action_type)
    return valid[0] if valid else None


def get_validation_failure_summary(candidates: Sequence[LocatorCandidate]) -> str:
    summaries: list[str] = []
    for candidate in candidates:
        validation = candidate.validation
        reasons: list[str] = []
        if not validation.unique:
            reasons.append("not unique")
        if validation.visible is False:
            reasons.append("not visible")
        if validation.enabled is False:
            reasons.append("not enabled")
        if validation.editable is False:
            reasons.append("not editable")
        if validation.fingerprint_match is False:
            reasons.append("fingerprint mismatch")
        if not reasons:
            continue
        if validation.error:
            reasons.append(validation.error)
        summaries.append(f"{candidate.kind}({candidate.value[:30]}): {', '.join(reasons)}")
    return "; ".join(summaries)
