import asyncio

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autoreplay.locator_candidates import generate_candidates
from autoreplay.locator_validator import (
    _Probe,
    _actionability_gate,
    _fingerprint_gate,
    _uniqueness_gate,
    _visibility_gate,
    choose_locator,
    filter_valid_candidates,
    filter_valid_candidates_by_action,
    get_validation_failure_summary,
    validate_candidate,
    validate_candidates,
)
from autoreplay.models import ElementFingerprint, LocatorCandidate, LocatorValidation

from playwright_fakes import FakeHandle, FakeLocator, FakePage

LOGIN_FINGERPRINT = ElementFingerprint(
    tag_name="button",
    role="button",
    accessible_name="Login",
    test_id="login-btn",
    text_snippet="Login",
)

LOGIN_PAYLOAD = {
    "tagName": "button",
    "role": "button",
    "accessibleName": "Login",
    "testId": "login-btn",
    "textSnippet": "Login",
}


def _candidate(kind: str = "getByTestId", value: str = "login-btn") -> LocatorCandidate:
    return LocatorCandidate(kind=kind, value=value, code=f"page.get_by_test_id({value!r})")


def _validate(page: FakePage, candidate: LocatorCandidate, action_type: str = "click", **kwargs) -> LocatorCandidate:
    return asyncio.run(
        validate_candidate(
            candidate,
            page=page,
            action_type=action_type,
            original_fingerprint=LOGIN_FINGERPRINT,
            **kwargs,
        )
    )


def test_unique_visible_matching_candidate_passes() -> None:
    handle = FakeHandle(LOGIN_PAYLOAD)
    page = FakePage({("test_id", "login-btn"): FakeLocator(1, handle=handle)})
    result = _validate(page, _candidate())

    assert result.validation == LocatorValidation(
        unique=True,
        visible=True,
        enabled=True,
        fingerprint_match=True,
    )
    assert handle.disposed
    assert choose_locator([result], "click") is result


def test_zero_matches_stop_before_visibility() -> None:
    locator = FakeLocator(0)
    page = FakePage({("test_id", "login-btn"): locator})
    result = _validate(page, _candidate())

    assert result.validation.unique is False
    assert result.validation.visible is None
    assert result.validation.error == "No elements found"
    assert locator.calls == ["count"]


def test_multiple_matches_report_count() -> None:
    locator = FakeLocator(3)
    page = FakePage({("test_id", "login-btn"): locator})
    result = _validate(page, _candidate())

    assert result.validation.unique is False
    assert result.validation.error == "Multiple elements found: 3"
    assert "is_visible" not in locator.calls


def test_hidden_element_stops_pipeline() -> None:
    locator = FakeLocator(1, visible=False)
    page = FakePage({("test_id", "login-btn"): locator})
    result = _validate(page, _candidate())

    assert result.validation.visible is False
    assert result.validation.error == "Element not visible"
    assert locator.calls == ["count", "is_visible"]
    assert filter_valid_candidates([result]) == []


def test_visibility_probe_timeout_downgrades_to_not_visible() -> None:
    page = FakePage({("test_id", "login-btn"): FakeLocator(1, visible_delay=0.5)})
    result = _validate(page, _candidate(), timeout_ms=10)

    assert result.validation.unique is True
    assert result.validation.visible is False
    assert result.validation.error == "Element not visible"


def test_visibility_probe_error_downgrades_to_not_visible() -> None:
    page = FakePage({("test_id", "login-btn"): FakeLocator(1, visible=PlaywrightError("Target closed"))})
    result = _validate(page, _candidate())

    assert result.validation.visible is False


def test_disabled_element_is_rejected_for_click() -> None:
    page = FakePage({("test_id", "login-btn"): FakeLocator(1, enabled=False)})
    result = _validate(page, _candidate())

    assert result.validation.enabled is False
    assert result.validation.error == "Element not enabled"
    assert choose_locator([result], "click") is None


def test_inconclusive_enabled_probe_keeps_candidate_usable() -> None:
    page = FakePage(
        {("test_id", "login-btn"): FakeLocator(1, enabled=PlaywrightTimeoutError("Timeout 2000ms exceeded"))}
    )
    result = _validate(page, _candidate())

    assert result.validation.enabled is None
    assert result.validation.error is None
    assert filter_valid_candidates_by_action([result], "click") == [result]


def test_fill_checks_editable_instead_of_enabled() -> None:
    locator = FakeLocator(1, editable=False)
    page = FakePage({("test_id", "login-btn"): locator})
    result = _validate(page, _candidate(), action_type="fill")

    assert result.validation.editable is False
    assert result.validation.enabled is None
    assert result.validation.error == "Element not editable"
    assert "is_enabled" not in locator.calls


def test_fingerprint_mismatch_is_rejected_and_handle_released() -> None:
    handle = FakeHandle({**LOGIN_PAYLOAD, "tagName": "a", "role": "link"})
    page = FakePage({("test_id", "login-btn"): FakeLocator(1, handle=handle)})
    result = _validate(page, _candidate())

    assert result.validation.fingerprint_match is False
    assert result.validation.error == "Fingerprint mismatch"
    assert handle.disposed
    assert choose_locator([result]) is None


def test_fingerprint_extraction_failure_is_inconclusive() -> None:
    handle = FakeHandle(error=PlaywrightError("Element is not attached to the DOM"))
    page = FakePage({("test_id", "login-btn"): FakeLocator(1, handle=handle)})
    result = _validate(page, _candidate())

    assert result.validation.fingerprint_match is None
    assert result.validation.error is None
    assert handle.disposed
    assert choose_locator([result], "click") is result


def test_unbuildable_locator_is_reported() -> None:
    page = FakePage()
    result = _validate(page, LocatorCandidate(kind="getByRole", value="not-a-role:x", code="page.get_by_role('x')"))

    assert result.validation.unique is False
    assert result.validation.error == "Failed to build locator"

    malformed = _validate(page, LocatorCandidate(kind="cssAttr", value="no-equals", code="page.locator('x')"))
    assert malformed.validation.error == "Failed to build locator"


def test_gates_after_build_refuse_a_candidate_without_locator() -> None:
    unbuilt = _Probe(
        page=FakePage(),
        candidate=_candidate(),
        action_type="click",
        original_fingerprint=LOGIN_FINGERPRINT,
        timeout_ms=100,
        text_limit=100,
        validation=LocatorValidation(),
    )
    for gate in (_uniqueness_gate, _visibility_gate, _actionability_gate, _fingerprint_gate):
        assert asyncio.run(gate(unbuilt)) is False
    assert unbuilt.validation == LocatorValidation()


def test_unexpected_count_error_is_recorded_not_raised() -> None:
    page = FakePage({("test_id", "login-btn"): FakeLocator(1, count_error=PlaywrightError("Execution context was destroyed"))})
    result = _validate(page, _candidate())

    assert result.validation.unique is False
    assert result.validation.error == "Execution context was destroyed"


def test_validation_does_not_mutate_the_page() -> None:
    page = FakePage({("test_id", "login-btn"): FakeLocator(1, handle=FakeHandle(LOGIN_PAYLOAD))})
    _validate(page, _candidate())
    assert page.mutations == []


def test_test_id_is_chosen_when_role_and_text_are_ambiguous() -> None:
    page = FakePage(
        {
            ("test_id", "login-btn"): FakeLocator(1, handle=FakeHandle(LOGIN_PAYLOAD)),
            ("role", "button:Login"): FakeLocator(2),
            ("text", "Login"): FakeLocator(2),
        }
    )
    candidates = generate_candidates(LOGIN_FINGERPRINT)
    validated = asyncio.run(
        validate_candidates(
            candidates,
            page=page,
            action_type="click",
            original_fingerprint=LOGIN_FINGERPRINT,
        )
    )

    assert [candidate.kind for candidate in validated] == ["getByTestId", "getByRole", "text"]
    assert validated[1].validation.error == "Multiple elements found: 2"
    chosen = choose_locator(validated, "click")
    assert chosen is not None
    assert chosen.kind == "getByTestId"
    assert chosen.code == "page.get_by_test_id('login-btn')"


def test_validate_candidates_with_no_input() -> None:
    result = asyncio.run(
        validate_candidates([], page=FakePage(), action_type="click", original_fingerprint=LOGIN_FINGERPRINT)
    )
    assert result == []


def test_usability_gate_never_accepts_fingerprint_mismatch() -> None:
    flags = (True, False, None)
    candidates = [
        LocatorCandidate(
            kind="getByTestId",
            value="x",
            code="page.get_by_test_id('x')",
            validation=LocatorValidation(unique=True, visible=visible, enabled=enabled, fingerprint_match=False),
        )
        for visible in flags
        for enabled in flags
    ]
    for action_type in (None, "click", "fill", "select_option"):
        assert filter_valid_candidates_by_action(candidates, action_type) == []


def test_usability_gate_requires_uniqueness_and_code() -> None:
    not_unique = LocatorCandidate(
        kind="text",
        value="Login",
        code="page.get_by_text('Login', exact=True)",
        validation=LocatorValidation(unique=False, visible=True),
    )
    no_code = LocatorCandidate(kind="text", value="Login", code=" ", validation=LocatorValidation(unique=True))
    assert filter_valid_candidates([not_unique, no_code]) == []


def test_failure_summary_lists_rejected_candidates() -> None:
    rejected = LocatorCandidate(
        kind="getByRole",
        value="button:Login",
        code="page.get_by_role('button', name='Login', exact=True)",
        validation=LocatorValidation(unique=False, error="Multiple elements found: 2"),
    )
    accepted = LocatorCandidate(
        kind="getByTestId",
        value="login-btn",
        code="page.get_by_test_id('login-btn')",
        validation=LocatorValidation(unique=True, visible=True),
    )
    summary = get_validation_failure_summary([rejected, accepted])
    assert summary == "getByRole(button:Login): not unique, Multiple elements found: 2"
