from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Mapping, get_args

LocatorKind = Literal[
    "getByTestId",
    "getByRole",
    "getByLabel",
    "getByPlaceholder",
    "cssId",
    "cssAttr",
    "text",
]

LOCATOR_KIND_PRIORITY: tuple[LocatorKind, ...] = get_args(LocatorKind)

IRToolName = Literal[
    "navigate",
    "click",
    "fill",
    "select_option",
    "scroll",
    "wait",
    "assertTextPresent",
    "assertElementVisible",
]

IR_TOOL_NAMES: frozenset[str] = frozenset(get_args(IRToolName))

ActionType = Literal["click", "fill", "select_option", "assertElementVisible"]

ELEMENT_TARGETING_TOOLS: frozenset[str] = frozenset(get_args(ActionType))

StepKind = Literal["action", "assertion"]


class RecordFormatError(ValueError):
    """Raised when a stored payload does not describe a valid record."""


def is_element_targeting_tool(tool_name: str) -> bool:
    return tool_name in ELEMENT_TARGETING_TOOLS


_FINGERPRINT_WIRE_KEYS = {
    "tag_name": "tagName",
    "role": "role",
    "accessible_name": "accessibleName",
    "id": "id",
    "name_attr": "nameAttr",
    "type_attr": "typeAttr",
    "placeholder": "placeholder",
    "aria_label": "ariaLabel",
    "test_id": "testId",
    "text_snippet": "textSnippet",
}


@dataclass(frozen=True, slots=True)
class ElementFingerprint:
    tag_name: str | None = None
    role: str | None = None
    accessible_name: str | None = None
    id: str | None = None
    name_attr: str | None = None
    type_attr: str | None = None
    placeholder: str | None = None
    aria_label: str | None = None
    test_id: str | None = None
    text_snippet: str | None = None

    def to_dict(self) -> dict[str, str]:
        payload: dict[str, str] = {}
        for attr, key in _FINGERPRINT_WIRE_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                payload[key] = value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ElementFingerprint:
        if not isinstance(payload, Mapping):
            raise RecordFormatError("fingerprint must be an object")
        values: dict[str, str | None] = {}
        for attr, key in _FINGERPRINT_WIRE_KEYS.items():
            raw = payload.get(key)
            values[attr] = raw if isinstance(raw, str) and raw else None
        return cls(**values)


@dataclass(slots=True)
class LocatorValidation:
    unique: bool = False
    visible: bool | None = None
    enabled: bool | None = None
    editable: bool | None = None
    fingerprint_match: bool | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"unique": self.unique}
        if self.visible is not None:
            payload["visible"] = self.visible
        if self.enabled is not None:
            payload["enabled"] = self.enabled
        if self.editable is not None:
            payload["editable"] = self.editable
        if self.fingerprint_match is not None:
            payload["fingerprintMatch"] = self.fingerprint_match
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> LocatorValidation:
        data = payload if isinstance(payload, Mapping) else {}

        def _flag(key: str) -> bool | None:
            value = data.get(key)
            return value if isinstance(value, bool) else None

        error = data.get("error")
        return cls(
            unique=data.get("unique") is True,
            visible=_flag("visible"),
            enabled=_flag("enabled"),
            editable=_flag("editable"),
            fingerprint_match=_flag("fingerprintMatch"),
            error=str(error) if error is not None else None,
        )


@dataclass(slots=True)
class LocatorCandidate:
    kind: LocatorKind
    value: str
    code: str
    validation: LocatorValidation = field(default_factory=LocatorValidation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "value": self.value,
            "code": self.code,
            "validation": self.validation.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> LocatorCandidate:
        if not isinstance(payload, Mapping):
            raise RecordFormatError("locator candidate must be an object")
        kind = payload.get("kind")
        if kind not in LOCATOR_KIND_PRIORITY:
            raise RecordFormatError(f"unknown locator kind: {kind!r}")
        return cls(
            kind=kind,
            value=str(payload.get("value") or ""),
            code=str(payload.get("code") or ""),
            validation=LocatorValidation.from_dict(payload.get("validation")),
        )


def is_usable_candidate(candidate: LocatorCandidate, action_type: str | None = None) -> bool:
    validation = candidate.validation
    if not candidate.code.strip():
        return False
    if validation.unique is not True:
        return False
    if validation.visible is False:
        return False
    if validation.fingerprint_match is False:
        return False
    if action_type == "click" and validation.enabled is False:
        return False
    if action_type == "fill" and validation.editable is False:
        return False
    return True


@dataclass(slots=True)
class ElementRecord:
    fingerprint: ElementFingerprint
    locator_candidates: list[LocatorCandidate] = field(default_factory=list)
    chosen_locator: LocatorCandidate | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fingerprint": self.fingerprint.to_dict(),
            "locatorCandidates": [candidate.to_dict() for candidate in self.locator_candidates],
        }
        if self.chosen_locator is not None:
            payload["chosenLocator"] = self.chosen_locator.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ElementRecord:
        if not isinstance(payload, Mapping):
            raise RecordFormatError("element must be an object")
        raw_candidates = payload.get("locatorCandidates") or []
        if not isinstance(raw_candidates, list):
            raise RecordFormatError("locatorCandidates must be a list")
        chosen_raw = payload.get("chosenLocator")
        return cls(
            fingerprint=ElementFingerprint.from_dict(payload.get("fingerprint") or {}),
            locator_candidates=[LocatorCandidate.from_dict(item) for item in raw_candidates],
            chosen_locator=LocatorCandidate.from_dict(chosen_raw) if chosen_raw is not None else None,
        )


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    ok: bool
    error_code: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": self.ok}
        if self.error_code is not None:
            payload["errorCode"] = self.error_code
        if self.error_message is not None:
            payload["errorMessage"] = self.error_message
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ActionOutcome:
        if not isinstance(payload, Mapping) or not isinstance(payload.get("ok"), bool):
            raise RecordFormatError("outcome.ok must be a boolean")
        code = payload.get("errorCode")
        message = payload.get("errorMessage")
        return cls(
            ok=payload["ok"],
            error_code=str(code) if code is not None else None,
            error_message=str(message) if message is not None else None,
        )


@dataclass(frozen=True, slots=True)
class ActionRecord:
    run_id: str
    spec_path: str
    step_index: int | None
    tool_name: IRToolName
    tool_input: dict[str, Any]
    outcome: ActionOutcome
    timestamp: int
    step_text: str | None = None
    page_url: str | None = None
    element: ElementRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "runId": self.run_id,
            "specPath": self.spec_path,
            "stepIndex": self.step_index,
        }
        if self.step_text is not None:
            payload["stepText"] = self.step_text
        payload["toolName"] = self.tool_name
        payload["toolInput"] = dict(self.tool_input)
        payload["outcome"] = self.outcome.to_dict()
        if self.page_url is not None:
            payload["pageUrl"] = self.page_url
        if self.element is not None:
            payload["element"] = self.element.to_dict()
        payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ActionRecord:
        if not isinstance(payload, Mapping):
            raise RecordFormatError("record must be an object")

        run_id = payload.get("runId")
        spec_path = payload.get("specPath")
        tool_name = payload.get("toolName")
        if not isinstance(run_id, str) or not isinstance(spec_path, str):
            raise RecordFormatError("runId and specPath must be strings")
        if tool_name not in IR_TOOL_NAMES:
            raise RecordFormatError(f"unknown toolName: {tool_name!r}")

        step_index = payload.get("stepIndex")
        if step_index is not None and (isinstance(step_index, bool) or not isinstance(step_index, int)):
            raise RecordFormatError("stepIndex must be an integer or null")

        tool_input = payload.get("toolInput") or {}
        if not isinstance(tool_input, Mapping):
            raise RecordFormatError("toolInput must be an object")

        timestamp = payload.get("timestamp", 0)
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise RecordFormatError("timestamp must be a number")

        element_raw = payload.get("element")
        step_text = payload.get("stepText")
        page_url = payload.get("pageUrl")
        return cls(
            run_id=run_id,
            spec_path=spec_path,
            step_index=step_index,
            tool_name=tool_name,
            tool_input=dict(tool_input),
            outcome=ActionOutcome.from_dict(payload.get("outcome")),
            timestamp=int(timestamp),
            step_text=step_text if isinstance(step_text, str) else None,
            page_url=page_url if isinstance(page_url, str) else None,
            element=ElementRecord.from_dict(element_raw) if element_raw is not None else None,
        )


@dataclass(frozen=True, slots=True)
class AuthoredStep:
    index: int
    text: str
    kind: StepKind = "action"


@dataclass(frozen=True, slots=True)
class AuthoredSpec:
    steps: tuple[AuthoredStep, ...]
    preconditions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ExportSuccess:
    export_path: Path
    relative_path: str
    ok: Literal[True] = True


@dataclass(frozen=True, slots=True)
class ExportFailure:
    reason: str
    missing_locators: tuple[str, ...] = ()
    ok: Literal[False] = False


ExportResult = ExportSuccess | ExportFailure


def fingerprint_field_names() -> tuple[str, ...]:
    return tuple(item.name for item in fields(ElementFingerprint))
