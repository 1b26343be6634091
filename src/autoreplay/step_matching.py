from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
import re
from typing import Callable, Literal, Sequence

from .models import ActionRecord, AuthoredStep

MatchStrategy = Literal["step_index", "intent", "none"]
StepIntent = Literal["navigate", "fill", "click", "select"]

ASSERTION_TOOLS = frozenset({"assertTextPresent", "assertElementVisible"})

INTENT_TOOLS: dict[StepIntent, str] = {
    "navigate": "navigate",
    "fill": "fill",
    "click": "click",
    "select": "select_option",
}

_QUOTE_PAIRS = {'"': '"', "'": "'", "`": "`", "“": "”", "‘": "’"}


@dataclass(frozen=True, slots=True)
class FillStep:
    target: str
    value: str


@dataclass(frozen=True, slots=True)
class SelectStep:
    target: str
    label: str


@dataclass(frozen=True, slots=True)
class StepMatch:
    step_index: int
    record: ActionRecord | None
    strategy: MatchStrategy
    reason: str = ""


def strip_quotes(value: str) -> str:
    text = value.strip()
    if len(text) >= 2 and _QUOTE_PAIRS.get(text[0]) == text[-1]:
        return text[1:-1]
    return text


_NAVIGATE_PATTERNS = (
    re.compile(r"^(?:navigate\s+to|go\s+to)\s+(\S+)", re.IGNORECASE),
    re.compile(r"^(?:导航到|访问)\s*(\S+)"),
)

_NAVIGATE_TARGET_PATTERN = re.compile(r"^(?:https?://|/|\./|\?|#)", re.IGNORECASE)

_FILL_PATTERNS = (
    re.compile(r"""^fill\s+(?:in\s+)?(?:the\s+)?["']?([^"']+?)["']?\s+(?:field\s+|input\s+)?with\s+(.+)$""", re.IGNORECASE),
    re.compile(r"""^在\s*["']?([^"']+?)["']?\s*(?:字段|输入框)?(?:中)?输入\s*(.+)$"""),
)

_TYPE_PATTERN = re.compile(
    r"""^(?:type|enter|input)\s+(.+?)\s+(?:in|into)\s+(?:the\s+)?["']?([^"']+?)["']?(?:\s+(?:field|input|box))?$""",
    re.IGNORECASE,
)

_CLICK_PATTERNS = (
    re.compile(r"""^click\s+(?:on\s+)?(?:the\s+)?["']?([^"']+?)["']?\s*(?:button|link|element|icon|tab)?$""", re.IGNORECASE),
    re.compile(r"""^点击\s*["']?([^"']+?)["']?\s*(?:按钮|链接|元素|图标)?$"""),
)

_SELECT_PATTERNS = (
    re.compile(r"""^select\s+["']?([^"']+?)["']?\s+(?:from|in)\s+(?:the\s+)?["']?([^"']+?)["']?(?:\s+(?:dropdown|select|list))?$""", re.IGNORECASE),
    re.compile(r"""^选择\s*["']?([^"']+?)["']?\s*(?:从|在)\s*["']?([^"']+?)["']?$"""),
)


def _navigate_phrase(text: str) -> str | None:
    stripped = text.strip()
    for pattern in _NAVIGATE_PATTERNS:
        match = pattern.match(stripped)
        if match:
            return strip_quotes(match.group(1).rstrip(".,;")) or None
    return None


def parse_navigate_step(text: str) -> str | None:
    """Target URL or path named by the step; prose like "the login page" is not a target."""
    target = _navigate_phrase(text)
    if target and _NAVIGATE_TARGET_PATTERN.match(target):
        return target
    return None


def parse_fill_step(text: str) -> FillStep | None:
    stripped = text.strip()
    for pattern in _FILL_PATTERNS:
        match = pattern.match(stripped)
        if match:
            value = strip_quotes(match.group(2))
            if value:
                return FillStep(target=match.group(1).strip(), value=value)
    match = _TYPE_PATTERN.match(stripped)
    if match:
        value = strip_quotes(match.group(1))
        if value:
            return FillStep(target=match.group(2).strip(), value=value)
    return None


def parse_click_step(text: str) -> str | None:
    stripped = text.strip()
    for pattern in _CLICK_PATTERNS:
        match = pattern.match(stripped)
        if match:
            return match.group(1).strip() or None
    return None


def parse_select_step(text: str) -> SelectStep | None:
    stripped = text.strip()
    for pattern in _SELECT_PATTERNS:
        match = pattern.match(stripped)
        if match:
            return SelectStep(target=match.group(2).strip(), label=match.group(1).strip())
    return None


_INTENT_PREDICATES: tuple[tuple[StepIntent, Callable[[str], object]], ...] = (
    ("navigate", _navigate_phrase),
    ("fill", parse_fill_step),
    ("click", parse_click_step),
    ("select", parse_select_step),
)


def matching_intents(text: str) -> tuple[StepIntent, ...]:
    return tuple(intent for intent, predicate in _INTENT_PREDICATES if predicate(text) is not None)


def detect_step_intent(text: str) -> StepIntent | None:
    """Single intent claimed by exactly one predicate; ambiguity yields None."""
    intents = matching_intents(text)
    return intents[0] if len(intents) == 1 else None


def _action_records_for_index(step: AuthoredStep, records: Sequence[ActionRecord]) -> list[ActionRecord]:
    return [
        record
        for record in records
        if record.step_index == step.index and record.outcome.ok and record.tool_name not in ASSERTION_TOOLS
    ]


def match_by_step_index(step: AuthoredStep, records: Sequence[ActionRecord]) -> StepMatch:
    found = _action_records_for_index(step, records)
    if not found:
        return StepMatch(step.index, None, "none", f"no successful record for step {step.index}")

    intent = detect_step_intent(step.text)
    if intent is not None:
        for record in found:
            if record.tool_name == INTENT_TOOLS[intent]:
                return StepMatch(step.index, record, "step_index")
    return StepMatch(step.index, found[0], "step_index")


def match_by_intent(steps: Sequence[AuthoredStep], records: Sequence[ActionRecord]) -> dict[int, StepMatch]:
    """Pairs steps with records by tool kind and order when no step index was captured.

    Order alone is only trusted when a tool has exactly as many successful
    records as steps asking for it; any surplus or shortfall refuses every step
    of that tool. A record is never handed to two steps.
    """
    action_steps = sorted((step for step in steps if step.kind == "action"), key=lambda item: item.index)
    step_tools: dict[int, str] = {}
    matches: dict[int, StepMatch] = {}
    for step in action_steps:
        intents = matching_intents(step.text)
        if len(intents) != 1:
            reason = "ambiguous step intent" if intents else "unrecognized step intent"
            matches[step.index] = StepMatch(step.index, None, "none", reason)
            continue
        step_tools[step.index] = INTENT_TOOLS[intents[0]]

    steps_per_tool = Counter(step_tools.values())
    records_per_tool = Counter(record.tool_name for record in records if record.outcome.ok)

    claimed: set[int] = set()
    for step in action_steps:
        tool = step_tools.get(step.index)
        if tool is None:
            continue
        if steps_per_tool[tool] != records_per_tool[tool]:
            reason = (
                f"{steps_per_tool[tool]} {tool} step(s) but {records_per_tool[tool]} "
                f"successful {tool} record(s) without step indexes"
            )
            matches[step.index] = StepMatch(step.index, None, "none", reason)
            continue

        position = next(
            (
                position
                for position, record in enumerate(records)
                if position not in claimed and record.tool_name == tool and record.outcome.ok
            ),
            None,
        )
        if position is None:
            matches[step.index] = StepMatch(step.index, None, "none", f"no unclaimed {tool} record")
            continue
        claimed.add(position)
        matches[step.index] = StepMatch(step.index, records[position], "intent")
    return matches


def uses_step_indexes(records: Sequence[ActionRecord]) -> bool:
    return any(record.step_index is not None for record in records)


def match_steps(steps: Sequence[AuthoredStep], records: Sequence[ActionRecord]) -> dict[int, StepMatch]:
    if not uses_step_indexes(records):
        return match_by_intent(steps, records)
    return {step.index: match_by_step_index(step, records) for step in steps if step.kind == "action"}


def assertion_records_for_step(step: AuthoredStep, records: Sequence[ActionRecord]) -> list[ActionRecord]:
    return [
        record
        for record in records
        if record.step_index == step.index and record.outcome.ok and record.tool_name in ASSERTION_TOOLS
    ]
