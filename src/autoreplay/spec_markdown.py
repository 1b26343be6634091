from __future__ import annotations

from pathlib import Path
import re

from .models import AuthoredSpec, AuthoredStep, StepKind

_HEADING_PATTERN = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$")
_ORDERED_ITEM_PATTERN = re.compile(r"^\s*\d+[.)]\s+(.+?)\s*$")
_BULLET_ITEM_PATTERN = re.compile(r"^\s*[-*+]\s+(.+?)\s*$")
_CONTINUATION_PATTERN = re.compile(r"^\s{2,}\S")

_ASSERTION_PREFIXES = ("verify", "assert", "check", "expect", "ensure")
_ASSERTION_PREFIXES_ZH = ("验证", "断言", "检查", "确认")

_SECTION_ALIASES = {
    "preconditions": "preconditions",
    "precondition": "preconditions",
    "前置条件": "preconditions",
    "steps": "steps",
    "步骤": "steps",
}


def classify_step(text: str) -> StepKind:
    stripped = text.strip()
    lowered = stripped.lower()
    if any(re.match(rf"{prefix}\b", lowered) for prefix in _ASSERTION_PREFIXES):
        return "assertion"
    if stripped.startswith(_ASSERTION_PREFIXES_ZH):
        return "assertion"
    return "action"


def _section_name(heading: str) -> str | None:
    key = heading.strip().lower().rstrip(":：")
    return _SECTION_ALIASES.get(key)


def parse_markdown_spec(text: str) -> AuthoredSpec:
    """Parses the ``## Preconditions`` and ``## Steps`` sections of a test spec.

    Steps are numbered 1..n in document order regardless of the numbers the
    author typed. Indented lines continue the previous step.
    """
    section: str | None = None
    preconditions: list[str] = []
    step_texts: list[str] = []

    for line in text.splitlines():
        heading = _HEADING_PATTERN.match(line)
        if heading:
            section = _section_name(heading.group(1))
            continue

        if section == "steps":
            item = _ORDERED_ITEM_PATTERN.match(line)
            if item:
                step_texts.append(item.group(1))
            elif step_texts and _CONTINUATION_PATTERN.match(line) and not _BULLET_ITEM_PATTERN.match(line):
                step_texts[-1] = f"{step_texts[-1]} {line.strip()}"
        elif section == "preconditions":
            item = _BULLET_ITEM_PATTERN.match(line) or _ORDERED_ITEM_PATTERN.match(line)
            if item:
                preconditions.append(item.group(1))

    steps = tuple(
        AuthoredStep(index=position, text=step_text, kind=classify_step(step_text))
        for position, step_text in enumerate(step_texts, start=1)
    )
    return AuthoredSpec(steps=steps, preconditions=tuple(preconditions))


def load_markdown_spec(path: Path | str) -> AuthoredSpec:
    return parse_markdown_spec(Path(path).read_text(encoding="utf-8"))
