from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Callable

from .models import ElementFingerprint, LocatorCandidate, LocatorKind

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle

_CSS_SAFE_ID_PATTERN = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")
_ROLE_TOKEN_PATTERN = re.compile(r"^[a-z][a-z-]*$")
_CSS_ATTR_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_:.-]*$")


def is_css_safe_id(value: str) -> bool:
    return bool(_CSS_SAFE_ID_PATTERN.fullmatch(value.strip()))


def escape_css_attribute_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def css_attribute_selector(attr: str, value: str) -> str:
    return f'[{attr}="{escape_css_attribute_value(value)}"]'


def parse_role_value(value: str) -> tuple[str, str | None]:
    role, sep, name = value.partition(":")
    return role.strip(), (name if sep and name else None)


def parse_attr_value(value: str) -> tuple[str, str] | None:
    attr, sep, attr_value = value.partition("=")
    attr = attr.strip()
    if not sep or not attr or not attr_value or not _CSS_ATTR_NAME_PATTERN.fullmatch(attr):
        return None
    return attr, attr_value


def _literal(value: str) -> str:
    return repr(value)


def build_candidate_code(kind: LocatorKind, value: str) -> str:
    """Renders the Playwright expression (Python binding) for one candidate."""
    if kind == "getByTestId":
        return f"page.get_by_test_id({_literal(value)})"
    if kind == "getByRole":
        role, name = parse_role_value(value)
        if name is None:
            return f"page.get_by_role({_literal(role)})"
        return f"page.get_by_role({_literal(role)}, name={_literal(name)}, exact=True)"
    if kind == "getByLabel":
        return f"page.get_by_label({_literal(value)}, exact=True)"
    if kind == "getByPlaceholder":
        return f"page.get_by_placeholder({_literal(value)}, exact=True)"
    if kind == "cssId":
        return f"page.locator({_literal('#' + value)})"
    if kind == "cssAttr":
        parsed = parse_attr_value(value)
        if parsed is None:
            raise ValueError(f"Malformed attribute value: {value!r}")
        return f"page.locator({_literal(css_attribute_selector(*parsed))})"
    if kind == "text":
        return f"page.get_by_text({_literal(value)}, exact=True)"
    raise ValueError(f"Unknown locator kind: {kind!r}")


def _test_id_value(fp: ElementFingerprint) -> str | None:
    return fp.test_id


def _role_value(fp: ElementFingerprint) -> str | None:
    role = (fp.role or "").strip().lower()
    if not role or not _ROLE_TOKEN_PATTERN.fullmatch(role):
        return None
    if fp.accessible_name:
        return f"{role}:{fp.accessible_name}"
    return role


def _label_value(fp: ElementFingerprint) -> str | None:
    return fp.aria_label


def _placeholder_value(fp: ElementFingerprint) -> str | None:
    return fp.placeholder


def _css_id_value(fp: ElementFingerprint) -> str | None:
    if fp.id and is_css_safe_id(fp.id):
        return fp.id.strip()
    return None


def _css_attr_value(fp: ElementFingerprint) -> str | None:
    if fp.name_attr:
        return f"name={fp.name_attr}"
    # Ids that cannot be written as #id are still addressable as an attribute.
    if fp.id and not is_css_safe_id(fp.id):
        return f"id={fp.id}"
    return None


def _text_value(fp: ElementFingerprint) -> str | None:
    return fp.text_snippet


_STRATEGIES: tuple[tuple[LocatorKind, Callable[[ElementFingerprint], str | None]], ...] = (
    ("getByTestId", _test_id_value),
    ("getByRole", _role_value),
    ("getByLabel", _label_value),
    ("getByPlaceholder", _placeholder_value),
    ("cssId", _css_id_value),
    ("cssAttr", _css_attr_value),
    ("text", _text_value),
)


def generate_candidates(
    fingerprint: ElementFingerprint,
    element: ElementHandle | Any | None = None,
) -> list[LocatorCandidate]:
    """Returns one candidate per populated source field, most stable first.

    ``element`` is accepted so callers can pass the handle they already hold;
    every value is derived from the fingerprint alone.
    """
    candidates: list[LocatorCandidate] = []
    for kind, source in _STRATEGIES:
        value = source(fingerprint)
        if not value:
            continue
        candidates.append(LocatorCandidate(kind=kind, value=value, code=build_candidate_code(kind, value)))
    return candidates
