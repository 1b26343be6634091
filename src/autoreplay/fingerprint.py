from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Mapping

from playwright.async_api import Error as PlaywrightError

from .models import ElementFingerprint, fingerprint_field_names

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle

EXTRACTION_FAILED = "EXTRACTION_FAILED"
TEXT_SNIPPET_LIMIT = 100

_FINGERPRINT_SCRIPT = """
(el, textLimit) => {
  const read = (fn) => {
    try {
      const value = fn();
      if (value === null || value === undefined) return null;
      const text = String(value).trim().replace(/\\s+/g, ' ');
      return text || null;
    } catch (err) {
      return null;
    }
  };
  const textOf = (node) => (node && (node.innerText || node.textContent)) || '';

  const tag = read(() => el.tagName.toLowerCase());

  const implicitRole = () => {
    const inputType = (el.getAttribute('type') || 'text').toLowerCase();
    switch (tag) {
      case 'button': return 'button';
      case 'a': return el.hasAttribute('href') ? 'link' : null;
      case 'select': return el.multiple || el.size > 1 ? 'listbox' : 'combobox';
      case 'textarea': return 'textbox';
      case 'img': return el.getAttribute('alt') === '' ? 'presentation' : 'img';
      case 'h1': case 'h2': case 'h3': case 'h4': case 'h5': case 'h6': return 'heading';
      case 'ul': case 'ol': return 'list';
      case 'li': return 'listitem';
      case 'nav': return 'navigation';
      case 'form': return 'form';
      case 'table': return 'table';
      case 'dialog': return 'dialog';
      case 'option': return 'option';
      case 'input':
        if (['button', 'submit', 'reset', 'image'].includes(inputType)) return 'button';
        if (inputType === 'checkbox') return 'checkbox';
        if (inputType === 'radio') return 'radio';
        if (inputType === 'range') return 'slider';
        if (inputType === 'number') return 'spinbutton';
        if (inputType === 'search') return 'searchbox';
        if (['text', 'email', 'password', 'url', 'tel'].includes(inputType)) return 'textbox';
        return null;
      default: return null;
    }
  };

  const role = read(() => el.getAttribute('role')) || read(implicitRole);

  const accessibleName = () => {
    const labelledBy = (el.getAttribute('aria-labelledby') || '').trim();
    if (labelledBy) {
      const joined = labelledBy
        .split(/\\s+/)
        .map((id) => document.getElementById(id))
        .filter(Boolean)
        .map((node) => textOf(node).trim())
        .filter(Boolean)
        .join(' ');
      if (joined) return joined;
    }
    const ariaLabel = el.getAttribute('aria-label');
    if (ariaLabel && ariaLabel.trim()) return ariaLabel;
    if (el.labels && el.labels.length) {
      const labelText = textOf(el.labels[0]).trim();
      if (labelText) return labelText;
    }
    const alt = el.getAttribute('alt');
    if (alt && alt.trim()) return alt;
    if (tag === 'input') {
      const inputType = (el.getAttribute('type') || '').toLowerCase();
      if (['button', 'submit', 'reset'].includes(inputType)) return el.value || null;
      return el.getAttribute('title') || null;
    }
    if (['select', 'textarea'].includes(tag)) return el.getAttribute('title') || null;
    const text = textOf(el).trim();
    if (text) return text;
    return el.getAttribute('title') || null;
  };

  const testId = () => {
    for (const attr of ['data-testid', 'data-test', 'data-qa', 'data-cy']) {
      const value = el.getAttribute(attr);
      if (value && value.trim()) return value;
    }
    return null;
  };

  const snippet = read(() => textOf(el));

  return {
    tagName: tag,
    role,
    accessibleName: read(accessibleName),
    id: read(() => el.id),
    nameAttr: read(() => el.getAttribute('name')),
    typeAttr: read(() => el.getAttribute('type')),
    placeholder: read(() => el.getAttribute('placeholder')),
    ariaLabel: read(() => el.getAttribute('aria-label')),
    testId: read(testId),
    textSnippet: snippet ? snippet.slice(0, textLimit) : null,
  };
}
"""


class FingerprintExtractionError(RuntimeError):
    code = EXTRACTION_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def _clean(value: Any, limit: int | None = None) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    if not text:
        return None
    return text[:limit] if limit else text


def fingerprint_from_payload(payload: Mapping[str, Any], text_limit: int = TEXT_SNIPPET_LIMIT) -> ElementFingerprint:
    """Builds a fingerprint from the page-script payload.

    Unknown or empty values become ``None``; absence means "unknown".
    """
    return ElementFingerprint(
        tag_name=(_clean(payload.get("tagName")) or "").lower() or None,
        role=_clean(payload.get("role")),
        accessible_name=_clean(payload.get("accessibleName")),
        id=_clean(payload.get("id")),
        name_attr=_clean(payload.get("nameAttr")),
        type_attr=_clean(payload.get("typeAttr")),
        placeholder=_clean(payload.get("placeholder")),
        aria_label=_clean(payload.get("ariaLabel")),
        test_id=_clean(payload.get("testId")),
        text_snippet=_clean(payload.get("textSnippet"), limit=text_limit),
    )


async def extract_fingerprint(
    element: ElementHandle,
    text_limit: int = TEXT_SNIPPET_LIMIT,
) -> ElementFingerprint:
    """Reads the already-rendered attributes of ``element`` without waiting.

    Raises :class:`FingerprintExtractionError` only when the handle itself is
    unusable (disposed, detached before the script ran, wrong node type).
    """
    try:
        payload = await element.evaluate(_FINGERPRINT_SCRIPT, text_limit)
    except PlaywrightError as exc:
        raise FingerprintExtractionError(f"Fingerprint extraction failed: {exc.message}") from exc
    if not isinstance(payload, Mapping):
        raise FingerprintExtractionError("Fingerprint extraction returned no element data")
    return fingerprint_from_payload(payload, text_limit=text_limit)


def populated_fields(fingerprint: ElementFingerprint) -> tuple[str, ...]:
    return tuple(name for name in fingerprint_field_names() if getattr(fingerprint, name) is not None)


def fingerprints_match(a: ElementFingerprint, b: ElementFingerprint) -> bool:
    for name in fingerprint_field_names():
        left = getattr(a, name)
        right = getattr(b, name)
        if left is None or right is None:
            continue
        if left != right:
            return False
    return True
