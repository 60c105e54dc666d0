"""
Resilient parser: completion text -> ``AnalysisDraft``.

Order of attempts:
1. Strict JSON on the whole text. Success returns immediately.
2. Whole-object recovery (lenient grammar, then syntax repair) on the
   first brace-balanced object in the text.
3. Per-field extraction: each known key is located in the raw text and its
   value recovered on its own, so one broken field cannot sink the others.

Array fields that arrive as strings (even after a strict parse) go through
the three-stage array chain in ``json_recovery``. ``parse_analysis_text``
never raises; failures come back as diagnostics next to a partial draft.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .json_recovery import balanced_slice, parse_strict, recover_array, recover_object

logger = logging.getLogger(__name__)

OBJECT_FIELDS = ("sentiment", "intent", "priority")
# wire key -> draft attribute
ARRAY_FIELDS = {
    "entities": "entities",
    "deliverables": "deliverables",
    "actionItems": "action_items",
}

_LOG_TEXT_LIMIT = 2000


@dataclass
class AnalysisDraft:
    """
    Loosely-typed parse result. Any field may be missing (None).

    ``source`` tags how the draft was obtained: ``strict``, ``recovered``
    (whole object repaired), ``extracted`` (field by field) or ``empty``.
    Nothing downstream may rely on its shape before the validator runs.
    """

    source: str = "empty"
    sentiment: Optional[Dict[str, Any]] = None
    intent: Optional[Dict[str, Any]] = None
    priority: Optional[Dict[str, Any]] = None
    entities: Optional[List[Dict[str, Any]]] = None
    deliverables: Optional[List[Dict[str, Any]]] = None
    action_items: Optional[List[Dict[str, Any]]] = None

    @classmethod
    def empty(cls) -> "AnalysisDraft":
        return cls()


@dataclass
class ParseDiagnostic:
    """One unrecoverable field (``*`` for the whole text) kept for offline review."""

    field: str
    text: str
    reasons: List[str]


@dataclass
class ParseOutcome:
    draft: AnalysisDraft
    diagnostics: List[ParseDiagnostic] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.diagnostics


def parse_analysis_text(text: Optional[str]) -> ParseOutcome:
    """Convert stripped completion text into a draft. Never raises."""
    try:
        return _parse(text or "")
    except Exception:
        logger.exception("[PARSER] Unexpected failure while parsing completion text")
        diagnostic = ParseDiagnostic(field="*", text=text or "", reasons=["unexpected parser failure"])
        return ParseOutcome(AnalysisDraft.empty(), [diagnostic])


def _parse(text: str) -> ParseOutcome:
    text = text.strip()
    if not text:
        diagnostic = ParseDiagnostic(field="*", text="", reasons=["empty completion text"])
        _log_failure(diagnostic)
        return ParseOutcome(AnalysisDraft.empty(), [diagnostic])

    data, error = parse_strict(text)
    if error is None and isinstance(data, dict):
        return _build_draft(data, source="strict")

    reasons = [error or "strict: top-level value is not an object"]
    start = text.find("{")
    if start != -1:
        recovered, chain_reasons = recover_object(balanced_slice(text, start))
        if recovered is not None:
            logger.debug("[PARSER] Recovered top-level object after strict parse failed")
            return _build_draft(recovered, source="recovered")
        reasons.extend(chain_reasons)

    return _extract_fields(text, reasons)


def _build_draft(data: Dict[str, Any], source: str) -> ParseOutcome:
    draft = AnalysisDraft(source=source)
    diagnostics: List[ParseDiagnostic] = []
    for key in OBJECT_FIELDS:
        setattr(draft, key, _coerce_object_field(key, data.get(key), diagnostics))
    for key, attr in ARRAY_FIELDS.items():
        setattr(draft, attr, _coerce_array_field(key, data.get(key), diagnostics))
    return ParseOutcome(draft, diagnostics)


def _extract_fields(text: str, top_level_reasons: List[str]) -> ParseOutcome:
    draft = AnalysisDraft(source="extracted")
    diagnostics: List[ParseDiagnostic] = []
    found = False
    for key in OBJECT_FIELDS:
        raw = _field_raw_text(text, key)
        if raw is not None:
            found = True
            setattr(draft, key, _coerce_object_field(key, raw, diagnostics))
    for key, attr in ARRAY_FIELDS.items():
        raw = _field_raw_text(text, key)
        if raw is not None:
            found = True
            setattr(draft, attr, _coerce_array_field(key, raw, diagnostics))

    if not found:
        diagnostic = ParseDiagnostic(field="*", text=text, reasons=top_level_reasons)
        _log_failure(diagnostic)
        diagnostics.append(diagnostic)
        draft = AnalysisDraft.empty()
    return ParseOutcome(draft, diagnostics)


def _coerce_object_field(
    key: str,
    value: Any,
    diagnostics: List[ParseDiagnostic],
) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        recovered, reasons = recover_object(value)
        if recovered is not None:
            return recovered
        _record(diagnostics, ParseDiagnostic(field=key, text=value, reasons=reasons))
        return None
    _record(
        diagnostics,
        ParseDiagnostic(field=key, text=repr(value), reasons=[f"unexpected type {type(value).__name__}"]),
    )
    return None


def _coerce_array_field(
    key: str,
    value: Any,
    diagnostics: List[ParseDiagnostic],
) -> Optional[List[Dict[str, Any]]]:
    if value is None:
        return None
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    if isinstance(value, dict):
        return [value]
    if isinstance(value, str):
        items, reasons = recover_array(value)
        if items is not None:
            return items
        _record(diagnostics, ParseDiagnostic(field=key, text=value, reasons=reasons))
        return []
    _record(
        diagnostics,
        ParseDiagnostic(field=key, text=repr(value), reasons=[f"unexpected type {type(value).__name__}"]),
    )
    return []


def _field_raw_text(text: str, key: str) -> Optional[str]:
    """
    Locate ``key: <value>`` in raw text and return the value's source text.

    Bracketed values are cut at their matching closer; quoted values are
    unquoted; anything else runs to the next comma, brace or newline.
    Occurrences inside another string value are skipped.
    """
    pattern = re.compile(r"""(["']?)\b%s\b(["']?)\s*:\s*""" % re.escape(key))
    match = next((m for m in pattern.finditer(text) if _is_key_position(text, m)), None)
    if not match:
        return None
    start = match.end()
    if start >= len(text):
        return ""
    opener = text[start]
    if opener in "[{":
        return balanced_slice(text, start)
    if opener in "\"'":
        return _quoted_value(text, start)
    end = start
    while end < len(text) and text[end] not in ",}\n":
        end += 1
    return text[start:end].strip()


def _is_key_position(text: str, match: re.Match) -> bool:
    key_start = match.start() + len(match.group(1))
    quote_start = _open_quote_before(text, key_start)
    if quote_start is None:
        return not match.group(1)
    # A quoted key: its own quote opens right before it and closes right after.
    return quote_start == match.start() and match.group(2) == match.group(1)


def _open_quote_before(text: str, index: int) -> Optional[int]:
    """Index of the quote that opens the string containing ``index``, if any."""
    quote: Optional[str] = None
    quote_start: Optional[int] = None
    escaped = False
    for position in range(index):
        ch = text[position]
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
                quote_start = None
            continue
        if ch in ("\"", "'"):
            quote = ch
            quote_start = position
    return quote_start


def _quoted_value(text: str, start: int) -> str:
    quote = text[start]
    escaped = False
    for index in range(start + 1, len(text)):
        ch = text[index]
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == quote:
            literal = text[start:index + 1]
            if quote == "\"":
                try:
                    return json.loads(literal)
                except ValueError:
                    pass
            return literal[1:-1]
    return text[start + 1:]


def _record(diagnostics: List[ParseDiagnostic], diagnostic: ParseDiagnostic) -> None:
    _log_failure(diagnostic)
    diagnostics.append(diagnostic)


def _log_failure(diagnostic: ParseDiagnostic) -> None:
    logger.warning(
        "[PARSER] Could not recover field '%s'; reasons=%s text=%r",
        diagnostic.field,
        diagnostic.reasons,
        diagnostic.text[:_LOG_TEXT_LIMIT],
    )
