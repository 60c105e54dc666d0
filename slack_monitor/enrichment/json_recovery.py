"""
Recovery strategies for near-JSON emitted by the completion service.

Handles the usual ways model output misses strict JSON:
- Unquoted keys
- Single-quoted strings
- Trailing commas
- Newlines/whitespace noise
- One malformed item poisoning an otherwise good array

Every strategy takes raw text and returns ``(value, error)``: on success
``error`` is None, on failure ``value`` is None and ``error`` says why.
Strategies are composed first-success-wins by ``run_chain``.
"""

import json
import re
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import json5

logger = logging.getLogger(__name__)

StrategyResult = Tuple[Optional[Any], Optional[str]]
Strategy = Callable[[str], StrategyResult]

_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_WHITESPACE_RE = re.compile(r"\s+")
_FRAGMENT_RE = re.compile(r"\{[^{}]+\}")


# ---------------------------------------------------------------------------
# Textual repairs
# ---------------------------------------------------------------------------
def quote_bare_keys(text: str) -> str:
    """Quote identifier keys: ``{name: 1}`` -> ``{"name": 1}``."""
    return _BARE_KEY_RE.sub(r'\1"\2":', text)


def convert_single_quotes(text: str) -> str:
    """Convert single quotes to double quotes."""
    return text.replace("'", '"')


def collapse_whitespace(text: str) -> str:
    """Drop newlines and squeeze runs of whitespace to one space."""
    return _WHITESPACE_RE.sub(" ", text.replace("\r", "").replace("\n", "")).strip()


def remove_trailing_commas(text: str) -> str:
    """Remove commas directly before a closing brace or bracket."""
    return _TRAILING_COMMA_RE.sub(r"\1", text)


SYNTAX_REPAIRS: Tuple[Callable[[str], str], ...] = (
    quote_bare_keys,
    convert_single_quotes,
    collapse_whitespace,
    remove_trailing_commas,
)


def repair_syntax(text: str) -> str:
    """Apply every repair in ``SYNTAX_REPAIRS`` in order."""
    for repair in SYNTAX_REPAIRS:
        text = repair(text)
    return text


def repair_fragment(fragment: str) -> str:
    """Repairs applied to a single brace-delimited fragment."""
    return convert_single_quotes(quote_bare_keys(fragment))


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------
def parse_strict(text: str) -> StrategyResult:
    try:
        return json.loads(text), None
    except ValueError as exc:
        return None, f"strict: {exc}"


def parse_lenient(text: str) -> StrategyResult:
    """JSON5 grammar: unquoted keys, single quotes and trailing commas are legal."""
    try:
        return json5.loads(text), None
    except (ValueError, TypeError) as exc:
        return None, f"lenient: {exc}"


def parse_repaired(text: str) -> StrategyResult:
    try:
        return json.loads(repair_syntax(text)), None
    except ValueError as exc:
        return None, f"repair: {exc}"


def only_objects(items: Sequence[Any]) -> List[Dict[str, Any]]:
    """Keep structured entries; stray strings/numbers/nulls are dropped."""
    return [item for item in items if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# Array-valued field chain
# ---------------------------------------------------------------------------
def _array_body(text: str) -> str:
    body = text.strip()
    if body.startswith("[") and body.endswith("]"):
        body = body[1:-1]
    return body


def lenient_array(text: str) -> StrategyResult:
    """Stage 1: wrap in brackets and parse with the relaxed grammar."""
    value, error = parse_lenient(f"[{_array_body(text)}]")
    if error:
        return None, error
    if not isinstance(value, list):
        return None, "lenient: value is not an array"
    return value, None


def repaired_array(text: str) -> StrategyResult:
    """Stage 2: repair the syntax, then parse strictly."""
    try:
        value = json.loads(f"[{repair_syntax(_array_body(text))}]")
    except ValueError as exc:
        return None, f"repair: {exc}"
    if not isinstance(value, list):
        return None, "repair: value is not an array"
    return value, None


def _parse_fragment(fragment: str) -> Optional[Dict[str, Any]]:
    # Repairs rewrite quotes, so they only run once the raw text has failed.
    attempts = (
        lambda: parse_strict(fragment),
        lambda: parse_lenient(fragment),
        lambda: parse_strict(repair_fragment(fragment)),
    )
    for attempt in attempts:
        value, error = attempt()
        if error is None and isinstance(value, dict):
            return value
    return None


def fragment_array(text: str) -> StrategyResult:
    """
    Stage 3: parse each ``{...}`` fragment on its own.

    Fragments that still fail are discarded individually so one bad item
    cannot sink its well-formed siblings.
    """
    fragments = _FRAGMENT_RE.findall(_array_body(text))
    if not fragments:
        return None, "fragments: no brace-delimited fragments found"

    items: List[Dict[str, Any]] = []
    for fragment in fragments:
        value = _parse_fragment(fragment)
        if value is not None:
            items.append(value)
        else:
            logger.debug("[PARSER] Discarding unparseable fragment: %s", fragment)
    if not items:
        return None, f"fragments: none of {len(fragments)} fragments parsed"
    return items, None


ARRAY_RECOVERY_CHAIN: Tuple[Strategy, ...] = (lenient_array, repaired_array, fragment_array)


# ---------------------------------------------------------------------------
# Object-valued chain (whole completion or a single object field)
# ---------------------------------------------------------------------------
def lenient_object(text: str) -> StrategyResult:
    value, error = parse_lenient(text)
    if error:
        return None, error
    if not isinstance(value, dict):
        return None, "lenient: value is not an object"
    return value, None


def repaired_object(text: str) -> StrategyResult:
    value, error = parse_repaired(text)
    if error:
        return None, error
    if not isinstance(value, dict):
        return None, "repair: value is not an object"
    return value, None


OBJECT_RECOVERY_CHAIN: Tuple[Strategy, ...] = (lenient_object, repaired_object)


def run_chain(text: str, strategies: Sequence[Strategy]) -> Tuple[Optional[Any], List[str]]:
    """
    Try each strategy in order and return the first success.

    Returns:
        ``(value, reasons)`` where ``value`` is None when every strategy
        failed and ``reasons`` holds one failure message per failed stage.
    """
    reasons: List[str] = []
    for strategy in strategies:
        value, error = strategy(text)
        if error is None:
            return value, reasons
        reasons.append(error)
    return None, reasons


def recover_array(text: str) -> Tuple[Optional[List[Dict[str, Any]]], List[str]]:
    """Run the three-stage array chain and keep only object items."""
    value, reasons = run_chain(text, ARRAY_RECOVERY_CHAIN)
    if value is None:
        return None, reasons
    return only_objects(value), reasons


def recover_object(text: str) -> Tuple[Optional[Dict[str, Any]], List[str]]:
    value, reasons = run_chain(text, OBJECT_RECOVERY_CHAIN)
    return value, reasons


def balanced_slice(text: str, start: int) -> str:
    """
    Return ``text[start:]`` up to the bracket that closes ``text[start]``.

    Quoted regions are skipped. When the closer is missing (truncated
    output) the remainder of the text is returned.
    """
    closers = {"[": "]", "{": "}"}
    stack: List[str] = []
    quote: Optional[str] = None
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in ("\"", "'"):
            quote = ch
        elif ch in closers:
            stack.append(closers[ch])
        elif ch in ("]", "}"):
            if stack and ch == stack[-1]:
                stack.pop()
            if not stack:
                return text[start:index + 1]
    return text[start:]
