"""Ordered structural rules every generated lesson must satisfy.

Rules are independent predicates evaluated in a fixed order and the first
failure wins: the repair prompt only ever sees one violation, and which one
it sees depends on this order.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import NamedTuple

from lessoncraft.config import COMPONENT_NAME
from lessoncraft.errors import ValidationFailure
from lessoncraft.models import Violation, ViolationKind
from lessoncraft.sanitizer import MARKER_RE

MIN_CODE_LENGTH = 50

PROVIDED_HOOKS = (
    "useState",
    "useEffect",
    "useRef",
    "useMemo",
    "useCallback",
    "useContext",
    "useReducer",
)
STATE_HOOKS = ("useState", "useReducer", "useRef")
DISALLOWED_TAGS = (
    "Button",
    "Heading",
    "Text",
    "Card",
    "Box",
    "Stack",
    "Grid",
    "Flex",
    "Container",
    "Typography",
)
PRIMITIVE_TYPES = frozenset(
    {"any", "unknown", "string", "number", "boolean", "object", "bigint", "symbol", "null", "undefined"}
)

_HOOK_ALT = "|".join(PROVIDED_HOOKS)

_STATIC_IMPORT_RE = re.compile(r"^[ \t]*import\s+(?:type\s+)?[\w$*{'\"]", re.MULTILINE)
_DYNAMIC_LOAD_RE = re.compile(r"\b(?:require|import)\s*\(")
_ALERT_RE = re.compile(r"\balert\s*\(")
_NAMESPACED_HOOK_RE = re.compile(rf"\b[A-Za-z_$][\w$]*\s*\.\s*(?:{_HOOK_ALT})\b")
_REDECLARATION_RE = re.compile(rf"\b(?:const|let|var)\s+({_HOOK_ALT}|render)\s*=\s*\1\b")
_UNTYPED_HOOK_RE = re.compile(rf"\b({'|'.join(STATE_HOOKS)})\s*\(")
_COMPONENT_RE = re.compile(
    rf"\bfunction\s+{COMPONENT_NAME}\s*\("
    rf"|\b(?:const|let|var)\s+{COMPONENT_NAME}\s*(?::[^=\n]+)?=\s*(?:async\s+)?(?:\(|function\b|[A-Za-z_$][\w$]*\s*=>)"
)
_TYPE_DECL_START_RE = re.compile(r"\s*(type|interface)\s+[A-Za-z_$][\w$]*")
_LEADING_COMMENT_RE = re.compile(r"\s*(?://[^\n]*|/\*[\s\S]*?\*/)")
_ASSIGNMENT_RE = re.compile(
    r"\b(?:const|let|var)\s+(?:[A-Za-z_$][\w$]*|\[[^\]]*\]|\{[^}]*\})\s*(?::[^=\n]+)?=(?![=>])"
)
_RETURN_RE = re.compile(r"\breturn\s*(?:\(|<)")
_DISALLOWED_TAG_RE = re.compile(rf"(?<![\w$.])<\s*({'|'.join(DISALLOWED_TAGS)})(?![\w$])")
_QUIZ_RE = re.compile(r"quiz", re.IGNORECASE)
_TYPED_EMPTY_LIST_RE = re.compile(
    r"\buseState\s*<\s*([A-Za-z_$][\w$]*)\s*\[\s*\]\s*>\s*\(\s*\[\s*\]\s*\)"
)


class Rule(NamedTuple):
    kind: ViolationKind
    check: Callable[[str], str | None]


def _component_match(code: str) -> re.Match[str] | None:
    return _COMPONENT_RE.search(code)


def _skip_balanced(text: str, index: int) -> int:
    """Return the index just past the bracket group opening at ``index``."""
    depth = 0
    for pos in range(index, len(text)):
        ch = text[pos]
        if ch in "{([":
            depth += 1
        elif ch in "})]":
            depth -= 1
            if depth == 0:
                return pos + 1
    return len(text)


def _type_declaration_end(text: str, keyword: str, start: int) -> int:
    """Find where the declaration whose name ends at ``start`` finishes.

    An interface ends with its body. A type alias ends at ``;`` or at a line
    break that does not continue the alias (``=``, ``|``, ``&`` or ``,``).
    """
    pos = start
    while pos < len(text):
        ch = text[pos]
        if ch in "{([":
            pos = _skip_balanced(text, pos)
            if keyword == "interface" and ch == "{":
                return pos
            continue
        if ch == ";":
            return pos + 1
        if ch == "\n" and keyword == "type":
            before = text[start:pos].rstrip()
            after = text[pos:].lstrip()
            if not before.endswith(("=", "|", "&", ",")) and not after.startswith(("|", "&")):
                return pos
        pos += 1
    return pos


def strip_leading_type_declarations(prefix: str) -> str:
    """Drop the comments and type/interface declarations at the head of ``prefix``."""
    pos = 0
    while True:
        comment = _LEADING_COMMENT_RE.match(prefix, pos)
        if comment:
            pos = comment.end()
            continue
        match = _TYPE_DECL_START_RE.match(prefix, pos)
        if not match:
            return prefix[pos:]
        pos = _type_declaration_end(prefix, match.group(1), match.end())


def _too_short(code: str) -> str | None:
    if not code or len(code.strip()) < MIN_CODE_LENGTH:
        return "Code is null or too short."
    return None


def _contains_import(code: str) -> str | None:
    if _STATIC_IMPORT_RE.search(code):
        return "Code contains 'import' statements."
    return None


def _contains_require(code: str) -> str | None:
    if _DYNAMIC_LOAD_RE.search(code):
        return "Code contains 'require()' statements."
    return None


def _contains_alert(code: str) -> str | None:
    if _ALERT_RE.search(code):
        return "Code contains forbidden 'alert()'. Must use useState to show messages in the UI."
    return None


def _namespaced_hook(code: str) -> str | None:
    if _NAMESPACED_HOOK_RE.search(code):
        return (
            "Code contains 'React.' prefix on hooks (e.g., React.useState). "
            "Hooks must be used directly."
        )
    return None


def _forbidden_redeclaration(code: str) -> str | None:
    match = _REDECLARATION_RE.search(code)
    if match:
        return (
            f"Code contains forbidden re-declaration (e.g., 'const {match.group(1)} = {match.group(1)};')."
        )
    return None


def _untyped_hook(code: str) -> str | None:
    match = _UNTYPED_HOOK_RE.search(code)
    if match:
        return (
            f"Code contains untyped hooks (e.g., {match.group(1)}(0) or {match.group(1)}('')). "
            "Must use explicit types (e.g., useState<number>(0))."
        )
    return None


def _component_not_found(code: str) -> str | None:
    if not _component_match(code):
        return (
            f"Component 'const {COMPONENT_NAME} = () =>' or "
            f"'function {COMPONENT_NAME}()' not found."
        )
    return None


def _logic_outside_component(code: str) -> str | None:
    match = _component_match(code)
    if not match:
        return None
    outside = strip_leading_type_declarations(code[: match.start()])
    if _ASSIGNMENT_RE.search(outside):
        return (
            f"Code defines data or state variables *outside* the {COMPONENT_NAME}. "
            "All logic MUST be inside the component."
        )
    return None


def _missing_return(code: str) -> str | None:
    match = _component_match(code)
    if match and not _RETURN_RE.search(code, match.end()):
        return "Component is missing a 'return (' block."
    return None


def _missing_invocation(code: str) -> str | None:
    markers = list(MARKER_RE.finditer(code))
    if not markers or code[markers[-1].end():].strip():
        return f"Code is missing the 'render(<{COMPONENT_NAME} />);' call at the end."
    return None


def _disallowed_tag(code: str) -> str | None:
    match = _DISALLOWED_TAG_RE.search(code)
    if match:
        return (
            f"Code contains component library tags (e.g., <{match.group(1)}>). "
            "Only standard HTML tags (e.g., <button>, <h1>) are allowed."
        )
    return None


def _missing_quiz(code: str) -> str | None:
    if not _QUIZ_RE.search(code):
        return "Code is missing the mandatory 'Quiz' section."
    return None


def _undefined_type(code: str) -> str | None:
    for match in _TYPED_EMPTY_LIST_RE.finditer(code):
        type_name = match.group(1)
        if type_name in PRIMITIVE_TYPES:
            continue
        declared = re.compile(rf"\b(?:type|interface)\s+{re.escape(type_name)}\b")
        if not declared.search(code, 0, match.start()):
            return f"Code uses custom type '{type_name}[]' but '{type_name}' is not defined."
    return None


RULES: tuple[Rule, ...] = (
    Rule("too_short", _too_short),
    Rule("contains_import", _contains_import),
    Rule("contains_require", _contains_require),
    Rule("contains_alert", _contains_alert),
    Rule("namespaced_hook", _namespaced_hook),
    Rule("forbidden_redeclaration", _forbidden_redeclaration),
    Rule("untyped_hook", _untyped_hook),
    Rule("component_not_found", _component_not_found),
    Rule("logic_outside_component", _logic_outside_component),
    Rule("missing_return", _missing_return),
    Rule("missing_invocation", _missing_invocation),
    Rule("disallowed_tag", _disallowed_tag),
    Rule("missing_quiz", _missing_quiz),
    Rule("undefined_type", _undefined_type),
)


def validate(code: str) -> Violation | None:
    """Return the first rule ``code`` violates, or ``None`` when it passes all."""
    for rule in RULES:
        message = rule.check(code)
        if message is not None:
            return Violation(kind=rule.kind, message=message)
    return None


def validate_or_raise(code: str) -> str:
    violation = validate(code)
    if violation is not None:
        raise ValidationFailure(violation)
    return code
