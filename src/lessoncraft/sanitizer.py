"""Deterministic cleanup that turns raw model output into one TSX lesson body."""

from __future__ import annotations

import re

from lessoncraft.config import COMPONENT_NAME, INVOCATION_MARKER

_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\n?")
_HEADING_RE = re.compile(r"^#{1,6}[ \t]+.*$", re.MULTILINE)
_QUOTE_RE = re.compile(r"^>[ \t]+.*$", re.MULTILINE)

# Emphasis needs a non-space just inside each delimiter and no operand just
# outside it, so `a * b`, `x**2` and `/* ... */` stay untouched.
_BOLD_RE = re.compile(
    r"(?<![\w)\]}*/'\"`])\*\*(?=[^\s*])([^*\n]+?)(?<=[^\s*])\*\*(?![\w({*/'\"`])"
)
_ITALIC_STAR_RE = re.compile(
    r"(?<![\w)\]}*/'\"`])\*(?=[^\s*])([^*\n]+?)(?<=[^\s*])\*(?![\w({*/'\"`])"
)
_ITALIC_UNDERSCORE_RE = re.compile(r"(?<![\w$])_(?=[^\s_])([^_\n]+?)(?<=[^\s_])_(?![\w$])")
_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9$]+")
_STRIKE_RE = re.compile(r"(?<!~)~~(?=[^\s~])([^~\n]+?)(?<=[^\s~])~~(?!~)")

_HTML_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")

_DYNAMIC_BINDING_RE = re.compile(
    r"\b(?:const|let|var)\s+[^=;\n]+?=\s*(?:await\s+)?\b(?:require|import)\s*\([^)]*\)[^;\n]*;?"
)
_DYNAMIC_LOAD_RE = re.compile(r"(?:\bawait\s+)?\b(?:require|import)\s*\([^)]*\)")

_STATIC_IMPORT_RE = re.compile(
    r"^[ \t]*import\s+(?:type\s+)?(?:[^;'\"]*?\bfrom\s*)?['\"][^'\"\n]*['\"][ \t]*;?[ \t]*\n?",
    re.MULTILINE,
)
_IMPORT_LINE_RE = re.compile(r"^[ \t]*import\s+[\w$*{][^\n]*\n?", re.MULTILINE)
_EXPORT_DEFAULT_RE = re.compile(r"^[ \t]*export\s+default\s+[A-Za-z_$][\w$]*[ \t]*;?[ \t]*$", re.MULTILINE)
_EXPORT_KEYWORD_RE = re.compile(
    r"\bexport\s+(?:default\s+)?(?=(?:async\s+)?(?:function|const|let|var|interface|type|class)\b)"
)
_REACT_DOM_RE = re.compile(r"\bReactDOM\s*\.\s*(?:render|createRoot)\s*\([\s\S]*?\)\s*;")

_TYPE_DECL_RE = re.compile(
    r"^[ \t]*(?:type|interface)\s+[A-Za-z_$][\w$]*\s*(?:<[^>\n]*>\s*)?[={]",
    re.MULTILINE,
)
_COMPONENT_DECL_RE = re.compile(
    rf"\b(?:(?:const|let|var)\s+{COMPONENT_NAME}\b|function\s+{COMPONENT_NAME}\b)"
)
_FALLBACK_DECL_RE = re.compile(
    r"\b(?:const\s+[A-Za-z_$][\w$]*\s*=\s*\(\s*\)|function\s+[A-Za-z_$][\w$]*\s*\(\s*\))"
)

MARKER_RE = re.compile(
    rf"\brender\s*\(\s*<\s*{COMPONENT_NAME}\s*/?\s*>\s*(?:<\s*/\s*{COMPONENT_NAME}\s*>\s*)?\)[ \t]*;?"
)
_TOP_LEVEL_CLOSE_RE = re.compile(r"^\};?[ \t]*$", re.MULTILINE)
_BLANK_RUN_RE = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")


def _unwrap_underscore(match: re.Match[str]) -> str:
    # `_unit_` is a valid identifier, not emphasis.
    inner = match.group(1)
    return match.group(0) if _IDENTIFIER_RE.fullmatch(inner) else inner


def _strip_emphasis(text: str) -> str:
    """Unwrap emphasis until a pass changes nothing, so nested markers like `_**x**_` go too."""
    while True:
        stripped = _BOLD_RE.sub(r"\1", text)
        stripped = _ITALIC_STAR_RE.sub(r"\1", stripped)
        stripped = _ITALIC_UNDERSCORE_RE.sub(_unwrap_underscore, stripped)
        stripped = _STRIKE_RE.sub(r"\1", stripped)
        if stripped == text:
            return text
        text = stripped


def _strip_markdown(text: str) -> str:
    text = _FENCE_RE.sub("", text)
    text = _HEADING_RE.sub("", text)
    text = _QUOTE_RE.sub("", text)
    text = _strip_emphasis(text)
    return _HTML_COMMENT_RE.sub("", text)


def _strip_module_loading(text: str) -> str:
    # Bare calls become `{}` so surrounding expressions keep their shape.
    text = _DYNAMIC_BINDING_RE.sub("", text)
    text = _DYNAMIC_LOAD_RE.sub("{}", text)
    text = _STATIC_IMPORT_RE.sub("", text)
    text = _IMPORT_LINE_RE.sub("", text)
    text = _EXPORT_DEFAULT_RE.sub("", text)
    text = _EXPORT_KEYWORD_RE.sub("", text)
    return _REACT_DOM_RE.sub("", text)


def find_start(text: str) -> int:
    """Return the index where lesson code starts, or ``-1`` when none is found.

    Type/interface declarations and the ``LessonComponent`` declaration are
    preferred; any zero-argument ``const X = ()`` or ``function X()`` is the
    fallback.
    """
    primary = [m.start() for m in (_TYPE_DECL_RE.search(text), _COMPONENT_DECL_RE.search(text)) if m]
    if primary:
        return min(primary)

    fallback = _FALLBACK_DECL_RE.search(text)
    return fallback.start() if fallback else -1


def find_end(text: str) -> int:
    """Return the index just past the lesson code in ``text``.

    The last invocation marker wins. Without one, the code ends at the last
    closing brace found at column 0, then at the last brace anywhere.
    """
    markers = list(MARKER_RE.finditer(text))
    if markers:
        return markers[-1].end()

    closes = list(_TOP_LEVEL_CLOSE_RE.finditer(text))
    if closes:
        return closes[-1].end()

    brace = text.rfind("}")
    return brace + 1 if brace != -1 else len(text)


def sanitize(raw: str) -> str:
    """Clean raw model output into a lesson body ending in one invocation marker.

    The transform is total: text without any recognizable declaration is
    returned after the markdown and module-loading cleanup only, and the
    validator rejects it downstream.
    """
    if not raw:
        return ""

    text = raw.replace("\r\n", "\n").replace("\r", "\n").strip()
    text = _strip_markdown(text)
    text = _strip_module_loading(text)
    text = text.strip()

    start = find_start(text)
    if start == -1:
        return text

    body = text[start:]
    body = body[: find_end(body)].strip()
    body = _BLANK_RUN_RE.sub("\n\n", body)

    body = MARKER_RE.sub("", body)
    body = _BLANK_RUN_RE.sub("\n\n", body).strip()
    return f"{body}\n\n{INVOCATION_MARKER}"
