"""
Test Content Normalizer
Canonicalizes heading and numbering conventions in raw model output.
"""
import re
from typing import List

_HEADING_MARKS_RE = re.compile(r"^#{1,6}\s*")
_SECTION_RE = re.compile(r"^Section\s+\d+\s*:", re.IGNORECASE)
_ANSWER_KEY_LINE_RE = re.compile(r"^answer\s+key\s*:?$", re.IGNORECASE)
_NUMBER_MARKER_RE = re.compile(r"^\s*(?:\*\*(\d+)[.)]\*\*|(\d+)[.)])\s+(?=\S)")
_LEVEL2_RE = re.compile(r"^##(?!#)\s")
_ANSWER_KEY_HEADING_RE = re.compile(r"^##\s+answer\s+key\b", re.IGNORECASE)

SEPARATOR = "---"


def _undecorate(line: str) -> str:
    """Strip heading marks and a surrounding bold pair."""
    text = _HEADING_MARKS_RE.sub("", line.strip())
    if len(text) > 4 and text.startswith("**") and text.endswith("**"):
        text = text[2:-2].strip()
    return text


def _canonical_line(line: str) -> str:
    text = _undecorate(line)
    if _SECTION_RE.match(text):
        return f"## {text}"
    if _ANSWER_KEY_LINE_RE.match(text):
        return "## Answer Key"

    match = _NUMBER_MARKER_RE.match(line)
    if match:
        number = match.group(1) or match.group(2)
        return f"{number}. {line[match.end():]}"
    return line


def _trim_blank_tail(lines: List[str]) -> None:
    while lines and not lines[-1].strip():
        lines.pop()


def normalize(raw_text: str) -> str:
    """
    Canonicalize generated test markdown.

    Rules, in order:
      1. "Section N:" lines become level-2 headings.
      2. A bare "Answer Key" line becomes a level-2 heading.
      3. Question markers are re-spaced to "N. ".
      4. Every level-2 heading is preceded by exactly one blank line.
      5. A "---" separator sits immediately before an Answer Key heading.

    The function is idempotent.
    """
    text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
    out: List[str] = []

    for line in text.split("\n"):
        line = _canonical_line(line)
        if not _LEVEL2_RE.match(line):
            out.append(line)
            continue

        _trim_blank_tail(out)
        if _ANSWER_KEY_HEADING_RE.match(line):
            if out and out[-1].strip() == SEPARATOR:
                out.pop()
                _trim_blank_tail(out)
            if out:
                out.append("")
            out.append(SEPARATOR)
        if out:
            out.append("")
        out.append(line)

    return "\n".join(out)
