"""
Content Summarizer
Bounds extracted text to a maximum length, preferring structurally important passages.
"""
import re
from typing import List

ELISION_MARKER = "\n\n[...]\n\n"
SAMPLE_SEGMENTS = 5

_IMPORTANT_RE = re.compile(
    r"^\s*#{1,6}\s"                     # markdown heading
    r"|^\s*\d+(?:\.\d+)*\.?\s+[A-Z]"    # numbered heading, e.g. "2.1 Kinematics"
    r"|\b(?:chapter|section|introduction|summary|conclusion|overview)\b",
    re.IGNORECASE | re.MULTILINE,
)


def split_paragraphs(text: str) -> List[str]:
    """Split on blank lines, dropping empty paragraphs."""
    return [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]


def is_important(paragraph: str) -> bool:
    return bool(_IMPORTANT_RE.search(paragraph))


def _pack(paragraphs: List[str], max_length: int) -> str:
    packed: List[str] = []
    used = 0
    for paragraph in paragraphs:
        cost = len(paragraph) + (2 if packed else 0)
        if used + cost > max_length:
            break
        packed.append(paragraph)
        used += cost

    if not packed:
        # a single important paragraph larger than the whole budget
        return paragraphs[0][:max_length]
    return "\n\n".join(packed)


def _sample(text: str, max_length: int) -> str:
    segment = (max_length - (SAMPLE_SEGMENTS - 1) * len(ELISION_MARKER)) // SAMPLE_SEGMENTS
    if segment <= 0:
        return text[:max_length]

    interior = SAMPLE_SEGMENTS - 2
    chunks = [text[:segment]]
    for index in range(1, interior + 1):
        center = len(text) * index // (interior + 1)
        start = max(0, center - segment // 2)
        chunks.append(text[start:start + segment])
    chunks.append(text[-segment:])
    return ELISION_MARKER.join(chunks)


def summarize(text: str, max_length: int) -> str:
    """
    Reduce ``text`` to at most ``max_length`` characters.

    Text that already fits is returned unchanged. Otherwise structurally
    important paragraphs (headings, chapter/section markers, introductions,
    summaries) are kept in document order when there are enough of them to
    fill half the budget; if not, the text is sampled as a leading chunk,
    three evenly spaced interior chunks and a trailing chunk.
    """
    if len(text) <= max_length:
        return text
    if max_length <= 0:
        return ""

    important = [p for p in split_paragraphs(text) if is_important(p)]
    if important and len("\n\n".join(important)) > max_length / 2:
        return _pack(important, max_length)

    return _sample(text, max_length)
