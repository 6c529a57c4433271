"""
Markdown Test Parser
Turns normalized test markdown into a TestDocumentModel.

Every heuristic lives in its own small function so it can be tuned and tested
on its own. ``parse`` never raises: anything it cannot make sense of ends up
as plain paragraphs in a generic section.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from testgen.schemas import (
    AnswerKeySection,
    GenericSection,
    MatchingLeftItem,
    MatchingSection,
    Option,
    Paragraph,
    Question,
    QuestionSection,
    SectionKind,
    TestDocumentModel,
)

logger = logging.getLogger(__name__)

DEFAULT_POINTS: Dict[SectionKind, int] = {
    SectionKind.MCQ: 1,
    SectionKind.TRUE_FALSE: 1,
    SectionKind.SHORT: 2,
    SectionKind.LONG: 5,
    SectionKind.MATCHING: 1,
}

OPTION_LETTERS = ("A", "B", "C", "D")

_HEADING_LINE_RE = re.compile(r"^ {0,3}(#{1,6})\s+(.*?)(?:\s+#+)?\s*$")
_ITEM_START_RE = re.compile(r"^[ \t]*(?:\*\*)?(\d+)[.)](?:\*\*)?[ \t]+(?=\S)", re.MULTILINE)
_POINTS_RE = re.compile(r"\s*[\[(]\s*(\d+)\s*(?:points?|pts?|marks?)\s*[\])]", re.IGNORECASE)
_OPTION_RE = re.compile(r"^\s*([A-D])[).:]\s+(\S.*?)\s*$")
_LOOSE_OPTION_RE = re.compile(
    r"^\s*(?:[-*•]\s*)?(?:\*\*)?\(?([A-Da-d])(?:\*\*)?\s*[).:\-](?:\*\*)?\s*(\S.*?)\s*$"
)
_ANSWER_LINE_RE = re.compile(
    r"^\s*(?:\*\*)?(?:correct\s+)?answer(?:\*\*)?\s*[:\-]\s*(?:\*\*)?\s*(\S.*?)\s*$",
    re.IGNORECASE,
)
_TRUE_FALSE_SUFFIX_RE = re.compile(r"\s*\(?\s*true\s*/\s*false\s*\)?\s*$", re.IGNORECASE)
_SECTION_PREFIX_RE = re.compile(r"^section\s+\d+\s*:\s*", re.IGNORECASE)
_PARENTHETICAL_RE = re.compile(r"\s*\([^)]*\)")
_SUBJECT_RE = re.compile(r"^subject\s*:\s*(.*)$", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(r"^description\s*:\s*(.*)$", re.IGNORECASE)
_INSTRUCTIONS_RE = re.compile(r"^instructions\b", re.IGNORECASE)
_RULE_RE = re.compile(r"^\s*(?:-{3,}|\*{3,})\s*$")
_COLUMN_B_RE = re.compile(r"column\s+b", re.IGNORECASE)
_COLUMN_TOKEN_RE = re.compile(r"\b(Column\s+[AB])\b\s*:?", re.IGNORECASE)
_MATCH_LEFT_RE = re.compile(r"^\s*(?:\*\*)?(\d+)[.)](?:\*\*)?\s+(\S.*?)\s*$")
_MATCH_RIGHT_RE = re.compile(r"^\s*(?:\*\*)?([A-Z])[.)](?:\*\*)?\s+(\S.*?)\s*$")
_TABLE_SEPARATOR_RE = re.compile(r"^\s*\|?\s*:?-{2,}")


@dataclass
class RawSection:
    level: int
    heading: str
    body: str


# --- Markdown helpers ---

def clean_markdown(text: str) -> str:
    """Strip markdown decoration, keeping line structure and fill-in blanks."""
    text = re.sub(r"```[\w-]*\n.*?\n```", "", text, flags=re.DOTALL)
    text = re.sub(r"^\s{0,3}#{1,6}\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"\*\*(.+?)\*\*", r"\1", text)
    text = re.sub(r"__([^_\n]+?)__", r"\1", text)
    text = re.sub(r"(?<!\w)\*(?!\s)([^*\n]+?)\*(?!\w)", r"\1", text)
    text = re.sub(r"(?<!\w)_(?!\s)([^_\n]+?)_(?!\w)", r"\1", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]*\)", r"\1", text)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = re.sub(r"^\s*>\s?", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s*[-*+•]\s+", "• ", text, flags=re.MULTILINE)
    lines = [line.strip() for line in text.split("\n")]
    return "\n".join(line for line in lines if line)


def split_paragraphs(text: str) -> List[str]:
    """Blank-line paragraphs, cleaned, without horizontal rules."""
    paragraphs = []
    for block in re.split(r"\n\s*\n", text):
        if _RULE_RE.match(block):
            continue
        cleaned = clean_markdown(block)
        if cleaned:
            paragraphs.append(cleaned)
    return paragraphs


# --- Segmentation & classification ---

def split_sections(text: str) -> Tuple[str, List[RawSection]]:
    """Split text at heading lines. Returns (preamble, sections)."""
    preamble: List[str] = []
    sections: List[RawSection] = []
    current: Optional[RawSection] = None
    lines: List[str] = []

    def flush() -> None:
        body = "\n".join(lines).strip("\n")
        if current is None:
            preamble.append(body)
        else:
            current.body = body

    for line in text.split("\n"):
        if _RULE_RE.match(line):
            continue
        match = _HEADING_LINE_RE.match(line)
        if match and match.group(2):
            flush()
            current = RawSection(level=len(match.group(1)), heading=match.group(2), body="")
            sections.append(current)
            lines = []
        else:
            lines.append(line)
    flush()
    return "\n".join(preamble), sections


def classify_heading(heading: str) -> SectionKind:
    """Map a heading to a section kind by case-insensitive keyword match."""
    lowered = re.sub(r"[-_]", " ", heading.lower())
    if "multiple choice" in lowered:
        return SectionKind.MCQ
    if "true" in lowered and "false" in lowered:
        return SectionKind.TRUE_FALSE
    if "short answer" in lowered:
        return SectionKind.SHORT
    if "long answer" in lowered:
        return SectionKind.LONG
    if "matching" in lowered:
        return SectionKind.MATCHING
    if "answer key" in lowered:
        return SectionKind.ANSWER_KEY
    return SectionKind.GENERIC


def clean_section_title(heading: str) -> str:
    """Drop heading marks, a "Section N:" prefix and parenthetical hints."""
    base = clean_markdown(re.sub(r"^\s*#{1,6}\s*", "", heading)).replace("\n", " ")
    title = _SECTION_PREFIX_RE.sub("", base)
    title = _PARENTHETICAL_RE.sub("", title).strip().rstrip(":").strip()
    return title or base.strip()


def _merge_subheadings(sections: List[RawSection]) -> List[RawSection]:
    """Fold generic level-3+ headings into the section above them."""
    merged: List[RawSection] = []
    for section in sections:
        if (
            merged
            and section.level >= 3
            and section.level > merged[-1].level
            and classify_heading(section.heading) == SectionKind.GENERIC
        ):
            parent = merged[-1]
            parent.body = "\n".join(
                part for part in (parent.body, f"**{section.heading}**", section.body) if part
            )
            continue
        merged.append(section)
    return merged


# --- Item extraction ---

def split_numbered_items(body: str) -> Tuple[str, List[Tuple[int, str]]]:
    """
    Split a body into numbered-list spans.

    Returns:
        (text before the first item, [(number, item content), ...]); numbers
        are kept exactly as written.
    """
    matches = list(_ITEM_START_RE.finditer(body))
    if not matches:
        return body.strip(), []

    intro = body[:matches[0].start()].strip()
    items: List[Tuple[int, str]] = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(body)
        content = body[match.end():end].strip()
        if content:
            items.append((int(match.group(1)), content))
    return intro, items


def extract_points(text: str, default: Optional[int]) -> Tuple[str, Optional[int]]:
    """Pull a "[N points]" annotation out of question text."""
    match = _POINTS_RE.search(text)
    points = int(match.group(1)) if match else default
    return _POINTS_RE.sub("", text).strip(), points


def extract_inline_answer(text: str) -> Tuple[str, Optional[str]]:
    """Remove an "Answer: ..." line, returning it separately."""
    answer = None
    kept = []
    for line in text.split("\n"):
        match = _ANSWER_LINE_RE.match(line)
        if match and answer is None:
            answer = clean_markdown(match.group(1))
            continue
        kept.append(line)
    return "\n".join(kept).strip(), answer


def extract_options(content: str) -> Tuple[str, List[Option]]:
    """
    Separate a multiple-choice stem from its lettered options.

    Options are looked for on the lines after the first, first with the
    strict "A) text" form and then a looser pattern. Returns the stem and the
    options found (possibly none), de-duplicated by letter.
    """
    lines = content.split("\n")
    head, rest = lines[0], lines[1:]

    for pattern in (_OPTION_RE, _LOOSE_OPTION_RE):
        found = [(index, pattern.match(line)) for index, line in enumerate(rest)]
        found = [(index, match) for index, match in found if match]
        if not found:
            continue

        stem = "\n".join([head] + rest[:found[0][0]])
        options: List[Option] = []
        seen = set()
        for _, match in found:
            letter = match.group(1).upper()
            if letter in seen:
                continue
            seen.add(letter)
            options.append(Option(label=f"{letter}.", text=clean_markdown(match.group(2))))
        return stem, options

    return content, []


def complete_options(options: List[Option]) -> List[Option]:
    """Always return A-D, filling letters the model skipped with empty text."""
    by_letter = {option.label[0]: option.text for option in options}
    return [Option(label=f"{letter}.", text=by_letter.get(letter, "")) for letter in OPTION_LETTERS]


def detect_matching_items(body: str) -> Tuple[List[MatchingLeftItem], List[Option]]:
    """
    Find numbered left-column lines and lettered right-column lines.

    Numbered lines after a "Column B" marker are not treated as left items.
    Markdown table rows are read cell by cell. Right-hand letters are kept as
    written so answer-key references such as "1-C" still line up.
    """
    lines = body.split("\n")
    column_b = next((i for i, line in enumerate(lines) if _COLUMN_B_RE.search(line)), None)
    left: List[MatchingLeftItem] = []
    right: List[Option] = []

    for index, line in enumerate(lines):
        if line.strip().startswith("|"):
            if _TABLE_SEPARATOR_RE.match(line) or re.search(r"column", line, re.IGNORECASE):
                continue
            cells = [cell.strip() for cell in line.strip().strip("|").split("|")]
            number = re.match(r"^(?:\*\*)?(\d+)[.)]?(?:\*\*)?\s*(.*)$", cells[0])
            if number:
                text, _ = extract_points(clean_markdown(number.group(2)), None)
                left.append(MatchingLeftItem(number=int(number.group(1)), text=text))
                if len(cells) > 1 and cells[-1]:
                    right.append(_right_item(clean_markdown(cells[-1]), len(right)))
            continue

        before_b = column_b is None or index < column_b
        left_match = _MATCH_LEFT_RE.match(line)
        if left_match and before_b:
            text, _ = extract_points(clean_markdown(left_match.group(2)), None)
            left.append(MatchingLeftItem(number=int(left_match.group(1)), text=text))
            continue
        right_match = _MATCH_RIGHT_RE.match(line)
        if right_match and (column_b is None or index > column_b):
            right.append(Option(label=f"{right_match.group(1)}.", text=clean_markdown(right_match.group(2))))

    return left, right


def _right_item(cell: str, position: int) -> Option:
    """A table cell as a lettered stub; unlettered cells take their row letter."""
    match = re.match(r"^([A-Z])[.)]\s*(.*)$", cell)
    if match:
        return Option(label=f"{match.group(1)}.", text=match.group(2).strip())
    return Option(label=f"{chr(ord('A') + position)}.", text=cell)


def format_matching_block(body: str) -> str:
    """Flatten a matching exercise to text with bold column labels."""
    text = clean_markdown(_POINTS_RE.sub("", body))
    return _COLUMN_TOKEN_RE.sub(lambda m: f"**{m.group(1)}:**", text)


# --- Section builders ---

def _build_questions(body: str, kind: SectionKind) -> List[Question]:
    _, numbered = split_numbered_items(body)
    questions = []
    for number, content in numbered:
        content, points = extract_points(content, DEFAULT_POINTS[kind])
        content, answer = extract_inline_answer(content)
        options = None
        if kind == SectionKind.MCQ:
            content, found = extract_options(content)
            options = complete_options(found)
        text = clean_markdown(content)
        if kind == SectionKind.TRUE_FALSE:
            text = _TRUE_FALSE_SUFFIX_RE.sub("", text)
        questions.append(
            Question(number=number, text=text, points=points, options=options, answer=answer)
        )
    return questions


def _build_answer_key_items(body: str) -> List:
    items: List = []
    for line in body.split("\n"):
        if not line.strip() or _RULE_RE.match(line):
            continue
        match = _ITEM_START_RE.match(line)
        if match:
            text = clean_markdown(line[match.end():])
            items.append(Question(number=int(match.group(1)), text=text, answer=text))
        elif items and isinstance(items[-1], Question) and line[:1].isspace():
            # indented continuation of the previous answer
            previous = items[-1]
            text = f"{previous.text}\n{clean_markdown(line)}"
            items[-1] = previous.model_copy(update={"text": text, "answer": text})
        else:
            cleaned = clean_markdown(line)
            if cleaned:
                items.append(Paragraph(text=cleaned))
    return items


def _generic(title: str, body: str) -> GenericSection:
    return GenericSection(title=title, items=[Paragraph(text=p) for p in split_paragraphs(body)])


def build_section(raw: RawSection):
    """Build a typed section for one heading and its body."""
    kind = classify_heading(raw.heading)
    title = clean_section_title(raw.heading)

    if kind == SectionKind.GENERIC:
        return _generic(title, raw.body)

    if kind == SectionKind.MATCHING:
        left, right = detect_matching_items(raw.body)
        block = format_matching_block(raw.body)
        return MatchingSection(
            title=title,
            items=[Paragraph(text=block)] if block else [],
            left_items=left,
            right_items=right,
            points_per_match=DEFAULT_POINTS[SectionKind.MATCHING],
        )

    if kind == SectionKind.ANSWER_KEY:
        return AnswerKeySection(title=title, items=_build_answer_key_items(raw.body))

    questions = _build_questions(raw.body, kind)
    if not questions and raw.body.strip():
        logger.info("No numbered questions under '%s'; keeping it as plain text", title)
        return _generic(title, raw.body)
    return QuestionSection(kind=kind.value, title=title, items=questions)


# --- Entry point ---

@dataclass
class FrontMatter:
    subject: Optional[str] = None
    description: Optional[str] = None
    instructions: List[str] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)


def read_front_matter(body: str) -> FrontMatter:
    """
    Read the body under the title (or a Subject heading).

    Picks out "Subject:" and "Description:" lines and the bullets after an
    "Instructions" line. Everything else comes back as paragraphs so it can
    be kept in the document.
    """
    front = FrontMatter()
    collecting = False
    for paragraph in split_paragraphs(body):
        leftover = []
        for line in paragraph.split("\n"):
            subject = _SUBJECT_RE.match(line)
            description = _DESCRIPTION_RE.match(line)
            if subject and subject.group(1).strip():
                front.subject = front.subject or subject.group(1).strip()
                collecting = False
            elif description and description.group(1).strip():
                front.description = front.description or description.group(1).strip()
                collecting = False
            elif _INSTRUCTIONS_RE.match(line):
                collecting = True
                inline = re.sub(r"^instructions\s*:?\s*", "", line, flags=re.IGNORECASE)
                if inline:
                    front.instructions.append(inline)
            elif collecting and line.startswith("• "):
                front.instructions.append(line[2:].strip())
            else:
                collecting = False
                leftover.append(line)
        if leftover:
            front.paragraphs.append("\n".join(leftover))
    return front


def _fallback(text: str) -> TestDocumentModel:
    return TestDocumentModel(sections=[_generic("", text)])


def _parse(text: str) -> TestDocumentModel:
    preamble, raw_sections = split_sections(text)
    raw_sections = _merge_subheadings(raw_sections)

    title: Optional[str] = None
    front = FrontMatter()
    intro = split_paragraphs(preamble)
    sections: List = []
    answer_key: Optional[AnswerKeySection] = None
    if intro:
        logger.info("Keeping %s paragraph(s) found before the first heading", len(intro))

    for raw in raw_sections:
        plain = clean_markdown(raw.heading).replace("\n", " ").strip()

        if answer_key is not None:
            # headings after the answer key are sub-headings of the key
            answer_key.items.append(Paragraph(text=plain))
            answer_key.items.extend(_build_answer_key_items(raw.body))
            continue

        if not sections:
            subject_match = _SUBJECT_RE.match(plain)
            if _INSTRUCTIONS_RE.match(plain):
                front.instructions = [
                    re.sub(r"^•\s*", "", line) for line in clean_markdown(raw.body).split("\n")
                    if line.strip() and not _RULE_RE.match(line)
                ]
                continue
            if (raw.level == 1 and title is None) or subject_match:
                if raw.level == 1 and title is None:
                    title = plain
                else:
                    front.subject = subject_match.group(1).strip() or front.subject
                body = read_front_matter(raw.body)
                front.subject = front.subject or body.subject
                front.description = front.description or body.description
                front.instructions = front.instructions or body.instructions
                intro.extend(body.paragraphs)
                continue

        try:
            section = build_section(raw)
        except Exception:
            logger.warning("Could not parse section '%s'; degrading to plain text", plain, exc_info=True)
            section = _generic(clean_section_title(raw.heading), raw.body)

        if isinstance(section, AnswerKeySection):
            answer_key = section
        sections.append(section)

    if intro:
        sections.insert(0, GenericSection(items=[Paragraph(text=p) for p in intro]))

    if not sections:
        logger.info("No content sections found; using a single generic section")
        sections = _fallback(text).sections

    return TestDocumentModel(
        title=title,
        subject=front.subject,
        description=front.description,
        instructions=front.instructions,
        sections=sections,
    )


def parse(text: str) -> TestDocumentModel:
    """
    Parse normalized test markdown into a TestDocumentModel.

    Never raises. Input without recognisable structure becomes one generic
    section of plain paragraphs (zero paragraphs for empty input).
    """
    text = text if isinstance(text, str) else ""
    try:
        return _parse(text)
    except Exception:
        logger.exception("Parser failed; falling back to a single generic section")
        try:
            return _fallback(text)
        except Exception:
            logger.exception("Fallback parsing failed; returning an empty document")
            return TestDocumentModel(sections=[GenericSection()])
