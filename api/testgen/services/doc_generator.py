"""
Document Generator Service
Handles .docx rendering of parsed tests with fixed per-section templates.
"""
import io
import logging
import re

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt

from testgen.config import DOCX_MEDIA_TYPE
from testgen.schemas import (
    DocumentHeader,
    MatchingSection,
    Paragraph,
    Question,
    RenderedDocument,
    SectionKind,
    TestDocumentModel,
)

logger = logging.getLogger(__name__)

MATCHING_PLACEHOLDER = "[Matching item]"
RULED_LINES_PER_SHORT_ANSWER = 2
LONG_ANSWER_BOX_HEIGHT = Inches(2.5)

# characters XML 1.0 cannot carry; PDF text often holds form feeds
_XML_INVALID_RE = re.compile(r"[\x00-\x08\x0e-\x1f\ufffe\uffff\ud800-\udfff]")
_XML_BREAK_RE = re.compile(r"[\x0b\x0c]")


def _xml_safe(text: str) -> str:
    return _XML_INVALID_RE.sub("", _XML_BREAK_RE.sub(" ", text))


def _indented(doc: Document, text: str = ""):
    p = doc.add_paragraph()
    p.paragraph_format.left_indent = Inches(0.5)
    if text:
        p.add_run(_xml_safe(text))
    return p


def _add_question_line(doc: Document, question: Question) -> None:
    p = doc.add_paragraph()
    p.paragraph_format.space_before = Pt(12)
    p.add_run(_xml_safe(f"{question.number}. {question.text}")).bold = True
    if question.points is not None:
        suffix = "point" if question.points == 1 else "points"
        p.add_run(f" [{question.points} {suffix}]").italic = True


def _add_multiple_choice(doc: Document, question: Question) -> None:
    for option in question.options or []:
        _indented(doc, f"{option.label} {option.text}".rstrip())


def _add_true_false(doc: Document) -> None:
    for label in ("True", "False"):
        _indented(doc, f"○ {label}")


def _add_bottom_border(paragraph) -> None:
    p_pr = paragraph._p.get_or_add_pPr()
    borders = OxmlElement("w:pBdr")
    bottom = OxmlElement("w:bottom")
    bottom.set(qn("w:val"), "single")
    bottom.set(qn("w:sz"), "6")
    bottom.set(qn("w:space"), "1")
    bottom.set(qn("w:color"), "auto")
    borders.append(bottom)
    p_pr.append(borders)


def _add_short_answer(doc: Document) -> None:
    for _ in range(RULED_LINES_PER_SHORT_ANSWER):
        line = _indented(doc)
        line.paragraph_format.space_before = Pt(14)
        _add_bottom_border(line)


def _add_long_answer(doc: Document) -> None:
    box = doc.add_table(rows=1, cols=1)
    box.style = 'Table Grid'
    box.rows[0].height = LONG_ANSWER_BOX_HEIGHT
    doc.add_paragraph()


def _add_matching(doc: Document, section: MatchingSection) -> None:
    if not section.left_items:
        # nothing recognisable as Column A: keep the exercise as written
        for item in section.items:
            _add_rich_paragraph(doc, item.text)
        return

    table = doc.add_table(rows=1, cols=3)
    table.style = 'Table Grid'
    hdr_cells = table.rows[0].cells
    hdr_cells[0].text = 'Column A'
    hdr_cells[1].text = ''
    hdr_cells[2].text = 'Column B'

    for index, left in enumerate(section.left_items):
        row_cells = table.add_row().cells
        row_cells[0].text = _xml_safe(f"{left.number}. {left.text}")
        row_cells[1].text = ''
        if index < len(section.right_items):
            right = section.right_items[index]
            row_cells[2].text = _xml_safe(f"{right.label} {right.text}")
        else:
            row_cells[2].text = MATCHING_PLACEHOLDER
    for right in section.right_items[len(section.left_items):]:
        table.add_row().cells[2].text = _xml_safe(f"{right.label} {right.text}")
    doc.add_paragraph()


def _add_rich_paragraph(doc: Document, text: str) -> None:
    """Paragraph with **bold** spans rendered as bold runs."""
    p = doc.add_paragraph()
    for index, part in enumerate(_xml_safe(text).split("**")):
        if part:
            p.add_run(part).bold = index % 2 == 1


def _add_answer_key(doc: Document, section) -> None:
    doc.add_page_break()
    doc.add_heading(_xml_safe(section.title or "Answer Key"), level=1)
    for item in section.items:
        if isinstance(item, Question):
            doc.add_paragraph(_xml_safe(f"{item.number}. {item.answer or item.text}"))
        else:
            doc.add_paragraph().add_run(_xml_safe(item.text)).bold = True


def _field(instruction: str):
    field = OxmlElement("w:fldSimple")
    field.set(qn("w:instr"), instruction)
    field_run = OxmlElement("w:r")
    text = OxmlElement("w:t")
    text.text = "1"
    field_run.append(text)
    field.append(field_run)
    return field


def _add_footer(doc: Document, footer_text: str) -> None:
    footer = doc.sections[0].footer
    p = footer.paragraphs[0] if footer.paragraphs else footer.add_paragraph()
    p.alignment = WD_ALIGN_PARAGRAPH.CENTER
    p.add_run(_xml_safe(f"{footer_text} | Page "))
    p._p.append(_field("PAGE"))
    p.add_run(" of ")
    p._p.append(_field("NUMPAGES"))


def _add_title_block(doc: Document, model: TestDocumentModel, header: DocumentHeader) -> None:
    heading = doc.add_heading(_xml_safe(header.title or model.title or "Test"), 0)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER

    if model.subject:
        p_info = doc.add_paragraph()
        p_info.alignment = WD_ALIGN_PARAGRAPH.CENTER
        p_info.add_run(_xml_safe(f"Subject: {model.subject}")).bold = True

    description = header.description or model.description
    if description:
        p_desc = doc.add_paragraph(_xml_safe(description))
        p_desc.alignment = WD_ALIGN_PARAGRAPH.CENTER

    if model.instructions:
        doc.add_paragraph().add_run("Instructions").bold = True
        for line in model.instructions:
            doc.add_paragraph(_xml_safe(line), style='List Bullet')

    doc.add_paragraph("_" * 50).alignment = WD_ALIGN_PARAGRAPH.CENTER  # Divider


def render(model: TestDocumentModel, header: DocumentHeader) -> bytes:
    """
    Renders a parsed test to .docx bytes.

    Args:
        model: Parsed test document.
        header: Title, description and footer text for the document.

    Returns:
        The .docx file content. Word lays out the pages.
    """
    logger.info("[Publisher] Rendering '%s' (%s sections)", header.title, len(model.sections))
    doc = Document()

    core_properties = doc.core_properties
    core_properties.title = _xml_safe(header.title)
    core_properties.subject = _xml_safe(model.subject or "")

    style = doc.styles['Normal']
    style.font.size = Pt(12)

    _add_title_block(doc, model, header)

    for section in model.sections:
        kind = SectionKind(section.kind)
        if kind == SectionKind.ANSWER_KEY:
            _add_answer_key(doc, section)
            continue

        if section.title:
            doc.add_heading(_xml_safe(section.title), level=2)

        if kind == SectionKind.MATCHING:
            _add_matching(doc, section)
            continue

        for item in section.items:
            if isinstance(item, Paragraph):
                _add_rich_paragraph(doc, item.text)
                continue

            _add_question_line(doc, item)
            if kind == SectionKind.MCQ:
                _add_multiple_choice(doc, item)
            elif kind == SectionKind.TRUE_FALSE:
                _add_true_false(doc)
            elif kind == SectionKind.SHORT:
                _add_short_answer(doc)
            elif kind == SectionKind.LONG:
                _add_long_answer(doc)

    _add_footer(doc, header.footer_text)

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def render_to_document(model: TestDocumentModel, header: DocumentHeader, file_name: str) -> RenderedDocument:
    return RenderedDocument(
        file_name=file_name,
        media_type=DOCX_MEDIA_TYPE,
        content=render(model, header),
    )
