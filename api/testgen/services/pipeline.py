"""
Pipeline Orchestration
Runs the per-request stages in order: ingest, summarize, compile, generate,
normalize, parse, render.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional

from google import genai

from testgen.config import FOOTER_TEXT, INGESTION_BUDGET_SECONDS, MAX_PROMPT_CONTENT_LENGTH
from testgen.errors import ContentNotReadyError, IngestionError, MaterialNotFoundError
from testgen.schemas import (
    DocumentHeader,
    GeneratedTestDocument,
    Material,
    MatchingSection,
    ProcessingStatus,
    QuestionSection,
    QuestionType,
    RenderedDocument,
    TestDocumentModel,
    TestSpec,
)
from testgen.services import ai_engine, doc_generator, ingestor, normalizer, spec_compiler, summarizer, test_parser
from testgen.store import MaterialStore

logger = logging.getLogger(__name__)


@dataclass
class GeneratedTest:
    document: GeneratedTestDocument
    model: TestDocumentModel
    total_points: int
    warnings: List[str] = field(default_factory=list)


async def ingest_material(
    material_id: str,
    store: MaterialStore,
    overall_budget: Optional[float] = INGESTION_BUDGET_SECONDS,
) -> Material:
    """
    Extract text for a stored material and record the outcome.

    Status moves PENDING/FAILED -> PROCESSING -> COMPLETED, or FAILED when
    every ingestion attempt fails (the IngestionError is re-raised).
    """
    material = store.get(material_id)
    if material is None:
        raise MaterialNotFoundError(f"Material '{material_id}' not found")

    store.set_status(material_id, ProcessingStatus.PROCESSING)
    try:
        extracted = await ingestor.ingest(material.file_url, overall_budget=overall_budget)
    except IngestionError as e:
        logger.warning("Ingestion failed for material %s: %s", material_id, e.code)
        store.set_status(material_id, ProcessingStatus.FAILED)
        raise

    return store.save_extracted(material_id, extracted)


def quantity_discrepancies(spec: TestSpec, model: TestDocumentModel) -> List[str]:
    """Warnings for question types whose parsed count differs from the request."""
    recovered: Counter = Counter()
    for section in model.sections:
        if isinstance(section, QuestionSection):
            recovered[section.kind] += len(section.items)
        elif isinstance(section, MatchingSection):
            recovered[section.kind] += len(section.left_items)

    warnings = []
    plans = spec_compiler.aggregate_questions(spec.questions)
    for plan in plans:
        found = recovered[plan.type.value]
        if found != plan.quantity:
            label = spec_compiler.TYPE_LABELS[plan.type]
            warnings.append(f"Requested {plan.quantity} {label} questions but found {found}.")

    requested = {plan.type.value for plan in plans}
    for kind, found in recovered.items():
        if kind not in requested and found:
            label = spec_compiler.TYPE_LABELS[QuestionType(kind)]
            warnings.append(f"Found {found} {label} questions that were not requested.")
    for warning in warnings:
        logger.warning("%s", warning)
    return warnings


async def generate_test_content(
    material: Material,
    spec: TestSpec,
    client: Optional[genai.Client] = None,
) -> GeneratedTest:
    """
    Generate a test from a material's extracted text.

    Raises:
        ContentNotReadyError: If the material has not been parsed successfully.
        GenerationTimeout, GenerationError: From the model call.
    """
    extracted = material.extracted
    if material.status != ProcessingStatus.COMPLETED or extracted is None:
        raise ContentNotReadyError(
            f"Material '{material.id}' content is not parsed yet (status {material.status.value})"
        )

    source = summarizer.summarize(extracted.text, MAX_PROMPT_CONTENT_LENGTH)
    truncated = extracted.truncated or len(source) < len(extracted.text)
    prompt = spec_compiler.compile_prompt(spec, source, truncated=truncated)

    raw_text = await ai_engine.generate(prompt, client=client)
    document = GeneratedTestDocument(raw_text=raw_text, normalized_text=normalizer.normalize(raw_text))

    model = test_parser.parse(document.normalized_text)
    return GeneratedTest(
        document=document,
        model=model,
        total_points=spec_compiler.total_points(spec.questions),
        warnings=quantity_discrepancies(spec, model),
    )


def render_test(
    title: str,
    content: str,
    description: Optional[str] = None,
    file_name: str = "test.docx",
) -> RenderedDocument:
    """Normalize, parse and render edited test markdown to a .docx document."""
    model = test_parser.parse(normalizer.normalize(content))
    header = DocumentHeader(title=title, description=description, footer_text=FOOTER_TEXT)
    return doc_generator.render_to_document(model, header, file_name)
