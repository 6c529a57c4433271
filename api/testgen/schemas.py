"""
Data Schemas for Test Gen
Pydantic models for type-safe data validation across the pipeline.
"""
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class QuestionType(str, Enum):
    """Question types an instructor can request."""
    MCQ = "mcq"
    SHORT = "short"
    LONG = "long"
    TRUE_FALSE = "true_false"
    MATCHING = "matching"


class SectionKind(str, Enum):
    """Closed set of section kinds recognised in generated tests."""
    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    SHORT = "short"
    LONG = "long"
    MATCHING = "matching"
    ANSWER_KEY = "answer_key"
    GENERIC = "generic"


class ProcessingStatus(str, Enum):
    """Ingestion lifecycle of a source material."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# --- Ingestion ---

class SourceDocument(BaseModel):
    """Raw bytes fetched from the object store."""
    content: bytes
    media_type: str = "application/pdf"

    @computed_field
    @property
    def size(self) -> int:
        return len(self.content)


class ExtractedText(BaseModel):
    """Plain text produced by one ingestion call."""
    model_config = ConfigDict(frozen=True)

    text: str
    page_count: int = Field(..., ge=0, description="True page count of the source")
    pages_read: int = Field(..., ge=0)
    truncated: bool = False


class Material(BaseModel):
    """Metadata-store record for an uploaded material."""
    id: str
    title: str
    file_url: str
    media_type: str = "application/pdf"
    status: ProcessingStatus = ProcessingStatus.PENDING
    extracted: Optional[ExtractedText] = None


# --- Test configuration ---

class QuestionRequest(BaseModel):
    """One line of the requested question mix."""
    type: QuestionType
    quantity: int = Field(..., gt=0)
    difficulty: str = Field("medium", min_length=1)


class TestSpec(BaseModel):
    """Structured configuration describing the requested test."""
    __test__ = False  # keep pytest from collecting this class

    title: str = Field(..., min_length=1)
    subject: str = ""
    description: Optional[str] = None
    questions: List[QuestionRequest] = Field(..., min_length=1)


class GeneratedTestDocument(BaseModel):
    """Model output before and after normalization."""
    raw_text: str
    normalized_text: str


# --- Parsed test document ---

class Option(BaseModel):
    """Represents a single answer option in a multiple-choice question."""
    label: str = Field(..., description="Option label (A., B., C., D.)")
    text: str = Field("", description="The answer text")


class Question(BaseModel):
    item_type: Literal["question"] = "question"
    number: int = Field(..., description="Question number as written in the source")
    text: str
    points: Optional[int] = None
    options: Optional[List[Option]] = None
    answer: Optional[str] = None


class Paragraph(BaseModel):
    item_type: Literal["paragraph"] = "paragraph"
    text: str


Item = Annotated[Union[Question, Paragraph], Field(discriminator="item_type")]


class QuestionSection(BaseModel):
    """Section whose items are individually numbered questions."""
    kind: Literal["mcq", "true_false", "short", "long"]
    title: str
    items: List[Question] = Field(default_factory=list)


class MatchingLeftItem(BaseModel):
    number: int
    text: str


class MatchingSection(BaseModel):
    """
    Matching exercise kept as a single flowing block.

    Column alignment cannot be recovered reliably from flowing text, so only
    the numbered left-hand lines (and any lettered right-hand lines) are
    detected for the renderer's skeleton.
    """
    kind: Literal["matching"] = "matching"
    title: str
    items: List[Paragraph] = Field(default_factory=list)
    left_items: List[MatchingLeftItem] = Field(default_factory=list)
    right_items: List[Option] = Field(default_factory=list, description="Right-hand stubs with the letters the model wrote")
    points_per_match: int = 1


class AnswerKeySection(BaseModel):
    kind: Literal["answer_key"] = "answer_key"
    title: str
    items: List[Item] = Field(default_factory=list)


class GenericSection(BaseModel):
    kind: Literal["generic"] = "generic"
    title: str = ""
    items: List[Paragraph] = Field(default_factory=list)


Section = Annotated[
    Union[QuestionSection, MatchingSection, AnswerKeySection, GenericSection],
    Field(discriminator="kind"),
]


class TestDocumentModel(BaseModel):
    """Typed view of a generated test, ready for rendering."""
    __test__ = False

    title: Optional[str] = None
    subject: Optional[str] = None
    description: Optional[str] = None
    instructions: List[str] = Field(default_factory=list)
    sections: List[Section] = Field(..., min_length=1)


# --- Rendering ---

class DocumentHeader(BaseModel):
    title: str
    description: Optional[str] = None
    footer_text: str = "Generated with NotesNinja"


class RenderedDocument(BaseModel):
    file_name: str
    media_type: str
    content: bytes


# --- API payloads ---

class MaterialCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    file_url: str = Field(..., min_length=1)
    media_type: str = "application/pdf"


class GenerateTestRequest(BaseModel):
    material_id: str
    test_config: TestSpec


class RenderTestRequest(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    content: str
    file_name: str = "test.docx"
