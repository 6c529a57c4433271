"""
Pytest Configuration & Shared Fixtures
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from testgen.schemas import ExtractedText, QuestionRequest, QuestionType, TestSpec

SAMPLE_GENERATED_TEST = """# Physics Midterm

**Subject**: Physics

---

**Instructions:**
- Answer all questions
- Duration: 60 minutes

---

**Section 1: Multiple Choice Questions**
**1.** What is 2+2? [1 points]
A) 3
B) 4
C) 5
D) 6
2) Which planet is closest to the Sun? [1 points]
A. Mercury
B. Venus
C. Earth
D. Mars

Section 2: True/False Questions
1. Light travels faster than sound. [1 point]
2. The Moon is a planet. (True/False) [1 point]

Section 3: Short Answer Questions
1. Define velocity. [2 points]

Section 4: Long Answer Questions
1. Explain Newton's three laws of motion. [5 points]

Section 5: Matching Questions
**Column A:**
1. Force [1 point]
2. Mass
3. Energy
**Column B:**
A. Newton
B. Kilogram
C. Joule

Answer Key
Section 1: Multiple Choice
1. B
2. A
Section 2: True/False
1. True
2. False
"""


@pytest.fixture
def sample_generated_test():
    """Raw model output covering every section kind."""
    return SAMPLE_GENERATED_TEST


@pytest.fixture
def mock_gemini_client(sample_generated_test):
    """Mock Gemini client to avoid real API calls."""
    client = MagicMock()
    response = MagicMock()
    response.text = sample_generated_test
    client.aio.models.generate_content = AsyncMock(return_value=response)
    return client


@pytest.fixture
def sample_spec():
    """Spec matching the sample generated test."""
    return TestSpec(
        title="Physics Midterm",
        subject="Physics",
        questions=[
            QuestionRequest(type=QuestionType.MCQ, quantity=2, difficulty="easy"),
            QuestionRequest(type=QuestionType.TRUE_FALSE, quantity=2, difficulty="easy"),
            QuestionRequest(type=QuestionType.SHORT, quantity=1, difficulty="medium"),
            QuestionRequest(type=QuestionType.LONG, quantity=1, difficulty="hard"),
            QuestionRequest(type=QuestionType.MATCHING, quantity=3, difficulty="medium"),
        ],
    )


@pytest.fixture
def sample_extracted():
    return ExtractedText(
        text="Chapter 1: Motion\n\nVelocity is the rate of change of position.",
        page_count=3,
        pages_read=3,
    )


@pytest.fixture
def sample_pdf_bytes():
    """A small real PDF built with PyMuPDF."""
    fitz = pytest.importorskip("fitz")
    doc = fitz.open()
    for number in range(1, 4):
        page = doc.new_page()
        page.insert_text((72, 72), f"Page {number}: Laws of motion.")
    data = doc.tobytes()
    doc.close()
    return data
