"""
Configuration Module for Test Gen
Centralizes environment variables, pipeline limits, and prompt templates.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# --- API Configuration ---
MODEL_NAME = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# --- Ingestion ---
# (max_pages, timeout_seconds) in strictly decreasing scope; None reads every page.
INGESTION_PROFILES = (
    (None, 25.0),
    (15, 20.0),
    (5, 15.0),
)
INGESTION_BUDGET_SECONDS = float(os.getenv("INGESTION_BUDGET_SECONDS", "60"))
MAX_STORED_CONTENT_LENGTH = 1_000_000

# --- Generation ---
MAX_PROMPT_CONTENT_LENGTH = int(os.getenv("MAX_PROMPT_CONTENT_LENGTH", "30000"))
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "55"))

# --- Rendering ---
FOOTER_TEXT = os.getenv("FOOTER_TEXT", "Generated with NotesNinja")
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def get_api_key() -> str:
    """
    Validates and returns the Gemini API Key.

    Raises:
        ValueError: If GEMINI_API_KEY is not found in environment.
    """
    # Load environment variables fresh (for testing and reload scenarios)
    load_dotenv()
    api_key = os.getenv("GEMINI_API_KEY")

    if not api_key:
        raise ValueError(
            "GEMINI_API_KEY not found. "
            "Please create a .env file with your API key."
        )
    return api_key


# --- Prompt Templates ---
PROMPT_TEMPLATES = {
    "test_creator": """You are an expert educational test creator. Create a professionally structured test following this specific format:

# {title}
## Subject: {subject}
{description_line}

---

## Instructions:
- Read all questions carefully before answering
- The test duration is {duration} minutes
- Write all answers in the designated spaces
- Total points: {total_points}

---

Based on the following educational content:

{content}{truncation_note}

Create the following sections:

{section_instructions}

Format requirements:
1. Every section MUST have a clear heading (e.g., "## Section 1: Multiple Choice Questions")
2. All questions MUST be numbered sequentially within their sections ("1. ", "2. ", ...)
3. Multiple choice options MUST use letters (A, B, C, D), one option per line, written as "A) option text"
4. Include a point value for each question in [brackets] at the end of the question (e.g., [2 points])
5. For MCQs, clearly mark the correct answer in the answer key section
6. For short answer questions, provide expected answers in the answer key section
7. For long answer questions, provide evaluation criteria or key points in the answer key section
8. Include a properly formatted answer key section at the end of the test, headed "## Answer Key", with correct question numbers and answers

The output MUST be formatted in clean, consistent markdown with proper spacing between sections.
""",
}


def get_prompt(template_name: str, **kwargs) -> str:
    """
    Retrieves a formatted prompt template.

    Args:
        template_name: Name of the template ("test_creator").
        **kwargs: Variables to format into the template.

    Returns:
        Formatted prompt string.

    Raises:
        KeyError: If template_name is not found in templates.
    """
    if template_name not in PROMPT_TEMPLATES:
        raise KeyError(f"Prompt template '{template_name}' not found.")

    return PROMPT_TEMPLATES[template_name].format(**kwargs)
