"""
Test Spec Compiler
Turns a structured question configuration into a tightly constrained generation prompt.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from testgen.config import get_prompt
from testgen.schemas import QuestionRequest, QuestionType, TestSpec

POINT_SCALE: Dict[QuestionType, int] = {
    QuestionType.MCQ: 1,
    QuestionType.TRUE_FALSE: 1,
    QuestionType.MATCHING: 1,
    QuestionType.SHORT: 2,
    QuestionType.LONG: 5,
}

TYPE_LABELS: Dict[QuestionType, str] = {
    QuestionType.MCQ: "Multiple Choice",
    QuestionType.TRUE_FALSE: "True/False",
    QuestionType.SHORT: "Short Answer",
    QuestionType.LONG: "Long Answer",
    QuestionType.MATCHING: "Matching",
}

# Sections are emitted in this order regardless of request order.
SECTION_ORDER = (
    QuestionType.MCQ,
    QuestionType.TRUE_FALSE,
    QuestionType.SHORT,
    QuestionType.LONG,
    QuestionType.MATCHING,
)

_TYPE_RULES: Dict[QuestionType, List[str]] = {
    QuestionType.MCQ: ["Each question must have exactly 4 options (A, B, C, D)"],
    QuestionType.TRUE_FALSE: ["Indicate whether each statement is True or False"],
    QuestionType.SHORT: ["Answer each question in 1-3 sentences"],
    QuestionType.LONG: ["Answer each question in a detailed paragraph"],
    QuestionType.MATCHING: [
        "Match items from Column A with their corresponding items in Column B",
        "Number Column A items (1., 2., ...) and letter Column B items (A., B., ...)",
    ],
}

DEFAULT_DURATION_MINUTES = 60


@dataclass
class SectionPlan:
    """Aggregated request for one question type."""
    type: QuestionType
    quantity: int = 0
    difficulties: List[str] = field(default_factory=list)

    @property
    def points_each(self) -> int:
        return POINT_SCALE[self.type]


def aggregate_questions(questions: Iterable[QuestionRequest]) -> List[SectionPlan]:
    """Sum quantities and collect distinct difficulties per question type."""
    plans: Dict[QuestionType, SectionPlan] = {}
    for request in questions:
        plan = plans.setdefault(request.type, SectionPlan(type=request.type))
        plan.quantity += request.quantity
        difficulty = request.difficulty.strip().lower()
        if difficulty not in plan.difficulties:
            plan.difficulties.append(difficulty)
    return [plans[t] for t in SECTION_ORDER if t in plans and plans[t].quantity > 0]


def total_points(questions: Iterable[QuestionRequest]) -> int:
    return sum(q.quantity * POINT_SCALE[q.type] for q in questions)


def section_heading(number: int, plan: SectionPlan) -> str:
    return f"## Section {number}: {TYPE_LABELS[plan.type]} Questions"


def build_section_instructions(plans: List[SectionPlan]) -> str:
    blocks = []
    for number, plan in enumerate(plans, start=1):
        unit = "match" if plan.type == QuestionType.MATCHING else "question"
        plural = "s" if plan.points_each != 1 else ""
        lines = [
            f"{section_heading(number, plan)} "
            f"({plan.quantity} questions, {'/'.join(plan.difficulties)} difficulty)",
            *(f"- {rule}" for rule in _TYPE_RULES[plan.type]),
            f"- Each {unit} is worth {plan.points_each} point{plural}; "
            f"write it as [{plan.points_each} point{plural}]",
        ]
        blocks.append("\n".join(lines))

    blocks.append(
        "## Answer Key\n"
        "- Include answers for all questions and evaluation criteria for long-form questions\n"
        "- Number answers exactly like the questions they belong to"
    )
    return "\n\n".join(blocks)


def compile_prompt(spec: TestSpec, source_text: str, truncated: bool = False) -> str:
    """
    Build the generation prompt for a test.

    Args:
        spec: Requested title, subject and question mix.
        source_text: Bounded source content.
        truncated: Whether ``source_text`` is only part of the original document.

    Returns:
        Prompt text embedding the structural rules the parser relies on.
    """
    plans = aggregate_questions(spec.questions)
    return get_prompt(
        "test_creator",
        title=spec.title,
        subject=spec.subject or "General",
        description_line=f"**Description**: {spec.description}" if spec.description else "",
        duration=DEFAULT_DURATION_MINUTES,
        total_points=total_points(spec.questions),
        content=source_text,
        truncation_note=" ...(content summarized from a larger document)" if truncated else "",
        section_instructions=build_section_instructions(plans),
    )
