"""
Required-answer validation for survey questions
"""

from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from alumnitrack.survey_schema import Question, QuestionType


def _has_selection(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def _has_rating(value: Any) -> bool:
    # 0 counts as unanswered
    if not value or isinstance(value, bool):
        return False
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


def _has_text(value: Any) -> bool:
    return value is not None and value != ""


_PRESENCE_CHECKS: Dict[QuestionType, Callable[[Any], bool]] = {
    QuestionType.SHORT_TEXT: _has_text,
    QuestionType.LONG_TEXT: _has_text,
    QuestionType.SINGLE_CHOICE: _has_text,
    QuestionType.MULTI_CHOICE: _has_selection,
    QuestionType.RATING: _has_rating,
}


def is_answered(question: Question, value: Any) -> bool:
    """Whether `value` counts as an answer for `question`"""
    return _PRESENCE_CHECKS[question.kind](value)


def first_unmet_requirement(
    questions: Iterable[Question],
    answers: Mapping[str, Any]
) -> Optional[Question]:
    """Return the earliest required question without an answer, or None"""
    for question in questions:
        if not question.required:
            continue
        if not is_answered(question, answers.get(question.id)):
            return question
    return None


def missing_answer_message(question: Question) -> str:
    return f"Please answer: {question.text}"
