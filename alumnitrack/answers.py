"""
Answer Store - the user's in-progress answers, keyed by question id
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from alumnitrack.survey_schema import Question, QuestionType


def empty_answer(question: Question) -> Any:
    """Neutral value a question starts with"""
    if question.kind == QuestionType.MULTI_CHOICE:
        return []
    return ""


class AnswerStore:
    """
    Mutable mapping from question id to answer value.

    No validation happens here; see `alumnitrack.validation`.
    """

    def __init__(self, questions: Optional[Sequence[Question]] = None):
        self._questions: Tuple[Question, ...] = ()
        self._answers: Dict[str, Any] = {}
        if questions is not None:
            self.reset(questions)

    @property
    def questions(self) -> Tuple[Question, ...]:
        return self._questions

    def reset(self, questions: Sequence[Question]) -> None:
        """Start over with neutral answers for `questions`"""
        self._questions = tuple(questions)
        self._answers = {q.id: empty_answer(q) for q in self._questions}

    def load(self, questions: Sequence[Question]) -> bool:
        """Reset only if the question set changed; returns True on reset"""
        if tuple(questions) == self._questions and self._answers:
            return False
        self.reset(questions)
        return True

    def clear(self) -> None:
        self._questions = ()
        self._answers = {}

    def get(self, question_id: str, default: Any = None) -> Any:
        return self._answers.get(question_id, default)

    def set_answer(self, question_id: str, value: Any) -> None:
        self._answers[question_id] = value

    def toggle_option(self, question_id: str, option: str) -> List[str]:
        """Add `option` if absent, remove it if present"""
        current = self._answers.get(question_id)
        selected = list(current) if isinstance(current, list) else []
        if option in selected:
            selected = [opt for opt in selected if opt != option]
        else:
            selected.append(option)
        self._answers[question_id] = selected
        return selected

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the answers; lists are copied too"""
        return {
            qid: list(value) if isinstance(value, list) else value
            for qid, value in self._answers.items()
        }

    def __len__(self) -> int:
        return len(self._answers)

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._answers
