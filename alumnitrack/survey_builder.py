"""
Survey builder - drafts that admins create or edit before saving

Choice options are edited as newline separated text and only cleaned when
the draft is turned into an API payload.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from alumnitrack.exceptions import SurveyDefinitionError
from alumnitrack.survey_schema import Audience, QuestionType, SurveyStatus, resolve_type


def clean_options(options_text: str) -> List[str]:
    """One option per non-blank line, trimmed"""
    return [line.strip() for line in str(options_text or "").split("\n") if line.strip()]


@dataclass
class QuestionDraft:
    text: str = ""
    type: str = QuestionType.SHORT_TEXT.value
    required: bool = False
    options_text: str = ""
    id: Optional[str] = None

    @property
    def is_choice(self) -> bool:
        return resolve_type(self.type).is_choice

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "text": self.text,
            "type": self.type,
            "required": bool(self.required),
            "options": clean_options(self.options_text) if self.is_choice else [],
        }
        if self.id:
            payload["_id"] = self.id
        return payload


@dataclass
class SurveyDraft:
    title: str = ""
    description: str = ""
    audience: str = Audience.ALL.value
    status: str = SurveyStatus.DRAFT.value
    questions: List[QuestionDraft] = field(default_factory=lambda: [QuestionDraft()])

    @property
    def is_active(self) -> bool:
        return self.status == SurveyStatus.ACTIVE.value

    def add_question(self, question: Optional[QuestionDraft] = None) -> QuestionDraft:
        question = question or QuestionDraft()
        self.questions.append(question)
        return question

    def remove_question(self, index: int) -> None:
        """Remove a question; an empty draft gets one blank question back"""
        del self.questions[index]
        if not self.questions:
            self.questions.append(QuestionDraft())

    def update_question(self, index: int, **changes: Any) -> QuestionDraft:
        question = self.questions[index]
        for key, value in changes.items():
            if not hasattr(question, key):
                raise SurveyDefinitionError(f"Unknown question field: {key}")
            setattr(question, key, value)
        return question

    def validate(self) -> None:
        if not self.title.strip():
            raise SurveyDefinitionError("Survey title is required")
        for number, question in enumerate(self.questions, start=1):
            if not question.text.strip():
                raise SurveyDefinitionError(f"Question {number} has no text")
            if question.is_choice and not clean_options(question.options_text):
                raise SurveyDefinitionError(f"Question {number} needs at least one option")

    def to_payload(self) -> Dict[str, Any]:
        audience = str(self.audience or "").lower()
        if audience not in {a.value for a in Audience}:
            audience = Audience.ALL.value
        return {
            "title": self.title,
            "description": self.description,
            "audience": audience,
            "status": SurveyStatus.ACTIVE.value if self.is_active else SurveyStatus.DRAFT.value,
            "questions": [q.to_payload() for q in self.questions],
        }

    @classmethod
    def from_survey(cls, data: Dict[str, Any]) -> "SurveyDraft":
        """Hydrate a draft from a survey returned by the API"""
        raw_questions = data.get("questions") if isinstance(data.get("questions"), list) else []
        questions = []
        for raw in raw_questions:
            if not isinstance(raw, dict):
                continue
            options = raw.get("options") if isinstance(raw.get("options"), list) else []
            questions.append(QuestionDraft(
                id=raw.get("_id") or raw.get("id"),
                text=raw.get("text") or "",
                type=str(raw.get("type") or QuestionType.SHORT_TEXT.value).lower(),
                required=bool(raw.get("required")),
                options_text="\n".join(str(opt) for opt in options),
            ))
        return cls(
            title=data.get("title") or "",
            description=data.get("description") or "",
            audience=str(data.get("audience") or Audience.ALL.value).lower(),
            status=str(data.get("status") or SurveyStatus.DRAFT.value).lower(),
            questions=questions or [QuestionDraft()],
        )


def load_draft_file(path: str) -> SurveyDraft:
    """
    Read a survey definition from JSON.

    Options may be given as a list or as newline separated text:

        {"title": "Alumni outcomes", "audience": "alumni", "status": "active",
         "questions": [{"text": "Employed?", "type": "multiple_choice",
                        "options": ["Yes", "No"], "required": true}]}
    """
    file_path = Path(path)
    try:
        with open(file_path, 'r') as f:
            data = json.load(f)
    except OSError as e:
        raise SurveyDefinitionError(f"Cannot read {file_path}: {e}")
    except json.JSONDecodeError as e:
        raise SurveyDefinitionError(f"Invalid JSON in {file_path}: {e}")

    if not isinstance(data, dict):
        raise SurveyDefinitionError("Survey definition must be a JSON object")

    for question in data.get("questions") or []:
        if isinstance(question, dict) and isinstance(question.get("options_text"), str):
            question["options"] = clean_options(question["options_text"])

    draft = SurveyDraft.from_survey(data)
    draft.validate()
    return draft
