"""
Survey schema normalization

Raw survey definitions from the API are loose: question ids may be `_id`,
`id` or `key`, types come in several spellings and options or scale may be
missing. `normalize_questions` turns them into an ordered list of
`Question` records with every default filled in. It is pure and
idempotent, so normalizing an already-normalized list changes nothing.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


DEFAULT_SCALE_MAX = 5


class QuestionType(str, Enum):
    """Canonical question kinds (values are what the survey builder writes)"""
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    SINGLE_CHOICE = "multiple_choice"
    MULTI_CHOICE = "checkbox"
    RATING = "rating"

    @property
    def is_choice(self) -> bool:
        return self in (QuestionType.SINGLE_CHOICE, QuestionType.MULTI_CHOICE)


class Audience(str, Enum):
    ALL = "all"
    STUDENTS = "students"
    ALUMNI = "alumni"


class SurveyStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"


# Every spelling seen in survey definitions, mapped to its canonical kind
TYPE_ALIASES: Dict[str, QuestionType] = {
    "": QuestionType.SHORT_TEXT,
    "text": QuestionType.SHORT_TEXT,
    "short": QuestionType.SHORT_TEXT,
    "short_text": QuestionType.SHORT_TEXT,

    "textarea": QuestionType.LONG_TEXT,
    "essay": QuestionType.LONG_TEXT,
    "paragraph": QuestionType.LONG_TEXT,
    "short_essay": QuestionType.LONG_TEXT,
    "long_text": QuestionType.LONG_TEXT,

    "radio": QuestionType.SINGLE_CHOICE,
    "choice": QuestionType.SINGLE_CHOICE,
    "single": QuestionType.SINGLE_CHOICE,
    "single_choice": QuestionType.SINGLE_CHOICE,
    "multiple_choice": QuestionType.SINGLE_CHOICE,

    "checkbox": QuestionType.MULTI_CHOICE,
    "multi": QuestionType.MULTI_CHOICE,
    "multi_choice": QuestionType.MULTI_CHOICE,

    "rating": QuestionType.RATING,
}


def resolve_type(raw_type: Any) -> QuestionType:
    """Map a raw type string to its kind; unknown spellings are short text"""
    key = str(raw_type or "").strip().lower()
    return TYPE_ALIASES.get(key, QuestionType.SHORT_TEXT)


@dataclass(frozen=True)
class Question:
    """A normalized survey question"""
    id: str
    text: str
    kind: QuestionType
    raw_type: str = ""
    options: Tuple[str, ...] = ()
    required: bool = False
    scale_max: int = DEFAULT_SCALE_MAX
    order: float = 0

    @property
    def type(self) -> str:
        """Wire name of the question kind"""
        return self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.raw_type or self.kind.value,
            "options": list(self.options),
            "required": self.required,
            "scaleMax": self.scale_max,
            "order": self.order,
        }


def _as_order(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    return int(number) if number.is_integer() else number


def _as_scale_max(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_SCALE_MAX
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SCALE_MAX
    if not number > 0:
        return DEFAULT_SCALE_MAX
    return max(1, int(number))


def _first_present(raw: Dict[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _normalize_one(raw: Union[Dict[str, Any], Question], index: int) -> Question:
    if isinstance(raw, Question):
        raw = raw.to_dict()
    elif not isinstance(raw, dict):
        raw = {}

    raw_type = str(raw.get("type") or "").strip().lower()
    kind = resolve_type(raw_type)

    qid = _first_present(raw, "_id", "id", "key")
    text = _first_present(raw, "text", "label")

    options: Tuple[str, ...] = ()
    if kind.is_choice and isinstance(raw.get("options"), (list, tuple)):
        options = tuple(str(opt) for opt in raw["options"])

    return Question(
        id=str(qid) if qid is not None else f"q{index}",
        text=str(text) if text is not None else f"Question {index + 1}",
        kind=kind,
        raw_type=raw_type,
        options=options,
        required=bool(raw.get("required", False)),
        scale_max=_as_scale_max(raw.get("scaleMax", raw.get("scale_max"))),
        order=_as_order(raw.get("order")),
    )


def normalize_questions(raw_questions: Any) -> List[Question]:
    """Return the questions sorted by `order` (stable) with defaults applied"""
    if not isinstance(raw_questions, (list, tuple)):
        return []

    def order_of(item: Any) -> float:
        if isinstance(item, Question):
            return item.order
        if isinstance(item, dict):
            return _as_order(item.get("order"))
        return 0

    ordered = sorted(raw_questions, key=order_of)
    return [_normalize_one(raw, idx) for idx, raw in enumerate(ordered)]


@dataclass(frozen=True)
class SurveyStub:
    """Minimal survey record returned by the eligibility query"""
    id: str
    title: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SurveyStub":
        sid = _first_present(data, "_id", "id")
        if sid is None:
            raise ValueError("survey record has no id")
        return cls(
            id=str(sid),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
        )


@dataclass
class Survey:
    """A full survey definition"""
    id: str
    title: str
    description: str = ""
    questions: List[Question] = field(default_factory=list)
    audience: Audience = Audience.ALL
    status: SurveyStatus = SurveyStatus.DRAFT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Survey":
        sid = _first_present(data, "_id", "id")
        audience = str(data.get("audience") or "all").lower()
        status = str(data.get("status") or "draft").lower()
        return cls(
            id=str(sid) if sid is not None else "",
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            questions=normalize_questions(data.get("questions")),
            audience=Audience(audience) if audience in {a.value for a in Audience} else Audience.ALL,
            status=SurveyStatus.ACTIVE if status == "active" else SurveyStatus.DRAFT,
        )

    @classmethod
    def coerce(cls, survey: Union["Survey", Dict[str, Any]]) -> "Survey":
        if isinstance(survey, Survey):
            return survey
        return cls.from_dict(survey)
