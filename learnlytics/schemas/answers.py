"""
learnlytics/schemas/answers.py
Pydantic schemas for answer events and the entities they reference

Inputs from the external data layer arrive camelCase (studentId,
timeTakenSeconds, ...); every model also accepts snake_case names.
Identifiers are opaque and always handled as strings.
"""
import json
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from learnlytics.empty_states import safe_percentage

OPTION_LETTERS = ['A', 'B', 'C', 'D', 'E', 'F', 'G', 'H']


def _coerce_id(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        text = str(value).strip()
        return text or None
    return value


class CamelModel(BaseModel):
    """Base model accepting camelCase aliases and snake_case field names"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Difficulty(str, Enum):
    """Question difficulty tier"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# ================= OPTION ENCODING =================

class LetterOptions(BaseModel):
    """Options stored as a letter-keyed object: {"A": "...", "B": "..."}"""
    kind: Literal["letters"] = "letters"
    options: Dict[str, str]

    def letter_map(self) -> Dict[str, str]:
        return {key.upper(): value for key, value in self.options.items()}

    def texts(self) -> List[str]:
        mapping = self.letter_map()
        return [mapping[key] for key in OPTION_LETTERS if key in mapping]


class TextArrayOptions(BaseModel):
    """Options stored as a plain array; A maps to index 0, B to index 1, ..."""
    kind: Literal["text_array"] = "text_array"
    options: List[str]

    def letter_map(self) -> Dict[str, str]:
        return {OPTION_LETTERS[idx]: text for idx, text in enumerate(self.options[:len(OPTION_LETTERS)])}

    def texts(self) -> List[str]:
        return list(self.options)


OptionEncoding = Annotated[Union[LetterOptions, TextArrayOptions], Field(discriminator="kind")]


def coerce_option_encoding(raw: Any) -> Any:
    """
    Turn the raw `options` column into a tagged OptionEncoding payload.

    Accepts a JSON string, an array, a letter-keyed object, or an
    already-tagged value. Anything unparseable becomes None.
    """
    if raw is None:
        return None
    if isinstance(raw, (LetterOptions, TextArrayOptions)):
        return raw.model_dump()
    parsed = raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return None
    if isinstance(parsed, dict) and parsed.get("kind") in ("letters", "text_array"):
        return parsed
    if isinstance(parsed, list):
        return {"kind": "text_array", "options": [str(opt) for opt in parsed]}
    if isinstance(parsed, dict):
        return {
            "kind": "letters",
            "options": {
                str(key).upper(): str(value)
                for key, value in parsed.items()
                if str(key).upper() in OPTION_LETTERS
            }
        }
    return None


# ================= ENTITIES =================

class Question(CamelModel):
    """Supplied, read-only question definition"""
    id: str
    topic_id: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    correct_answer: str = ""
    options: Optional[OptionEncoding] = None
    text: Optional[str] = None

    @field_validator("id", "topic_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value):
        return _coerce_id(value)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _normalize_difficulty(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return value if value in {d.value for d in Difficulty} else None
        return value

    @field_validator("options", mode="before")
    @classmethod
    def _parse_options(cls, value):
        return coerce_option_encoding(value)

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _correct_answer_text(cls, value):
        return "" if value is None else str(value)


class RawAnswerRecord(CamelModel):
    """
    Answer record as produced by the data layer.

    Everything is optional here; the normalizer decides what is usable.
    """
    student_id: Optional[str] = None
    question_id: Optional[str] = None
    quiz_id: Optional[str] = None
    topic_id: Optional[str] = None
    selected_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    time_taken_seconds: Optional[float] = None

    @field_validator("student_id", "question_id", "quiz_id", "topic_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value):
        return _coerce_id(value)

    @field_validator("selected_answer", mode="before")
    @classmethod
    def _selected_as_text(cls, value):
        return None if value is None else str(value)


class Answer(CamelModel):
    """Canonical, immutable answer: one per (student, question, quiz) attempt"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    student_id: str
    question_id: str
    topic_id: str
    quiz_id: str
    is_correct: bool
    time_taken_seconds: float = Field(0.0, ge=0, allow_inf_nan=False)
    selected_answer: Optional[str] = None


class QuizResult(CamelModel):
    """One student's graded submission of a quiz"""
    student_id: str
    quiz_id: str
    score: int = Field(..., ge=0)
    max_score: int = Field(..., ge=0)
    time_taken_seconds: Optional[float] = Field(None, ge=0, allow_inf_nan=False)

    @field_validator("student_id", "quiz_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value):
        return _coerce_id(value)

    @property
    def percentage(self) -> int:
        return safe_percentage(self.score, self.max_score)


class TopicRef(CamelModel):
    """Opaque topic identifier with its display name and owning course"""
    id: str
    name: str
    course_id: Optional[str] = None
    course_name: Optional[str] = None

    @field_validator("id", "course_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value):
        return _coerce_id(value)


class StudentProfile(CamelModel):
    """Student identity as needed by reports"""
    id: str
    name: str = ""
    learner_tag: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _ids_as_text(cls, value):
        return _coerce_id(value)


class AnalyticsScope(CamelModel):
    """
    A quiz, a topic, a course, and/or a set of students.

    Every filter that is set must match.
    """
    quiz_id: Optional[str] = None
    topic_id: Optional[str] = None
    course_id: Optional[str] = None
    student_ids: Optional[List[str]] = None

    @field_validator("quiz_id", "topic_id", "course_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value):
        return _coerce_id(value)

    @field_validator("student_ids", mode="before")
    @classmethod
    def _student_ids_as_text(cls, value):
        if value is None:
            return None
        return [_coerce_id(v) for v in value]

    def describe(self) -> str:
        parts = []
        if self.quiz_id:
            parts.append(f"quiz={self.quiz_id}")
        if self.topic_id:
            parts.append(f"topic={self.topic_id}")
        if self.course_id:
            parts.append(f"course={self.course_id}")
        if self.student_ids is not None:
            parts.append(f"students={len(self.student_ids)}")
        return "scope(" + ", ".join(parts) + ")" if parts else "scope(all)"
