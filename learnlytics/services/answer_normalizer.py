"""
learnlytics/services/answer_normalizer.py
Answer Normalizer

Turns raw answer records from the data layer into canonical Answer
entities.

RULES:
- Null time_taken_seconds becomes 0; infinite times are malformed
- Letter answers ("A".."H") resolve to option text through the
  question's OptionEncoding; unmapped letters resolve to themselves
- Records without a question_id, or whose question is unknown, are
  reported as MalformedAnswerError and skipped
- Duplicate (student, question, quiz) attempts keep the first record

Pure function: no I/O, no state kept between calls.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from pydantic import ValidationError

from learnlytics.empty_states import safe_float
from learnlytics.exceptions import MalformedAnswerError
from learnlytics.schemas.answers import Answer, Question, RawAnswerRecord

logger = logging.getLogger(__name__)

LETTER_PATTERN = re.compile(r"^[A-Ha-h]$")

UNCATEGORIZED_TOPIC = "uncategorized"


@dataclass
class NormalizationResult:
    """Valid answers plus one error per rejected record"""
    answers: List[Answer] = field(default_factory=list)
    errors: List[MalformedAnswerError] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.errors)


def resolve_letter(value: Optional[str], question: Optional[Question]) -> Optional[str]:
    """
    Resolve a letter-encoded answer to literal option text.

    Literal text passes through unchanged.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not LETTER_PATTERN.match(text):
        return text
    if question is None or question.options is None:
        return text
    return question.options.letter_map().get(text.upper(), text)


def _index_questions(questions: Union[Mapping[str, Question], Iterable[Question]]) -> Dict[str, Question]:
    if isinstance(questions, Mapping):
        return {str(key): value for key, value in questions.items()}
    return {q.id: q for q in questions}


def normalize_answer(
    raw: Union[RawAnswerRecord, Dict[str, Any]],
    questions: Dict[str, Question],
    record_index: Optional[int] = None
) -> Answer:
    """
    Normalize one raw record.

    Raises:
        MalformedAnswerError: the record cannot be matched to a known question
            or lacks the identifiers an Answer needs.
    """
    if not isinstance(raw, RawAnswerRecord):
        try:
            raw = RawAnswerRecord.model_validate(raw)
        except ValidationError as e:
            raise MalformedAnswerError(f"invalid record shape: {e.error_count()} error(s)", record_index)

    if not raw.question_id:
        raise MalformedAnswerError("missing question_id", record_index)

    question = questions.get(raw.question_id)
    if question is None:
        raise MalformedAnswerError("unknown question", record_index, raw.question_id)

    if not raw.student_id:
        raise MalformedAnswerError("missing student_id", record_index, raw.question_id)
    if not raw.quiz_id:
        raise MalformedAnswerError("missing quiz_id", record_index, raw.question_id)

    selected = resolve_letter(raw.selected_answer, question)

    is_correct = raw.is_correct
    if is_correct is None:
        # Derive correctness from resolved texts when the data layer did not grade it
        expected = resolve_letter(question.correct_answer, question)
        is_correct = selected is not None and selected == expected

    time_taken = max(0.0, safe_float(raw.time_taken_seconds))
    if not math.isfinite(time_taken):
        raise MalformedAnswerError("non-finite time_taken_seconds", record_index, raw.question_id)

    return Answer(
        student_id=raw.student_id,
        question_id=raw.question_id,
        topic_id=raw.topic_id or question.topic_id or UNCATEGORIZED_TOPIC,
        quiz_id=raw.quiz_id,
        is_correct=bool(is_correct),
        time_taken_seconds=time_taken,
        selected_answer=selected
    )


def normalize_answers(
    records: Iterable[Union[RawAnswerRecord, Dict[str, Any]]],
    questions: Union[Mapping[str, Question], Iterable[Question]],
    strict: bool = False
) -> NormalizationResult:
    """
    Normalize a batch of raw records.

    Malformed records are collected on the result and skipped; with
    strict=True the first one is raised instead.
    """
    question_index = _index_questions(questions)
    result = NormalizationResult()
    seen: Set[Tuple[str, str, str]] = set()

    for idx, raw in enumerate(records):
        try:
            answer = normalize_answer(raw, question_index, record_index=idx)
            key = (answer.student_id, answer.question_id, answer.quiz_id)
            if key in seen:
                raise MalformedAnswerError("duplicate attempt", idx, answer.question_id)
            seen.add(key)
            result.answers.append(answer)
        except MalformedAnswerError as e:
            if strict:
                raise
            logger.warning(f"[NORMALIZER] Skipping record: {e.message}")
            result.errors.append(e)

    logger.info(
        f"[NORMALIZER] Normalized {len(result.answers)} answer(s), "
        f"skipped {result.skipped}"
    )
    return result
