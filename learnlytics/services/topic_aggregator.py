"""
learnlytics/services/topic_aggregator.py
Topic Aggregator

Folds normalized answers into:
- TopicPerformance per (student, topic)
- ClassTopicStats per topic across every student in scope
- QuestionStats per question across every student

CALCULATION RULES:
==================
- accuracy = round(100 * correct / total), half-up; total=0 -> 0
- avg time = arithmetic mean of time_taken_seconds, rounded to the
  nearest second (nulls were already coerced to 0 by the normalizer)
- class average = rounded mean of the unrounded per-student percentages

Pure functions: same input, same output, no side effects.
"""
import logging
import re
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from learnlytics.empty_states import round_half_up, safe_percentage, safe_rounded_average
from learnlytics.exceptions import EmptyScopeError
from learnlytics.schemas.analytics import (
    ClassTopicStats,
    QuestionStats,
    SubjectPerformance,
    TopicPerformance,
)
from learnlytics.schemas.answers import Answer, TopicRef
from learnlytics.services.insight_classifier import InsightClassifier
from learnlytics.services.ranking_service import RankingService

logger = logging.getLogger(__name__)


class _Tally:
    __slots__ = ("correct", "total", "times")

    def __init__(self):
        self.correct = 0
        self.total = 0
        self.times: List[float] = []

    def add(self, answer: Answer) -> None:
        self.total += 1
        if answer.is_correct:
            self.correct += 1
        self.times.append(answer.time_taken_seconds)


def _group(answers: Iterable[Answer], key) -> "OrderedDict":
    groups: "OrderedDict" = OrderedDict()
    for answer in answers:
        k = key(answer)
        if k not in groups:
            groups[k] = _Tally()
        groups[k].add(answer)
    return groups


def _to_performance(student_id: str, topic_id: str, tally: _Tally,
                    topic_names: Optional[Mapping[str, str]]) -> TopicPerformance:
    return TopicPerformance(
        student_id=student_id,
        topic_id=topic_id,
        topic_name=(topic_names or {}).get(topic_id),
        correct=tally.correct,
        total=tally.total,
        accuracy=safe_percentage(tally.correct, tally.total),
        avg_time_taken_seconds=safe_rounded_average(tally.times)
    )


# ================= PER STUDENT =================

def aggregate_student_topics(
    answers: Iterable[Answer],
    topic_names: Optional[Mapping[str, str]] = None,
    student_id: Optional[str] = None
) -> List[TopicPerformance]:
    """
    TopicPerformance rows for every (student, topic) present in answers.

    Rows follow the first appearance of each pair in the input. Pass
    student_id to restrict the result to a single student.
    """
    selected = [a for a in answers if student_id is None or a.student_id == str(student_id)]
    groups = _group(selected, lambda a: (a.student_id, a.topic_id))

    return [
        _to_performance(sid, tid, tally, topic_names)
        for (sid, tid), tally in groups.items()
    ]


# ================= ACROSS CLASS =================

def _class_average(per_student: Dict[str, _Tally]) -> int:
    percentages = [
        Decimal(t.correct) * 100 / Decimal(t.total)
        for t in per_student.values() if t.total > 0
    ]
    if not percentages:
        return 0
    return round_half_up(sum(percentages) / len(percentages))


def build_class_topic_stats(
    topic_id: str,
    topic_answers: List[Answer],
    topic_name: Optional[str] = None
) -> ClassTopicStats:
    """ClassTopicStats for one topic; an empty answer list yields zero-valued stats"""
    per_student = _group(topic_answers, lambda a: a.student_id)
    accuracies = {
        sid: safe_percentage(tally.correct, tally.total)
        for sid, tally in per_student.items()
    }

    return ClassTopicStats(
        topic_id=topic_id,
        topic_name=topic_name,
        class_average_accuracy=_class_average(per_student),
        student_count=len(per_student),
        avg_time_taken_seconds=safe_rounded_average([a.time_taken_seconds for a in topic_answers]),
        ranked_students=RankingService.rank(accuracies)
    )


def aggregate_class_topics(
    answers: Iterable[Answer],
    topic_names: Optional[Mapping[str, str]] = None,
    topic_ids: Optional[Iterable[str]] = None,
    strict: bool = False,
    scope: str = "scope"
) -> List[ClassTopicStats]:
    """
    ClassTopicStats for every topic in scope.

    Topics listed in topic_ids but without answers still get a
    zero-valued row. With strict=True an empty answer set raises
    EmptyScopeError instead of returning no-data rows.
    """
    answer_list = list(answers)
    if strict and not answer_list:
        raise EmptyScopeError(scope)

    by_topic: "OrderedDict[str, List[Answer]]" = OrderedDict()
    for tid in topic_ids or []:
        by_topic.setdefault(str(tid), [])
    for answer in answer_list:
        by_topic.setdefault(answer.topic_id, []).append(answer)

    names = topic_names or {}
    stats = [
        build_class_topic_stats(tid, topic_answers, names.get(tid))
        for tid, topic_answers in by_topic.items()
    ]

    logger.info(
        f"[AGGREGATOR] Aggregated {len(answer_list)} answer(s) into {len(stats)} topic(s) for {scope}"
    )
    return stats


# ================= PER QUESTION =================

def aggregate_question_stats(answers: Iterable[Answer]) -> Dict[str, QuestionStats]:
    """Cross-student attempts, success rate and mean time per question"""
    groups = _group(answers, lambda a: a.question_id)
    return {
        qid: QuestionStats(
            question_id=qid,
            attempts=tally.total,
            correct_count=tally.correct,
            success_rate=safe_percentage(tally.correct, tally.total),
            avg_time_seconds=safe_rounded_average(tally.times)
        )
        for qid, tally in groups.items()
    }


def summarize_totals(performances: Iterable[TopicPerformance]) -> Tuple[int, int]:
    """(correct, total) summed over a set of topic rows"""
    correct = 0
    total = 0
    for perf in performances:
        correct += perf.correct
        total += perf.total
    return correct, total


# ================= SUBJECTS =================

UNKNOWN_SUBJECT = "Unknown Subject"
WEEK_SUBJECT_PATTERNS = [
    re.compile(r"Week \d+ - (.+)"),
    re.compile(r"Week \d+ (.+)"),
]


def subject_for_topic(topic_name: Optional[str], course_name: Optional[str]) -> str:
    """
    "Week 3 - Algebra" and "Week 3 Algebra" belong to subject "Algebra";
    any other topic belongs to its course.
    """
    if topic_name:
        for pattern in WEEK_SUBJECT_PATTERNS:
            match = pattern.search(topic_name)
            if match:
                return match.group(1)
    return course_name or UNKNOWN_SUBJECT


def aggregate_subjects(
    performances: Iterable[TopicPerformance],
    topics: Optional[Mapping[str, TopicRef]] = None
) -> List[SubjectPerformance]:
    """Group one student's topic rows into subjects, first-seen order"""
    topics = topics or {}
    grouped: "OrderedDict[str, List[TopicPerformance]]" = OrderedDict()
    for perf in performances:
        ref = topics.get(perf.topic_id)
        name = perf.topic_name or (ref.name if ref else None)
        subject = subject_for_topic(name, ref.course_name if ref else None)
        grouped.setdefault(subject, []).append(perf)

    subjects = []
    for subject, rows in grouped.items():
        correct, total = summarize_totals(rows)
        subjects.append(SubjectPerformance(
            subject=subject,
            topics=rows,
            avg_accuracy=safe_percentage(correct, total),
            avg_time=safe_rounded_average([r.avg_time_taken_seconds for r in rows]),
            total_questions=total,
            correct_answers=correct,
            weakest_topics=InsightClassifier.weakest_topics(rows),
            strongest_topics=InsightClassifier.strongest_topics(rows)
        ))
    return subjects
