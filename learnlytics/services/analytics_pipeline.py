"""
learnlytics/services/analytics_pipeline.py
Analytics Pipeline

Wires the stages together for each use case:

    raw answers -> Normalizer -> Aggregator -> {Ranking, Comparison}
                -> Classifier -> Insights (fallback as needed) -> Reports

Every call re-reads its inputs from the repository and recomputes;
nothing is cached between calls.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from learnlytics.empty_states import round_half_up, safe_percentage, safe_rounded_average
from learnlytics.exceptions import EmptyScopeError
from learnlytics.schemas.analytics import (
    ClassTopicStats,
    QuizAnalysisReport,
    QuizClassSummary,
    ScoreBucket,
    TopicStanding,
)
from learnlytics.schemas.answers import (
    AnalyticsScope,
    Answer,
    Question,
    QuizResult,
    StudentProfile,
    TopicRef,
)
from learnlytics.schemas.insights import StudentInsightReport
from learnlytics.schemas.reports import RosterEntry, TopicReportRow
from learnlytics.services.answer_normalizer import NormalizationResult, normalize_answers
from learnlytics.services.comparison_service import compare_to_class
from learnlytics.services.data_access import AnalyticsRepository
from learnlytics.services.insight_classifier import InsightClassifier
from learnlytics.services.insight_service import InsightService
from learnlytics.services.ranking_service import RankingService
from learnlytics.services.report_formatter import (
    render_roster,
    render_topic_report,
    roster_entries,
    topic_report_rows,
)
from learnlytics.services.topic_aggregator import (
    aggregate_class_topics,
    aggregate_question_stats,
    aggregate_student_topics,
    aggregate_subjects,
    build_class_topic_stats,
)

logger = logging.getLogger(__name__)

UNCATEGORIZED_TOPIC_NAME = "Uncategorized"

SCORE_BUCKETS = [
    (50, "< 50%"),
    (70, "50-69%"),
    (90, "70-89%"),
]
TOP_BUCKET = "90-100%"


def summarize_quiz_results(quiz_id: Optional[str], results: Sequence[QuizResult]) -> QuizClassSummary:
    """Average percentage, average time over timed results, score distribution"""
    if not results:
        return QuizClassSummary(quiz_id=quiz_id)

    buckets = [ScoreBucket(name=name) for _, name in SCORE_BUCKETS] + [ScoreBucket(name=TOP_BUCKET)]
    for result in results:
        position = next(
            (i for i, (upper, _) in enumerate(SCORE_BUCKETS) if result.percentage < upper),
            len(SCORE_BUCKETS)
        )
        buckets[position].count += 1

    return QuizClassSummary(
        quiz_id=quiz_id,
        submissions=len(results),
        avg_percentage=safe_rounded_average([r.percentage for r in results]),
        avg_time_seconds=safe_rounded_average(
            [r.time_taken_seconds for r in results if r.time_taken_seconds is not None]
        ),
        distribution=buckets
    )


class AnalyticsPipeline:
    """Use-case entry points over an AnalyticsRepository"""

    def __init__(self, repository: AnalyticsRepository, insight_service: Optional[InsightService] = None):
        self.repository = repository
        self.insight_service = insight_service or InsightService()

    # ================= LOADING =================

    async def load_answers(
        self,
        scope: AnalyticsScope,
        strict: bool = False
    ) -> Tuple[NormalizationResult, Dict[str, Question]]:
        """Fetch raw answers for a scope and normalize them against their questions"""
        records = await self.repository.list_answers(scope)
        question_ids = []
        for record in records:
            if record.question_id and record.question_id not in question_ids:
                question_ids.append(record.question_id)

        questions = await self.repository.list_questions(question_ids) if question_ids else []
        question_index = {q.id: q for q in questions}
        result = normalize_answers(records, question_index, strict=strict)

        if result.errors:
            logger.warning(
                f"[ANALYTICS] {scope.describe()}: {len(result.errors)} malformed record(s) skipped"
            )
        return result, question_index

    async def _topic_names(self, topic_ids: Sequence[str]) -> Dict[str, TopicRef]:
        if not topic_ids:
            return {}
        return {t.id: t for t in await self.repository.list_topics(list(topic_ids))}

    async def _student_names(self, student_ids: Sequence[str]) -> Dict[str, str]:
        if not student_ids:
            return {}
        return {s.id: s.name or s.id for s in await self.repository.list_students(list(student_ids))}

    # ================= TOPICS =================

    async def topic_stats(self, scope: AnalyticsScope, strict: bool = False) -> List[ClassTopicStats]:
        """ClassTopicStats for every topic in scope"""
        normalized, _ = await self.load_answers(scope, strict=strict)

        topic_ids: List[str] = []
        if scope.topic_id:
            topic_ids = [scope.topic_id]
        elif scope.course_id:
            topic_ids = [t.id for t in await self.repository.list_topics() if t.course_id == scope.course_id]

        answers = normalized.answers
        if scope.topic_id:
            answers = [a for a in answers if a.topic_id == scope.topic_id]

        seen_topics = topic_ids + [a.topic_id for a in answers if a.topic_id not in topic_ids]
        refs = await self._topic_names(seen_topics)

        return aggregate_class_topics(
            answers,
            topic_names={tid: ref.name for tid, ref in refs.items()},
            topic_ids=topic_ids,
            strict=strict,
            scope=scope.describe()
        )

    async def topic_report(self, scope: AnalyticsScope, strict: bool = False) -> List[TopicReportRow]:
        stats = await self.topic_stats(scope, strict=strict)
        student_ids = sorted({e.student_id for s in stats for e in s.ranked_students})
        names = await self._student_names(student_ids)
        return topic_report_rows(stats, names)

    async def topic_report_csv(self, scope: AnalyticsScope, strict: bool = False) -> str:
        return render_topic_report(await self.topic_report(scope, strict=strict))

    # ================= ROSTER =================

    async def roster(self, course_id: str, strict: bool = False) -> List[RosterEntry]:
        scope = AnalyticsScope(course_id=course_id)
        student_ids = await self.repository.list_students_in_scope(scope)
        if not student_ids:
            if strict:
                raise EmptyScopeError(scope.describe())
            return []

        students = await self.repository.list_students(student_ids)
        results = await self.repository.list_quiz_results(AnalyticsScope(student_ids=student_ids))
        return roster_entries(students, results)

    async def roster_csv(self, course_id: str, strict: bool = False) -> str:
        return render_roster(await self.roster(course_id, strict=strict))

    # ================= QUIZZES =================

    async def quiz_summary(self, quiz_id: str) -> QuizClassSummary:
        results = await self.repository.list_quiz_results(AnalyticsScope(quiz_id=quiz_id))
        return summarize_quiz_results(quiz_id, results)

    def _topic_standings(
        self,
        student_id: str,
        questions: Sequence[Question],
        answers: Sequence[Answer],
        topics: Dict[str, TopicRef]
    ) -> List[TopicStanding]:
        standings = []
        topic_order: List[str] = []
        for question in questions:
            tid = question.topic_id or "uncategorized"
            if tid not in topic_order:
                topic_order.append(tid)

        for tid in topic_order:
            topic_question_ids = {q.id for q in questions if (q.topic_id or "uncategorized") == tid}
            own = [a for a in answers if a.student_id == student_id and a.question_id in topic_question_ids]
            correct = sum(1 for a in own if a.is_correct)
            total = len(topic_question_ids)
            percentage = safe_percentage(correct, total)
            name = topics[tid].name if tid in topics else UNCATEGORIZED_TOPIC_NAME

            standing = TopicStanding(
                topic_id=tid,
                topic_name=name,
                correct=correct,
                total=total,
                percentage=percentage
            )

            class_answers = [a for a in answers if a.question_id in topic_question_ids]
            if class_answers:
                stats = build_class_topic_stats(tid, class_answers, name)
                entry = stats.entry_for(student_id)
                standing.class_average = stats.class_average_accuracy
                standing.total_students = stats.student_count
                if entry is not None:
                    standing.rank = entry.rank
                    standing.percentile = entry.percentile
                standing.comparison = compare_to_class(percentage, stats.class_average_accuracy)
            standings.append(standing)
        return standings

    async def quiz_analysis(self, student_id: str, quiz_id: str) -> QuizAnalysisReport:
        """A student's quiz set against every other submission of that quiz"""
        student_id = str(student_id)
        quiz_id = str(quiz_id)
        logger.info(f"[ANALYTICS] Quiz analysis: student={student_id}, quiz={quiz_id}")

        normalized, question_index = await self.load_answers(AnalyticsScope(quiz_id=quiz_id))
        answers = normalized.answers
        questions = sorted(question_index.values(), key=lambda q: q.id)
        own_answers = [a for a in answers if a.student_id == student_id]

        question_stats = aggregate_question_stats(answers)
        analyses = InsightClassifier.analyze_questions(questions, own_answers, question_stats)

        topic_ids = [q.topic_id for q in questions if q.topic_id]
        topics = await self._topic_names(list(dict.fromkeys(topic_ids)))
        performances = aggregate_student_topics(
            own_answers, topic_names={tid: ref.name for tid, ref in topics.items()}
        )

        results = await self.repository.list_quiz_results(AnalyticsScope(quiz_id=quiz_id))
        own_result = next((r for r in results if r.student_id == student_id), None)
        class_rank = None
        if results:
            class_rank = RankingService.class_rank(
                student_id, {r.student_id: r.percentage for r in results}
            )

        if own_result is not None:
            score, max_score, percentage = own_result.score, own_result.max_score, own_result.percentage
        else:
            score = sum(1 for a in own_answers if a.is_correct)
            max_score = len(questions)
            percentage = safe_percentage(score, max_score)

        own_times = [a.time_taken_seconds for a in own_answers]
        return QuizAnalysisReport(
            student_id=student_id,
            quiz_id=quiz_id,
            score=score,
            max_score=max_score,
            percentage=percentage,
            total_time_seconds=round_half_up(sum(own_times)),
            avg_time_seconds=safe_rounded_average(own_times),
            class_rank=class_rank,
            questions=analyses,
            topics=self._topic_standings(student_id, questions, answers, topics),
            classification=InsightClassifier.classify(performances, analyses),
            skipped_records=normalized.skipped
        )

    # ================= INSIGHTS =================

    async def student_insights(self, student_id: str, course_id: Optional[str] = None) -> StudentInsightReport:
        """Per-subject insights, overall highlights, summary and quote for one student"""
        student_id = str(student_id)
        scope = AnalyticsScope(student_ids=[student_id], course_id=course_id)
        normalized, _ = await self.load_answers(scope)

        topic_ids = list(dict.fromkeys(a.topic_id for a in normalized.answers))
        topics = await self._topic_names(topic_ids)
        performances = aggregate_student_topics(
            normalized.answers,
            topic_names={tid: ref.name for tid, ref in topics.items()},
            student_id=student_id
        )
        subjects = aggregate_subjects(performances, topics)

        profiles = await self.repository.list_students([student_id])
        student = profiles[0] if profiles else StudentProfile(id=student_id)
        results = await self.repository.list_quiz_results(AnalyticsScope(student_ids=[student_id]))

        logger.info(
            f"[ANALYTICS] Insights for student={student_id}: "
            f"{len(subjects)} subject(s), {len(results)} quiz result(s)"
        )
        return await self.insight_service.build_report(student, subjects, results)
