"""
learnlytics/services/insight_service.py
Insight generation with isolated fallback

FLOW:
1. One subject-insight request per subject, issued concurrently
2. Each subject resolves independently: external result, or the
   deterministic fallback when that one call fails
3. Overall strengths/improvements = first 3 unique across subjects
4. Optional detailed summary (no substitute: None on failure)
5. Motivational quote, with the deterministic quote as fallback

External failures are logged and recovered here; they never reach
the caller.
"""
import asyncio
import logging
from typing import List, Optional, Sequence

from learnlytics.config.settings import settings
from learnlytics.empty_states import safe_rounded_average
from learnlytics.exceptions import ExternalServiceError
from learnlytics.schemas.analytics import SubjectPerformance
from learnlytics.schemas.answers import QuizResult, StudentProfile
from learnlytics.schemas.insights import (
    DetailedSummary,
    Insight,
    InsightSource,
    StudentInsightReport,
    SubjectInsightData,
)
from learnlytics.services.fallback_insights import (
    fallback_for_subject,
    select_quote,
    tier_for,
    unique_first,
)
from learnlytics.services.insight_client import InsightClient

logger = logging.getLogger(__name__)

DEFAULT_LEARNER_TAG = "Not Yet Classified"


def overall_average_score(quiz_results: Sequence[QuizResult], subjects: Sequence[SubjectPerformance]) -> int:
    """Mean quiz percentage, else mean subject accuracy, else 0"""
    if quiz_results:
        return safe_rounded_average([q.percentage for q in quiz_results])
    if subjects:
        return safe_rounded_average([s.avg_accuracy for s in subjects])
    return 0


class InsightService:
    """
    Produces per-subject insights, preferring the external service.

    External generation is skipped entirely when the feature flag is
    off or no service URL is configured.
    """

    def __init__(self, client: Optional[InsightClient] = None, use_external: Optional[bool] = None):
        self.client = client or InsightClient()
        if use_external is None:
            use_external = settings.FEATURE_EXTERNAL_INSIGHTS and self.client.configured
        self.use_external = use_external

    async def _external_insight(self, subject: SubjectPerformance, learner_tag: Optional[str]) -> Insight:
        data = SubjectInsightData.from_subject(subject, learner_tag).model_dump(by_alias=True)
        parsed = await self.client.subject_insight(data)
        return Insight(
            subject=subject.subject,
            performance_tier=tier_for(subject.avg_accuracy),
            performance=parsed.performance,
            strengths=parsed.strengths[:3],
            improvements=parsed.improvements[:3],
            recommendation=parsed.recommendation,
            source=InsightSource.EXTERNAL
        )

    async def subject_insight(self, subject: SubjectPerformance, learner_tag: Optional[str] = None) -> Insight:
        """External insight for one subject, or its fallback on any external failure"""
        if not self.use_external:
            return fallback_for_subject(subject)

        try:
            insight = await self._external_insight(subject, learner_tag)
            logger.info(f"[INSIGHTS] {subject.subject}: external insight")
            return insight
        except ExternalServiceError as e:
            logger.warning(f"[INSIGHTS] {subject.subject}: falling back ({e.message})")
            return fallback_for_subject(subject)

    async def generate_insights(
        self,
        subjects: Sequence[SubjectPerformance],
        learner_tag: Optional[str] = None
    ) -> List[Insight]:
        """
        Fan out one request per subject and await all of them.

        Results keep the order of `subjects`. A failed subject never
        cancels or replaces its siblings.
        """
        if not subjects:
            return []

        logger.info(f"[INSIGHTS] Generating insights for {len(subjects)} subject(s)")
        results = await asyncio.gather(
            *(self.subject_insight(subject, learner_tag) for subject in subjects),
            return_exceptions=True
        )

        insights = []
        for subject, result in zip(subjects, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    f"[INSIGHTS] {subject.subject}: unexpected error, using fallback",
                    exc_info=result
                )
                result = fallback_for_subject(subject)
            insights.append(result)
        return insights

    async def detailed_summary(
        self,
        student: StudentProfile,
        subjects: Sequence[SubjectPerformance],
        insights: Sequence[Insight],
        quiz_results: Sequence[QuizResult]
    ) -> Optional[DetailedSummary]:
        if not self.use_external or not settings.FEATURE_DETAILED_SUMMARY:
            return None

        accuracy_by_subject = {s.subject: s.avg_accuracy for s in subjects}
        data = {
            "studentName": student.name,
            "learnerTag": student.learner_tag or DEFAULT_LEARNER_TAG,
            "subjectInsights": [
                {
                    "subject": i.subject,
                    "performance": i.performance,
                    "avgAccuracy": accuracy_by_subject.get(i.subject, 0),
                }
                for i in insights
            ],
            "overallAccuracy": safe_rounded_average([s.avg_accuracy for s in subjects]),
            "totalQuestions": sum(s.total_questions for s in subjects),
            "totalCorrect": sum(s.correct_answers for s in subjects),
            "quizPerformance": [
                {"quizId": q.quiz_id, "percentage": q.percentage} for q in quiz_results
            ],
        }

        try:
            return await self.client.detailed_summary(data)
        except ExternalServiceError as e:
            logger.warning(f"[INSIGHTS] Detailed summary unavailable ({e.message})")
            return None

    async def motivational_quote(self, average_score: int):
        """(quote, source) for an overall average score"""
        if self.use_external:
            try:
                quote = await self.client.motivational_quote(average_score)
                return quote, InsightSource.EXTERNAL
            except ExternalServiceError as e:
                logger.warning(f"[INSIGHTS] Quote unavailable, using fallback ({e.message})")
        return select_quote(average_score), InsightSource.FALLBACK

    async def build_report(
        self,
        student: StudentProfile,
        subjects: Sequence[SubjectPerformance],
        quiz_results: Sequence[QuizResult] = ()
    ) -> StudentInsightReport:
        """Everything the student insight card shows"""
        insights = await self.generate_insights(subjects, student.learner_tag)
        summary = await self.detailed_summary(student, subjects, insights, quiz_results)
        average_score = overall_average_score(quiz_results, subjects)
        quote, quote_source = await self.motivational_quote(average_score)

        return StudentInsightReport(
            student_id=student.id,
            student_name=student.name,
            learner_tag=student.learner_tag,
            subjects=list(subjects),
            insights=insights,
            overall_strengths=unique_first([i.strengths for i in insights]),
            overall_improvements=unique_first([i.improvements for i in insights]),
            detailed_summary=summary,
            average_score=average_score,
            motivational_quote=quote,
            quote_source=quote_source
        )
