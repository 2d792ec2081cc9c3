"""
learnlytics/services/insight_classifier.py
Insight Classifier

Rule engine over a student's topic rows and per-question analyses.

RULES:
======
- Weakest/strongest topics: top 3 by accuracy ascending/descending,
  ties keep input order (stable sort)
- Question rules only look at questions the student answered
- Areas to improve: answered wrong while successRate >= 70
- Strong performance: answered right while successRate <= 50
- Pacing: fast if timeSpent < 0.7 x avgTime, slow if > 1.5 x avgTime;
  questions with no peer average are not counted. Insight only when
  fast > slow (favorable) or slow > 3 (unfavorable)
- Difficulty breakdown: only when at least one easy and one hard
  question was attempted

Never calls an external service.
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from learnlytics.empty_states import safe_percentage
from learnlytics.schemas.analytics import (
    ClassificationResult,
    DifficultyBreakdown,
    KeyInsight,
    KeyInsightType,
    PaceBadge,
    PacingSummary,
    QuestionAnalysis,
    QuestionStats,
    TopicHighlight,
    TopicPerformance,
)
from learnlytics.schemas.answers import Answer, Difficulty, Question
from learnlytics.services.answer_normalizer import resolve_letter

logger = logging.getLogger(__name__)


class InsightClassifier:
    """Threshold-based classification of a student's results"""

    TOPIC_HIGHLIGHT_LIMIT = 3

    # Peer success rate cutoffs (percent)
    MISSED_EASY_SUCCESS_RATE = 70
    NAILED_HARD_SUCCESS_RATE = 50

    # Time ratios against the peer average
    FAST_RATIO = 0.7
    SLOW_RATIO = 1.5
    SLOW_COUNT_ALERT = 3

    # Pace badge ratios
    VERY_FAST_BADGE_RATIO = 0.7
    FAST_BADGE_RATIO = 1.0
    AVERAGE_BADGE_RATIO = 1.5

    # ================= TOPICS =================

    @classmethod
    def _highlight(cls, perf: TopicPerformance) -> TopicHighlight:
        return TopicHighlight(
            topic_id=perf.topic_id,
            name=perf.topic_name or perf.topic_id,
            accuracy=perf.accuracy
        )

    @classmethod
    def weakest_topics(cls, performances: Sequence[TopicPerformance]) -> List[TopicHighlight]:
        ordered = sorted(performances, key=lambda p: p.accuracy)
        return [cls._highlight(p) for p in ordered[:cls.TOPIC_HIGHLIGHT_LIMIT]]

    @classmethod
    def strongest_topics(cls, performances: Sequence[TopicPerformance]) -> List[TopicHighlight]:
        ordered = sorted(performances, key=lambda p: p.accuracy, reverse=True)
        return [cls._highlight(p) for p in ordered[:cls.TOPIC_HIGHLIGHT_LIMIT]]

    # ================= QUESTIONS =================

    @classmethod
    def pace_badge(cls, time_spent: float, avg_time: float) -> Optional[PaceBadge]:
        if not avg_time:
            return None
        ratio = time_spent / avg_time
        if ratio < cls.VERY_FAST_BADGE_RATIO:
            return PaceBadge.VERY_FAST
        if ratio < cls.FAST_BADGE_RATIO:
            return PaceBadge.FAST
        if ratio <= cls.AVERAGE_BADGE_RATIO:
            return PaceBadge.AVERAGE
        return PaceBadge.SLOW

    @classmethod
    def analyze_questions(
        cls,
        questions: Sequence[Question],
        student_answers: Iterable[Answer],
        question_stats: Mapping[str, QuestionStats]
    ) -> List[QuestionAnalysis]:
        """
        One QuestionAnalysis per question, in the given order.

        Questions the student skipped are marked unanswered and count as
        incorrect; the classification rules ignore them.
        """
        by_question: Dict[str, Answer] = {}
        for answer in student_answers:
            by_question.setdefault(answer.question_id, answer)

        analyses = []
        for index, question in enumerate(questions):
            answer = by_question.get(question.id)
            stats = question_stats.get(question.id)
            time_spent = answer.time_taken_seconds if answer else 0
            avg_time = stats.avg_time_seconds if stats else 0

            analyses.append(QuestionAnalysis(
                index=index,
                question_id=question.id,
                topic_id=question.topic_id,
                difficulty=question.difficulty,
                is_correct=bool(answer and answer.is_correct),
                answered=answer is not None,
                your_answer=answer.selected_answer if answer else None,
                correct_answer=resolve_letter(question.correct_answer, question),
                time_spent=time_spent,
                avg_time_spent=avg_time,
                success_rate=stats.success_rate if stats else 0,
                pace_badge=cls.pace_badge(time_spent, avg_time) if answer else None
            ))
        return analyses

    @classmethod
    def areas_to_improve(cls, analyses: Sequence[QuestionAnalysis]) -> List[int]:
        return [
            q.index for q in analyses
            if q.answered and not q.is_correct and q.success_rate >= cls.MISSED_EASY_SUCCESS_RATE
        ]

    @classmethod
    def strong_performance(cls, analyses: Sequence[QuestionAnalysis]) -> List[int]:
        return [
            q.index for q in analyses
            if q.is_correct and q.success_rate <= cls.NAILED_HARD_SUCCESS_RATE
        ]

    @classmethod
    def pacing(cls, analyses: Sequence[QuestionAnalysis]) -> PacingSummary:
        timed = [q for q in analyses if q.answered and q.avg_time_spent > 0]
        fast = sum(1 for q in timed if q.time_spent < q.avg_time_spent * cls.FAST_RATIO)
        slow = sum(1 for q in timed if q.time_spent > q.avg_time_spent * cls.SLOW_RATIO)

        verdict = None
        if fast > slow:
            verdict = "favorable"
        elif slow > cls.SLOW_COUNT_ALERT:
            verdict = "unfavorable"

        return PacingSummary(
            fast_count=fast,
            slow_count=slow,
            average_count=len(timed) - fast - slow,
            verdict=verdict
        )

    @classmethod
    def difficulty_breakdown(cls, analyses: Sequence[QuestionAnalysis]) -> Optional[DifficultyBreakdown]:
        attempted: Dict[str, int] = {}
        correct: Dict[str, int] = {}
        for q in analyses:
            if not q.answered or q.difficulty is None:
                continue
            tier = q.difficulty.value
            attempted[tier] = attempted.get(tier, 0) + 1
            if q.is_correct:
                correct[tier] = correct.get(tier, 0) + 1

        if not attempted.get(Difficulty.EASY.value) or not attempted.get(Difficulty.HARD.value):
            return None

        ordered_tiers = [d.value for d in Difficulty if d.value in attempted]
        return DifficultyBreakdown(
            percent_correct={t: safe_percentage(correct.get(t, 0), attempted[t]) for t in ordered_tiers},
            attempted={t: attempted[t] for t in ordered_tiers}
        )

    # ================= KEY INSIGHTS =================

    @classmethod
    def key_insights(
        cls,
        areas: List[int],
        strong: List[int],
        pacing: PacingSummary,
        breakdown: Optional[DifficultyBreakdown]
    ) -> List[KeyInsight]:
        insights = []

        if areas:
            insights.append(KeyInsight(
                type=KeyInsightType.IMPROVE,
                title="Areas to Improve",
                description=f"You missed {len(areas)} question(s) that most students got right",
                questions=areas
            ))

        if strong:
            insights.append(KeyInsight(
                type=KeyInsightType.STRONG,
                title="Strong Performance",
                description=f"You got {len(strong)} difficult question(s) right that most students missed",
                questions=strong
            ))

        if pacing.verdict == "favorable":
            insights.append(KeyInsight(
                type=KeyInsightType.TIME,
                title="Time Management",
                description=f"You're faster than average on {pacing.fast_count} questions - good pacing!"
            ))
        elif pacing.verdict == "unfavorable":
            insights.append(KeyInsight(
                type=KeyInsightType.TIME,
                title="Time Management",
                description=(
                    f"You took longer than average on {pacing.slow_count} questions"
                    " - consider practicing speed"
                )
            ))

        if breakdown is not None:
            easy = breakdown.percent_correct[Difficulty.EASY.value]
            hard = breakdown.percent_correct[Difficulty.HARD.value]
            insights.append(KeyInsight(
                type=KeyInsightType.DIFFICULTY,
                title="Difficulty Breakdown",
                description=f"Easy: {easy}% correct | Hard: {hard}% correct"
            ))

        return insights

    @classmethod
    def classify(
        cls,
        performances: Sequence[TopicPerformance],
        analyses: Sequence[QuestionAnalysis] = ()
    ) -> ClassificationResult:
        """Run every rule over one student's data"""
        areas = cls.areas_to_improve(analyses)
        strong = cls.strong_performance(analyses)
        pacing = cls.pacing(analyses)
        breakdown = cls.difficulty_breakdown(analyses)

        return ClassificationResult(
            weakest_topics=cls.weakest_topics(performances),
            strongest_topics=cls.strongest_topics(performances),
            areas_to_improve=areas,
            strong_performance=strong,
            pacing=pacing,
            difficulty_breakdown=breakdown,
            key_insights=cls.key_insights(areas, strong, pacing, breakdown)
        )
