"""
learnlytics/services/fallback_insights.py
Fallback Insight Generator

Deterministic substitute for the natural-language insight service.

TIERS (inclusive lower bounds):
- >= 85 -> Excellent
- >= 70 -> Good
- >= 50 -> Fair
- else  -> Needs Work

Each tier yields exactly 3 strengths, 3 improvements and one
recommendation, parameterized by the subject, its accuracy and counts,
and the strongest/weakest topics when present.
"""
from typing import List, Optional, Sequence

from learnlytics.schemas.analytics import SubjectPerformance, TopicHighlight
from learnlytics.schemas.insights import Insight, InsightSource, PerformanceTier

EXCELLENT_THRESHOLD = 85
GOOD_THRESHOLD = 70
FAIR_THRESHOLD = 50

STATEMENTS_PER_LIST = 3

QUOTE_THRESHOLDS = [
    (85, "Excellence is a habit. Keep it up!"),
    (70, "You're on the right track!"),
    (50, "Progress over perfection!"),
]
BEGINNER_QUOTE = "Every expert was once a beginner."
DEFAULT_QUOTE = "Keep learning, keep growing!"


def tier_for(accuracy: float) -> PerformanceTier:
    if accuracy >= EXCELLENT_THRESHOLD:
        return PerformanceTier.EXCELLENT
    if accuracy >= GOOD_THRESHOLD:
        return PerformanceTier.GOOD
    if accuracy >= FAIR_THRESHOLD:
        return PerformanceTier.FAIR
    return PerformanceTier.NEEDS_WORK


def select_quote(average_score: float) -> str:
    """Motivational quote for an overall average score"""
    for threshold, quote in QUOTE_THRESHOLDS:
        if average_score >= threshold:
            return quote
    if average_score > 0:
        return BEGINNER_QUOTE
    return DEFAULT_QUOTE


def _first(topics: Optional[Sequence[TopicHighlight]]) -> Optional[TopicHighlight]:
    return topics[0] if topics else None


# ================= TIER TEXT =================

def _excellent(subject, accuracy, correct, total, strongest, weakest):
    strengths = [
        f"Exceptional mastery of {subject} with {accuracy}% accuracy",
        f"Outstanding performance in {strongest.name}" if strongest
        else "Consistently high scores across all topics",
        f"Strong problem-solving skills demonstrated across {total} questions",
    ]
    improvements = [
        "Challenge yourself with advanced problems and real-world applications",
        "Consider peer tutoring to reinforce understanding",
        f"Fine-tune understanding in {weakest.name} for perfection" if weakest
        else "Explore advanced concepts beyond curriculum",
    ]
    recommendation = (
        f"Your excellence in {subject} is remarkable. Focus on mentoring others and "
        "tackling more complex problem sets to deepen mastery."
    )
    return strengths, improvements, recommendation


def _good(subject, accuracy, correct, total, strongest, weakest):
    strengths = [
        f"Solid understanding of core {subject} concepts",
        f"Excellent grasp of {strongest.name} ({strongest.accuracy}% accuracy)" if strongest
        else f"Good progress with {correct} correct answers",
        f"Consistent effort shown across {total} practice questions",
    ]
    improvements = [
        f"Focus intensive review on {weakest.name} ({weakest.accuracy}% accuracy)" if weakest
        else "Work on maintaining consistency across all topics",
        "Practice more problems in areas below 75% accuracy",
        "Review fundamental concepts to strengthen weak areas",
    ]
    recommendation = (
        f"You're on a strong trajectory in {subject}. Dedicate 30 minutes daily to practice "
        "problems in weaker topics, and you'll see significant improvement."
    )
    return strengths, improvements, recommendation


def _fair(subject, accuracy, correct, total, strongest, weakest):
    strengths = [
        f"Making steady progress with {correct} out of {total} questions correct",
        f"Show promise in {strongest.name}" if strongest else "Demonstrating consistent effort",
        f"Building foundational understanding of {subject}",
    ]
    improvements = [
        f"Urgently address gaps in {weakest.name} ({weakest.accuracy}% accuracy)" if weakest
        else "Focus on strengthening fundamental concepts",
        "Seek help from teachers or tutors for challenging topics",
        "Increase practice time and focus on conceptual clarity",
    ]
    recommendation = (
        f"In {subject}, prioritize understanding core concepts before attempting complex "
        "problems. Create a study schedule focusing on your weakest areas first."
    )
    return strengths, improvements, recommendation


def _needs_work(subject, accuracy, correct, total, strongest, weakest):
    strengths = [
        f"Showing commitment by attempting {total} questions",
        f"Potential evident in {strongest.name}" if strongest else "Foundation ready for improvement",
        "Opportunity for significant growth identified",
    ]
    improvements = [
        f"Critically need focused revision of fundamental {subject} concepts",
        f"Start with basics in {weakest.name} before moving forward" if weakest
        else "Begin with simplified explanations and basic problems",
        "Schedule regular tutoring sessions for personalized guidance",
    ]
    recommendation = (
        f"{subject} requires immediate attention. Start with basic concepts using video "
        "tutorials and simple examples. Work with a tutor to build confidence step-by-step."
    )
    return strengths, improvements, recommendation


TIER_BUILDERS = {
    PerformanceTier.EXCELLENT: _excellent,
    PerformanceTier.GOOD: _good,
    PerformanceTier.FAIR: _fair,
    PerformanceTier.NEEDS_WORK: _needs_work,
}


def generate_fallback_insight(
    subject: str,
    accuracy: int,
    correct: int,
    total: int,
    strongest_topics: Optional[Sequence[TopicHighlight]] = None,
    weakest_topics: Optional[Sequence[TopicHighlight]] = None
) -> Insight:
    """Build the deterministic insight for one subject"""
    tier = tier_for(accuracy)
    strengths, improvements, recommendation = TIER_BUILDERS[tier](
        subject, accuracy, correct, total, _first(strongest_topics), _first(weakest_topics)
    )

    return Insight(
        subject=subject,
        performance_tier=tier,
        performance=tier.value,
        strengths=strengths[:STATEMENTS_PER_LIST],
        improvements=improvements[:STATEMENTS_PER_LIST],
        recommendation=recommendation,
        source=InsightSource.FALLBACK
    )


def fallback_for_subject(subject: SubjectPerformance) -> Insight:
    return generate_fallback_insight(
        subject.subject,
        subject.avg_accuracy,
        subject.correct_answers,
        subject.total_questions,
        subject.strongest_topics,
        subject.weakest_topics
    )


def unique_first(items: List[List[str]], limit: int = STATEMENTS_PER_LIST) -> List[str]:
    """Unique strings across several lists, first-seen order, capped at limit"""
    seen = []
    for group in items:
        for item in group:
            if item not in seen:
                seen.append(item)
    return seen[:limit]
