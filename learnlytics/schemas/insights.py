"""
learnlytics/schemas/insights.py
Schemas for generated insights and the natural-language service contract
"""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from learnlytics.schemas.answers import CamelModel
from learnlytics.schemas.analytics import SubjectPerformance, TopicHighlight


class PerformanceTier(str, Enum):
    """Discrete performance bucket driving fallback text"""
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    NEEDS_WORK = "Needs Work"


class InsightSource(str, Enum):
    EXTERNAL = "external"
    FALLBACK = "fallback"


class Insight(CamelModel):
    """Per-subject insight, either service-generated or from the fallback"""
    subject: str
    performance_tier: PerformanceTier
    performance: str = Field(..., description="Label as produced by the generator")
    strengths: List[str] = Field(default_factory=list, max_length=3)
    improvements: List[str] = Field(default_factory=list, max_length=3)
    recommendation: str
    source: InsightSource


class DetailedSummary(CamelModel):
    overall_performance: str
    key_insights: List[str] = Field(default_factory=list)
    critical_areas: List[str] = Field(default_factory=list)
    action_plan: str


class StudentInsightReport(CamelModel):
    student_id: str
    student_name: str = ""
    learner_tag: Optional[str] = None
    subjects: List[SubjectPerformance] = Field(default_factory=list)
    insights: List[Insight] = Field(default_factory=list)
    overall_strengths: List[str] = Field(default_factory=list)
    overall_improvements: List[str] = Field(default_factory=list)
    detailed_summary: Optional[DetailedSummary] = None
    average_score: int = 0
    motivational_quote: str = ""
    quote_source: InsightSource = InsightSource.FALLBACK


# ================= SERVICE CONTRACT =================

InsightRequestType = Literal["subject-insight", "detailed-summary", "motivational-quote"]


class InsightRequest(BaseModel):
    """Body posted to the natural-language service"""
    type: InsightRequestType
    data: Dict[str, Any]


class TopicBreakdownItem(CamelModel):
    name: str
    accuracy: int
    questions: int
    avg_time: int


class SubjectInsightData(CamelModel):
    """`data` of a subject-insight request"""
    subject: str
    avg_accuracy: int
    correct_answers: int
    total_questions: int
    avg_time: int
    learner_tag: str
    topic_count: int
    weakest_topics: List[Dict[str, Any]]
    strongest_topics: List[Dict[str, Any]]
    topic_breakdown: List[TopicBreakdownItem]

    @classmethod
    def from_subject(cls, subject: SubjectPerformance, learner_tag: Optional[str]) -> "SubjectInsightData":
        def _named(items: List[TopicHighlight]) -> List[Dict[str, Any]]:
            return [{"name": t.name, "accuracy": t.accuracy} for t in items]

        return cls(
            subject=subject.subject,
            avg_accuracy=subject.avg_accuracy,
            correct_answers=subject.correct_answers,
            total_questions=subject.total_questions,
            avg_time=subject.avg_time,
            learner_tag=learner_tag or "Not Yet Classified",
            topic_count=len(subject.topics),
            weakest_topics=_named(subject.weakest_topics),
            strongest_topics=_named(subject.strongest_topics),
            topic_breakdown=[
                TopicBreakdownItem(
                    name=t.topic_name or t.topic_id,
                    accuracy=t.accuracy,
                    questions=t.total,
                    avg_time=t.avg_time_taken_seconds
                )
                for t in subject.topics
            ]
        )


class ExternalSubjectInsight(BaseModel):
    """
    Expected shape of a subject-insight answer.

    Missing or empty performance/recommendation, or missing
    strengths/improvements, fails validation; a non-list value for the
    two lists is tolerated and read as empty.
    """
    performance: str = Field(..., min_length=1)
    strengths: List[str]
    improvements: List[str]
    recommendation: str = Field(..., min_length=1)

    @field_validator("strengths", "improvements", mode="before")
    @classmethod
    def _lists_only(cls, value):
        if value is None:
            raise ValueError("field is required")
        if not isinstance(value, list):
            return []
        return [str(item) for item in value]


class ExternalQuote(BaseModel):
    quote: str = Field(..., min_length=1)
