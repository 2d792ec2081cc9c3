"""
learnlytics/schemas/analytics.py
Pydantic schemas for derived analytics

All schemas are read-only derived data, recomputed on every call.
No UI formatting logic - pure data structures.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field, model_validator

from learnlytics.schemas.answers import CamelModel, Difficulty


# ================= TOPIC SCHEMAS =================

class TopicPerformance(CamelModel):
    """One student's results on one topic"""
    student_id: str
    topic_id: str
    topic_name: Optional[str] = None
    correct: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    accuracy: int = Field(..., ge=0, le=100, description="round(100*correct/total), 0 when total=0")
    avg_time_taken_seconds: int = Field(0, ge=0)

    @model_validator(mode="after")
    def _correct_within_total(self):
        if self.correct > self.total:
            raise ValueError("correct cannot exceed total")
        return self


class RankEntry(CamelModel):
    """A student's standing inside one ranked group"""
    student_id: str
    accuracy: int = Field(..., ge=0, le=100)
    rank: int = Field(..., ge=1)
    percentile: int = Field(..., ge=0, le=100)


class ClassTopicStats(CamelModel):
    """One topic across every student in scope"""
    topic_id: str
    topic_name: Optional[str] = None
    class_average_accuracy: int = Field(0, ge=0, le=100)
    student_count: int = Field(0, ge=0)
    avg_time_taken_seconds: int = Field(0, ge=0)
    ranked_students: List[RankEntry] = Field(default_factory=list)

    @property
    def strongest(self) -> Optional[RankEntry]:
        return self.ranked_students[0] if self.ranked_students else None

    @property
    def weakest(self) -> Optional[RankEntry]:
        return self.ranked_students[-1] if self.ranked_students else None

    def entry_for(self, student_id: str) -> Optional[RankEntry]:
        return next((e for e in self.ranked_students if e.student_id == student_id), None)


class TopicHighlight(CamelModel):
    """Topic reference used in weakest/strongest lists"""
    topic_id: str
    name: str
    accuracy: int


# ================= COMPARISON SCHEMAS =================

class ComparisonLabel(str, Enum):
    ABOVE = "above average"
    BELOW = "below average"
    AT = "at class level"


class TopicComparison(CamelModel):
    """Student accuracy against the class average for one topic"""
    student_accuracy: int
    class_average_accuracy: int
    delta: int
    label: ComparisonLabel


# ================= QUESTION SCHEMAS =================

class QuestionStats(CamelModel):
    """Cross-student statistics for a single question"""
    question_id: str
    attempts: int = 0
    correct_count: int = 0
    success_rate: int = Field(0, ge=0, le=100, description="% of attempts answered correctly")
    avg_time_seconds: int = 0


class PaceBadge(str, Enum):
    VERY_FAST = "Very Fast"
    FAST = "Fast"
    AVERAGE = "Average"
    SLOW = "Slow"


class QuestionAnalysis(CamelModel):
    """A student's answer to one question, set against the class"""
    index: int = Field(..., ge=0, description="Position of the question within the quiz")
    question_id: str
    topic_id: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    is_correct: bool
    answered: bool = True
    your_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    time_spent: float = 0
    avg_time_spent: float = 0
    success_rate: int = 0
    pace_badge: Optional[PaceBadge] = None


# ================= CLASSIFIER SCHEMAS =================

class KeyInsightType(str, Enum):
    IMPROVE = "improve"
    STRONG = "strong"
    TIME = "time"
    DIFFICULTY = "difficulty"


class KeyInsight(CamelModel):
    """Advisory text plus the question indexes a caller can highlight"""
    type: KeyInsightType
    title: str
    description: str
    questions: List[int] = Field(default_factory=list)


class PacingSummary(CamelModel):
    fast_count: int = 0
    slow_count: int = 0
    average_count: int = 0
    verdict: Optional[str] = Field(None, description="favorable | unfavorable | None")


class DifficultyBreakdown(CamelModel):
    """Percent correct per attempted difficulty tier"""
    percent_correct: Dict[str, int] = Field(default_factory=dict)
    attempted: Dict[str, int] = Field(default_factory=dict)


class ClassificationResult(CamelModel):
    weakest_topics: List[TopicHighlight] = Field(default_factory=list)
    strongest_topics: List[TopicHighlight] = Field(default_factory=list)
    areas_to_improve: List[int] = Field(default_factory=list)
    strong_performance: List[int] = Field(default_factory=list)
    pacing: PacingSummary = Field(default_factory=PacingSummary)
    difficulty_breakdown: Optional[DifficultyBreakdown] = None
    key_insights: List[KeyInsight] = Field(default_factory=list)


# ================= SUBJECT & QUIZ SCHEMAS =================

class SubjectPerformance(CamelModel):
    """A student's topics rolled up under one subject"""
    subject: str
    topics: List[TopicPerformance] = Field(default_factory=list)
    avg_accuracy: int = 0
    avg_time: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    weakest_topics: List[TopicHighlight] = Field(default_factory=list)
    strongest_topics: List[TopicHighlight] = Field(default_factory=list)


class ClassRank(CamelModel):
    rank: int
    total_students: int
    percentile: int
    band: str


class ScoreBucket(CamelModel):
    name: str
    count: int = 0


class QuizClassSummary(CamelModel):
    """Class-wide statistics for one quiz"""
    quiz_id: Optional[str] = None
    submissions: int = 0
    avg_percentage: int = 0
    avg_time_seconds: int = 0
    distribution: List[ScoreBucket] = Field(default_factory=list)


class TopicStanding(CamelModel):
    """Per-topic row of a quiz analysis, with peer comparison when available"""
    topic_id: str
    topic_name: str
    correct: int
    total: int
    percentage: int
    class_average: Optional[int] = None
    rank: Optional[int] = None
    total_students: Optional[int] = None
    percentile: Optional[int] = None
    comparison: Optional[TopicComparison] = None


class QuizAnalysisReport(CamelModel):
    """Everything a student sees after a quiz"""
    student_id: str
    quiz_id: str
    score: int = 0
    max_score: int = 0
    percentage: int = 0
    total_time_seconds: int = 0
    avg_time_seconds: int = 0
    class_rank: Optional[ClassRank] = None
    questions: List[QuestionAnalysis] = Field(default_factory=list)
    topics: List[TopicStanding] = Field(default_factory=list)
    classification: ClassificationResult = Field(default_factory=ClassificationResult)
    skipped_records: int = 0
