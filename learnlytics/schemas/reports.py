"""
learnlytics/schemas/reports.py
Tabular report rows for export

Column order here is the export contract; the formatter only quotes.
"""
from enum import Enum
from typing import List, Optional

from pydantic import Field

from learnlytics.schemas.answers import CamelModel

TOPIC_REPORT_HEADERS = [
    "Topic",
    "Avg. Accuracy (%)",
    "Avg. Time (s)",
    "Strongest Student",
    "Score",
    "Weakest Student",
    "Score",
]

ROSTER_HEADERS = ["UID", "Name", "Learning Pace", "Avg. Score", "Quizzes Done", "Status"]

DEFAULT_LEARNING_PACE = "Not Yet Classified"


class TopicReportRow(CamelModel):
    topic: str
    avg_accuracy: int = 0
    avg_time_seconds: int = 0
    strongest_student: str = "N/A"
    strongest_score: Optional[int] = None
    weakest_student: str = "N/A"
    weakest_score: Optional[int] = None

    def to_fields(self) -> List[str]:
        return [
            self.topic,
            str(self.avg_accuracy),
            str(self.avg_time_seconds),
            self.strongest_student,
            "" if self.strongest_score is None else str(self.strongest_score),
            self.weakest_student,
            "" if self.weakest_score is None else str(self.weakest_score),
        ]


class RosterStatus(str, Enum):
    ON_TRACK = "On Track"
    PROGRESSING = "Progressing"
    AT_RISK = "At Risk"


class RosterEntry(CamelModel):
    uid: str
    name: str = ""
    learning_pace: str = DEFAULT_LEARNING_PACE
    avg_score: int = Field(0, ge=0, le=100)
    quizzes_done: int = Field(0, ge=0)
    status: RosterStatus = RosterStatus.AT_RISK

    def to_fields(self) -> List[str]:
        return [
            self.uid,
            self.name,
            self.learning_pace,
            str(self.avg_score),
            str(self.quizzes_done),
            self.status.value,
        ]
