"""
learnlytics/services/report_formatter.py
Report Formatter

Shapes aggregator output into ordered rows and renders them as CSV.

QUOTING:
A field containing the delimiter, a quote, or a line break is wrapped
in double quotes with internal quotes doubled. Anything else is
written bare. Spreadsheet consumers depend on this exact form.
"""
import csv
import io
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from learnlytics.empty_states import safe_rounded_average
from learnlytics.schemas.analytics import ClassTopicStats
from learnlytics.schemas.answers import QuizResult, StudentProfile
from learnlytics.schemas.reports import (
    DEFAULT_LEARNING_PACE,
    ROSTER_HEADERS,
    TOPIC_REPORT_HEADERS,
    RosterEntry,
    RosterStatus,
    TopicReportRow,
)

logger = logging.getLogger(__name__)

DELIMITER = ","
QUOTE_CHAR = '"'
LINE_TERMINATOR = "\r\n"

ON_TRACK_THRESHOLD = 80
PROGRESSING_THRESHOLD = 70


def escape_field(value) -> str:
    """Quote one field the way the CSV writer does"""
    text = "" if value is None else str(value)
    if any(ch in text for ch in (DELIMITER, QUOTE_CHAR, "\n", "\r")):
        return QUOTE_CHAR + text.replace(QUOTE_CHAR, QUOTE_CHAR * 2) + QUOTE_CHAR
    return text


def format_row(fields: Iterable) -> str:
    return DELIMITER.join(escape_field(f) for f in fields)


def render_csv(headers: Sequence[str], rows: Iterable[Sequence]) -> str:
    """Header line plus one line per row, CRLF-terminated"""
    buffer = io.StringIO()
    writer = csv.writer(
        buffer,
        delimiter=DELIMITER,
        quotechar=QUOTE_CHAR,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator=LINE_TERMINATOR
    )
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if f is None else f for f in row])
    return buffer.getvalue()


# ================= TOPIC REPORT =================

def topic_report_rows(
    stats: Iterable[ClassTopicStats],
    student_names: Optional[Mapping[str, str]] = None
) -> List[TopicReportRow]:
    """One row per topic; strongest/weakest are the first and last ranked students"""
    names = student_names or {}
    rows = []
    for topic in stats:
        row = TopicReportRow(
            topic=topic.topic_name or topic.topic_id,
            avg_accuracy=topic.class_average_accuracy,
            avg_time_seconds=topic.avg_time_taken_seconds
        )
        if topic.strongest is not None:
            row.strongest_student = names.get(topic.strongest.student_id, topic.strongest.student_id)
            row.strongest_score = topic.strongest.accuracy
        if topic.weakest is not None:
            row.weakest_student = names.get(topic.weakest.student_id, topic.weakest.student_id)
            row.weakest_score = topic.weakest.accuracy
        rows.append(row)
    return rows


def render_topic_report(rows: Sequence[TopicReportRow]) -> str:
    logger.info(f"[REPORTS] Rendering topic report with {len(rows)} row(s)")
    return render_csv(TOPIC_REPORT_HEADERS, [r.to_fields() for r in rows])


# ================= ROSTER =================

def status_for(avg_score: int) -> RosterStatus:
    if avg_score >= ON_TRACK_THRESHOLD:
        return RosterStatus.ON_TRACK
    if avg_score >= PROGRESSING_THRESHOLD:
        return RosterStatus.PROGRESSING
    return RosterStatus.AT_RISK


def roster_entries(
    students: Iterable[StudentProfile],
    quiz_results: Iterable[QuizResult]
) -> List[RosterEntry]:
    """Roster rows in student order; students without submissions score 0"""
    by_student: Dict[str, List[int]] = defaultdict(list)
    for result in quiz_results:
        by_student[result.student_id].append(result.percentage)

    entries = []
    for student in students:
        percentages = by_student.get(student.id, [])
        avg_score = safe_rounded_average(percentages)
        entries.append(RosterEntry(
            uid=student.id,
            name=student.name,
            learning_pace=student.learner_tag or DEFAULT_LEARNING_PACE,
            avg_score=avg_score,
            quizzes_done=len(percentages),
            status=status_for(avg_score)
        ))
    return entries


def render_roster(entries: Sequence[RosterEntry]) -> str:
    logger.info(f"[REPORTS] Rendering roster with {len(entries)} student(s)")
    return render_csv(ROSTER_HEADERS, [e.to_fields() for e in entries])
