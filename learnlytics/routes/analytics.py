"""
learnlytics/routes/analytics.py
Learning Analytics API Endpoints

All endpoints:
- Read-only, recomputed on every call
- Return {success, message, data} (CSV exports return text/csv)
- Never fail because the insight service failed
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from learnlytics.empty_states import wrap_with_empty_state
from learnlytics.schemas.answers import AnalyticsScope
from learnlytics.services.analytics_pipeline import AnalyticsPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["Learning Analytics"])

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


# ================= DEPENDENCY =================

def get_pipeline(request: Request) -> AnalyticsPipeline:
    """Pipeline over the repository and insight service attached to the app"""
    return AnalyticsPipeline(
        request.app.state.repository,
        getattr(request.app.state, "insight_service", None)
    )


def _envelope(message: str, data) -> dict:
    return {"success": True, "message": message, "data": data}


def _scope(topic_id: Optional[str], course_id: Optional[str], quiz_id: Optional[str]) -> AnalyticsScope:
    return AnalyticsScope(topic_id=topic_id, course_id=course_id, quiz_id=quiz_id)


# ================= STUDENT ENDPOINTS =================

@router.get("/students/{student_id}/quizzes/{quiz_id}/analysis")
async def get_quiz_analysis(
    student_id: str,
    quiz_id: str,
    pipeline: AnalyticsPipeline = Depends(get_pipeline)
):
    """
    Per-question and per-topic analysis of one quiz submission.

    Includes class rank, peer comparison per topic and key insights.
    """
    logger.info(f"[ANALYTICS] Quiz analysis requested: student={student_id}, quiz={quiz_id}")
    report = await pipeline.quiz_analysis(student_id, quiz_id)
    return _envelope(
        "Quiz analysis retrieved successfully",
        report.model_dump(mode="json", by_alias=True)
    )


@router.post("/students/{student_id}/insights")
async def generate_student_insights(
    student_id: str,
    course_id: Optional[str] = Query(None, alias="courseId"),
    pipeline: AnalyticsPipeline = Depends(get_pipeline)
):
    """
    Per-subject insights for a student.

    Subjects whose external generation fails carry source="fallback".
    """
    logger.info(f"[ANALYTICS] Insights requested: student={student_id}")
    report = await pipeline.student_insights(student_id, course_id=course_id)
    return _envelope(
        "Insights generated successfully",
        wrap_with_empty_state(report.model_dump(mode="json", by_alias=True), "answers", len(report.subjects))
    )


# ================= PROFESSOR ENDPOINTS =================

@router.get("/topics/report")
async def get_topic_report(
    topic_id: Optional[str] = Query(None, alias="topicId"),
    course_id: Optional[str] = Query(None, alias="courseId"),
    quiz_id: Optional[str] = Query(None, alias="quizId"),
    strict: bool = Query(False),
    pipeline: AnalyticsPipeline = Depends(get_pipeline)
):
    rows = await pipeline.topic_report(_scope(topic_id, course_id, quiz_id), strict=strict)
    return _envelope(
        "Topic report retrieved successfully",
        wrap_with_empty_state([r.model_dump(mode="json", by_alias=True) for r in rows], "topics", len(rows))
    )


@router.get("/topics/report.csv", response_class=PlainTextResponse)
async def export_topic_report(
    topic_id: Optional[str] = Query(None, alias="topicId"),
    course_id: Optional[str] = Query(None, alias="courseId"),
    quiz_id: Optional[str] = Query(None, alias="quizId"),
    strict: bool = Query(False),
    pipeline: AnalyticsPipeline = Depends(get_pipeline)
):
    content = await pipeline.topic_report_csv(_scope(topic_id, course_id, quiz_id), strict=strict)
    return PlainTextResponse(
        content,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="topic_report.csv"'}
    )


@router.get("/courses/{course_id}/roster.csv", response_class=PlainTextResponse)
async def export_roster(
    course_id: str,
    strict: bool = Query(False),
    pipeline: AnalyticsPipeline = Depends(get_pipeline)
):
    content = await pipeline.roster_csv(course_id, strict=strict)
    return PlainTextResponse(
        content,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="roster_{course_id}.csv"'}
    )


@router.get("/quizzes/{quiz_id}/summary")
async def get_quiz_summary(
    quiz_id: str,
    pipeline: AnalyticsPipeline = Depends(get_pipeline)
):
    """Class average, average time and score distribution for one quiz"""
    summary = await pipeline.quiz_summary(quiz_id)
    return _envelope(
        "Quiz summary retrieved successfully",
        wrap_with_empty_state(summary.model_dump(mode="json", by_alias=True), "quiz_results", summary.submissions)
    )
