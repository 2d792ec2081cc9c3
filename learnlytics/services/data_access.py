"""
learnlytics/services/data_access.py
Data access collaborator

The engine never queries storage itself. It reads through an
AnalyticsRepository, and every call is treated as an atomic snapshot.
InMemoryAnalyticsRepository serves supplied lists for tests and
local runs.
"""
from typing import Iterable, List, Optional, Protocol, Sequence, Set

from learnlytics.schemas.answers import (
    AnalyticsScope,
    Question,
    QuizResult,
    RawAnswerRecord,
    StudentProfile,
    TopicRef,
)


class AnalyticsRepository(Protocol):
    async def list_answers(self, scope: AnalyticsScope) -> List[RawAnswerRecord]:
        ...

    async def list_questions(self, ids: Sequence[str]) -> List[Question]:
        ...

    async def list_students_in_scope(self, scope: AnalyticsScope) -> List[str]:
        ...

    async def list_topics(self, ids: Optional[Sequence[str]] = None) -> List[TopicRef]:
        ...

    async def list_students(self, ids: Optional[Sequence[str]] = None) -> List[StudentProfile]:
        ...

    async def list_quiz_results(self, scope: AnalyticsScope) -> List[QuizResult]:
        ...


class InMemoryAnalyticsRepository:
    """AnalyticsRepository over plain lists"""

    def __init__(
        self,
        answers: Iterable = (),
        questions: Iterable = (),
        topics: Iterable = (),
        students: Iterable = (),
        quiz_results: Iterable = (),
        enrollments: Optional[dict] = None
    ):
        self.answers = [RawAnswerRecord.model_validate(a) for a in answers]
        self.questions = [Question.model_validate(q) for q in questions]
        self.topics = [TopicRef.model_validate(t) for t in topics]
        self.students = [StudentProfile.model_validate(s) for s in students]
        self.quiz_results = [QuizResult.model_validate(r) for r in quiz_results]
        # course_id -> enrolled student ids
        self.enrollments = {
            str(course): [str(s) for s in members]
            for course, members in (enrollments or {}).items()
        }

    def _topic_course(self, topic_id: Optional[str]) -> Optional[str]:
        ref = next((t for t in self.topics if t.id == topic_id), None)
        return ref.course_id if ref else None

    def _question_topic(self, question_id: Optional[str]) -> Optional[str]:
        question = next((q for q in self.questions if q.id == question_id), None)
        return question.topic_id if question else None

    def _answer_matches(self, record: RawAnswerRecord, scope: AnalyticsScope) -> bool:
        if scope.quiz_id and record.quiz_id != scope.quiz_id:
            return False
        if scope.student_ids is not None and record.student_id not in scope.student_ids:
            return False
        topic_id = record.topic_id or self._question_topic(record.question_id)
        if scope.topic_id and topic_id != scope.topic_id:
            return False
        if scope.course_id and self._topic_course(topic_id) != scope.course_id:
            return False
        return True

    async def list_answers(self, scope: AnalyticsScope) -> List[RawAnswerRecord]:
        return [a for a in self.answers if self._answer_matches(a, scope)]

    async def list_questions(self, ids: Sequence[str]) -> List[Question]:
        wanted: Set[str] = {str(i) for i in ids}
        return [q for q in self.questions if q.id in wanted]

    async def list_students_in_scope(self, scope: AnalyticsScope) -> List[str]:
        """Enrolled students for a course scope, else everyone with an answer in scope"""
        if scope.student_ids is not None:
            return list(scope.student_ids)
        if scope.course_id and scope.course_id in self.enrollments:
            return list(self.enrollments[scope.course_id])
        seen: List[str] = []
        for record in await self.list_answers(scope):
            if record.student_id and record.student_id not in seen:
                seen.append(record.student_id)
        return seen

    async def list_topics(self, ids: Optional[Sequence[str]] = None) -> List[TopicRef]:
        if ids is None:
            return list(self.topics)
        wanted = {str(i) for i in ids}
        return [t for t in self.topics if t.id in wanted]

    async def list_students(self, ids: Optional[Sequence[str]] = None) -> List[StudentProfile]:
        if ids is None:
            return list(self.students)
        wanted = [str(i) for i in ids]
        known = {s.id: s for s in self.students}
        return [known.get(sid, StudentProfile(id=sid)) for sid in wanted]

    async def list_quiz_results(self, scope: AnalyticsScope) -> List[QuizResult]:
        results = []
        for result in self.quiz_results:
            if scope.quiz_id and result.quiz_id != scope.quiz_id:
                continue
            if scope.student_ids is not None and result.student_id not in scope.student_ids:
                continue
            results.append(result)
        return results
