"""
Topic Aggregator & Peer Ranking Tests

Covers accuracy math, class statistics, competition ranking, subject
grouping and determinism under input reordering.
"""
import random

import pytest

from learnlytics.empty_states import round_half_up, safe_percentage
from learnlytics.exceptions import EmptyScopeError
from learnlytics.schemas.analytics import TopicPerformance
from learnlytics.schemas.answers import Answer, TopicRef
from learnlytics.services.ranking_service import RankingService
from learnlytics.services.topic_aggregator import (
    aggregate_class_topics,
    aggregate_question_stats,
    aggregate_student_topics,
    aggregate_subjects,
    build_class_topic_stats,
    subject_for_topic,
)


def make_answer(student, question, correct, topic="t1", quiz="z1", seconds=10.0):
    return Answer(
        student_id=student,
        question_id=question,
        topic_id=topic,
        quiz_id=quiz,
        is_correct=correct,
        time_taken_seconds=seconds
    )


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def three_students():
    """A: 2/2, B: 1/2, C: 1/2 in one topic"""
    return [
        make_answer("A", "q1", True), make_answer("A", "q2", True),
        make_answer("B", "q1", True), make_answer("B", "q2", False),
        make_answer("C", "q1", False), make_answer("C", "q2", True),
    ]


@pytest.fixture
def mixed_topics():
    return [
        make_answer("s1", "q1", True, topic="t1", seconds=10),
        make_answer("s1", "q2", False, topic="t1", seconds=21),
        make_answer("s1", "q3", True, topic="t2", seconds=5),
        make_answer("s2", "q1", False, topic="t1", seconds=0),
        make_answer("s2", "q3", True, topic="t2", seconds=7),
        make_answer("s3", "q3", False, topic="t2", seconds=3),
    ]


# ============================================================================
# Rounding helpers
# ============================================================================

class TestRounding:

    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(66.5) == 67

    def test_percentage_of_zero_total_is_zero(self):
        assert safe_percentage(0, 0) == 0

    def test_two_thirds(self):
        assert safe_percentage(2, 3) == 67


# ============================================================================
# Per-student aggregation
# ============================================================================

class TestStudentTopics:

    def test_counts_and_accuracy(self, mixed_topics):
        rows = aggregate_student_topics(mixed_topics, student_id="s1")

        assert [(r.topic_id, r.correct, r.total, r.accuracy) for r in rows] == [
            ("t1", 1, 2, 50),
            ("t2", 1, 1, 100),
        ]

    def test_avg_time_rounds_half_up(self, mixed_topics):
        rows = aggregate_student_topics(mixed_topics, student_id="s1")
        # (10 + 21) / 2 = 15.5
        assert rows[0].avg_time_taken_seconds == 16

    def test_topic_names_attached(self, mixed_topics):
        rows = aggregate_student_topics(mixed_topics, topic_names={"t1": "Fractions"}, student_id="s2")
        assert rows[0].topic_name == "Fractions"

    def test_idempotent(self, mixed_topics):
        assert aggregate_student_topics(mixed_topics) == aggregate_student_topics(mixed_topics)

    def test_correct_never_exceeds_total(self):
        with pytest.raises(ValueError):
            TopicPerformance(student_id="s", topic_id="t", correct=3, total=2, accuracy=100)

    def test_sum_of_correct_matches_answers(self, mixed_topics):
        rows = aggregate_student_topics(mixed_topics)
        for topic in ("t1", "t2"):
            expected = sum(1 for a in mixed_topics if a.topic_id == topic and a.is_correct)
            assert sum(r.correct for r in rows if r.topic_id == topic) == expected


# ============================================================================
# Class statistics & ranking
# ============================================================================

class TestClassTopicStats:

    def test_three_student_scenario(self, three_students):
        stats = build_class_topic_stats("t1", three_students)
        ranks = {e.student_id: (e.rank, e.percentile) for e in stats.ranked_students}

        assert ranks["A"] == (1, 100)
        assert ranks["B"] == (2, 67)
        assert ranks["C"] == (2, 67)
        assert stats.student_count == 3

    def test_class_average_uses_unrounded_percentages(self):
        # 1/3 = 33.33.., 2/3 = 66.66.. -> mean 50.0
        answers = [
            make_answer("a", "q1", True), make_answer("a", "q2", False), make_answer("a", "q3", False),
            make_answer("b", "q1", True), make_answer("b", "q2", True), make_answer("b", "q3", False),
        ]
        assert build_class_topic_stats("t1", answers).class_average_accuracy == 50

    def test_strongest_and_weakest(self, three_students):
        stats = build_class_topic_stats("t1", three_students)
        assert stats.strongest.student_id == "A"
        assert stats.weakest.student_id == "C"

    def test_empty_topic_is_zero_valued(self):
        stats = aggregate_class_topics([], topic_ids=["t9"])
        assert len(stats) == 1
        assert stats[0].class_average_accuracy == 0
        assert stats[0].student_count == 0
        assert stats[0].ranked_students == []
        assert stats[0].strongest is None

    def test_strict_empty_scope_raises(self):
        with pytest.raises(EmptyScopeError):
            aggregate_class_topics([], strict=True, scope="scope(quiz=z1)")

    def test_shuffling_answers_does_not_change_ranking(self, mixed_topics):
        expected = aggregate_class_topics(mixed_topics)
        shuffled = list(mixed_topics)
        random.Random(7).shuffle(shuffled)

        def by_topic(stats):
            return {s.topic_id: s.ranked_students for s in stats}

        assert by_topic(aggregate_class_topics(shuffled)) == by_topic(expected)


class TestRankingService:

    def test_ties_share_rank_and_next_rank_skips(self):
        entries = RankingService.rank({"a": 90, "b": 90, "c": 80, "d": 70})
        assert [(e.student_id, e.rank) for e in entries] == [("a", 1), ("b", 1), ("c", 3), ("d", 4)]

    def test_rank_below_tie_is_tied_rank_plus_count(self):
        entries = RankingService.rank({"a": 100, "b": 60, "c": 60, "d": 60, "e": 10})
        assert entries[-1].rank == 2 + 3

    def test_single_student(self):
        entries = RankingService.rank({"solo": 0})
        assert entries[0].rank == 1
        assert entries[0].percentile == 100

    def test_empty_group(self):
        assert RankingService.rank({}) == []

    def test_percentiles_stay_in_range(self):
        entries = RankingService.rank({str(i): i * 7 % 101 for i in range(25)})
        assert all(0 <= e.percentile <= 100 for e in entries)

    def test_rank_non_decreasing_as_accuracy_drops(self):
        entries = RankingService.rank([("x", 40), ("y", 95), ("z", 40), ("w", 10)])
        ranks = [e.rank for e in entries]
        assert ranks == sorted(ranks)

    def test_class_rank_band(self):
        rank = RankingService.class_rank("b", {"a": 95, "b": 80, "c": 70, "d": 50})
        assert (rank.rank, rank.total_students, rank.percentile, rank.band) == (2, 4, 75, "Top 25%")

    @pytest.mark.parametrize("percentile,band", [
        (90, "Top 10%"), (89, "Top 25%"), (75, "Top 25%"), (50, "Top 50%"),
        (25, "Bottom 50%"), (24, "Bottom 25%"),
    ])
    def test_band_boundaries(self, percentile, band):
        assert RankingService.band_for(percentile) == band


# ============================================================================
# Question statistics
# ============================================================================

class TestQuestionStats:

    def test_success_rate_and_time(self, mixed_topics):
        stats = aggregate_question_stats(mixed_topics)
        q3 = stats["q3"]
        assert (q3.attempts, q3.correct_count, q3.success_rate, q3.avg_time_seconds) == (3, 2, 67, 5)


# ============================================================================
# Subjects
# ============================================================================

class TestSubjects:

    @pytest.mark.parametrize("topic,course,subject", [
        ("Week 3 - Algebra", "Math 101", "Algebra"),
        ("Week 12 Geometry", "Math 101", "Geometry"),
        ("Limits", "Calculus", "Calculus"),
        ("Limits", None, "Unknown Subject"),
    ])
    def test_subject_for_topic(self, topic, course, subject):
        assert subject_for_topic(topic, course) == subject

    def test_subjects_roll_up_topics(self):
        rows = [
            TopicPerformance(student_id="s", topic_id="t1", topic_name="Week 1 - Algebra",
                             correct=3, total=4, accuracy=75, avg_time_taken_seconds=10),
            TopicPerformance(student_id="s", topic_id="t2", topic_name="Week 2 - Algebra",
                             correct=1, total=4, accuracy=25, avg_time_taken_seconds=21),
            TopicPerformance(student_id="s", topic_id="t3", topic_name="Vectors",
                             correct=2, total=2, accuracy=100, avg_time_taken_seconds=8),
        ]
        topics = {"t3": TopicRef(id="t3", name="Vectors", course_name="Physics")}

        subjects = aggregate_subjects(rows, topics)

        assert [s.subject for s in subjects] == ["Algebra", "Physics"]
        algebra = subjects[0]
        assert (algebra.correct_answers, algebra.total_questions, algebra.avg_accuracy) == (4, 8, 50)
        assert algebra.avg_time == 16
        assert algebra.weakest_topics[0].name == "Week 2 - Algebra"
        assert algebra.strongest_topics[0].name == "Week 1 - Algebra"
