"""
Insight Classifier & Comparison Tests
"""
import pytest

from learnlytics.schemas.analytics import (
    ComparisonLabel,
    KeyInsightType,
    PaceBadge,
    QuestionAnalysis,
    QuestionStats,
    TopicPerformance,
)
from learnlytics.schemas.answers import Answer, Question
from learnlytics.services.comparison_service import compare_to_class
from learnlytics.services.insight_classifier import InsightClassifier


def analysis(index, correct, success_rate=60, time_spent=10, avg_time=10, difficulty=None):
    return QuestionAnalysis(
        index=index,
        question_id=f"q{index}",
        difficulty=difficulty,
        is_correct=correct,
        time_spent=time_spent,
        avg_time_spent=avg_time,
        success_rate=success_rate
    )


def topic(topic_id, accuracy, name=None):
    return TopicPerformance(
        student_id="s1", topic_id=topic_id, topic_name=name,
        correct=accuracy, total=100, accuracy=accuracy
    )


# ============================================================================
# Comparison Engine
# ============================================================================

class TestComparison:

    @pytest.mark.parametrize("student,average,label", [
        (81, 70, ComparisonLabel.ABOVE),
        (80, 70, ComparisonLabel.AT),
        (60, 70, ComparisonLabel.AT),
        (59, 70, ComparisonLabel.BELOW),
    ])
    def test_threshold_is_exclusive(self, student, average, label):
        assert compare_to_class(student, average).label == label

    def test_signed_delta(self):
        assert compare_to_class(55, 72).delta == -17


# ============================================================================
# Topic highlights
# ============================================================================

class TestTopicHighlights:

    def test_top_three_each_way(self):
        rows = [topic("t1", 40), topic("t2", 90), topic("t3", 65), topic("t4", 10), topic("t5", 75)]

        assert [t.topic_id for t in InsightClassifier.weakest_topics(rows)] == ["t4", "t1", "t3"]
        assert [t.topic_id for t in InsightClassifier.strongest_topics(rows)] == ["t2", "t5", "t3"]

    def test_ties_keep_input_order(self):
        rows = [topic("first", 50), topic("second", 50), topic("third", 50), topic("fourth", 50)]

        assert [t.topic_id for t in InsightClassifier.weakest_topics(rows)] == ["first", "second", "third"]
        assert [t.topic_id for t in InsightClassifier.strongest_topics(rows)] == ["first", "second", "third"]

    def test_name_falls_back_to_id(self):
        assert InsightClassifier.weakest_topics([topic("t1", 10)])[0].name == "t1"


# ============================================================================
# Question rules
# ============================================================================

class TestQuestionRules:

    def test_areas_to_improve_boundary(self):
        analyses = [analysis(0, False, 70), analysis(1, False, 69), analysis(2, True, 90)]
        assert InsightClassifier.areas_to_improve(analyses) == [0]

    def test_strong_performance_boundary(self):
        analyses = [analysis(0, True, 50), analysis(1, True, 51), analysis(2, False, 10)]
        assert InsightClassifier.strong_performance(analyses) == [0]

    def test_favorable_pacing(self):
        analyses = [analysis(i, True, time_spent=5, avg_time=10) for i in range(3)]
        pacing = InsightClassifier.pacing(analyses)
        assert (pacing.fast_count, pacing.slow_count, pacing.verdict) == (3, 0, "favorable")

    def test_unfavorable_needs_more_than_three_slow(self):
        three_slow = [analysis(i, True, time_spent=20, avg_time=10) for i in range(3)]
        four_slow = [analysis(i, True, time_spent=20, avg_time=10) for i in range(4)]

        assert InsightClassifier.pacing(three_slow).verdict is None
        assert InsightClassifier.pacing(four_slow).verdict == "unfavorable"

    def test_pacing_ignores_questions_without_peer_average(self):
        analyses = [analysis(0, True, time_spent=0, avg_time=0)]
        pacing = InsightClassifier.pacing(analyses)
        assert (pacing.fast_count, pacing.average_count, pacing.verdict) == (0, 0, None)

    def test_pacing_ratio_boundaries(self):
        # 7 is not < 0.7 * 10, 15 is not > 1.5 * 10
        analyses = [analysis(0, True, time_spent=7, avg_time=10), analysis(1, True, time_spent=15, avg_time=10)]
        pacing = InsightClassifier.pacing(analyses)
        assert (pacing.fast_count, pacing.slow_count, pacing.average_count) == (0, 0, 2)

    def test_difficulty_breakdown_requires_easy_and_hard(self):
        only_easy = [analysis(0, True, difficulty="easy"), analysis(1, False, difficulty="medium")]
        assert InsightClassifier.difficulty_breakdown(only_easy) is None

    def test_difficulty_breakdown_percentages(self):
        analyses = [
            analysis(0, True, difficulty="easy"),
            analysis(1, False, difficulty="easy"),
            analysis(2, True, difficulty="hard"),
            analysis(3, True, difficulty="medium"),
        ]
        breakdown = InsightClassifier.difficulty_breakdown(analyses)
        assert breakdown.percent_correct == {"easy": 50, "medium": 100, "hard": 100}
        assert breakdown.attempted == {"easy": 2, "medium": 1, "hard": 1}

    @pytest.mark.parametrize("spent,avg,badge", [
        (6, 10, PaceBadge.VERY_FAST),
        (7, 10, PaceBadge.FAST),
        (10, 10, PaceBadge.AVERAGE),
        (15, 10, PaceBadge.AVERAGE),
        (16, 10, PaceBadge.SLOW),
        (16, 0, None),
    ])
    def test_pace_badge(self, spent, avg, badge):
        assert InsightClassifier.pace_badge(spent, avg) == badge


# ============================================================================
# Question analysis
# ============================================================================

class TestAnalyzeQuestions:

    def test_skipped_question_is_marked_unanswered(self):
        questions = [
            Question(id="q1", topic_id="t1", correct_answer="A", options=["Yes", "No"]),
            Question(id="q2", topic_id="t1", correct_answer="No"),
        ]
        answers = [Answer(student_id="s1", question_id="q1", topic_id="t1", quiz_id="z",
                          is_correct=True, time_taken_seconds=4, selected_answer="Yes")]
        stats = {"q1": QuestionStats(question_id="q1", attempts=2, correct_count=1,
                                     success_rate=50, avg_time_seconds=8)}

        analyses = InsightClassifier.analyze_questions(questions, answers, stats)

        assert analyses[0].correct_answer == "Yes"
        assert analyses[0].pace_badge == PaceBadge.VERY_FAST
        assert analyses[1].is_correct is False
        assert analyses[1].answered is False
        assert analyses[1].your_answer is None
        assert analyses[1].pace_badge is None


# ============================================================================
# Full classification
# ============================================================================

class TestClassify:

    def test_key_insights_texts(self):
        analyses = [
            analysis(0, False, 80, difficulty="easy"),
            analysis(1, True, 30, time_spent=2, avg_time=10, difficulty="hard"),
            analysis(2, True, 60, time_spent=3, avg_time=10, difficulty="easy"),
        ]

        result = InsightClassifier.classify([topic("t1", 67)], analyses)
        by_type = {i.type: i for i in result.key_insights}

        assert by_type[KeyInsightType.IMPROVE].description == \
            "You missed 1 question(s) that most students got right"
        assert by_type[KeyInsightType.IMPROVE].questions == [0]
        assert by_type[KeyInsightType.STRONG].description == \
            "You got 1 difficult question(s) right that most students missed"
        assert by_type[KeyInsightType.TIME].description == \
            "You're faster than average on 2 questions - good pacing!"
        assert by_type[KeyInsightType.DIFFICULTY].description == "Easy: 50% correct | Hard: 100% correct"

    def test_no_data_yields_empty_result(self):
        result = InsightClassifier.classify([], [])
        assert result.key_insights == []
        assert result.weakest_topics == []
        assert result.difficulty_breakdown is None

    def test_skipped_questions_feed_no_rule(self):
        questions = [
            Question(id="q1", difficulty="easy", correct_answer="A"),
            Question(id="q2", difficulty="medium", correct_answer="A"),
            Question(id="q3", difficulty="medium", correct_answer="A"),
            Question(id="q4", difficulty="hard", correct_answer="A"),
        ]
        answers = [Answer(student_id="s1", question_id="q1", topic_id="t1", quiz_id="z",
                          is_correct=True, time_taken_seconds=8, selected_answer="A")]
        stats = {
            q.id: QuestionStats(question_id=q.id, attempts=2, correct_count=2,
                                success_rate=100, avg_time_seconds=8)
            for q in questions
        }

        analyses = InsightClassifier.analyze_questions(questions, answers, stats)
        result = InsightClassifier.classify([], analyses)

        assert result.areas_to_improve == []
        assert result.difficulty_breakdown is None
        assert result.pacing.fast_count == 0
        assert result.pacing.verdict is None
        assert result.key_insights == []
