"""
learnlytics/services/comparison_service.py
Comparison Engine

Labels a student's topic accuracy against the class average.
"""
from learnlytics.schemas.analytics import ComparisonLabel, TopicComparison

# Points either side of the class average that still count as "at class level"
COMPARISON_THRESHOLD = 10


def compare_to_class(student_accuracy: int, class_average_accuracy: int) -> TopicComparison:
    """
    "above average" when delta > 10, "below average" when delta < -10,
    otherwise "at class level".
    """
    delta = student_accuracy - class_average_accuracy
    if delta > COMPARISON_THRESHOLD:
        label = ComparisonLabel.ABOVE
    elif delta < -COMPARISON_THRESHOLD:
        label = ComparisonLabel.BELOW
    else:
        label = ComparisonLabel.AT

    return TopicComparison(
        student_accuracy=student_accuracy,
        class_average_accuracy=class_average_accuracy,
        delta=delta,
        label=label
    )
