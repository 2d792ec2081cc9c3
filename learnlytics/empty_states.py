"""
learnlytics/empty_states.py
Empty State & Graceful Degradation

CORE PRINCIPLE:
Empty state != Error state

An empty scope yields zero-valued stats plus metadata explaining why,
never an exception.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any, List

from pydantic import BaseModel


class EmptyStateMetadata(BaseModel):
    """Metadata about empty state conditions"""
    is_empty: bool
    reason: str
    guidance: str
    current_count: Optional[int] = None


EMPTY_STATE_CONFIGS = {
    "answers": {
        "reason": "No answers recorded in this scope",
        "guidance": "Results will appear once students submit quizzes."
    },
    "topics": {
        "reason": "No topic performance available",
        "guidance": "Answer questions tagged with a topic to unlock topic analytics."
    },
    "quiz_results": {
        "reason": "No quiz submissions yet",
        "guidance": "Class statistics appear after the first submission."
    },
    "roster": {
        "reason": "No students enrolled in this course",
        "guidance": "Enroll students to build the roster export."
    },
}


def get_empty_state_metadata(
    state_type: str,
    current_count: int = 0,
    custom_reason: Optional[str] = None
) -> EmptyStateMetadata:
    """Generate empty state metadata for a given type"""
    config = EMPTY_STATE_CONFIGS.get(state_type, {
        "reason": "No data available",
        "guidance": "Data will appear here as students answer questions."
    })

    return EmptyStateMetadata(
        is_empty=True,
        reason=custom_reason or config["reason"],
        guidance=config["guidance"],
        current_count=current_count
    )


def wrap_with_empty_state(data: Any, state_type: str, count: int) -> Dict[str, Any]:
    """Wrap data with empty state metadata"""
    result = {
        "has_data": count > 0,
        "data": data
    }
    if count == 0:
        result["empty_state"] = get_empty_state_metadata(state_type, count).model_dump()
    return result


def round_half_up(value: Any) -> int:
    """
    Round to the nearest integer, halves away from zero.

    Python's round() uses banker's rounding (round(2.5) == 2); percentages
    shown to students must round 2.5 up.
    """
    if isinstance(value, Decimal):
        decimal_value = value
    else:
        decimal_value = Decimal(str(value))
    return int(decimal_value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def safe_percentage(numerator: float, denominator: float, default: int = 0) -> int:
    """Integer percentage without division by zero, clamped to [0, 100]"""
    if denominator is None or denominator == 0:
        return default
    result = round_half_up(Decimal(str(numerator)) * 100 / Decimal(str(denominator)))
    return max(0, min(100, result))


def safe_rounded_average(values: List[float], default: int = 0) -> int:
    """Average rounded half-up to a whole number"""
    valid_values = [v for v in values if v is not None and v == v]
    if not valid_values:
        return default
    total = sum(Decimal(str(v)) for v in valid_values)
    return round_half_up(total / len(valid_values))


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert to float"""
    if value is None:
        return default
    try:
        result = float(value)
        if result != result:  # NaN check
            return default
        return result
    except (ValueError, TypeError):
        return default
