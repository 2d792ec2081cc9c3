"""
learnlytics/services/ranking_service.py
Peer Ranking Engine

Standard competition ranking over integer accuracies:
- Sort descending by accuracy
- Tied students share a rank; the next distinct accuracy skips ahead
  by the size of the tie (1, 1, 3 - never 1, 1, 2)
- percentile = round(((N - rank + 1) / N) * 100), N = students ranked

Used for per-topic class rankings and for ranking quiz submissions.
Deterministic: the output does not depend on input order.
"""
import logging
from typing import Iterable, List, Mapping, Tuple, Union

from learnlytics.empty_states import safe_percentage
from learnlytics.schemas.analytics import ClassRank, RankEntry

logger = logging.getLogger(__name__)


class RankingService:
    """Competition ranking with shared ranks for ties"""

    # Percentile band thresholds (inclusive lower bounds)
    PERCENTILE_BANDS = [
        (90, "Top 10%"),
        (75, "Top 25%"),
        (50, "Top 50%"),
        (25, "Bottom 50%"),
    ]
    LOWEST_BAND = "Bottom 25%"

    @staticmethod
    def percentile_for(rank: int, total: int) -> int:
        """round(((N - rank + 1) / N) * 100); 0 for an empty group"""
        if total <= 0:
            return 0
        return safe_percentage(total - rank + 1, total)

    @staticmethod
    def rank(
        accuracies: Union[Mapping[str, int], Iterable[Tuple[str, int]]]
    ) -> List[RankEntry]:
        """
        Rank students by accuracy.

        Args:
            accuracies: student_id -> integer accuracy, as a mapping or pairs

        Returns:
            RankEntry list ordered best first; ties ordered by student_id
        """
        pairs = list(accuracies.items()) if isinstance(accuracies, Mapping) else list(accuracies)
        if not pairs:
            return []

        ordered = sorted(pairs, key=lambda p: (-p[1], str(p[0])))
        total = len(ordered)

        entries: List[RankEntry] = []
        current_rank = 1
        for position, (student_id, accuracy) in enumerate(ordered):
            if position > 0 and accuracy != ordered[position - 1][1]:
                # Skip past every student sharing the previous rank
                current_rank = position + 1
            entries.append(RankEntry(
                student_id=str(student_id),
                accuracy=accuracy,
                rank=current_rank,
                percentile=RankingService.percentile_for(current_rank, total)
            ))

        return entries

    @staticmethod
    def band_for(percentile: int) -> str:
        for threshold, label in RankingService.PERCENTILE_BANDS:
            if percentile >= threshold:
                return label
        return RankingService.LOWEST_BAND

    @staticmethod
    def class_rank(student_id: str, percentages: Mapping[str, int]) -> ClassRank:
        """
        Rank one submission among all submissions of a quiz.

        A student with no submission is placed after everyone else.
        """
        entries = RankingService.rank(percentages)
        entry = next((e for e in entries if e.student_id == str(student_id)), None)
        total = len(entries)

        if entry is None:
            logger.warning(f"[ANALYTICS] Student {student_id} has no submission to rank")
            total += 1
            rank = total
            percentile = RankingService.percentile_for(rank, total)
        else:
            rank = entry.rank
            percentile = entry.percentile

        return ClassRank(
            rank=rank,
            total_students=total,
            percentile=percentile,
            band=RankingService.band_for(percentile)
        )
