"""SM-2 spaced repetition update.

Based on the SuperMemo 2 algorithm by Piotr Wozniak. Answers come from a
two-button UI, so quality is either 5 (know) or 0 (don't know).
"""

import math
from datetime import datetime, timedelta

from n5lab.models.review import DEFAULT_EASE, MIN_EASE, CardReviewRecord, ReviewOutcome

# Answers at or above this quality count as a successful recall
PASSING_QUALITY = 3


def quality_for(outcome: ReviewOutcome) -> int:
    """Map a self-graded outcome to an SM-2 quality score (0-5)."""
    return 5 if outcome == ReviewOutcome.KNOW else 0


def next_ease_factor(ease_factor: float, quality: int) -> float:
    """Standard SM-2 ease update, floored at MIN_EASE."""
    miss = 5 - quality
    return max(MIN_EASE, ease_factor + 0.1 - miss * (0.08 + miss * 0.02))


def sm2_update(record: CardReviewRecord | None, quality: int, now: datetime) -> CardReviewRecord:
    """Compute a card's record after one answer.

    Args:
        record: Current record, or None for a card never reviewed.
        quality: Recall quality 0-5.
        now: Time of the answer.

    Returns:
        The replacement record.
    """
    ease_factor = record.ease_factor if record else DEFAULT_EASE
    interval = record.interval if record else 0
    repetitions = record.repetitions if record else 0
    total_seen = record.total_seen if record else 0

    if quality >= PASSING_QUALITY:
        if repetitions == 0:
            interval = 1
        elif repetitions == 1:
            interval = 6
        else:
            # Ease factor from before this answer; halves round up
            interval = math.floor(interval * ease_factor + 0.5)
        repetitions += 1
    else:
        repetitions = 0
        interval = 1

    return CardReviewRecord(
        ease_factor=next_ease_factor(ease_factor, quality),
        interval=interval,
        repetitions=repetitions,
        next_review=now + timedelta(days=interval),
        last_seen=now,
        total_seen=total_seen + 1,
    )
