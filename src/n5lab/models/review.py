"""Spaced-repetition review records."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_EASE = 2.5
MIN_EASE = 1.3


class ReviewOutcome(StrEnum):
    """Self-graded answer from the two-button flashcard UI."""

    KNOW = "know"
    DONT_KNOW = "dont-know"


class CardReviewRecord(BaseModel):
    """SM-2 state for one flashcard. Exists only after the first review."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    ease_factor: float = Field(default=DEFAULT_EASE, ge=MIN_EASE)
    interval: int = Field(default=0, ge=0)  # days
    repetitions: int = Field(default=0, ge=0)
    next_review: datetime
    last_seen: datetime
    total_seen: int = Field(default=1, ge=1)

    def is_due(self, now: datetime) -> bool:
        return self.next_review <= now
