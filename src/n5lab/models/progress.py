"""Learner progress model: XP, streaks, completed lessons."""

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 1


class StudyMode(StrEnum):
    """Curriculum browsing modes."""

    GUIDED = "guided"  # linear, gated progression
    OPEN = "open"  # free access to all content


class LessonScore(BaseModel):
    """Per-lesson results, kept across repeated completions."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    best_score: int = Field(alias="score", ge=0, le=100)
    last_score: int = Field(ge=0, le=100)
    completed_at: datetime
    last_attempt_at: datetime
    attempts: int = Field(default=1, ge=1)


class LearnerProfile(BaseModel):
    """All progression state for the single local learner.

    Instances are treated as immutable values: transitions build a new
    profile with ``model_copy`` instead of mutating fields.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    xp: int = Field(default=0, ge=0)
    completed_lessons: list[str] = Field(default_factory=list)
    lesson_scores: dict[str, LessonScore] = Field(default_factory=dict)

    streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_active_date: date | None = None
    active_dates: list[date] = Field(default_factory=list)

    achievements: list[str] = Field(default_factory=list)
    study_mode: StudyMode = StudyMode.GUIDED

    created_at: datetime = Field(default_factory=datetime.now)
    last_updated: datetime = Field(default_factory=datetime.now)
    version: int = Field(default=SCHEMA_VERSION, strict=True)

    @model_validator(mode="after")
    def _check_invariants(self) -> "LearnerProfile":
        if self.longest_streak < self.streak:
            raise ValueError("longestStreak must be at least streak")
        for name in ("completed_lessons", "active_dates", "achievements"):
            values = getattr(self, name)
            if len(values) != len(set(values)):
                raise ValueError(f"duplicate entries in {name}")
        if set(self.lesson_scores) != set(self.completed_lessons):
            raise ValueError("lessonScores must have exactly one entry per completed lesson")
        return self

    def has_completed(self, lesson_id: str) -> bool:
        return lesson_id in self.completed_lessons

    def to_storage(self) -> dict:
        """Serialize with the camelCase keys used in storage and exports."""
        return self.model_dump(mode="json", by_alias=True)
