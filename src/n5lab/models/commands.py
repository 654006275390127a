"""Progression commands.

Each operation on the learner profile is a separate command model. The
``ProgressionCommand`` union is discriminated on ``kind`` so it can also be
parsed straight from JSON.
"""

from datetime import date
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from n5lab.models.progress import StudyMode


class _Command(BaseModel):
    model_config = ConfigDict(frozen=True)


class CompleteLesson(_Command):
    kind: Literal["complete_lesson"] = "complete_lesson"
    lesson_id: str = Field(min_length=1)
    score: int = Field(default=100, ge=0, le=100)
    xp_earned: int = Field(default=20, ge=0)


class AwardXP(_Command):
    kind: Literal["award_xp"] = "award_xp"
    amount: int = Field(ge=0)
    reason: str = ""


class UpdateStreak(_Command):
    kind: Literal["update_streak"] = "update_streak"
    today: date
    bonus_per_day: int = Field(default=5, ge=0)


class UnlockAchievement(_Command):
    kind: Literal["unlock_achievement"] = "unlock_achievement"
    achievement_id: str = Field(min_length=1)


class SetStudyMode(_Command):
    kind: Literal["set_study_mode"] = "set_study_mode"
    mode: StudyMode


class ResetProgress(_Command):
    kind: Literal["reset_progress"] = "reset_progress"


ProgressionCommand = Annotated[
    CompleteLesson | AwardXP | UpdateStreak | UnlockAchievement | SetStudyMode | ResetProgress,
    Field(discriminator="kind"),
]
