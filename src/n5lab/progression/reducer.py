"""Pure state transitions for the learner profile."""

import math
from datetime import datetime, timedelta
from typing import assert_never

from n5lab.models.commands import (
    AwardXP,
    CompleteLesson,
    ProgressionCommand,
    ResetProgress,
    SetStudyMode,
    UnlockAchievement,
    UpdateStreak,
)
from n5lab.models.progress import LearnerProfile, LessonScore

# Repeat completions of a lesson earn this share of the normal reward
REPEAT_COMPLETION_RATIO = 0.3
# Streak bonus stops growing after this many days
STREAK_BONUS_CAP_DAYS = 7


def new_profile(now: datetime) -> LearnerProfile:
    """Fresh zero-valued profile."""
    return LearnerProfile(created_at=now, last_updated=now)


def apply_command(profile: LearnerProfile, command: ProgressionCommand, now: datetime) -> LearnerProfile:
    """Return the profile that results from applying ``command``.

    ``profile`` is never modified. A command that changes nothing returns
    ``profile`` itself.

    Args:
        profile: Current state.
        command: Transition to apply.
        now: Timestamp recorded on the new state.
    """
    match command:
        case CompleteLesson():
            return _complete_lesson(profile, command, now)
        case AwardXP(amount=amount):
            return profile.model_copy(update={"xp": profile.xp + amount, "last_updated": now})
        case UpdateStreak():
            return _update_streak(profile, command, now)
        case UnlockAchievement(achievement_id=achievement_id):
            if achievement_id in profile.achievements:
                return profile
            return profile.model_copy(update={
                "achievements": [*profile.achievements, achievement_id],
                "last_updated": now,
            })
        case SetStudyMode(mode=mode):
            return profile.model_copy(update={"study_mode": mode, "last_updated": now})
        case ResetProgress():
            return new_profile(now)
        case _:
            assert_never(command)


def _complete_lesson(profile: LearnerProfile, command: CompleteLesson, now: datetime) -> LearnerProfile:
    lesson_id = command.lesson_id
    already_completed = profile.has_completed(lesson_id)
    existing = profile.lesson_scores.get(lesson_id)

    if existing is not None:
        score = existing.model_copy(update={
            "best_score": max(existing.best_score, command.score),
            "last_score": command.score,
            "last_attempt_at": now,
            "attempts": existing.attempts + 1,
        })
    else:
        score = LessonScore(
            best_score=command.score,
            last_score=command.score,
            completed_at=now,
            last_attempt_at=now,
            attempts=1,
        )

    if already_completed:
        xp_gain = math.floor(command.xp_earned * REPEAT_COMPLETION_RATIO)
        completed = profile.completed_lessons
    else:
        xp_gain = command.xp_earned
        completed = [*profile.completed_lessons, lesson_id]

    return profile.model_copy(update={
        "xp": profile.xp + xp_gain,
        "completed_lessons": completed,
        "lesson_scores": {**profile.lesson_scores, lesson_id: score},
        "last_updated": now,
    })


def _update_streak(profile: LearnerProfile, command: UpdateStreak, now: datetime) -> LearnerProfile:
    today = command.today
    yesterday = today - timedelta(days=1)
    last = profile.last_active_date

    if last == today:
        return profile

    if last == yesterday:
        streak = profile.streak + 1
    elif last is None or last < yesterday:
        streak = 1
    else:
        # Last activity is after today: the clock went backwards, keep the streak
        streak = max(profile.streak, 1)

    bonus = min(streak, STREAK_BONUS_CAP_DAYS) * command.bonus_per_day
    active_dates = profile.active_dates
    if today not in active_dates:
        active_dates = [*active_dates, today]

    return profile.model_copy(update={
        "streak": streak,
        "longest_streak": max(profile.longest_streak, streak),
        "last_active_date": today,
        "active_dates": active_dates,
        "xp": profile.xp + bonus,
        "last_updated": now,
    })
