"""Progression engine: owns the learner profile and its persistence."""

import json
from typing import Any

import structlog
from pydantic import ValidationError

from n5lab.clock import Clock
from n5lab.config import Settings
from n5lab.models.commands import (
    AwardXP,
    CompleteLesson,
    ProgressionCommand,
    ResetProgress,
    SetStudyMode,
    UnlockAchievement,
    UpdateStreak,
)
from n5lab.models.curriculum import Curriculum
from n5lab.models.progress import SCHEMA_VERSION, LearnerProfile, StudyMode
from n5lab.progression import gating
from n5lab.progression.levels import get_level_from_xp, get_level_progress, get_xp_for_next_level
from n5lab.progression.reducer import apply_command, new_profile
from n5lab.storage.kv import KeyValueStore, StorageError, read_value, write_value

logger = structlog.get_logger()


class ProgressImportError(ValueError):
    """Raised when an imported progress file is rejected."""


def _is_current_version(value: Any) -> bool:
    # bool is an int subclass; True must not pass as version 1
    return not isinstance(value, bool) and value == SCHEMA_VERSION


class ProgressionEngine:
    """Holds the single learner profile and applies commands to it.

    The profile starts at defaults, so every derived value is defined before
    ``load`` is called. Each command writes the whole profile back to the
    store; a failed write is logged and returned, never raised.

    Args:
        store: Key-value store for the progress namespace.
        clock: Source of "now" and the learner's calendar day.
        curriculum: Ordered modules used for gating.
        settings: XP rewards, storage key and app version.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock,
        curriculum: Curriculum,
        settings: Settings,
    ) -> None:
        self._store = store
        self._clock = clock
        self._settings = settings
        self.curriculum = curriculum
        self._profile = new_profile(clock.now())

    @property
    def profile(self) -> LearnerProfile:
        """A detached copy; changes to it never reach the engine."""
        return self._profile.model_copy(deep=True)

    def load(self) -> LearnerProfile:
        """Hydrate from storage, keeping defaults on any problem."""
        data, error = read_value(self._store, self._settings.progress_key)
        if error is not None or data is None:
            return self.profile
        if not isinstance(data, dict) or not _is_current_version(data.get("version")):
            logger.info(
                "progress_schema_mismatch",
                found=data.get("version") if isinstance(data, dict) else None,
                expected=SCHEMA_VERSION,
            )
            return self.profile
        try:
            self._profile = LearnerProfile.model_validate(data)
        except ValidationError as e:
            logger.warning("progress_load_failed", error=str(e))
            return self.profile
        logger.info("progress_loaded", xp=self._profile.xp, lessons=len(self._profile.completed_lessons))
        return self.profile

    def save(self) -> StorageError | None:
        error = write_value(self._store, self._settings.progress_key, self._profile.to_storage())
        if error is not None:
            logger.warning("progress_save_failed", error=error.message)
        return error

    def dispatch(self, command: ProgressionCommand) -> StorageError | None:
        """Apply ``command`` and persist the result."""
        updated = apply_command(self._profile, command, self._clock.now())
        if updated is self._profile:
            return None
        self._profile = updated
        logger.debug("progress_updated", command=command.kind, xp=updated.xp)
        return self.save()

    # ─── Commands ─────────────────────────────────────────────────────────

    def complete_lesson(self, lesson_id: str, score: int = 100, xp_earned: int | None = None) -> StorageError | None:
        """Record a lesson completion.

        Args:
            lesson_id: Completed lesson.
            score: Result 0-100.
            xp_earned: Full reward for the lesson; defaults to the configured
                lesson reward. Repeat completions earn a fraction of it.
        """
        if xp_earned is None:
            xp_earned = self._settings.xp_complete_lesson
        return self.dispatch(CompleteLesson(lesson_id=lesson_id, score=score, xp_earned=xp_earned))

    def award_xp(self, amount: int, reason: str = "") -> StorageError | None:
        return self.dispatch(AwardXP(amount=amount, reason=reason))

    def update_streak(self) -> StorageError | None:
        """Count today as an active day. Safe to call on every app load."""
        return self.dispatch(UpdateStreak(
            today=self._clock.today(),
            bonus_per_day=self._settings.xp_streak_bonus_per_day,
        ))

    def unlock_achievement(self, achievement_id: str) -> StorageError | None:
        return self.dispatch(UnlockAchievement(achievement_id=achievement_id))

    def set_study_mode(self, mode: StudyMode) -> StorageError | None:
        return self.dispatch(SetStudyMode(mode=mode))

    def reset_progress(self) -> StorageError | None:
        """Erase all progress. Callers must confirm with the learner first."""
        logger.info("progress_reset", xp=self._profile.xp)
        return self.dispatch(ResetProgress())

    # ─── Derived values ───────────────────────────────────────────────────

    @property
    def level(self) -> int:
        return get_level_from_xp(self._profile.xp)

    @property
    def level_progress(self) -> float:
        return get_level_progress(self._profile.xp)

    @property
    def xp_for_next_level(self) -> int:
        return get_xp_for_next_level(self.level)

    @property
    def total_lessons(self) -> int:
        return self.curriculum.total_lessons

    @property
    def completion_rate(self) -> float:
        return gating.get_completion_rate(self.curriculum, self._profile.completed_lessons)

    def is_lesson_unlocked(self, module_id: str, lesson_id: str) -> bool:
        return gating.is_lesson_unlocked(
            self.curriculum, self._profile.completed_lessons, module_id, lesson_id
        )

    def is_lesson_accessible(self, module_id: str, lesson_id: str) -> bool:
        """Unlock rule as applied to the current study mode.

        Open mode gives access to every lesson in the curriculum.
        """
        if self._profile.study_mode == StudyMode.OPEN:
            module = self.curriculum.get_module(module_id)
            return module is not None and lesson_id in module.lessons
        return self.is_lesson_unlocked(module_id, lesson_id)

    def get_module_progress(self, module_id: str) -> float:
        return gating.get_module_progress(self.curriculum, self._profile.completed_lessons, module_id)

    # ─── Export / import ──────────────────────────────────────────────────

    def export_data(self) -> dict[str, Any]:
        """Full profile plus export metadata. Review history is not included."""
        return {
            **self._profile.to_storage(),
            "exportedAt": self._clock.now().isoformat(),
            "appVersion": self._settings.app_version,
        }

    def import_data(self, payload: dict[str, Any] | str | bytes) -> LearnerProfile:
        """Replace the whole profile with an exported one.

        Raises:
            ProgressImportError: If the payload is not a valid progress export.
                The current profile is left unchanged.
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise ProgressImportError(f"Progress file is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise ProgressImportError("Invalid progress file format.")
        xp = payload.get("xp")
        if isinstance(xp, bool) or not isinstance(xp, (int, float)):
            raise ProgressImportError("Invalid progress file format: 'xp' must be a number.")
        if not isinstance(payload.get("completedLessons"), list):
            raise ProgressImportError("Invalid progress file format: 'completedLessons' must be a list.")
        if not _is_current_version(payload.get("version")):
            raise ProgressImportError(f"Unsupported progress file version: {payload.get('version')}")

        try:
            imported = LearnerProfile.model_validate(payload)
        except ValidationError as e:
            raise ProgressImportError(f"Invalid progress file: {e}") from e

        self._profile = imported.model_copy(update={"last_updated": self._clock.now()})
        logger.info("progress_imported", xp=self._profile.xp, lessons=len(self._profile.completed_lessons))
        self.save()
        return self.profile
