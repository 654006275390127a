"""Tests for the progression engine: persistence, derived values, export/import."""

import json
from datetime import date

import pytest

from n5lab.models.progress import StudyMode
from n5lab.progression.engine import ProgressImportError, ProgressionEngine
from n5lab.storage.kv import MemoryStore, StorageError


SCORE = {
    "score": 80,
    "lastScore": 80,
    "completedAt": "2026-03-09T09:00:00+00:00",
    "lastAttemptAt": "2026-03-09T09:00:00+00:00",
    "attempts": 1,
}


class FailingStore(MemoryStore):
    def get(self, key):
        raise OSError("disk unavailable")

    def set(self, key, value):
        raise OSError("disk full")


class TestDefaults:
    def test_derived_values_before_load(self, engine):
        assert engine.profile.xp == 0
        assert engine.level == 1
        assert engine.level_progress == 0.0
        assert engine.xp_for_next_level == 100
        assert engine.total_lessons == 10
        assert engine.completion_rate == 0.0
        assert engine.is_lesson_unlocked("kana", "k1")

    def test_load_with_empty_store_keeps_defaults(self, engine):
        profile = engine.load()
        assert profile.xp == 0
        assert profile.study_mode == StudyMode.GUIDED


class TestPersistence:
    def test_commands_write_through(self, engine, store, settings):
        engine.complete_lesson("k1", score=90)
        saved = store.get(settings.progress_key)
        assert saved["xp"] == 20
        assert saved["completedLessons"] == ["k1"]
        assert saved["lessonScores"]["k1"]["score"] == 90
        assert saved["version"] == 1

    def test_reload_restores_profile(self, engine, store, clock, curriculum, settings):
        engine.update_streak()
        engine.complete_lesson("k1")
        engine.unlock_achievement("first_steps")

        reloaded = ProgressionEngine(store, clock, curriculum, settings)
        profile = reloaded.load()
        assert profile.xp == engine.profile.xp
        assert profile.completed_lessons == ["k1"]
        assert profile.streak == 1
        assert profile.active_dates == [date(2026, 3, 10)]
        assert profile.achievements == ["first_steps"]

    def test_version_mismatch_uses_defaults(self, store, clock, curriculum, settings):
        store.set(settings.progress_key, {"xp": 900, "completedLessons": ["k1"], "version": 2})
        engine = ProgressionEngine(store, clock, curriculum, settings)
        assert engine.load().xp == 0

    @pytest.mark.parametrize(
        "blob",
        [
            {"xp": 900, "completedLessons": [], "version": True},
            {"xp": 900, "completedLessons": [], "version": 1, "streak": 5, "longestStreak": 1},
            {"xp": 900, "completedLessons": ["k1"], "version": 1},
        ],
    )
    def test_inconsistent_blob_uses_defaults(self, store, clock, curriculum, settings, blob):
        store.set(settings.progress_key, blob)
        engine = ProgressionEngine(store, clock, curriculum, settings)
        profile = engine.load()
        assert profile.xp == 0
        assert profile.completed_lessons == []

    def test_corrupt_blob_uses_defaults(self, store, clock, curriculum, settings):
        store.set(settings.progress_key, {"xp": "lots", "version": 1})
        engine = ProgressionEngine(store, clock, curriculum, settings)
        assert engine.load().xp == 0

    def test_storage_failures_are_not_raised(self, clock, curriculum, settings):
        engine = ProgressionEngine(FailingStore(), clock, curriculum, settings)
        assert engine.load().xp == 0
        error = engine.award_xp(40)
        assert isinstance(error, StorageError)
        assert error.operation == "write"
        assert engine.profile.xp == 40

    def test_profile_is_a_detached_copy(self, engine):
        engine.complete_lesson("k1")
        profile = engine.profile
        profile.completed_lessons.append("k9")
        profile.achievements.append("cheat")
        assert engine.profile.completed_lessons == ["k1"]
        assert engine.profile.achievements == []
        assert engine.completion_rate == pytest.approx(0.1)

    def test_successful_write_returns_none(self, engine):
        assert engine.award_xp(10) is None


class TestStreak:
    def test_update_streak_twice_same_day(self, engine):
        engine.update_streak()
        first = engine.profile
        engine.update_streak()
        assert engine.profile.streak == first.streak == 1
        assert engine.profile.xp == first.xp == 5

    def test_next_day_continues(self, engine, clock):
        engine.update_streak()
        clock.advance(days=1)
        engine.update_streak()
        assert engine.profile.streak == 2
        assert engine.profile.xp == 5 + 10

    def test_gap_resets(self, engine, clock):
        engine.update_streak()
        clock.advance(days=1)
        engine.update_streak()
        clock.advance(days=3)
        engine.update_streak()
        assert engine.profile.streak == 1
        assert engine.profile.longest_streak == 2


class TestLessons:
    def test_repeat_completion_reward(self, engine):
        engine.complete_lesson("k1", xp_earned=20)
        engine.complete_lesson("k1", xp_earned=20)
        assert engine.profile.xp == 26
        assert engine.profile.lesson_scores["k1"].attempts == 2

    def test_gating_follows_completions(self, engine):
        for lesson in ["k1", "k2", "k3"]:
            engine.complete_lesson(lesson)
        assert engine.is_lesson_unlocked("kana", "k4")
        assert not engine.is_lesson_unlocked("vocab", "v1")
        engine.complete_lesson("k4")
        assert engine.is_lesson_unlocked("vocab", "v1")
        assert engine.get_module_progress("kana") == pytest.approx(0.8)

    def test_open_mode_grants_access(self, engine):
        assert not engine.is_lesson_accessible("grammar", "g2")
        engine.set_study_mode(StudyMode.OPEN)
        assert engine.is_lesson_accessible("grammar", "g2")
        assert not engine.is_lesson_unlocked("grammar", "g2")
        assert not engine.is_lesson_accessible("grammar", "nope")

    def test_reset_progress(self, engine, store, settings):
        engine.award_xp(300)
        engine.complete_lesson("k1")
        engine.reset_progress()
        assert engine.profile.xp == 0
        assert engine.level == 1
        assert store.get(settings.progress_key)["xp"] == 0


class TestExportImport:
    def test_export_contains_metadata(self, engine, settings):
        engine.award_xp(120)
        data = engine.export_data()
        assert data["xp"] == 120
        assert data["appVersion"] == settings.app_version
        assert "exportedAt" in data
        assert data["version"] == 1

    def test_round_trip(self, engine, store, clock, curriculum, settings):
        engine.update_streak()
        engine.complete_lesson("k1", score=70)
        engine.complete_lesson("k2")
        exported = json.dumps(engine.export_data())

        other = ProgressionEngine(MemoryStore(), clock, curriculum, settings)
        clock.advance(hours=2)
        profile = other.import_data(exported)
        assert profile.xp == engine.profile.xp
        assert profile.completed_lessons == engine.profile.completed_lessons
        assert profile.streak == engine.profile.streak
        assert profile.lesson_scores == engine.profile.lesson_scores
        assert profile.last_updated == clock.now()

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            [],
            {"completedLessons": [], "version": 1},
            {"xp": "100", "completedLessons": [], "version": 1},
            {"xp": True, "completedLessons": [], "version": 1},
            {"xp": 100, "completedLessons": "k1", "version": 1},
            {"xp": 100, "completedLessons": [], "version": 2},
            {"xp": 100, "completedLessons": [], "version": 1, "streak": -3},
            {"xp": 1, "completedLessons": [], "version": True},
            {"xp": 100, "completedLessons": [], "version": 1, "streak": 9, "longestStreak": 2},
            {"xp": 100, "completedLessons": ["k1", "k1"], "version": 1, "lessonScores": {"k1": SCORE}},
            {"xp": 100, "completedLessons": ["k1"], "version": 1, "lessonScores": {}},
            {"xp": 100, "completedLessons": [], "version": 1, "lessonScores": {"k1": SCORE}},
            {"xp": 100, "completedLessons": [], "version": 1, "activeDates": ["2026-03-09", "2026-03-09"]},
            {"xp": 100, "completedLessons": [], "version": 1, "achievements": ["first_steps", "first_steps"]},
        ],
    )
    def test_invalid_import_leaves_state_untouched(self, engine, store, settings, payload):
        engine.award_xp(50)
        before = engine.profile
        saved_before = store.get(settings.progress_key)
        with pytest.raises(ProgressImportError):
            engine.import_data(payload)
        assert engine.profile == before
        assert store.get(settings.progress_key) == saved_before

    def test_version_error_message(self, engine):
        with pytest.raises(ProgressImportError, match="Unsupported progress file version: 7"):
            engine.import_data({"xp": 1, "completedLessons": [], "version": 7})
