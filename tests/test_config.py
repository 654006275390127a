"""Tests for settings and curriculum loading."""

import pytest

from n5lab.config import CurriculumError, Settings, load_curriculum


def test_default_curriculum_loads():
    curriculum = load_curriculum()
    assert [m.id for m in curriculum.modules][:2] == ["hiragana", "katakana"]
    assert curriculum.modules[0].lessons[0] == "hiragana_vowels"
    assert curriculum.total_lessons == 50


def test_missing_curriculum(tmp_path):
    with pytest.raises(CurriculumError, match="not found"):
        load_curriculum(tmp_path / "nope.yaml")


def test_duplicate_lesson_rejected(tmp_path):
    path = tmp_path / "curriculum.yaml"
    path.write_text(
        "modules:\n"
        "  - id: a\n    lessons: [x, y]\n"
        "  - id: b\n    lessons: [y]\n"
    )
    with pytest.raises(CurriculumError):
        load_curriculum(path)


def test_settings_defaults(tmp_path):
    settings = Settings(storage_dir=tmp_path / "s")
    assert settings.session_size == 20
    assert settings.xp_complete_lesson == 20
    assert settings.progress_key == "n5lab_progress_v1"
    assert settings.store_dir.exists()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("N5LAB_SESSION_SIZE", "5")
    monkeypatch.setenv("N5LAB_TIMEZONE", "Asia/Tokyo")
    settings = Settings()
    assert settings.session_size == 5
    assert settings.timezone == "Asia/Tokyo"
