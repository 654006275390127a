"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from n5lab.models.curriculum import Curriculum


class CurriculumError(Exception):
    """Raised when the curriculum file is missing or malformed."""


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'server' in data:
            flattened['host'] = data['server'].get('host')
            flattened['port'] = data['server'].get('port')
        if 'storage' in data:
            flattened['storage_dir'] = data['storage'].get('dir')
            flattened['progress_key'] = data['storage'].get('progress_key')
            flattened['srs_key'] = data['storage'].get('srs_key')
        if 'locale' in data:
            flattened['timezone'] = data['locale'].get('timezone')
        if 'srs' in data:
            flattened['session_size'] = data['srs'].get('session_size')
        if 'rewards' in data:
            rewards = data['rewards']
            flattened['xp_complete_lesson'] = rewards.get('complete_lesson')
            flattened['xp_perfect_quiz'] = rewards.get('perfect_quiz')
            flattened['xp_streak_bonus_per_day'] = rewards.get('streak_bonus_per_day')
            flattened['xp_per_known_card'] = rewards.get('per_known_card')
            flattened['xp_perfect_session_bonus'] = rewards.get('perfect_session_bonus')
            flattened['xp_per_quiz_question'] = rewards.get('per_quiz_question')

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_prefix="N5LAB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_version: str = Field(default="0.1.0")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Storage
    storage_dir: Path | None = Field(default=None)
    progress_key: str = Field(default="n5lab_progress_v1")
    srs_key: str = Field(default="n5lab_srs_v1")

    # Calendar days are computed in this zone
    timezone: str = Field(default="UTC")

    # Spaced repetition
    session_size: int = Field(default=20, gt=0)

    # XP rewards
    xp_complete_lesson: int = Field(default=20, ge=0)
    xp_perfect_quiz: int = Field(default=50, ge=0)
    xp_streak_bonus_per_day: int = Field(default=5, ge=0)
    xp_per_known_card: int = Field(default=5, ge=0)
    xp_perfect_session_bonus: int = Field(default=25, ge=0)
    xp_per_quiz_question: int = Field(default=10, ge=0)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)
    curriculum_path: Path | None = Field(default=None)

    @property
    def store_dir(self) -> Path:
        d = self.storage_dir or self.project_root / "data" / "store"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def curriculum_file(self) -> Path:
        return self.curriculum_path or self.project_root / "config" / "curriculum.yaml"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()


def load_curriculum(path: Path | None = None) -> Curriculum:
    """Load the ordered curriculum from YAML.

    Args:
        path: Curriculum file. Defaults to ``config/curriculum.yaml``.

    Raises:
        CurriculumError: If the file is missing or does not describe a curriculum.
    """
    curriculum_path = path or _find_project_root() / "config" / "curriculum.yaml"
    if not curriculum_path.exists():
        raise CurriculumError(f"Curriculum file not found: {curriculum_path}")
    with open(curriculum_path, encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    try:
        return Curriculum.model_validate(data)
    except ValidationError as e:
        raise CurriculumError(f"Invalid curriculum file {curriculum_path}: {e}") from e
