"""Curriculum structure used for lesson gating."""

from pydantic import BaseModel, Field, model_validator


class Module(BaseModel):
    """A curriculum module with its lessons in study order."""

    id: str
    title: str = ""
    lessons: list[str] = Field(default_factory=list)


class Curriculum(BaseModel):
    """Ordered list of modules."""

    modules: list[Module] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "Curriculum":
        module_ids = [m.id for m in self.modules]
        if len(module_ids) != len(set(module_ids)):
            raise ValueError("duplicate module id in curriculum")
        lesson_ids = [lesson for m in self.modules for lesson in m.lessons]
        if len(lesson_ids) != len(set(lesson_ids)):
            raise ValueError("duplicate lesson id in curriculum")
        return self

    def module_index(self, module_id: str) -> int | None:
        """Position of a module in the curriculum, or None if unknown."""
        for i, module in enumerate(self.modules):
            if module.id == module_id:
                return i
        return None

    def get_module(self, module_id: str) -> Module | None:
        index = self.module_index(module_id)
        return None if index is None else self.modules[index]

    def has_lesson(self, lesson_id: str) -> bool:
        return any(lesson_id in m.lessons for m in self.modules)

    @property
    def total_lessons(self) -> int:
        return sum(len(m.lessons) for m in self.modules)
