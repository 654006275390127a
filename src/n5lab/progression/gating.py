"""Lesson unlock rules over the ordered curriculum.

Lessons form a linear chain inside each module. The first lesson of a module
opens once enough of the previous module is done.
"""

from collections.abc import Collection

from n5lab.models.curriculum import Curriculum

# Share of the previous module that must be completed to open the next one
MODULE_UNLOCK_RATIO = 0.8


def is_lesson_unlocked(
    curriculum: Curriculum,
    completed: Collection[str],
    module_id: str,
    lesson_id: str,
) -> bool:
    """Whether ``lesson_id`` in ``module_id`` is open under guided progression.

    Unknown modules and lessons are locked.
    """
    module_index = curriculum.module_index(module_id)
    if module_index is None:
        return False
    lessons = curriculum.modules[module_index].lessons
    if lesson_id not in lessons:
        return False

    lesson_index = lessons.index(lesson_id)
    if lesson_index > 0:
        return lessons[lesson_index - 1] in completed

    if module_index == 0:
        return True
    prev_lessons = curriculum.modules[module_index - 1].lessons
    if not prev_lessons:
        return True
    prev_completed = sum(1 for lesson in prev_lessons if lesson in completed)
    return prev_completed / len(prev_lessons) >= MODULE_UNLOCK_RATIO


def get_module_progress(curriculum: Curriculum, completed: Collection[str], module_id: str) -> float:
    """Fraction of a module's lessons that are completed (0.0 if unknown or empty)."""
    module = curriculum.get_module(module_id)
    if module is None or not module.lessons:
        return 0.0
    done = sum(1 for lesson in module.lessons if lesson in completed)
    return done / len(module.lessons)


def get_completion_rate(curriculum: Curriculum, completed: Collection[str]) -> float:
    """Fraction of all curriculum lessons completed."""
    total = curriculum.total_lessons
    if total == 0:
        return 0.0
    done = sum(1 for m in curriculum.modules for lesson in m.lessons if lesson in completed)
    return done / total
