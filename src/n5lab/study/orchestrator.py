"""Study session orchestration.

Turns learner interactions (flipping cards, finishing quizzes and lessons)
into calls on the scheduler and the progression engine.
"""

from collections.abc import Sequence

import structlog
from pydantic import BaseModel

from n5lab.config import Settings
from n5lab.models.review import ReviewOutcome
from n5lab.progression.engine import ProgressionEngine
from n5lab.srs.scheduler import Scheduler

logger = structlog.get_logger()


class UnknownLessonError(LookupError):
    """Raised when a lesson id is not part of the curriculum."""


class SessionSummary(BaseModel):
    """Result of a finished flashcard session."""

    known: int = 0
    unknown: int = 0
    xp_earned: int = 0


class QuizSummary(BaseModel):
    """Result of a finished quiz."""

    correct: int
    total: int
    score: int  # 0-100
    xp_earned: int


class FlashcardSession:
    """One pass over the cards that are due for a deck.

    The queue is fixed when the session starts.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        progression: ProgressionEngine,
        card_ids: Sequence[str],
        settings: Settings,
    ) -> None:
        self._scheduler = scheduler
        self._progression = progression
        self._settings = settings
        size = min(len(card_ids), settings.session_size)
        self.queue: list[str] = scheduler.get_due_cards(card_ids, size)
        self._position = 0
        self._known = 0
        self._unknown = 0
        self._finished = False

    @property
    def current_card(self) -> str | None:
        if self._position >= len(self.queue):
            return None
        return self.queue[self._position]

    @property
    def is_complete(self) -> bool:
        return self._position >= len(self.queue)

    def answer(self, know: bool) -> str | None:
        """Grade the current card and advance.

        Returns:
            The next card id, or None when the queue is exhausted.

        Raises:
            RuntimeError: If there is no card left to answer.
        """
        card_id = self.current_card
        if card_id is None:
            raise RuntimeError("No card left in this session")
        outcome = ReviewOutcome.KNOW if know else ReviewOutcome.DONT_KNOW
        self._scheduler.record_response(card_id, outcome)
        if know:
            self._known += 1
            self._progression.award_xp(self._settings.xp_per_known_card, reason="card_known")
        else:
            self._unknown += 1
        self._position += 1
        return self.current_card

    def finish(self) -> SessionSummary:
        """Close the session, awarding the perfect-session bonus once."""
        bonus = 0
        if not self._finished and self._known > 0 and self._unknown == 0:
            bonus = self._settings.xp_perfect_session_bonus
            self._progression.award_xp(bonus, reason="perfect_session")
        self._finished = True
        summary = SessionSummary(
            known=self._known,
            unknown=self._unknown,
            xp_earned=self._known * self._settings.xp_per_known_card + bonus,
        )
        logger.info("flashcard_session_finished", **summary.model_dump())
        return summary


class StudyOrchestrator:
    """Composes the scheduler and progression engine for the UI layer."""

    def __init__(self, scheduler: Scheduler, progression: ProgressionEngine, settings: Settings) -> None:
        self.scheduler = scheduler
        self.progression = progression
        self.settings = settings

    def start_session(self) -> None:
        """Run once per app load."""
        self.progression.update_streak()

    def lesson_reward(self, score: int) -> int:
        """Full XP for completing a lesson, including the perfect-score bonus."""
        reward = self.settings.xp_complete_lesson
        if score == 100:
            reward += self.settings.xp_perfect_quiz
        return reward

    def _require_lesson(self, lesson_id: str) -> None:
        if not self.progression.curriculum.has_lesson(lesson_id):
            raise UnknownLessonError(f"Unknown lesson: {lesson_id}")

    def finish_lesson(self, lesson_id: str, score: int = 100) -> None:
        """Complete a curriculum lesson with its full reward.

        Raises:
            UnknownLessonError: If no module lists ``lesson_id``.
        """
        self._require_lesson(lesson_id)
        self.progression.complete_lesson(lesson_id, score, xp_earned=self.lesson_reward(score))

    def start_flashcards(self, card_ids: Sequence[str]) -> FlashcardSession:
        return FlashcardSession(self.scheduler, self.progression, card_ids, self.settings)

    def finish_quiz(
        self,
        lesson_id: str,
        results: Sequence[bool],
        question_xp: Sequence[int] | None = None,
    ) -> QuizSummary:
        """Award quiz XP and complete the quiz's lesson.

        Args:
            lesson_id: Lesson the quiz belongs to.
            results: Correctness of each answer, in question order.
            question_xp: XP per question; defaults to the configured amount.
        """
        self._require_lesson(lesson_id)
        if question_xp is None:
            question_xp = [self.settings.xp_per_quiz_question] * len(results)
        if len(question_xp) != len(results):
            raise ValueError("question_xp must have one entry per result")

        total = len(results)
        correct = sum(1 for ok in results if ok)
        score = int(correct * 100 / total + 0.5) if total else 0
        xp_earned = sum(xp for ok, xp in zip(results, question_xp) if ok)
        if xp_earned:
            self.progression.award_xp(xp_earned, reason="quiz_answers")
        if total and score == 100:
            bonus = self.settings.xp_perfect_quiz
            self.progression.award_xp(bonus, reason="perfect_quiz")
            xp_earned += bonus

        self.finish_lesson(lesson_id, score)
        logger.info("quiz_finished", lesson_id=lesson_id, score=score, xp_earned=xp_earned)
        return QuizSummary(correct=correct, total=total, score=score, xp_earned=xp_earned)
