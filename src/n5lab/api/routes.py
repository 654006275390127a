"""REST API routes over the progression engine and review scheduler."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from n5lab.models.progress import StudyMode
from n5lab.models.review import ReviewOutcome
from n5lab.progression.engine import ProgressImportError, ProgressionEngine
from n5lab.srs.scheduler import Scheduler
from n5lab.study.orchestrator import StudyOrchestrator, UnknownLessonError

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


class LessonResult(BaseModel):
    score: int = Field(default=100, ge=0, le=100)


class XPAward(BaseModel):
    amount: int = Field(ge=0)
    reason: str = ""


class StudyModeUpdate(BaseModel):
    mode: StudyMode


class CardIds(BaseModel):
    card_ids: list[str]
    session_size: int | None = Field(default=None, ge=0)


class CardResponse(BaseModel):
    outcome: ReviewOutcome


def get_orchestrator(request: Request) -> StudyOrchestrator:
    return request.app.state.orchestrator


def get_progression(request: Request) -> ProgressionEngine:
    return request.app.state.orchestrator.progression


def get_scheduler(request: Request) -> Scheduler:
    return request.app.state.orchestrator.scheduler


def _progress_view(engine: ProgressionEngine) -> dict[str, Any]:
    return {
        **engine.profile.to_storage(),
        "level": engine.level,
        "levelProgress": engine.level_progress,
        "xpForNextLevel": engine.xp_for_next_level,
        "totalLessons": engine.total_lessons,
        "completionRate": engine.completion_rate,
    }


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.post("/session/start")
async def start_session(orchestrator: StudyOrchestrator = Depends(get_orchestrator)) -> dict:
    """Register today's visit (streak + daily bonus)."""
    orchestrator.start_session()
    return _progress_view(orchestrator.progression)


@router.get("/progress")
async def get_progress(engine: ProgressionEngine = Depends(get_progression)) -> dict:
    return _progress_view(engine)


@router.post("/lessons/{lesson_id}/complete")
async def complete_lesson(
    lesson_id: str,
    result: LessonResult,
    orchestrator: StudyOrchestrator = Depends(get_orchestrator),
) -> dict:
    try:
        orchestrator.finish_lesson(lesson_id, result.score)
    except UnknownLessonError:
        raise HTTPException(status_code=404, detail="Lesson not found")
    return _progress_view(orchestrator.progression)


@router.post("/xp")
async def award_xp(award: XPAward, engine: ProgressionEngine = Depends(get_progression)) -> dict:
    engine.award_xp(award.amount, award.reason)
    return _progress_view(engine)


@router.post("/achievements/{achievement_id}")
async def unlock_achievement(
    achievement_id: str, engine: ProgressionEngine = Depends(get_progression)
) -> dict:
    engine.unlock_achievement(achievement_id)
    return _progress_view(engine)


@router.put("/study-mode")
async def set_study_mode(
    update: StudyModeUpdate, engine: ProgressionEngine = Depends(get_progression)
) -> dict:
    engine.set_study_mode(update.mode)
    return _progress_view(engine)


@router.post("/progress/reset")
async def reset_progress(engine: ProgressionEngine = Depends(get_progression)) -> dict:
    engine.reset_progress()
    return _progress_view(engine)


@router.get("/progress/export")
async def export_progress(engine: ProgressionEngine = Depends(get_progression)) -> dict:
    return engine.export_data()


@router.post("/progress/import")
async def import_progress(
    payload: dict[str, Any], engine: ProgressionEngine = Depends(get_progression)
) -> dict:
    try:
        profile = engine.import_data(payload)
    except ProgressImportError as e:
        logger.warning("progress_import_rejected", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "xp": profile.xp, "completedLessons": len(profile.completed_lessons)}


@router.get("/modules/{module_id}/progress")
async def module_progress(module_id: str, engine: ProgressionEngine = Depends(get_progression)) -> dict:
    if engine.curriculum.get_module(module_id) is None:
        raise HTTPException(status_code=404, detail="Module not found")
    return {"moduleId": module_id, "progress": engine.get_module_progress(module_id)}


@router.get("/modules/{module_id}/lessons/{lesson_id}/unlocked")
async def lesson_unlocked(
    module_id: str, lesson_id: str, engine: ProgressionEngine = Depends(get_progression)
) -> dict:
    return {
        "unlocked": engine.is_lesson_unlocked(module_id, lesson_id),
        "accessible": engine.is_lesson_accessible(module_id, lesson_id),
    }


@router.post("/srs/due")
async def due_cards(body: CardIds, scheduler: Scheduler = Depends(get_scheduler)) -> dict:
    return {"cardIds": scheduler.get_due_cards(body.card_ids, body.session_size)}


@router.post("/srs/stats")
async def deck_stats(body: CardIds, scheduler: Scheduler = Depends(get_scheduler)) -> dict:
    return {
        "dueCount": scheduler.due_count(body.card_ids),
        "masteryRate": scheduler.mastery_rate(body.card_ids),
    }


@router.post("/srs/cards/{card_id}/responses")
async def record_response(
    card_id: str, body: CardResponse, scheduler: Scheduler = Depends(get_scheduler)
) -> dict:
    scheduler.record_response(card_id, body.outcome)
    record = scheduler.get_card_stats(card_id)
    return record.model_dump(mode="json", by_alias=True)


@router.get("/srs/cards/{card_id}")
async def card_stats(card_id: str, scheduler: Scheduler = Depends(get_scheduler)) -> dict:
    record = scheduler.get_card_stats(card_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Card has not been reviewed")
    return record.model_dump(mode="json", by_alias=True)
