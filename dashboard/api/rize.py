from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from services.backfill import BackfillService
from shared.models import BackfillRequest, BackfillStatusResponse

from ..dependencies import get_backfill_service, get_step_tracker, require_user
from ..trackers import OnboardingStepTracker

router = APIRouter(prefix="/api/rize", tags=["rize"])


@router.get("/status", response_model=BackfillStatusResponse)
async def get_backfill_status(
    user_id: str = Depends(require_user),
    service: BackfillService = Depends(get_backfill_service)
):
    """Статус синхронизации профиля для опроса клиентом"""
    private = await service.status(user_id)
    return BackfillStatusResponse.from_private(private)


@router.post("/backfill", response_model=BackfillStatusResponse, status_code=202)
async def start_backfill(
    background_tasks: BackgroundTasks,
    body: Optional[BackfillRequest] = None,
    user_id: str = Depends(require_user),
    service: BackfillService = Depends(get_backfill_service),
    tracker: OnboardingStepTracker = Depends(get_step_tracker)
):
    """Запустить (или повторить) синхронизацию профиля Rize"""
    rize_user_id = body.rize_user_id if body else None
    private = await service.start(user_id, rize_user_id, background_tasks)
    tracker.backfill_started(background_tasks, user_id)
    return BackfillStatusResponse.from_private(private)
