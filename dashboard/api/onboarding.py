from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from core.onboarding import OnboardingController
from core.steps import next_step, parse_step
from models.enums import OnboardingStep
from models.onboarding import OnboardingMetadata, OnboardingState
from shared.models import AdvanceRequest, OnboardingStateResponse, StepDataRequest, StepInfo

from ..config import ONBOARDING_STEP_META, DashboardSettings
from ..dependencies import get_app_settings, get_controller, get_step_tracker, require_user
from ..trackers import OnboardingStepTracker

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


def _state_response(state: OnboardingState, message: str) -> OnboardingStateResponse:
    return OnboardingStateResponse(
        success=True,
        message=message,
        data=state,
        steps=StepInfo.list_for(state, ONBOARDING_STEP_META),
    )


def _metadata_response(metadata: OnboardingMetadata, message: str) -> OnboardingStateResponse:
    return _state_response(OnboardingController.state_of(metadata), message)


@router.get("/", response_model=OnboardingStateResponse)
async def get_onboarding_state(
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller)
):
    """Текущий шаг, прогресс и собранные данные"""
    state = await controller.get_state(user_id)
    return _state_response(state, "Onboarding state")


@router.post("/advance", response_model=OnboardingStateResponse)
async def advance_onboarding(
    body: AdvanceRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    tracker: OnboardingStepTracker = Depends(get_step_tracker)
):
    """Перейти на указанный шаг"""
    metadata = await controller.advance(user_id, body.step)
    tracker.step_advanced(background_tasks, user_id, metadata.step)
    return _metadata_response(metadata, f"Moved to {metadata.step.value}")


@router.post("/next", response_model=OnboardingStateResponse)
async def next_onboarding_step(
    background_tasks: BackgroundTasks,
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    tracker: OnboardingStepTracker = Depends(get_step_tracker)
):
    """Следующий шаг; с последнего шага завершает онбординг"""
    metadata = await controller.progress_to_next_step(user_id)
    if metadata.completed:
        tracker.completed(background_tasks, user_id, metadata.data)
        return _metadata_response(metadata, "Onboarding completed")

    tracker.step_advanced(background_tasks, user_id, metadata.step)
    return _metadata_response(metadata, f"Moved to {metadata.step.value}")


@router.post("/complete", response_model=OnboardingStateResponse)
async def complete_onboarding(
    background_tasks: BackgroundTasks,
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    tracker: OnboardingStepTracker = Depends(get_step_tracker)
):
    metadata = await controller.complete(user_id)
    tracker.completed(background_tasks, user_id, metadata.data)
    return _metadata_response(metadata, "Onboarding completed")


@router.put("/steps/{step}/data", response_model=OnboardingStateResponse)
async def save_step_data(
    step: str,
    body: StepDataRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    tracker: OnboardingStepTracker = Depends(get_step_tracker)
):
    """
    Сохранить данные шага. entry добавляется в список записей шага,
    advance=true переводит на следующий шаг после сохранения.
    """
    target = parse_step(step)

    metadata = None
    if body.data:
        metadata = await controller.save_step_data(user_id, target, body.data)
    if body.entry:
        metadata = await controller.append_step_entry(user_id, target, body.entry)

    if body.advance:
        successor = next_step(target)
        if successor is None:
            metadata = await controller.complete(user_id)
            tracker.completed(background_tasks, user_id, metadata.data)
        else:
            metadata = await controller.advance(user_id, successor)
            tracker.step_advanced(background_tasks, user_id, successor)

    if metadata is None:
        return _state_response(await controller.get_state(user_id), "Nothing to save")
    return _metadata_response(metadata, f"Saved {target.value}")


@router.post("/reset", response_model=OnboardingStateResponse)
async def reset_onboarding(
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    settings: DashboardSettings = Depends(get_app_settings)
):
    """Сброс прогресса (только если разрешен ALLOW_ONBOARDING_RESET)"""
    if not settings.ALLOW_ONBOARDING_RESET:
        raise HTTPException(status_code=404, detail="Not Found")

    metadata = await controller.reset(user_id)
    return _metadata_response(metadata, f"Onboarding reset to {OnboardingStep.WELCOME.value}")
