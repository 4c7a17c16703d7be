#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Pages
Серверные страницы шагов онбординга (Jinja2)

GET-страницы не меняют позицию пользователя: переходы и сохранение
данных идут только через POST-формы в контроллер.

Версия: 1.0.0
Дата: 2026-10-19
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from core.onboarding import OnboardingController
from core.steps import is_first_step, next_step, parse_step, previous_step, step_index
from models.enums import OnboardingCompletion, OnboardingStep
from models.onboarding import OnboardingState
from shared.models import StepInfo
from utils.validators import clean_form_payload, is_valid_date, is_valid_email

from .config import EMPLOYMENT_TYPES, ONBOARDING_STEP_META, DashboardSettings
from .dependencies import (
    get_app_settings,
    get_controller,
    get_current_user_id,
    get_step_tracker,
    require_user,
)
from .trackers import OnboardingStepTracker

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["pages"])

NOTICES = {
    "saved": "Your changes have been saved.",
    "entry-added": "Entry added.",
    "invalid-transition": "Please finish the previous steps first.",
    "retry": "We couldn't save your progress. Please try again.",
}

DATE_FIELDS = ("started_from", "finished_at")


def step_url(step: OnboardingStep, notice: Optional[str] = None) -> str:
    url = f"/app/onboarding?step={step.value}"
    return f"{url}&notice={notice}" if notice else url


def render_step(
    request: Request,
    state: OnboardingState,
    step: OnboardingStep,
    settings: DashboardSettings,
    notice: Optional[str] = None,
    errors: Optional[Dict[str, str]] = None,
    form: Optional[Dict[str, Any]] = None,
    status_code: int = 200
) -> HTMLResponse:
    meta = ONBOARDING_STEP_META[step.value]
    context = {
        "app_name": settings.APP_NAME,
        "debug": settings.DEBUG,
        "step": step,
        "meta": meta,
        "state": state,
        "steps": StepInfo.list_for(state, ONBOARDING_STEP_META),
        "step_data": state.data.get(step.value, {}),
        "form": form or {},
        "errors": errors or {},
        "notice": NOTICES.get(notice) if notice else None,
        "step_number": step_index(step) + 1,
        "next_step": next_step(step),
        "back_step": None if is_first_step(step) else previous_step(step),
        "is_current": step == state.current_step,
        "employment_types": EMPLOYMENT_TYPES,
    }
    return templates.TemplateResponse(request, meta["template"], context, status_code=status_code)


def validate_fields(step: OnboardingStep, payload: Dict[str, Any]) -> Dict[str, str]:
    """Ошибки формы шага: поле -> сообщение"""
    meta = ONBOARDING_STEP_META[step.value]
    errors = {
        field: "This field is required."
        for field in meta.get("required", [])
        if not payload.get(field)
    }
    if payload.get("email") and not is_valid_email(payload["email"]):
        errors["email"] = "Enter a valid email address."
    for field in DATE_FIELDS:
        if payload.get(field) and not is_valid_date(payload[field]):
            errors[field] = "Use the YYYY-MM format."
    return errors


def _entry_from_form(step: OnboardingStep, payload: Dict[str, Any]) -> Dict[str, Any]:
    allowed = ONBOARDING_STEP_META[step.value].get("fields", [])
    entry = {key: value for key, value in payload.items() if key in allowed}
    if "current" in entry:
        entry["current"] = str(entry["current"]).lower() in ("on", "true", "1", "yes")
        if entry["current"]:
            entry.pop("finished_at", None)
    return entry


# ===== МАРШРУТЫ =====

@router.get("/")
async def index():
    return RedirectResponse(url="/app", status_code=303)


@router.get("/app", response_class=HTMLResponse)
async def app_home(
    request: Request,
    user_id: Optional[str] = Depends(get_current_user_id),
    controller: OnboardingController = Depends(get_controller),
    settings: DashboardSettings = Depends(get_app_settings)
):
    """Шлюз онбординга: незавершенный онбординг -> текущий шаг"""
    if not user_id:
        return RedirectResponse(url=settings.SIGN_IN_URL, status_code=303)

    current = await controller.get_current_step(user_id)
    if current != OnboardingCompletion.COMPLETED:
        return RedirectResponse(url=step_url(current), status_code=303)

    return templates.TemplateResponse(request, "app.html", {
        "app_name": settings.APP_NAME,
        "debug": settings.DEBUG,
    })


@router.get("/app/onboarding", response_class=HTMLResponse)
async def onboarding_page(
    request: Request,
    background_tasks: BackgroundTasks,
    step: Optional[str] = None,
    notice: Optional[str] = None,
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    tracker: OnboardingStepTracker = Depends(get_step_tracker),
    settings: DashboardSettings = Depends(get_app_settings)
):
    """Страница шага; без ?step= показывается текущий шаг"""
    state = await controller.get_state(user_id)
    if state.completed:
        return RedirectResponse(url=settings.POST_ONBOARDING_URL, status_code=303)

    requested = parse_step(step) if step else state.current_step
    if requested not in state.reachable_steps:
        return RedirectResponse(url=step_url(state.current_step, "invalid-transition"), status_code=303)

    tracker.step_viewed(background_tasks, user_id, requested)
    return render_step(request, state, requested, settings, notice=notice)


@router.post("/app/onboarding/advance")
async def advance_page(
    request: Request,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    tracker: OnboardingStepTracker = Depends(get_step_tracker)
):
    form = await request.form()
    metadata = await controller.advance(user_id, form.get("step", ""))
    tracker.step_advanced(background_tasks, user_id, metadata.step)
    return RedirectResponse(url=step_url(metadata.step), status_code=303)


@router.post("/app/onboarding/submit")
async def submit_step(
    request: Request,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    tracker: OnboardingStepTracker = Depends(get_step_tracker),
    settings: DashboardSettings = Depends(get_app_settings)
):
    """
    Форма шага. _action:
      add      - добавить запись (образование, опыт) и остаться на шаге
      save     - сохранить поля и остаться на шаге
      continue - сохранить поля (если есть) и перейти дальше
    """
    form = await request.form()
    step = parse_step(form.get("_step", ""))
    action = form.get("_action", "continue")
    payload = clean_form_payload(form)
    meta = ONBOARDING_STEP_META[step.value]

    if meta.get("multiple") and action == "add":
        entry = _entry_from_form(step, payload)
        errors = validate_fields(step, entry)
        if errors:
            state = await controller.get_state(user_id)
            return render_step(request, state, step, settings, errors=errors, form=payload, status_code=422)
        await controller.append_step_entry(user_id, step, entry)
        return RedirectResponse(url=step_url(step, "entry-added"), status_code=303)

    if meta.get("fields") and not meta.get("multiple"):
        errors = validate_fields(step, payload)
        if errors:
            state = await controller.get_state(user_id)
            return render_step(request, state, step, settings, errors=errors, form=payload, status_code=422)
        await controller.save_step_data(user_id, step, payload)

    if action == "save":
        return RedirectResponse(url=step_url(step, "saved"), status_code=303)

    successor = next_step(step)
    if successor is None:
        return RedirectResponse(url=step_url(step), status_code=303)

    metadata = await controller.advance(user_id, successor)
    tracker.step_advanced(background_tasks, user_id, metadata.step)
    return RedirectResponse(url=step_url(metadata.step), status_code=303)


@router.post("/app/onboarding/complete")
async def complete_page(
    background_tasks: BackgroundTasks,
    user_id: str = Depends(require_user),
    controller: OnboardingController = Depends(get_controller),
    tracker: OnboardingStepTracker = Depends(get_step_tracker),
    settings: DashboardSettings = Depends(get_app_settings)
):
    metadata = await controller.complete(user_id)
    tracker.completed(background_tasks, user_id, metadata.data)
    return RedirectResponse(url=settings.POST_ONBOARDING_URL, status_code=303)


@router.get("/signin", response_class=HTMLResponse)
async def signin_page(
    request: Request,
    settings: DashboardSettings = Depends(get_app_settings)
):
    """Заглушка входа: сессии выдает провайдер идентификации"""
    dev_tokens: List[str] = [] if settings.is_production else sorted(settings.DEV_SESSIONS)
    return templates.TemplateResponse(request, "signin.html", {
        "app_name": settings.APP_NAME,
        "debug": settings.DEBUG,
        "cookie_name": settings.SESSION_COOKIE_NAME,
        "dev_tokens": dev_tokens,
    })
