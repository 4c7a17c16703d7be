# database/migrations.py

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List

from core.steps import ONBOARDING_STEPS
from database.manager import load_user_data, save_user_data, iter_user_files
from models.enums import OnboardingStep

logger = logging.getLogger(__name__)

_STEP_VALUES = [step.value for step in ONBOARDING_STEPS]


def _normalize_step_value(value: Any):
    """'personal_details' / 'Personal Details' -> 'personal-details'; неизвестное -> None"""
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower().replace("_", "-").replace(" ", "-")
    return candidate if candidate in _STEP_VALUES else None


def normalize_onboarding_record(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Приводит запись пользователя {"public": {...}, "private": {...}} к текущему
    формату онбординга. Неизвестные ключи publicMetadata не трогает.
    """
    public = dict(data.get("public") or {})
    completed = bool(public.get("onboardingComplete"))

    step = _normalize_step_value(public.get("currentOnboardingStep"))
    if step is None:
        # Завершенные записи без шага ставим на последний шаг
        step = OnboardingStep.RESUME.value if completed else OnboardingStep.WELCOME.value

    completed_steps: List[str] = []
    for item in public.get("completedSteps") or []:
        value = _normalize_step_value(item)
        if value and value not in completed_steps:
            completed_steps.append(value)
    if completed:
        completed_steps = list(_STEP_VALUES)
    completed_steps.sort(key=_STEP_VALUES.index)

    step_data: Dict[str, Any] = {}
    for key, payload in (public.get("onboardingData") or {}).items():
        value = _normalize_step_value(key)
        if value and isinstance(payload, dict):
            step_data[value] = {**step_data.get(value, {}), **payload}

    public.update({
        "currentOnboardingStep": step,
        "onboardingComplete": completed,
        "completedSteps": completed_steps,
        "onboardingData": step_data,
    })
    data["public"] = public
    return data


def migrate_all_users(
    data_dir: Path,
    migration_fn: Callable[[Dict[str, Any]], Dict[str, Any]] = normalize_onboarding_record
) -> int:
    """
    Применяет функцию migration_fn(data: dict) для всех пользователей.
    Возвращает количество обработанных файлов.
    """
    data_dir = Path(data_dir)
    migrated = 0
    for file in iter_user_files(data_dir):
        user_id = file.stem[len("user_"):]
        data = load_user_data(data_dir, user_id) or {}
        save_user_data(data_dir, user_id, migration_fn(data))
        migrated += 1

    logger.info(f"🔧 Миграция завершена: {migrated} пользователей в {data_dir}")
    return migrated
