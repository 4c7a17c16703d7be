# dashboard/trackers.py

from typing import Any, Dict, Optional

from fastapi import BackgroundTasks

from models.enums import AnalyticsEvent, OnboardingStep
from services.analytics import Analytics, results_bucket


class OnboardingStepTracker:
    """
    События онбординга. Отправка идет фоновой задачей после ответа,
    поэтому ошибка аналитики не влияет на переход.
    """

    def __init__(self, analytics: Analytics):
        self.analytics = analytics

    def _emit(self, background_tasks: BackgroundTasks, event: AnalyticsEvent, user_id: str, **properties) -> None:
        background_tasks.add_task(self.analytics.track, event.value, user_id, properties)

    def step_viewed(self, background_tasks: BackgroundTasks, user_id: str, step: OnboardingStep) -> None:
        self._emit(background_tasks, AnalyticsEvent.STEP_VIEWED, user_id, step=step.value)

    def step_advanced(self, background_tasks: BackgroundTasks, user_id: str, step: OnboardingStep) -> None:
        self._emit(background_tasks, AnalyticsEvent.STEP_ADVANCED, user_id, step=step.value)

    def completed(
        self,
        background_tasks: BackgroundTasks,
        user_id: str,
        data: Optional[Dict[str, Dict[str, Any]]] = None
    ) -> None:
        """Завершение; количество записей передается диапазоном, а не точным числом"""
        data = data or {}
        self._emit(
            background_tasks, AnalyticsEvent.COMPLETED, user_id,
            education_entries=results_bucket(_entries_count(data, OnboardingStep.EDUCATION)),
            experience_entries=results_bucket(_entries_count(data, OnboardingStep.EXPERIENCE)),
        )

    def backfill_started(self, background_tasks: BackgroundTasks, user_id: str) -> None:
        self._emit(background_tasks, AnalyticsEvent.BACKFILL_STARTED, user_id)


def _entries_count(data: Dict[str, Dict[str, Any]], step: OnboardingStep) -> int:
    return len(data.get(step.value, {}).get("entries", []))
