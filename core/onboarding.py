#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Controller
Машина состояний онбординга: текущий шаг, переходы, завершение

Состояния: каждый OnboardingStep плюс терминальное COMPLETED.
Вся персистентность идет через MetadataStore; контроллер ничего не кэширует
между запросами. Конкурентные запросы одного пользователя разрешаются
по принципу last-write-wins на уровне хранилища.

Версия: 1.0.0
Дата: 2026-10-19
"""

import logging
from typing import Any, Dict, List, Optional

from core.exceptions import AlreadyCompletedError, InvalidTransitionError
from core.steps import (
    ONBOARDING_STEPS,
    StepLike,
    frontier_index,
    next_step,
    parse_step,
    previous_step,
    progress_percent,
    reachable_steps,
    step_index,
)
from database.metadata_store import MetadataStore
from models.enums import OnboardingCompletion, OnboardingStep
from models.onboarding import CurrentStep, OnboardingMetadata, OnboardingState

logger = logging.getLogger(__name__)


class OnboardingController:
    """Контроллер прохождения онбординга"""

    def __init__(self, store: MetadataStore):
        self.store = store

    # ===== ЧТЕНИЕ =====

    async def get_current_step(self, user_id: Optional[str]) -> CurrentStep:
        """Текущий шаг; пользователь без записи находится на welcome (без записи в хранилище)"""
        metadata = await self.store.read(user_id)
        return self.current_of(metadata)

    async def get_state(self, user_id: Optional[str]) -> OnboardingState:
        metadata = await self.store.read(user_id)
        return self.state_of(metadata)

    @staticmethod
    def current_of(metadata: OnboardingMetadata) -> CurrentStep:
        return OnboardingCompletion.COMPLETED if metadata.completed else metadata.step

    @staticmethod
    def state_of(metadata: OnboardingMetadata) -> OnboardingState:
        if metadata.completed:
            return OnboardingState(
                current_step=OnboardingCompletion.COMPLETED,
                completed=True,
                completed_steps=list(ONBOARDING_STEPS),
                progress=100,
                data=metadata.data,
            )
        return OnboardingState(
            current_step=metadata.step,
            completed=False,
            completed_steps=metadata.completed_steps,
            progress=progress_percent(metadata.completed_steps),
            previous_step=previous_step(metadata.step),
            next_step=next_step(metadata.step),
            reachable_steps=reachable_steps(metadata.step, metadata.completed_steps),
            data=metadata.data,
        )

    # ===== ПЕРЕХОДЫ =====

    async def advance(self, user_id: Optional[str], target: StepLike) -> OnboardingMetadata:
        """
        Перейти на шаг target.

        Разрешено: тот же шаг (идемпотентно, без записи), непосредственно
        следующий шаг, любой шаг до текущего, а также уже пройденные шаги
        (возврат вперед после просмотра предыдущих). Перескок через
        непройденный шаг -> InvalidTransitionError, запись не выполняется.
        """
        target = parse_step(target)
        metadata = await self.store.read(user_id)
        self._ensure_not_completed(metadata)

        current = metadata.step
        if target == current:
            return metadata

        limit = frontier_index(current, metadata.completed_steps) + 1
        if step_index(target) > limit:
            logger.info(f"⛔ {user_id}: переход {current.value} -> {target.value} отклонен")
            raise InvalidTransitionError(current, target)

        completed_steps = list(metadata.completed_steps)
        if step_index(target) > step_index(current) and current not in completed_steps:
            completed_steps.append(current)

        updated = await self.store.write(user_id, {
            "step": target,
            "completed_steps": _ordered(completed_steps),
        })
        logger.info(f"➡️ {user_id}: {current.value} -> {target.value}")
        return updated

    async def progress_to_next_step(self, user_id: Optional[str]) -> OnboardingMetadata:
        """Следующий шаг, а с последнего шага - завершение"""
        metadata = await self.store.read(user_id)
        self._ensure_not_completed(metadata)

        successor = next_step(metadata.step)
        if successor is None:
            return await self.complete(user_id)
        return await self.advance(user_id, successor)

    async def complete(self, user_id: Optional[str]) -> OnboardingMetadata:
        """Завершить онбординг; допустимо только с шага resume"""
        metadata = await self.store.read(user_id)
        self._ensure_not_completed(metadata)

        if metadata.step != OnboardingStep.RESUME:
            raise InvalidTransitionError(
                metadata.step,
                OnboardingCompletion.COMPLETED,
                f"Onboarding can only be completed from the {OnboardingStep.RESUME.value!r} step"
            )

        updated = await self.store.write(user_id, {
            "completed": True,
            "step": OnboardingStep.RESUME,
            "completed_steps": list(ONBOARDING_STEPS),
        })
        logger.info(f"🏁 {user_id}: онбординг завершен")
        return updated

    async def reset(self, user_id: Optional[str]) -> OnboardingMetadata:
        """Сбросить прогресс к свежему welcome (тестирование и поддержка)"""
        updated = await self.store.write(user_id, {
            "step": OnboardingStep.WELCOME,
            "completed": False,
            "completed_steps": [],
            "data": {},
        })
        logger.warning(f"🔄 {user_id}: онбординг сброшен")
        return updated

    # ===== ДАННЫЕ ШАГОВ =====

    async def save_step_data(
        self,
        user_id: Optional[str],
        step: StepLike,
        payload: Dict[str, Any]
    ) -> OnboardingMetadata:
        """Сохранить поля, собранные на шаге, не меняя позицию"""
        step = parse_step(step)
        metadata = await self.store.read(user_id)
        self._ensure_not_completed(metadata)
        self._ensure_reachable(metadata, step)

        data = dict(metadata.data)
        data[step.value] = {**data.get(step.value, {}), **payload}
        return await self.store.write(user_id, {"data": data})

    async def append_step_entry(
        self,
        user_id: Optional[str],
        step: StepLike,
        entry: Dict[str, Any]
    ) -> OnboardingMetadata:
        """Добавить запись в список шага (образование, опыт)"""
        step = parse_step(step)
        metadata = await self.store.read(user_id)
        self._ensure_not_completed(metadata)
        self._ensure_reachable(metadata, step)

        data = dict(metadata.data)
        step_data = dict(data.get(step.value, {}))
        step_data["entries"] = [*step_data.get("entries", []), entry]
        data[step.value] = step_data
        return await self.store.write(user_id, {"data": data})

    async def import_step_data(
        self,
        user_id: Optional[str],
        imported: Dict[str, Dict[str, Any]]
    ) -> OnboardingMetadata:
        """
        Слить данные из внешнего источника (синхронизация профиля).
        Уже введенные пользователем поля имеют приоритет.
        """
        metadata = await self.store.read(user_id)
        data = dict(metadata.data)
        for key, payload in imported.items():
            step = parse_step(key)
            data[step.value] = {**payload, **data.get(step.value, {})}
        return await self.store.write(user_id, {"data": data})

    # ===== ПРОВЕРКИ =====

    @staticmethod
    def _ensure_not_completed(metadata: OnboardingMetadata) -> None:
        if metadata.completed:
            raise AlreadyCompletedError("Onboarding is already completed")

    @staticmethod
    def _ensure_reachable(metadata: OnboardingMetadata, step: OnboardingStep) -> None:
        limit = frontier_index(metadata.step, metadata.completed_steps) + 1
        if step_index(step) > limit:
            raise InvalidTransitionError(metadata.step, step)


def _ordered(steps: List[OnboardingStep]) -> List[OnboardingStep]:
    return sorted(set(steps), key=step_index)
