#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Exceptions
Иерархия ошибок процесса онбординга

Версия: 1.0.0
Дата: 2026-10-19
"""

from typing import Optional


# ===== EXCEPTIONS =====

class OnboardingError(Exception):
    """Базовое исключение онбординга"""
    pass


class UnauthorizedError(OnboardingError):
    """Нет действующей сессии для пользователя"""
    pass


class InvalidStepError(OnboardingError, ValueError):
    """Значение шага вне перечисления"""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown onboarding step: {value!r}")


class InvalidTransitionError(OnboardingError):
    """Попытка перепрыгнуть через обязательные шаги"""

    def __init__(self, current, target, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(
            message or f"Cannot move from {_value(current)!r} to {_value(target)!r}"
        )


class AlreadyCompletedError(OnboardingError):
    """Онбординг уже завершен"""
    pass


class PersistenceError(OnboardingError):
    """Ошибка записи/чтения хранилища метаданных"""
    pass


class BackfillUnavailableError(OnboardingError):
    """Синхронизация профиля не настроена или не указан аккаунт Rize"""
    pass


def _value(step) -> str:
    return getattr(step, "value", step)
