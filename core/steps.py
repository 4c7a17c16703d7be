# core/steps.py

"""
Канонический порядок шагов онбординга и навигация по нему.
Все функции чистые, без побочных эффектов.
"""

from typing import Iterable, List, Optional, Union

from models.enums import OnboardingStep
from models.onboarding import parse_step

ONBOARDING_STEPS: List[OnboardingStep] = list(OnboardingStep)

StepLike = Union[OnboardingStep, str]


def step_index(step: StepLike) -> int:
    return ONBOARDING_STEPS.index(parse_step(step))


def next_step(step: StepLike) -> Optional[OnboardingStep]:
    """Следующий шаг или None для последнего"""
    index = step_index(step) + 1
    return ONBOARDING_STEPS[index] if index < len(ONBOARDING_STEPS) else None


def previous_step(step: StepLike) -> Optional[OnboardingStep]:
    """Предыдущий шаг или None для первого"""
    index = step_index(step) - 1
    return ONBOARDING_STEPS[index] if index >= 0 else None


def is_first_step(step: StepLike) -> bool:
    return step_index(step) == 0


def is_last_step(step: StepLike) -> bool:
    return step_index(step) == len(ONBOARDING_STEPS) - 1


def frontier_index(current: StepLike, completed_steps: Iterable[StepLike] = ()) -> int:
    """Индекс самого дальнего шага, до которого пользователь дошел"""
    indexes = [step_index(current)]
    indexes.extend(step_index(step) for step in completed_steps)
    return max(indexes)


def reachable_steps(current: StepLike, completed_steps: Iterable[StepLike] = ()) -> List[OnboardingStep]:
    """Шаги, на которые допустим переход из текущей позиции"""
    limit = frontier_index(current, completed_steps) + 1
    return ONBOARDING_STEPS[:limit + 1]


def progress_percent(completed_steps: Iterable[StepLike]) -> int:
    """Процент прохождения по количеству завершенных шагов"""
    unique = {parse_step(step) for step in completed_steps}
    return round(len(unique) / len(ONBOARDING_STEPS) * 100)
