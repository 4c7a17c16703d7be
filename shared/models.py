from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.backfill import PrivateMetadata
from models.enums import OnboardingStep
from models.onboarding import CurrentStep, OnboardingState


# Модели для API ответов
class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    errors: Optional[List[str]] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ErrorResponse(BaseModel):
    """Тело ответа для доменных ошибок онбординга"""
    success: bool = False
    error: str
    detail: str
    current_step: Optional[CurrentStep] = None
    redirect: Optional[str] = None
    retryable: bool = False


class HealthCheck(BaseModel):
    status: str
    service: str
    version: str
    timestamp: float
    data: Dict[str, Any] = {}


class OnboardingStateResponse(APIResponse):
    data: OnboardingState
    steps: List["StepInfo"] = []


class BackfillStatusResponse(BaseModel):
    rize_user_id: Optional[str] = Field(default=None, serialization_alias="rizeUserId")
    rize_backfill: Dict[str, Any] = Field(serialization_alias="rizeBackfill")

    @classmethod
    def from_private(cls, private: PrivateMetadata) -> "BackfillStatusResponse":
        return cls(
            rize_user_id=private.rize_user_id,
            rize_backfill=private.rize_backfill.model_dump(mode="json", by_alias=True),
        )


# Модели для запросов
class AdvanceRequest(BaseModel):
    step: str = Field(..., description="Целевой шаг онбординга")


class StepDataRequest(BaseModel):
    data: Dict[str, Any] = {}
    entry: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Добавить одну запись в список шага (образование, опыт)"
    )
    advance: bool = Field(default=False, description="Перейти на следующий шаг после сохранения")


class BackfillRequest(BaseModel):
    rize_user_id: Optional[str] = Field(default=None, alias="rizeUserId")

    model_config = ConfigDict(populate_by_name=True)


class StepInfo(BaseModel):
    step: OnboardingStep
    title: str
    subtitle: str = ""
    reachable: bool
    completed: bool
    current: bool

    @classmethod
    def list_for(cls, state: OnboardingState, meta: Dict[str, Dict[str, Any]]) -> List["StepInfo"]:
        """Описание всех шагов для навигации и индикатора прогресса"""
        return [
            cls(
                step=step,
                title=meta.get(step.value, {}).get("title", step.value),
                subtitle=meta.get(step.value, {}).get("subtitle", ""),
                reachable=step in state.reachable_steps,
                completed=step in state.completed_steps,
                current=step == state.current_step,
            )
            for step in OnboardingStep
        ]


OnboardingStateResponse.model_rebuild()
