# models/onboarding.py

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.exceptions import InvalidStepError
from models.enums import OnboardingCompletion, OnboardingStep

CurrentStep = Union[OnboardingStep, OnboardingCompletion]


def parse_step(value) -> OnboardingStep:
    if isinstance(value, OnboardingStep):
        return value
    try:
        return OnboardingStep(value)
    except ValueError:
        raise InvalidStepError(value) from None


class OnboardingMetadata(BaseModel):
    """
    Персистентная запись онбординга пользователя.

    Хранится с camelCase ключами провайдера идентификации; все неизвестные
    ключи сохраняются как есть (extra="allow"), поэтому частичная запись
    не теряет чужие поля publicMetadata.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    step: OnboardingStep = Field(default=OnboardingStep.WELCOME, alias="currentOnboardingStep")
    completed: bool = Field(default=False, alias="onboardingComplete")
    completed_steps: List[OnboardingStep] = Field(default_factory=list, alias="completedSteps")
    data: Dict[str, Dict[str, Any]] = Field(default_factory=dict, alias="onboardingData")

    @field_validator("step", mode="before")
    @classmethod
    def validate_step(cls, v):
        if v is None:
            return OnboardingStep.WELCOME
        return parse_step(v)

    @field_validator("completed", mode="before")
    @classmethod
    def validate_completed(cls, v):
        return bool(v) if v is not None else False

    @field_validator("completed_steps", mode="before")
    @classmethod
    def validate_completed_steps(cls, v):
        if not v:
            return []
        steps: List[OnboardingStep] = []
        for item in v:
            step = parse_step(item)
            if step not in steps:
                steps.append(step)
        return steps

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v):
        if not v:
            return {}
        for key in v:
            parse_step(key)
        return v

    @classmethod
    def from_raw(cls, raw: Optional[Dict[str, Any]]) -> "OnboardingMetadata":
        """Валидация сырой записи хранилища"""
        try:
            return cls.model_validate(raw or {})
        except ValidationError as e:
            # parse_step внутри валидаторов превращается в ValidationError
            for error in e.errors():
                ctx_error = (error.get("ctx") or {}).get("error")
                if isinstance(ctx_error, InvalidStepError):
                    raise ctx_error from None
            raise InvalidStepError(raw) from e

    def to_raw(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @staticmethod
    def alias_update(update: Dict[str, Any]) -> Dict[str, Any]:
        """Перевести частичное обновление с python-именами полей в ключи хранилища"""
        raw: Dict[str, Any] = {}
        for key, value in update.items():
            field = OnboardingMetadata.model_fields.get(key)
            raw_key = field.alias if field is not None and field.alias else key
            if isinstance(value, OnboardingStep):
                value = value.value
            elif isinstance(value, list):
                value = [getattr(item, "value", item) for item in value]
            raw[raw_key] = value
        return raw


class OnboardingState(BaseModel):
    """Снимок прогресса для представлений и API"""

    current_step: CurrentStep
    completed: bool
    completed_steps: List[OnboardingStep] = []
    progress: int = 0
    previous_step: Optional[OnboardingStep] = None
    next_step: Optional[OnboardingStep] = None
    reachable_steps: List[OnboardingStep] = []
    data: Dict[str, Dict[str, Any]] = {}
