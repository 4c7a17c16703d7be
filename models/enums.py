# models/enums.py

from enum import Enum


class OnboardingStep(str, Enum):
    """Шаги онбординга в каноническом порядке"""
    WELCOME = "welcome"
    ABOUT = "about"
    PERSONAL_DETAILS = "personal-details"
    EDUCATION = "education"
    EXPERIENCE = "experience"
    RESUME = "resume"


class OnboardingCompletion(str, Enum):
    """Терминальное состояние после шага resume"""
    COMPLETED = "completed"


class BackfillStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class AnalyticsEvent(str, Enum):
    STEP_VIEWED = "onboarding_step_viewed"
    STEP_ADVANCED = "onboarding_step_advanced"
    COMPLETED = "onboarding_completed"
    BACKFILL_STARTED = "rize_backfill_started"


class MetadataBackend(str, Enum):
    MEMORY = "memory"
    JSON = "json"
    SQL = "sql"
    CLERK = "clerk"
