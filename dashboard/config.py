#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Configuration
Конфигурация сервиса онбординга с настройками для разных сред

Версия: 1.0.0
Дата: 2026-10-19
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from models.enums import MetadataBackend
from utils.logger import setup_logger


class DashboardSettings(BaseSettings):
    """Настройки сервиса онбординга Letraz"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===== ОСНОВНЫЕ НАСТРОЙКИ =====

    APP_NAME: str = Field(
        default="Letraz Onboarding",
        description="Название приложения"
    )

    VERSION: str = Field(
        default="1.0.0",
        description="Версия сервиса"
    )

    ENVIRONMENT: str = Field(
        default="development",
        description="Среда выполнения (development/production/testing/staging)"
    )

    DEBUG: bool = Field(
        default=True,
        description="Режим отладки"
    )

    # ===== СЕТЕВЫЕ НАСТРОЙКИ =====

    DASHBOARD_HOST: str = Field(
        default="0.0.0.0",
        description="Хост для запуска сервиса"
    )

    DASHBOARD_PORT: int = Field(
        default=8000,
        description="Порт для запуска сервиса"
    )

    BASE_URL: Optional[str] = Field(
        default=None,
        description="Базовый URL сервиса (для продакшена)"
    )

    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default=["*"],
        description="Разрешенные источники для CORS (через запятую)"
    )

    DOCS_URL: Optional[str] = Field(
        default="/api/docs",
        description="URL документации API (None для отключения)"
    )

    # ===== ЛОГИРОВАНИЕ =====

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Уровень логирования (DEBUG/INFO/WARNING/ERROR/CRITICAL)"
    )

    LOG_FORMAT: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Формат логов"
    )

    LOG_DATE_FORMAT: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Формат даты в логах"
    )

    LOGS_DIR: Path = Field(
        default=Path("logs"),
        description="Директория логов"
    )

    LOG_FILE: Optional[str] = Field(
        default="onboarding.log",
        description="Имя файла лога в LOGS_DIR (пусто - только консоль)"
    )

    LOG_MAX_BYTES: int = Field(
        default=10 * 1024 * 1024,  # 10MB
        description="Размер файла лога до ротации"
    )

    LOG_BACKUP_COUNT: int = Field(
        default=5,
        description="Количество архивных файлов лога"
    )

    # ===== ХРАНИЛИЩЕ МЕТАДАННЫХ =====

    METADATA_BACKEND: str = Field(
        default="json",
        description="Бэкенд метаданных (memory/json/sql/clerk)"
    )

    DATA_DIR: Path = Field(
        default=Path("data/users"),
        description="Директория JSON-файлов пользователей"
    )

    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="URL базы данных (postgresql+asyncpg://, sqlite+aiosqlite://)"
    )

    DB_POOL_SIZE: int = Field(
        default=5,
        description="Размер пула соединений БД"
    )

    DB_MAX_OVERFLOW: int = Field(
        default=10,
        description="Максимальное количество дополнительных соединений"
    )

    # ===== ИДЕНТИФИКАЦИЯ (CLERK) =====

    CLERK_SECRET_KEY: Optional[str] = Field(
        default=None,
        description="Секретный ключ Clerk Backend API"
    )

    CLERK_API_URL: str = Field(
        default="https://api.clerk.com/v1",
        description="Базовый URL Clerk Backend API"
    )

    IDENTITY_TIMEOUT: float = Field(
        default=10.0,
        description="Таймаут запросов к провайдеру идентификации (сек)"
    )

    SESSION_COOKIE_NAME: str = Field(
        default="__session",
        description="Имя cookie с токеном сессии"
    )

    DEV_SESSIONS: Dict[str, str] = Field(
        default={},
        description="Статические сессии для разработки: токен -> user_id (JSON)"
    )

    SIGN_IN_URL: str = Field(
        default="/signin",
        description="Куда отправлять неаутентифицированных пользователей"
    )

    POST_ONBOARDING_URL: str = Field(
        default="/app",
        description="Куда отправлять пользователя после завершения онбординга"
    )

    ALLOW_ONBOARDING_RESET: bool = Field(
        default=False,
        description="Разрешить сброс онбординга через API"
    )

    # ===== АНАЛИТИКА =====

    ANALYTICS_ENABLED: bool = Field(
        default=False,
        description="Отправлять события в PostHog"
    )

    POSTHOG_API_KEY: Optional[str] = Field(
        default=None,
        description="Project API key PostHog"
    )

    POSTHOG_HOST: str = Field(
        default="https://us.i.posthog.com",
        description="Хост PostHog"
    )

    ANALYTICS_TIMEOUT: float = Field(
        default=5.0,
        description="Таймаут отправки события (сек)"
    )

    # ===== СИНХРОНИЗАЦИЯ ПРОФИЛЯ (RIZE) =====

    RIZE_ADMIN_API_URL: Optional[str] = Field(
        default=None,
        description="Базовый URL admin API Rize"
    )

    RIZE_ADMIN_API_KEY: Optional[str] = Field(
        default=None,
        description="Ключ admin API Rize (x-admin-api-key)"
    )

    RIZE_MAX_ATTEMPTS: int = Field(
        default=3,
        description="Количество попыток загрузки профиля"
    )

    RIZE_RETRY_DELAY: float = Field(
        default=2.0,
        description="Пауза между попытками (сек)"
    )

    RIZE_TIMEOUT: float = Field(
        default=15.0,
        description="Таймаут запроса к Rize (сек)"
    )

    # ===== ВАЛИДАТОРЫ =====

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Валидация среды выполнения"""
        allowed_envs = ["development", "production", "testing", "staging"]
        if v.lower() not in allowed_envs:
            raise ValueError(f"ENVIRONMENT must be one of {allowed_envs}")
        return v.lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Валидация уровня логирования"""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}")
        return v.upper()

    @field_validator("DASHBOARD_PORT")
    @classmethod
    def validate_port(cls, v):
        """Валидация порта"""
        if not 1 <= v <= 65535:
            raise ValueError("DASHBOARD_PORT must be between 1 and 65535")
        return v

    @field_validator("METADATA_BACKEND")
    @classmethod
    def validate_backend(cls, v):
        """Валидация бэкенда метаданных"""
        allowed_backends = [backend.value for backend in MetadataBackend]
        if v.lower() not in allowed_backends:
            raise ValueError(f"METADATA_BACKEND must be one of {allowed_backends}")
        return v.lower()

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def validate_origins(cls, v):
        """Валидация CORS origins"""
        if isinstance(v, str):
            # Если передана строка, разделяем по запятой
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("RIZE_MAX_ATTEMPTS")
    @classmethod
    def validate_attempts(cls, v):
        if v < 1:
            raise ValueError("RIZE_MAX_ATTEMPTS must be at least 1")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Валидация настроек для продакшена"""
        if self.ENVIRONMENT == "production":
            # В продакшене отключаем DEBUG, документацию API и сброс онбординга
            self.DEBUG = False
            self.DOCS_URL = None
            self.ALLOW_ONBOARDING_RESET = False

        if self.METADATA_BACKEND == "sql" and not self.DATABASE_URL:
            raise ValueError("DATABASE_URL is required when METADATA_BACKEND=sql")
        if self.METADATA_BACKEND == "clerk" and not self.CLERK_SECRET_KEY:
            raise ValueError("CLERK_SECRET_KEY is required when METADATA_BACKEND=clerk")
        return self

    # ===== МЕТОДЫ КОНФИГУРАЦИИ =====

    @property
    def is_production(self) -> bool:
        """Проверка продакшен среды"""
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        """Проверка среды разработки"""
        return self.ENVIRONMENT == "development"

    @property
    def is_testing(self) -> bool:
        """Проверка тестовой среды"""
        return self.ENVIRONMENT == "testing"

    @property
    def analytics_configured(self) -> bool:
        return self.ANALYTICS_ENABLED and bool(self.POSTHOG_API_KEY)

    @property
    def rize_configured(self) -> bool:
        return bool(self.RIZE_ADMIN_API_URL and self.RIZE_ADMIN_API_KEY)

    def get_full_url(self, path: str = "") -> str:
        """Получить полный URL"""
        if self.BASE_URL:
            return f"{self.BASE_URL.rstrip('/')}/{path.lstrip('/')}"
        else:
            return f"http://{self.DASHBOARD_HOST}:{self.DASHBOARD_PORT}/{path.lstrip('/')}"

    def setup_logging(self) -> None:
        """Настройка логирования"""
        log_file = str(self.LOGS_DIR / self.LOG_FILE) if self.LOG_FILE else None
        setup_logger(
            log_file=log_file,
            level=self.LOG_LEVEL,
            fmt=self.LOG_FORMAT,
            datefmt=self.LOG_DATE_FORMAT,
            max_bytes=self.LOG_MAX_BYTES,
            backup_count=self.LOG_BACKUP_COUNT,
        )

        # Настройка логгеров внешних библиотек
        if not self.DEBUG:
            logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
            logging.getLogger("aiohttp").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ===== СОЗДАНИЕ ЭКЗЕМПЛЯРА НАСТРОЕК =====

@lru_cache()
def get_settings() -> DashboardSettings:
    return DashboardSettings()


settings = get_settings()

# ===== КОНСТАНТЫ И КОНФИГУРАЦИОННЫЕ ДАННЫЕ =====

# Отображение шагов онбординга
ONBOARDING_STEP_META: Dict[str, Dict[str, Any]] = {
    "welcome": {
        "title": "Welcome to Letraz",
        "subtitle": "Let's set up your profile so we can tailor resumes for you.",
        "template": "onboarding/welcome.html",
        "cta": "Get started",
    },
    "about": {
        "title": "About Letraz",
        "subtitle": "One base profile, a tailored resume for every job you apply to.",
        "template": "onboarding/about.html",
        "cta": "Continue",
    },
    "personal-details": {
        "title": "Personal details",
        "subtitle": "Tell us who you are and how employers can reach you.",
        "template": "onboarding/personal-details.html",
        "cta": "Save and continue",
        "fields": ["first_name", "last_name", "email", "phone", "location", "website", "bio"],
        "required": ["first_name", "email"],
    },
    "education": {
        "title": "Education",
        "subtitle": "Add the schools and programs you want on your resume.",
        "template": "onboarding/education.html",
        "cta": "Continue",
        "fields": ["institution", "degree", "field_of_study", "country", "started_from", "finished_at", "description"],
        "required": ["institution"],
        "multiple": True,
    },
    "experience": {
        "title": "Experience",
        "subtitle": "Add the roles you have held so far.",
        "template": "onboarding/experience.html",
        "cta": "Continue",
        "fields": ["company", "job_title", "employment_type", "location", "started_from", "finished_at", "current", "description"],
        "required": ["company", "job_title"],
        "multiple": True,
    },
    "resume": {
        "title": "Your base resume",
        "subtitle": "Review what we collected. You can edit everything later.",
        "template": "onboarding/resume.html",
        "cta": "Finish onboarding",
    },
}

EMPLOYMENT_TYPES = {
    "full_time": "Full-time",
    "part_time": "Part-time",
    "contract": "Contract",
    "internship": "Internship",
    "freelance": "Freelance",
}
