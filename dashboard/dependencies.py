#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Dependencies
Зависимости и провайдеры для FastAPI приложения

Версия: 1.0.0
Дата: 2026-10-19
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.exceptions import UnauthorizedError
from core.onboarding import OnboardingController
from dashboard.config import DashboardSettings, get_settings
from dashboard.trackers import OnboardingStepTracker
from database.factory import create_metadata_store
from database.metadata_store import MetadataStore
from services.analytics import Analytics, create_analytics
from services.backfill import BackfillService, create_backfill_service
from services.identity import (
    ClerkClient,
    ClerkSessionResolver,
    SessionResolver,
    StaticSessionResolver,
)

logger = logging.getLogger(__name__)

# ===== ГЛОБАЛЬНЫЕ ПЕРЕМЕННЫЕ =====

_clerk_client: Optional[ClerkClient] = None
_metadata_store: Optional[MetadataStore] = None
_controller: Optional[OnboardingController] = None
_analytics: Optional[Analytics] = None
_session_resolver: Optional[SessionResolver] = None
_backfill_service: Optional[BackfillService] = None

# ===== ИНИЦИАЛИЗАЦИЯ КОМПОНЕНТОВ =====


def _get_clerk_client(settings: DashboardSettings) -> Optional[ClerkClient]:
    global _clerk_client

    if settings.CLERK_SECRET_KEY and _clerk_client is None:
        _clerk_client = ClerkClient(
            settings.CLERK_SECRET_KEY,
            api_url=settings.CLERK_API_URL,
            timeout=settings.IDENTITY_TIMEOUT,
        )
    return _clerk_client


async def init_metadata_store(settings: DashboardSettings) -> MetadataStore:
    """Инициализация хранилища метаданных"""
    global _metadata_store

    if _metadata_store is None:
        logger.info("🔄 Инициализация хранилища метаданных...")
        store = create_metadata_store(settings, _get_clerk_client(settings))
        await store.initialize()
        _metadata_store = store
        logger.info("✅ Хранилище метаданных инициализировано")

    return _metadata_store


def init_session_resolver(settings: DashboardSettings) -> SessionResolver:
    """Clerk в рабочем режиме, статическая таблица сессий для разработки"""
    global _session_resolver

    if _session_resolver is None:
        client = _get_clerk_client(settings)
        if client is not None:
            _session_resolver = ClerkSessionResolver(client)
        elif settings.is_production:
            logger.error("❌ CLERK_SECRET_KEY не задан, аутентификация невозможна")
            _session_resolver = StaticSessionResolver()
        else:
            logger.warning(f"⚠️ Используются статические сессии ({len(settings.DEV_SESSIONS)})")
            _session_resolver = StaticSessionResolver(settings.DEV_SESSIONS)

    return _session_resolver


# ===== ПРОВАЙДЕРЫ ЗАВИСИМОСТЕЙ =====

def get_app_settings(request: Request) -> DashboardSettings:
    """Настройки, с которыми создано приложение"""
    return getattr(request.app.state, "settings", None) or get_settings()


async def get_metadata_store(
    settings: DashboardSettings = Depends(get_app_settings)
) -> MetadataStore:
    """Получить хранилище метаданных"""
    if _metadata_store is None:
        return await init_metadata_store(settings)
    return _metadata_store


async def get_controller(
    store: MetadataStore = Depends(get_metadata_store)
) -> OnboardingController:
    """Получить контроллер онбординга"""
    global _controller

    if _controller is None or _controller.store is not store:
        _controller = OnboardingController(store)
    return _controller


def get_analytics(settings: DashboardSettings = Depends(get_app_settings)) -> Analytics:
    global _analytics

    if _analytics is None:
        _analytics = create_analytics(settings)
    return _analytics


def get_step_tracker(analytics: Analytics = Depends(get_analytics)) -> OnboardingStepTracker:
    return OnboardingStepTracker(analytics)


def get_session_resolver(settings: DashboardSettings = Depends(get_app_settings)) -> SessionResolver:
    if _session_resolver is None:
        return init_session_resolver(settings)
    return _session_resolver


async def get_backfill_service(
    settings: DashboardSettings = Depends(get_app_settings),
    store: MetadataStore = Depends(get_metadata_store),
    controller: OnboardingController = Depends(get_controller)
) -> BackfillService:
    global _backfill_service

    if _backfill_service is None or _backfill_service.store is not store:
        _backfill_service = create_backfill_service(settings, store, controller)
    return _backfill_service


# ===== АВТОРИЗАЦИЯ =====

security = HTTPBearer(auto_error=False)


async def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: DashboardSettings = Depends(get_app_settings)
) -> Optional[str]:
    """Токен сессии из заголовка Authorization или cookie"""
    if credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


async def get_current_user_id(
    token: Optional[str] = Depends(get_session_token),
    resolver: SessionResolver = Depends(get_session_resolver)
) -> Optional[str]:
    """user_id текущей сессии или None"""
    if not token:
        return None
    try:
        return await resolver.resolve(token)
    except UnauthorizedError as e:
        logger.info(f"🔒 Сессия отклонена: {e}")
        return None


async def require_user(
    user_id: Optional[str] = Depends(get_current_user_id)
) -> str:
    """Требовать авторизации"""
    if not user_id:
        raise UnauthorizedError("User not authenticated")
    return user_id


# ===== УТИЛИТЫ =====

def get_client_ip(request: Request) -> str:
    """Получить IP адрес клиента"""
    # Проверяем заголовки прокси
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


# ===== ОЧИСТКА РЕСУРСОВ =====

async def cleanup_resources():
    """Очистка ресурсов при остановке приложения"""
    global _clerk_client, _metadata_store, _controller, _analytics, _session_resolver, _backfill_service

    logger.info("🧹 Очистка ресурсов...")

    try:
        if _backfill_service:
            await _backfill_service.close()
        if _analytics:
            await _analytics.close()
        if _session_resolver:
            await _session_resolver.close()
        if _metadata_store:
            await _metadata_store.close()
        if _clerk_client:
            await _clerk_client.close()
        logger.info("✅ Ресурсы очищены")

    except Exception as e:
        logger.error(f"❌ Ошибка при очистке ресурсов: {e}")

    finally:
        _clerk_client = None
        _metadata_store = None
        _controller = None
        _analytics = None
        _session_resolver = None
        _backfill_service = None
