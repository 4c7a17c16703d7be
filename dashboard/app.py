#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - FastAPI Application
Веб-сервис онбординга: страницы шагов, JSON API и служебные маршруты

Версия: 1.0.0
Дата: 2026-10-19
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlparse

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from core.exceptions import (
    AlreadyCompletedError,
    BackfillUnavailableError,
    InvalidStepError,
    InvalidTransitionError,
    OnboardingError,
    PersistenceError,
    UnauthorizedError,
)
from dashboard import dependencies
from dashboard.api import onboarding, rize
from dashboard.config import DashboardSettings, get_settings
from dashboard.dependencies import get_app_settings, get_metadata_store
from dashboard.pages import router as pages_router
from dashboard.pages import step_url, templates
from database.metadata_store import MetadataStore
from shared.models import ErrorResponse, HealthCheck

logger = logging.getLogger(__name__)

app_start_time = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    global app_start_time

    settings: DashboardSettings = app.state.settings

    # Startup
    logger.info(f"🚀 Запуск {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    app_start_time = time.time()

    try:
        store = await dependencies.init_metadata_store(settings)
        dependencies.init_session_resolver(settings)

        users_count = await store.users_count()
        if users_count is not None:
            logger.info(f"📊 Пользователей в хранилище: {users_count}")
        logger.info(f"🌐 Сервис доступен на: {settings.get_full_url()}")
        logger.info("✅ Сервис готов к работе")

    except Exception as e:
        logger.error(f"❌ Ошибка инициализации: {e}")
        # Не прерываем запуск, хранилище будет инициализировано при первом запросе

    yield

    # Shutdown
    logger.info("🛑 Остановка сервиса...")
    await dependencies.cleanup_resources()


# ===== ОБРАБОТЧИКИ ОШИБОК =====

def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def _error_json(status_code: int, error: str, exc: Exception, **extra) -> JSONResponse:
    body = ErrorResponse(error=error, detail=str(exc), **extra)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def _error_page(request: Request, status_code: int, title: str, message: str, retry_url: Optional[str] = None):
    settings = request.app.state.settings
    return templates.TemplateResponse(request, "error.html", {
        "app_name": settings.APP_NAME,
        "debug": settings.DEBUG,
        "title": title,
        "message": message,
        "retry_url": retry_url,
        "error_code": status_code,
    }, status_code=status_code)


def _same_site_referer(request: Request) -> Optional[str]:
    referer = request.headers.get("referer")
    if not referer:
        return None
    parsed = urlparse(referer)
    if parsed.netloc and parsed.netloc != request.url.netloc:
        return None
    if not parsed.path.startswith("/app/onboarding"):
        return None
    return f"{parsed.path}?{parsed.query}" if parsed.query else parsed.path


async def unauthorized_handler(request: Request, exc: UnauthorizedError):
    if _is_api(request):
        return _error_json(401, "unauthorized", exc)
    return RedirectResponse(url=request.app.state.settings.SIGN_IN_URL, status_code=303)


async def invalid_step_handler(request: Request, exc: InvalidStepError):
    logger.error(f"❌ {request.method} {request.url.path}: {exc}")
    if _is_api(request):
        return _error_json(400, "invalid_step", exc)
    return _error_page(request, 400, "Something went wrong", "This onboarding step does not exist.")


async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    if _is_api(request):
        return _error_json(409, "invalid_transition", exc, current_step=exc.current)
    return RedirectResponse(url=step_url(exc.current, "invalid-transition"), status_code=303)


async def already_completed_handler(request: Request, exc: AlreadyCompletedError):
    redirect = request.app.state.settings.POST_ONBOARDING_URL
    if _is_api(request):
        return _error_json(409, "already_completed", exc, redirect=redirect)
    return RedirectResponse(url=redirect, status_code=303)


async def persistence_handler(request: Request, exc: PersistenceError):
    logger.error(f"❌ {request.method} {request.url.path}: {exc}")
    if _is_api(request):
        return _error_json(503, "persistence_failed", exc, retryable=True)

    # Неподтвержденная запись: остаемся на шаге и предлагаем повторить
    referer = _same_site_referer(request)
    if request.method == "POST" and referer:
        separator = "&" if "?" in referer else "?"
        return RedirectResponse(url=f"{referer}{separator}notice=retry", status_code=303)
    return _error_page(
        request, 503, "We couldn't reach your profile",
        "Your progress is safe. Please try again in a moment.",
        retry_url=referer or "/app"
    )


async def backfill_unavailable_handler(request: Request, exc: BackfillUnavailableError):
    return _error_json(400, "backfill_unavailable", exc)


async def onboarding_error_handler(request: Request, exc: OnboardingError):
    logger.error(f"❌ {request.method} {request.url.path}: {exc}")
    if _is_api(request):
        return _error_json(400, "onboarding_error", exc)
    return _error_page(request, 400, "Something went wrong", "Please try again.")


async def internal_error_handler(request: Request, exc: Exception):
    """Обработчик 500 ошибок"""
    logger.exception(f"Internal server error: {exc}")
    if _is_api(request):
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "debug": request.app.state.settings.DEBUG}
        )
    return _error_page(request, 500, "Something went wrong", "An unexpected error occurred.")


# ===== СЛУЖЕБНЫЕ МАРШРУТЫ =====

async def health_check(
    store: MetadataStore = Depends(get_metadata_store),
    settings: DashboardSettings = Depends(get_app_settings)
):
    """Health check для мониторинга"""
    try:
        users_count = await store.users_count()
        return HealthCheck(
            status="healthy",
            service="onboarding",
            version=settings.VERSION,
            timestamp=time.time(),
            data={
                "backend": store.backend_name,
                "users_count": users_count,
                "debug_mode": settings.DEBUG,
                "uptime_seconds": time.time() - app_start_time
            }
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "service": "onboarding",
                "error": str(e),
                "timestamp": time.time()
            }
        )


async def ping():
    """Простой ping endpoint"""
    return {
        "message": "pong",
        "timestamp": time.time(),
        "service": "onboarding"
    }


async def api_info(settings: DashboardSettings = Depends(get_app_settings)):
    """Информация об API"""
    return {
        "name": f"{settings.APP_NAME} API",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "debug": settings.DEBUG,
        "uptime": time.time() - app_start_time,
        "endpoints": {
            "onboarding": "/api/onboarding",
            "rize": "/api/rize",
            "pages": "/app/onboarding"
        },
        "features": {
            "metadata_backend": settings.METADATA_BACKEND,
            "analytics": settings.analytics_configured,
            "profile_sync": settings.rize_configured,
            "reset": settings.ALLOW_ONBOARDING_RESET
        }
    }


# ===== СОЗДАНИЕ ПРИЛОЖЕНИЯ =====

def create_app(settings: Optional[DashboardSettings] = None) -> FastAPI:
    """Фабрика для создания приложения"""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Пошаговый онбординг пользователей Letraz",
        version=settings.VERSION,
        docs_url=settings.DOCS_URL,
        redoc_url=None,
        openapi_url="/api/openapi.json" if settings.DOCS_URL else None,
        lifespan=lifespan
    )
    app.state.settings = settings

    # ===== MIDDLEWARE =====

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Middleware для логирования запросов"""
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        client_ip = dependencies.get_client_ip(request)

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} "
            f"- {response.status_code} "
            f"- {process_time:.3f}s "
            f"- {client_ip}"
        )
        response.headers["X-Process-Time"] = f"{process_time:.6f}"
        response.headers["X-Request-ID"] = request_id
        return response

    # ===== ОБРАБОТЧИКИ ОШИБОК =====

    app.add_exception_handler(UnauthorizedError, unauthorized_handler)
    app.add_exception_handler(InvalidStepError, invalid_step_handler)
    app.add_exception_handler(InvalidTransitionError, invalid_transition_handler)
    app.add_exception_handler(AlreadyCompletedError, already_completed_handler)
    app.add_exception_handler(PersistenceError, persistence_handler)
    app.add_exception_handler(BackfillUnavailableError, backfill_unavailable_handler)
    app.add_exception_handler(OnboardingError, onboarding_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # ===== МАРШРУТЫ =====

    app.include_router(onboarding.router)
    app.include_router(rize.router)
    app.include_router(pages_router)

    app.add_api_route("/health", health_check, methods=["GET"], response_model=HealthCheck, tags=["service"])
    app.add_api_route("/ping", ping, methods=["GET"], tags=["service"])
    app.add_api_route("/api/info", api_info, methods=["GET"], tags=["service"])

    logger.info("✅ Маршруты подключены")
    return app


app = create_app()

# ===== ЗАПУСК ПРИЛОЖЕНИЯ =====

def run_dashboard(
    host: str = None,
    port: int = None,
    dev: bool = None,
    reload: bool = None
):
    """Запуск сервиса"""
    settings = get_settings()
    settings.setup_logging()

    # Используем настройки по умолчанию если не переданы
    host = host or settings.DASHBOARD_HOST
    port = port or settings.DASHBOARD_PORT
    dev = dev if dev is not None else settings.DEBUG
    reload = reload if reload is not None else dev

    logger.info(f"🌐 Запуск сервиса на http://{host}:{port}")
    logger.info(f"🗄️ Хранилище: {settings.METADATA_BACKEND}")
    logger.info(f"🔧 Режим отладки: {dev}")
    logger.info(f"🔄 Автоперезагрузка: {reload}")

    try:
        uvicorn.run(
            "dashboard.app:app",
            host=host,
            port=port,
            reload=reload,
            log_level="debug" if dev else "info",
            access_log=dev,
            server_header=False,
            date_header=False
        )
    except KeyboardInterrupt:
        logger.info("👋 Сервис остановлен")
    except Exception as e:
        logger.error(f"❌ Ошибка запуска сервиса: {e}")
        raise


if __name__ == "__main__":
    # Запуск напрямую
    import argparse

    parser = argparse.ArgumentParser(description="Запуск Letraz Onboarding")
    parser.add_argument("--host", default=None, help="Host для запуска")
    parser.add_argument("--port", type=int, default=None, help="Port для запуска")
    parser.add_argument("--dev", action="store_true", help="Режим разработки")
    parser.add_argument("--reload", action="store_true", help="Автоперезагрузка")

    args = parser.parse_args()

    run_dashboard(
        host=args.host,
        port=args.port,
        dev=args.dev or None,
        reload=args.reload or None
    )
