#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Profile Backfill
Фоновая синхронизация профиля Rize в данные онбординга

Задача запускается через FastAPI BackgroundTasks, ее состояние
(idle/running/done/failed) хранится в private metadata пользователя
и доступно для опроса. Синхронизация никогда не меняет текущий шаг.

Версия: 1.0.0
Дата: 2026-10-19
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp
from fastapi import BackgroundTasks

from core.exceptions import BackfillUnavailableError
from core.onboarding import OnboardingController
from database.metadata_store import MetadataStore
from models.backfill import BackfillState, PrivateMetadata, RizeUser
from models.enums import BackfillStatus
from utils.decorators import retry_on_exception

logger = logging.getLogger(__name__)


class RizeAPIError(Exception):
    """Ответ admin API Rize с кодом ошибки"""

    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(message or f"Rize admin API responded {status}")


class RetryableRizeError(RizeAPIError):
    """5xx и 429: имеет смысл повторить запрос"""


class BackfillService:
    """Загрузка профиля Rize и слияние его с данными онбординга"""

    def __init__(
        self,
        store: MetadataStore,
        controller: OnboardingController,
        api_url: Optional[str],
        api_key: Optional[str],
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        timeout: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.store = store
        self.controller = controller
        self.api_url = (api_url or "").rstrip("/")
        self.api_key = api_key
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._locks: Dict[Optional[str], asyncio.Lock] = {}

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"x-admin-api-key": self.api_key or ""}
            )
        return self._session

    def _lock(self, user_id: Optional[str]) -> asyncio.Lock:
        return self._locks.setdefault(user_id, asyncio.Lock())

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    # ===== СОСТОЯНИЕ =====

    async def status(self, user_id: Optional[str]) -> PrivateMetadata:
        raw = await self.store.read_private(user_id)
        return PrivateMetadata.model_validate(raw)

    async def _save_state(self, user_id: str, rize_user_id: str, state: BackfillState) -> None:
        await self.store.write_private(user_id, {
            "rizeUserId": rize_user_id,
            "rizeBackfill": state.model_dump(mode="json", by_alias=True),
        })

    # ===== ЗАПУСК =====

    async def start(
        self,
        user_id: Optional[str],
        rize_user_id: Optional[str] = None,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> PrivateMetadata:
        """
        Отметить синхронизацию как running и запланировать run().
        Повторный запуск во время выполнения ничего не делает.
        Без background_tasks run() выполняется сразу (CLI, тесты).
        """
        if not self.configured:
            raise BackfillUnavailableError("Profile sync is not configured")

        # Проверка статуса и отметка running атомарны для пользователя
        async with self._lock(user_id):
            current = await self.status(user_id)
            rize_user_id = rize_user_id or current.rize_user_id
            if not rize_user_id:
                raise BackfillUnavailableError("No Rize account is linked to this user")

            if current.rize_backfill.status == BackfillStatus.RUNNING:
                logger.info(f"⏳ {user_id}: синхронизация Rize уже выполняется")
                return current

            started_at = datetime.now(timezone.utc)
            await self._save_state(user_id, rize_user_id, BackfillState(
                status=BackfillStatus.RUNNING,
                started_at=started_at,
            ))
        logger.info(f"🚀 {user_id}: запуск синхронизации Rize ({rize_user_id})")

        if background_tasks is not None:
            background_tasks.add_task(self.run, user_id, rize_user_id, started_at)
        else:
            await self.run(user_id, rize_user_id, started_at)
        return await self.status(user_id)

    async def run(
        self,
        user_id: str,
        rize_user_id: str,
        started_at: Optional[datetime] = None
    ) -> BackfillState:
        """Выполнить синхронизацию; ошибки фиксируются в статусе, наружу не выбрасываются"""
        attempts = 0

        @retry_on_exception(
            retries=self.max_attempts,
            delay=self.retry_delay,
            exceptions=(aiohttp.ClientError, asyncio.TimeoutError, RetryableRizeError)
        )
        async def fetch() -> RizeUser:
            nonlocal attempts
            attempts += 1
            return await self.fetch_profile(rize_user_id, user_id)

        try:
            profile = await fetch()
            await self.controller.import_step_data(user_id, profile.to_onboarding_data())
            state = BackfillState(
                status=BackfillStatus.DONE,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
                attempts=attempts,
            )
            logger.info(f"✅ {user_id}: профиль Rize синхронизирован за {attempts} попыт.")
        except Exception as e:
            logger.error(f"❌ {user_id}: синхронизация Rize не удалась: {e}")
            state = BackfillState(
                status=BackfillStatus.FAILED,
                started_at=started_at,
                error=str(e) or "Backfill failed",
                attempts=attempts,
            )

        try:
            await self._save_state(user_id, rize_user_id, state)
        except Exception as e:
            logger.error(f"❌ {user_id}: не удалось сохранить статус синхронизации: {e}")
        return state

    # ===== RIZE ADMIN API =====

    async def fetch_profile(self, rize_user_id: str, letraz_id: str) -> RizeUser:
        url = f"{self.api_url}/users/{quote(rize_user_id, safe='')}"
        async with self._get_session().get(url, params={"letrazId": letraz_id}) as response:
            if response.status >= 400:
                text = await response.text()
                error_cls = RetryableRizeError if response.status >= 500 or response.status == 429 else RizeAPIError
                raise error_cls(response.status, text[:200])
            payload: Dict[str, Any] = await response.json()
        return RizeUser.model_validate(payload)


def create_backfill_service(settings, store: MetadataStore, controller: OnboardingController) -> BackfillService:
    return BackfillService(
        store,
        controller,
        api_url=settings.RIZE_ADMIN_API_URL,
        api_key=settings.RIZE_ADMIN_API_KEY,
        max_attempts=settings.RIZE_MAX_ATTEMPTS,
        retry_delay=settings.RIZE_RETRY_DELAY,
        timeout=settings.RIZE_TIMEOUT,
    )
