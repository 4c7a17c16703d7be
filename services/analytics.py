#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Analytics
Отправка продуктовых событий в PostHog

Аналитика никогда не блокирует и не ломает переходы онбординга:
любая ошибка отправки логируется и проглатывается.

Версия: 1.0.0
Дата: 2026-10-19
"""

import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence

import aiohttp

from models.analytics import TrackedEvent

logger = logging.getLogger(__name__)

DEFAULT_EDGES = (0, 50, 100, 250, 500, 1000)


# ===== БАКЕТЫ ДЛЯ СВОЙСТВ СОБЫТИЙ =====

def bucket(n: float, edges: Sequence[int] = DEFAULT_EDGES) -> str:
    """Грубый диапазон вместо точного значения: bucket(75) -> '50-99'"""
    n = max(n, edges[0])
    for low, high in zip(edges, edges[1:]):
        if low <= n < high:
            return f"{low}-{high - 1}"
    return f"{edges[-1]}+"


def results_bucket(n: int) -> str:
    return bucket(n, (0, 1, 3, 5, 10, 20, 50))


# ===== КЛИЕНТЫ =====

class Analytics:
    """Базовый интерфейс: track никогда не выбрасывает исключений"""

    async def track(self, name: str, distinct_id: str, properties: Optional[Dict[str, Any]] = None) -> None:
        try:
            await self._send(TrackedEvent(name, distinct_id, dict(properties or {})))
        except Exception as e:
            logger.warning(f"⚠️ Событие {name} не отправлено: {e}")

    async def _send(self, event: TrackedEvent) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class LoggingAnalytics(Analytics):
    """Аналитика отключена: события только пишутся в лог и в короткую историю"""

    def __init__(self, max_events: int = 1000):
        self.events: Deque[TrackedEvent] = deque(maxlen=max_events)

    async def _send(self, event: TrackedEvent) -> None:
        self.events.append(event)
        logger.debug(f"📈 {event.name} [{event.distinct_id}] {event.properties}")

    def names(self) -> List[str]:
        return [event.name for event in self.events]


class PostHogAnalytics(Analytics):
    """Клиент capture API PostHog"""

    def __init__(
        self,
        api_key: str,
        host: str = "https://us.i.posthog.com",
        timeout: float = 5.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.api_key = api_key
        self.capture_url = f"{host.rstrip('/')}/capture/"
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def _send(self, event: TrackedEvent) -> None:
        payload = event.to_capture_payload(self.api_key)
        async with self._get_session().post(self.capture_url, json=payload) as response:
            if response.status >= 400:
                text = await response.text()
                raise RuntimeError(f"PostHog responded {response.status}: {text[:200]}")

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()


def create_analytics(settings) -> Analytics:
    if settings.analytics_configured:
        logger.info("📈 Аналитика: PostHog")
        return PostHogAnalytics(
            settings.POSTHOG_API_KEY,
            host=settings.POSTHOG_HOST,
            timeout=settings.ANALYTICS_TIMEOUT,
        )
    logger.info("📈 Аналитика отключена, события пишутся в лог")
    return LoggingAnalytics()
