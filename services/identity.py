#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Identity Provider
Клиент Clerk Backend API и разрешение сессий в user_id

Версия: 1.0.0
Дата: 2026-10-19
"""

import asyncio
import base64
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from core.exceptions import PersistenceError, UnauthorizedError

logger = logging.getLogger(__name__)

DEFAULT_CLERK_API_URL = "https://api.clerk.com/v1"


class ClerkClient:
    """Тонкая обертка над Clerk Backend API"""

    def __init__(
        self,
        secret_key: str,
        api_url: str = DEFAULT_CLERK_API_URL,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.secret_key}"}
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        try:
            async with self._get_session().request(method, url, json=payload) as response:
                if response.status == 404:
                    raise UnauthorizedError(f"Identity provider has no record for {path}")
                if response.status >= 400:
                    text = await response.text()
                    raise PersistenceError(f"Identity provider {method} {path} failed: {response.status} {text[:200]}")
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"⚠️ Clerk API недоступен ({method} {path}): {e}")
            raise PersistenceError(f"Identity provider unavailable: {e}") from e

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/users/{user_id}")

    async def update_user(
        self,
        user_id: str,
        public_metadata: Optional[Dict[str, Any]] = None,
        private_metadata: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """PATCH /users/{id}; переданные metadata заменяют сохраненные целиком"""
        payload: Dict[str, Any] = {}
        if public_metadata is not None:
            payload["public_metadata"] = public_metadata
        if private_metadata is not None:
            payload["private_metadata"] = private_metadata
        return await self._request("PATCH", f"/users/{user_id}", payload)

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/sessions/{session_id}")


# ===== РАЗРЕШЕНИЕ СЕССИЙ =====

class SessionResolver:
    """Превращает токен запроса в user_id"""

    async def resolve(self, token: Optional[str]) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class StaticSessionResolver(SessionResolver):
    """Фиксированная таблица токен -> user_id (локальная разработка)"""

    def __init__(self, sessions: Optional[Dict[str, str]] = None):
        self.sessions = dict(sessions or {})

    async def resolve(self, token: Optional[str]) -> str:
        if not token or token not in self.sessions:
            raise UnauthorizedError("Invalid or missing session")
        return self.sessions[token]


def extract_session_id(token: str) -> str:
    """
    Достать идентификатор сессии из токена.

    Принимает либо сам id сессии (sess_...), либо JWT сессии Clerk, из
    которого берется claim "sid". Подпись JWT здесь не проверяется:
    активность сессии подтверждает Backend API.
    """
    if token.count(".") != 2:
        return token
    try:
        payload = token.split(".")[1]
        payload += "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (ValueError, UnicodeDecodeError) as e:
        raise UnauthorizedError("Malformed session token") from e
    sid = claims.get("sid") if isinstance(claims, dict) else None
    if not sid:
        raise UnauthorizedError("Session token has no sid claim")
    return sid


class ClerkSessionResolver(SessionResolver):
    def __init__(self, client: ClerkClient):
        self.client = client

    async def resolve(self, token: Optional[str]) -> str:
        if not token:
            raise UnauthorizedError("Invalid or missing session")
        session = await self.client.get_session(extract_session_id(token))
        if session.get("status") != "active" or not session.get("user_id"):
            raise UnauthorizedError("Session is not active")
        return session["user_id"]

    async def close(self) -> None:
        await self.client.close()
