#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Metadata Store
Адаптер хранилища пользовательских метаданных

Единственный источник истины для прогресса онбординга. Конкретные
бэкенды реализуют только _load/_save сырых словарей; слияние,
валидация и перевод ошибок общие для всех.

Версия: 1.0.0
Дата: 2026-10-19
"""

import copy
import logging
from typing import Any, Dict, Optional, Tuple

from core.exceptions import OnboardingError, PersistenceError, UnauthorizedError
from models.onboarding import OnboardingMetadata

logger = logging.getLogger(__name__)

PUBLIC_SCOPE = "public"
PRIVATE_SCOPE = "private"


class MetadataStore:
    """Базовое хранилище метаданных (public/private) по user_id"""

    backend_name = "abstract"

    async def initialize(self) -> None:
        """Подготовка бэкенда (создание таблиц, директорий)"""

    async def close(self) -> None:
        """Освобождение ресурсов"""

    # ===== PUBLIC API =====

    async def read(self, user_id: Optional[str]) -> OnboardingMetadata:
        """Прочитать запись онбординга; отсутствие записи = шаг welcome"""
        raw = await self._safe_load(user_id, PUBLIC_SCOPE)
        return OnboardingMetadata.from_raw(raw)

    async def write(self, user_id: Optional[str], update: Dict[str, Any]) -> OnboardingMetadata:
        """Поверхностно слить update с текущей записью и сохранить"""
        current = await self._safe_load(user_id, PUBLIC_SCOPE) or {}
        merged = {**current, **OnboardingMetadata.alias_update(update)}

        # Валидируем до записи, чтобы не сохранить битую запись
        metadata = OnboardingMetadata.from_raw(merged)
        await self._safe_save(user_id, PUBLIC_SCOPE, metadata.to_raw())
        return metadata

    async def read_private(self, user_id: Optional[str]) -> Dict[str, Any]:
        return await self._safe_load(user_id, PRIVATE_SCOPE) or {}

    async def write_private(self, user_id: Optional[str], update: Dict[str, Any]) -> Dict[str, Any]:
        current = await self._safe_load(user_id, PRIVATE_SCOPE) or {}
        merged = {**current, **update}
        await self._safe_save(user_id, PRIVATE_SCOPE, merged)
        return merged

    # ===== BACKEND HOOKS =====

    async def users_count(self) -> Optional[int]:
        """Количество пользователей, если бэкенд умеет считать"""
        return None

    async def _load(self, user_id: str, scope: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def _save(self, user_id: str, scope: str, raw: Dict[str, Any]) -> None:
        raise NotImplementedError

    # ===== HELPERS =====

    @staticmethod
    def _require_user(user_id: Optional[str]) -> str:
        if not user_id:
            raise UnauthorizedError("User not authenticated")
        return user_id

    async def _safe_load(self, user_id: Optional[str], scope: str) -> Optional[Dict[str, Any]]:
        user_id = self._require_user(user_id)
        try:
            return await self._load(user_id, scope)
        except OnboardingError:
            raise
        except Exception as e:
            logger.error(f"❌ Ошибка чтения метаданных {scope} для {user_id}: {e}")
            raise PersistenceError(f"Failed to read {scope} metadata: {e}") from e

    async def _safe_save(self, user_id: Optional[str], scope: str, raw: Dict[str, Any]) -> None:
        user_id = self._require_user(user_id)
        try:
            await self._save(user_id, scope, raw)
        except OnboardingError:
            raise
        except Exception as e:
            logger.error(f"❌ Ошибка записи метаданных {scope} для {user_id}: {e}")
            raise PersistenceError(f"Failed to write {scope} metadata: {e}") from e


class InMemoryMetadataStore(MetadataStore):
    """Хранилище в памяти процесса (разработка и тесты)"""

    backend_name = "memory"

    def __init__(self):
        self._records: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def _load(self, user_id: str, scope: str) -> Optional[Dict[str, Any]]:
        record = self._records.get((scope, user_id))
        return copy.deepcopy(record) if record is not None else None

    async def _save(self, user_id: str, scope: str, raw: Dict[str, Any]) -> None:
        self._records[(scope, user_id)] = copy.deepcopy(raw)

    async def users_count(self) -> Optional[int]:
        return len({user_id for _, user_id in self._records})
