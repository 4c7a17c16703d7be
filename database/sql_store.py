#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - SQL Metadata Store
Хранение метаданных пользователей в реляционной БД (SQLAlchemy async)

Версия: 1.0.0
Дата: 2026-10-19
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, String, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from database.metadata_store import PRIVATE_SCOPE, PUBLIC_SCOPE, MetadataStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserMetadataRecord(Base):
    """Одна строка на пользователя"""

    __tablename__ = "user_metadata"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    public_metadata: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    private_metadata: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


_SCOPE_COLUMNS = {
    PUBLIC_SCOPE: "public_metadata",
    PRIVATE_SCOPE: "private_metadata",
}


class SqlMetadataStore(MetadataStore):
    """Хранилище на SQLAlchemy async (PostgreSQL в продакшене, SQLite локально)"""

    backend_name = "sql"

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
        engine: Optional[AsyncEngine] = None
    ):
        if engine is None:
            if not database_url:
                raise ValueError("DATABASE_URL is required for the sql metadata backend")
            engine_kwargs: Dict[str, Any] = {"echo": echo}
            if not database_url.startswith("sqlite"):
                engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow)
            engine = create_async_engine(database_url, **engine_kwargs)

        self.engine = engine
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    async def initialize(self) -> None:
        logger.info("🔄 Инициализация таблицы user_metadata...")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Таблица user_metadata готова")

    async def close(self) -> None:
        await self.engine.dispose()

    async def _load(self, user_id: str, scope: str) -> Optional[Dict[str, Any]]:
        async with self.session_factory() as session:
            record = await session.get(UserMetadataRecord, user_id)
            if record is None:
                return None
            return dict(getattr(record, _SCOPE_COLUMNS[scope]) or {})

    async def _save(self, user_id: str, scope: str, raw: Dict[str, Any]) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                record = await session.get(UserMetadataRecord, user_id)
                if record is None:
                    record = UserMetadataRecord(user_id=user_id, public_metadata={}, private_metadata={})
                    session.add(record)
                # Новый объект dict, иначе JSON-колонка не заметит изменения
                setattr(record, _SCOPE_COLUMNS[scope], dict(raw))

    async def users_count(self) -> Optional[int]:
        async with self.session_factory() as session:
            result = await session.execute(select(func.count()).select_from(UserMetadataRecord))
            return int(result.scalar_one())
