# database/factory.py

import logging
from typing import Optional

from database.manager import JsonFileMetadataStore
from database.metadata_store import InMemoryMetadataStore, MetadataStore
from services.identity import ClerkClient

logger = logging.getLogger(__name__)


def create_metadata_store(settings, clerk_client: Optional[ClerkClient] = None) -> MetadataStore:
    """Хранилище метаданных по METADATA_BACKEND"""
    backend = settings.METADATA_BACKEND

    if backend == "memory":
        store: MetadataStore = InMemoryMetadataStore()
    elif backend == "json":
        store = JsonFileMetadataStore(settings.DATA_DIR)
    elif backend == "sql":
        # Импорт здесь: SQLAlchemy нужен только этому бэкенду
        from database.sql_store import SqlMetadataStore

        store = SqlMetadataStore(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            echo=settings.DEBUG and settings.LOG_LEVEL == "DEBUG",
        )
    elif backend == "clerk":
        from database.clerk_store import ClerkMetadataStore

        if clerk_client is None:
            clerk_client = ClerkClient(
                settings.CLERK_SECRET_KEY,
                api_url=settings.CLERK_API_URL,
                timeout=settings.IDENTITY_TIMEOUT,
            )
        store = ClerkMetadataStore(clerk_client)
    else:
        raise ValueError(f"Unknown metadata backend: {backend}")

    logger.info(f"🗄️ Хранилище метаданных: {store.backend_name}")
    return store
