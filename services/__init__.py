# services/__init__.py

"""
Модуль сервисов Letraz Onboarding

Внешние интеграции: провайдер идентификации (Clerk), аналитика (PostHog)
и фоновая синхронизация профиля (Rize).
"""

from .analytics import Analytics, LoggingAnalytics, PostHogAnalytics, create_analytics
from .backfill import BackfillService, create_backfill_service
from .identity import ClerkClient, ClerkSessionResolver, SessionResolver, StaticSessionResolver

# Экспорты для удобства
__all__ = [
    'Analytics',
    'LoggingAnalytics',
    'PostHogAnalytics',
    'create_analytics',
    'BackfillService',
    'create_backfill_service',
    'ClerkClient',
    'ClerkSessionResolver',
    'SessionResolver',
    'StaticSessionResolver'
]
