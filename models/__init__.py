#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Models Package
Модели данных и перечисления онбординга

Версия: 1.0.0
Дата: 2026-10-19
"""

from .enums import (
    OnboardingStep,
    OnboardingCompletion,
    BackfillStatus,
    AnalyticsEvent,
    MetadataBackend
)

from .onboarding import (
    CurrentStep,
    OnboardingMetadata,
    OnboardingState
)

from .backfill import (
    BackfillState,
    PrivateMetadata,
    RizeUser
)

from .analytics import TrackedEvent

__all__ = [
    # Enums
    'OnboardingStep',
    'OnboardingCompletion',
    'BackfillStatus',
    'AnalyticsEvent',
    'MetadataBackend',

    # Onboarding models
    'CurrentStep',
    'OnboardingMetadata',
    'OnboardingState',

    # Backfill models
    'BackfillState',
    'PrivateMetadata',
    'RizeUser',

    # Analytics
    'TrackedEvent'
]
