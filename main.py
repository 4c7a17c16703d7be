#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Letraz Onboarding - Entry Point
Запуск веб-сервиса онбординга и служебные команды

  python main.py serve [--host H] [--port P] [--reload]
  python main.py migrate [--data-dir DIR]
  python main.py state USER_ID

Версия: 1.0.0
Дата: 2026-10-19
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from core.onboarding import OnboardingController
from dashboard.config import get_settings
from database.factory import create_metadata_store
from database.migrations import migrate_all_users

logger = logging.getLogger(__name__)


# ===== КОМАНДЫ =====

def cmd_serve(args) -> int:
    from dashboard.app import run_dashboard

    run_dashboard(host=args.host, port=args.port, reload=args.reload or None)
    return 0


def cmd_migrate(args) -> int:
    settings = get_settings()
    data_dir = Path(args.data_dir) if args.data_dir else settings.DATA_DIR
    if not data_dir.exists():
        logger.error(f"❌ Директория данных не найдена: {data_dir}")
        return 1

    migrated = migrate_all_users(data_dir)
    print(f"Migrated {migrated} user record(s) in {data_dir}")
    return 0


async def _print_state(user_id: str) -> None:
    store = create_metadata_store(get_settings())
    await store.initialize()
    try:
        state = await OnboardingController(store).get_state(user_id)
        print(json.dumps(state.model_dump(mode="json"), ensure_ascii=False, indent=2))
    finally:
        await store.close()


def cmd_state(args) -> int:
    asyncio.run(_print_state(args.user_id))
    return 0


# ===== ГЛАВНАЯ ФУНКЦИЯ =====

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Letraz Onboarding")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Запустить веб-сервис")
    serve.add_argument("--host", default=None, help="Host для запуска")
    serve.add_argument("--port", type=int, default=None, help="Port для запуска")
    serve.add_argument("--reload", action="store_true", help="Автоперезагрузка")
    serve.set_defaults(func=cmd_serve)

    migrate = subparsers.add_parser("migrate", help="Привести JSON-записи пользователей к текущему формату")
    migrate.add_argument("--data-dir", default=None, help="Директория JSON-файлов (по умолчанию DATA_DIR)")
    migrate.set_defaults(func=cmd_migrate)

    state = subparsers.add_parser("state", help="Показать прогресс онбординга пользователя")
    state.add_argument("user_id")
    state.set_defaults(func=cmd_state)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command != "serve":
        get_settings().setup_logging()
    return args.func(args)


# ===== ТОЧКА ВХОДА =====

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("👋 Остановлено пользователем")
    except Exception as e:
        logger.error(f"💥 Фатальная ошибка: {e}")
        sys.exit(1)
