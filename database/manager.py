# database/manager.py

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from core.exceptions import UnauthorizedError
from database.metadata_store import MetadataStore
from utils.validators import is_valid_user_id

DATA_DIR = Path("data")


def _user_file(data_dir: Path, user_id: str) -> Path:
    if not is_valid_user_id(user_id):
        raise UnauthorizedError(f"Invalid user id: {user_id!r}")
    return data_dir / f"user_{user_id}.json"


def load_user_data(data_dir: Path, user_id: str) -> Optional[Dict[str, Any]]:
    path = _user_file(data_dir, user_id)
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_user_data(data_dir: Path, user_id: str, data: Dict[str, Any]) -> None:
    """Атомарная запись: временный файл в той же директории + os.replace"""
    data_dir.mkdir(exist_ok=True, parents=True)
    path = _user_file(data_dir, user_id)
    fd, tmp_path = tempfile.mkstemp(dir=data_dir, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def iter_user_files(data_dir: Path) -> Iterator[Path]:
    return iter(sorted(data_dir.glob("user_*.json")))


class JsonFileMetadataStore(MetadataStore):
    """Один JSON-файл на пользователя: {"public": {...}, "private": {...}}"""

    backend_name = "json"

    def __init__(self, data_dir: Path = DATA_DIR):
        self.data_dir = Path(data_dir)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, user_id: str) -> asyncio.Lock:
        return self._locks.setdefault(user_id, asyncio.Lock())

    async def initialize(self) -> None:
        self.data_dir.mkdir(exist_ok=True, parents=True)

    async def _load(self, user_id: str, scope: str) -> Optional[Dict[str, Any]]:
        data = await asyncio.to_thread(load_user_data, self.data_dir, user_id)
        if data is None:
            return None
        return data.get(scope)

    async def _save(self, user_id: str, scope: str, raw: Dict[str, Any]) -> None:
        def update():
            data = load_user_data(self.data_dir, user_id) or {}
            data[scope] = raw
            save_user_data(self.data_dir, user_id, data)

        # Обе области лежат в одном файле: чтение-изменение-запись под замком пользователя
        async with self._lock(user_id):
            await asyncio.to_thread(update)

    async def users_count(self) -> Optional[int]:
        return sum(1 for _ in iter_user_files(self.data_dir))
