# database/clerk_store.py

from typing import Any, Dict, Optional

from database.metadata_store import MetadataStore
from services.identity import ClerkClient


class ClerkMetadataStore(MetadataStore):
    """
    Метаданные в записи пользователя Clerk: public -> public_metadata,
    private -> private_metadata.
    """

    backend_name = "clerk"

    def __init__(self, client: ClerkClient):
        self.client = client

    async def close(self) -> None:
        await self.client.close()

    async def _load(self, user_id: str, scope: str) -> Optional[Dict[str, Any]]:
        user = await self.client.get_user(user_id)
        return user.get(f"{scope}_metadata") or {}

    async def _save(self, user_id: str, scope: str, raw: Dict[str, Any]) -> None:
        await self.client.update_user(user_id, **{f"{scope}_metadata": raw})
