from __future__ import annotations

from staff.clock import Clock, utc_iso, utc_now
from staff.errors import AlreadyExists
from staff.errors import InvalidInput
from staff.errors import NotFound
from staff.models import TagRecord
from staff.records_store import delete_tag_sync
from staff.records_store import fetch_tag_sync
from staff.records_store import insert_tag_sync
from staff.records_store import list_tags_sync


TAG_NAME_MAX_CHARS = 64
TAG_CONTENT_MAX_CHARS = 2000


def normalize_tag_name(name: str | None) -> str:
    clean = " ".join((name or "").strip().lower().split())
    if not clean:
        raise InvalidInput("Tag name is required.")
    if len(clean) > TAG_NAME_MAX_CHARS:
        raise InvalidInput(f"Tag names are limited to {TAG_NAME_MAX_CHARS} characters.")
    return clean


class TagRegistry:
    def __init__(self, *, storage, clock: Clock | None = None) -> None:
        self.storage = storage
        self.clock = clock or utc_now

    async def create(self, *, guild_id: int, name: str, content: str, actor_id: int) -> TagRecord:
        key = normalize_tag_name(name)
        body = (content or "").strip()
        if not body:
            raise InvalidInput("Tag content is required.")
        if len(body) > TAG_CONTENT_MAX_CHARS:
            raise InvalidInput(f"Tag content is limited to {TAG_CONTENT_MAX_CHARS} characters.")
        existing = await self.storage.run(fetch_tag_sync, guild_id=guild_id, name=key)
        if existing is not None:
            raise AlreadyExists(f"A tag named `{key}` already exists.")
        return await self.storage.run(
            insert_tag_sync,
            guild_id=guild_id,
            name=key,
            content=body,
            created_by=actor_id,
            created_at_utc=utc_iso(self.clock()),
        )

    async def delete(self, *, guild_id: int, name: str) -> None:
        key = normalize_tag_name(name)
        if not await self.storage.run(delete_tag_sync, guild_id=guild_id, name=key):
            raise NotFound(f"Tag `{key}` not found.")

    async def resolve(self, *, guild_id: int, name: str) -> str:
        key = normalize_tag_name(name)
        tag = await self.storage.run(fetch_tag_sync, guild_id=guild_id, name=key)
        if tag is None:
            raise NotFound(f"Tag `{key}` not found.")
        return tag.content

    async def list(self, guild_id: int) -> list[TagRecord]:
        return await self.storage.run(list_tags_sync, guild_id=guild_id)
