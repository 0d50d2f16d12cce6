from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.storage.models import KeyValueEntry


class KeyValueStore(Protocol):
    async def get(self, key: str, for_update: bool = False) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class SqlKeyValueStore:
    """Key-value store backed by the ``kv_entries`` table of the current session.

    ``get(key, for_update=True)`` takes a row lock that is held until the
    session's transaction ends, so a read-modify-write of one key made in a
    single transaction cannot interleave with another one.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, key: str, for_update: bool = False) -> str | None:
        stmt = select(KeyValueEntry).where(KeyValueEntry.key == key)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        entry = result.scalar_one_or_none()
        return entry.value if entry else None

    async def set(self, key: str, value: str) -> None:
        result = await self.db.execute(
            select(KeyValueEntry).where(KeyValueEntry.key == key).with_for_update()
        )
        entry = result.scalar_one_or_none()
        if entry:
            entry.value = value
        else:
            self.db.add(KeyValueEntry(key=key, value=value))
        await self.db.flush()


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str, for_update: bool = False) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value
