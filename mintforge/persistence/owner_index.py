"""
Owner index.

Maps token ids to their current owner so listing a player's characters does
not have to read every token on the ledger. The ledger stays the source of
truth; the index is rebuilt from it with rebuild().

The index runs on an async SQLAlchemy engine (aiosqlite by default) so its
queries never block the event loop the sagas run on.
"""

import asyncio

from sqlalchemy import Column, Integer, MetaData, String, Table, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from ..collaborators.protocols import LedgerClient
from ..exceptions import NotFoundFailure
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

metadata = MetaData()

owner_tokens = Table(
    "owner_tokens",
    metadata,
    Column("token_id", Integer, primary_key=True, autoincrement=False),
    Column("owner", String(128), nullable=False, index=True),
)


def _normalize(owner: str) -> str:
    return owner.strip().lower()


class OwnerIndex:
    """SQL-backed token to owner index. The schema is created on first use."""

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL, engine: AsyncEngine | None = None) -> None:
        if engine is None:
            if database_url.startswith("sqlite") and ":memory:" in database_url:
                # One shared connection, or every checkout would see a new empty database.
                engine = create_async_engine(
                    database_url,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                engine = create_async_engine(database_url, pool_pre_ping=True)
        self.engine = engine
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()
        logger.info("OwnerIndex initialized", dialect=self.engine.dialect.name)

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if not self._schema_ready:
                async with self.engine.begin() as conn:
                    await conn.run_sync(metadata.create_all)
                self._schema_ready = True

    async def record_mint(self, token_id: int, owner: str) -> None:
        await self._ensure_schema()
        async with self.engine.begin() as conn:
            await conn.execute(delete(owner_tokens).where(owner_tokens.c.token_id == token_id))
            await conn.execute(insert(owner_tokens).values(token_id=token_id, owner=_normalize(owner)))
        logger.debug("Owner index updated", token_id=token_id)

    async def record_transfer(self, token_id: int, new_owner: str) -> None:
        await self._ensure_schema()
        async with self.engine.begin() as conn:
            result = await conn.execute(
                update(owner_tokens).where(owner_tokens.c.token_id == token_id).values(owner=_normalize(new_owner))
            )
            if result.rowcount == 0:
                await conn.execute(insert(owner_tokens).values(token_id=token_id, owner=_normalize(new_owner)))

    async def token_ids_for(self, owner: str) -> list[int]:
        """Token ids owned by an address, ascending."""
        await self._ensure_schema()
        query = (
            select(owner_tokens.c.token_id)
            .where(owner_tokens.c.owner == _normalize(owner))
            .order_by(owner_tokens.c.token_id)
        )
        async with self.engine.connect() as conn:
            result = await conn.execute(query)
            return [row.token_id for row in result]

    async def count(self) -> int:
        await self._ensure_schema()
        async with self.engine.connect() as conn:
            return (await conn.execute(select(func.count()).select_from(owner_tokens))).scalar_one()

    async def rebuild(self, ledger: LedgerClient) -> int:
        """
        Replace the index with a full scan of the ledger.

        Tokens whose owner cannot be read (NotFoundFailure) are left out;
        LedgerFailure propagates and leaves the previous index untouched.

        Returns:
            Number of tokens indexed
        """
        await self._ensure_schema()
        total = await ledger.read_total_supply()
        rows = []
        for token_id in range(1, total + 1):
            try:
                owner = await ledger.read_owner(token_id)
            except NotFoundFailure:
                logger.warning("Skipping unreadable token during index rebuild", token_id=token_id)
                continue
            rows.append({"token_id": token_id, "owner": _normalize(owner)})

        async with self.engine.begin() as conn:
            await conn.execute(delete(owner_tokens))
            if rows:
                await conn.execute(insert(owner_tokens), rows)
        logger.info("Owner index rebuilt", indexed=len(rows), total_supply=total)
        return len(rows)

    async def close(self) -> None:
        await self.engine.dispose()
