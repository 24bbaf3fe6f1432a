"""Per-shopper StoreEngine registry for the service."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shopfront_lite.store.engine import StoreEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[str, "str | None"], Awaitable["StoreEngine"]]


class SessionRegistry:
    """Maps a session id to its started engine.

    A session that signs in (or switches identity) gets a fresh engine so the
    saved cart for the new identity is restored.
    """

    def __init__(self, factory: EngineFactory) -> None:
        self._factory = factory
        self._engines: dict[str, StoreEngine] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._engines)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._engines

    async def get(self, session_id: str, user_id: str | None = None) -> StoreEngine:
        async with self._lock:
            engine = self._engines.get(session_id)
            if engine is not None and engine.user_id == user_id:
                return engine
            if engine is not None:
                logger.info("Session %s changed identity, rebuilding store", session_id)
                await engine.close()
            engine = await self._factory(session_id, user_id)
            self._engines[session_id] = engine
            return engine

    async def close(self, session_id: str) -> bool:
        async with self._lock:
            engine = self._engines.pop(session_id, None)
        if engine is None:
            return False
        await engine.close()
        return True

    async def close_all(self) -> None:
        async with self._lock:
            engines = list(self._engines.values())
            self._engines.clear()
        for engine in engines:
            await engine.close()
