"""Process-lifetime read-through cache for static lookup data."""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReadThroughCache(Generic[T]):
    """Loads a value on first access and keeps it for the life of the process.

    Concurrent first readers share one load. A failed load is not cached.
    """

    def __init__(self, name: str, loader: Callable[[], Awaitable[T]]):
        self.name = name
        self._loader = loader
        self._value: Optional[T] = None
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def get(self) -> T:
        if self._loaded:
            return self._value  # type: ignore[return-value]
        async with self._lock:
            if not self._loaded:
                logger.info("Loading %s", self.name)
                self._value = await self._loader()
                self._loaded = True
        return self._value  # type: ignore[return-value]
