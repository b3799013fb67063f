"""
surface.py - The single rendering surface shared by a run.

Decode, render and encode steps block, so they run in a worker thread.
The surface lets only one of them run at a time.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, TypeVar

from .errors import ResourceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RenderingSurface:
    """Single-slot resource acquired around each raster step."""

    def __init__(self):
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False
        self.steps = 0

    @property
    def busy(self) -> bool:
        return self._lock is not None and self._lock.locked()

    def _loop_lock(self) -> asyncio.Lock:
        # asyncio.Lock binds to one loop; each asyncio.run gets a fresh one
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Refuse further steps. A step already holding the surface finishes."""
        self._closed = True
        logger.debug(f"Rendering surface closed after {self.steps} step(s)")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator["RenderingSurface"]:
        """
        Hold the surface for the duration of the block.

        Raises:
            ResourceUnavailable: the surface has been closed
        """
        async with self._loop_lock():
            if self._closed:
                raise ResourceUnavailable("Rendering surface is unavailable")
            yield self

    async def run(self, func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        """Hold the surface while func runs in a worker thread."""
        async with self.acquire():
            self.steps += 1
            return await asyncio.to_thread(func, *args, **kwargs)
