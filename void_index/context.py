"""Process-wide indexing state.

``ContextCell`` is created once at startup in the uninitialized state and
passed to every handler. ``initialize`` swaps a fresh ``IndexingContext`` into
it; readers take a reference under the lock and then work without holding it.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .embeddings import EmbeddingClient
from .errors import NotInitializedError
from .storage.vector import VectorStore


@dataclass
class IndexingContext:
    workspace_path: Path
    vector_store: VectorStore
    embedding_client: EmbeddingClient
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("void_index.indexing")
    )


class ContextCell:
    """Holds the current IndexingContext behind a single asyncio lock."""

    def __init__(self) -> None:
        self._context: Optional[IndexingContext] = None
        self._lock = asyncio.Lock()
        # Advisory per-path locks; entries disappear once no caller holds them
        self._path_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def initialized(self) -> bool:
        return self._context is not None

    async def get(self) -> IndexingContext:
        """Return the current context or raise NotInitializedError."""
        async with self._lock:
            ctx = self._context
        if ctx is None:
            raise NotInitializedError()
        return ctx

    async def replace(self, ctx: IndexingContext) -> Optional[IndexingContext]:
        """Install ``ctx`` and return the context it superseded."""
        async with self._lock:
            previous, self._context = self._context, ctx
        return previous

    @asynccontextmanager
    async def path_lock(self, path: str) -> AsyncIterator[None]:
        lock = self._path_locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._path_locks[path] = lock
        async with lock:
            yield
