# Copyright (c) 2025 Dave Tofflemire, SigilDERG Project
# Licensed under the GNU Affero General Public License v3.0 (AGPLv3).
# Commercial licenses are available. Contact: davetmire85@gmail.com

"""
Indexing and search orchestration for the void index daemon.

Reindexing a path deletes its old records, then embeds and inserts every
chunk with a bounded number of tasks in flight. Search embeds the query and
asks the vector store for its nearest neighbours.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Optional

import httpx

from .config import Config, get_config
from .context import ContextCell, IndexingContext
from .embeddings import EmbeddingClient
from .errors import InitializationError, InvalidArgumentError
from .schema import ChunkFailure, CodeChunk, IndexResult, SearchResponse
from .storage.vector import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10


class IndexService:
    """Handlers behind the daemon's RPC methods.

    All state lives in the ``ContextCell`` handed in by the caller, so several
    services (or transports) can share one cell.
    """

    def __init__(
        self,
        cell: ContextCell,
        config: Optional[Config] = None,
        *,
        concurrency: Optional[int] = None,
        embedding_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cell = cell
        self.config = config or get_config()
        self.concurrency = (
            self.config.concurrency if concurrency is None else concurrency
        )
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        self._embedding_transport = embedding_transport

    def _resolve_db_path(self, workspace: Path, db_path: Optional[str]) -> Path:
        if not db_path:
            return self.config.default_db_path(workspace)
        path = Path(db_path).expanduser()
        if not path.is_absolute():
            path = workspace / path
        return path

    async def initialize(
        self,
        workspace_path: str,
        ollama_url: Optional[str] = None,
        ollama_model: Optional[str] = None,
        db_path: Optional[str] = None,
    ) -> dict[str, str]:
        """Build a fresh context and swap it in, replacing any previous one."""
        workspace = Path(workspace_path).expanduser()
        url = ollama_url or self.config.ollama_url
        model = ollama_model or self.config.ollama_model
        storage_path = self._resolve_db_path(workspace, db_path)

        logger.info("Initializing index daemon")
        logger.info("Workspace: %s", workspace)
        logger.info("Embedding provider: %s (model=%s)", url, model)
        logger.info("DB path: %s", storage_path)

        try:
            await asyncio.to_thread(
                storage_path.parent.mkdir, parents=True, exist_ok=True
            )
        except OSError as exc:
            raise InitializationError(
                f"Failed to create storage directory {storage_path.parent}: {exc}"
            ) from exc

        try:
            vector_store = await asyncio.to_thread(
                VectorStore, storage_path, self.config.table_name, self.config.metric
            )
        except Exception as exc:
            raise InitializationError(f"Failed to create vector store: {exc}") from exc

        try:
            embedding_client = EmbeddingClient(
                url,
                model,
                timeout=self.config.embed_timeout,
                transport=self._embedding_transport,
            )
        except Exception as exc:
            raise InitializationError(
                f"Failed to create embedding client: {exc}"
            ) from exc

        previous = await self.cell.replace(
            IndexingContext(
                workspace_path=workspace,
                vector_store=vector_store,
                embedding_client=embedding_client,
            )
        )
        if previous is not None:
            logger.info("Replaced previous indexing context for %s", previous.workspace_path)

        return {"status": "initialized"}

    async def index_chunks(self, path: str, chunks: Sequence[CodeChunk]) -> IndexResult:
        """Replace every record for ``path`` with embeddings of ``chunks``."""
        ctx = await self.cell.get()
        if self.config.serialize_paths:
            async with self.cell.path_lock(path):
                return await self._reindex(ctx, path, chunks)
        return await self._reindex(ctx, path, chunks)

    async def _reindex(
        self, ctx: IndexingContext, path: str, chunks: Sequence[CodeChunk]
    ) -> IndexResult:
        # Failures here abort the call; the path may be left empty
        await asyncio.to_thread(ctx.vector_store.delete_by_path, path)

        if not chunks:
            ctx.logger.info("Cleared %s (no chunks supplied)", path)
            return IndexResult(indexed=0)

        semaphore = asyncio.Semaphore(self.concurrency)
        store = ctx.vector_store
        client = ctx.embedding_client

        async def process(chunk: CodeChunk) -> None:
            async with semaphore:
                vector = await client.embed(chunk.content)
                await asyncio.to_thread(store.insert, path, chunk, vector)

        outcomes: list[Any] = await asyncio.gather(
            *(process(chunk) for chunk in chunks), return_exceptions=True
        )

        failed: list[ChunkFailure] = []
        for idx, (chunk, outcome) in enumerate(zip(chunks, outcomes, strict=True)):
            if outcome is None:
                continue
            if not isinstance(outcome, Exception):
                # CancelledError and friends are not per-chunk failures
                raise outcome
            ctx.logger.warning(
                "Error processing chunk %s (lines %s-%s) of %s: %s",
                idx,
                chunk.start_line,
                chunk.end_line,
                path,
                outcome,
            )
            failed.append(
                ChunkFailure(
                    index=idx,
                    start_line=chunk.start_line,
                    end_line=chunk.end_line,
                    error=str(outcome),
                )
            )

        indexed = len(chunks) - len(failed)
        if failed:
            ctx.logger.warning(
                "Indexed %s of %s chunks from %s (%s failed)",
                indexed,
                len(chunks),
                path,
                len(failed),
            )
        else:
            ctx.logger.info("Successfully indexed %s chunks from %s", indexed, path)
        return IndexResult(indexed=indexed, failed=failed)

    async def search(self, query: str, limit: Optional[int] = None) -> SearchResponse:
        ctx = await self.cell.get()
        if limit is None:
            limit = DEFAULT_SEARCH_LIMIT
        if limit <= 0:
            raise InvalidArgumentError(f"limit must be positive, got {limit}")

        query_vector = await ctx.embedding_client.embed(query)
        results = await asyncio.to_thread(ctx.vector_store.search, query_vector, limit)
        return SearchResponse(
            chunks=[r.to_chunk() for r in results],
            scores=[r.score for r in results],
        )

    async def delete_path(self, path: str) -> dict[str, int]:
        ctx = await self.cell.get()
        if self.config.serialize_paths:
            async with self.cell.path_lock(path):
                deleted = await asyncio.to_thread(ctx.vector_store.delete_by_path, path)
        else:
            deleted = await asyncio.to_thread(ctx.vector_store.delete_by_path, path)
        ctx.logger.info("Removed %s records for %s", deleted, path)
        return {"deleted": deleted}

    async def stats(self, path: Optional[str] = None) -> dict[str, Any]:
        ctx = await self.cell.get()
        store = ctx.vector_store
        records = await asyncio.to_thread(store.count, path)
        payload: dict[str, Any] = {
            "workspace": str(ctx.workspace_path),
            "dbPath": str(store.db_path),
            "table": store.table_name,
            "dimension": store.dimension,
            "records": records,
        }
        if path is not None:
            payload["path"] = path
        return payload

    async def health(self) -> dict[str, str]:
        ctx = await self.cell.get()
        await ctx.embedding_client.health_check()
        return {"provider": "ok"}
