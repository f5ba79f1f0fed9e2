"""Vector store wrapper around LanceDB.

Owns the single chunk table for a workspace and provides the helpers the
indexer needs: schema-on-first-write insert, path-scoped delete, row counts
and nearest-neighbour search. Calls are blocking; async callers run them in a
worker thread.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Optional

import lancedb
import numpy as np
import pyarrow as pa

from ..config import DEFAULT_TABLE_NAME
from ..errors import InvalidArgumentError, SchemaError, StorageError
from ..schema import CodeChunk, SearchResult, get_code_chunk_model

logger = logging.getLogger(__name__)


def quote_literal(value: str) -> str:
    """Return ``value`` as a quoted string literal for a LanceDB filter."""
    return "'" + value.replace("'", "''") + "'"


def path_filter(path: str) -> str:
    return f"path = {quote_literal(path)}"


def existing_table_names(db: Any) -> set[str]:
    """Names of the tables in ``db``, following pages where the API pages."""
    if not hasattr(db, "list_tables"):
        return set(db.table_names())

    names: set[str] = set()
    page_token = None
    while True:
        response = db.list_tables(page_token=page_token)
        if not hasattr(response, "tables"):
            names.update(response)
            return names
        names.update(response.tables)
        next_token = getattr(response, "page_token", None)
        if not next_token or next_token == page_token:
            return names
        page_token = next_token


class VectorStore:
    def __init__(
        self,
        db_path: Path,
        table_name: str = DEFAULT_TABLE_NAME,
        metric: str = "l2",
    ):
        self.db_path = Path(db_path)
        self.table_name = table_name
        self.metric = metric
        self._table: Any = None
        self._dimension: Optional[int] = None
        # Serializes writes so the table is created exactly once
        self._write_lock = threading.RLock()

        try:
            self._db = lancedb.connect(str(self.db_path))
            if self.table_name in existing_table_names(self._db):
                self._table = self._db.open_table(self.table_name)
        except Exception as exc:
            raise StorageError(
                f"Failed to open LanceDB at {self.db_path}: {exc}"
            ) from exc

        if self._table is not None:
            self._dimension = self._read_dimension(self._table)
            logger.info(
                "Opened vector table %s at %s (dimension=%s)",
                self.table_name,
                self.db_path,
                self._dimension,
            )

    @property
    def dimension(self) -> Optional[int]:
        """Vector dimension of the table, or None before the first insert."""
        return self._dimension

    @staticmethod
    def _read_dimension(table: Any) -> int:
        field_type = table.schema.field("vector").type
        if not pa.types.is_fixed_size_list(field_type):
            raise SchemaError(f"Column 'vector' has unexpected type {field_type}")
        return int(field_type.list_size)

    @staticmethod
    def _as_vector(values: Sequence[float]) -> np.ndarray:
        vec = np.asarray(values, dtype="float32")
        if vec.ndim != 1 or vec.size == 0:
            raise SchemaError(f"Expected a non-empty 1-D vector, got shape {vec.shape}")
        return vec

    def insert(self, path: str, chunk: CodeChunk, vector: Sequence[float]) -> str:
        """Append one record for ``path`` and return its id.

        The table is created on the first insert with a schema sized to the
        vector; every later vector must have the same dimension.
        """
        vec = self._as_vector(vector)
        record_id = uuid.uuid4().hex
        row = {
            "id": record_id,
            "path": path,
            "content": chunk.content,
            "start_line": int(chunk.start_line),
            "end_line": int(chunk.end_line),
            "chunk_type": chunk.chunk_type,
            "vector": vec.tolist(),
        }

        with self._write_lock:
            if self._table is None:
                model = get_code_chunk_model(int(vec.size))
                try:
                    self._table = self._db.create_table(
                        self.table_name, schema=model, exist_ok=True
                    )
                except Exception as exc:
                    raise StorageError(
                        f"Failed to create table {self.table_name}: {exc}"
                    ) from exc
                self._dimension = self._read_dimension(self._table)
                logger.info(
                    "Created vector table %s at %s (dimension=%s)",
                    self.table_name,
                    self.db_path,
                    self._dimension,
                )

            if vec.size != self._dimension:
                raise SchemaError(
                    f"Vector dimension {vec.size} does not match table "
                    f"dimension {self._dimension}"
                )

            try:
                self._table.add([row])
            except Exception as exc:
                raise StorageError(f"Failed to insert chunk for {path}: {exc}") from exc

        return record_id

    def delete_by_path(self, path: str) -> int:
        """Delete every record whose path equals ``path``; return how many went."""
        with self._write_lock:
            if self._table is None:
                return 0
            where = path_filter(path)
            try:
                existing = int(self._table.count_rows(where))
                if existing:
                    self._table.delete(where)
            except Exception as exc:
                raise StorageError(f"Failed to delete rows for {path}: {exc}") from exc

        if existing:
            logger.debug("Deleted %s rows for %s", existing, path)
        return existing

    def count(self, path: Optional[str] = None) -> int:
        table = self._table
        if table is None:
            return 0
        try:
            if path is None:
                return int(table.count_rows())
            return int(table.count_rows(path_filter(path)))
        except Exception as exc:
            raise StorageError(f"Failed to count rows: {exc}") from exc

    def search(self, query_vector: Sequence[float], limit: int) -> list[SearchResult]:
        """Return up to ``limit`` records closest to ``query_vector``.

        Results are ordered by ascending distance and carry the engine's
        ``_distance`` as their score.
        """
        if limit <= 0:
            raise InvalidArgumentError(f"limit must be positive, got {limit}")

        table = self._table
        if table is None:
            return []

        vec = self._as_vector(query_vector)
        if self._dimension is not None and vec.size != self._dimension:
            raise SchemaError(
                f"Query dimension {vec.size} does not match table "
                f"dimension {self._dimension}"
            )

        try:
            rows = (
                table.search(vec)
                .distance_type(self.metric)
                .limit(limit)
                .to_list()
            )
        except Exception as exc:
            raise StorageError(f"Vector search failed: {exc}") from exc

        results = [
            SearchResult(
                path=row["path"],
                content=row["content"],
                start_line=int(row["start_line"]),
                end_line=int(row["end_line"]),
                chunk_type=row["chunk_type"],
                score=float(row["_distance"]),
            )
            for row in rows
        ]
        # Stable sort keeps the engine's order for equal distances
        results.sort(key=lambda r: r.score)
        return results
