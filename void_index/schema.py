from dataclasses import dataclass
from functools import lru_cache

from lancedb.pydantic import LanceModel, Vector
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for RPC payloads: camelCase on the wire, snake_case accepted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CodeChunk(WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    path: str
    content: str
    start_line: int = Field(ge=0)
    end_line: int = Field(ge=0)
    chunk_type: str  # function, class, method, etc.


class InitializeParams(WireModel):
    workspace_path: str
    ollama_url: str | None = None
    ollama_model: str | None = None
    db_path: str | None = None


class IndexChunksParams(WireModel):
    path: str
    chunks: list[CodeChunk]


class SearchParams(WireModel):
    query: str
    limit: int | None = None


class DeletePathParams(WireModel):
    path: str


class StatsParams(WireModel):
    path: str | None = None


class ChunkFailure(WireModel):
    index: int
    start_line: int
    end_line: int
    error: str


class IndexResult(WireModel):
    indexed: int
    failed: list[ChunkFailure] = Field(default_factory=list)


class SearchResponse(WireModel):
    chunks: list[CodeChunk]
    scores: list[float]


@dataclass
class SearchResult:
    """A stored chunk returned by nearest-neighbour search.

    ``score`` is the engine's distance for the row; smaller is closer.
    """

    path: str
    content: str
    start_line: int
    end_line: int
    chunk_type: str
    score: float

    def to_chunk(self) -> CodeChunk:
        return CodeChunk(
            path=self.path,
            content=self.content,
            start_line=self.start_line,
            end_line=self.end_line,
            chunk_type=self.chunk_type,
        )


@lru_cache(maxsize=None)
def get_code_chunk_model(dimension: int) -> type[LanceModel]:
    """Return the LanceDB record model for vectors of ``dimension`` floats."""

    class IndexedRecord(LanceModel):
        id: str
        path: str
        content: str
        start_line: int
        end_line: int
        chunk_type: str
        vector: Vector(dimension)  # type: ignore[valid-type]

    return IndexedRecord
