# Copyright (c) 2025 Dave Tofflemire, SigilDERG Project
# Licensed under the GNU Affero General Public License v3.0 (AGPLv3).
# Commercial licenses are available. Contact: davetmire85@gmail.com

"""
Pytest configuration and shared fixtures for the void index daemon tests.
"""

import hashlib
import json
import shutil
import tempfile
from pathlib import Path

import httpx
import numpy as np
import pytest

from void_index.config import Config
from void_index.context import ContextCell
from void_index.indexer import IndexService
from void_index.schema import CodeChunk

TEST_DIMENSION = 8


def embed_text(text: str, dim: int = TEST_DIMENSION) -> list[float]:
    """Deterministic unit vector for ``text``."""
    from numpy.random import default_rng

    digest = hashlib.sha256(text.encode("utf-8")).digest()
    # Use int from digest to seed a local RNG; avoid global np.random state
    seed_int = int.from_bytes(digest[:8], "big", signed=False)
    rng = default_rng(seed_int)
    vec = rng.standard_normal(dim).astype("float32")
    vec = vec / (np.linalg.norm(vec) + 1e-8)
    return vec.tolist()


def make_chunk(content: str, path: str = "src/lib.rs", start: int = 1, end: int = 3,
               chunk_type: str = "function") -> CodeChunk:
    return CodeChunk(
        path=path,
        content=content,
        start_line=start,
        end_line=end,
        chunk_type=chunk_type,
    )


class FakeOllama:
    """In-process stand-in for the Ollama HTTP API, served via httpx.MockTransport."""

    def __init__(self, dim: int = TEST_DIMENSION):
        self.dim = dim
        self.requests: list[dict] = []
        self.fail_prompts: set[str] = set()
        self.tags_status = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/embeddings":
            payload = json.loads(request.content)
            self.requests.append(payload)
            if payload["prompt"] in self.fail_prompts:
                return httpx.Response(500, text="model exploded")
            return httpx.Response(
                200, json={"embedding": embed_text(payload["prompt"], self.dim)}
            )
        if request.url.path == "/api/tags":
            return httpx.Response(self.tags_status, json={"models": []})
        return httpx.Response(404, text="not found")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def workspace(temp_dir):
    """Create an empty workspace root."""
    path = temp_dir / "workspace"
    path.mkdir(parents=True, exist_ok=True)
    yield path


@pytest.fixture
def dummy_embed_fn():
    return embed_text


@pytest.fixture
def fake_ollama():
    return FakeOllama()


@pytest.fixture
def test_config_file(temp_dir):
    """Create a temporary config file for testing."""
    config_path = temp_dir / "void_index.json"
    config_data = {
        "server": {
            "transport": "stdio",
            "log_level": "DEBUG",
        },
        "embeddings": {
            "url": "http://ollama.test",
            "model": "test-embed",
            "timeout": 5,
        },
        "index": {
            "concurrency": 10,
            "serialize_paths": True,
        },
    }
    config_path.write_text(json.dumps(config_data, indent=2))
    yield config_path


@pytest.fixture
def test_config(test_config_file):
    return Config(test_config_file)


@pytest.fixture
def service(test_config, fake_ollama):
    """An IndexService whose embedding client talks to FakeOllama."""
    return IndexService(
        ContextCell(), test_config, embedding_transport=fake_ollama.transport
    )
