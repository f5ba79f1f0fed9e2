# Copyright (c) 2025 Dave Tofflemire, SigilDERG Project
# Licensed under the GNU Affero General Public License v3.0 (AGPLv3).
# Commercial licenses are available. Contact: davetmire85@gmail.com

"""
Configuration loader for the void index daemon.

Loads configuration from a JSON file with fallback to environment variables.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"
DEFAULT_EMBED_TIMEOUT = 60.0
DEFAULT_DB_SUBDIR = ".void/index.lance"
DEFAULT_TABLE_NAME = "code_chunks"
DEFAULT_CONCURRENCY = 10
SUPPORTED_METRICS = ("l2", "cosine", "dot")


def _parse_bool(raw_value: Optional[str], default: bool) -> bool:
    """Parse a boolean-ish environment variable value."""
    if raw_value is None or not raw_value.strip():
        return default
    return raw_value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Configuration manager for the index daemon."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to a JSON config file. If None, searches in:
                1. ./void_index.json (current directory)
                2. ~/.void_index/config.json
                3. Falls back to environment variables
        """
        self.config_data: Dict[str, Any] = {}
        self._load_config(config_path)
        self._validate_concurrency()
        self._validate_metric()

    def _load_config(self, config_path: Optional[Path] = None):
        """Load configuration from file or environment."""
        if config_path:
            if config_path.exists():
                self._load_from_file(config_path)
                return
            else:
                logger.info(
                    f"Config path {config_path} does not exist, "
                    "using environment variables"
                )
                self._load_from_env()
                return

        local_config = Path("void_index.json")
        if local_config.exists():
            self._load_from_file(local_config)
            return

        user_config = Path.home() / ".void_index" / "config.json"
        if user_config.exists():
            self._load_from_file(user_config)
            return

        logger.info("No config file found, using environment variables")
        self._load_from_env()

    def _validate_concurrency(self) -> None:
        """Validate the configured fan-out cap and fall back to the default."""
        value = self.get("index.concurrency")
        if value is None:
            self.config_data.setdefault("index", {}).setdefault(
                "concurrency", DEFAULT_CONCURRENCY
            )
            return

        try:
            concurrency = int(value)
        except (TypeError, ValueError):
            concurrency = 0

        if concurrency < 1:
            logger.warning(
                "Invalid index.concurrency '%s', defaulting to %s",
                value,
                DEFAULT_CONCURRENCY,
            )
            concurrency = DEFAULT_CONCURRENCY

        self.config_data.setdefault("index", {})["concurrency"] = concurrency

    def _validate_metric(self) -> None:
        value = self.get("index.metric", "l2")
        metric = str(value).lower()
        if metric not in SUPPORTED_METRICS:
            logger.warning("Unknown index.metric '%s', defaulting to l2", value)
            metric = "l2"
        self.config_data.setdefault("index", {})["metric"] = metric

    def _load_from_file(self, path: Path):
        """Load configuration from JSON file."""
        try:
            with open(path, 'r') as f:
                self.config_data = json.load(f)
            logger.info(f"Loaded configuration from {path}")
        except Exception as e:
            logger.error(f"Error loading config from {path}: {e}")
            self._load_from_env()

    def _load_from_env(self):
        """Load configuration from environment variables."""
        self.config_data = {
            "server": {
                "transport": os.getenv("VOID_INDEX_TRANSPORT", "stdio"),
                "host": os.getenv("VOID_INDEX_HOST", "127.0.0.1"),
                "port": int(os.getenv("VOID_INDEX_PORT", "8766")),
                "log_level": os.getenv("VOID_INDEX_LOG_LEVEL", "INFO"),
                "log_file": os.getenv("VOID_INDEX_LOG_FILE") or None,
            },
            "embeddings": {
                "url": os.getenv("VOID_INDEX_OLLAMA_URL", DEFAULT_OLLAMA_URL),
                "model": os.getenv("VOID_INDEX_OLLAMA_MODEL", DEFAULT_OLLAMA_MODEL),
                "timeout": float(
                    os.getenv("VOID_INDEX_EMBED_TIMEOUT", str(DEFAULT_EMBED_TIMEOUT))
                ),
            },
            "index": {
                "dir": os.getenv("VOID_INDEX_DB_SUBDIR", DEFAULT_DB_SUBDIR),
                "table": os.getenv("VOID_INDEX_TABLE", DEFAULT_TABLE_NAME),
                "concurrency": os.getenv(
                    "VOID_INDEX_CONCURRENCY", str(DEFAULT_CONCURRENCY)
                ),
                "metric": os.getenv("VOID_INDEX_METRIC", "l2"),
                "serialize_paths": _parse_bool(
                    os.getenv("VOID_INDEX_SERIALIZE_PATHS"), True
                ),
            },
        }

    # Getters for easy access
    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key."""
        keys = key.split(".")
        value = self.config_data
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default

    @property
    def transport(self) -> str:
        return self.get("server.transport", "stdio")

    @property
    def server_host(self) -> str:
        return self.get("server.host", "127.0.0.1")

    @property
    def server_port(self) -> int:
        return int(self.get("server.port", 8766))

    @property
    def log_level(self) -> str:
        return self.get("server.log_level", "INFO")

    @property
    def log_file(self) -> Optional[str]:
        """Get log file path from environment or config."""
        env_log_file = os.getenv("VOID_INDEX_LOG_FILE")
        if env_log_file:
            return env_log_file
        return self.get("server.log_file") or None

    @property
    def ollama_url(self) -> str:
        """Base URL of the embedding provider."""
        return self.get("embeddings.url", DEFAULT_OLLAMA_URL)

    @property
    def ollama_model(self) -> str:
        """Embedding model name sent with every request."""
        return self.get("embeddings.model", DEFAULT_OLLAMA_MODEL)

    @property
    def embed_timeout(self) -> float:
        """Per-request timeout for embedding calls, in seconds."""
        value = self.get("embeddings.timeout", DEFAULT_EMBED_TIMEOUT)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(
                "Invalid embeddings.timeout '%s', defaulting to %s",
                value,
                DEFAULT_EMBED_TIMEOUT,
            )
            return DEFAULT_EMBED_TIMEOUT

    @property
    def db_subdir(self) -> str:
        """Storage directory relative to the workspace root."""
        return self.get("index.dir", DEFAULT_DB_SUBDIR)

    @property
    def table_name(self) -> str:
        return self.get("index.table", DEFAULT_TABLE_NAME)

    @property
    def concurrency(self) -> int:
        """Maximum embed+insert tasks in flight for one indexChunks call."""
        return int(self.get("index.concurrency", DEFAULT_CONCURRENCY))

    @property
    def metric(self) -> str:
        return self.get("index.metric", "l2")

    @property
    def serialize_paths(self) -> bool:
        """Whether reindexing the same path is serialized by an advisory lock."""
        value = self.get("index.serialize_paths", True)
        if isinstance(value, str):
            return _parse_bool(value, True)
        return bool(value)

    def default_db_path(self, workspace_path: Path) -> Path:
        return workspace_path / self.db_subdir


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def load_config(config_path: Optional[Path] = None):
    """Load configuration from specified path."""
    global _config
    _config = Config(config_path)
    return _config
