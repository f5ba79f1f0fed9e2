# Copyright (c) 2025 Dave Tofflemire, SigilDERG Project
# Licensed under the GNU Affero General Public License v3.0 (AGPLv3).
# Commercial licenses are available. Contact: davetmire85@gmail.com

"""Exceptions raised by the index daemon.

Every error carries the JSON-RPC error code it is reported under, so the
dispatcher can turn it into a response without a lookup table.
"""

from __future__ import annotations


class IndexDaemonError(Exception):
    """Base exception for index daemon errors."""

    code = -32000


class InitializationError(IndexDaemonError):
    """Raised when the indexing context cannot be set up."""

    code = -32001


class NotInitializedError(IndexDaemonError):
    """Raised when an operation needs a context but initialize was never called."""

    code = -32002

    def __init__(self, message: str = "Index daemon not initialized"):
        super().__init__(message)


class TransportError(IndexDaemonError):
    """Raised when the embedding provider cannot be reached or times out."""

    code = -32003


class ProviderError(IndexDaemonError):
    """Raised when the embedding provider answers with a failure."""

    code = -32004

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SchemaError(IndexDaemonError):
    """Raised when a vector does not match the table's established dimension."""

    code = -32005


class StorageError(IndexDaemonError):
    """Raised when the vector engine fails to read or write."""

    code = -32006


class InvalidArgumentError(IndexDaemonError):
    """Raised for caller-supplied values outside their valid range."""

    code = -32602
