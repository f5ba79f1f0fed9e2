"""JSON-RPC 2.0 dispatch for the daemon's methods.

The dispatcher is transport-agnostic: it takes a raw request (bytes, str or
an already-decoded object) and returns the response object, or None for
notifications. Transports decide how messages are framed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from .errors import IndexDaemonError, ProviderError
from .indexer import IndexService
from .schema import (DeletePathParams, IndexChunksParams, InitializeParams,
                     SearchParams, StatsParams, WireModel)

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

Handler = Callable[[Any], Awaitable[Any]]


class EmptyParams(WireModel):
    pass


def error_response(
    request_id: Any, code: int, message: str, data: Any = None
) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def _to_jsonable(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(by_alias=True)
    return result


class RpcDispatcher:
    def __init__(self) -> None:
        self._methods: dict[str, tuple[type[BaseModel], Handler]] = {}

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    def register(self, name: str, params_model: type[BaseModel], handler: Handler) -> None:
        """Register ``handler`` for ``name``; params are validated with ``params_model``."""
        self._methods[name] = (params_model, handler)

    async def handle_raw(self, raw: bytes | str) -> Optional[dict[str, Any]]:
        try:
            message = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning("Failed to parse request: %s", exc)
            return error_response(None, PARSE_ERROR, "Parse error")
        return await self.dispatch(message)

    async def dispatch(self, message: Any) -> Optional[dict[str, Any]]:
        if not isinstance(message, dict):
            return error_response(None, INVALID_REQUEST, "Invalid Request")

        request_id = message.get("id")
        name = message.get("method")
        if message.get("jsonrpc") != "2.0" or not isinstance(name, str):
            return error_response(request_id, INVALID_REQUEST, "Invalid Request")

        is_notification = "id" not in message
        response = await self._call(request_id, name, message.get("params"))
        return None if is_notification else response

    async def _call(self, request_id: Any, name: str, params: Any) -> dict[str, Any]:
        entry = self._methods.get(name)
        if entry is None:
            return error_response(request_id, METHOD_NOT_FOUND, f'Method "{name}" not found')
        params_model, handler = entry

        if params is None:
            params = {}
        if not isinstance(params, dict):
            return error_response(request_id, INVALID_PARAMS, "params must be an object")

        try:
            parsed = params_model.model_validate(params)
        except ValidationError as exc:
            return error_response(
                request_id,
                INVALID_PARAMS,
                "Invalid params",
                json.loads(exc.json(include_url=False)),
            )

        try:
            result = await handler(parsed)
        except IndexDaemonError as exc:
            logger.warning("%s failed: %s", name, exc)
            data = None
            if isinstance(exc, ProviderError):
                data = {"statusCode": exc.status_code, "body": exc.body}
            return error_response(request_id, exc.code, str(exc), data)
        except Exception as exc:
            logger.exception("Unhandled error in %s", name)
            return error_response(request_id, INTERNAL_ERROR, f"Internal error: {exc}")

        return {"jsonrpc": "2.0", "id": request_id, "result": _to_jsonable(result)}


def build_dispatcher(service: IndexService) -> RpcDispatcher:
    """Wire the daemon's RPC methods to ``service``."""
    dispatcher = RpcDispatcher()

    async def initialize(p: InitializeParams):
        return await service.initialize(
            p.workspace_path, p.ollama_url, p.ollama_model, p.db_path
        )

    async def index_chunks(p: IndexChunksParams):
        return await service.index_chunks(p.path, p.chunks)

    async def search(p: SearchParams):
        return await service.search(p.query, p.limit)

    async def delete_path(p: DeletePathParams):
        return await service.delete_path(p.path)

    async def stats(p: StatsParams):
        return await service.stats(p.path)

    async def health(_p: EmptyParams):
        return await service.health()

    dispatcher.register("initialize", InitializeParams, initialize)
    dispatcher.register("indexChunks", IndexChunksParams, index_chunks)
    dispatcher.register("search", SearchParams, search)
    dispatcher.register("deletePath", DeletePathParams, delete_path)
    dispatcher.register("stats", StatsParams, stats)
    dispatcher.register("health", EmptyParams, health)
    return dispatcher
