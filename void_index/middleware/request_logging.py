# Copyright (c) 2025 Dave Tofflemire, SigilDERG Project
# Licensed under the GNU Affero General Public License v3.0 (AGPLv3).
# Commercial licenses are available. Contact: davetmire85@gmail.com

from __future__ import annotations

import logging
import time
import uuid

logger = logging.getLogger("void_index.http")


def client_ip_from_scope(scope) -> str | None:
    client = scope.get("client")
    if client and isinstance(client, (tuple, list)) and len(client) >= 1:
        return client[0]
    return None


class RequestLoggingASGIMiddleware:
    """
    ASGI middleware that logs each HTTP request with its status code and duration.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        request_id = uuid.uuid4().hex
        path = scope.get("path", "")
        method = scope.get("method", "UNKNOWN")

        logger.debug(
            "Incoming HTTP request",
            extra={
                "request_id": request_id,
                "method": method,
                "path": path,
                "client_ip": client_ip_from_scope(scope),
            },
        )

        status_code_holder = {"value": None}

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                status_code_holder["value"] = message.get("status", None)
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.exception(
                "Error handling HTTP request",
                extra={
                    "request_id": request_id,
                    "duration_ms": duration_ms,
                    "path": path,
                    "method": method,
                },
            )
            raise

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "%s %s -> %s (%sms)",
            method,
            path,
            status_code_holder["value"],
            duration_ms,
            extra={
                "request_id": request_id,
                "status_code": status_code_holder["value"],
                "duration_ms": duration_ms,
            },
        )
