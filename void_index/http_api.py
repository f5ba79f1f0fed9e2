from __future__ import annotations

import logging

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .context import ContextCell
from .middleware.request_logging import RequestLoggingASGIMiddleware
from .rpc import RpcDispatcher

logger = logging.getLogger(__name__)


def create_app(dispatcher: RpcDispatcher, cell: ContextCell) -> Starlette:
    """Expose ``dispatcher`` at POST /rpc with liveness and readiness probes."""

    async def rpc_endpoint(request: Request) -> Response:
        body = await request.body()
        response = await dispatcher.handle_raw(body)
        if response is None:
            return Response(status_code=204)
        return JSONResponse(response)

    async def healthz(request: Request) -> Response:
        return JSONResponse({"status": "ok"})

    async def readyz(request: Request) -> Response:
        ready = cell.initialized
        return JSONResponse(
            {"initialized": ready},
            status_code=200 if ready else 503,
        )

    routes = [
        Route("/rpc", rpc_endpoint, methods=["POST"]),
        Route("/healthz", healthz, methods=["GET"]),
        Route("/readyz", readyz, methods=["GET"]),
    ]

    app = Starlette(debug=False, routes=routes)
    app.add_middleware(RequestLoggingASGIMiddleware)
    return app
