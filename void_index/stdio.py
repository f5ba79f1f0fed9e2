"""Line-delimited JSON-RPC over stdin/stdout.

One request per line in, one response per line out. Requests are handled
concurrently; stdout carries nothing but responses.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Callable

from .rpc import INVALID_REQUEST, RpcDispatcher, error_response

logger = logging.getLogger(__name__)

# indexChunks batches can be large; asyncio's default line limit is 64 KiB
MAX_MESSAGE_BYTES = 64 * 1024 * 1024


async def serve_stream(
    dispatcher: RpcDispatcher,
    reader: asyncio.StreamReader,
    write: Callable[[str], None],
) -> None:
    """Serve requests from ``reader`` until EOF, then wait for in-flight ones."""
    pending: set[asyncio.Task] = set()

    async def handle(line: bytes) -> None:
        response = await dispatcher.handle_raw(line)
        if response is not None:
            write(json.dumps(response))

    while True:
        try:
            line = await reader.readline()
        except (ValueError, asyncio.LimitOverrunError) as exc:
            # readline() has already discarded the oversized line
            logger.warning("Dropping request larger than the reader limit: %s", exc)
            write(json.dumps(error_response(None, INVALID_REQUEST, "Request too large")))
            continue
        if not line:
            break
        if not line.strip():
            continue
        task = asyncio.create_task(handle(line))
        pending.add(task)
        task.add_done_callback(pending.discard)

    if pending:
        logger.info("stdin closed; waiting for %s in-flight requests", len(pending))
        await asyncio.gather(*pending)


async def serve_stdio(dispatcher: RpcDispatcher) -> None:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=MAX_MESSAGE_BYTES)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    def write(payload: str) -> None:
        sys.stdout.write(payload + "\n")
        sys.stdout.flush()

    logger.info("Serving JSON-RPC on stdio")
    await serve_stream(dispatcher, reader, write)
    logger.info("stdio transport closed")
