import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

import uvicorn

from .config import get_config, load_config
from .context import ContextCell
from .http_api import create_app
from .indexer import IndexService
from .logging_setup import setup_logging
from .rpc import build_dispatcher
from .stdio import serve_stdio

logger = logging.getLogger("void_index_main")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="void-index-daemon",
        description="Semantic code index daemon (LanceDB + Ollama embeddings)",
    )
    parser.add_argument("--config", type=Path, help="Path to a JSON config file")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        help="RPC transport (default from config: stdio)",
    )
    parser.add_argument("--host", help="Bind address for the http transport")
    parser.add_argument("--port", type=int, help="Port for the http transport")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG or INFO")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config) if args.config else get_config()

    setup_logging(args.log_level or cfg.log_level, cfg.log_file)

    cell = ContextCell()
    service = IndexService(cell, cfg)
    dispatcher = build_dispatcher(service)

    transport = args.transport or cfg.transport
    if transport == "http":
        host = args.host or cfg.server_host
        port = args.port or cfg.server_port
        logger.info("Starting index daemon HTTP transport on %s:%s", host, port)
        uvicorn.run(
            create_app(dispatcher, cell),
            host=host,
            port=port,
            log_level=(args.log_level or cfg.log_level).lower(),
        )
        return 0

    if transport != "stdio":
        logger.error("Unknown transport %r", transport)
        return 2

    try:
        asyncio.run(serve_stdio(dispatcher))
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
