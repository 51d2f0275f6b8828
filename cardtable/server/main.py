"""
Command-line entry point: ``cardtable-server``.
"""

import argparse
import asyncio
import logging

from cardtable.config import ServiceConfig
from cardtable.log import configure_logging
from cardtable.server.websocket import WebSocketServer
from cardtable.service import GameService

logger = logging.getLogger("cardtable.server")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Multiplayer card game server")
    parser.add_argument("--host", help="Host to bind to (default: CARDTABLE_HOST or localhost)")
    parser.add_argument("--port", type=int, help="Port to bind to (default: CARDTABLE_PORT or 8765)")
    parser.add_argument("--log-level", help="Logging level (default: CARDTABLE_LOG_LEVEL or INFO)")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    config = ServiceConfig.from_env()
    configure_logging(args.log_level or config.log_level)
    logger.info(f"Starting with configuration {config.to_dict()}")

    server = WebSocketServer(GameService(config), host=args.host, port=args.port)
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
