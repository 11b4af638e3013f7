#!/usr/bin/env python3

import argparse
import logging
import os
from typing import Optional, Sequence

import uvicorn

LOGGER = logging.getLogger("darkmatter.launcher")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the Dark Matter Studio project server."
    )
    parser.add_argument("--host", default=os.getenv("DARKMATTER_HOST", DEFAULT_HOST))
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("DARKMATTER_PORT", DEFAULT_PORT)),
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("DARKMATTER_LOG_LEVEL", "INFO"),
        help="Root log level (DEBUG, INFO, WARNING, ...).",
    )
    parser.add_argument(
        "--no-auto-open",
        action="store_true",
        help="Do not reopen the last project on startup.",
    )
    parser.add_argument("--reload", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    os.environ["DARKMATTER_LOG_LEVEL"] = args.log_level
    if args.no_auto_open:
        os.environ["DARKMATTER_AUTO_OPEN_LAST"] = "0"
    LOGGER.info("Starting server on %s:%s", args.host, args.port)
    uvicorn.run(
        "darkmatter.server.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
