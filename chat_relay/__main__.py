"""Command line entry point: ``python -m chat_relay``."""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import load_settings
from .errors import ConfigError
from .logger import configure_logging
from .server import run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chat-relay", description="Real-time chat relay server")
    parser.add_argument("--host", help="Bind address (default: all interfaces)")
    parser.add_argument("--port", type=int, help="Listen port for websockets and HTTP (env PORT, default 5000)")
    parser.add_argument("--messages-file", type=Path, help="JSON file holding the message history")
    parser.add_argument("--log-level", help="Logging level (env LOG_LEVEL, default INFO)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"chat-relay: {exc}", file=sys.stderr)
        return 2
    overrides = {
        "host": args.host,
        "port": args.port,
        "messages_file": args.messages_file,
        "log_level": args.log_level.upper() if args.log_level else None,
    }
    settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    configure_logging(settings.log_level)
    logging.getLogger(__name__).debug("Settings: %s", settings)
    run(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
