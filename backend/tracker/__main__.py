from __future__ import annotations

import argparse
from typing import Any, Dict, List, Optional

import uvicorn

from .config import Settings, settings


def build_parser(config: Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="time-tracker", description=f"Run the {config.app_name} web service")
    p.add_argument("--host", default=config.host, help="Interface to bind (TRACKER_HOST)")
    p.add_argument("--port", type=int, default=config.port, help="Port to listen on (TRACKER_PORT)")
    p.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=config.environment == "development",
        help="Restart on code changes; on by default when TRACKER_ENVIRONMENT=development",
    )
    return p


def server_options(argv: Optional[List[str]] = None, config: Settings = settings) -> Dict[str, Any]:
    args = build_parser(config).parse_args(argv)
    return {
        "host": args.host,
        "port": args.port,
        "reload": args.reload,
        "log_level": config.log_level.lower(),
    }


def main(argv: Optional[List[str]] = None) -> None:
    uvicorn.run("tracker.main:app", **server_options(argv))


if __name__ == "__main__":
    main()
