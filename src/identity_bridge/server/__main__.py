"""CLI entrypoint: python -m identity_bridge.server"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from identity_bridge.cache.layer import CacheConfig
from identity_bridge.correlation.config import CorrelationConfig
from identity_bridge.server.config import ServerConfig, _default_data_dir


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="identity-bridge-server",
        description="Identity Bridge Server: pseudonymous id resolution over REST",
    )
    p.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    p.add_argument("--port", type=int, default=8430, help="Bind port (default: 8430)")
    p.add_argument("--data-dir", type=Path, default=None,
                    help="Snapshot directory (default: $DATA_DIR or .)")

    # Correlation
    p.add_argument("--fuzzy-threshold", type=float, default=0.8,
                    help="Minimum name similarity for fuzzy matches (default: 0.8)")
    p.add_argument("--country-code", default=None,
                    help="Country code replacing a leading 0 in phone numbers, e.g. 62")
    p.add_argument("--group", dest="groups", action="append", default=[],
                    help="Group to backfill at startup (repeatable)")

    # Timers
    p.add_argument("--flush-interval", type=int, default=300,
                    help="Snapshot flush interval in seconds (default: 300)")
    p.add_argument("--sweep-interval", type=int, default=1800,
                    help="Pending contact sweep interval in seconds (default: 1800)")
    p.add_argument("--no-workers", action="store_true",
                    help="Disable background flush and sweep")

    # Logging
    p.add_argument("--log-level", default="INFO",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> ServerConfig:
    correlation = CorrelationConfig(
        fuzzy_threshold=args.fuzzy_threshold,
        default_country_code=args.country_code,
    )
    return ServerConfig(
        host=args.host,
        port=args.port,
        data_dir=args.data_dir or _default_data_dir(),
        correlation=correlation,
        cache=CacheConfig(),
        flush_interval=args.flush_interval,
        sweep_interval=args.sweep_interval,
        enable_workers=not args.no_workers,
        monitored_groups=list(args.groups),
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = build_config(args)

    import uvicorn

    from identity_bridge.server.rest.app import create_app

    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
