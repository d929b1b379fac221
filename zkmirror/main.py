#!/usr/bin/env python3
"""
zkmirror - Main Entry Point

Mirrors a ZooKeeper subtree into a local JSON document and keeps it
fresh until interrupted.

Usage:
    zkmirror --descriptor zkConfig.yaml                 # Standalone descriptor
    zkmirror --host-config app.yaml --section zkConfig  # Section of a host config
    zkmirror --descriptor zkConfig.json --once          # Write once and exit
    zkmirror --descriptor zkConfig.yaml --health-port 8090
"""

import argparse
import asyncio
import sys

from zkmirror.common.config import (
    DEFAULT_SECTION,
    MirrorSettings,
    load_descriptor,
    load_embedded,
    read_config_file,
)
from zkmirror.common.exceptions import ZkMirrorError
from zkmirror.common.logging_setup import get_service_logger, set_log_level
from zkmirror.services.mirror import MirrorService

logger = get_service_logger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zkmirror",
        description="Mirror a ZooKeeper subtree into a local JSON document",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--descriptor",
        help="Standalone descriptor file (YAML or JSON)",
    )
    source.add_argument(
        "--host-config",
        help="Host application config containing a zkmirror section",
    )
    parser.add_argument(
        "--section",
        default=DEFAULT_SECTION,
        help=f"Section name inside --host-config (default: {DEFAULT_SECTION})",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Write the document once and exit without watching",
    )
    parser.add_argument(
        "--health-port",
        type=int,
        default=None,
        help="Serve /health and /rebuild on 127.0.0.1:PORT",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override ZKMIRROR_LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def load_settings(args: argparse.Namespace) -> MirrorSettings:
    if args.descriptor:
        return load_descriptor(args.descriptor)
    return load_embedded(read_config_file(args.host_config), args.section)


async def run(service: MirrorService, health_port: int | None) -> None:
    try:
        await service.serve(health_port=health_port)
    finally:
        await service.shutdown()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_level:
        set_log_level(args.log_level)

    try:
        settings = load_settings(args)
        service = MirrorService(settings)

        if args.once:
            service.start(watch=False)
            service.stop()
            return 0

        asyncio.run(run(service, args.health_port))
    except ZkMirrorError as e:
        logger.error(f"Load zookeeper config failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
