"""
CLI Module

Architectural Intent:
- Command-line interface for henix
- Entry point for all user interactions
- Loads configuration once, configures logging, then delegates to the
  application use cases via the composition root
- Supports --verbose/--debug flags for log level control
"""

import argparse
import asyncio
import logging
import os
import sys
import traceback
from pathlib import Path
from typing import Optional, Sequence
from henix.composition_root import create_container
from henix.domain.errors import (
    ConfigResolutionError,
    TargetValidationError,
    describe_error,
)
from henix.domain.value_objects.deployment_options import DeploymentOptions
from henix.infrastructure.config import load_config
from henix.infrastructure.logging import configure_logging, parse_level


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="henix", description="henix: A Nix flake deployment tool"
    )
    parser.add_argument(
        "--config", help="Path to henix settings file (default: ./henix.json)"
    )
    parser.add_argument(
        "--cfg-dir",
        default=os.environ.get("HENIX_CFG_DIR"),
        help="Path to the directory containing the configuration "
        "(default: $HENIX_CFG_DIR, then the current directory)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit logs as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    deploy_parser = subparsers.add_parser("deploy", help="Deploy nodes")
    deploy_parser.add_argument(
        "--boot",
        action="store_true",
        help="Make the rebuild only apply at next boot, "
        "equivalent to `nixos-rebuild boot`",
    )
    deploy_parser.add_argument(
        "--target",
        "-t",
        dest="targets",
        action="append",
        metavar="NAME",
        help="Deploy only to this node (repeatable). "
        "Naming a node that does not exist is an error",
    )
    deploy_parser.add_argument(
        "--show-trace",
        action="store_true",
        help="Pass `--show-trace` to `nixos-rebuild`",
    )
    return parser


async def async_main(argv: Optional[Sequence[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    # Configure logging based on flags, then settings
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = parse_level(config.log_level)
    configure_logging(level=level, json_format=args.json_logs or config.log_json)

    verbose = args.verbose or args.debug

    if args.command == "deploy":
        container = create_container(config)
        cfg_dir = Path(args.cfg_dir or config.deploy.cfg_dir or os.getcwd())
        options = DeploymentOptions.create(
            boot_only=args.boot,
            show_trace=args.show_trace,
            targets=args.targets,
        )

        try:
            nodes = await container.deploy_config.resolve(cfg_dir)
            report = await container.deploy_fleet.execute(nodes, cfg_dir, options)
        except ConfigResolutionError as e:
            print(f"[-] Could not get deploy configuration: {describe_error(e)}")
            if verbose:
                traceback.print_exc()
            sys.exit(1)
        except TargetValidationError as e:
            print(f"[-] {e}")
            sys.exit(1)

        for result in report.results:
            marker = "[+]" if result.succeeded else "[-]"
            print(f"{marker} {result.node}: {result.outcome.value}")
        if report.failed:
            print(f"[-] {len(report.failed)} of {len(report.results)} node(s) failed, see the log above.")
        return

    parser.print_help()


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
