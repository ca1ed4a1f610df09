#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Command line interface.

Usage:
    python -m waypoint waypoint.yaml migrate
    python -m waypoint waypoint.yaml validate
    python -m waypoint --target 2.1 waypoint.json info
    python -m waypoint waypoint.yaml baseline
"""
import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from .commands import format_info_table
from .config import configure_logger, load_config
from .errors import WaypointError
from .waypoint import Waypoint

COMMANDS = ('migrate', 'validate', 'info', 'baseline')

logger = logging.getLogger('waypoint')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='waypoint',
        description='Apply and validate versioned database migrations'
    )
    parser.add_argument('config_file', help='Path to JSON or YAML configuration')
    parser.add_argument('command', choices=COMMANDS, help='Command to run')
    parser.add_argument('--target', help="Highest version to consider ('latest' for all)")
    parser.add_argument('--out-of-order', action='store_true', default=None,
                        help='Allow applying migrations older than the highest applied one')
    parser.add_argument('--log-level', help='Override the configured log level')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config_file)
    except (OSError, ValueError) as e:
        print(f"ERROR: Unable to load configuration: {e}", file=sys.stderr)
        return 1

    if args.target is not None:
        config.target = args.target
    if args.out_of_order:
        config.out_of_order = True
    if args.log_level:
        config.log_level = args.log_level

    try:
        config.target_version
        level = config.level
    except (ValueError, AttributeError) as e:
        print(f"ERROR: Invalid option: {e}", file=sys.stderr)
        return 1

    if not logger.handlers:
        configure_logger(logger, log_level=level)
    else:
        logger.setLevel(level)

    try:
        with Waypoint(config) as waypoint:
            if args.command == 'migrate':
                waypoint.migrate()
            elif args.command == 'validate':
                error = waypoint.validate()
                if error:
                    logger.error('Validate failed. %s', error)
                    return 1
            elif args.command == 'info':
                print(format_info_table(waypoint.info().all()))
            elif args.command == 'baseline':
                waypoint.baseline()
    except WaypointError as e:
        logger.error('%s: %s', type(e).__name__, e)
        return 1
    except SQLAlchemyError as e:
        logger.error('Database error: %s', e)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
