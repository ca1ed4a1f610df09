#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Configuration loading and logger setup for waypoint."""
import importlib
import json
import logging
import os
import pathlib
import urllib.parse
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml

from .version import LATEST, MigrationVersion

DEFAULT_LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'

# Environment variable overriding the configured database URL
URL_ENV_VAR = 'WAYPOINT_URL'


def configure_logger(logger,
                     log_file=None,
                     log_format=DEFAULT_LOG_FORMAT,
                     log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance
    """
    # Create file handler if path string, otherwise stream handler
    if isinstance(log_file, str):
        handler = logging.FileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'
        )
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    formatter = logging.Formatter(log_format)

    # Get logger by name if string provided
    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


def normalize_url(url: str) -> str:
    """Convert bare file paths and ':memory:' to SQLite URLs.

    Example:
        >>> normalize_url(':memory:')
        'sqlite://'
        >>> normalize_url('postgresql+psycopg://user@host/db')
        'postgresql+psycopg://user@host/db'
    """
    if '://' in url:
        return url
    if url == ':memory:':
        return 'sqlite://'

    # Convert file path to URL (works for relative and absolute paths)
    path_obj = pathlib.Path(url)
    if not path_obj.is_absolute():
        path_obj = path_obj.resolve()
    encoded_path = urllib.parse.quote(path_obj.as_posix(), safe='/:')
    return f'sqlite:///{encoded_path}'


@dataclass
class WaypointConfig:
    """
    Settings for a waypoint run.

    Attributes:
        url: SQLAlchemy database URL (or SQLite file path)
        locations: Directories scanned for migration files
        target: Highest version to migrate to ('latest' for no ceiling)
        out_of_order: Allow applying migrations older than the highest applied one
        pending_or_future: Tolerate applied migrations that are not resolvable
        baseline_version: Version recorded by the baseline command
        baseline_description: Description recorded by the baseline command
        installed_by: Name recorded in the ledger (defaults to the OS user)
        callbacks: 'module:attribute' import paths of lifecycle callbacks
        log_level: Logging level name
    """
    url: str = 'sqlite:///waypoint.db'
    locations: List[str] = field(default_factory=lambda: ['db/migrations'])
    target: str = 'latest'
    out_of_order: bool = False
    pending_or_future: bool = False
    baseline_version: str = '1'
    baseline_description: str = '<< Baseline >>'
    installed_by: Optional[str] = None
    callbacks: List[str] = field(default_factory=list)
    log_level: str = 'info'

    def __post_init__(self):
        self.url = normalize_url(self.url)
        if isinstance(self.locations, str):
            self.locations = [self.locations]
        # Fail fast on malformed versions
        MigrationVersion.parse(self.target)
        MigrationVersion.parse(self.baseline_version)
        if not hasattr(logging, str(self.log_level).upper()):
            raise ValueError(f"Unknown log level: {self.log_level}")

    @property
    def target_version(self) -> MigrationVersion:
        return MigrationVersion.parse(self.target) if self.target else LATEST

    @property
    def level(self) -> int:
        return getattr(logging, self.log_level.upper())

    @property
    def user(self) -> str:
        if self.installed_by:
            return self.installed_by
        return os.environ.get('USER') or os.environ.get('USERNAME') or 'waypoint'

    @classmethod
    def from_dict(cls, conf: Dict[str, Any]) -> 'WaypointConfig':
        """
        Build a config from a dictionary.

        Raises:
            ValueError: If the dictionary contains unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(conf) - known)
        if unknown:
            raise ValueError(f"Unknown configuration key(s): {', '.join(unknown)}")
        return cls(**conf)

    def load_callbacks(self) -> list:
        """Import and instantiate the configured callbacks, in order.

        Classes are instantiated without arguments; any other attribute
        (an instance, a module) is used as is.

        Raises:
            ValueError: If an entry is not of the form 'module:attribute'
            ImportError: If the module cannot be imported
            AttributeError: If the attribute does not exist
        """
        hooks = []
        for entry in self.callbacks:
            module_name, sep, attr = entry.partition(':')
            if not sep or not module_name or not attr:
                raise ValueError(
                    f"Callback must be 'module:attribute', got '{entry}'"
                )
            obj = getattr(importlib.import_module(module_name), attr)
            hooks.append(obj() if isinstance(obj, type) else obj)
        return hooks


def load_config(config_file: str) -> WaypointConfig:
    """Load configuration from a JSON or YAML file

    The format is chosen by extension (.yaml/.yml, otherwise JSON).
    The WAYPOINT_URL environment variable overrides the configured url.

    Args:
        config_file: Path to the configuration file

    Returns:
        WaypointConfig instance

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is malformed or has unknown keys
    """
    if config_file.endswith(('.yaml', '.yml')):
        with open(config_file, 'r', encoding='utf-8') as fp:
            try:
                conf = yaml.safe_load(fp) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
    else:
        with open(config_file, 'r', encoding='utf-8') as fp:
            conf = json.load(fp)

    if not isinstance(conf, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_file}")

    if os.environ.get(URL_ENV_VAR):
        conf['url'] = os.environ[URL_ENV_VAR]

    # Relative locations are resolved against the config file directory
    base_dir = pathlib.Path(config_file).resolve().parent
    locations = conf.get('locations')
    if isinstance(locations, str):
        locations = [locations]
    if locations is not None:
        conf['locations'] = [
            str(path if pathlib.Path(path).is_absolute() else base_dir / path)
            for path in locations
        ]

    return WaypointConfig.from_dict(conf)
