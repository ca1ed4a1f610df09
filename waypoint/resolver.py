"""
Migration resolvers.

A resolver supplies the full set of available migration units. This
module provides:
- MigrationResolver: the interface the commands depend on
- StaticResolver: a fixed, in-memory list of units
- FilesystemResolver: discovery of migration files in directories
- compute_checksum: CRC32 checksum of script content

Migration files follow the naming convention V<version>__<description>.<ext>
Example: V1__create_quotes.sql, V1_2__add_rating.sh, V2__backfill.py

Supported extensions:
    .sql  SQL script executed in-session
    .sh   (or any executable without a known extension) run as a child process
    .py   Python module defining migrate(session)
"""

import importlib.util
import logging
import re
import zlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Union

from .errors import ResolutionError
from .executors import (
    PythonMigrationExecutor,
    ShellMigrationExecutor,
    SqlMigrationExecutor,
)
from .migration import MigrationType, ResolvedMigration
from .version import MigrationVersion

logger = logging.getLogger(__name__)


def compute_checksum(content: str) -> int:
    """
    Compute the CRC32 checksum of migration content as a signed 32-bit int.

    Line endings are normalized and a leading BOM is ignored so the same
    script checks out identically on every platform.

    Example:
        >>> compute_checksum("CREATE TABLE a (id INT);\\n") == \\
        ...     compute_checksum("CREATE TABLE a (id INT);\\r\\n")
        True
    """
    if content.startswith('\ufeff'):
        content = content[1:]
    normalized = '\n'.join(content.splitlines())
    crc = zlib.crc32(normalized.encode('utf-8'))
    # Fit a signed INTEGER column on every backend
    return crc - (1 << 32) if crc >= (1 << 31) else crc


class MigrationResolver(ABC):
    """Supplies the available migration units."""

    @abstractmethod
    def resolve_migrations(self) -> List[ResolvedMigration]:
        """
        Resolve all available migrations, sorted by version ascending.

        Raises:
            ResolutionError: If sources are malformed or conflicting
        """


class StaticResolver(MigrationResolver):
    """
    Resolver over a fixed list of migration units.

    Duplicate versions are returned as given so reconciliation can
    report the conflict.
    """

    def __init__(self, migrations: Iterable[ResolvedMigration] = ()):
        self.migrations = list(migrations)

    def resolve_migrations(self) -> List[ResolvedMigration]:
        return sorted(self.migrations)


class FilesystemResolver(MigrationResolver):
    """
    Discovers migration files in one or more directories.

    Responsibilities:
    - Scan locations for files matching V<version>__<description>.<ext>
    - Compute checksums for drift detection
    - Attach the matching executor to each unit

    Does NOT execute migrations (see waypoint.executors).

    Example:
        >>> resolver = FilesystemResolver(['db/migrations'])
        >>> resolver.resolve_migrations()
        [<ResolvedMigration(v1, create quotes)>, <ResolvedMigration(v1.1, add rating)>]
    """

    # Migration filename pattern: V<version>__<description>[.<ext>]
    # Examples: V1__init.sql, V1_2__add_index.sql, V3__load_data.sh
    MIGRATION_PATTERN = re.compile(
        r'^V(?P<version>\d+(?:[._]\d+)*)__(?P<description>[^.]+)(?P<ext>\.\w+)?$'
    )

    SHELL_EXTENSIONS = ('.sh', '.bash', '')

    def __init__(self, locations: Iterable[Union[str, Path]], encoding: str = 'utf-8'):
        """
        Args:
            locations: Directories containing migration files, scanned
                recursively
            encoding: Encoding of script files
        """
        self.locations = [Path(location) for location in locations]
        self.encoding = encoding

    def resolve_migrations(self) -> List[ResolvedMigration]:
        """
        Discover all migrations across every location.

        Returns:
            Units sorted by version ascending

        Raises:
            ResolutionError: If two files declare the same version or a
                file cannot be turned into a migration
        """
        found: Dict[MigrationVersion, ResolvedMigration] = {}

        for location in self.locations:
            if not location.is_dir():
                logger.warning(f"Migration location not found: {location}")
                continue

            for file_path in sorted(location.rglob('V*')):
                if not file_path.is_file() or '__pycache__' in file_path.parts:
                    continue

                match = self.MIGRATION_PATTERN.match(file_path.name)
                if not match:
                    logger.warning(
                        f"Skipping invalid migration filename: {file_path.name}"
                    )
                    continue

                migration = self._build_migration(file_path, match)
                if migration is None:
                    continue

                if migration.version in found:
                    raise ResolutionError(
                        f"Found more than one migration with version "
                        f"{migration.version} "
                        f"(offenders: {found[migration.version].script}, "
                        f"{migration.script})"
                    )
                found[migration.version] = migration
                logger.debug(f"Resolved migration: {migration}")

        return sorted(found.values())

    def _build_migration(self, file_path: Path, match):
        version = MigrationVersion(match.group('version'))
        description = match.group('description').replace('_', ' ')
        ext = (match.group('ext') or '').lower()

        if ext == '.sql':
            return ResolvedMigration(
                version=version,
                description=description,
                checksum=compute_checksum(self._read(file_path)),
                type=MigrationType.SQL,
                script=file_path.name,
                executor=SqlMigrationExecutor(path=file_path, encoding=self.encoding),
            )

        if ext == '.py':
            return ResolvedMigration(
                version=version,
                description=description,
                checksum=compute_checksum(self._read(file_path)),
                type=MigrationType.PYTHON,
                script=file_path.name,
                executor=PythonMigrationExecutor(self._load_callable(file_path)),
            )

        if ext in self.SHELL_EXTENSIONS:
            return ResolvedMigration(
                version=version,
                description=description,
                checksum=compute_checksum(self._read(file_path)),
                type=MigrationType.SHELL,
                script=file_path.name,
                executor=ShellMigrationExecutor(file_path),
            )

        logger.warning(f"Skipping unsupported migration type: {file_path.name}")
        return None

    def _read(self, file_path: Path) -> str:
        try:
            return file_path.read_text(encoding=self.encoding, errors='replace')
        except OSError as e:
            raise ResolutionError(
                f"Unable to read migration {file_path}: {e}"
            ) from e

    @staticmethod
    def _load_callable(file_path: Path):
        """Import a Python migration module and return its migrate() function."""
        module_name = f"waypoint_migration_{file_path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, file_path)
        if spec is None or spec.loader is None:
            raise ResolutionError(f"Unable to load Python migration {file_path}")

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise ResolutionError(
                f"Failed to import Python migration {file_path.name}: {e}"
            ) from e

        func = getattr(module, 'migrate', None)
        if not callable(func):
            raise ResolutionError(
                f"Python migration {file_path.name} does not define migrate(session)"
            )
        return func
