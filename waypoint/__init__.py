"""
Versioned database migrations.

This package provides:
- MigrationVersion: Ordered dotted-numeric versions
- ResolvedMigration / AppliedMigration: Migration units and ledger rows
- MetadataLedger: The schema_version table
- SqlMigrationExecutor / ShellMigrationExecutor / PythonMigrationExecutor
- FilesystemResolver / StaticResolver: Sources of migration units
- MigrationInfoService: Reconciliation of sources against the ledger
- DbValidate / DbMigrate / DbInfo / DbBaseline: Commands
- CallbackHost: Lifecycle hooks around commands
- Waypoint: High-level runner built from a WaypointConfig
"""

from .callbacks import Callback, CallbackHost, FunctionCallback
from .commands import DbBaseline, DbInfo, DbMigrate, DbValidate, format_info_table
from .config import WaypointConfig, configure_logger, load_config
from .errors import (
    ExecutionError,
    HookError,
    ResolutionError,
    ValidationError,
    WaypointError,
)
from .executors import (
    MigrationExecutor,
    ProcessResult,
    PythonMigrationExecutor,
    ShellMigrationExecutor,
    SqlMigrationExecutor,
    run_process,
)
from .info import MigrationInfo, MigrationInfoService, MigrationState
from .ledger import MetadataLedger
from .migration import AppliedMigration, MigrationType, ResolvedMigration
from .resolver import (
    FilesystemResolver,
    MigrationResolver,
    StaticResolver,
    compute_checksum,
)
from .transaction import enable_transactional_ddl, transactional
from .version import EMPTY, LATEST, MigrationVersion
from .waypoint import Waypoint

__version__ = '0.1.0'

__all__ = [
    'AppliedMigration',
    'Callback',
    'CallbackHost',
    'DbBaseline',
    'DbInfo',
    'DbMigrate',
    'DbValidate',
    'EMPTY',
    'ExecutionError',
    'FilesystemResolver',
    'FunctionCallback',
    'HookError',
    'LATEST',
    'MetadataLedger',
    'MigrationExecutor',
    'MigrationInfo',
    'MigrationInfoService',
    'MigrationResolver',
    'MigrationState',
    'MigrationType',
    'MigrationVersion',
    'ProcessResult',
    'PythonMigrationExecutor',
    'ResolutionError',
    'ResolvedMigration',
    'ShellMigrationExecutor',
    'SqlMigrationExecutor',
    'StaticResolver',
    'ValidationError',
    'Waypoint',
    'WaypointConfig',
    'WaypointError',
    'compute_checksum',
    'configure_logger',
    'enable_transactional_ddl',
    'format_info_table',
    'load_config',
    'run_process',
    'transactional',
]
