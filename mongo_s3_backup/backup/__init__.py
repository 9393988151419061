"""
Backup module for mongo-s3-backup.

This module handles the core backup functionality including:
- Archive naming and lookup
- External tools (mongodump, mongorestore, tar)
- Workspace handling
- S3 storage
- Backup/restore orchestration
- Retention policy enforcement
"""

from .executor import BackupExecutor, RestoreExecutor, backup_all, restore_all
from .archives import generate_archive_name, find_latest_archive, ArchiveNotFoundError
from .storage import S3Storage, StorageError
from .tools import ToolError, ToolNotFoundError
from .workspace import Workspace, WorkspaceError
from .retention import RetentionManager

__all__ = [
    'BackupExecutor',
    'RestoreExecutor',
    'backup_all',
    'restore_all',
    'generate_archive_name',
    'find_latest_archive',
    'ArchiveNotFoundError',
    'S3Storage',
    'StorageError',
    'ToolError',
    'ToolNotFoundError',
    'Workspace',
    'WorkspaceError',
    'RetentionManager'
]
