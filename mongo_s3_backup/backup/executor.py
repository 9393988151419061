"""
Backup and restore executors - orchestrate the pipelines for one database.

Backup workflow:
1. Prepare workspace (remove stale dump directory and archive)
2. mongodump into the workspace
3. Compress the dump directory into the archive
4. Upload the archive to S3
5. Cleanup workspace (always)

Restore workflow:
1. Find the latest archive in S3 (nothing touches the filesystem before this)
2. Prepare workspace
3. Download the archive
4. Decompress it
5. mongorestore from the extracted dump
6. Cleanup workspace (always)
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from mongo_s3_backup.config import Config
from mongo_s3_backup.models import BackupConfig, SourceDescriptor
from .archives import generate_archive_name, find_latest_archive
from .compression import compress_directory, decompress_archive
from .retention import RetentionManager
from .sources import mongo_dump, mongo_restore
from .storage import S3Storage
from .workspace import Workspace


logger = logging.getLogger(__name__)


class PipelineExecutor:
    """Shared state and logging of a single pipeline run."""

    operation = 'pipeline'

    def __init__(self, source: SourceDescriptor, storage: S3Storage, temp_root: Optional[str] = None):
        """
        Args:
            source: Database to operate on
            storage: Store holding the archives
            temp_root: Workspace root (default: Config.TEMP_DIR)
        """
        self.source = source
        self.storage = storage
        self.temp_root = temp_root or Config.TEMP_DIR
        self.archive_name = None
        self.workspace = None
        self.logs = []

    def execute(self) -> str:
        """
        Run the pipeline.

        Returns:
            Name of the archive written or restored

        Raises:
            The error of the failing step, after the workspace was cleaned up
        """
        self._log(f"Starting {self.operation} of {self.source.db}")

        try:
            self._execute_workflow()
        except Exception as e:
            self._log(f"{self.operation.capitalize()} of {self.source.db} failed: {e}", 'error')
            raise

        self._log(f"Successfully completed {self.operation} of {self.source.db}")
        return self.archive_name

    def _execute_workflow(self):
        raise NotImplementedError

    def _open_workspace(self) -> Workspace:
        self.workspace = Workspace(self.temp_root, self.source.db, self.archive_name, log=self._log)
        return self.workspace

    def _log(self, message: str, level: str = 'info'):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
            level: 'info', 'warn' or 'error'
        """
        timestamp = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        self.logs.append(f"[{timestamp}] [{level}] {message}")
        getattr(logger, 'warning' if level == 'warn' else level)(message)


class BackupExecutor(PipelineExecutor):
    """Dump, compress and upload one database."""

    operation = 'backup'

    def _execute_workflow(self):
        self.archive_name = generate_archive_name(self.source.db)

        with self._open_workspace() as workspace:
            # Step 1: Dump
            mongo_dump(self.source, workspace.temp_root, log=self._log)

            # Step 2: Compress
            compress_directory(workspace.temp_root, self.source.db, self.archive_name, log=self._log)

            # Step 3: Upload
            self._log(f"Attempting to upload {self.archive_name} to the {self.storage.bucket_name} s3 bucket")
            s3_key = self.storage.upload(workspace.archive_path, self.archive_name)
            self._log(f"Uploaded to S3: {s3_key}")


class RestoreExecutor(PipelineExecutor):
    """Download the newest archive of one database and restore it."""

    operation = 'restore'

    def _execute_workflow(self):
        # Step 1: Find archive; raises before any workspace exists
        self.archive_name = find_latest_archive(self.storage, self.source.db)
        self._log(f"Successfully read last archive name {self.archive_name}")

        with self._open_workspace() as workspace:
            # Step 2: Download
            self._log(f"Attempting to download {self.archive_name} from the {self.storage.bucket_name} s3 bucket")
            self.storage.download(self.archive_name, workspace.archive_path)
            self._log("Successfully downloaded from s3")

            # Step 3: Decompress
            decompress_archive(workspace.temp_root, self.source.db, workspace.archive_file, log=self._log)

            # Step 4: Restore
            mongo_restore(self.source, workspace.dump_dir, log=self._log)


def backup_all(config: BackupConfig, temp_root: Optional[str] = None) -> List[str]:
    """
    Back up every configured database in order, pruning old archives after each.

    Stops at the first failure.

    Returns:
        Archive names written, in source order

    Raises:
        The first pipeline or retention error
    """
    storage = S3Storage.from_descriptor(config.store)
    archives = []

    for source in config.sources:
        archives.append(BackupExecutor(source, storage, temp_root).execute())

        if config.num_of_archives > 0:
            RetentionManager(storage).clean(source.db, config.num_of_archives)

    return archives


def restore_all(config: BackupConfig, temp_root: Optional[str] = None) -> List[str]:
    """
    Restore every configured database from its newest archive, in order.

    Raises:
        The first pipeline error (ArchiveNotFoundError when a database has no archive)
    """
    storage = S3Storage.from_descriptor(config.store)
    return [RestoreExecutor(source, storage, temp_root).execute() for source in config.sources]
