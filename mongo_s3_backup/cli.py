"""Command line interface for MongoDB backups to S3."""

import argparse
import logging
import os
import signal
import sys
import threading
from typing import Optional, Sequence

from mongo_s3_backup import __version__, configure_logging
from mongo_s3_backup.config import ConfigError, load_config
from mongo_s3_backup.backup import (
    ArchiveNotFoundError,
    StorageError,
    ToolError,
    WorkspaceError,
    backup_all,
    restore_all,
)
from mongo_s3_backup import scheduler as scheduler_module


logger = logging.getLogger(__name__)

# OSError covers transport faults (BrokenPipeError, ConnectionError) raised mid-transfer
PIPELINE_ERRORS = (ToolError, StorageError, WorkspaceError, ArchiveNotFoundError, OSError)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mongo-s3-backup',
        description="Scheduled MongoDB backups to Amazon S3.",
    )
    parser.add_argument('config', help="Path to the JSON config file.")
    parser.add_argument('-n', '--now', action='store_true', help="Run a backup immediately and exit.")
    parser.add_argument('-r', '--restore', action='store_true', help="Run a restore on start.")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging.")
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    return parser


def _report_failure(action: str, error: Exception):
    if isinstance(error, ArchiveNotFoundError):
        logger.error(f"{action} failed: no archive found for database {error.source_name}")
    else:
        logger.error(f"{action} failed: {error}")


def run_now(config) -> int:
    """Back up every database once. Returns the process exit code."""
    try:
        archives = backup_all(config)
    except PIPELINE_ERRORS as e:
        _report_failure('Backup', e)
        return 1

    logger.info(f"Backup completed ({', '.join(archives)})")
    return 0


def run_scheduled(config, restore: bool = False, stop_event: Optional[threading.Event] = None) -> int:
    """
    Schedule recurring backups and block until interrupted.

    With restore, every database is restored once at startup; a failed restore
    stops the scheduler and returns 1. SIGUSR1 queues an immediate backup.
    """
    stop_event = stop_event or threading.Event()

    scheduler_module.init_scheduler(config)
    scheduler_module.start_scheduler()

    if hasattr(signal, 'SIGUSR1') and threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGUSR1, lambda signum, frame: scheduler_module.trigger_backup_now())

    try:
        if restore:
            try:
                scheduler_module.run_exclusive(restore_all, config)
            except PIPELINE_ERRORS as e:
                _report_failure('Restore', e)
                return 1
            logger.info("MongoDB S3 restore successfully completed")

        stop_event.wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down")
    finally:
        scheduler_module.reset_scheduler()

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)

    config_path = os.path.abspath(args.config)
    logger.info(f"Loading config file ({config_path})")

    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if args.now:
        return run_now(config)

    try:
        return run_scheduled(config, restore=args.restore)
    except ConfigError as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
