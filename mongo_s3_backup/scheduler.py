"""
APScheduler configuration for mongo-s3-backup.

Manages:
- The recurring backup job (cron expression from the config)
- Manual one-shot triggers
- A process-wide run lock so a scheduled backup never overlaps another run
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.executors.pool import ThreadPoolExecutor

from mongo_s3_backup.config import ConfigError, build_crontab, resolve_timezone
from mongo_s3_backup.backup.executor import backup_all


logger = logging.getLogger(__name__)

BACKUP_JOB_ID = 'backup_all'

# Global scheduler instance and the config it runs
scheduler = None
backup_config = None

# Serialises every pipeline run in this process
_run_lock = threading.Lock()


class RunInProgressError(Exception):
    """Raised when a run is requested without waiting while another holds the lock."""
    pass


def run_exclusive(func, *args, wait: bool = True, **kwargs):
    """
    Call func while holding the process-wide run lock.

    Args:
        func: Callable to run
        wait: Block until the lock is free; otherwise fail fast

    Raises:
        RunInProgressError: If wait is False and another run holds the lock
    """
    if not _run_lock.acquire(blocking=wait):
        raise RunInProgressError("Another backup or restore run is in progress")

    try:
        return func(*args, **kwargs)
    finally:
        _run_lock.release()


def init_scheduler(config):
    """
    Initialize APScheduler with the recurring backup job.

    Args:
        config: BackupConfig to back up on every tick

    Raises:
        ConfigError: If the cron time or timezone is invalid
    """
    global scheduler, backup_config

    if scheduler is not None:
        return scheduler

    crontab = build_crontab(config.cron)
    tz_name = resolve_timezone(config.cron)

    executors = {
        'default': ThreadPoolExecutor(max_workers=1)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one instance of a job at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    try:
        trigger = CronTrigger.from_crontab(crontab, timezone=tz_name)
    except ValueError as e:
        raise ConfigError(f"Invalid crontab {crontab!r}: {e}")

    backup_config = config

    scheduler = BackgroundScheduler(
        executors=executors,
        job_defaults=job_defaults,
        timezone=tz_name
    )

    scheduler.add_job(
        func=_execute_backup_wrapper,
        trigger=trigger,
        id=BACKUP_JOB_ID,
        name='Backup all databases',
        replace_existing=True
    )

    logger.info(f"MongoDB S3 Backup successfully scheduled ({crontab}, {tz_name})")

    return scheduler


def start_scheduler():
    """Start the APScheduler."""
    global scheduler

    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")

        for job in scheduler.get_jobs():
            next_run = job.next_run_time.isoformat() if job.next_run_time else 'N/A'
            logger.info(f"  - {job.id}: {job.name} (next run: {next_run})")
    else:
        logger.info("Scheduler already running")


def stop_scheduler():
    """Stop the APScheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")


def reset_scheduler():
    """Forget the scheduler and its config (stopping it first)."""
    global scheduler, backup_config

    stop_scheduler()
    scheduler = None
    backup_config = None


def _execute_backup_wrapper():
    """
    Run one scheduled backup of every database.

    Failures are logged and the next tick proceeds. A tick that finds another
    run in progress is skipped.
    """
    global backup_config

    try:
        logger.info("Scheduler executing backup of all databases")
        archives = run_exclusive(backup_all, backup_config, wait=False)
        logger.info(f"Scheduled backup completed ({len(archives)} archives)")
    except RunInProgressError as e:
        logger.warning(f"Skipping scheduled backup: {e}")
    except Exception as e:
        logger.error(f"Scheduled backup failed: {e}")


def trigger_backup_now():
    """
    Queue a one-time backup of every database to run immediately.

    Raises:
        RuntimeError: If the scheduler is not initialized
    """
    global scheduler

    if scheduler is None:
        raise RuntimeError("Scheduler not initialized")

    now = datetime.now(timezone.utc)
    scheduler.add_job(
        func=_execute_backup_wrapper,
        trigger=DateTrigger(run_date=now + timedelta(seconds=1)),
        id=f"manual_{int(now.timestamp())}_{uuid.uuid4().hex[:8]}",
        name='Manual backup',
        replace_existing=False
    )

    logger.info("Manually triggered backup of all databases")

