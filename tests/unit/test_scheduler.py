"""
Unit tests for scheduler (mongo_s3_backup/scheduler.py).

Tests APScheduler configuration, triggers and the run lock.
"""

import threading
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from mongo_s3_backup import scheduler as scheduler_module
from mongo_s3_backup.config import ConfigError
from mongo_s3_backup.backup.tools import ToolError
from mongo_s3_backup.models import CronSettings


class TestSchedulerInitialization:
    """Test scheduler initialization."""

    def teardown_method(self):
        """Reset global scheduler."""
        scheduler_module.scheduler = None
        scheduler_module.backup_config = None

    @patch('mongo_s3_backup.scheduler.BackgroundScheduler')
    def test_init_scheduler(self, mock_scheduler_class, backup_config):
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler

        result = scheduler_module.init_scheduler(backup_config)

        assert result == mock_scheduler
        assert scheduler_module.scheduler == mock_scheduler
        assert scheduler_module.backup_config == backup_config

        call_kwargs = mock_scheduler_class.call_args[1]
        assert call_kwargs['timezone'] == 'UTC'
        assert call_kwargs['job_defaults']['max_instances'] == 1
        assert call_kwargs['job_defaults']['coalesce'] is True

        job_kwargs = mock_scheduler.add_job.call_args[1]
        assert job_kwargs['id'] == scheduler_module.BACKUP_JOB_ID
        assert isinstance(job_kwargs['trigger'], CronTrigger)

    @patch('mongo_s3_backup.scheduler.BackgroundScheduler')
    def test_init_scheduler_with_cron_override(self, mock_scheduler_class, backup_config):
        backup_config.cron = CronSettings(time='02:30', timezone='Europe/Amsterdam')

        scheduler_module.init_scheduler(backup_config)

        assert mock_scheduler_class.call_args[1]['timezone'] == 'Europe/Amsterdam'
        trigger = mock_scheduler_class.return_value.add_job.call_args[1]['trigger']
        fields = {field.name: str(field) for field in trigger.fields}
        assert fields['hour'] == '2'
        assert fields['minute'] == '30'

    @patch('mongo_s3_backup.scheduler.BackgroundScheduler')
    def test_init_scheduler_only_once(self, mock_scheduler_class, backup_config):
        result1 = scheduler_module.init_scheduler(backup_config)
        result2 = scheduler_module.init_scheduler(backup_config)

        assert result1 == result2
        mock_scheduler_class.assert_called_once()

    @patch('mongo_s3_backup.scheduler.BackgroundScheduler')
    def test_init_scheduler_invalid_crontab(self, mock_scheduler_class, backup_config):
        backup_config.cron = CronSettings(crontab='not a crontab')

        with pytest.raises(ConfigError, match="Invalid crontab"):
            scheduler_module.init_scheduler(backup_config)

        assert scheduler_module.scheduler is None
        mock_scheduler_class.assert_not_called()


class TestSchedulerLifecycle:
    """Test scheduler start/stop operations."""

    def setup_method(self):
        self.mock_scheduler = MagicMock()
        self.mock_scheduler.running = False
        self.mock_scheduler.get_jobs.return_value = []
        scheduler_module.scheduler = self.mock_scheduler

    def teardown_method(self):
        scheduler_module.scheduler = None
        scheduler_module.backup_config = None

    def test_start_scheduler(self):
        scheduler_module.start_scheduler()

        self.mock_scheduler.start.assert_called_once()

    def test_start_scheduler_not_initialized(self):
        scheduler_module.scheduler = None

        with pytest.raises(RuntimeError, match="not initialized"):
            scheduler_module.start_scheduler()

    def test_start_scheduler_already_running(self):
        self.mock_scheduler.running = True

        scheduler_module.start_scheduler()

        self.mock_scheduler.start.assert_not_called()

    def test_stop_scheduler(self):
        self.mock_scheduler.running = True

        scheduler_module.stop_scheduler()

        self.mock_scheduler.shutdown.assert_called_once()

    def test_stop_scheduler_not_running(self):
        scheduler_module.stop_scheduler()

        self.mock_scheduler.shutdown.assert_not_called()

    def test_reset_scheduler(self):
        self.mock_scheduler.running = True
        scheduler_module.backup_config = MagicMock()

        scheduler_module.reset_scheduler()

        self.mock_scheduler.shutdown.assert_called_once()
        assert scheduler_module.scheduler is None
        assert scheduler_module.backup_config is None

    def test_trigger_backup_now(self):
        scheduler_module.trigger_backup_now()

        job_kwargs = self.mock_scheduler.add_job.call_args[1]
        assert job_kwargs['func'] == scheduler_module._execute_backup_wrapper
        assert isinstance(job_kwargs['trigger'], DateTrigger)
        assert job_kwargs['id'].startswith('manual_')

    def test_trigger_backup_now_twice_uses_distinct_ids(self):
        scheduler_module.trigger_backup_now()
        scheduler_module.trigger_backup_now()

        ids = [c[1]['id'] for c in self.mock_scheduler.add_job.call_args_list]
        assert len(set(ids)) == 2

    def test_trigger_backup_now_not_initialized(self):
        scheduler_module.scheduler = None

        with pytest.raises(RuntimeError, match="not initialized"):
            scheduler_module.trigger_backup_now()


class TestRunExclusive:
    """Test the process-wide run lock."""

    def test_runs_function(self):
        assert scheduler_module.run_exclusive(lambda a, b=0: a + b, 1, b=2) == 3

    def test_releases_lock_after_error(self):
        def boom():
            raise ToolError('mongodump', 1)

        with pytest.raises(ToolError):
            scheduler_module.run_exclusive(boom)

        assert scheduler_module.run_exclusive(lambda: 'free') == 'free'

    def test_fails_fast_when_busy(self):
        started = threading.Event()
        release = threading.Event()

        def long_run():
            started.set()
            release.wait(5)

        worker = threading.Thread(target=scheduler_module.run_exclusive, args=(long_run,))
        worker.start()
        try:
            assert started.wait(5)
            with pytest.raises(scheduler_module.RunInProgressError):
                scheduler_module.run_exclusive(lambda: None, wait=False)
        finally:
            release.set()
            worker.join(5)


class TestExecuteBackupWrapper:
    """Test the scheduled job body."""

    def teardown_method(self):
        scheduler_module.backup_config = None

    @patch('mongo_s3_backup.scheduler.backup_all')
    def test_runs_backup_of_configured_databases(self, mock_backup_all, backup_config):
        scheduler_module.backup_config = backup_config
        mock_backup_all.return_value = ['orders_1.tar.gz']

        scheduler_module._execute_backup_wrapper()

        mock_backup_all.assert_called_once_with(backup_config)

    @patch('mongo_s3_backup.scheduler.backup_all')
    def test_failure_is_logged_not_raised(self, mock_backup_all, backup_config, caplog):
        scheduler_module.backup_config = backup_config
        mock_backup_all.side_effect = ToolError('mongodump', 1)

        scheduler_module._execute_backup_wrapper()

        assert 'Scheduled backup failed: mongodump exited with code 1' in caplog.text

    @patch('mongo_s3_backup.scheduler.run_exclusive')
    def test_skips_when_run_in_progress(self, mock_run_exclusive, caplog):
        mock_run_exclusive.side_effect = scheduler_module.RunInProgressError("Another backup or restore run is in progress")

        scheduler_module._execute_backup_wrapper()

        assert 'Skipping scheduled backup' in caplog.text
        assert mock_run_exclusive.call_args[1]['wait'] is False


class TestManualTriggerWithScheduler:
    """Manual triggers against a real (paused) BackgroundScheduler."""

    def teardown_method(self):
        if scheduler_module.scheduler is not None:
            scheduler_module.scheduler.shutdown(wait=False)
        scheduler_module.scheduler = None
        scheduler_module.backup_config = None

    def test_repeated_triggers_are_all_queued(self, backup_config):
        scheduler_module.init_scheduler(backup_config)
        scheduler_module.scheduler.start(paused=True)

        scheduler_module.trigger_backup_now()
        scheduler_module.trigger_backup_now()

        manual_jobs = [job for job in scheduler_module.scheduler.get_jobs() if job.id.startswith('manual_')]
        assert len(manual_jobs) == 2
