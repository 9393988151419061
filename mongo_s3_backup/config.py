"""Config defaults and loading of the JSON backup config file."""

import os
import json
import tempfile
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mongo_s3_backup.models import SourceDescriptor, StoreDescriptor, CronSettings, BackupConfig


class ConfigError(Exception):
    """Raised when the config file is missing, malformed or incomplete."""
    pass


class Config:
    """Process-level settings read from the environment"""

    # Workspace
    TEMP_DIR = os.environ.get('TEMP_DIR') or os.path.join(tempfile.gettempdir(), 'mongodb_s3_backup')

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # External tools
    MONGODUMP_BIN = os.environ.get('MONGODUMP_BIN') or 'mongodump'
    MONGORESTORE_BIN = os.environ.get('MONGORESTORE_BIN') or 'mongorestore'
    TAR_BIN = os.environ.get('TAR_BIN') or 'tar'

    # Scheduler
    DEFAULT_CRONTAB = '0 0 * * *'
    DEFAULT_TIMEZONE = 'UTC'


def _require(section: dict, key: str, section_name: str):
    value = section.get(key)
    if value is None or value == '':
        raise ConfigError(f"Missing required '{key}' in '{section_name}' config")
    return value


def _parse_source(raw: dict) -> SourceDescriptor:
    if not isinstance(raw, dict):
        raise ConfigError("Each 'mongodb' entry must be an object")

    port = raw.get('port', 27017)
    try:
        port = int(port)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid mongodb port: {port!r}")

    return SourceDescriptor(
        host=_require(raw, 'host', 'mongodb'),
        port=port,
        db=_require(raw, 'db', 'mongodb'),
        username=raw.get('username'),
        password=raw.get('password')
    )


def _parse_store(raw: dict) -> StoreDescriptor:
    if not isinstance(raw, dict):
        raise ConfigError("'s3' config must be an object")

    return StoreDescriptor(
        key=_require(raw, 'key', 's3'),
        secret=_require(raw, 'secret', 's3'),
        bucket=_require(raw, 'bucket', 's3'),
        destination=raw.get('destination'),
        encrypt=bool(raw.get('encrypt', False)),
        region=raw.get('region'),
        endpoint=raw.get('endpoint')
    )


def parse_config(data: dict) -> BackupConfig:
    """
    Build a BackupConfig from already-decoded JSON.

    Args:
        data: Decoded config document

    Returns:
        BackupConfig instance

    Raises:
        ConfigError: If required sections or keys are missing
    """
    if not isinstance(data, dict):
        raise ConfigError("Config root must be an object")

    if 'mongodb' not in data:
        raise ConfigError("Missing required 'mongodb' section")
    if 's3' not in data:
        raise ConfigError("Missing required 's3' section")

    raw_sources = data['mongodb']
    if isinstance(raw_sources, dict):
        raw_sources = [raw_sources]
    if not raw_sources:
        raise ConfigError("'mongodb' section lists no databases")

    sources = [_parse_source(raw) for raw in raw_sources]
    store = _parse_store(data['s3'])

    num_of_archives = data.get('numOfArchives', 0)
    try:
        num_of_archives = int(num_of_archives)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid numOfArchives: {num_of_archives!r}")

    cron = None
    raw_cron = data.get('cron')
    if raw_cron:
        if not isinstance(raw_cron, dict):
            raise ConfigError("'cron' config must be an object")
        cron = CronSettings(
            crontab=raw_cron.get('crontab'),
            time=raw_cron.get('time'),
            timezone=raw_cron.get('timezone')
        )

    return BackupConfig(sources, store, num_of_archives=num_of_archives, cron=cron)


def load_config(path: str) -> BackupConfig:
    """
    Load and validate a JSON config file.

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file is not valid JSON ({path}): {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}")

    return parse_config(data)


def build_crontab(cron: Optional[CronSettings]) -> str:
    """
    Resolve the crontab expression for scheduled backups.

    An explicit crontab wins over a "HH:MM" time, which wins over the default.
    """
    if cron is None:
        return Config.DEFAULT_CRONTAB

    if cron.crontab:
        return cron.crontab

    if cron.time:
        parts = cron.time.split(':')
        try:
            hour, minute = int(parts[0]), int(parts[1])
        except (IndexError, ValueError):
            raise ConfigError(f"Invalid cron time (expected HH:MM): {cron.time!r}")
        return f"{minute} {hour} * * *"

    return Config.DEFAULT_CRONTAB


def resolve_timezone(cron: Optional[CronSettings]) -> str:
    """Return the schedule timezone name, validated against the tz database."""
    if cron is None or not cron.timezone:
        return Config.DEFAULT_TIMEZONE

    try:
        ZoneInfo(cron.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigError(f"Unknown timezone: {cron.timezone}")

    return cron.timezone
