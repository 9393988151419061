"""
Plain data holders describing what to back up and where to put it.

These replace database-backed job records: everything is supplied by the
JSON config file and stays unchanged for the duration of a run.
"""

from datetime import datetime
from typing import Optional, List


class SourceDescriptor:
    """One MongoDB database to back up or restore."""

    def __init__(self, host: str, port: int, db: str,
                 username: Optional[str] = None, password: Optional[str] = None):
        self.host = host
        self.port = port
        self.db = db
        self.username = username
        self.password = password

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def has_credentials(self) -> bool:
        """Credentials are only passed on when both parts are present."""
        return bool(self.username and self.password)

    def __repr__(self):
        return f'<SourceDescriptor {self.db}@{self.address}>'


class StoreDescriptor:
    """S3 bucket settings shared by every source of a config."""

    def __init__(self, key: str, secret: str, bucket: str,
                 destination: Optional[str] = None, encrypt: bool = False,
                 region: Optional[str] = None, endpoint: Optional[str] = None):
        self.key = key
        self.secret = secret
        self.bucket = bucket
        self.destination = destination
        self.encrypt = encrypt
        self.region = region
        self.endpoint = endpoint

    def __repr__(self):
        return f'<StoreDescriptor {self.bucket}:{self.destination or "/"}>'


class CronSettings:
    """Optional override of the default daily schedule."""

    def __init__(self, crontab: Optional[str] = None, time: Optional[str] = None,
                 timezone: Optional[str] = None):
        self.crontab = crontab
        self.time = time
        self.timezone = timezone


class BackupConfig:
    """Validated configuration consumed by the pipelines and the scheduler."""

    def __init__(self, sources: List[SourceDescriptor], store: StoreDescriptor,
                 num_of_archives: int = 0, cron: Optional[CronSettings] = None):
        self.sources = sources
        self.store = store
        self.num_of_archives = num_of_archives
        self.cron = cron


class RemoteObject:
    """An object listed from the store; key is relative to the destination prefix."""

    def __init__(self, key: str, last_modified: datetime, size: int = 0):
        self.key = key
        self.last_modified = last_modified
        self.size = size

    def __repr__(self):
        return f'<RemoteObject {self.key} {self.last_modified.isoformat()}>'
