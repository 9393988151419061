"""
Archive naming and lookup.

Archives are named {db}_{YYYY}_{M}_{D}_{epoch_millis}.tar.gz. Association of
an archive with a database is a substring match on the key, so a database
named "orders" also matches "orders_archive_..." keys.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from mongo_s3_backup.models import RemoteObject


ARCHIVE_EXTENSION = '.tar.gz'


class ArchiveNotFoundError(Exception):
    """Raised when no remote archive matches a database name."""

    def __init__(self, source_name: str):
        super().__init__(f"No archive found for database {source_name}")
        self.source_name = source_name


def generate_archive_name(source_name: str, now: Optional[datetime] = None) -> str:
    """
    Generate the archive filename for a backup taken at `now`.

    The millisecond epoch keeps names unique across backups taken on the
    same day; no collision check is made.
    """
    now = now or datetime.now()
    epoch_millis = int(now.timestamp() * 1000)

    parts = [source_name, now.year, now.month, now.day, epoch_millis]
    return '_'.join(str(part) for part in parts) + ARCHIVE_EXTENSION


def matching_archives(objects: Iterable[RemoteObject], source_name: str) -> List[RemoteObject]:
    """Objects whose key contains source_name, newest first."""
    matches = [obj for obj in objects if source_name in obj.key]
    return sorted(matches, key=lambda obj: obj.last_modified, reverse=True)


def find_latest_archive(storage, source_name: str) -> str:
    """
    Find the most recently modified archive for a database.

    Args:
        storage: S3Storage to list
        source_name: Database name to match

    Returns:
        Key of the newest matching archive

    Raises:
        ArchiveNotFoundError: If nothing matches
        StorageError: If listing fails
    """
    matches = matching_archives(storage.list_objects(), source_name)
    if not matches:
        raise ArchiveNotFoundError(source_name)
    return matches[0].key
