"""
Retention policy enforcement for backups.

Keeps the newest N archives of a database in S3 and deletes the rest.
Recency is the object's LastModified time, not the timestamp in its name.
"""

import logging
from typing import Dict, Any, Optional

from .archives import matching_archives
from .storage import S3Storage, StorageError


logger = logging.getLogger(__name__)


class RetentionManager:
    """
    Manages archive count retention for one store.
    """

    def __init__(self, storage: S3Storage):
        """
        Initialize retention manager.

        Args:
            storage: Store whose archives are pruned
        """
        self.storage = storage
        self.logs = []

    def clean(self, source_name: str, keep_count: int) -> Dict[str, Any]:
        """
        Delete all but the keep_count newest archives of a database.

        Every deletion is attempted even if an earlier one fails.

        Args:
            source_name: Database name; archives match by substring
            keep_count: Number of newest archives to retain

        Returns:
            Dict with 'matched', 'deleted' (list of keys) and 'errors' (list of str)

        Raises:
            ValueError: If keep_count is negative
            StorageError: If listing fails, or the first failed deletion
        """
        if keep_count < 0:
            raise ValueError(f"keep_count must not be negative: {keep_count}")

        archives = matching_archives(self.storage.list_objects(), source_name)
        result = {
            'matched': len(archives),
            'deleted': [],
            'errors': []
        }

        if len(archives) <= keep_count:
            self._log("No archives need to be removed")
            return result

        first_error: Optional[StorageError] = None

        for archive in archives[keep_count:]:
            try:
                self.storage.delete(archive.key)
                result['deleted'].append(archive.key)
                self._log(f"Successfully deleted {archive.key} from s3")
            except StorageError as e:
                self._log(f"Failed to delete S3 object {archive.key}: {e}", 'error')
                result['errors'].append(str(e))
                if first_error is None:
                    first_error = e

        if first_error is not None:
            raise first_error

        self._log(f"Successfully cleaned up old archives of {source_name} ({len(result['deleted'])} deleted)")
        return result

    def _log(self, message: str, level: str = 'info'):
        self.logs.append(message)
        getattr(logger, 'warning' if level == 'warn' else level)(message)
