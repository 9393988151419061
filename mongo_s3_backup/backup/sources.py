"""
MongoDB dump and restore through the mongodump/mongorestore tools.
"""

from typing import Callable, List, Optional

from mongo_s3_backup.config import Config
from mongo_s3_backup.models import SourceDescriptor
from .tools import run_tool, log_message


def _connection_args(source: SourceDescriptor) -> List[str]:
    return ['-h', source.address, '-d', source.db]


def _credential_args(source: SourceDescriptor) -> List[str]:
    # Only passed when both username and password are set
    if not source.has_credentials:
        return []
    return ['-u', source.username, '-p', source.password]


def mongo_dump(source: SourceDescriptor, output_dir: str, log: Optional[Callable] = None):
    """
    Dump a database into output_dir/<db>.

    Raises:
        ToolError: If mongodump is missing or exits non-zero
    """
    log = log or log_message

    args = [Config.MONGODUMP_BIN] + _connection_args(source) + ['-o', output_dir] + _credential_args(source)

    log(f"Starting mongodump of {source.db}")
    run_tool(args, log=log)
    log("mongodump executed successfully")


def mongo_restore(source: SourceDescriptor, dump_path: str, log: Optional[Callable] = None):
    """
    Restore a database from an extracted dump directory.

    Raises:
        ToolError: If mongorestore is missing or exits non-zero
    """
    log = log or log_message

    args = [Config.MONGORESTORE_BIN] + _connection_args(source) + [dump_path] + _credential_args(source)

    log(f"Starting mongorestore of {source.db}")
    run_tool(args, log=log)
    log("mongorestore executed successfully")
