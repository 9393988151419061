"""
Archive handling through the external tar program.

Both directions run tar inside the workspace directory so archive members
are stored relative to it (the dump directory name, without the temp root).
"""

from typing import Callable, Optional

from mongo_s3_backup.config import Config
from .tools import run_tool, log_message


def compress_directory(work_dir: str, input_name: str, output_name: str,
                       log: Optional[Callable] = None):
    """
    Create a gzip compressed tar of work_dir/input_name.

    Args:
        work_dir: Directory tar runs in
        input_name: Directory or file to archive, relative to work_dir
        output_name: Archive filename, relative to work_dir

    Raises:
        ToolError: If tar is missing or exits non-zero
    """
    log = log or log_message

    log(f"Starting compression of {input_name} into {output_name}")
    run_tool([Config.TAR_BIN, '-zcf', output_name, input_name], cwd=work_dir, log=log)
    log("Successfully compressed directory")


def decompress_archive(work_dir: str, member_name: str, archive_name: str,
                       log: Optional[Callable] = None):
    """
    Extract member_name from work_dir/archive_name into work_dir.

    Raises:
        ToolError: If tar is missing or exits non-zero
    """
    log = log or log_message

    log(f"Starting decompression of {archive_name} into {member_name}")
    run_tool([Config.TAR_BIN, '-xzvf', archive_name, member_name], cwd=work_dir, log=log)
    log("Successfully decompressed archive")
