"""
Runs external programs (mongodump, mongorestore, tar) as subprocesses.

Child stdout is forwarded to the log sink at info level and stderr at error
level while the child runs. A non-zero exit becomes ToolError; a program
missing from PATH becomes ToolNotFoundError.
"""

import os
import logging
import subprocess
import threading
from typing import Callable, List, Optional


logger = logging.getLogger(__name__)


class ToolError(Exception):
    """Raised when an external program fails."""

    def __init__(self, program: str, exit_code: Optional[int], message: Optional[str] = None):
        super().__init__(message or f"{program} exited with code {exit_code}")
        self.program = program
        self.exit_code = exit_code


class ToolNotFoundError(ToolError):
    """Raised when an external program is not on the execution path."""

    def __init__(self, program: str):
        super().__init__(program, None, f"{program} not found on PATH")


def log_message(message: str, level: str = 'info'):
    """Default log sink: (message, level) with level in info/warn/error."""
    getattr(logger, 'warning' if level == 'warn' else level)(message)


def _pump(stream, log: Callable, level: str):
    for line in iter(stream.readline, ''):
        line = line.rstrip('\r\n')
        if line:
            log(line, level)
    stream.close()


def run_tool(args: List[str], cwd: Optional[str] = None, log: Optional[Callable] = None):
    """
    Run a program and wait for it to exit.

    Args:
        args: Program and arguments
        cwd: Working directory for the child
        log: Sink called as log(message, level)

    Raises:
        ToolNotFoundError: If the program is not on PATH
        ToolError: If the program exits with a non-zero code
    """
    log = log or log_message
    program = args[0]

    if cwd is not None and not os.path.isdir(cwd):
        raise ToolError(program, None, f"Working directory not found: {cwd}")

    try:
        process = subprocess.Popen(
            args,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors='replace'
        )
    except FileNotFoundError:
        raise ToolNotFoundError(program)
    except PermissionError as e:
        raise ToolError(program, None, f"Cannot execute {program}: {e}")

    # stderr gets its own reader so neither pipe can fill up and block the child
    stderr_thread = threading.Thread(target=_pump, args=(process.stderr, log, 'error'), daemon=True)
    stderr_thread.start()
    _pump(process.stdout, log, 'info')
    stderr_thread.join()

    exit_code = process.wait()
    if exit_code != 0:
        raise ToolError(program, exit_code)
