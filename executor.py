# executor.py

import logging
import os
import shutil
import signal
import subprocess
from typing import Dict, List, Optional

from exceptions import CommandFailedError, CommandTimeoutError, ExecutableNotFoundError

logger = logging.getLogger(__name__)


def resolve_executable(args: List[str], cwd: str = "") -> str:
    """
    Resolve the program of a command to an executable path using PATH.

    Names containing a directory part are looked up relative to `cwd`, the
    directory the command will run in, when one is given.

    Raises:
        ExecutableNotFoundError: nothing executable was found.
    """
    program = args[0]
    if not program:
        raise ExecutableNotFoundError(args, "is empty")
    if "\0" in program:
        raise ExecutableNotFoundError(args, "contains a null byte")

    if cwd and os.path.dirname(program) and not os.path.isabs(program):
        path = shutil.which(os.path.abspath(os.path.join(cwd, program)))
        if path is None:
            raise ExecutableNotFoundError(args, f"not found in {cwd}")
        return path

    path = shutil.which(program)
    if path is None:
        raise ExecutableNotFoundError(args)
    return path


def _kill_process_group(process: subprocess.Popen):
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        # Already exited between the timeout and the kill.
        pass
    process.wait()


def run_command(args: List[str], env: Optional[Dict[str, str]], cwd: str, timeout: float):
    """
    Run one command, forwarding its output to our own stdout/stderr.

    The child gets its own process group so that a timeout kills everything
    it started, not just the direct child.

    Raises:
        CommandTimeoutError: the command ran longer than `timeout` seconds.
        CommandFailedError: the command could not be started or exited non-zero.
    """
    logger.info(f"Running {args}" + (f" in {cwd}" if cwd else ""))
    try:
        process = subprocess.Popen(
            args,
            env=env,
            cwd=cwd or None,
            start_new_session=True,
        )
    except (OSError, ValueError) as e:
        raise CommandFailedError(args, reason=f"could not be started: {e}") from e

    try:
        returncode = process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning(f"Command {args} exceeded {timeout}s, killing it")
        _kill_process_group(process)
        raise CommandTimeoutError(args, timeout)

    if returncode != 0:
        raise CommandFailedError(args, returncode)

    logger.debug(f"Command executed successfully: {args}")
