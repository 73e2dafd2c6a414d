"""Async subprocess helpers for the external resolver and probe."""

import asyncio
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Outcome of one finished process."""

    returncode: int
    stdout: str
    stderr: str
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def resolver_env(search_path: Iterable[str]) -> Dict[str, str]:
    """Build the child environment with PATH limited to known install dirs.

    The interpreter's own bin directory comes first so a yt-dlp installed in
    the same virtualenv is found. yt-dlp shells out to node/deno/bun for
    challenge solving, so their install dirs must be listed too.

    Args:
        search_path: Directories to expose on PATH

    Returns:
        Environment mapping for the child process
    """
    dirs: List[str] = [str(Path(sys.executable).parent)]
    for directory in search_path:
        if directory not in dirs:
            dirs.append(directory)

    env = dict(os.environ)
    env["PATH"] = os.pathsep.join(dirs)
    return env


async def run_process(
    args: List[str],
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> ProcessResult:
    """Run a process to completion and capture its output.

    Cancelling the awaiting task (or hitting the timeout) kills the child and
    reaps it before the cancellation propagates, so no process outlives the
    request that started it.

    Args:
        args: Executable followed by its arguments
        env: Environment for the child (inherits ours when None)
        timeout: Optional limit in seconds

    Returns:
        ProcessResult with decoded stdout/stderr

    Raises:
        OSError: If the executable cannot be started
        asyncio.TimeoutError: If the timeout expires
    """
    start = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
    )

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except (asyncio.CancelledError, asyncio.TimeoutError):
        await _kill(proc)
        raise

    return ProcessResult(
        returncode=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        elapsed=time.monotonic() - start,
    )


async def _kill(proc: asyncio.subprocess.Process):
    if proc.returncode is not None:
        return

    logger.warning("⚠️ Killing process %s", proc.pid)
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()
