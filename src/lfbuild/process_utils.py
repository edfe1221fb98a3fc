"""
Subprocess execution and process tree cleanup.

Generators and compilers may spawn their own children (node workers, a JVM
launched through a wrapper script). When one of our subprocesses has to be
stopped early, because it timed out or because the task awaiting it was
cancelled, the whole tree is terminated and reaped so nothing keeps writing
into a workspace after the build has moved on.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Outcome of a finished subprocess."""

    returncode: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def kill_process_tree(root_pid: int, timeout: float = 3.0) -> int:
    """Terminate a process and all of its descendants.

    Children are terminated before their parents. Processes still alive
    after the grace period are force killed.

    Args:
        root_pid: PID of the root process
        timeout: Seconds to wait for graceful termination

    Returns:
        Number of processes signalled
    """
    try:
        root_proc = psutil.Process(root_pid)
    except psutil.NoSuchProcess:
        return 0

    try:
        children = root_proc.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    # Kill children first (bottom-up to avoid orphans)
    processes_to_kill = list(reversed(children)) + [root_proc]

    killed_count = 0
    for proc in processes_to_kill:
        try:
            proc.terminate()
            killed_count += 1
            logger.debug(f"Terminated process {proc.pid}")
        except psutil.NoSuchProcess:
            pass  # Already dead
        except psutil.AccessDenied as e:
            logger.warning(f"Failed to terminate process {proc.pid}: {e}")

    _gone, alive = psutil.wait_procs(processes_to_kill, timeout=timeout)

    for proc in alive:
        try:
            proc.kill()
            logger.warning(f"Force killed stubborn process {proc.pid}")
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning(f"Failed to force kill process {proc.pid}: {e}")

    return killed_count


async def run_process(
    cmd: List[str],
    timeout: Optional[float] = None,
    cwd: Optional[Path] = None,
    on_spawn: Optional[Callable[[int], None]] = None
) -> ProcessResult:
    """Run a command to completion without blocking the event loop.

    Args:
        cmd: Command and arguments
        timeout: Seconds before the process tree is killed (None waits forever)
        cwd: Working directory for the process
        on_spawn: Called with the PID once the process has started

    Returns:
        ProcessResult with exit code and decoded output

    Raises:
        OSError: If the executable cannot be started
        asyncio.CancelledError: If the awaiting task is cancelled; the
            process tree is killed and reaped first
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd) if cwd is not None else None,
    )
    if on_spawn is not None:
        on_spawn(proc.pid)

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Process {proc.pid} exceeded {timeout}s timeout, killing it")
        await _reap(proc)
        return ProcessResult(
            returncode=proc.returncode, stdout="", stderr="", timed_out=True
        )
    except asyncio.CancelledError:
        logger.debug(f"Cancelled while waiting on process {proc.pid}, killing it")
        await _reap(proc)
        raise

    return ProcessResult(
        returncode=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def _reap(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, kill_process_tree, proc.pid)
    await proc.wait()
