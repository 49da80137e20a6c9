# Copyright (c) 2024 Ansible Template UI Contributors
# MIT License

"""
Asynchronous process execution for Ansible command line tools.

Never raises for a failing process: non-zero exits, timeouts and spawn errors
are all reported through ``ExecutionResult.successful``.
"""

import asyncio
import json
import logging
import os
import signal
import sys
from dataclasses import asdict, dataclass
from typing import List, Mapping, Optional, Sequence


logger = logging.getLogger(__name__)

# Forced for every playbook run so the output is machine readable
PLAYBOOK_ENV: dict = {
    "ANSIBLE_STDOUT_CALLBACK": "json",
    "ANSIBLE_COMMAND_WARNINGS": "0",
    "ANSIBLE_RETRY_FILES_ENABLED": "0",
    "ANSIBLE_GATHERING": "explicit",
}

# Seconds to keep reading pipes once the child has exited or been killed
READER_GRACE_SECS = 2


@dataclass
class ExecutionResult:
    """Captured outcome of one external process run."""

    successful: bool
    stdout: str = ""
    stderr: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def merge_env(*layers: Optional[Mapping[str, str]]) -> dict:
    """
    Merge environment layers on top of the current process environment.

    Later layers win over earlier ones.
    """
    env = dict(os.environ)
    for layer in layers:
        if layer:
            env.update({str(k): str(v) for k, v in layer.items()})
    return env


async def _drain(stream: Optional[asyncio.StreamReader], chunks: List[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            break
        chunks.append(chunk)


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the child and every worker it forked."""
    if sys.platform == "win32":
        process.kill()
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


class ProcessExecutor:
    """
    Runs Ansible tools as child processes.

    Output is collected incrementally so that a process killed on timeout
    still reports whatever it printed before.
    """

    def __init__(self, timeout: float = 0, cwd: Optional[str] = None):
        """
        Args:
            timeout: Seconds before the process is killed; 0 disables it
            cwd: Working directory for child processes (default: current)
        """
        self.timeout = timeout
        self.cwd = cwd

    async def run(
        self,
        command: str,
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> ExecutionResult:
        """
        Run ``command`` with ``args``.

        Args:
            command: Executable to run
            args: Arguments passed verbatim (no shell)
            env: Profile environment layered over the process environment

        Returns:
            ExecutionResult; ``successful`` is True only for exit code 0
        """
        run_env = merge_env(env)
        cwd = self.cwd or os.getcwd()
        # cwd alone does not update PWD for the child
        run_env["PWD"] = cwd

        logger.debug("### INPUT ###")
        logger.debug("%s", json.dumps(run_env))
        logger.debug("%s %s", command, json.dumps(list(args)))

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=run_env,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning("### EXEC ERROR ### %s: %s", command, e)
            return ExecutionResult(successful=False, stdout="", stderr=str(e))

        stdout_chunks: List[bytes] = []
        stderr_chunks: List[bytes] = []
        readers = asyncio.gather(
            _drain(process.stdout, stdout_chunks),
            _drain(process.stderr, stderr_chunks),
        )

        timed_out = False
        try:
            await asyncio.wait_for(process.wait(), timeout=self.timeout or None)
        except asyncio.TimeoutError:
            timed_out = True
            _kill_process_group(process)
            await process.wait()

        # Forked workers inherit the pipes and may keep them open
        try:
            await asyncio.wait_for(readers, timeout=READER_GRACE_SECS)
        except asyncio.TimeoutError:
            logger.warning(
                "### EXEC ERROR ### %s left its output pipes open, output truncated",
                command,
            )

        stdout = b"".join(stdout_chunks).decode("utf-8", errors="replace")
        stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace")

        if stderr:
            logger.debug("### STDERR ###\n%s", stderr)

        if timed_out:
            logger.warning(
                "### EXEC ERROR ### %s timed out after %ss", command, self.timeout
            )
            message = f"Command timed out after {self.timeout}s"
            stderr = f"{stderr}\n{message}" if stderr else message
            return ExecutionResult(successful=False, stdout=stdout, stderr=stderr)

        if process.returncode != 0:
            logger.warning(
                "### EXEC ERROR ### %s exited with %s", command, process.returncode
            )
        return ExecutionResult(
            successful=process.returncode == 0,
            stdout=stdout,
            stderr=stderr,
        )

    async def run_playbook(
        self,
        command: str,
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> ExecutionResult:
        """Run ansible-playbook with the JSON callback and quiet defaults forced."""
        run_env = dict(env or {})
        run_env.update(PLAYBOOK_ENV)
        return await self.run(command, args, run_env)
