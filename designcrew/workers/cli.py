"""Worker that delegates a task to an external coding-agent CLI."""

import asyncio
import shlex
from pathlib import Path
from typing import Any, Mapping, Sequence, Union

from ..config import DEFAULT_CLI_COMMAND
from ..crew.tasks import OutcomeStatus, TaskDescriptor, WorkerResult
from ..errors import WorkerFailure
from ..logger import get_logger
from .base import component_files, describe_task, pascal_case

_log = get_logger(__name__)

_STDERR_TAIL = 500


class CliWorker:
    """Pipes the task brief into ``command`` running inside the working directory.

    The command is expected to create the component files itself. Exit
    status decides failure; the files found afterwards decide between
    success and partial success.
    """

    def __init__(self, command: Union[str, Sequence[str]] = DEFAULT_CLI_COMMAND):
        self.argv = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.argv:
            raise ValueError("worker command is empty")

    async def perform(self, task: TaskDescriptor, working_dir: Path, shared_config: Mapping[str, Any]) -> WorkerResult:
        working_dir = Path(working_dir)
        prompt = describe_task(task, working_dir, shared_config)

        try:
            proc = await asyncio.create_subprocess_exec(
                *self.argv,
                cwd=str(working_dir),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise WorkerFailure(task.name, f"command not found: {self.argv[0]}") from None

        try:
            out, err = await proc.communicate(prompt.encode("utf-8"))
        except asyncio.CancelledError:
            # Timeouts arrive here as cancellation; don't leave the agent running.
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            stderr = err.decode("utf-8", "replace").strip()[-_STDERR_TAIL:]
            raise WorkerFailure(
                task.name,
                f"{self.argv[0]} exited with code {proc.returncode}" + (f": {stderr}" if stderr else ""),
            )

        expected = component_files(task)
        present = tuple(rel for rel in expected if (working_dir / rel).exists())
        pascal = pascal_case(task.name)
        _log.debug("%s output for %s: %s", self.argv[0], task.name, out.decode("utf-8", "replace")[:200])

        if len(present) == len(expected):
            return WorkerResult(OutcomeStatus.SUCCESS, f"{pascal}: generated {len(present)} files", present)
        if present:
            missing = ", ".join(rel for rel in expected if rel not in present)
            return WorkerResult(OutcomeStatus.PARTIAL, f"{pascal}: missing {missing}", present)
        return WorkerResult(OutcomeStatus.FAILED, f"{pascal}: agent finished without creating any component file")
