"""Task command and validation executor implementations."""

from __future__ import annotations

import asyncio
import os

import structlog

from coordinator.domain.errors import TaskExecutionError
from coordinator.domain.models.execution import ValidationResult, ValidationStatus
from coordinator.domain.models.plan import DeploymentTask
from coordinator.domain.ports.services import (
    TaskCommandExecutor,
    TaskOutput,
    ValidationExecutor,
)


logger = structlog.get_logger(__name__)


class SimulatedTaskCommandExecutor(TaskCommandExecutor):
    """Simulated task executor for development/testing.

    Every task succeeds after a short delay unless its id is listed in
    ``failing_task_ids``. Calls are recorded in ``executed`` in order.
    """

    def __init__(
        self,
        failing_task_ids: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._failing = set(failing_task_ids or ())
        self._delay = delay
        self.executed: list[tuple[str, bool]] = []

    async def run(self, task: DeploymentTask, dry_run: bool) -> TaskOutput:
        self.executed.append((task.id, dry_run))
        if self._delay:
            await asyncio.sleep(self._delay)

        if task.id in self._failing:
            raise TaskExecutionError(task.id, f"Simulated failure for task: {task.name}")

        return TaskOutput(output=f"Task completed: {task.name}")


class SubprocessTaskCommandExecutor(TaskCommandExecutor):
    """Runs ``task.command`` in a shell.

    Each attempt is bounded by ``task.timeout`` seconds and a failing task
    is attempted ``task.retry_count`` more times before giving up. Dry runs
    never start a process.
    """

    def __init__(self, retry_backoff: float = 1.0, cwd: str | None = None) -> None:
        self._retry_backoff = retry_backoff
        self._cwd = cwd

    async def run(self, task: DeploymentTask, dry_run: bool) -> TaskOutput:
        command = task.command or task.script
        if not command:
            raise TaskExecutionError(task.id, f"Task {task.id} has no command to run")

        if dry_run:
            return TaskOutput(output=f"Dry run: {command}")

        attempts = task.retry_count + 1
        last_error = ""
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(
                    self._run_once(task, command), timeout=task.timeout
                )
            except asyncio.TimeoutError:
                last_error = f"Task {task.id} timed out after {task.timeout}s"
            except TaskExecutionError as e:
                last_error = str(e)

            logger.warning(
                "task_attempt_failed",
                task_id=task.id,
                attempt=attempt,
                max_attempts=attempts,
                error=last_error,
            )
            if attempt < attempts:
                await asyncio.sleep(self._retry_backoff * attempt)

        raise TaskExecutionError(task.id, last_error)

    async def _run_once(self, task: DeploymentTask, command: str) -> TaskOutput:
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self._cwd,
            env={**os.environ, **task.environment},
        )
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            # wait_for cancels us on timeout; do not leave the child running
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            raise TaskExecutionError(
                task.id,
                f"Command exited with {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()}",
            )
        return TaskOutput(output=stdout.decode(errors="replace").strip())


class SimulatedValidationExecutor(ValidationExecutor):
    """Validation executor with configurable failing and warning checks."""

    def __init__(
        self,
        failing_checks: set[str] | None = None,
        warning_checks: set[str] | None = None,
    ) -> None:
        self._failing = set(failing_checks or ())
        self._warning = set(warning_checks or ())
        self.executed: list[str] = []

    async def run(self, check_id: str, dry_run: bool) -> ValidationResult:
        self.executed.append(check_id)

        if check_id in self._failing:
            status = ValidationStatus.FAILED
            message = f"Validation failed: {check_id}"
        elif check_id in self._warning:
            status = ValidationStatus.WARNING
            message = f"Validation passed with warnings: {check_id}"
        else:
            status = ValidationStatus.PASSED
            message = f"Validation passed: {check_id}"

        return ValidationResult(
            check_id=check_id,
            status=status,
            message=message,
            details={"dry_run": dry_run},
        )
