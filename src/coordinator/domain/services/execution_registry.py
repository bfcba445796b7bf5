"""In-process registry of active executions and bounded execution history."""

from __future__ import annotations

import asyncio
from collections import deque

from coordinator.domain.models.execution import DeploymentExecution


class ExecutionRegistry:
    """Tracks in-flight executions and the most recent terminal ones.

    History is newest first and capped at ``history_limit``; adding to a
    full history evicts the oldest entry. All reads return deep snapshots
    so callers never observe an execution mid-update.
    """

    def __init__(self, history_limit: int = 100) -> None:
        self._active: dict[str, DeploymentExecution] = {}
        self._history: deque[DeploymentExecution] = deque(maxlen=history_limit)
        self._rolling_back: set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def history_limit(self) -> int:
        return self._history.maxlen or 0

    async def register(self, execution: DeploymentExecution) -> None:
        async with self._lock:
            self._active[execution.execution_id] = execution

    async def retire(self, execution: DeploymentExecution) -> None:
        """Move an execution into history, replacing an existing entry in place."""
        async with self._lock:
            self._active.pop(execution.execution_id, None)
            for index, existing in enumerate(self._history):
                if existing.execution_id == execution.execution_id:
                    self._history[index] = execution
                    return
            self._history.appendleft(execution)

    async def claim_rollback(self, execution_id: str) -> bool:
        """Mark a rollback of ``execution_id`` as in flight.

        Returns False when another caller already holds the claim.
        """
        async with self._lock:
            if execution_id in self._rolling_back:
                return False
            self._rolling_back.add(execution_id)
            return True

    async def release_rollback(self, execution_id: str) -> None:
        async with self._lock:
            self._rolling_back.discard(execution_id)

    async def get_active(self, execution_id: str) -> DeploymentExecution | None:
        """Return the live active execution, not a snapshot. Owner use only."""
        async with self._lock:
            return self._active.get(execution_id)

    async def find(self, execution_id: str) -> DeploymentExecution | None:
        """Snapshot of an execution from the active set, then history."""
        async with self._lock:
            execution = self._active.get(execution_id)
            if execution is None:
                execution = next(
                    (e for e in self._history if e.execution_id == execution_id), None
                )
            return execution.snapshot() if execution is not None else None

    async def active_snapshot(self) -> list[DeploymentExecution]:
        async with self._lock:
            return [e.snapshot() for e in self._active.values()]

    async def history_snapshot(self) -> list[DeploymentExecution]:
        async with self._lock:
            return [e.snapshot() for e in self._history]

    async def active_count(self) -> int:
        async with self._lock:
            return len(self._active)
