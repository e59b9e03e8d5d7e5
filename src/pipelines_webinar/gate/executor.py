"""Runs lifecycle hooks with a bounded timeout and a bounded number of attempts."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Literal

logger = logging.getLogger(__name__)


class HookStatus(Enum):
    """Status of a hook execution."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass
class HookContext:
    """What a hook is told about the deployment it runs in.

    Attributes:
        deployment_id: Identifier of the running deployment.
        phase: 'pre' before traffic shifts, 'post' after shifting ends.
        old_version: Version the alias pointed at before the deployment.
        new_version: Version being deployed.
        rolled_back: True when the post hook runs after a rollback.
    """

    deployment_id: str
    phase: Literal["pre", "post"]
    old_version: str
    new_version: str
    rolled_back: bool = False


Hook = Callable[[HookContext], object]


@dataclass
class HookResult:
    """Result of running one hook.

    Attributes:
        phase: 'pre' or 'post'.
        status: Execution status (success, timeout, or error).
        error_message: Error description if status is error or timeout.
        attempts: Number of attempts made.
        execution_time_ms: Wall-clock time over all attempts.
        rolled_back: Context the hook ran in.
    """

    phase: Literal["pre", "post"]
    status: HookStatus
    error_message: str | None = None
    attempts: int = 1
    execution_time_ms: float = 0.0
    rolled_back: bool = False

    @property
    def is_success(self) -> bool:
        return self.status == HookStatus.SUCCESS

    def to_dict(self) -> dict[str, str | int | float | bool | None]:
        """Convert to dictionary for serialization."""
        return {
            "phase": self.phase,
            "status": self.status.value,
            "error_message": self.error_message,
            "attempts": self.attempts,
            "execution_time_ms": self.execution_time_ms,
            "rolled_back": self.rolled_back,
        }


class HookExecutor:
    """Executes a synchronous hook in a worker thread with a timeout.

    An exception counts as a failed attempt and is retried up to
    `max_attempts` in total. A timeout is final: the worker cannot be
    cancelled, so a second attempt would overlap the first. The timed-out
    worker is kept in `pending` until it finishes; call `settle()` before
    running anything that must not race with it.

    Attributes:
        timeout_seconds: Maximum time to wait for one attempt.
        max_attempts: Total attempts before giving up.
        grace_seconds: How long `settle()` waits for timed-out workers
            (defaults to `timeout_seconds`).
    """

    def __init__(
        self,
        timeout_seconds: float = 300.0,
        max_attempts: int = 2,
        grace_seconds: float | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.grace_seconds = timeout_seconds if grace_seconds is None else grace_seconds
        self._pool: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()

    @property
    def pending(self) -> int:
        """Number of timed-out workers that are still running."""
        self._pending = {f for f in self._pending if not f.done()}
        return len(self._pending)

    def _submit(self, hook: Hook, context: HookContext) -> Future:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(thread_name_prefix="hook")
        return self._pool.submit(hook, context)

    async def _attempt(self, hook: Hook, context: HookContext) -> tuple[HookStatus, str | None]:
        worker = self._submit(hook, context)
        try:
            await asyncio.wait_for(
                asyncio.wrap_future(worker),
                timeout=self.timeout_seconds,
            )
            return HookStatus.SUCCESS, None
        except asyncio.TimeoutError:
            self._pending.add(worker)
            return HookStatus.TIMEOUT, f"Hook timed out after {self.timeout_seconds} seconds"
        except Exception as e:
            return HookStatus.ERROR, str(e)

    async def run_async(self, hook: Hook, context: HookContext) -> HookResult:
        start_time = time.perf_counter()
        status, message = HookStatus.ERROR, None
        attempts = 0
        for attempts in range(1, self.max_attempts + 1):
            status, message = await self._attempt(hook, context)
            if status == HookStatus.SUCCESS:
                break
            logger.warning(
                "%s hook attempt %d/%d failed (%s): %s",
                context.phase,
                attempts,
                self.max_attempts,
                status.value,
                message,
            )
            if status == HookStatus.TIMEOUT:
                break
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        return HookResult(
            phase=context.phase,
            status=status,
            error_message=message,
            attempts=attempts,
            execution_time_ms=elapsed_ms,
            rolled_back=context.rolled_back,
        )

    def run(self, hook: Hook, context: HookContext) -> HookResult:
        """Run a hook to completion (or timeout) and return its result."""
        return asyncio.run(self.run_async(hook, context))

    def settle(self, timeout: float | None = None) -> bool:
        """Wait for timed-out workers to finish.

        Waits at most `timeout` seconds (default: `grace_seconds`) and
        returns True once nothing is left running.
        """
        if not self._pending:
            return True
        done, not_done = wait(self._pending, timeout=self.grace_seconds if timeout is None else timeout)
        self._pending = set(not_done)
        for worker in done:
            if not worker.cancelled() and worker.exception() is not None:
                logger.info("Timed-out hook finished with error: %s", worker.exception())
        if not_done:
            logger.warning("%d timed-out hook worker(s) still running", len(not_done))
            return False
        return True
