"""Thread-safe bookkeeping of queued smbclient commands and their results."""

from __future__ import annotations

import itertools
import threading
from collections import deque
from collections.abc import Callable

from sambala.gardener.models import CommandRequest, CommandResult, CommandState


class CommandStore:
    """FIFO request intake with waiting / in-progress / completed buckets.

    Every read and write goes through one condition variable. Session I/O never
    runs while it is held: workers ``claim`` a request, execute it unlocked, and
    ``complete`` it afterwards.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._ids = itertools.count(1)
        self._requests: dict[int, CommandRequest] = {}
        self._waiting: deque[int] = deque()
        self._completed: dict[int, CommandResult] = {}
        self._claimed_by: dict[int, int] = {}
        self._retired: set[int] = set()
        self._barrier = False
        self._closed_reason: str | None = None
        self._batch_submitted = 0
        self._batch_claimed = 0

    # -- producer side ----------------------------------------------------------

    def submit(
        self,
        payload: str,
        *,
        interactive: bool = False,
        worker: int | None = None,
    ) -> int:
        """Queue ``payload`` and return its id without blocking."""

        with self._condition:
            if not self._requests:
                self._batch_submitted = 0
                self._batch_claimed = 0
            request_id = next(self._ids)
            request = CommandRequest(
                id=request_id,
                payload=payload,
                interactive=interactive,
                worker=worker,
            )
            self._requests[request_id] = request
            self._batch_submitted += 1
            if self._closed_reason is not None:
                self._finish_unclaimed(request, self._closed_reason)
            elif worker is not None and worker in self._retired:
                self._finish_unclaimed(request, f"session {worker} is no longer available")
            else:
                self._waiting.append(request_id)
            self._condition.notify_all()
            return request_id

    def submit_and_wait(self, payload: str) -> tuple[bool, str]:
        """Queue ``payload`` and block until its own result is available."""

        request_id = self.submit(payload, interactive=True)
        return self.wait_for(request_id).as_pair()

    def wait_for(self, request_id: int) -> CommandResult:
        """Block until ``request_id`` completes, then remove and return its result."""

        with self._condition:
            if request_id not in self._requests:
                raise KeyError(request_id)
            self._condition.wait_for(lambda: request_id in self._completed)
            return self._pop(request_id)

    # -- observation ------------------------------------------------------------

    def pending_count(self) -> int:
        with self._condition:
            return sum(
                1 for request in self._requests.values() if request.state != CommandState.COMPLETED
            )

    def waiting_count(self) -> int:
        with self._condition:
            return len(self._waiting)

    def is_empty(self) -> bool:
        with self._condition:
            return not self._requests

    def is_drained(self) -> bool:
        with self._condition:
            return self._drained()

    def peek_in_progress(self) -> list[tuple[int, str]]:
        with self._condition:
            return [
                (request.id, request.payload)
                for request in self._requests.values()
                if request.state == CommandState.IN_PROGRESS
            ]

    def progress_ratio(self) -> float:
        """Share of the current batch already claimed by a session."""

        with self._condition:
            if self._batch_submitted == 0:
                return 1.0
            return self._batch_claimed / self._batch_submitted

    def residual_count(self, worker: int) -> int:
        """Requests ``worker`` still holds or could still claim."""

        with self._condition:
            in_flight = sum(1 for owner in self._claimed_by.values() if owner == worker)
            claimable = sum(
                1
                for request_id in self._waiting
                if self._requests[request_id].worker in (None, worker)
            )
            return in_flight + claimable

    # -- harvesting -------------------------------------------------------------

    def drain_completed(self) -> list[CommandResult]:
        """Remove and return every completed queue-mode result, oldest first."""

        with self._condition:
            return self._drain_locked()

    def drain_completed_blocking(self) -> list[CommandResult]:
        """Wait until nothing is waiting or running, then drain all results."""

        with self._condition:
            self._condition.wait_for(self._drained)
            return self._drain_locked()

    def wait_drained(self, timeout: float | None = None) -> bool:
        with self._condition:
            return self._condition.wait_for(self._drained, timeout=timeout)

    # -- worker side ------------------------------------------------------------

    def claim(self, worker: int) -> CommandRequest | None:
        """Block until a request is available for ``worker``; ``None`` once closed."""

        with self._condition:
            while True:
                if self._closed_reason is not None:
                    return None
                request = self._next_for(worker)
                if request is not None:
                    self._waiting.remove(request.id)
                    request.state = CommandState.IN_PROGRESS
                    self._claimed_by[request.id] = worker
                    self._batch_claimed += 1
                    return request
                self._condition.wait()

    def complete(self, request_id: int, *, success: bool, message: str) -> None:
        with self._condition:
            request = self._requests[request_id]
            request.state = CommandState.COMPLETED
            self._claimed_by.pop(request_id, None)
            self._completed[request_id] = CommandResult(
                id=request_id,
                payload=request.payload,
                success=success,
                message=message,
            )
            self._condition.notify_all()

    def raise_barrier(self) -> None:
        """Stop dispatching unpinned requests until :meth:`lower_barrier`."""

        with self._condition:
            self._barrier = True

    def lower_barrier(self) -> None:
        with self._condition:
            self._barrier = False
            self._condition.notify_all()

    def retire(self, worker: int, reason: str) -> None:
        """Fail requests pinned to a session that will never claim again."""

        with self._condition:
            self._retired.add(worker)
            self._fail_waiting(lambda request: request.worker == worker, reason)

    def abort(self, reason: str) -> None:
        """Fail every request that has not been claimed yet."""

        with self._condition:
            self._fail_waiting(lambda _request: True, reason)

    def close(self, reason: str) -> None:
        """Reject further work; blocked claimers return ``None``."""

        with self._condition:
            self._closed_reason = reason
            self._fail_waiting(lambda _request: True, reason)

    @property
    def closed(self) -> bool:
        with self._condition:
            return self._closed_reason is not None

    # -- internals (condition held) ---------------------------------------------

    def _drained(self) -> bool:
        return all(request.state == CommandState.COMPLETED for request in self._requests.values())

    def _next_for(self, worker: int) -> CommandRequest | None:
        for request_id in self._waiting:
            request = self._requests[request_id]
            if request.worker == worker:
                return request
            if request.worker is None and not self._barrier:
                return request
        return None

    def _drain_locked(self) -> list[CommandResult]:
        ready = sorted(
            request_id
            for request_id in self._completed
            if not self._requests[request_id].interactive
        )
        return [self._pop(request_id) for request_id in ready]

    def _pop(self, request_id: int) -> CommandResult:
        del self._requests[request_id]
        return self._completed.pop(request_id)

    def _fail_waiting(self, predicate: Callable[[CommandRequest], bool], reason: str) -> None:
        for request_id in list(self._waiting):
            request = self._requests[request_id]
            if not predicate(request):
                continue
            self._waiting.remove(request_id)
            self._finish_unclaimed(request, reason)
        self._condition.notify_all()

    def _finish_unclaimed(self, request: CommandRequest, reason: str) -> None:
        self._batch_claimed += 1
        request.state = CommandState.COMPLETED
        self._completed[request.id] = CommandResult(
            id=request.id,
            payload=request.payload,
            success=False,
            message=reason,
        )
