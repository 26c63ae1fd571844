"""Worker pool that keeps N smbclient sessions busy with queued commands."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from types import TracebackType

from sambala.config import Settings
from sambala.gardener.models import CommandResult, SessionState
from sambala.gardener.session import Session, SessionDriver, build_client_argv
from sambala.gardener.store import CommandStore

MAX_THREADS = 4
SHUTDOWN_REASON = "pool shut down"
NO_SESSIONS_REASON = "no live sessions"

SessionFactory = Callable[[str], Session]


class PoolInitializationError(RuntimeError):
    """Every startup attempt left at least one session without a handshake."""

    def __init__(self, message: str, *, attempts: list[StartupPlan]) -> None:
        super().__init__(message)
        self.attempts = attempts


@dataclass(frozen=True, slots=True)
class StartupPlan:
    """Session count and handshake timeout for one startup attempt."""

    threads: int
    timeout_seconds: float
    attempts_left: int

    def degraded(self) -> StartupPlan:
        """Fewer sessions with more time each for the next attempt."""

        return replace(
            self,
            threads=max(1, self.threads - 1),
            timeout_seconds=self.timeout_seconds + 1,
            attempts_left=self.attempts_left - 1,
        )


def clamp_threads(requested: int) -> int:
    return max(1, min(MAX_THREADS, requested))


class WorkerPool:
    """Runs commands on a fixed set of smbclient sessions.

    Construction blocks until every session has completed its handshake, or
    raises :class:`PoolInitializationError`.  Each session is then served by
    its own daemon thread pulling from a shared :class:`CommandStore`, so a
    command may be run in interactive mode (``submit``) or queued for later
    harvesting (``submit(..., queued=True)`` then ``drain_completed``).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        logger: logging.Logger | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._settings = settings
        self._log = logger or logging.getLogger(__name__)
        self._store = CommandStore()
        self._broadcast_lock = threading.Lock()
        self._live_lock = threading.Lock()
        self._live: set[int] = set()
        self._workers: list[threading.Thread] = []
        self._residual: dict[str, bool] | None = None

        if session_factory is None:
            connection = settings.connection
            self._argv = build_client_argv(
                connection.client_command,
                host=connection.host,
                share=connection.share,
                user=connection.user,
                password=connection.password,
                domain=connection.domain,
            )
            session_factory = self._spawn_session
        self._session_factory = session_factory

        requested = settings.pool.threads
        threads = clamp_threads(requested)
        if threads != requested:
            self._log.warning("Requested %d sessions, using %d", requested, threads)

        self.attempts: list[StartupPlan] = []
        self._sessions = self._grow(
            StartupPlan(
                threads=threads,
                timeout_seconds=settings.pool.init_timeout_seconds,
                attempts_left=settings.pool.init_attempts,
            ),
        )
        self._start_workers()

    # -- caller contract --------------------------------------------------------

    def submit(self, payload: str, *, queued: bool = False) -> int | tuple[bool, str]:
        """Queue ``payload`` (returns its id) or run it and return ``(success, message)``."""

        if queued:
            return self._store.submit(payload)
        return self._store.submit_and_wait(payload)

    def broadcast(self, payload: str) -> bool:
        """Run ``payload`` once on every live session; ``True`` iff all succeeded."""

        with self._broadcast_lock:
            workers = self.live_workers()
            if not workers:
                return False
            self._store.raise_barrier()
            try:
                request_ids = [
                    self._store.submit(payload, interactive=True, worker=worker)
                    for worker in workers
                ]
                results = [self._store.wait_for(request_id) for request_id in request_ids]
            finally:
                self._store.lower_barrier()

        outcomes = {result.success for result in results}
        if len(outcomes) > 1:
            self._log.warning(
                "Broadcast %r disagreed across sessions: %s",
                payload,
                [result.success for result in results],
            )
        return outcomes == {True}

    def pending_count(self) -> int:
        return self._store.pending_count()

    def waiting_count(self) -> int:
        return self._store.waiting_count()

    def is_empty(self) -> bool:
        return self._store.is_empty()

    def is_drained(self) -> bool:
        return self._store.is_drained()

    def peek_in_progress(self) -> list[tuple[int, str]]:
        return self._store.peek_in_progress()

    def progress_ratio(self) -> float:
        return self._store.progress_ratio()

    def drain_completed(self) -> list[CommandResult]:
        return self._store.drain_completed()

    def drain_completed_blocking(self) -> list[CommandResult]:
        return self._store.drain_completed_blocking()

    @property
    def threads(self) -> int:
        return len(self._sessions)

    @property
    def session_names(self) -> list[str]:
        return [session.name for session in self._sessions]

    def live_workers(self) -> list[int]:
        with self._live_lock:
            return sorted(self._live)

    def shutdown(self, *, wait: bool = True) -> dict[str, bool]:
        """Stop all sessions; map each session name to whether it left no work behind."""

        if self._residual is not None:
            return dict(self._residual)
        if wait:
            self._store.wait_drained()
        residual = {
            session.name: self._store.residual_count(index) == 0
            for index, session in enumerate(self._sessions)
        }
        self._store.close(SHUTDOWN_REASON)
        for thread in self._workers:
            thread.join()
        self._close_sessions(self._sessions)
        self._residual = residual
        self._log.info("Pool shut down: %s", residual)
        return dict(residual)

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.shutdown(wait=exc_type is None)

    # -- startup ----------------------------------------------------------------

    def _grow(self, plan: StartupPlan) -> list[Session]:
        while plan.attempts_left > 0:
            self.attempts.append(plan)
            self._log.info(
                "Starting %d smbclient session(s) with %.1fs handshake timeout (attempt %d)",
                plan.threads,
                plan.timeout_seconds,
                len(self.attempts),
            )
            sessions: list[Session] = []
            try:
                for index in range(plan.threads):
                    sessions.append(self._session_factory(f"session-{index}"))
                verdicts = self._start_sessions(sessions, plan.timeout_seconds)
            except BaseException:
                self._close_sessions(sessions)
                raise
            if all(verdicts):
                return sessions

            self._log.warning(
                "%d of %d session(s) failed their handshake; retrying with fewer sessions",
                verdicts.count(False),
                len(sessions),
            )
            self._close_sessions(sessions)
            plan = plan.degraded()

        raise PoolInitializationError(
            f"smbclient sessions failed to start after {len(self.attempts)} attempts.",
            attempts=list(self.attempts),
        )

    def _start_sessions(self, sessions: list[Session], timeout_seconds: float) -> list[bool]:
        with ThreadPoolExecutor(
            max_workers=len(sessions),
            thread_name_prefix="sambala-handshake",
        ) as executor:
            return list(
                executor.map(lambda session: self._handshake(session, timeout_seconds), sessions),
            )

    def _handshake(self, session: Session, timeout_seconds: float) -> bool:
        try:
            return session.start(timeout_seconds)
        except Exception:
            self._log.exception("Session %s raised during its handshake", session.name)
            return False

    def _close_sessions(self, sessions: list[Session]) -> None:
        grace = self._settings.pool.shutdown_grace_seconds
        for session in sessions:
            session.close(grace)

    def _spawn_session(self, name: str) -> Session:
        pool = self._settings.pool
        return SessionDriver(
            argv=self._argv,
            name=name,
            response_read_timeout_seconds=pool.response_read_timeout_seconds,
            response_retry_budget=pool.response_retry_budget,
            handshake_banner=pool.handshake_banner,
            secrets=(self._settings.connection.password,),
            log=self._log,
        )

    # -- dispatch ---------------------------------------------------------------

    def _start_workers(self) -> None:
        with self._live_lock:
            self._live = set(range(len(self._sessions)))
        for index, session in enumerate(self._sessions):
            thread = threading.Thread(
                target=self._work,
                args=(index,),
                daemon=True,
                name=f"sambala-{session.name}",
            )
            self._workers.append(thread)
            thread.start()

    def _work(self, index: int) -> None:
        session = self._sessions[index]
        while True:
            request = self._store.claim(index)
            if request is None:
                return
            try:
                success, message = session.execute(request.payload)
            except Exception:
                self._log.exception("Session %s crashed running %r", session.name, request.payload)
                self._store.complete(
                    request.id,
                    success=False,
                    message=f"session {session.name} crashed",
                )
                self._retire(index)
                return
            self._store.complete(request.id, success=success, message=message)
            if session.state == SessionState.FAILED:
                self._retire(index)
                return

    def _retire(self, index: int) -> None:
        name = self._sessions[index].name
        with self._live_lock:
            self._live.discard(index)
            remaining = len(self._live)
        self._log.error("Session %s is no longer usable (%d left)", name, remaining)
        self._store.retire(index, f"session {name} is no longer available")
        if remaining == 0:
            self._store.close(NO_SESSIONS_REASON)
