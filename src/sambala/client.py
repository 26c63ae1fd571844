"""smbclient command surface on top of the session pool."""

from __future__ import annotations

import logging
from types import TracebackType

from sambala.config import Settings
from sambala.gardener.models import CommandResult
from sambala.gardener.pool import WorkerPool
from sambala.listing import ListingDirectory, parse_listing

Outcome = int | tuple[bool, str]


class SambaClient:
    """One method per smbclient command.

    Every command method runs interactively and returns ``(success, message)``,
    unless ``queue=True`` is passed, in which case it returns the request id
    at once and the result is collected later with :meth:`queue_results` or
    :meth:`queue_completed`.

    ``cd``, ``lcd`` and ``recurse`` change per-session state, so they are sent
    to every session and are never queued.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        pool: WorkerPool | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if pool is None:
            settings = settings or Settings.from_env()
            settings.validate()
            pool = WorkerPool(settings, logger=logger)
        self._pool = pool
        self._recursive = False

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    @property
    def recursive(self) -> bool:
        return self._recursive

    def execute(self, command: str, argument: str = "", *, queue: bool = False) -> Outcome:
        return self._pool.submit(_payload(command, argument), queued=queue)

    def execute_all(self, command: str, argument: str = "") -> bool:
        return self._pool.broadcast(_payload(command, argument))

    # -- session state (broadcast) ----------------------------------------------

    def cd(self, path: str) -> bool:
        return self.execute_all("cd", quote_path(path))

    def lcd(self, path: str) -> bool:
        return self.execute_all("lcd", quote_path(path))

    def recurse(self) -> bool:
        """Toggle directory recursion for ``ls`` on every session."""

        toggled = self.execute_all("recurse")
        if toggled:
            self._recursive = not self._recursive
        return toggled

    # -- commands ---------------------------------------------------------------

    def du(self, *, queue: bool = False) -> Outcome:
        return self.execute("du", queue=queue)

    def delete(self, mask: str, *, queue: bool = False) -> Outcome:
        return self.execute("del", quote_path(mask), queue=queue)

    del_ = delete

    def get(self, source: str, target: str | None = None, *, queue: bool = False) -> Outcome:
        return self.execute("get", _transfer_argument(source, target), queue=queue)

    def put(self, source: str, target: str | None = None, *, queue: bool = False) -> Outcome:
        return self.execute("put", _transfer_argument(source, target), queue=queue)

    def ls(self, mask: str = "", *, queue: bool = False) -> Outcome:
        return self.execute("ls", quote_path(mask) if mask else "", queue=queue)

    dir = ls

    def mkdir(self, path: str, *, queue: bool = False) -> Outcome:
        return self.execute("mkdir", quote_path(path), queue=queue)

    md = mkdir

    def rmdir(self, path: str, *, queue: bool = False) -> Outcome:
        return self.execute("rmdir", quote_path(path), queue=queue)

    rd = rmdir

    def volume(self, *, queue: bool = False) -> Outcome:
        return self.execute("volume", queue=queue)

    def exists(self, path: str) -> bool:
        success, _message = self.execute("ls", quote_path(path))
        return success

    def tree(self, mask: str = "") -> dict[str, ListingDirectory]:
        """Parsed ``ls`` listing; empty when the listing failed."""

        success, message = self.execute("ls", quote_path(mask) if mask else "")
        if not success:
            return {}
        return parse_listing(message, recursive=self._recursive, mask=mask)

    # -- queue ------------------------------------------------------------------

    def queue_waiting(self) -> int:
        return self._pool.waiting_count()

    def queue_processing(self) -> list[tuple[int, str]]:
        return self._pool.peek_in_progress()

    def queue_completed(self) -> list[CommandResult]:
        return self._pool.drain_completed()

    def queue_empty(self) -> bool:
        return self._pool.is_empty()

    def queue_done(self) -> bool:
        return self._pool.is_drained()

    def queue_progress(self) -> float:
        return self._pool.progress_ratio()

    def queue_results(self) -> list[CommandResult]:
        """Wait for every queued command and return all results not yet harvested."""

        return self._pool.drain_completed_blocking()

    def close(self) -> dict[str, bool]:
        return self._pool.shutdown()

    def __enter__(self) -> SambaClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self._pool.shutdown(wait=exc_type is None)


def quote_path(path: str) -> str:
    """Quote a path containing whitespace for the smbclient command line."""

    if any(char.isspace() for char in path) and not path.startswith('"'):
        return f'"{path}"'
    return path


def _transfer_argument(source: str, target: str | None) -> str:
    if target is None:
        return quote_path(source)
    return f"{quote_path(source)} {quote_path(target)}"


def _payload(command: str, argument: str) -> str:
    return f"{command} {argument}".strip()
