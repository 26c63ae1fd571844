"""Controllers for sambala CLI commands."""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sambala.client import SambaClient
from sambala.config import Settings
from sambala.gardener.models import CommandResult


@dataclass(slots=True)
class ConnectionOverrides:
    """CLI options that take precedence over ``SAMBALA_*`` settings."""

    host: str | None = None
    share: str | None = None
    user: str | None = None
    password: str | None = None
    domain: str | None = None
    threads: int | None = None


@dataclass(slots=True)
class RunCommandsCommand:
    """CLI input for interactive command execution."""

    connection: ConnectionOverrides
    commands: tuple[str, ...]


@dataclass(slots=True)
class QueueCommandsCommand:
    """CLI input for queued command execution."""

    connection: ConnectionOverrides
    commands: tuple[str, ...]
    poll_interval_seconds: float = 0.5


@dataclass(slots=True)
class ListCommand:
    """CLI input for a parsed directory listing."""

    connection: ConnectionOverrides
    mask: str
    recursive: bool


@dataclass(slots=True)
class CommandReport:
    """Lines to print and the overall verdict."""

    lines: list[str]
    success: bool


class SambalaCliController:
    """Runs CLI requests against a freshly started session pool."""

    def run(self, command: RunCommandsCommand) -> CommandReport:
        lines: list[str] = []
        success = True
        with _client(command.connection) as client:
            for payload in command.commands:
                ok, message = client.pool.submit(payload)
                success = success and ok
                lines.extend(_render_result(payload, ok, message))
        return CommandReport(lines=lines, success=success)

    def queue(self, command: QueueCommandsCommand) -> CommandReport:
        lines: list[str] = []
        harvested: list[CommandResult] = []
        with _client(command.connection) as client:
            for payload in command.commands:
                request_id = client.pool.submit(payload, queued=True)
                lines.append(f"Queued #{request_id}: {payload}")
            while not client.queue_done():
                harvested.extend(client.queue_completed())
                lines.append(
                    f"Progress: {client.queue_progress():.0%} "
                    f"waiting={client.queue_waiting()} "
                    f"running={len(client.queue_processing())}",
                )
                time.sleep(command.poll_interval_seconds)
            harvested.extend(client.queue_results())

        success = True
        for result in sorted(harvested, key=lambda item: item.id):
            success = success and result.success
            lines.extend(
                _render_result(f"#{result.id} {result.payload}", result.success, result.message),
            )
        lines.append(f"Harvested {len(harvested)} result(s).")
        return CommandReport(lines=lines, success=success)

    def listing(self, command: ListCommand) -> CommandReport:
        lines: list[str] = []
        with _client(command.connection) as client:
            if command.recursive and not client.recurse():
                return CommandReport(lines=["Could not enable recursion."], success=False)
            tree = client.tree(command.mask)

        if not tree:
            return CommandReport(lines=[f"No listing for {command.mask or '.'}"], success=False)
        for directory in tree.values():
            lines.append(f"{'  ' * directory.depth}{directory.path}")
            for entry in directory.entries:
                lines.append(
                    f"{'  ' * (directory.depth + 1)}{entry.name}"
                    f"  [{entry.type_code or '-'}] {entry.size}  {entry.date}",
                )
        return CommandReport(lines=lines, success=True)


def settings_with_overrides(overrides: ConnectionOverrides) -> Settings:
    settings = Settings.from_env()
    connection = settings.connection
    if overrides.host is not None:
        connection.host = overrides.host
    if overrides.share is not None:
        connection.share = overrides.share
    if overrides.user is not None:
        connection.user = overrides.user
    if overrides.password is not None:
        connection.password = overrides.password
    if overrides.domain is not None:
        connection.domain = overrides.domain
    if overrides.threads is not None:
        settings.pool.threads = overrides.threads
    settings.validate()
    return settings


def _render_result(label: str, success: bool, message: str) -> list[str]:
    status = "ok" if success else "failed"
    body = message.splitlines() or [""]
    return [f"[{status}] {label}: {body[0]}", *(f"    {line}" for line in body[1:])]


@contextmanager
def _client(overrides: ConnectionOverrides) -> Iterator[SambaClient]:
    client = SambaClient(settings_with_overrides(overrides))
    try:
        yield client
    finally:
        client.close()
