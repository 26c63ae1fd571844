"""Test doubles and settings shared across test modules."""

from __future__ import annotations

import shlex
import sys
import threading
import time
from collections.abc import Callable

from sambala.config import ConnectionSettings, PoolSettings, Settings
from sambala.gardener.models import SessionState

ECHO_CLIENT_COMMAND = (
    f"{shlex.quote(sys.executable)} -m sambala.gardener.echo_smbclient "
    "//{host}/{share} {password} -U {user} -W {domain}"
)


def echo_settings(
    *,
    threads: int = 1,
    password: str = "secret",
    client_command: str = ECHO_CLIENT_COMMAND,
    **pool_overrides,
) -> Settings:
    pool_overrides.setdefault("init_timeout_seconds", 10.0)
    pool = PoolSettings(threads=threads, **pool_overrides)
    return Settings(
        connection=ConnectionSettings(
            host="fileserver",
            share="public",
            user="alice",
            password=password,
            client_command=client_command,
        ),
        pool=pool,
    )


class FakeSession:
    """In-process session that answers without a subprocess."""

    def __init__(
        self,
        name: str,
        *,
        handshake: bool = True,
        respond: Callable[[str, str], tuple[bool, str]] | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.name = name
        self.state = SessionState.STARTING
        self.handshake = handshake
        self.respond = respond or (lambda _name, payload: (True, f"done {payload}"))
        self.delay_seconds = delay_seconds
        self.start_timeouts: list[float] = []
        self.executed: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def start(self, timeout_seconds: float) -> bool:
        self.start_timeouts.append(timeout_seconds)
        self.state = SessionState.IDLE if self.handshake else SessionState.FAILED
        return self.handshake

    def execute(self, payload: str) -> tuple[bool, str]:
        time.sleep(self.delay_seconds)
        with self._lock:
            self.executed.append(payload)
        if payload == "crash":
            self.state = SessionState.FAILED
            return False, f"session {self.name} exited"
        return self.respond(self.name, payload)

    def close(self, grace_seconds: float) -> None:
        self.closed = True
        self.state = SessionState.CLOSED


class FakeSessionFactory:
    """Creates fake sessions and remembers every one it handed out."""

    def __init__(
        self,
        *,
        handshake: Callable[[str, int], bool] | None = None,
        respond: Callable[[str, str], tuple[bool, str]] | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.handshake = handshake or (lambda _name, _attempt: True)
        self.respond = respond
        self.delay_seconds = delay_seconds
        self.created: list[FakeSession] = []
        self.attempt = 0

    def __call__(self, name: str) -> FakeSession:
        if name == "session-0":
            self.attempt += 1
        session = FakeSession(
            name,
            handshake=self.handshake(name, self.attempt),
            respond=self.respond,
            delay_seconds=self.delay_seconds,
        )
        self.created.append(session)
        return session
