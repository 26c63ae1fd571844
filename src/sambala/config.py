"""Runtime configuration for smbclient sessions and the worker pool."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from sambala.gardener.session import DEFAULT_CLIENT_COMMAND


@dataclass(slots=True)
class ConnectionSettings:
    """Where and as whom smbclient connects."""

    host: str = ""
    share: str = ""
    user: str = ""
    password: str = ""
    domain: str = "WORKGROUP"
    client_command: str = DEFAULT_CLIENT_COMMAND


@dataclass(slots=True)
class PoolSettings:
    """Session count, handshake and response bounds."""

    threads: int = 1
    init_timeout_seconds: float = 3.0
    init_attempts: int = 4
    response_read_timeout_seconds: float = 3.0
    response_retry_budget: int = 20
    shutdown_grace_seconds: float = 2.0
    handshake_banner: str | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    connection: ConnectionSettings = field(default_factory=ConnectionSettings)
    pool: PoolSettings = field(default_factory=PoolSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from ``SAMBALA_*`` environment variables."""

        return cls(
            connection=ConnectionSettings(
                host=os.getenv("SAMBALA_HOST", ""),
                share=os.getenv("SAMBALA_SHARE", ""),
                user=os.getenv("SAMBALA_USER", ""),
                password=os.getenv("SAMBALA_PASSWORD", ""),
                domain=os.getenv("SAMBALA_DOMAIN", "WORKGROUP"),
                client_command=os.getenv("SAMBALA_CLIENT_COMMAND", DEFAULT_CLIENT_COMMAND),
            ),
            pool=PoolSettings(
                threads=_env_int("SAMBALA_THREADS", 1),
                init_timeout_seconds=_env_float("SAMBALA_INIT_TIMEOUT_SECONDS", 3.0),
                init_attempts=_env_int("SAMBALA_INIT_ATTEMPTS", 4),
                response_read_timeout_seconds=_env_float(
                    "SAMBALA_RESPONSE_READ_TIMEOUT_SECONDS",
                    3.0,
                ),
                response_retry_budget=_env_int("SAMBALA_RESPONSE_RETRY_BUDGET", 20),
                shutdown_grace_seconds=_env_float("SAMBALA_SHUTDOWN_GRACE_SECONDS", 2.0),
                handshake_banner=os.getenv("SAMBALA_HANDSHAKE_BANNER") or None,
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if the share or pool bounds are unusable."""

        if not self.connection.host.strip():
            raise ValueError("SAMBALA_HOST is required.")
        if not self.connection.share.strip():
            raise ValueError("SAMBALA_SHARE is required.")
        if self.pool.threads < 1:
            raise ValueError("SAMBALA_THREADS must be >= 1.")
        if self.pool.init_timeout_seconds <= 0:
            raise ValueError("SAMBALA_INIT_TIMEOUT_SECONDS must be > 0.")
        if self.pool.init_attempts < 1:
            raise ValueError("SAMBALA_INIT_ATTEMPTS must be >= 1.")
        if self.pool.response_read_timeout_seconds <= 0:
            raise ValueError("SAMBALA_RESPONSE_READ_TIMEOUT_SECONDS must be > 0.")
        if self.pool.response_retry_budget < 1:
            raise ValueError("SAMBALA_RESPONSE_RETRY_BUDGET must be >= 1.")
        if self.pool.shutdown_grace_seconds < 0:
            raise ValueError("SAMBALA_SHUTDOWN_GRACE_SECONDS must be >= 0.")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as error:
        raise ValueError(f"Invalid number for {name}: {value!r}") from error
