"""Shared test fixtures."""

from __future__ import annotations

import pytest

from sambala.config import PoolSettings, Settings


@pytest.fixture()
def fake_settings() -> Settings:
    return Settings(pool=PoolSettings(threads=2, init_timeout_seconds=3.0))


@pytest.fixture()
def share_dir(tmp_path, monkeypatch):
    """Run echo smbclient sessions with ``tmp_path`` as their local directory."""

    monkeypatch.chdir(tmp_path)
    return tmp_path
