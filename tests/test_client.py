from __future__ import annotations

import allure
import pytest

from sambala.client import SambaClient, quote_path
from sambala.gardener.pool import WorkerPool
from support import FakeSessionFactory, echo_settings

pytestmark = [
    allure.epic("Client"),
    allure.feature("smbclient Commands"),
]


@pytest.fixture()
def client(share_dir):
    with SambaClient(echo_settings()) as samba:
        yield samba


@pytest.mark.parametrize(
    ("path", "quoted"),
    [
        ("plain.txt", "plain.txt"),
        ("annual report.pdf", '"annual report.pdf"'),
        ('"already quoted"', '"already quoted"'),
    ],
)
def test_quote_path(path: str, quoted: str) -> None:
    assert quote_path(path) == quoted


def test_commands_build_smbclient_payloads(fake_settings) -> None:
    factory = FakeSessionFactory()
    pool = WorkerPool(fake_settings, session_factory=factory)
    with SambaClient(pool=pool) as samba:
        samba.get("a b.txt", "local.txt")
        samba.put("report.csv")
        samba.del_("*.tmp")
        samba.md("new dir")
        samba.rd("old")
        samba.dir()
        samba.volume()
        samba.du()

    executed = sorted(payload for session in factory.created for payload in session.executed)
    assert executed == sorted(
        [
            'get "a b.txt" local.txt',
            "put report.csv",
            "del *.tmp",
            'mkdir "new dir"',
            "rmdir old",
            "ls",
            "volume",
            "du",
        ],
    )


def test_put_and_exists(client: SambaClient, share_dir) -> None:
    (share_dir / "report.csv").write_text("a,b\n", "utf-8")
    assert client.exists("report.csv") is False

    success, message = client.put("report.csv")
    assert success is True
    assert "putting file report.csv" in message
    assert client.exists("report.csv") is True

    success, message = client.put("missing.csv")
    assert (success, message) == (False, "missing.csv does not exist")


def test_get_writes_local_file(client: SambaClient, share_dir) -> None:
    success, _message = client.get("readme.txt", "copy.txt")
    assert success is True
    assert (share_dir / "copy.txt").read_bytes() == b"r" * 1024


def test_mkdir_rmdir_and_delete(client: SambaClient) -> None:
    assert client.mkdir("archive")[0] is True
    assert client.mkdir("archive")[0] is False
    assert client.rmdir("archive")[0] is True
    assert client.rmdir("archive")[0] is False

    assert client.delete("readme.txt")[0] is True
    assert client.exists("readme.txt") is False


def test_cd_changes_directory_on_every_session(share_dir) -> None:
    with SambaClient(echo_settings(threads=2)) as samba:
        assert samba.cd("docs") is True
        assert samba.exists("notes.txt") is True
        assert samba.cd("nowhere") is False
        assert samba.cd("..") is True
        assert samba.exists("readme.txt") is True


def test_lcd_changes_local_directory(client: SambaClient, share_dir) -> None:
    (share_dir / "outbox").mkdir()
    (share_dir / "outbox" / "letter.txt").write_text("hi", "utf-8")
    assert client.lcd("outbox") is True
    assert client.put("letter.txt")[0] is True


def test_tree_follows_recursion_toggle(client: SambaClient) -> None:
    flat = client.tree()
    assert list(flat) == ["."]
    assert {entry.name for entry in flat["."].entries} == {"docs", "readme.txt"}

    assert client.recurse() is True
    assert client.recursive is True
    nested = client.tree()
    assert list(nested) == [".", "\\docs"]
    assert [entry.name for entry in nested["\\docs"].entries] == ["notes.txt"]
    assert nested["\\docs"].depth == 1

    assert client.recurse() is True
    assert client.recursive is False


def test_tree_of_missing_mask_is_empty(client: SambaClient) -> None:
    assert client.tree("nothing.txt") == {}
    assert list(client.tree("readme.txt")) == ["readme.txt"]


def test_queue_helpers(share_dir) -> None:
    for index in range(8):
        (share_dir / f"q{index}.txt").write_text("x", "utf-8")

    with SambaClient(echo_settings(threads=2)) as samba:
        assert samba.queue_empty() is True
        assert samba.queue_progress() == 1.0
        ids = [samba.put(f"q{index}.txt", queue=True) for index in range(8)]
        ids.append(samba.du(queue=True))
        assert all(isinstance(request_id, int) for request_id in ids)
        assert samba.queue_waiting() + len(samba.queue_processing()) <= 9

        results = samba.queue_completed() + samba.queue_results()
        assert samba.queue_done() is True
        assert samba.queue_empty() is True
        assert samba.queue_completed() == []

    assert sorted(result.id for result in results) == ids
    assert all(result.success for result in results)


def test_close_reports_clean_sessions(share_dir) -> None:
    samba = SambaClient(echo_settings(threads=2))
    samba.volume(queue=True)
    assert samba.close() == {"session-0": True, "session-1": True}
