"""Local stand-in for smbclient used by session and pool integration tests.

Speaks the same terminal dialogue as ``smbclient //host/share password -U
user``: a banner, an ``smb: \\>`` prompt, and the usual wording for success
and ``NT_STATUS_*`` failures, against an in-memory share.
"""

from __future__ import annotations

import argparse
import os
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

DATE = "Mon Oct 19 10:00:00 2026"
BAD_PASSWORD = "wrong"
BLOCKS_LINE = "\t\t34923 blocks of size 1024. 12345 blocks available"


@dataclass(slots=True)
class RemoteFile:
    data: bytes


@dataclass(slots=True)
class RemoteDirectory:
    children: dict[str, RemoteFile | RemoteDirectory] = field(default_factory=dict)


class EchoShare:
    """In-memory share with a current remote and local directory."""

    def __init__(self, share: str, local_root: Path) -> None:
        self.share = share
        self.root = RemoteDirectory(
            children={
                "docs": RemoteDirectory(children={"notes.txt": RemoteFile(b"n" * 512)}),
                "readme.txt": RemoteFile(b"r" * 1024),
            },
        )
        self.cwd: list[str] = []
        self.local = local_root
        self.recursing = False

    @property
    def prompt(self) -> str:
        path = "".join(f"{part}\\" for part in self.cwd)
        return f"smb: \\{path}> "

    def run(self, line: str) -> str:
        verb, _, argument = line.strip().partition(" ")
        args = _split_args(argument)
        handler = getattr(self, f"do_{verb.lower()}", None)
        if handler is None:
            return f"{verb}: command not found"
        try:
            return handler(args)
        except IndexError:
            return f"{verb} <filename>"

    # -- commands ---------------------------------------------------------------

    def do_ls(self, args: list[str]) -> str:
        mask = args[0] if args else ""
        directory = self._directory(self.cwd)
        if mask:
            if mask not in directory.children:
                return f"NT_STATUS_NO_SUCH_FILE listing \\{self._joined(mask)}"
            lines = [_entry_line(mask, directory.children[mask])]
        else:
            lines = self._listing(directory)
            if self.recursing:
                lines.extend(self._recursive_listing(directory, self.cwd))
        return "\n".join([*lines, "", BLOCKS_LINE])

    do_dir = do_ls

    def do_cd(self, args: list[str]) -> str:
        if not args:
            return f"Current directory is \\\\{self.share}\\{self._joined('')}"
        target = self._resolve(args[0])
        if target is None or not isinstance(self._lookup(target), RemoteDirectory):
            return f"cd \\{args[0]}\\: NT_STATUS_OBJECT_NAME_NOT_FOUND"
        self.cwd = target
        return ""

    def do_lcd(self, args: list[str]) -> str:
        target = (self.local / args[0]) if args else self.local
        if not target.is_dir():
            return f"Unable to set local directory: {args[0] if args else ''}"
        self.local = target.resolve()
        return ""

    def do_mkdir(self, args: list[str]) -> str:
        directory = self._directory(self.cwd)
        if args[0] in directory.children:
            return f"NT_STATUS_OBJECT_NAME_COLLISION making remote directory \\{args[0]}"
        directory.children[args[0]] = RemoteDirectory()
        return ""

    do_md = do_mkdir

    def do_rmdir(self, args: list[str]) -> str:
        directory = self._directory(self.cwd)
        if not isinstance(directory.children.get(args[0]), RemoteDirectory):
            return f"NT_STATUS_OBJECT_NAME_NOT_FOUND removing remote directory file \\{args[0]}"
        del directory.children[args[0]]
        return ""

    do_rd = do_rmdir

    def do_del(self, args: list[str]) -> str:
        directory = self._directory(self.cwd)
        if not isinstance(directory.children.get(args[0]), RemoteFile):
            return f"NT_STATUS_NO_SUCH_FILE listing \\{self._joined(args[0])}"
        del directory.children[args[0]]
        return ""

    def do_put(self, args: list[str]) -> str:
        local_name = args[0]
        remote_name = args[1] if len(args) > 1 else Path(local_name).name
        source = self.local / local_name
        if not source.is_file():
            return f"{local_name} does not exist"
        self._directory(self.cwd).children[remote_name] = RemoteFile(source.read_bytes())
        return (
            f"putting file {local_name} as \\{self._joined(remote_name)} "
            "(99.6 kb/s) (average 99.6 kb/s)"
        )

    def do_get(self, args: list[str]) -> str:
        remote_name = args[0]
        local_name = args[1] if len(args) > 1 else remote_name
        remote = self._directory(self.cwd).children.get(remote_name)
        if not isinstance(remote, RemoteFile):
            return f"NT_STATUS_OBJECT_NAME_NOT_FOUND opening remote file \\{remote_name}"
        (self.local / local_name).write_bytes(remote.data)
        return (
            f"getting file \\{self._joined(remote_name)} of size {len(remote.data)} "
            f"as {local_name} (500.0 KiloBytes/sec) (average 500.0 KiloBytes/sec)"
        )

    def do_du(self, _args: list[str]) -> str:
        total = sum(len(item.data) for item in _walk_files(self._directory(self.cwd)))
        return f"{BLOCKS_LINE}\nTotal number of bytes: {total}"

    def do_volume(self, _args: list[str]) -> str:
        return f"Volume: |{self.share}| serial number 0x1234abcd"

    def do_recurse(self, _args: list[str]) -> str:
        self.recursing = not self.recursing
        return ""

    def do_stall(self, args: list[str]) -> str:
        time.sleep(float(args[0]) if args else 1.0)
        return ""

    # -- helpers ----------------------------------------------------------------

    def _joined(self, name: str) -> str:
        return "\\".join([*self.cwd, name]) if name else "".join(f"{p}\\" for p in self.cwd)

    def _resolve(self, path: str) -> list[str] | None:
        parts = [] if path.startswith(("\\", "/")) else list(self.cwd)
        for part in path.replace("/", "\\").split("\\"):
            if part in ("", "."):
                continue
            if part == "..":
                if parts:
                    parts.pop()
                continue
            parts.append(part)
        return parts if self._lookup(parts) is not None else None

    def _lookup(self, parts: list[str]) -> RemoteFile | RemoteDirectory | None:
        node: RemoteFile | RemoteDirectory = self.root
        for part in parts:
            if not isinstance(node, RemoteDirectory) or part not in node.children:
                return None
            node = node.children[part]
        return node

    def _directory(self, parts: list[str]) -> RemoteDirectory:
        node = self._lookup(parts)
        assert isinstance(node, RemoteDirectory)
        return node

    def _listing(self, directory: RemoteDirectory) -> list[str]:
        lines = [_entry_line(".", directory), _entry_line("..", directory)]
        lines.extend(_entry_line(name, item) for name, item in directory.children.items())
        return lines

    def _recursive_listing(self, directory: RemoteDirectory, parts: list[str]) -> list[str]:
        lines: list[str] = []
        for name, item in directory.children.items():
            if not isinstance(item, RemoteDirectory):
                continue
            child_parts = [*parts, name]
            lines.extend(["", "\\" + "\\".join(child_parts), *self._listing(item)])
            lines.extend(self._recursive_listing(item, child_parts))
        return lines


def _entry_line(name: str, item: RemoteFile | RemoteDirectory) -> str:
    if isinstance(item, RemoteDirectory):
        return f"  {name:<36}D{0:>9}  {DATE}"
    return f"  {name:<36}A{len(item.data):>9}  {DATE}"


def _walk_files(directory: RemoteDirectory) -> list[RemoteFile]:
    files: list[RemoteFile] = []
    for item in directory.children.values():
        if isinstance(item, RemoteDirectory):
            files.extend(_walk_files(item))
        else:
            files.append(item)
    return files


def _split_args(argument: str) -> list[str]:
    args: list[str] = []
    current = ""
    quoted = False
    for char in argument:
        if char == '"':
            quoted = not quoted
        elif char.isspace() and not quoted:
            if current:
                args.append(current)
            current = ""
        else:
            current += char
    if current:
        args.append(current)
    return args


def main(argv: list[str] | None = None) -> int:
    """Run an interactive session against an in-memory share."""

    parser = argparse.ArgumentParser()
    parser.add_argument("service")
    parser.add_argument("password", nargs="?", default="")
    parser.add_argument("-U", "--user", default="guest")
    parser.add_argument("-W", "--workgroup", default="WORKGROUP")
    parser.add_argument("--connect-delay", type=float, default=0.0)
    args = parser.parse_args(argv)

    time.sleep(args.connect_delay)
    if args.password == BAD_PASSWORD:
        print("session setup failed: NT_STATUS_LOGON_FAILURE", flush=True)
        return 1

    share = EchoShare(args.service.rstrip("/").rsplit("/", 1)[-1], Path(os.getcwd()))
    print(f"Domain=[{args.workgroup}] OS=[Unix] Server=[Samba 4.19.5]")
    print('Try "help" to get a list of possible commands.')
    while True:
        sys.stdout.write(share.prompt)
        sys.stdout.flush()
        line = sys.stdin.readline()
        if not line or line.strip().lower() in {"exit", "quit", "q", "bye"}:
            return 0
        if not line.strip():
            continue
        output = share.run(line)
        if output:
            print(output, flush=True)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
