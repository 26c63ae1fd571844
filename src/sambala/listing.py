"""Parse smbclient ``ls`` output into an ordered directory tree."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime

_ENTRY_PATTERN = re.compile(
    r"^\s*(?P<name>.+?)\s+(?:(?P<type_code>[A-Z]+)\s+)?(?P<size>\d+)\s+"
    r"(?P<date>[A-Z][a-z]{2}\s+[A-Z][a-z]{2}\s+\d{1,2}\s+\d{1,2}:\d{2}:\d{2}\s+\d{4})\s*$",
)
_SEPARATORS = re.compile(r"[\\/]")
_SUMMARY_MARKER = "blocks available"
_DOT_ENTRIES = frozenset({".", ".."})
_DATE_FORMAT = "%a %b %d %H:%M:%S %Y"


@dataclass(frozen=True, slots=True)
class ListingEntry:
    """One file or directory line of an ``ls`` listing."""

    name: str
    type_code: str
    size: int
    date: str
    raw: str

    @property
    def is_directory(self) -> bool:
        return "D" in self.type_code

    @property
    def modified(self) -> datetime:
        return datetime.strptime(" ".join(self.date.split()), _DATE_FORMAT)


@dataclass(slots=True)
class ListingDirectory:
    """Entries listed under one remote path."""

    path: str
    depth: int
    entries: list[ListingEntry] = field(default_factory=list)
    unparsed: list[str] = field(default_factory=list)


def parse_entry(line: str) -> ListingEntry | None:
    match = _ENTRY_PATTERN.match(line)
    if match is None:
        return None
    return ListingEntry(
        name=match.group("name"),
        type_code=match.group("type_code") or "",
        size=int(match.group("size")),
        date=match.group("date"),
        raw=line,
    )


def parse_listing(
    text: str,
    *,
    recursive: bool = False,
    mask: str = "",
) -> dict[str, ListingDirectory]:
    """Group listing lines by directory, in the order smbclient printed them.

    Without ``recursive`` everything lands in one bucket keyed by ``mask``
    (or ``.``).  With it, each line starting with a path separator opens a new
    bucket whose depth counts separators relative to the first such line.
    """

    top = mask or "."
    tree = {top: ListingDirectory(path=top, depth=0)}
    current = tree[top]
    base_depth: int | None = None

    for line in text.splitlines():
        stripped = line.strip()
        if _is_noise(stripped):
            continue
        if recursive and stripped[0] in "\\/":
            parts = [part for part in _SEPARATORS.split(stripped) if part]
            if base_depth is None:
                base_depth = len(parts)
            current = tree.setdefault(
                stripped,
                ListingDirectory(path=stripped, depth=len(parts) - base_depth + 1),
            )
            continue

        entry = parse_entry(line)
        if entry is None:
            current.unparsed.append(line)
        elif entry.name not in _DOT_ENTRIES:
            current.entries.append(entry)
    return tree


def _is_noise(stripped: str) -> bool:
    return len(stripped) <= 1 or _SUMMARY_MARKER in stripped
