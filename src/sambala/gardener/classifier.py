"""Deterministic success classification of smbclient responses."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

TRANSFER_VERBS: frozenset[str] = frozenset({"put", "mput"})

_TRANSFER_PROGRESS_MARKERS: tuple[str, ...] = ("putting",)
_ERROR_STATUS_MARKERS: tuple[str, ...] = ("nt_status",)
_TIMEOUT_OR_STOPPED_MARKERS: tuple[str, ...] = (
    "timed out",
    "server stopped",
)

INCOMPLETE_OPERATION_MESSAGE = "operation did not complete"


class CommandCategory(str, Enum):
    """Command families that need different success heuristics."""

    TRANSFER = "transfer"
    GENERIC = "generic"


def categorize(payload: str) -> CommandCategory:
    """Pick the command family from the leading verb of a command line."""

    parts = payload.split(maxsplit=1)
    verb = parts[0].lower() if parts else ""
    if verb in TRANSFER_VERBS:
        return CommandCategory.TRANSFER
    return CommandCategory.GENERIC


def classify_transfer(message: str) -> bool:
    """Uploads print no error text for some failures, only a missing progress line."""

    return _first_match(message.lower(), _TRANSFER_PROGRESS_MARKERS) is not None


def classify_generic(message: str) -> bool:
    haystack = message.lower()
    if _first_match(haystack, _ERROR_STATUS_MARKERS) is not None:
        return False
    return _first_match(haystack, _TIMEOUT_OR_STOPPED_MARKERS) is None


CLASSIFIERS: dict[CommandCategory, Callable[[str], bool]] = {
    CommandCategory.TRANSFER: classify_transfer,
    CommandCategory.GENERIC: classify_generic,
}


def classify_response(payload: str, message: str) -> bool:
    """Return ``True`` when ``message`` reports success for ``payload``."""

    return CLASSIFIERS[categorize(payload)](message)


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
