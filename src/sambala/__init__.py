"""Queue and interactive access to SMB shares through smbclient."""

from sambala.client import SambaClient
from sambala.config import ConnectionSettings, PoolSettings, Settings
from sambala.gardener.models import CommandResult
from sambala.gardener.pool import PoolInitializationError, WorkerPool
from sambala.listing import ListingDirectory, ListingEntry, parse_listing

__version__ = "0.9.0"

__all__ = [
    "CommandResult",
    "ConnectionSettings",
    "ListingDirectory",
    "ListingEntry",
    "PoolInitializationError",
    "PoolSettings",
    "SambaClient",
    "Settings",
    "WorkerPool",
    "__version__",
    "parse_listing",
]
