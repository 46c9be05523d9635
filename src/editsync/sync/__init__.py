"""Asynchronous save pipeline: sessions, scheduling, connectivity, uploads."""

from __future__ import annotations

from editsync.sync.connectivity import Connectivity
from editsync.sync.coordinator import FlushSummary, SyncCoordinator
from editsync.sync.scheduler import SaveScheduler
from editsync.sync.session import EditSession
from editsync.sync.transport import InMemoryRemoteStore, RemoteStore
from editsync.sync.uploads import UploadError, UploadTracker

__all__ = [
    "Connectivity",
    "EditSession",
    "FlushSummary",
    "InMemoryRemoteStore",
    "RemoteStore",
    "SaveScheduler",
    "SyncCoordinator",
    "UploadError",
    "UploadTracker",
]
