"""Article drafting, sync and publishing tools."""

from nibandh.core.lifecycle.controller import DraftController
from nibandh.core.publish.git_client import GitVersionControl
from nibandh.core.settings.store import JsonSettingsStore
from nibandh.core.storage.repository import SqliteDraftStorage
from nibandh.protocols import SettingsProtocol, StorageProtocol, VersionControlProtocol

__all__ = [
    "DraftController",
    "GitVersionControl",
    "JsonSettingsStore",
    "SettingsProtocol",
    "SqliteDraftStorage",
    "StorageProtocol",
    "VersionControlProtocol",
]
