"""
Exception types raised by immisync.
"""

from typing import List, Tuple


class ImmichSyncError(Exception):
    """Base class for all immisync errors."""


class ConfigError(ImmichSyncError):
    """Missing or invalid configuration (server URL, API key, flags)."""


class ImmichError(ImmichSyncError):
    """
    A call to the server failed, either in transport or with a non-2xx status.
    """

    def __init__(self, method: str, url: str, status: int = 0, body: str = ""):
        self.method = method
        self.url = url
        self.status = status
        self.body = body
        detail = f"{status} {body}".strip() if status else body
        super().__init__(f"{method} {url}: {detail}")


class LocalAssetError(ImmichSyncError):
    """A local asset cannot be read for upload."""


class ReconcileError(ImmichSyncError):
    """
    One or more albums could not be reconciled. failures holds
    (album name, reason) pairs for every album that failed.
    """

    def __init__(self, failures: List[Tuple[str, str]]):
        self.failures = failures
        names = ", ".join(name for name, _ in failures)
        super().__init__(f"{len(failures)} album(s) not reconciled: {names}")


class SyncCancelled(ImmichSyncError):
    """The run was cancelled before the asset stream was exhausted."""
