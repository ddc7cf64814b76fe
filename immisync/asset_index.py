"""
In-memory index over the server's asset catalogue.

Two lookups are kept over one authoritative list: by device asset ID (exact
identity) and by original file name (candidates for the heuristic compare).
Uploads made during the run are appended so that a file met twice in the
same source is not uploaded twice.
"""

from __future__ import annotations

import os
from typing import Dict, Iterable, List

from loguru import logger

from immisync.models import LocalAsset, ServerAsset


def normalize_name(name: str) -> str:
    return os.path.basename(name.replace("\\", "/"))


class AssetIndex:
    def __init__(self, assets: Iterable[ServerAsset] = ()):
        self.assets: List[ServerAsset] = list(assets)
        self.by_id: Dict[str, ServerAsset] = {}
        self.by_name: Dict[str, List[ServerAsset]] = {}
        self.reindex()

    @classmethod
    def from_server(cls, client) -> "AssetIndex":
        """
        Build the index from the server list, ignoring trashed assets.
        Errors from the client propagate: no partial index is ever returned.
        """
        assets = [a for a in client.get_all_assets() if not a.trashed]
        logger.info("{} asset(s) received", len(assets))
        return cls(assets)

    def reindex(self):
        self.by_id = {}
        self.by_name = {}
        for sa in self.assets:
            self._index(sa)

    def _index(self, sa: ServerAsset):
        if sa.device_asset_id:
            self.by_id[sa.device_asset_id] = sa
        self.by_name.setdefault(normalize_name(sa.original_file_name), []).append(sa)

    def add_local_asset(self, la: LocalAsset, server_id: str) -> ServerAsset:
        """
        Record a freshly uploaded asset so later lookups in the run see it.
        """
        sa = ServerAsset(
            id=server_id,
            original_file_name=normalize_name(la.effective_name()),
            size=la.size or 0,
            date_taken=la.date_taken,
            device_asset_id=la.device_asset_id(),
            archived=la.archived,
            just_uploaded=True,
        )
        self.assets.append(sa)
        self._index(sa)
        return sa

    def __len__(self) -> int:
        return len(self.assets)
