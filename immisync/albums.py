"""
Album reconciliation: collect the album membership wanted during the run and
apply it to the server in one pass at the end.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from immisync.errors import ReconcileError
from immisync.models import AlbumAddResult, ServerAlbum

AddAssetsFn = Callable[[str, List[str]], Sequence[AlbumAddResult]]
CreateAlbumFn = Callable[[str, List[str]], object]


class AlbumReconciler:
    def __init__(self):
        # album name -> asset IDs, dict used as an ordered set
        self._desired: Dict[str, Dict[str, None]] = {}

    def add_desired(self, album: str, asset_id: str):
        self._desired.setdefault(album, {})[asset_id] = None

    def desired(self, album: str) -> List[str]:
        return list(self._desired.get(album, {}))

    def album_names(self) -> List[str]:
        return list(self._desired)

    def __len__(self) -> int:
        return len(self._desired)

    def reconcile(
        self,
        server_albums: Iterable[ServerAlbum],
        add_assets: AddAssetsFn,
        create_album: CreateAlbumFn,
    ):
        """
        Add the desired assets to existing albums (matched by exact name) and
        create the missing ones. A failing album does not stop the others;
        all failures are raised together as ReconcileError at the end.
        """
        server_albums = list(server_albums)
        failures: List[Tuple[str, str]] = []

        for album, ids in self._desired.items():
            if not ids:
                continue
            asset_ids = list(ids)
            existing = _find_album(server_albums, album)
            try:
                if existing is not None:
                    self._add(existing, album, asset_ids, add_assets)
                else:
                    logger.info("Create the album {}", album)
                    create_album(album, asset_ids)
            except Exception as e:
                logger.error("Album {}: {}", album, e)
                failures.append((album, str(e)))

        self._desired = {}
        if failures:
            raise ReconcileError(failures)

    @staticmethod
    def _add(existing: ServerAlbum, album: str, asset_ids: List[str], add_assets: AddAssetsFn):
        logger.info("Update the album {}", album)
        added = 0
        for r in add_assets(existing.id, asset_ids) or []:
            if r.success:
                added += 1
            elif r.error != "duplicate":
                logger.warning("{}: {}", r.id, r.error)
        if added > 0:
            logger.info("{} asset(s) added to the album \"{}\"", added, album)


def _find_album(server_albums: List[ServerAlbum], name: str) -> Optional[ServerAlbum]:
    for sal in server_albums:
        if sal.name == name:
            return sal
    return None
