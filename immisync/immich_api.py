"""
Minimal client for the Immich server API, covering what an upload run needs.
"""

import datetime
from typing import Dict, List, Optional

import requests
from loguru import logger

from immisync.errors import ImmichError, LocalAssetError
from immisync.models import AlbumAddResult, LocalAsset, ServerAlbum, ServerAsset, UploadResult

DEVICE_ID = "immisync"
PAGE_SIZE = 1000
TIMEOUT = 60


def _iso(d: Optional[datetime.datetime]) -> str:
    if d is None:
        d = datetime.datetime.now(datetime.timezone.utc)
    if d.tzinfo is None:
        d = d.astimezone()
    return d.isoformat()


class ImmichClient:
    """
    Wraps a requests session authenticated with the user's API key.
    Every method raises ImmichError when the server refuses the call.
    """

    def __init__(self, server: str, api_key: str, session: requests.Session = None):
        self.server = server.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({
            "x-api-key": api_key,
            "Accept": "application/json",
        })

    def _request(self, method: str, endpoint: str, **kwargs):
        url = f"{self.server}/api/{endpoint}"
        try:
            resp = self.session.request(method, url, timeout=TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise ImmichError(method, url, body=str(e)) from e
        if resp.status_code >= 300:
            raise ImmichError(method, url, resp.status_code, resp.text)
        logger.debug("{} {} -> {}", method, url, resp.status_code)
        if not resp.content:
            return None
        return resp.json()

    def get_current_user(self) -> dict:
        return self._request("GET", "users/me") or {}

    def ping(self) -> bool:
        data = self._request("GET", "server/ping")
        return bool(data) and data.get("res") == "pong"

    # -----------------------------
    # ASSETS
    # -----------------------------

    def get_all_assets(self, with_albums: bool = True) -> List[ServerAsset]:
        """
        List every asset of the user (paginated metadata search), with the
        albums each one belongs to when with_albums is set.
        """
        assets: List[ServerAsset] = []
        page = 1
        while page:
            body = {"page": page, "size": PAGE_SIZE, "withExif": True, "withDeleted": True}
            data = self._request("POST", "search/metadata", json=body) or {}
            result = data.get("assets", {})
            assets.extend(ServerAsset.from_api(item) for item in result.get("items", []))
            next_page = result.get("nextPage")
            page = int(next_page) if next_page else 0

        if with_albums:
            by_id: Dict[str, ServerAsset] = {a.id: a for a in assets}
            for album in self.get_all_albums(with_assets=True):
                for aid in album.asset_ids:
                    if aid in by_id:
                        by_id[aid].albums.append(album)
        return assets

    def upload_asset(self, la: LocalAsset) -> UploadResult:
        """
        Upload the file bytes. The server answers "duplicate" when it
        already holds the same content.
        """
        if la.full_path is None:
            raise LocalAssetError(f"{la.file_name}: no file to upload")
        modified = datetime.datetime.fromtimestamp(la.full_path.stat().st_mtime, datetime.timezone.utc)
        form = {
            "deviceAssetId": la.device_asset_id(),
            "deviceId": DEVICE_ID,
            "fileCreatedAt": _iso(la.date_taken or modified),
            "fileModifiedAt": _iso(modified),
            "isFavorite": str(la.favorite).lower(),
        }
        with open(la.full_path, "rb") as f:
            files = {"assetData": (la.effective_name(), f, "application/octet-stream")}
            data = self._request("POST", "assets", data=form, files=files) or {}
        return UploadResult(id=data["id"], duplicate=data.get("status") == "duplicate")

    def update_asset(self, asset_id: str, la: LocalAsset):
        # only fields the local asset asserts
        body = {}
        if la.favorite:
            body["isFavorite"] = True
        if la.archived:
            body["isArchived"] = True
        if la.description:
            body["description"] = la.description
        if la.has_location():
            body["latitude"] = la.latitude
            body["longitude"] = la.longitude
        if la.has_asserted_date():
            body["dateTimeOriginal"] = _iso(la.date_taken)
        return self._request("PUT", f"assets/{asset_id}", json=body)

    def delete_assets(self, ids: List[str], force: bool = False):
        self._request("DELETE", "assets", json={"ids": list(ids), "force": force})

    def stack_assets(self, cover_id: str, ids: List[str]):
        """
        Stack ids together; the server takes the first ID as the cover.
        """
        ordered = [cover_id] + [i for i in ids if i != cover_id]
        return self._request("POST", "stacks", json={"assetIds": ordered})

    # -----------------------------
    # ALBUMS
    # -----------------------------

    def get_all_albums(self, with_assets: bool = False) -> List[ServerAlbum]:
        albums = [ServerAlbum.from_api(a) for a in self._request("GET", "albums") or []]
        if with_assets:
            for album in albums:
                data = self._request("GET", f"albums/{album.id}", params={"withoutAssets": "false"}) or {}
                album.asset_ids = [a["id"] for a in data.get("assets", [])]
        return albums

    def create_album(self, name: str, ids: List[str]) -> ServerAlbum:
        data = self._request("POST", "albums", json={"albumName": name, "assetIds": list(ids)})
        return ServerAlbum.from_api(data)

    def add_assets_to_album(self, album_id: str, ids: List[str]) -> List[AlbumAddResult]:
        data = self._request("PUT", f"albums/{album_id}/assets", json={"ids": list(ids)}) or []
        return [
            AlbumAddResult(id=r.get("id", ""), success=bool(r.get("success")), error=r.get("error") or "")
            for r in data
        ]
