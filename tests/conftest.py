from __future__ import annotations

import datetime
import json
from typing import List

import pytest
import requests

from immisync.errors import ImmichError
from immisync.models import AlbumAddResult, LocalAlbum, LocalAsset, ServerAlbum, ServerAsset, UploadResult

T0 = datetime.datetime(2023, 1, 1, 10, 0, 0)


def make_local(name: str, size: int = 1000, date=T0, albums=(), **kwargs) -> LocalAsset:
    return LocalAsset(
        file_name=name,
        title=name.rsplit("/", 1)[-1],
        size=size,
        date_taken=date,
        albums=[LocalAlbum(a, a) for a in albums],
        **kwargs,
    )


def make_server(asset_id: str, name: str, size: int = 1000, date=T0, device_id: str = "", **kwargs) -> ServerAsset:
    return ServerAsset(
        id=asset_id,
        original_file_name=name,
        size=size,
        date_taken=date,
        device_asset_id=device_id,
        **kwargs,
    )


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.content = b"" if payload is None else json.dumps(payload).encode()
        self.text = self.content.decode()

    def json(self):
        return json.loads(self.content)


class FakeSession(requests.Session):
    """Answers requests from a (method, path) routing table."""

    def __init__(self, routes):
        super().__init__()
        self.routes = routes
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        route = self.routes[(method, url.split("/api/", 1)[1])]
        if isinstance(route, list):
            return route.pop(0)
        return route


class FakeClient:
    """Records every call made by the driver; fails uploads on request."""

    def __init__(self, assets=(), albums=()):
        self.assets: List[ServerAsset] = list(assets)
        self.albums: List[ServerAlbum] = list(albums)
        self.fail_upload: set = set()
        self.duplicates: set = set()
        self.uploads: List[LocalAsset] = []
        self.created: list = []
        self.added: list = []
        self.deleted: list = []
        self.stacked: list = []
        self.updated: list = []
        self._next = 0

    def get_all_assets(self):
        return list(self.assets)

    def upload_asset(self, la: LocalAsset) -> UploadResult:
        if la.file_name in self.fail_upload:
            raise ImmichError("POST", "http://immich/api/assets", 500, "boom")
        self._next += 1
        self.uploads.append(la)
        return UploadResult(id=f"new-{self._next}", duplicate=la.file_name in self.duplicates)

    def get_all_albums(self):
        return list(self.albums)

    def create_album(self, name, ids):
        self.created.append((name, list(ids)))
        return ServerAlbum(id=f"album-{name}", name=name, asset_ids=list(ids))

    def add_assets_to_album(self, album_id, ids):
        self.added.append((album_id, list(ids)))
        return [AlbumAddResult(i, True) for i in ids]

    def delete_assets(self, ids, force=False):
        self.deleted.append((list(ids), force))

    def stack_assets(self, cover_id, ids):
        self.stacked.append((cover_id, list(ids)))

    def update_asset(self, asset_id, la):
        self.updated.append(asset_id)


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()
