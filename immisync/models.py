"""
Asset and album records shared by the index, the advice engine and the driver.
"""

from __future__ import annotations

import datetime
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


# where LocalAsset.date_taken comes from
DATE_FROM_METADATA = "metadata"
DATE_FROM_NAME = "name"
DATE_FROM_MTIME = "mtime"


def parse_api_datetime(value: Optional[str]) -> Optional[datetime.datetime]:
    """
    Parse an ISO timestamp as returned by the server ("...Z" or "+00:00").
    Returns None when missing or unparsable.
    """
    if not value:
        return None
    try:
        return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class LocalAlbum:
    """An album an asset belongs to in the source collection."""

    name: str
    path: str = ""


@dataclass
class LocalAsset:
    """
    A media file found in the source, normalized by the browser.
    file_name is the path relative to the browsed root.
    """

    file_name: str
    title: str
    size: Optional[int]
    date_taken: Optional[datetime.datetime] = None
    full_path: Optional[Path] = None
    date_source: str = DATE_FROM_METADATA
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0
    description: str = ""
    from_partner: bool = False
    archived: bool = False
    trashed: bool = False
    favorite: bool = False
    albums: List[LocalAlbum] = field(default_factory=list)

    def device_asset_id(self) -> str:
        """
        Identity of the file as stored on the server: basename and size.
        """
        base = os.path.basename(self.file_name).replace(" ", "")
        return f"{base}-{self.size}"

    def effective_name(self) -> str:
        """
        The title, completed with the extension of the file name when the
        title has none.
        """
        name = self.title or os.path.basename(self.file_name)
        if not os.path.splitext(name)[1]:
            name += os.path.splitext(self.file_name)[1]
        return name

    def add_album(self, album: LocalAlbum):
        for al in self.albums:
            if al.name == album.name:
                return
        self.albums.append(album)

    def has_location(self) -> bool:
        return self.latitude != 0 or self.longitude != 0

    def has_asserted_date(self) -> bool:
        """
        True when the capture date was read from the file, not guessed from
        its modification time.
        """
        return self.date_taken is not None and self.date_source != DATE_FROM_MTIME


@dataclass
class ServerAlbum:
    """An album as listed by the server."""

    id: str
    name: str
    asset_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "ServerAlbum":
        return cls(
            id=data["id"],
            name=data.get("albumName", ""),
            asset_ids=[a["id"] for a in data.get("assets", []) if "id" in a],
        )


@dataclass
class ServerAsset:
    """
    An asset held by the server. just_uploaded marks assets created during
    the current run; it is never reset once set.
    """

    id: str
    original_file_name: str
    size: int
    date_taken: Optional[datetime.datetime] = None
    device_asset_id: str = ""
    archived: bool = False
    trashed: bool = False
    albums: List[ServerAlbum] = field(default_factory=list)
    just_uploaded: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "ServerAsset":
        exif = data.get("exifInfo") or {}
        date_str = exif.get("dateTimeOriginal") or data.get("fileCreatedAt")
        return cls(
            id=data["id"],
            original_file_name=data.get("originalFileName", ""),
            size=int(exif.get("fileSizeInByte") or 0),
            date_taken=parse_api_datetime(date_str),
            device_asset_id=data.get("deviceAssetId") or "",
            archived=bool(data.get("isArchived", False)),
            trashed=bool(data.get("isTrashed", False)),
            albums=[ServerAlbum.from_api(a) for a in data.get("albums", [])],
        )


@dataclass
class UploadResult:
    id: str
    duplicate: bool = False


@dataclass
class AlbumAddResult:
    """Per-asset outcome of adding assets to an existing album."""

    id: str
    success: bool
    error: str = ""
