from __future__ import annotations

import datetime
import os
from pathlib import Path

import pytest
from PIL import Image

from conftest import make_server
from immisync.advice import AdviceCode, should_upload
from immisync.asset_index import AssetIndex
from immisync.local_store import (
    AssetProducer,
    LocalFolderBrowser,
    date_from_name,
    delete_local_file,
    get_exif_datetime_original,
)
from immisync.models import DATE_FROM_METADATA, DATE_FROM_MTIME, DATE_FROM_NAME


@pytest.mark.parametrize(
    "name,expected",
    [
        ("IMG_20231014_183246.jpg", datetime.datetime(2023, 10, 14, 18, 32, 46)),
        ("20231207_101605_001.jpg", datetime.datetime(2023, 12, 7, 10, 16, 5)),
        ("PXL_20230101_120000123.jpg", datetime.datetime(2023, 1, 1, 12, 0, 0)),
        ("00001IMG_00001_BURST20210101153302.jpg", datetime.datetime(2021, 1, 1, 15, 33, 2)),
        ("IMG_0001.JPG", None),
        ("20231399_999999.jpg", None),
    ],
)
def test_date_from_name(name, expected) -> None:
    assert date_from_name(name) == expected


def _touch(path: Path, content: bytes = b"x") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def test_browser_describes_media_files(tmp_path: Path) -> None:
    _touch(tmp_path / "Trip" / "IMG_20231014_183246.jpg", b"12345")
    plain = _touch(tmp_path / "IMG_0001.CR2")
    _touch(tmp_path / "notes.txt")
    _touch(tmp_path / ".hidden.jpg")
    ts = datetime.datetime(2022, 5, 1, 8, 0, 0).timestamp()
    os.utime(plain, (ts, ts))

    assets = list(LocalFolderBrowser([tmp_path]).browse())
    by_name = {a.file_name: a for a in assets}
    assert set(by_name) == {"IMG_0001.CR2", "Trip/IMG_20231014_183246.jpg"}

    trip = by_name["Trip/IMG_20231014_183246.jpg"]
    assert trip.size == 5
    assert trip.title == "IMG_20231014_183246.jpg"
    assert trip.date_taken == datetime.datetime(2023, 10, 14, 18, 32, 46)
    assert trip.device_asset_id() == "IMG_20231014_183246.jpg-5"
    assert by_name["IMG_0001.CR2"].date_taken == datetime.datetime(2022, 5, 1, 8, 0, 0)
    assert trip.date_source == DATE_FROM_NAME
    assert by_name["IMG_0001.CR2"].date_source == DATE_FROM_MTIME


def _jpeg_with_exif(path: Path, taken: str) -> Path:
    exif = Image.Exif()
    exif[36867] = taken
    Image.new("RGB", (8, 8), "red").save(path, "JPEG", exif=exif)
    return path


def test_exif_date_wins_over_name_and_mtime(tmp_path: Path) -> None:
    path = _jpeg_with_exif(tmp_path / "IMG_20990101_000000.jpg", "2023:01:01 10:00:00")
    ts = datetime.datetime(2024, 6, 1, 12, 0, 0).timestamp()
    os.utime(path, (ts, ts))

    assert get_exif_datetime_original(path) == datetime.datetime(2023, 1, 1, 10, 0, 0)
    (la,) = LocalFolderBrowser([tmp_path]).browse()
    assert la.date_taken == datetime.datetime(2023, 1, 1, 10, 0, 0)
    assert la.date_source == DATE_FROM_METADATA


def test_exif_date_matches_server_copy(tmp_path: Path) -> None:
    _jpeg_with_exif(tmp_path / "IMG_1234.JPG", "2023:01:01 10:00:00")
    (la,) = LocalFolderBrowser([tmp_path]).browse()
    index = AssetIndex([make_server("s1", "IMG_1234.JPG", size=1)])
    assert should_upload(index, la).code == AdviceCode.SMALLER_ON_SERVER


def test_exif_missing_or_unreadable(tmp_path: Path) -> None:
    plain = tmp_path / "plain.jpg"
    Image.new("RGB", (8, 8)).save(plain, "JPEG")
    assert get_exif_datetime_original(plain) is None
    assert get_exif_datetime_original(_touch(tmp_path / "clip.mp4", b"not an image")) is None


def test_producer_ends_with_sentinel(tmp_path: Path) -> None:
    _touch(tmp_path / "a.jpg")
    _touch(tmp_path / "b.jpg")
    producer = AssetProducer.for_folders([tmp_path])
    producer.start()
    producer.join(timeout=5)
    items = []
    while True:
        item = producer.queue.get(timeout=1)
        if item is None:
            break
        items.append(item.file_name)
    assert items == ["a.jpg", "b.jpg"]
    assert producer.count == 2


def test_producer_stop_before_start_yields_nothing(tmp_path: Path) -> None:
    _touch(tmp_path / "a.jpg")
    producer = AssetProducer.for_folders([tmp_path])
    producer.stop()
    producer.start()
    producer.join(timeout=5)
    assert producer.queue.get(timeout=1) is None


def test_producer_reports_source_error() -> None:
    def broken():
        raise OSError("disk gone")
        yield  # pragma: no cover

    producer = AssetProducer(broken())
    producer.start()
    producer.join(timeout=5)
    assert producer.queue.get(timeout=1) is None
    assert isinstance(producer.error, OSError)


def test_delete_local_file(tmp_path: Path) -> None:
    f = _touch(tmp_path / "a.jpg")
    delete_local_file(f)
    assert not f.exists()
    delete_local_file(f)
