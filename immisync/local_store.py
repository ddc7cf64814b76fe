"""
Local side of the sync: walk source folders, describe each media file as a
LocalAsset, and feed them to the driver from a background thread.
"""

import datetime
import os
import queue
import re
import threading
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from loguru import logger
from PIL import Image

from immisync.models import DATE_FROM_METADATA, DATE_FROM_MTIME, DATE_FROM_NAME, LocalAsset

MEDIA_EXTENSIONS = {
    ".jpg", ".jpeg", ".jpe", ".png", ".gif", ".webp", ".tif", ".tiff",
    ".heic", ".heif", ".avif",
    ".3fr", ".ari", ".arw", ".cr2", ".cr3", ".crw", ".dng", ".erf", ".nef",
    ".nrw", ".orf", ".pef", ".raf", ".raw", ".rw2", ".sr2", ".srw", ".x3f",
    ".mp4", ".mov", ".m4v", ".3gp", ".avi", ".mkv", ".mts", ".webm",
}

# EXIF tags: DateTimeOriginal, DateTime, and the Exif sub-IFD pointer
_EXIF_DATE_ORIGINAL = 36867
_EXIF_DATE = 306
_EXIF_IFD = 0x8769

# 20231014_183246, IMG_20231014_183246, PXL_20230101_120000123, 2023-10-14 18.32.46
_NAME_DATE = re.compile(
    r"(?<!\d)(?P<y>(?:19|20)\d{2})-?(?P<mo>[01]\d)-?(?P<d>[0-3]\d)[ _T-]?"
    r"(?P<h>[0-2]\d)[.:-]?(?P<mi>[0-5]\d)[.:-]?(?P<s>[0-5]\d)"
)


def date_from_name(name: str) -> Optional[datetime.datetime]:
    """
    Capture date encoded in a camera file name, or None.
    """
    m = _NAME_DATE.search(os.path.basename(name))
    if not m:
        return None
    try:
        return datetime.datetime(
            int(m["y"]), int(m["mo"]), int(m["d"]), int(m["h"]), int(m["mi"]), int(m["s"])
        )
    except ValueError:
        return None


def get_exif_datetime_original(path: Path) -> Optional[datetime.datetime]:
    """
    EXIF DateTimeOriginal of an image, falling back to DateTime.
    Returns None when the file is not an image Pillow reads or has no date.
    """
    try:
        with Image.open(path) as im:
            exif = im.getexif()
            if not exif:
                return None
            val = (
                exif.get_ifd(_EXIF_IFD).get(_EXIF_DATE_ORIGINAL)
                or exif.get(_EXIF_DATE_ORIGINAL)
                or exif.get(_EXIF_DATE)
            )
            if not val:
                return None
            return datetime.datetime.strptime(str(val).strip("\x00 ")[:19], "%Y:%m:%d %H:%M:%S")
    except (OSError, ValueError, TypeError) as ex:
        logger.debug("EXIF read failed for {}: {}", path, ex)
        return None


def delete_local_file(path: Path):
    """
    Delete a local file if it exists. Errors propagate to the caller.
    """
    if path.exists():
        path.unlink()
        logger.info("Deleted local file: {}", path)


class LocalFolderBrowser:
    """
    Enumerate media files under one or more root folders.
    """

    def __init__(self, roots: Iterable[Path]):
        self.roots = [Path(r) for r in roots]

    def browse(self, stop_event: threading.Event = None) -> Iterator[LocalAsset]:
        for root in self.roots:
            for dirpath, dirs, files in os.walk(root):
                dirs.sort()
                for fname in sorted(files):
                    if stop_event is not None and stop_event.is_set():
                        return
                    file_path = Path(dirpath) / fname
                    if fname.startswith(".") or file_path.suffix.lower() not in MEDIA_EXTENSIONS:
                        continue
                    yield self.describe(root, file_path)

    @staticmethod
    def describe(root: Path, file_path: Path) -> LocalAsset:
        st = file_path.stat()
        date_taken, source = get_exif_datetime_original(file_path), DATE_FROM_METADATA
        if date_taken is None:
            date_taken, source = date_from_name(file_path.name), DATE_FROM_NAME
        if date_taken is None:
            date_taken, source = datetime.datetime.fromtimestamp(st.st_mtime), DATE_FROM_MTIME
        return LocalAsset(
            file_name=file_path.relative_to(root).as_posix(),
            title=file_path.name,
            size=st.st_size,
            date_taken=date_taken,
            full_path=file_path,
            date_source=source,
        )


class AssetProducer(threading.Thread):
    """
    Background thread pushing LocalAssets to an unbounded queue, followed by
    a None sentinel once the source is exhausted or stop() is called.
    """

    def __init__(self, source: Iterable[LocalAsset]):
        super().__init__(name="AssetProducer")
        self.daemon = True
        self.queue: "queue.Queue[Optional[LocalAsset]]" = queue.Queue()
        self._source = source
        self._stop_event = threading.Event()
        self.error: Optional[BaseException] = None
        self.count = 0

    @classmethod
    def for_folders(cls, roots: List[Path]) -> "AssetProducer":
        producer = cls(())
        producer._source = LocalFolderBrowser(roots).browse(producer._stop_event)
        return producer

    def stop(self):
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self):
        try:
            for la in self._source:
                if self._stop_event.is_set():
                    break
                self.queue.put(la)
                self.count += 1
        except Exception as e:
            logger.error("Browsing failed: {}", e)
            self.error = e
        finally:
            self.queue.put(None)
