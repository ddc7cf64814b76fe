"""
Group uploaded assets that are variants of one shot into stacks.

Two kinds are recognised: a raw file and its compressed twin (same name,
same capture time), and burst sequences named by the camera with a common
base and a counter. An asset goes to at most one stack; raw/compressed
pairing is tried first.
"""

from __future__ import annotations

import datetime
import enum
import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from immisync.advice import compare_date

RAW_EXTENSIONS = {
    ".3fr", ".ari", ".arw", ".cr2", ".cr3", ".crw", ".dng", ".erf", ".iiq",
    ".k25", ".kdc", ".mrw", ".nef", ".nrw", ".orf", ".pef", ".raf", ".raw",
    ".rw2", ".rwl", ".sr2", ".srf", ".srw", ".x3f",
}
COMPRESSED_EXTENSIONS = {".jpg", ".jpeg", ".jpe", ".heic", ".heif"}

BURST_WINDOW = datetime.timedelta(seconds=2)

# Huawei / Android: IMG_20231014_183246_BURST001_COVER.jpg
_HUAWEI_BURST = re.compile(r"^(?P<base>.+)_BURST(?P<seq>\d+)(?P<cover>_COVER)?$")
# Pixel: 00001IMG_00001_BURST20210101153302_COVER.jpg
_PIXEL_BURST = re.compile(r"^(?P<seq>\d+)IMG_\d+_BURST(?P<base>\d{14})(?P<cover>_COVER)?$")
# Samsung: 20231207_101605_001.jpg
_SAMSUNG_BURST = re.compile(r"^(?P<base>\d{8}_\d{6})_(?P<seq>\d{3})$")


class StackType(enum.Enum):
    RAW_JPG = "raw/jpg"
    BURST = "burst"


@dataclass(frozen=True)
class Stack:
    cover_id: str
    ids: Tuple[str, ...]
    names: Tuple[str, ...]
    stack_type: StackType
    date: datetime.datetime


@dataclass
class _Entry:
    order: int
    id: str
    file_name: str
    date: datetime.datetime

    @property
    def dir(self) -> str:
        return os.path.dirname(self.file_name)

    @property
    def stem(self) -> str:
        return os.path.splitext(os.path.basename(self.file_name))[0]

    @property
    def ext(self) -> str:
        return os.path.splitext(self.file_name)[1].lower()


def parse_burst_name(file_name: str) -> Optional[Tuple[str, int, bool]]:
    """
    Return (base, sequence, is_cover) when the name follows a known burst
    convention, None otherwise.
    """
    stem = os.path.splitext(os.path.basename(file_name))[0]
    for rx in (_PIXEL_BURST, _HUAWEI_BURST, _SAMSUNG_BURST):
        m = rx.match(stem)
        if m:
            groups = m.groupdict()
            return groups["base"], int(groups["seq"]), bool(groups.get("cover"))
    return None


class StackBuilder:
    """
    Accumulates uploads in arrival order; stacks() computes the grouping.
    """

    def __init__(self):
        self._entries: List[_Entry] = []
        self._stacks: Optional[List[Stack]] = None

    def process_asset(self, asset_id: str, file_name: str, date_taken: Optional[datetime.datetime]):
        if date_taken is None:
            return
        self._entries.append(_Entry(len(self._entries), asset_id, file_name, date_taken))
        self._stacks = None

    def stacks(self) -> List[Stack]:
        if self._stacks is None:
            used: set = set()
            found: List[Tuple[int, Stack]] = []
            found.extend(self._raw_jpg_stacks(used))
            found.extend(self._burst_stacks(used))
            found.sort(key=lambda t: t[0])
            self._stacks = [s for _, s in found]
        return list(self._stacks)

    def _raw_jpg_stacks(self, used: set) -> List[Tuple[int, Stack]]:
        groups: Dict[Tuple[str, str], List[_Entry]] = {}
        for e in self._entries:
            if e.ext in RAW_EXTENSIONS or e.ext in COMPRESSED_EXTENSIONS:
                groups.setdefault((e.dir, e.stem), []).append(e)

        result = []
        for entries in groups.values():
            remaining = list(entries)
            while remaining:
                cover = next((e for e in remaining if e.ext in COMPRESSED_EXTENSIONS), None)
                if cover is None:
                    break
                members = [
                    e for e in remaining
                    if e is cover or (e.ext in RAW_EXTENSIONS and compare_date(e.date, cover.date) == 0)
                ]
                remaining = [e for e in remaining if e not in members]
                if len(members) < 2:
                    continue
                result.append((min(e.order for e in members), self._make(cover, members, StackType.RAW_JPG)))
                used.update(e.order for e in members)
        return result

    def _burst_stacks(self, used: set) -> List[Tuple[int, Stack]]:
        groups: Dict[Tuple[str, str], List[Tuple[int, bool, _Entry]]] = {}
        for e in self._entries:
            if e.order in used:
                continue
            parsed = parse_burst_name(e.file_name)
            if parsed is None:
                continue
            base, seq, is_cover = parsed
            groups.setdefault((e.dir, base), []).append((seq, is_cover, e))

        result = []
        for members in groups.values():
            members.sort(key=lambda m: (m[2].date, m[0]))
            run = [members[0]]
            for m in members[1:]:
                if m[2].date - run[-1][2].date > BURST_WINDOW:
                    result.extend(self._burst_run(run))
                    run = []
                run.append(m)
            result.extend(self._burst_run(run))
        return result

    def _burst_run(self, run) -> List[Tuple[int, Stack]]:
        if len(run) < 2:
            return []
        cover = next((e for _, is_cover, e in run if is_cover), run[0][2])
        entries = [e for _, _, e in run]
        return [(min(e.order for e in entries), self._make(cover, entries, StackType.BURST))]

    @staticmethod
    def _make(cover: _Entry, members: List[_Entry], stack_type: StackType) -> Stack:
        ordered = [cover] + [e for e in members if e is not cover]
        return Stack(
            cover_id=cover.id,
            ids=tuple(e.id for e in ordered),
            names=tuple(os.path.basename(e.file_name) for e in ordered),
            stack_type=stack_type,
            date=cover.date,
        )
