"""
Upload advice: decide how a local asset relates to what the server holds.

The server may hold several assets with the same name, which happens with
camera-generated names, or the same picture at a lower resolution. Identity
is checked first through the device asset ID, then same-named candidates are
compared by capture date and size.
"""

from __future__ import annotations

import datetime
import enum
import math
from dataclasses import dataclass
from typing import Optional

from immisync.asset_index import AssetIndex, normalize_name
from immisync.models import LocalAsset, ServerAsset

DATE_TOLERANCE = datetime.timedelta(minutes=5)

_SIZE_SUFFIXES = ["B", "KB", "MB", "GB"]


class AdviceCode(enum.Enum):
    I_DONT_KNOW = "IDontKnow"
    SMALLER_ON_SERVER = "SmallerOnServer"
    BETTER_ON_SERVER = "BetterOnServer"
    SAME_ON_SERVER = "SameOnServer"
    NOT_ON_SERVER = "NotOnServer"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Advice:
    code: AdviceCode
    message: str
    server_asset: Optional[ServerAsset] = None
    local_asset: Optional[LocalAsset] = None


def format_bytes(size: int) -> str:
    """
    Human readable size in binary units: 500 -> "500 B", 1536 -> "1.5 KB".
    """
    value = float(size)
    base = 1024.0
    if value < base:
        return f"{value:.0f} {_SIZE_SUFFIXES[0]}"
    exp = 0
    while value >= base and exp < len(_SIZE_SUFFIXES) - 1:
        value /= base
        exp += 1
    # half away from zero
    return f"{math.floor(value * 10 + 0.5) / 10:.1f} {_SIZE_SUFFIXES[exp]}"


def compare_date(d1: Optional[datetime.datetime], d2: Optional[datetime.datetime]) -> int:
    """
    Compare capture dates with a tolerance for clock skew: returns 0 when
    the dates are less than 5 minutes apart, otherwise -1 or +1. An unknown date only
    matches another unknown date.
    """
    if d1 is None or d2 is None:
        if d1 is None and d2 is None:
            return 0
        return -1 if d1 is None else 1
    if (d1.tzinfo is None) != (d2.tzinfo is None):
        # naive dates are local time
        d1 = d1.astimezone(datetime.timezone.utc)
        d2 = d2.astimezone(datetime.timezone.utc)
    diff = d1 - d2
    if diff <= -DATE_TOLERANCE:
        return -1
    if diff >= DATE_TOLERANCE:
        return 1
    return 0


def _describe(sa: ServerAsset) -> str:
    date = sa.date_taken.strftime("%Y-%m-%d %H:%M:%S") if sa.date_taken else "unknown"
    return f'name:"{sa.original_file_name}", date:"{date}"'


def advice_i_dont_know(la: LocalAsset) -> Advice:
    return Advice(
        AdviceCode.I_DONT_KNOW,
        f'Can\'t decide what to do with "{la.file_name}". Check this file',
        local_asset=la,
    )


def advice_same_on_server(sa: ServerAsset) -> Advice:
    return Advice(
        AdviceCode.SAME_ON_SERVER,
        f"An asset with the same {_describe(sa)} and size:{format_bytes(sa.size)} "
        "exists on the server. No need to upload.",
        server_asset=sa,
    )


def advice_smaller_on_server(sa: ServerAsset) -> Advice:
    return Advice(
        AdviceCode.SMALLER_ON_SERVER,
        f"An asset with the same {_describe(sa)} but with smaller size:{format_bytes(sa.size)} "
        "exists on the server. Replace it.",
        server_asset=sa,
    )


def advice_better_on_server(sa: ServerAsset) -> Advice:
    return Advice(
        AdviceCode.BETTER_ON_SERVER,
        f"An asset with the same {_describe(sa)} but with bigger size:{format_bytes(sa.size)} "
        "exists on the server. No need to upload.",
        server_asset=sa,
    )


def advice_not_on_server() -> Advice:
    return Advice(AdviceCode.NOT_ON_SERVER, "This a new asset, upload it.")


def should_upload(index: AssetIndex, la: LocalAsset) -> Advice:
    """
    Return the advice for la against the current index. Pure: the index and
    the asset are only read.

    The first same-named candidate whose date matches decides; later
    candidates are not ranked.
    """
    filename = la.effective_name()

    sa = index.by_id.get(la.device_asset_id())
    if sa is not None:
        return advice_same_on_server(sa)

    candidates = index.by_name.get(normalize_name(filename), [])
    if candidates:
        if la.size is None:
            return advice_i_dont_know(la)
        for sa in candidates:
            if compare_date(la.date_taken, sa.date_taken) != 0:
                continue
            size_diff = la.size - sa.size
            if size_diff == 0:
                return advice_same_on_server(sa)
            if size_diff > 0:
                return advice_smaller_on_server(sa)
            return advice_better_on_server(sa)

    return advice_not_on_server()


evaluate = should_upload
