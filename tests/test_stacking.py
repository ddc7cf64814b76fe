from __future__ import annotations

import datetime

from conftest import T0
from immisync.stacking import StackBuilder, StackType, parse_burst_name

SEC = datetime.timedelta(seconds=1)


def test_raw_and_jpeg_pair_with_jpeg_cover() -> None:
    sb = StackBuilder()
    sb.process_asset("raw", "IMG_0001.CR2", T0)
    sb.process_asset("jpg", "IMG_0001.JPG", T0)
    stacks = sb.stacks()
    assert len(stacks) == 1
    s = stacks[0]
    assert s.stack_type is StackType.RAW_JPG
    assert s.cover_id == "jpg"
    assert s.ids == ("jpg", "raw")
    assert s.names == ("IMG_0001.JPG", "IMG_0001.CR2")


def test_pair_needs_matching_dates() -> None:
    sb = StackBuilder()
    sb.process_asset("raw", "IMG_0001.CR2", T0)
    sb.process_asset("jpg", "IMG_0001.JPG", T0 + datetime.timedelta(hours=1))
    assert sb.stacks() == []


def test_pair_needs_same_folder() -> None:
    sb = StackBuilder()
    sb.process_asset("raw", "a/IMG_0001.CR2", T0)
    sb.process_asset("jpg", "b/IMG_0001.JPG", T0)
    assert sb.stacks() == []


def test_two_compressed_files_are_not_a_pair() -> None:
    sb = StackBuilder()
    sb.process_asset("jpg", "IMG_0001.JPG", T0)
    sb.process_asset("heic", "IMG_0001.HEIC", T0)
    assert sb.stacks() == []


def test_unknown_date_is_never_stacked() -> None:
    sb = StackBuilder()
    sb.process_asset("raw", "IMG_0001.CR2", None)
    sb.process_asset("jpg", "IMG_0001.JPG", T0)
    assert sb.stacks() == []


def test_huawei_burst_uses_cover_flag() -> None:
    sb = StackBuilder()
    sb.process_asset("b1", "IMG_20231014_183246_BURST001.jpg", T0)
    sb.process_asset("b2", "IMG_20231014_183246_BURST002_COVER.jpg", T0 + SEC)
    sb.process_asset("b3", "IMG_20231014_183246_BURST003.jpg", T0 + SEC)
    stacks = sb.stacks()
    assert len(stacks) == 1
    assert stacks[0].stack_type is StackType.BURST
    assert stacks[0].cover_id == "b2"
    assert set(stacks[0].ids) == {"b1", "b2", "b3"}


def test_samsung_burst_cover_is_first_captured() -> None:
    sb = StackBuilder()
    sb.process_asset("s2", "20231207_101605_002.jpg", T0)
    sb.process_asset("s1", "20231207_101605_001.jpg", T0)
    sb.process_asset("s3", "20231207_101605_003.jpg", T0 + SEC)
    stacks = sb.stacks()
    assert len(stacks) == 1
    assert stacks[0].cover_id == "s1"
    assert stacks[0].ids == ("s1", "s2", "s3")


def test_burst_split_on_time_gap() -> None:
    sb = StackBuilder()
    sb.process_asset("a", "20231207_101605_001.jpg", T0)
    sb.process_asset("b", "20231207_101605_002.jpg", T0 + SEC)
    sb.process_asset("c", "20231207_101605_003.jpg", T0 + 60 * SEC)
    stacks = sb.stacks()
    assert [s.ids for s in stacks] == [("a", "b")]


def test_raw_pair_takes_precedence_over_burst() -> None:
    sb = StackBuilder()
    sb.process_asset("raw1", "IMG_20231014_183246_BURST001.dng", T0)
    sb.process_asset("jpg1", "IMG_20231014_183246_BURST001.jpg", T0)
    sb.process_asset("jpg2", "IMG_20231014_183246_BURST002.jpg", T0 + SEC)
    stacks = sb.stacks()
    assert len(stacks) == 1
    assert stacks[0].stack_type is StackType.RAW_JPG
    assert stacks[0].cover_id == "jpg1"
    # jpg2 alone is not a burst
    assert all("jpg2" not in s.ids for s in stacks)


def test_every_id_in_at_most_one_stack() -> None:
    sb = StackBuilder()
    names = [
        "IMG_0001.CR2", "IMG_0001.JPG",
        "20231207_101605_001.jpg", "20231207_101605_002.jpg",
        "IMG_0002.JPG",
    ]
    for i, n in enumerate(names):
        sb.process_asset(f"id{i}", n, T0)
    stacks = sb.stacks()
    ids = [i for s in stacks for i in s.ids]
    assert len(ids) == len(set(ids))
    assert all(len(s.ids) >= 2 for s in stacks)
    assert [s.stack_type for s in stacks] == [StackType.RAW_JPG, StackType.BURST]


def test_stacks_is_idempotent() -> None:
    sb = StackBuilder()
    sb.process_asset("raw", "IMG_0001.NEF", T0)
    sb.process_asset("jpg", "IMG_0001.jpg", T0)
    assert sb.stacks() == sb.stacks()
    sb.process_asset("raw2", "IMG_0002.NEF", T0)
    sb.process_asset("jpg2", "IMG_0002.jpg", T0)
    assert len(sb.stacks()) == 2


def test_parse_burst_name() -> None:
    assert parse_burst_name("00001IMG_00001_BURST20210101153302_COVER.jpg") == ("20210101153302", 1, True)
    assert parse_burst_name("IMG_20231014_183246_BURST004.jpg") == ("IMG_20231014_183246", 4, False)
    assert parse_burst_name("20231207_101605_012.jpg") == ("20231207_101605", 12, False)
    assert parse_burst_name("IMG_0001.jpg") is None
