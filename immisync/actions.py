"""
Turn an upload advice into the list of steps the driver must carry out.

Every function here is pure: it reads the advice, the local asset and the
options, and returns actions. The driver's executor performs them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from immisync.advice import Advice, AdviceCode
from immisync.daterange import DateRange
from immisync.journal import Action as JournalAction
from immisync.models import LocalAlbum, LocalAsset, ServerAsset


@dataclass
class UploadOptions:
    dry_run: bool = False
    delete: bool = False
    create_albums: bool = True
    create_album_folder: bool = False
    import_into_album: str = ""
    partner_album: str = ""
    keep_partner: bool = True
    keep_trashed: bool = False
    keep_untitled: bool = False
    use_folder_as_album_name: bool = False
    discard_archived: bool = False
    from_album: str = ""
    date_range: DateRange = field(default_factory=DateRange)
    create_stacks: bool = True
    stack_jpg_raw: bool = True
    stack_burst: bool = True
    select_types: List[str] = field(default_factory=list)
    exclude_types: List[str] = field(default_factory=list)


# === ACTIONS ===

@dataclass(frozen=True)
class Upload:
    asset: LocalAsset
    delete_local_on_success: bool = False
    # server copy to remove if this upload, meant to replace it, fails
    on_failure_delete_server: Optional[ServerAsset] = None


@dataclass(frozen=True)
class AddToAlbum:
    album: str
    # None: the ID returned by the upload of the same plan
    asset_id: Optional[str] = None


@dataclass(frozen=True)
class UpdateMetadata:
    asset: LocalAsset
    asset_id: Optional[str] = None


@dataclass(frozen=True)
class QueueLocalDelete:
    asset: LocalAsset


@dataclass(frozen=True)
class Note:
    kind: JournalAction
    comment: str = ""


@dataclass(frozen=True)
class Undecided:
    advice: Advice


# === SELECTION ===

def _ext(file_name: str) -> str:
    return os.path.splitext(file_name)[1].lower()


def _normalize_types(types: List[str]) -> set:
    return {t.lower() if t.startswith(".") else "." + t.lower() for t in types if t}


def album_name(al: LocalAlbum, options: UploadOptions) -> str:
    name = al.name
    if options.use_folder_as_album_name and al.path:
        name = os.path.basename(al.path.rstrip("/"))
    elif options.keep_untitled and not name:
        name = os.path.basename(al.path.rstrip("/"))
    return name


def select(la: LocalAsset, options: UploadOptions) -> Optional[str]:
    """
    Return why la is excluded from the run, or None when it is selected.
    """
    ext = _ext(la.file_name)
    if options.select_types and ext not in _normalize_types(options.select_types):
        return "extension not selected"
    if ext in _normalize_types(options.exclude_types):
        return "extension excluded"
    if not options.keep_partner and la.from_partner:
        return "partners asset excluded"
    if not options.keep_trashed and la.trashed:
        return "trashed asset excluded"
    if options.from_album and not any(album_name(al, options) == options.from_album for al in la.albums):
        return "asset excluded because not from the required album"
    if options.discard_archived and la.archived:
        return "asset excluded because archives are discarded"
    if options.date_range.is_set():
        if la.date_taken is None:
            return "asset excluded because the date of capture is unknown and a date range is given"
        if not options.date_range.in_range(la.date_taken):
            return "asset excluded because the date of capture out of the date range"
    return None


def album_names_for(la: LocalAsset, options: UploadOptions) -> List[str]:
    """
    Albums the asset should end up in, in order and without repeats.
    """
    if options.import_into_album:
        return [options.import_into_album]

    names: List[str] = []
    if options.create_albums:
        names.extend(album_name(al, options) for al in la.albums)
    if options.partner_album and la.from_partner:
        names.append(options.partner_album)
    if options.create_album_folder:
        folder = os.path.basename(os.path.dirname(la.file_name))
        if folder not in ("", "."):
            names.append(folder)
    return list(dict.fromkeys(n for n in names if n))


def should_update_metadata(la: LocalAsset) -> bool:
    """
    True when the local asset asserts something the upload alone does not
    carry. A date guessed from the file modification time asserts nothing.
    """
    return bool(
        la.description
        or la.favorite
        or la.archived
        or la.has_location()
        or la.has_asserted_date()
    )


# === DISPATCH ===

def _album_steps(la: LocalAsset, options: UploadOptions, asset_id: Optional[str]) -> List:
    names = album_names_for(la, options)
    if not names:
        return []
    steps: List = [Note(JournalAction.ALBUM, ", ".join(names))]
    steps.extend(AddToAlbum(n, asset_id) for n in names)
    return steps


def _metadata_steps(la: LocalAsset, options: UploadOptions, asset_id: Optional[str]) -> List:
    if options.dry_run or not should_update_metadata(la):
        return []
    return [UpdateMetadata(la, asset_id)]


def plan_not_on_server(advice: Advice, la: LocalAsset, options: UploadOptions) -> List:
    steps: List = [Upload(la, delete_local_on_success=options.delete)]
    steps.extend(_album_steps(la, options, None))
    steps.extend(_metadata_steps(la, options, None))
    return steps


def plan_smaller_on_server(advice: Advice, la: LocalAsset, options: UploadOptions) -> List:
    sa = advice.server_asset
    steps: List = [Note(JournalAction.UPGRADED, advice.message)]
    carried = [al.name for al in sa.albums if al.name]
    for name in carried:
        steps.append(Note(JournalAction.INFO, "Added to album: " + name))
    steps.append(Upload(la, delete_local_on_success=options.delete, on_failure_delete_server=sa))
    names = list(dict.fromkeys(carried + album_names_for(la, options)))
    if names:
        steps.append(Note(JournalAction.ALBUM, ", ".join(names)))
        steps.extend(AddToAlbum(name, None) for name in names)
    steps.extend(_metadata_steps(la, options, None))
    return steps


def plan_better_on_server(advice: Advice, la: LocalAsset, options: UploadOptions) -> List:
    sa = advice.server_asset
    steps: List = [Note(JournalAction.SERVER_BETTER, advice.message)]
    steps.extend(_album_steps(la, options, sa.id))
    return steps


def plan_same_on_server(advice: Advice, la: LocalAsset, options: UploadOptions) -> List:
    sa = advice.server_asset
    if sa.just_uploaded:
        # the same file was met earlier in this run
        steps: List = [Note(JournalAction.LOCAL_DUPLICATE)]
        steps.extend(_album_steps(la, options, sa.id))
        return steps

    steps = [Note(JournalAction.SERVER_DUPLICATE, advice.message)]
    steps.extend(_album_steps(la, options, sa.id))
    if options.delete:
        steps.append(QueueLocalDelete(la))
    return steps


def plan_i_dont_know(advice: Advice, la: LocalAsset, options: UploadOptions) -> List:
    return [Undecided(advice)]


_PLANNERS: Dict[AdviceCode, Callable[[Advice, LocalAsset, UploadOptions], List]] = {
    AdviceCode.NOT_ON_SERVER: plan_not_on_server,
    AdviceCode.SMALLER_ON_SERVER: plan_smaller_on_server,
    AdviceCode.BETTER_ON_SERVER: plan_better_on_server,
    AdviceCode.SAME_ON_SERVER: plan_same_on_server,
    AdviceCode.I_DONT_KNOW: plan_i_dont_know,
}


def plan(advice: Advice, la: LocalAsset, options: UploadOptions) -> List:
    return _PLANNERS[advice.code](advice, la, options)
