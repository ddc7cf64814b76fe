#!/usr/bin/env python3
"""
Entry point for the upload tool.
"""

import argparse
import sys
import threading
from pathlib import Path

from loguru import logger

from immisync.actions import UploadOptions
from immisync.auth import AuthManager
from immisync.config import LOG_DIR, load_user_config
from immisync.daterange import DateRange
from immisync.errors import ImmichSyncError, SyncCancelled
from immisync.local_store import AssetProducer
from immisync.logging import init_logging
from immisync.syncer import UploadSync


def _types(value: str) -> list:
    return [t.strip() for t in value.split(",") if t.strip()]


def build_parser(defaults: dict) -> argparse.ArgumentParser:
    up = defaults.get("upload", {})
    parser = argparse.ArgumentParser(
        prog="immisync",
        description="Upload photos and videos to an Immich server, without duplicates.",
    )
    parser.add_argument("paths", nargs="+", type=Path, help="Folders to upload")
    parser.add_argument("--config", type=Path, default=None, help="Path of sync_config.json")
    parser.add_argument("--dry-run", action="store_true", default=up.get("dry_run", False),
                        help="Display actions but don't touch source or destination")
    parser.add_argument("--delete", action="store_true", default=up.get("delete", False),
                        help="Delete local files once they are safely on the server")
    parser.add_argument("--album", default=up.get("album", ""),
                        help="All assets will be added to this album")
    parser.add_argument("--create-album-folder", action=argparse.BooleanOptionalAction,
                        default=up.get("create_album_folder", False),
                        help="Create albums named after each asset's parent folder")
    parser.add_argument("--create-albums", action=argparse.BooleanOptionalAction,
                        default=up.get("create_albums", True),
                        help="Create albums like there were in the source")
    parser.add_argument("--partner-album", default=up.get("partner_album", ""),
                        help="Partner's assets will be added to this album")
    parser.add_argument("--keep-partner", action=argparse.BooleanOptionalAction,
                        default=up.get("keep_partner", True), help="Import also partner's items")
    parser.add_argument("--keep-trashed", action=argparse.BooleanOptionalAction,
                        default=up.get("keep_trashed", False), help="Import also trashed items")
    parser.add_argument("--keep-untitled-albums", action=argparse.BooleanOptionalAction,
                        default=up.get("keep_untitled", False),
                        help="Keep untitled albums and import their content")
    parser.add_argument("--use-album-folder-as-name", action=argparse.BooleanOptionalAction,
                        default=up.get("use_folder_as_album_name", False),
                        help="Use folder name and ignore albums' title")
    parser.add_argument("--discard-archived", action=argparse.BooleanOptionalAction,
                        default=up.get("discard_archived", False), help="Do not import archived photos")
    parser.add_argument("--from-album", default="", help="Import only from this album")
    parser.add_argument("--date", default="",
                        help="Date of capture range: YYYY, YYYY-MM, YYYY-MM-DD or START,END")
    parser.add_argument("--create-stacks", action=argparse.BooleanOptionalAction,
                        default=up.get("create_stacks", True), help="Stack jpg/raw or bursts")
    parser.add_argument("--stack-jpg-raw", action=argparse.BooleanOptionalAction,
                        default=up.get("stack_jpg_raw", True), help="Control the stacking of jpg/raw photos")
    parser.add_argument("--stack-burst", action=argparse.BooleanOptionalAction,
                        default=up.get("stack_burst", True), help="Control the stacking of bursts")
    parser.add_argument("--select-types", type=_types, default=[],
                        help="List of selected extensions separated by a comma")
    parser.add_argument("--exclude-types", type=_types, default=[],
                        help="List of excluded extensions separated by a comma")
    parser.add_argument("--timeout", type=float, default=0,
                        help="Stop taking new assets after this many seconds")
    parser.add_argument("--log-level", default=defaults.get("log_level", "INFO"))
    parser.add_argument("--log-dir", type=Path, default=None,
                        help=f"Also write logs under this folder (e.g. {LOG_DIR})")
    return parser


def build_options(args: argparse.Namespace) -> UploadOptions:
    return UploadOptions(
        dry_run=args.dry_run,
        delete=args.delete,
        create_albums=args.create_albums,
        create_album_folder=args.create_album_folder,
        import_into_album=args.album,
        partner_album=args.partner_album,
        keep_partner=args.keep_partner,
        keep_trashed=args.keep_trashed,
        keep_untitled=args.keep_untitled_albums,
        use_folder_as_album_name=args.use_album_folder_as_name,
        discard_archived=args.discard_archived,
        from_album=args.from_album,
        date_range=DateRange.parse(args.date),
        create_stacks=args.create_stacks,
        stack_jpg_raw=args.stack_jpg_raw and args.create_stacks,
        stack_burst=args.stack_burst and args.create_stacks,
        select_types=args.select_types,
        exclude_types=args.exclude_types,
    )


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    # --config must be known before the other defaults are
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", type=Path, default=None)
    known, _ = pre.parse_known_args(argv)

    try:
        config = load_user_config(known.config)
        args = build_parser(config).parse_args(argv)
        init_logging(args.log_level, args.log_dir)
        options = build_options(args)

        for p in args.paths:
            if not p.is_dir():
                logger.error("{} is not a folder", p)
                return 1

        client = AuthManager(config).authenticate()
        syncer = UploadSync(client, options)
        syncer.load_index()
    except ImmichSyncError as e:
        logger.error("{}", e)
        return 1

    producer = AssetProducer.for_folders(args.paths)
    cancel = threading.Event()
    timer = None
    if args.timeout > 0:
        timer = threading.Timer(args.timeout, cancel.set)
        timer.daemon = True
        timer.start()

    try:
        syncer.run(producer, cancel)
    except (KeyboardInterrupt, SyncCancelled):
        producer.stop()
        logger.warning("Upload interrupted")
        syncer.journal.report()
        return 130
    except ImmichSyncError as e:
        logger.error("{}", e)
        return 1
    finally:
        if timer is not None:
            timer.cancel()

    print("\nAll sync operations complete!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
