import queue
import threading
import uuid
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from loguru import logger

from immisync import actions
from immisync.actions import UploadOptions
from immisync.advice import Advice, should_upload
from immisync.albums import AlbumReconciler
from immisync.asset_index import AssetIndex
from immisync.errors import ImmichError, LocalAssetError, ReconcileError, SyncCancelled
from immisync.journal import Action, Journal
from immisync.local_store import AssetProducer, delete_local_file
from immisync.models import LocalAsset, ServerAlbum, ServerAsset
from immisync.stacking import Stack, StackBuilder, StackType


@dataclass
class RunContext:
    """
    Run-scoped state: counters, deferred deletions, desired albums, stacks.
    """

    journal: Journal
    albums: AlbumReconciler = field(default_factory=AlbumReconciler)
    stacks: Optional[StackBuilder] = None
    media_count: int = 0
    media_uploaded: int = 0
    delete_server_list: List[ServerAsset] = field(default_factory=list)
    delete_local_list: List[LocalAsset] = field(default_factory=list)


class UploadSync:
    """
    Main class orchestrating an upload run:
     - index the server's assets
     - decide, per local asset, to upload, skip, replace or merge albums
     - stack uploaded variants
     - reconcile albums
     - deferred deletions
    """

    def __init__(self, client, options: UploadOptions = None, journal: Journal = None):
        self.client = client
        self.options = options or UploadOptions()
        self.index: Optional[AssetIndex] = None

        stacks = None
        if self.options.create_stacks or self.options.stack_burst or self.options.stack_jpg_raw:
            stacks = StackBuilder()
        self.ctx = RunContext(journal=journal or Journal(), stacks=stacks)

    @property
    def journal(self) -> Journal:
        return self.ctx.journal

    def load_index(self) -> AssetIndex:
        """
        Fetch the server catalogue. Any failure aborts the run.
        """
        logger.info("Ask for server's assets...")
        self.index = AssetIndex.from_server(self.client)
        return self.index

    # -----------------------------
    # 1) CORE OPERATIONS
    # -----------------------------

    def evaluate(self, la: LocalAsset) -> Advice:
        return should_upload(self.index, la)

    def register_uploaded(self, la: LocalAsset, server_id: str):
        self.index.add_local_asset(la, server_id)
        self.ctx.media_uploaded += 1
        if self.ctx.stacks is not None:
            self.ctx.stacks.process_asset(server_id, la.file_name, la.date_taken)

    def add_desired_album_membership(self, album: str, asset_id: str):
        self.ctx.albums.add_desired(album, asset_id)

    def finalize_stacks(self) -> List[Stack]:
        """
        Emit the stacks built during the run, honoring the stack type flags,
        and create them on the server.
        """
        if self.ctx.stacks is None:
            return []
        emitted = []
        for s in self.ctx.stacks.stacks():
            if s.stack_type == StackType.BURST and not self.options.stack_burst:
                continue
            if s.stack_type == StackType.RAW_JPG and not self.options.stack_jpg_raw:
                continue
            emitted.append(s)

        if emitted:
            logger.info("Creating stacks")
        for s in emitted:
            logger.info("  Stacking {}...", ", ".join(s.names))
            if self.options.dry_run:
                continue
            try:
                self.client.stack_assets(s.cover_id, list(s.ids))
                self.journal.add_entry(s.names[0], Action.STACKED, ", ".join(s.names[1:]))
            except ImmichError as e:
                logger.warning("Can't stack images: {}", e)
        return emitted

    def reconcile(self, server_albums: Iterable[ServerAlbum] = None):
        """
        Apply the desired album membership. Raises ReconcileError listing
        every album that failed.
        """
        if not len(self.ctx.albums):
            return
        logger.info("Managing albums")
        if server_albums is None:
            server_albums = self.client.get_all_albums()

        if self.options.dry_run:
            self.ctx.albums.reconcile(server_albums, self._dry_add, self._dry_create)
        else:
            self.ctx.albums.reconcile(
                server_albums, self.client.add_assets_to_album, self.client.create_album
            )

    @staticmethod
    def _dry_add(album_id: str, ids: List[str]):
        logger.info("Update album {} skipped - dry run mode", album_id)
        return []

    @staticmethod
    def _dry_create(name: str, ids: List[str]):
        logger.info("Create the album {} skipped - dry run mode", name)

    # -----------------------------
    # 2) PER ASSET PIPELINE
    # -----------------------------

    def handle_asset(self, la: LocalAsset):
        self.ctx.media_count += 1

        reason = actions.select(la, self.options)
        if reason:
            self.journal.add_entry(la.file_name, Action.NOT_SELECTED, reason)
            return

        logger.debug("handleAsset: {}", la)
        advice = self.evaluate(la)
        self.execute(la, actions.plan(advice, la, self.options))

    def execute(self, la: LocalAsset, steps: List):
        """
        Carry out planned steps in order. A failed upload ends the plan:
        nothing that depends on the new ID is attempted.
        """
        uploaded_id = None
        for step in steps:
            if isinstance(step, actions.Note):
                self.journal.add_entry(la.file_name, step.kind, step.comment)

            elif isinstance(step, actions.Undecided):
                self.journal.add_entry(la.file_name, Action.UNDECIDED, step.advice.message)

            elif isinstance(step, actions.Upload):
                try:
                    uploaded_id = self.upload_asset(step.asset)
                except (ImmichError, LocalAssetError, OSError) as e:
                    self.journal.add_entry(la.file_name, Action.SERVER_ERROR, str(e))
                    if step.on_failure_delete_server is not None:
                        self.ctx.delete_server_list.append(step.on_failure_delete_server)
                    break
                if step.delete_local_on_success:
                    self.ctx.delete_local_list.append(step.asset)

            elif isinstance(step, actions.AddToAlbum):
                asset_id = step.asset_id or uploaded_id
                if asset_id is not None:
                    self.add_desired_album_membership(step.album, asset_id)

            elif isinstance(step, actions.UpdateMetadata):
                asset_id = step.asset_id or uploaded_id
                if asset_id is None:
                    continue
                try:
                    self.client.update_asset(asset_id, step.asset)
                except ImmichError as e:
                    self.journal.add_entry(la.file_name, Action.ERROR, f"can't update the asset: {e}")

            elif isinstance(step, actions.QueueLocalDelete):
                self.ctx.delete_local_list.append(step.asset)

    def upload_asset(self, la: LocalAsset) -> str:
        """
        Upload la and return its server ID. In dry-run mode a random ID is
        returned so that albums and stacks are still computed.
        """
        if self.options.dry_run:
            server_id, duplicate = str(uuid.uuid4()), False
        else:
            resp = self.client.upload_asset(la)
            server_id, duplicate = resp.id, resp.duplicate

        if duplicate:
            self.journal.add_entry(la.file_name, Action.SERVER_DUPLICATE, "already on the server")
        else:
            self.journal.add_entry(la.file_name, Action.UPLOADED, la.title)
            self.register_uploaded(la, server_id)
        return server_id

    # -----------------------------
    # 3) RUN
    # -----------------------------

    def run(self, producer: AssetProducer, cancel: threading.Event = None) -> str:
        """
        Consume the producer's assets, then finalize: stacks, albums,
        deletions, report. Raises SyncCancelled when cancel is set before
        the stream ends; nothing is finalized in that case.
        """
        if self.index is None:
            self.load_index()

        logger.info("Browsing...")
        if producer.ident is None:
            producer.start()

        while True:
            try:
                la = producer.queue.get(timeout=0.5)
            except queue.Empty:
                if cancel is not None and cancel.is_set():
                    producer.stop()
                    raise SyncCancelled("run cancelled")
                continue
            if la is None:
                break
            if cancel is not None and cancel.is_set():
                producer.stop()
                raise SyncCancelled("run cancelled")
            try:
                self.handle_asset(la)
            except (ImmichError, LocalAssetError, OSError) as e:
                self.journal.add_entry(la.file_name, Action.ERROR, str(e))

        if producer.error is not None:
            logger.error("Source browsing stopped early: {}", producer.error)

        return self.finish()

    def finish(self) -> str:
        self.finalize_stacks()

        try:
            self.reconcile()
        except ReconcileError as e:
            logger.error("{}", e)
        except ImmichError as e:
            logger.error("can't get the album list from the server: {}", e)

        delete_error = None
        if self.ctx.delete_server_list:
            try:
                self.delete_server_assets([a.id for a in self.ctx.delete_server_list])
            except ImmichError as e:
                delete_error = e

        if self.ctx.delete_local_list:
            self.delete_local_assets()

        report = self.journal.report()
        if delete_error is not None:
            raise delete_error
        return report

    # -----------------------------
    # 4) DELETIONS
    # -----------------------------

    def delete_server_assets(self, ids: List[str]):
        logger.warning("{} server assets to delete.", len(ids))
        if self.options.dry_run:
            logger.warning("{} server assets to delete. skipped dry-run mode", len(ids))
            return
        self.client.delete_assets(ids, False)

    def delete_local_assets(self):
        logger.info("{} local assets to delete.", len(self.ctx.delete_local_list))
        for la in self.ctx.delete_local_list:
            if self.options.dry_run:
                logger.warning("file \"{}\" not deleted, dry run mode", la.title)
                continue
            if la.full_path is None:
                continue
            try:
                delete_local_file(la.full_path)
            except OSError as e:
                self.journal.add_entry(la.file_name, Action.ERROR, f"can't delete the file: {e}")
