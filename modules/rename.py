# -*- coding: utf-8 -*-
import os
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from tqdm import tqdm

from modules.errors import InvalidConfiguration, ShareUnavailable, TransferError, DecodeError, RenameError, CleanupError
from modules.inspector import ImageInspector
from modules.report import BatchReport, EntryResult
from modules.share import RemoteShare, ShareEntry, join_share_path
from modules.staging import StagingArea

logger = logging.getLogger(__name__)

DEFAULT_RENAMING_STAGING_DIR = os.path.join("storage", "renaming", "temp")
DEFAULT_RENAME_ROOT = "to_be_renamed"
DEFAULT_EXCLUSIONS = ("original", "thumbs")

DESTINATION_MODES = {
    "parent": "Keep renamed files in their own directory",
    "top-level": "Move renamed files to the first two levels of their path",
}


def dimensioned_name(file_name: str, width: int, height: int) -> str:
    """'photo.psd' at 800x600 becomes 'photo_800x600.psd'. Splits on the last dot."""
    if "." not in file_name:
        return f"{file_name}_{width}x{height}"
    stem, ext = file_name.rsplit(".", 1)
    return f"{stem}_{width}x{height}.{ext}"


def destination_directory(entry_path: str, mode: str = "parent") -> str:
    parent_segments = join_share_path(entry_path).split("/")[:-1]
    if mode == "top-level":
        parent_segments = parent_segments[:2]
    return "/".join(parent_segments)


@dataclass
class RenameConfig:
    staging_dir: str = DEFAULT_RENAMING_STAGING_DIR
    root: str = DEFAULT_RENAME_ROOT
    exclusions: Tuple[str, ...] = DEFAULT_EXCLUSIONS
    destination_mode: str = "parent"
    dry_run: bool = False

    def __post_init__(self):
        if self.destination_mode not in DESTINATION_MODES:
            raise InvalidConfiguration(
                f"Destination mode must be one of {', '.join(DESTINATION_MODES)}, got '{self.destination_mode}'"
            )
        self.exclusions = tuple(e.lower() for e in self.exclusions if e)


@dataclass(frozen=True)
class RenameJob:
    source_entry: ShareEntry
    width: int
    height: int
    destination_path: str
    destination_name: str

    @property
    def target_path(self) -> str:
        return join_share_path(self.destination_path, self.destination_name)


class RenameTraversal:
    """
    Walks the share depth-first from the root directory and appends each image's
    pixel dimensions to its file name. Excluded names are neither renamed nor
    descended into. Per-file failures are recorded and the walk continues.
    """

    def __init__(self, share: RemoteShare, inspector: ImageInspector, config: RenameConfig,
                 show_progress: bool = True):
        self.share = share
        self.inspector = inspector
        self.config = config
        self.staging = StagingArea(config.staging_dir)
        self.show_progress = show_progress

    def is_excluded(self, entry: ShareEntry) -> bool:
        name = entry.name.lower()
        return any(token in name for token in self.config.exclusions)

    def create_job(self, entry: ShareEntry, width: int, height: int) -> RenameJob:
        return RenameJob(
            source_entry=entry,
            width=width,
            height=height,
            destination_path=destination_directory(entry.path, self.config.destination_mode),
            destination_name=dimensioned_name(entry.name, width, height),
        )

    def run(self) -> BatchReport:
        report = BatchReport("Rename")
        root_entries = self.share.list(self.config.root)
        logger.info(f"Processing path {self.config.root}... ({len(root_entries)} entries)")

        # One iterator per open directory keeps the walk pre-order without recursion.
        stack: List[Iterator[ShareEntry]] = [iter(root_entries)]
        with tqdm(desc="Renaming", unit="entry", disable=not self.show_progress) as pbar:
            while stack:
                entry = next(stack[-1], None)
                if entry is None:
                    stack.pop()
                    continue

                if self.is_excluded(entry):
                    report.record(EntryResult.skipped(entry.path, f"Skipping item: {entry.path}"))
                elif entry.is_directory:
                    children = self._list_directory(entry, report)
                    if children is not None:
                        stack.append(iter(children))
                else:
                    report.record(self._visit_file(entry))
                pbar.update(1)

        logger.info(f"Renaming complete. Renamed: {report.succeeded}, Skipped: {report.skipped}, Failed: {report.failed}")
        return report

    def _list_directory(self, entry: ShareEntry, report: BatchReport) -> Optional[List[ShareEntry]]:
        logger.info(f"Item {entry.name} is a directory, checking for files...")
        try:
            children = self.share.list(entry.path)
        except ShareUnavailable as e:
            report.record(EntryResult.failed(entry.path, e))
            return None
        logger.info(f"Processing path {entry.path}... ({len(children)} entries)")
        return children

    def _visit_file(self, entry: ShareEntry) -> EntryResult:
        try:
            return self.process_file(entry)
        except Exception as e:
            logger.critical(f"Unexpected error renaming '{entry.path}': {e}",
                            exc_info=logger.isEnabledFor(logging.DEBUG))
            return EntryResult.failed(entry.path, e)

    def process_file(self, entry: ShareEntry) -> EntryResult:
        logger.debug(f"Found file {entry.name} - renaming...")
        local_path = self.staging.path_for(entry)
        cleanup_error = None
        try:
            result = self._rename(entry, local_path)
        finally:
            try:
                self.staging.release(local_path)
            except CleanupError as e:
                cleanup_error = e
        if cleanup_error is not None:
            result = result.with_warning(str(cleanup_error))
        return result

    def _rename(self, entry: ShareEntry, local_path: str) -> EntryResult:
        try:
            self.share.download(entry.path, local_path)
        except TransferError as e:
            return EntryResult.failed(entry.path, e, "Error getting copy of file - skipping")

        try:
            image = self.inspector.decode(local_path)
        except DecodeError as e:
            return EntryResult.failed(entry.path, e, "Error creating file object")

        width, height = self.inspector.dimensions(image)
        job = self.create_job(entry, width, height)

        if self.config.dry_run:
            return EntryResult.skipped(entry.path, f"[DRY RUN] Would rename to {job.target_path}")

        try:
            self.share.rename(entry.path, job.target_path, entry)
        except RenameError as e:
            return EntryResult.failed(entry.path, e, "Error renaming file")

        return EntryResult.success(entry.path, f"Renamed to {job.destination_name}", target=job.target_path)
