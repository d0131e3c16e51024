# -*- coding: utf-8 -*-
import os
import logging
from dataclasses import dataclass
from typing import Any, Tuple

from tqdm import tqdm

from modules.errors import InvalidConfiguration, TransferError, DecodeError, EncodeError, CleanupError
from modules.inspector import ImageInspector, SUPPORTED_OUTPUT_FORMATS
from modules.report import BatchReport, EntryResult
from modules.share import RemoteShare, ShareEntry, join_share_path
from modules.staging import StagingArea

logger = logging.getLogger(__name__)

DEFAULT_CONVERSION_STAGING_DIR = os.path.join("storage", "conversions", "temp")
DEFAULT_SOURCE_DIR = "Conversion"
DEFAULT_DESTINATION_DIR = "Converted"
DEFAULT_SKIP_SUBSTRINGS = ("insitu",)
STRIPPED_NAME_PREFIX = "input"
MAX_QUALITY = 100


def parse_quality(value: Any) -> int:
    """Accepts an int or numeric string holding a whole number in [0, 100]."""
    if isinstance(value, bool):
        raise InvalidConfiguration("Quality must be a number between 0 and 100")
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidConfiguration(f"Quality must be a number between 0 and 100, got '{value}'")
    if not number.is_integer() or not 0 <= number <= MAX_QUALITY:
        raise InvalidConfiguration(f"Quality must be a whole number between 0 and 100, got '{value}'")
    return int(number)


def derive_output_name(file_name: str, output_format: str) -> str:
    """
    Builds the converted file name: final extension stripped, a leading
    'input' token removed, and the output format appended.

    'input_foo.psd' converted to png becomes '_foo.png'.
    """
    stem = file_name.rsplit(".", 1)[0] if "." in file_name else file_name
    if stem.startswith(STRIPPED_NAME_PREFIX):
        stem = stem[len(STRIPPED_NAME_PREFIX):]
    return f"{stem}.{output_format}"


@dataclass
class ConversionConfig:
    output_format: str
    quality: Any
    staging_dir: str = DEFAULT_CONVERSION_STAGING_DIR
    source_dir: str = DEFAULT_SOURCE_DIR
    destination_dir: str = DEFAULT_DESTINATION_DIR
    skip_substrings: Tuple[str, ...] = DEFAULT_SKIP_SUBSTRINGS
    force_max_quality: bool = False # Encode at 100 whatever quality was requested.

    def __post_init__(self):
        if not isinstance(self.output_format, str) or self.output_format.lower() not in SUPPORTED_OUTPUT_FORMATS:
            raise InvalidConfiguration(
                f"Output format must be one of {', '.join(SUPPORTED_OUTPUT_FORMATS)}, got '{self.output_format}'"
            )
        self.output_format = self.output_format.lower()
        self.quality = parse_quality(self.quality)
        self.skip_substrings = tuple(s.lower() for s in self.skip_substrings)

    @property
    def encode_quality(self) -> int:
        return MAX_QUALITY if self.force_max_quality else self.quality


@dataclass(frozen=True)
class ConversionJob:
    source_entry: ShareEntry
    output_format: str
    quality: int
    derived_file_name: str


class ConversionPipeline:
    """
    Converts every image in a flat share directory to one output format.

    Each entry runs fetch -> transform -> publish -> cleanup on its own; a
    failure in any step is recorded for that entry and the batch moves on.
    Only an invalid configuration or an unlistable source directory stops
    the run.
    """

    def __init__(self, share: RemoteShare, inspector: ImageInspector, config: ConversionConfig,
                 show_progress: bool = True):
        self.share = share
        self.inspector = inspector
        self.config = config
        self.staging = StagingArea(config.staging_dir)
        self.show_progress = show_progress

    def is_skipped(self, entry: ShareEntry) -> bool:
        name = entry.name.lower()
        return any(token in name for token in self.config.skip_substrings)

    def create_job(self, entry: ShareEntry) -> ConversionJob:
        return ConversionJob(
            source_entry=entry,
            output_format=self.config.output_format,
            quality=self.config.quality,
            derived_file_name=derive_output_name(entry.name, self.config.output_format),
        )

    def destination_path(self, job: ConversionJob) -> str:
        return join_share_path(self.config.destination_dir, job.derived_file_name)

    def run(self) -> BatchReport:
        report = BatchReport("Conversion")
        entries = self.share.list(self.config.source_dir)
        logger.info(f"{len(entries)} files will be converted to {self.config.output_format.upper()}. Starting conversion...")
        if self.config.force_max_quality and self.config.quality != MAX_QUALITY:
            logger.warning(f"Requested quality {self.config.quality} is overridden; encoding at {MAX_QUALITY}.")

        with tqdm(total=len(entries), desc="Converting", unit="file", disable=not self.show_progress) as pbar:
            for entry in entries:
                try:
                    result = self.process_entry(entry)
                except Exception as e:
                    logger.critical(f"Unexpected error converting '{entry.path}': {e}",
                                    exc_info=logger.isEnabledFor(logging.DEBUG))
                    result = EntryResult.failed(entry.path, e)
                report.record(result)
                pbar.update(1)

        logger.info(f"Conversion complete. Converted: {report.succeeded}, Skipped: {report.skipped}, Failed: {report.failed}")
        return report

    def process_entry(self, entry: ShareEntry) -> EntryResult:
        if self.is_skipped(entry):
            return EntryResult.skipped(entry.path, f"Skipping {entry.name}")
        if entry.is_directory:
            return EntryResult.skipped(entry.path, f"'{entry.name}' is a directory, not converted")

        job = self.create_job(entry)
        local_path = self.staging.path_for(entry)
        cleanup_error = None
        try:
            result = self._convert(job, local_path)
        finally:
            try:
                self.staging.release(local_path)
            except CleanupError as e:
                cleanup_error = e
        if cleanup_error is not None:
            result = result.with_warning(str(cleanup_error))
        return result

    def _convert(self, job: ConversionJob, local_path: str) -> EntryResult:
        entry = job.source_entry
        try:
            self.share.download(entry.path, local_path)
        except TransferError as e:
            return EntryResult.failed(entry.path, e, f"Could not read file {entry.name} - skipping")

        try:
            image = self.inspector.decode(local_path)
            data = self.inspector.encode(image, job.output_format, self.config.encode_quality)
        except (DecodeError, EncodeError) as e:
            return EntryResult.failed(entry.path, e, f"Was able to read file {entry.name}, but could not convert - skipping")

        destination = self.destination_path(job)
        try:
            self.share.upload(data, destination)
        except TransferError as e:
            return EntryResult.failed(entry.path, e, f"Was able to convert file {entry.name}, but could not save to share - moving on")

        return EntryResult.success(entry.path, f"Successfully converted {entry.name}", target=destination)
