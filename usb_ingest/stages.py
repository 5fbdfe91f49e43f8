"""Optional stages plugged into the copy orchestrator.

Each stage is a small object with a fixed method:

- duplicate check: ``is_duplicate(source, destination) -> bool``
- reorganizer: ``organize(source, base_dir) -> Path``
- post-run stage: ``after_run(result: RunResult) -> None``

The orchestrator owns the error handling around every call, so stages are
free to raise.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .actions import delete_files, eject_drive
from .db import HistoryDB
from .models import (
    CopyHistoryEntry,
    CopyStatus,
    RulesConfig,
    RunResult,
    ScheduledActionsConfig,
)
from .scanner import compute_file_hash

logger = logging.getLogger(__name__)

FILE_TYPES = {
    "image": {"jpg", "jpeg", "png", "gif", "heic", "raw", "cr2", "nef", "arw", "dng"},
    "video": {"mp4", "mov", "avi", "mkv", "webm", "flv", "wmv"},
    "audio": {"mp3", "wav", "flac", "aac", "ogg", "m4a"},
    "document": {"pdf", "doc", "docx", "txt", "rtf"},
}


def file_type(extension: str) -> str:
    """Classify a file extension (without the dot)."""
    extension = extension.lower()
    for kind, extensions in FILE_TYPES.items():
        if extension in extensions:
            return kind
    return "other"


class ContentDuplicateCheck:
    """Treat an existing destination as a duplicate when the bytes match."""

    def __init__(self, algorithm: str = "sha256"):
        self.algorithm = algorithm

    def is_duplicate(self, source: Path, destination: Path) -> bool:
        if not destination.exists():
            return False
        # Different sizes can never hash the same.
        if source.stat().st_size != destination.stat().st_size:
            return False
        return (compute_file_hash(source, self.algorithm)
                == compute_file_hash(destination, self.algorithm))


class SmartOrganizer:
    """
    Place files under a date-derived layout inside the rule's destination.

    The pattern may use {year}, {month}, {day} (from the source's
    modification time), {name} (file name), {ext} (extension without the
    dot) and {type} (image, video, audio, document or other).
    """

    def __init__(self, pattern: str = "{year}/{month}/{day}/{name}"):
        self.pattern = pattern

    def variables(self, source: Path) -> dict[str, str]:
        modified = datetime.fromtimestamp(source.stat().st_mtime)
        extension = source.suffix[1:]
        return {
            "year": f"{modified.year:04d}",
            "month": f"{modified.month:02d}",
            "day": f"{modified.day:02d}",
            "name": source.name,
            "ext": extension,
            "type": file_type(extension),
        }

    def organize(self, source: Path, base_dir: Path) -> Path:
        organized = self.pattern
        for key, value in self.variables(source).items():
            organized = organized.replace("{" + key + "}", value)
        return Path(base_dir) / organized


class HistoryRecorder:
    """Append every finished run to the history database."""

    def __init__(self, db: HistoryDB):
        self.db = db

    def after_run(self, result: RunResult) -> None:
        self.db.add_entry(CopyHistoryEntry.from_result(result))


class ScheduledActions:
    """Delete copied originals and/or eject the source once a run completes."""

    def __init__(self, config: ScheduledActionsConfig, mount_path: Optional[Union[str, Path]] = None):
        self.config = config
        self.mount_path = mount_path

    def after_run(self, result: RunResult) -> None:
        if result.progress.status is not CopyStatus.COMPLETED:
            logger.info("Run %s did not complete, skipping scheduled actions", result.progress.id)
            return

        errors = []
        if self.config.auto_delete_after_copy and result.copied_sources:
            deleted = delete_files(result.copied_sources)
            if deleted.failed:
                errors.append(f"Failed to delete {len(deleted.failed)} files")

        if self.config.auto_eject_after_copy and self.mount_path:
            try:
                eject_drive(self.mount_path)
            except OSError as e:
                errors.append(f"Auto-eject failed: {e}")

        if errors:
            raise OSError("; ".join(errors))


@dataclass
class CopyStages:
    """The optional stages for one orchestrator, ready to be passed on."""
    duplicate_check: Optional[ContentDuplicateCheck] = None
    reorganizer: Optional[SmartOrganizer] = None
    post_run_stages: list = field(default_factory=list)


def build_stages(
    config: RulesConfig,
    history_db: Optional[HistoryDB] = None,
    mount_path: Optional[Union[str, Path]] = None,
    hash_algorithm: str = "sha256",
) -> CopyStages:
    """Turn the config's feature flags into orchestrator stages."""
    features = config.features
    stages = CopyStages()
    if features.content_duplicates:
        stages.duplicate_check = ContentDuplicateCheck(hash_algorithm)
    if features.smart_organization:
        stages.reorganizer = SmartOrganizer(config.smart_organization.pattern)
    if features.copy_history and history_db is not None:
        stages.post_run_stages.append(HistoryRecorder(history_db))
    if features.scheduled_actions:
        stages.post_run_stages.append(ScheduledActions(config.scheduled_actions, mount_path))
    return stages
