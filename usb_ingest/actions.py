"""Post-copy actions: removing originals and ejecting the source drive."""

import logging
import os
import platform
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Union

from .errors import UnsupportedPlatformError

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def delete_file(file_path: Union[str, Path]) -> None:
    """Delete one file, logging the outcome. Errors propagate."""
    try:
        os.unlink(file_path)
    except OSError as e:
        logger.error("Failed to delete %s: %s", file_path, e)
        raise
    logger.info("Deleted: %s", file_path)


def delete_files(file_paths: Iterable[Union[str, Path]]) -> DeleteResult:
    """Delete every file it can; failures are collected, not raised."""
    result = DeleteResult()
    for path in file_paths:
        try:
            delete_file(path)
            result.deleted.append(str(path))
        except OSError:
            result.failed.append(str(path))
    return result


def eject_drive(mount_path: Union[str, Path]) -> None:
    """Unmount the drive mounted at mount_path."""
    system = platform.system()
    if system == "Darwin":  # macOS
        command = ["diskutil", "unmount", str(mount_path)]
    elif system == "Linux":
        command = ["umount", str(mount_path)]
    else:
        raise UnsupportedPlatformError(f"Ejecting is not supported on {system}")

    try:
        subprocess.run(command, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        message = (e.stderr or "").strip() or str(e)
        logger.error("Failed to eject %s: %s", mount_path, message)
        raise OSError(f"Failed to eject {mount_path}: {message}") from e
    logger.info("Ejected drive at %s", mount_path)
