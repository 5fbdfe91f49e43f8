"""Source tree scanning and file hashing."""

import hashlib
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Union

import xxhash

from .matcher import ExclusionSet
from .models import FileEntry

logger = logging.getLogger(__name__)

# System folders that are never worth listing, whatever the exclusions say.
ALWAYS_SKIPPED = frozenset({"$RECYCLE.BIN"})

HASH_ALGORITHMS = ("sha256", "xxh64")


def compute_file_hash(file_path: Path, algorithm: str = "sha256", chunk_size: int = 65536) -> str:
    """Compute the hex digest of a file, reading it in chunks.

    ``sha256`` is the default; ``xxh64`` is a much faster non-cryptographic
    alternative for large media cards.
    """
    if algorithm == "sha256":
        hasher = hashlib.sha256()
    elif algorithm == "xxh64":
        hasher = xxhash.xxh64()
    else:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    with open(file_path, 'rb') as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)
    return hasher.hexdigest()


def _sort_key(entry: FileEntry) -> tuple[bool, str]:
    # Directories first, then case-sensitive by name
    return (not entry.is_directory, entry.name)


def _scan(
    dir_path: Path,
    root: Path,
    exclusions: ExclusionSet,
    ancestors: frozenset,
) -> list[FileEntry]:
    entries = []
    try:
        with os.scandir(dir_path) as it:
            items = list(it)
    except OSError as e:
        logger.debug("Cannot list %s: %s", dir_path, e)
        return entries

    for item in items:
        if item.name in ALWAYS_SKIPPED:
            continue
        full_path = dir_path / item.name
        relative_path = full_path.relative_to(root).as_posix()
        if exclusions.is_excluded(relative_path, item.name):
            continue

        try:
            stat = item.stat()
            is_directory = item.is_dir()
        except OSError as e:
            # Permission denied, broken symlink, vanished file...
            logger.debug("Skipping %s: %s", full_path, e)
            continue

        entry = FileEntry(
            name=item.name,
            path=full_path,
            relative_path=relative_path,
            is_directory=is_directory,
            size=stat.st_size,
            modified_at=datetime.fromtimestamp(stat.st_mtime),
        )
        if is_directory:
            key = (stat.st_dev, stat.st_ino)
            if key in ancestors:
                logger.debug("Not following directory cycle at %s", full_path)
                entry.children = []
            else:
                entry.children = _scan(full_path, root, exclusions, ancestors | {key})
        entries.append(entry)

    return sorted(entries, key=_sort_key)


def scan_directory(
    root_path: Union[str, Path],
    exclusions: Optional[Union[ExclusionSet, Iterable[str]]] = None,
) -> list[FileEntry]:
    """
    Scan a directory tree depth-first.

    Args:
        root_path: Directory to scan
        exclusions: Patterns (or a compiled ExclusionSet) whose matches are
            dropped from the tree entirely, tested against both the entry
            name and its path relative to root_path

    Returns:
        The root's children, directories first then by name, each directory
        carrying its own sorted children. An unreadable root gives [].
    """
    root = Path(root_path)
    if not isinstance(exclusions, ExclusionSet):
        exclusions = ExclusionSet(exclusions or ())

    try:
        root_stat = root.stat()
    except OSError as e:
        logger.debug("Cannot stat scan root %s: %s", root, e)
        return []

    return _scan(root, root, exclusions, frozenset({(root_stat.st_dev, root_stat.st_ino)}))


def flatten_files(entries: Iterable[FileEntry]) -> list[FileEntry]:
    """Return the non-directory entries of a tree, depth-first in tree order."""
    files = []
    for entry in entries:
        if entry.is_directory:
            files.extend(flatten_files(entry.children or []))
        else:
            files.append(entry)
    return files
