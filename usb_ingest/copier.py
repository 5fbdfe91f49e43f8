"""Core copy logic."""

import logging
import os
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from .models import (
    CopyProgress,
    CopyRunState,
    CopyStatus,
    CopyTask,
    DuplicatePolicy,
    RunResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024


def _long_path(path: Path) -> str:
    """Convert path to long path format on Windows to handle paths > 260 chars."""
    path_str = str(Path(path).resolve())
    if os.name == 'nt' and not path_str.startswith('\\\\?\\'):
        return '\\\\?\\' + path_str
    return path_str


def copy_file(src: Path, dst: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """
    Stream a file to dst in chunks, creating parent directories if needed.

    An existing dst is truncated. Timestamps are carried over when the
    destination filesystem allows it.

    Returns:
        Number of bytes written
    """
    dst_long = _long_path(dst)
    os.makedirs(os.path.dirname(dst_long), exist_ok=True)
    with open(_long_path(src), 'rb') as fsrc, open(dst_long, 'wb') as fdst:
        shutil.copyfileobj(fsrc, fdst, chunk_size)
        written = fdst.tell()
    try:
        shutil.copystat(_long_path(src), dst_long)
    except OSError as e:
        # FAT/exFAT targets commonly refuse this
        logger.debug("Could not preserve metadata on %s: %s", dst, e)
    return written


def get_unique_dest_path(dest_path: Path) -> Path:
    """Find a free path by appending _1, _2, ... before the extension."""
    dest_path = Path(dest_path)
    candidate = dest_path
    counter = 1
    while candidate.exists():
        candidate = dest_path.with_name(f"{dest_path.stem}_{counter}{dest_path.suffix}")
        counter += 1
    return candidate


class CopyOrchestrator:
    """
    Runs copy tasks one at a time and reports progress as snapshots.

    Optional stages are injected here instead of being switched on and off
    inside the copy loop:

    - duplicate_check: object with ``is_duplicate(source, destination)``
    - reorganizer: object with ``organize(source, base_dir) -> Path``
    - post_run_stages: objects with ``after_run(result)``, called in order
      once the terminal snapshot has been handed out

    Stage failures are logged and never change the outcome of a run.
    """

    def __init__(
        self,
        duplicate_check=None,
        reorganizer=None,
        post_run_stages: Iterable = (),
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.duplicate_check = duplicate_check
        self.reorganizer = reorganizer
        self.post_run_stages = list(post_run_stages)
        self.chunk_size = chunk_size

    @classmethod
    def from_stages(cls, stages, chunk_size: int = DEFAULT_CHUNK_SIZE) -> "CopyOrchestrator":
        """Build an orchestrator from a stages.CopyStages bundle."""
        return cls(
            duplicate_check=stages.duplicate_check,
            reorganizer=stages.reorganizer,
            post_run_stages=stages.post_run_stages,
            chunk_size=chunk_size,
        )

    def run(
        self,
        tasks: Iterable[CopyTask],
        policy: Union[DuplicatePolicy, str, None] = DuplicatePolicy.SKIP,
        run_id: Optional[str] = None,
    ) -> Iterator[CopyProgress]:
        """
        Copy every task in order, yielding a snapshot after each step.

        The first failing task ends the run with an ``error`` snapshot; later
        tasks are not attempted and files already copied stay where they are.
        Post-run stages run after the last snapshot, so the generator has to
        be exhausted for them to fire.
        """
        tasks = list(tasks)
        policy = DuplicatePolicy.parse(policy)
        state = CopyRunState(id=run_id or str(uuid.uuid4()), total_files=len(tasks))
        state.total_bytes = self._total_bytes(tasks)
        started_at = datetime.now()
        copied_sources = []

        if tasks:
            state.status = CopyStatus.COPYING
            yield state.snapshot()

        for task in tasks:
            state.current_file = str(task.source_path)
            yield state.snapshot()
            try:
                copied = self._process(task, policy, state)
            except (OSError, ValueError) as e:
                # ValueError: paths the OS cannot represent, e.g. an embedded NUL
                state.fail(str(e) or e.__class__.__name__)
                logger.error("Copy %s failed on %s: %s", state.id, task.source_path, e)
                break
            if copied:
                copied_sources.append(Path(task.source_path))
            yield state.snapshot()

        if state.status is not CopyStatus.ERROR:
            state.complete()
        final = state.snapshot()
        yield final

        self._after_run(RunResult(
            progress=final,
            tasks=tasks,
            policy=policy,
            copied_sources=copied_sources,
            started_at=started_at,
            finished_at=datetime.now(),
        ))

    @staticmethod
    def _total_bytes(tasks: list[CopyTask]) -> int:
        total = 0
        for task in tasks:
            try:
                total += os.stat(task.source_path).st_size
            except (OSError, ValueError):
                # Vanished sources fail later, when their turn comes.
                continue
        return total

    def _process(self, task: CopyTask, policy: DuplicatePolicy, state: CopyRunState) -> bool:
        """Run one task. Returns True if bytes were copied, False if skipped."""
        source = Path(task.source_path)
        destination = self._effective_destination(source, Path(task.destination_path))

        if destination.exists():
            if policy is not DuplicatePolicy.OVERWRITE and self._is_content_duplicate(source, destination):
                logger.debug("%s has the same content as %s, skipping", source, destination)
                state.record_skipped(source.stat().st_size)
                return False
            if policy is DuplicatePolicy.SKIP:
                state.record_skipped(source.stat().st_size)
                return False
            if policy is DuplicatePolicy.RENAME:
                destination = get_unique_dest_path(destination)

        written = copy_file(source, destination, self.chunk_size)
        state.record_copied(written)
        return True

    def _effective_destination(self, source: Path, destination: Path) -> Path:
        if self.reorganizer is None:
            return destination
        try:
            return Path(self.reorganizer.organize(source, destination.parent))
        except Exception as e:
            logger.warning("Reorganizing %s failed, using %s: %s", source, destination, e)
            return destination

    def _is_content_duplicate(self, source: Path, destination: Path) -> bool:
        if self.duplicate_check is None:
            return False
        try:
            return self.duplicate_check.is_duplicate(source, destination)
        except Exception as e:
            logger.warning("Content check of %s against %s failed: %s", source, destination, e)
            return False

    def _after_run(self, result: RunResult) -> None:
        for stage in self.post_run_stages:
            try:
                stage.after_run(result)
            except Exception as e:
                logger.error("Post-run stage %s failed for run %s: %s",
                             type(stage).__name__, result.progress.id, e)


def execute_copy(
    tasks: Iterable[CopyTask],
    policy: Union[DuplicatePolicy, str, None] = DuplicatePolicy.SKIP,
) -> Iterator[CopyProgress]:
    """Run tasks with a plain orchestrator (no optional stages)."""
    return CopyOrchestrator().run(tasks, policy)
