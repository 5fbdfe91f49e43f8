"""Shaping the progress stream for transports.

A run's snapshots are serialised one JSON object per event and framed as
``data: <json>\\n\\n`` so they can be written straight to a text event
stream. ProgressChannel decouples the producing run from a consumer on
another thread.
"""

import json
import queue
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional

from .errors import CopyRequestError
from .models import CopyProgress, CopyStatus, CopyTask, DuplicatePolicy


@dataclass
class CopyRequest:
    """A decoded copy request payload."""
    tasks: list[CopyTask]
    policy: DuplicatePolicy = DuplicatePolicy.SKIP


def parse_copy_request(payload: Any) -> CopyRequest:
    """
    Decode ``{"files": [{"sourcePath", "destinationPath"}], "onDuplicate"}``.

    Raises:
        CopyRequestError: if the payload does not have that shape.
    """
    if not isinstance(payload, dict):
        raise CopyRequestError("Copy request must be an object")
    files = payload.get("files")
    if not isinstance(files, list):
        raise CopyRequestError("Copy request needs a 'files' list")

    tasks = []
    for i, item in enumerate(files):
        if not isinstance(item, dict):
            raise CopyRequestError(f"files[{i}] must be an object")
        for key in ("sourcePath", "destinationPath"):
            if not isinstance(item.get(key), str) or not item[key]:
                raise CopyRequestError(f"files[{i}].{key} must be a non-empty string")
            if "\0" in item[key]:
                raise CopyRequestError(f"files[{i}].{key} contains a NUL byte")
        tasks.append(CopyTask.from_dict(item))

    try:
        policy = DuplicatePolicy.parse(payload.get("onDuplicate"))
    except ValueError as e:
        raise CopyRequestError(str(e)) from e
    return CopyRequest(tasks=tasks, policy=policy)


def format_event(snapshot: CopyProgress) -> str:
    """Frame one snapshot as a text event stream message."""
    return f"data: {json.dumps(snapshot.to_dict())}\n\n"


def format_error_event(message: str) -> str:
    """Frame a failure that happened outside of any run."""
    return f"data: {json.dumps({'status': CopyStatus.ERROR.value, 'error': message})}\n\n"


def stream_events(snapshots: Iterable[CopyProgress]) -> Iterator[str]:
    for snapshot in snapshots:
        yield format_event(snapshot)


def percent_complete(snapshot: CopyProgress) -> float:
    """Byte-based progress in percent; a run with nothing to copy is 100%."""
    if snapshot.total_bytes <= 0:
        return 100.0
    return min(100.0, snapshot.copied_bytes * 100.0 / snapshot.total_bytes)


_DONE = object()


class ProgressChannel:
    """
    Run a snapshot producer on a worker thread and hand its output over a queue.

    The producer only ever blocks on its own I/O, or on put() when maxsize
    is set and the consumer has fallen behind. Iterating the channel yields
    snapshots in production order and re-raises anything the producer raised.
    A channel can be iterated only once.
    """

    def __init__(self, snapshots: Iterable[CopyProgress], maxsize: int = 0):
        self._snapshots = snapshots
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._error: Optional[BaseException] = None
        self._consumed = False
        self._thread = threading.Thread(target=self._produce, name="copy-progress", daemon=True)

    def start(self) -> "ProgressChannel":
        self._thread.start()
        return self

    def _produce(self) -> None:
        try:
            for snapshot in self._snapshots:
                self._queue.put(snapshot)
        except BaseException as e:
            self._error = e
        finally:
            self._queue.put(_DONE)

    def __iter__(self) -> Iterator[CopyProgress]:
        if self._consumed:
            raise RuntimeError("ProgressChannel can only be iterated once")
        self._consumed = True
        if not self._thread.is_alive() and self._thread.ident is None:
            self.start()
        while True:
            item = self._queue.get()
            if item is _DONE:
                break
            yield item
        self._thread.join()
        if self._error is not None:
            raise self._error

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)
