"""Shared test fixtures."""

import tempfile
from pathlib import Path

import pytest

from usb_ingest.db import HistoryDB
from usb_ingest.models import CopyHistoryEntry, CopyRule, CopyTask


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def sample_card(temp_dir):
    """Create a camera-card-like source tree."""
    card = temp_dir / "card"
    photos = card / "DCIM" / "100CANON"
    photos.mkdir(parents=True)

    (photos / "IMG_0001.JPG").write_bytes(b"jpeg one")
    (photos / "IMG_0002.jpg").write_bytes(b"jpeg number two")
    (photos / "clip.MOV").write_bytes(b"movie")
    (photos / ".hidden.jpg").write_bytes(b"hidden")

    (card / "Notes").mkdir()
    (card / "Notes" / "readme.txt").write_text("notes")

    # Junk that exclusions should drop
    (card / ".DS_Store").write_bytes(b"\x00")
    (card / "DCIM" / ".DS_Store").write_bytes(b"\x00")
    (card / "__MACOSX" / "DCIM").mkdir(parents=True)
    (card / "__MACOSX" / "DCIM" / "._IMG_0001.JPG").write_bytes(b"\x00")
    (card / "$RECYCLE.BIN").mkdir()
    (card / "$RECYCLE.BIN" / "deleted.txt").write_text("gone")

    return card


@pytest.fixture
def source_files(temp_dir):
    """Three small source files with known sizes (5, 10 and 0 bytes)."""
    src = temp_dir / "src"
    src.mkdir()
    (src / "a.txt").write_text("aaaaa")
    (src / "b.txt").write_text("bbbbbbbbbb")
    (src / "empty.txt").write_text("")
    return src


@pytest.fixture
def make_tasks(temp_dir):
    """Build copy tasks sending each source file into temp_dir/out."""
    def _make(sources, dest_dir=None):
        dest_dir = dest_dir or temp_dir / "out"
        return [CopyTask(Path(s), Path(dest_dir) / Path(s).name) for s in sources]
    return _make


@pytest.fixture
def photo_rules():
    return [
        CopyRule(match="DCIM/**/*.jpg", destination="/out/photos"),
        CopyRule(match="**/*.jpg", destination="/out/all"),
    ]


@pytest.fixture
def db_path(temp_dir):
    """Create a temporary database path."""
    return temp_dir / "test_history.db"


@pytest.fixture
def history_db(db_path):
    """Create a HistoryDB instance."""
    db = HistoryDB(db_path)
    yield db
    try:
        db.close()
    except Exception:
        pass


@pytest.fixture
def sample_history_entry():
    """Create a sample CopyHistoryEntry for testing."""
    return CopyHistoryEntry(
        id="run-1",
        timestamp="2024-01-01T12:00:00",
        status="completed",
        total_files=3,
        copied_files=2,
        skipped_files=1,
        total_bytes=300,
        copied_bytes=300,
        duration=1.5,
        error=None,
        files=[{"sourcePath": "/card/a.jpg", "destinationPath": "/out/a.jpg"}],
    )
