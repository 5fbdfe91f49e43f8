"""Tests for usb_ingest.rules module."""

from pathlib import Path

import pytest

from usb_ingest.errors import GlobCompileError
from usb_ingest.models import CopyRule, CopyTask
from usb_ingest.rules import (
    apply_rules_to_files,
    build_copy_tasks,
    expand_path,
    get_destination_path,
    match_file,
    preview_pattern,
)
from usb_ingest.scanner import scan_directory


class TestExpandPath:
    """Tests for expand_path function."""

    def test_expands_home(self, monkeypatch, temp_dir):
        monkeypatch.setenv("HOME", str(temp_dir))
        assert expand_path("~/Pictures") == temp_dir / "Pictures"

    def test_absolute_path_unchanged(self):
        assert expand_path("/out/photos") == Path("/out/photos").resolve()

    def test_relative_path_made_absolute(self):
        assert expand_path("photos").is_absolute()


class TestMatchFile:
    """Tests for match_file function."""

    def test_first_rule_wins(self, photo_rules):
        result = match_file("DCIM/100/IMG1.jpg", photo_rules)
        assert result.rule is photo_rules[0]
        assert result.destination == Path("/out/photos").resolve()

    def test_falls_through_to_later_rule(self, photo_rules):
        result = match_file("Other/pic.jpg", photo_rules)
        assert result.rule is photo_rules[1]
        assert result.destination == Path("/out/all").resolve()

    def test_unmatched_returns_none(self, photo_rules):
        assert match_file("Notes/readme.txt", photo_rules) is None

    def test_position_beats_specificity(self):
        rules = [
            CopyRule(match="**/*", destination="/out/everything"),
            CopyRule(match="DCIM/100/IMG1.jpg", destination="/out/exact"),
        ]
        assert match_file("DCIM/100/IMG1.jpg", rules).rule is rules[0]

    def test_disabled_rule_is_skipped(self):
        rules = [
            CopyRule(match="DCIM/**/*.jpg", destination="/out/photos", enabled=False),
            CopyRule(match="**/*.jpg", destination="/out/all"),
        ]
        assert match_file("DCIM/100/IMG1.jpg", rules).rule is rules[1]

    def test_disabling_only_match_gives_none(self):
        rules = [CopyRule(match="**/*.jpg", destination="/out/all", enabled=False)]
        assert match_file("DCIM/100/IMG1.jpg", rules) is None

    def test_order_of_non_conflicting_rules_is_irrelevant(self):
        jpgs = CopyRule(match="**/*.jpg", destination="/out/photos")
        movs = CopyRule(match="**/*.mov", destination="/out/videos")
        for path in ("DCIM/a.jpg", "DCIM/b.MOV", "c.txt"):
            forward = match_file(path, [jpgs, movs])
            backward = match_file(path, [movs, jpgs])
            assert (forward and forward.rule) == (backward and backward.rule)

    def test_rules_skip_hidden_files(self, photo_rules):
        assert match_file("DCIM/100/.hidden.jpg", photo_rules) is None

    def test_empty_rule_list(self):
        assert match_file("a.jpg", []) is None

    def test_bad_rule_pattern_fails_on_construction(self):
        with pytest.raises(GlobCompileError):
            CopyRule(match="DCIM/[", destination="/out")


class TestGetDestinationPath:
    """Tests for get_destination_path function."""

    def test_keeps_only_file_name(self):
        assert get_destination_path("DCIM/100/IMG1.jpg", Path("/out/photos")) == Path("/out/photos/IMG1.jpg")

    def test_top_level_file(self):
        assert get_destination_path("a.txt", Path("/out")) == Path("/out/a.txt")

    def test_scenario_first_rule_destination(self, photo_rules):
        matched = match_file("DCIM/100/IMG1.jpg", photo_rules)
        destination = get_destination_path("DCIM/100/IMG1.jpg", matched.destination)
        assert destination == Path("/out/photos").resolve() / "IMG1.jpg"


class TestApplyRules:
    """Tests for apply_rules_to_files and build_copy_tasks."""

    @pytest.fixture
    def matched_files(self, sample_card, temp_dir):
        rules = [
            CopyRule(match="DCIM/**/*.jpg", destination=str(temp_dir / "photos")),
            CopyRule(match="**/*.mov", destination=str(temp_dir / "videos")),
        ]
        entries = scan_directory(sample_card, [".DS_Store", "**/__MACOSX/**"])
        return apply_rules_to_files(entries, rules)

    def test_every_file_gets_an_outcome(self, matched_files):
        outcomes = {m.entry.relative_path: m.matched_rule for m in matched_files}
        assert outcomes["DCIM/100CANON/IMG_0001.JPG"].rule.match == "DCIM/**/*.jpg"
        assert outcomes["DCIM/100CANON/clip.MOV"].rule.match == "**/*.mov"
        assert outcomes["Notes/readme.txt"] is None
        assert outcomes["DCIM/100CANON/.hidden.jpg"] is None

    def test_only_files_are_returned(self, matched_files):
        assert all(not m.entry.is_directory for m in matched_files)

    def test_build_tasks_skips_unmatched(self, matched_files, temp_dir, sample_card):
        tasks = build_copy_tasks(matched_files)
        photos = sample_card / "DCIM" / "100CANON"
        assert tasks == [
            CopyTask(photos / "IMG_0001.JPG", temp_dir / "photos" / "IMG_0001.JPG"),
            CopyTask(photos / "IMG_0002.jpg", temp_dir / "photos" / "IMG_0002.jpg"),
            CopyTask(photos / "clip.MOV", temp_dir / "videos" / "clip.MOV"),
        ]

    def test_build_tasks_with_fallback(self, matched_files, temp_dir, sample_card):
        tasks = build_copy_tasks(matched_files, unmatched_destination=str(temp_dir / "misc"))
        destinations = [t.destination_path for t in tasks]
        assert temp_dir / "misc" / "readme.txt" in destinations
        assert temp_dir / "misc" / ".hidden.jpg" in destinations
        assert len(tasks) == 5


class TestPreviewPattern:
    """Tests for preview_pattern function."""

    def test_counts_and_samples(self, sample_card):
        entries = scan_directory(sample_card, [".DS_Store", "**/__MACOSX/**"])
        result = preview_pattern("**/*.{jpg,mov}", entries)
        assert result.count == 3
        assert result.samples == [
            "DCIM/100CANON/IMG_0001.JPG",
            "DCIM/100CANON/IMG_0002.jpg",
            "DCIM/100CANON/clip.MOV",
        ]

    def test_sample_limit(self, sample_card):
        entries = scan_directory(sample_card)
        result = preview_pattern("**/*", entries, sample_limit=2)
        assert len(result.samples) == 2
        assert result.count > 2

    def test_bad_pattern_raises(self, sample_card):
        with pytest.raises(GlobCompileError):
            preview_pattern("{", scan_directory(sample_card))
