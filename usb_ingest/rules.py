"""Rule matching: deciding where each scanned file should be copied."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .matcher import RULE_PROFILE, compile_pattern
from .models import CopyRule, CopyTask, FileEntry, MatchedFile, MatchedRule
from .scanner import flatten_files


def expand_path(path: str) -> Path:
    """Expand a leading ~ and make the path absolute."""
    return Path(os.path.expanduser(path)).resolve()


def match_file(relative_path: str, rules: Sequence[CopyRule]) -> Optional[MatchedRule]:
    """
    Find the rule that applies to a file.

    Rules are tried in list order and the first enabled rule whose pattern
    matches wins, however specific later rules may be.
    Returns None when no enabled rule matches.
    """
    for rule in rules:
        if rule.matches(relative_path):
            return MatchedRule(rule=rule, destination=expand_path(rule.destination))
    return None


def get_destination_path(relative_path: str, destination_dir: Path) -> Path:
    """Keep the file name but put it in the destination directory."""
    file_name = relative_path.replace("\\", "/").rsplit("/", 1)[-1]
    return Path(destination_dir) / file_name


def apply_rules_to_files(entries: Iterable[FileEntry], rules: Sequence[CopyRule]) -> list[MatchedFile]:
    """Flatten a scanned tree and attach the matching rule to every file."""
    return [
        MatchedFile(entry=entry, matched_rule=match_file(entry.relative_path, rules))
        for entry in flatten_files(entries)
    ]


def build_copy_tasks(
    matched_files: Iterable[MatchedFile],
    unmatched_destination: Optional[str] = None,
) -> list[CopyTask]:
    """
    Turn rule matches into copy tasks.

    Unmatched files go to unmatched_destination when one is configured and
    are left out otherwise.
    """
    fallback = expand_path(unmatched_destination) if unmatched_destination else None
    tasks = []
    for matched in matched_files:
        if matched.matched_rule is not None:
            destination_dir = matched.matched_rule.destination
        elif fallback is not None:
            destination_dir = fallback
        else:
            continue
        tasks.append(CopyTask(
            source_path=matched.entry.path,
            destination_path=get_destination_path(matched.entry.relative_path, destination_dir),
        ))
    return tasks


@dataclass
class PatternTestResult:
    """How many scanned files a candidate pattern would pick up."""
    count: int
    samples: list[str]


def preview_pattern(pattern: str, entries: Iterable[FileEntry], sample_limit: int = 5) -> PatternTestResult:
    """Try a rule pattern against a scanned tree without saving it."""
    is_match = compile_pattern(pattern, RULE_PROFILE)
    matched = [f.relative_path for f in flatten_files(entries) if is_match(f.relative_path)]
    return PatternTestResult(count=len(matched), samples=matched[:sample_limit])

