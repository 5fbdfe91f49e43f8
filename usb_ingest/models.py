"""Data models for usb ingest."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from .matcher import RULE_PROFILE, GlobMatcher, compile_pattern


class DuplicatePolicy(Enum):
    """What to do when a copy's destination already exists."""
    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DuplicatePolicy":
        """Parse a policy name; None means the default (skip)."""
        if value is None:
            return cls.SKIP
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown duplicate policy {value!r}, expected one of "
                f"{', '.join(p.value for p in cls)}"
            ) from None


class CopyStatus(Enum):
    """Lifecycle of one copy run."""
    PENDING = "pending"
    COPYING = "copying"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (CopyStatus.COMPLETED, CopyStatus.ERROR)


@dataclass(frozen=True)
class CopyRule:
    """One matching policy; its priority is its position in the rule list."""
    match: str
    destination: str
    enabled: bool = True
    matcher: GlobMatcher = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "matcher", compile_pattern(self.match, RULE_PROFILE))

    def matches(self, relative_path: str) -> bool:
        return self.enabled and self.matcher(relative_path)

    def to_dict(self) -> dict:
        return {"match": self.match, "destination": self.destination, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: dict) -> "CopyRule":
        return cls(
            match=data["match"],
            destination=data["destination"],
            enabled=data.get("enabled", True),
        )


@dataclass(frozen=True)
class MatchedRule:
    """The rule a file matched plus its resolved destination directory."""
    rule: CopyRule
    destination: Path

    def to_dict(self) -> dict:
        return {"rule": self.rule.to_dict(), "destination": str(self.destination)}


@dataclass
class FileEntry:
    """One filesystem node found by the scanner."""
    name: str
    path: Path
    relative_path: str
    is_directory: bool
    size: int
    modified_at: datetime
    children: Optional[list["FileEntry"]] = None

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "path": str(self.path),
            "relativePath": self.relative_path,
            "isDirectory": self.is_directory,
            "size": self.size,
            "modifiedAt": self.modified_at.isoformat(),
        }
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data


@dataclass
class MatchedFile:
    """A non-directory FileEntry with the outcome of rule matching."""
    entry: FileEntry
    matched_rule: Optional[MatchedRule] = None

    @property
    def is_matched(self) -> bool:
        return self.matched_rule is not None

    def to_dict(self) -> dict:
        data = self.entry.to_dict()
        data["matchedRule"] = self.matched_rule.to_dict() if self.matched_rule else None
        return data


@dataclass(frozen=True)
class CopyTask:
    """One unit of copy work. destination_path is a full file path."""
    source_path: Path
    destination_path: Path

    def to_dict(self) -> dict:
        return {"sourcePath": str(self.source_path), "destinationPath": str(self.destination_path)}

    @classmethod
    def from_dict(cls, data: dict) -> "CopyTask":
        return cls(Path(data["sourcePath"]), Path(data["destinationPath"]))


@dataclass(frozen=True)
class CopyProgress:
    """An immutable point-in-time view of a copy run."""
    id: str
    status: CopyStatus
    total_files: int = 0
    copied_files: int = 0
    skipped_files: int = 0
    total_bytes: int = 0
    copied_bytes: int = 0
    current_file: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "totalFiles": self.total_files,
            "copiedFiles": self.copied_files,
            "skippedFiles": self.skipped_files,
            "totalBytes": self.total_bytes,
            "copiedBytes": self.copied_bytes,
            "currentFile": self.current_file,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CopyProgress":
        return cls(
            id=data["id"],
            status=CopyStatus(data["status"]),
            total_files=data.get("totalFiles", 0),
            copied_files=data.get("copiedFiles", 0),
            skipped_files=data.get("skippedFiles", 0),
            total_bytes=data.get("totalBytes", 0),
            copied_bytes=data.get("copiedBytes", 0),
            current_file=data.get("currentFile"),
            error=data.get("error"),
        )


@dataclass
class CopyRunState:
    """Mutable progress accumulator owned by a single run."""
    id: str
    total_files: int
    total_bytes: int = 0
    status: CopyStatus = CopyStatus.PENDING
    copied_files: int = 0
    skipped_files: int = 0
    copied_bytes: int = 0
    current_file: Optional[str] = None
    error: Optional[str] = None

    def snapshot(self) -> CopyProgress:
        return CopyProgress(
            id=self.id,
            status=self.status,
            total_files=self.total_files,
            copied_files=self.copied_files,
            skipped_files=self.skipped_files,
            total_bytes=self.total_bytes,
            copied_bytes=self.copied_bytes,
            current_file=self.current_file,
            error=self.error,
        )

    def record_copied(self, size: int) -> None:
        self.copied_files += 1
        self.copied_bytes += size

    def record_skipped(self, size: int) -> None:
        self.skipped_files += 1
        self.copied_bytes += size

    def fail(self, message: str) -> None:
        self.status = CopyStatus.ERROR
        self.error = message

    def complete(self) -> None:
        self.status = CopyStatus.COMPLETED
        self.current_file = None


@dataclass
class RunResult:
    """Everything post-run stages get to see about a finished run."""
    progress: CopyProgress
    tasks: list[CopyTask]
    policy: DuplicatePolicy
    copied_sources: list[Path]
    started_at: datetime
    finished_at: datetime

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


@dataclass
class CopyHistoryEntry:
    """Record of one finished run, as kept in the history database."""
    id: str
    timestamp: str
    status: str
    total_files: int
    copied_files: int
    skipped_files: int
    total_bytes: int
    copied_bytes: int
    duration: float
    error: Optional[str] = None
    files: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CopyHistoryEntry":
        return cls(**data)

    @classmethod
    def from_result(cls, result: RunResult) -> "CopyHistoryEntry":
        progress = result.progress
        return cls(
            id=progress.id,
            timestamp=result.finished_at.isoformat(),
            status=progress.status.value,
            total_files=progress.total_files,
            copied_files=progress.copied_files,
            skipped_files=progress.skipped_files,
            total_bytes=progress.total_bytes,
            copied_bytes=progress.copied_bytes,
            duration=result.duration,
            error=progress.error,
            files=[task.to_dict() for task in result.tasks],
        )


@dataclass(frozen=True)
class FeatureFlags:
    """Which optional copy stages are switched on."""
    copy_history: bool = False
    smart_organization: bool = False
    content_duplicates: bool = False
    scheduled_actions: bool = False


@dataclass(frozen=True)
class SmartOrganizationConfig:
    pattern: str = "{year}/{month}/{day}/{name}"


@dataclass(frozen=True)
class ScheduledActionsConfig:
    auto_delete_after_copy: bool = False
    auto_eject_after_copy: bool = False


@dataclass(frozen=True)
class RulesConfig:
    """A loaded rules configuration. Rules are compiled on construction."""
    rules: tuple[CopyRule, ...] = ()
    unmatched_destination: Optional[str] = None
    exclusions: tuple[str, ...] = ()
    features: FeatureFlags = FeatureFlags()
    smart_organization: SmartOrganizationConfig = SmartOrganizationConfig()
    scheduled_actions: ScheduledActionsConfig = ScheduledActionsConfig()
