"""
FileSystemGate Pydantic models.

Defines the file policy, validated paths, backup records, listing entries,
scan findings and the tagged operation result.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple, Union
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_ALLOWED_ROOTS: Tuple[str, ...] = (
    "wp-content/themes",
    "wp-content/plugins",
    "wp-content/uploads",
    "wp-content/mu-plugins",
)

DEFAULT_ALLOWED_EXTENSIONS: Tuple[str, ...] = (
    "php", "js", "css", "scss", "sass", "less",
    "json", "html", "htm", "xml", "txt", "md",
    "svg", "jpg", "jpeg", "png", "gif", "webp",
)

DEFAULT_MAX_FILE_SIZE = 10485760  # 10 MiB

DEFAULT_BACKUP_DIR = "wp-content/wpmcp-backups"


class FileErrorKind(str, Enum):
    """Failure categories for file operations."""
    INVALID_PATH = "invalid_path"
    INVALID_EXTENSION = "invalid_extension"
    NOT_FOUND = "file_not_found"
    NOT_A_DIRECTORY = "not_directory"
    NOT_READABLE = "file_not_readable"
    FILE_TOO_LARGE = "file_too_large"
    CONTENT_REJECTED = "content_rejected"
    STORAGE_FAILURE = "storage_failure"
    UNAUTHORIZED = "unauthorized"
    REMOTE_FAILURE = "remote_failure"


class FileKind(str, Enum):
    """Kind of filesystem entry."""
    FILE = "file"
    DIRECTORY = "directory"


class FileSystemConfig(BaseModel):
    """
    Immutable file policy.

    Injected into the validator and service so tests can substitute
    narrower or wider allow-lists.
    """
    model_config = ConfigDict(frozen=True)

    allowed_roots: Tuple[str, ...] = Field(default=DEFAULT_ALLOWED_ROOTS)
    allowed_extensions: Tuple[str, ...] = Field(default=DEFAULT_ALLOWED_EXTENSIONS)
    max_file_size_bytes: int = Field(default=DEFAULT_MAX_FILE_SIZE, ge=1)
    backup_dir: str = Field(
        default=DEFAULT_BACKUP_DIR,
        description="Backup directory relative to the WordPress root",
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileSystemConfig":
        """Create from dict."""
        return cls.model_validate(data)


class ValidatedPath(BaseModel):
    """A caller path that passed PathValidator. Only the validator builds these."""
    model_config = ConfigDict(frozen=True)

    original: str = Field(description="Raw caller-supplied path")
    relative_path: str = Field(description="Normalized path relative to the WordPress root")
    root: str = Field(description="Allowed root the path resolved under")
    absolute_path: str


class BackupRecord(BaseModel):
    """A point-in-time copy of one file, stored as <id>.bak plus <id>.bak.meta."""
    id: str = Field(description="Unique backup identifier")
    backup_path: str = Field(description="Absolute path of the .bak file")
    original_path: str = Field(description="Path relative to the WordPress root")
    timestamp: str = Field(description="Creation time, 'YYYY-MM-DD HH:MM:SS'")
    user_id: Optional[Union[int, str]] = None

    def to_sidecar(self) -> Dict[str, Any]:
        """Sidecar JSON written next to the backup."""
        return {
            "originalPath": self.original_path,
            "timestamp": self.timestamp,
            "userId": self.user_id,
        }


class FileEntry(BaseModel):
    """One row of a directory listing."""
    path: str = Field(description="Path relative to the WordPress root")
    name: str
    type: FileKind
    size: int = 0
    modified: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")


class FileInfo(BaseModel):
    """Metadata about a single file or directory."""
    path: str
    size: int
    modified: datetime
    permissions: str = Field(description="Four-digit octal mode, e.g. '0644'")
    type: FileKind

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")


class SecurityFinding(BaseModel):
    """A dangerous pattern matched during a content scan."""
    pattern: str
    description: str


class ScanResult(BaseModel):
    """Outcome of a content scan."""
    safe: bool
    findings: List[SecurityFinding] = Field(default_factory=list)

    def messages(self) -> List[str]:
        return [f"Suspicious pattern detected: {f.description}" for f in self.findings]


class OperationResult(BaseModel):
    """
    Tagged result of a file operation.

    Successful results carry data; failed results carry error and error_kind.
    """
    success: bool
    operation: str = Field(description="read/list/info/write/delete/copy/move")
    path: str
    message: str = ""
    data: Optional[Any] = None
    backup_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[FileErrorKind] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return self.model_dump(mode="json")

    @classmethod
    def ok(
        cls,
        operation: str,
        path: str,
        data: Any = None,
        message: str = "",
        backup_id: Optional[str] = None,
    ) -> "OperationResult":
        """Create a successful result."""
        return cls(
            success=True,
            operation=operation,
            path=path,
            data=data,
            message=message,
            backup_id=backup_id,
        )

    @classmethod
    def fail(
        cls,
        operation: str,
        path: str,
        kind: FileErrorKind,
        error: str,
    ) -> "OperationResult":
        """Create a failed result."""
        return cls(
            success=False,
            operation=operation,
            path=path,
            error=error,
            error_kind=kind,
        )
