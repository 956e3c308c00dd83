"""
FileSystemGate - Path-validated, backup-protected file access for WordPress.

Provides:
- Allowed-root and allowed-extension path validation
- Directory traversal prevention
- Size limit, PHP brace check and heuristic content scan on writes
- Automatic backup before overwrite/delete
- Per-path serialization of mutating operations

Usage:
    from wpmcp import FileSystemGate

    # Initialize (call on startup)
    FileSystemGate.initialize("/var/www/html", authorizer=caller_can_manage_files)

    # Read a file
    result = FileSystemGate.read_file("wp-content/themes/mytheme/style.css")

    # Write a file (existing content is backed up first)
    result = FileSystemGate.write_file("wp-content/themes/mytheme/style.css", "body {}")
"""

import os
from typing import Any, Callable, Dict, List, Optional, Union

from wpmcp.shared.gate import (
    GateLogger,
    ConfigLoader,
    PathUtils,
    build_health_status,
)

from .auth import (
    CallerContext,
    caller_context,
    caller_can_manage_files,
    current_user_id,
    allow_all,
    deny_all,
    verify_credentials,
)
from .models import (
    FileSystemConfig,
    FileErrorKind,
    FileKind,
    OperationResult,
    FileEntry,
    FileInfo,
    BackupRecord,
    ValidatedPath,
    ScanResult,
)
from .security import (
    PathValidator,
    ContentScanner,
    PathSecurityError,
    ContentRejectedError,
)
from .backup import BackupStore
from .operations import FileOperationsService
from .client import WordPressFileClient

# Logger for this gate
_log = GateLogger.get("FileSystemGate")

# Module-level state
_config: Optional[FileSystemConfig] = None
_service: Optional[FileOperationsService] = None
_initialized: bool = False
_wp_root: Optional[str] = None
_config_path: Optional[str] = None


class FileSystemGate:
    """
    Main interface for WordPress file access.

    All methods are class methods for easy access throughout the application.
    """

    @classmethod
    def initialize(
        cls,
        wp_root: Optional[str] = None,
        config_path: Optional[str] = None,
        authorizer: Optional[Callable[[], bool]] = None,
        user_id_provider: Optional[Callable[[], Optional[Union[int, str]]]] = None,
    ) -> bool:
        """
        Initialize the file system gate.

        Args:
            wp_root: WordPress root directory (default: WP_ROOT from config)
            config_path: Optional JSON file policy; stock allow-lists if missing
            authorizer: Capability predicate (default: the bound caller context)
            user_id_provider: Acting user for backup sidecars
                (default: the bound caller context)

        Returns:
            True if initialization successful
        """
        global _config, _service, _initialized, _wp_root, _config_path

        try:
            if wp_root is None:
                from wpmcp.Config import get
                wp_root = get("WP_ROOT")
                config_path = config_path or get("WPMCP_FS_CONFIG_PATH")

            if not wp_root or not os.path.isdir(wp_root):
                _log.error(f"WordPress root does not exist: {wp_root}")
                return False

            _wp_root = os.path.abspath(wp_root)
            _config_path = config_path or None

            if _config_path:
                _config = ConfigLoader.load(_config_path, FileSystemConfig, create_default=True)
                if _config is None:
                    _log.error(f"Invalid file policy in {_config_path}")
                    return False

                # Write out the stock policy so it can be edited
                if not os.path.exists(_config_path):
                    PathUtils.ensure_dirs(_config_path)
                    ConfigLoader.save(_config_path, _config)
            else:
                _config = FileSystemConfig()

            _service = FileOperationsService(
                _wp_root,
                config=_config,
                can_manage_files=authorizer or caller_can_manage_files,
                user_id_provider=user_id_provider or current_user_id,
            )

            _initialized = True
            _log.info(f"Initialized for {_wp_root}")
            return True

        except (OSError, ValueError) as e:
            _log.error(f"Initialization failed: {e}")
            return False

    @classmethod
    def is_initialized(cls) -> bool:
        """Check if the gate is initialized."""
        return _initialized

    @classmethod
    def get_config(cls) -> FileSystemConfig:
        """Get the active file policy."""
        cls._get_service()
        return _config

    @classmethod
    def _get_service(cls) -> FileOperationsService:
        """Get the service, initializing from configuration if needed."""
        if _service is None:
            if not cls.initialize():
                raise RuntimeError("FileSystemGate initialization failed. Check WP_ROOT.")
        return _service

    # ==================== Health Checks ====================

    @classmethod
    def is_healthy(cls) -> bool:
        """Check if the gate is operational."""
        return cls.get_health_status()["healthy"]

    @classmethod
    def get_health_status(cls) -> Dict[str, Any]:
        """Get detailed health information."""
        checks = {}
        details = {}

        if _initialized and _service is not None:
            checks["wp_root"] = os.path.isdir(_wp_root)
            checks["backup_store"] = PathUtils.is_writable_dir(_service.backups.backup_root)

            existing_roots = [
                root for root in _config.allowed_roots
                if os.path.isdir(os.path.join(_wp_root, *root.split("/")))
            ]
            details["wp_root"] = _wp_root
            details["backup_path"] = _service.backups.backup_root
            details["allowed_roots"] = list(_config.allowed_roots)
            details["existing_roots"] = existing_roots
            details["max_file_size_bytes"] = _config.max_file_size_bytes

        return build_health_status(
            gate_name="FileSystemGate",
            initialized=_initialized,
            dependencies=["filesystem"],
            checks=checks,
            details=details,
        )

    @classmethod
    def get_dependencies(cls) -> List[str]:
        """List external dependencies."""
        return ["filesystem"]

    # ==================== File Operations ====================

    @classmethod
    def read_file(cls, path: str, binary: bool = False) -> OperationResult:
        """
        Read a file's contents.

        Args:
            path: Path relative to the WordPress root
            binary: Return base64 content instead of UTF-8 text

        Returns:
            OperationResult with content, size and modified in data
        """
        return cls._get_service().read(path, binary=binary)

    @classmethod
    def list_files(cls, path: str, recursive: bool = False) -> OperationResult:
        """
        List a directory.

        Returns:
            OperationResult with entries in data
        """
        return cls._get_service().list(path, recursive=recursive)

    @classmethod
    def file_info(cls, path: str) -> OperationResult:
        """Get size, modification time, permissions and type of a path."""
        return cls._get_service().info(path)

    @classmethod
    def write_file(
        cls,
        path: str,
        content: Union[str, bytes],
        create_backup: bool = True,
        encoding: str = "utf-8",
    ) -> OperationResult:
        """
        Write content to a file.

        Creates the parent directory if needed and backs up an existing
        file unless create_backup is False. Pass encoding="base64" to
        write binary content supplied as base64 text.

        Returns:
            OperationResult with success, backup_id and bytes_written in data
        """
        return cls._get_service().write(path, content, create_backup=create_backup, encoding=encoding)

    @classmethod
    def delete_file(cls, path: str, create_backup: bool = True) -> OperationResult:
        """Delete a file, backing it up first unless create_backup is False."""
        return cls._get_service().delete(path, create_backup=create_backup)

    @classmethod
    def copy_file(cls, source: str, destination: str) -> OperationResult:
        """Copy a file."""
        return cls._get_service().copy(source, destination)

    @classmethod
    def move_file(cls, source: str, destination: str) -> OperationResult:
        """Move or rename a file."""
        return cls._get_service().move(source, destination)


def reset() -> None:
    """Drop module state. Used by tests and on shutdown."""
    global _config, _service, _initialized, _wp_root, _config_path
    _config = None
    _service = None
    _initialized = False
    _wp_root = None
    _config_path = None


# Convenience functions for module-level access
def initialize(
    wp_root: Optional[str] = None,
    config_path: Optional[str] = None,
    authorizer: Optional[Callable[[], bool]] = None,
    user_id_provider: Optional[Callable[[], Optional[Union[int, str]]]] = None,
) -> bool:
    return FileSystemGate.initialize(wp_root, config_path, authorizer, user_id_provider)


def read_file(path: str, binary: bool = False) -> OperationResult:
    return FileSystemGate.read_file(path, binary)


def list_files(path: str, recursive: bool = False) -> OperationResult:
    return FileSystemGate.list_files(path, recursive)


def file_info(path: str) -> OperationResult:
    return FileSystemGate.file_info(path)


def write_file(
    path: str,
    content: Union[str, bytes],
    create_backup: bool = True,
    encoding: str = "utf-8",
) -> OperationResult:
    return FileSystemGate.write_file(path, content, create_backup, encoding)


def delete_file(path: str, create_backup: bool = True) -> OperationResult:
    return FileSystemGate.delete_file(path, create_backup)


def copy_file(source: str, destination: str) -> OperationResult:
    return FileSystemGate.copy_file(source, destination)


def move_file(source: str, destination: str) -> OperationResult:
    return FileSystemGate.move_file(source, destination)


def is_healthy() -> bool:
    return FileSystemGate.is_healthy()


def get_health_status() -> Dict[str, Any]:
    return FileSystemGate.get_health_status()


__all__ = [
    # Main class
    "FileSystemGate",
    # Service components
    "FileOperationsService",
    "PathValidator",
    "ContentScanner",
    "BackupStore",
    "WordPressFileClient",
    # Models
    "FileSystemConfig",
    "FileErrorKind",
    "FileKind",
    "OperationResult",
    "FileEntry",
    "FileInfo",
    "BackupRecord",
    "ValidatedPath",
    "ScanResult",
    # Exceptions
    "PathSecurityError",
    "ContentRejectedError",
    # Authorization
    "CallerContext",
    "caller_context",
    "caller_can_manage_files",
    "current_user_id",
    "allow_all",
    "deny_all",
    "verify_credentials",
    # Convenience functions
    "initialize",
    "reset",
    "read_file",
    "list_files",
    "file_info",
    "write_file",
    "delete_file",
    "copy_file",
    "move_file",
    "is_healthy",
    "get_health_status",
]
