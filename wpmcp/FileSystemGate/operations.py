"""
FileSystemGate file operations.

FileOperationsService runs every call through the same pipeline:

    authorization -> path validation -> [size/content checks] -> [backup]
    -> storage operation -> OperationResult

Validation and scan failures are all detected before anything is mutated.
Mutating calls are serialized per absolute path.
"""

import base64
import os
import shutil
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from wpmcp.shared.gate import GateLogger

from .auth import deny_all
from .backup import BackupStore
from .models import (
    FileEntry,
    FileErrorKind,
    FileInfo,
    FileKind,
    FileSystemConfig,
    OperationResult,
    ValidatedPath,
)
from .security import (
    ContentRejectedError,
    ContentScanner,
    PathSecurityError,
    PathValidator,
    decode_content,
)

_log = GateLogger.get("FileSystemGate")


class FileOperationsService:
    """Path-validated, backup-protected file operations under a WordPress root."""

    def __init__(
        self,
        wp_root: str,
        config: Optional[FileSystemConfig] = None,
        can_manage_files: Optional[Callable[[], bool]] = None,
        user_id_provider: Optional[Callable[[], Optional[Union[int, str]]]] = None,
        backup_store: Optional[BackupStore] = None,
        scanner: Optional[ContentScanner] = None,
    ):
        """
        Args:
            wp_root: WordPress installation root (ABSPATH)
            config: File policy; defaults to the stock allow-lists
            can_manage_files: Authorization predicate, evaluated once per call.
                Defaults to denying everything.
            user_id_provider: Acting user for backup sidecars
            backup_store: Override the backup store (tests)
            scanner: Override the content scanner (tests)
        """
        self.wp_root = os.path.abspath(wp_root)
        self.config = config or FileSystemConfig()
        self.validator = PathValidator(self.config, self.wp_root)
        self.scanner = scanner or ContentScanner()
        self.backups = backup_store or BackupStore(
            os.path.join(self.wp_root, *self.config.backup_dir.split("/")),
            wp_root=self.wp_root,
            user_id_provider=user_id_provider,
        )
        self._can_manage_files = can_manage_files or deny_all
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ==================== Pipeline helpers ====================

    def _deny_if_unauthorized(self, operation: str, path: str) -> Optional[OperationResult]:
        if self._can_manage_files():
            return None
        _log.warning(f"{operation} denied for {path!r}: caller cannot manage files")
        return OperationResult.fail(
            operation, path or "",
            FileErrorKind.UNAUTHORIZED,
            "Caller is not allowed to manage files",
        )

    def _validate(
        self,
        operation: str,
        raw_path: str,
        label: str = "",
    ) -> Tuple[Optional[ValidatedPath], Optional[OperationResult]]:
        try:
            return self.validator.validate(raw_path), None
        except PathSecurityError as e:
            prefix = f"{label}: " if label else ""
            return None, OperationResult.fail(operation, raw_path or "", e.kind, prefix + e.message)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def _locked(self, *paths: str) -> Iterator[None]:
        """Hold the per-path locks of every path, acquired in sorted order."""
        keys = sorted({os.path.normcase(os.path.abspath(p)) for p in paths})
        locks = [self._lock_for(key) for key in keys]
        acquired: List[threading.Lock] = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def _relative(self, absolute_path: str) -> str:
        return self.validator.relative_to_base(absolute_path)

    # ==================== Read operations ====================

    def read(self, path: str, binary: bool = False) -> OperationResult:
        """
        Read a file.

        Text is returned decoded as UTF-8; with binary=True the content is
        base64 encoded instead.
        """
        denied = self._deny_if_unauthorized("read", path)
        if denied is not None:
            return denied

        target, failure = self._validate("read", path)
        if failure is not None:
            return failure

        file_path = target.absolute_path
        if not os.path.exists(file_path):
            return OperationResult.fail("read", target.relative_path, FileErrorKind.NOT_FOUND, "File not found")

        if os.path.isdir(file_path) or not os.access(file_path, os.R_OK):
            return OperationResult.fail(
                "read", target.relative_path, FileErrorKind.NOT_READABLE, "File is not readable"
            )

        try:
            with open(file_path, "rb") as f:
                raw = f.read()
            stat = os.stat(file_path)
        except OSError as e:
            return OperationResult.fail(
                "read", target.relative_path, FileErrorKind.STORAGE_FAILURE, f"Failed to read file: {e}"
            )

        if binary:
            content = base64.b64encode(raw).decode("ascii")
            encoding = "base64"
        else:
            try:
                content = raw.decode("utf-8")
            except UnicodeDecodeError:
                return OperationResult.fail(
                    "read", target.relative_path, FileErrorKind.NOT_READABLE,
                    "Cannot decode file as utf-8. Try binary mode.",
                )
            encoding = "utf-8"

        return OperationResult.ok(
            "read",
            target.relative_path,
            data={
                "content": content,
                "encoding": encoding,
                "size": stat.st_size,
                "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            },
            message=f"Read {len(raw)} bytes",
        )

    def list(self, path: str, recursive: bool = False) -> OperationResult:
        """
        List a directory.

        Flat listings include files and directories (directories first).
        Recursive listings include files only, sorted by path.
        """
        denied = self._deny_if_unauthorized("list", path)
        if denied is not None:
            return denied

        target, failure = self._validate("list", path)
        if failure is not None:
            return failure

        dir_path = target.absolute_path
        if not os.path.isdir(dir_path):
            return OperationResult.fail(
                "list", target.relative_path, FileErrorKind.NOT_A_DIRECTORY, "Path is not a directory"
            )

        try:
            if recursive:
                entries = self._walk_files(dir_path)
                entries.sort(key=lambda e: e.path)
            else:
                entries = self._scan_directory(dir_path)
                entries.sort(key=lambda e: (e.type != FileKind.DIRECTORY, e.name.lower()))
        except OSError as e:
            return OperationResult.fail(
                "list", target.relative_path, FileErrorKind.STORAGE_FAILURE, f"Failed to list directory: {e}"
            )

        return OperationResult.ok(
            "list",
            target.relative_path,
            data={"entries": [entry.to_dict() for entry in entries]},
            message=f"Listed {len(entries)} items",
        )

    def _entry(self, entry_path: str, name: str) -> Optional[FileEntry]:
        try:
            stat = os.stat(entry_path)
        except OSError:
            # Vanished or dangling symlink
            return None
        is_dir = os.path.isdir(entry_path)
        return FileEntry(
            path=self._relative(entry_path),
            name=name,
            type=FileKind.DIRECTORY if is_dir else FileKind.FILE,
            size=0 if is_dir else stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime),
        )

    def _scan_directory(self, dir_path: str) -> List[FileEntry]:
        entries = []
        with os.scandir(dir_path) as it:
            for item in it:
                entry = self._entry(item.path, item.name)
                if entry is not None:
                    entries.append(entry)
        return entries

    def _walk_files(self, dir_path: str) -> List[FileEntry]:
        entries = []
        for current, _dirs, files in os.walk(dir_path):
            for name in files:
                entry = self._entry(os.path.join(current, name), name)
                if entry is not None:
                    entries.append(entry)
        return entries

    def info(self, path: str) -> OperationResult:
        """Size, modification time, permission bits and kind of a path."""
        denied = self._deny_if_unauthorized("info", path)
        if denied is not None:
            return denied

        target, failure = self._validate("info", path)
        if failure is not None:
            return failure

        file_path = target.absolute_path
        if not os.path.exists(file_path):
            return OperationResult.fail("info", target.relative_path, FileErrorKind.NOT_FOUND, "File not found")

        try:
            stat = os.stat(file_path)
        except OSError as e:
            return OperationResult.fail(
                "info", target.relative_path, FileErrorKind.STORAGE_FAILURE, f"Failed to get file info: {e}"
            )

        is_dir = os.path.isdir(file_path)
        file_info = FileInfo(
            path=target.relative_path,
            size=0 if is_dir else stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime),
            permissions=format(stat.st_mode & 0o7777, "04o"),
            type=FileKind.DIRECTORY if is_dir else FileKind.FILE,
        )
        return OperationResult.ok("info", target.relative_path, data=file_info.to_dict())

    # ==================== Write operations ====================

    def write(
        self,
        path: str,
        content: Union[str, bytes, None],
        create_backup: bool = True,
        encoding: str = "utf-8",
    ) -> OperationResult:
        """
        Create or overwrite a file.

        Text content is stored as UTF-8. With encoding="base64" a text
        content is decoded to bytes first, mirroring binary reads.

        Existing files are backed up first unless create_backup is False.
        A failed backup does not stop the write; backup_id is None then.
        """
        denied = self._deny_if_unauthorized("write", path)
        if denied is not None:
            return denied

        target, failure = self._validate("write", path)
        if failure is not None:
            return failure

        try:
            encoded = decode_content(content, encoding)
        except ContentRejectedError as e:
            return OperationResult.fail("write", target.relative_path, e.kind, e.message)

        max_size = self.config.max_file_size_bytes
        if len(encoded) > max_size:
            return OperationResult.fail(
                "write", target.relative_path, FileErrorKind.FILE_TOO_LARGE,
                f"File size ({len(encoded)} bytes) exceeds limit ({max_size} bytes)",
            )

        try:
            self.scanner.inspect(target.relative_path, encoded)
        except ContentRejectedError as e:
            _log.warning(f"Rejected write to {target.relative_path}: {e.message}")
            return OperationResult.fail("write", target.relative_path, e.kind, e.message)

        file_path = target.absolute_path
        if os.path.isdir(file_path):
            return OperationResult.fail(
                "write", target.relative_path, FileErrorKind.STORAGE_FAILURE, "Path is a directory, not a file"
            )

        with self._locked(file_path):
            backup = None
            if create_backup and os.path.isfile(file_path):
                backup = self.backups.create_backup(file_path)

            try:
                os.makedirs(os.path.dirname(file_path), exist_ok=True)
                with open(file_path, "wb") as f:
                    f.write(encoded)
            except OSError as e:
                return OperationResult.fail(
                    "write", target.relative_path, FileErrorKind.STORAGE_FAILURE, f"Failed to write file: {e}"
                )

        backup_id = backup.id if backup else None
        _log.info(f"write {target.relative_path} ({len(encoded)} bytes, backup={backup_id})")
        return OperationResult.ok(
            "write",
            target.relative_path,
            data={"success": True, "backup_id": backup_id, "bytes_written": len(encoded)},
            message=f"Wrote {len(encoded)} bytes",
            backup_id=backup_id,
        )

    def delete(self, path: str, create_backup: bool = True) -> OperationResult:
        """Delete a file, backing it up first unless create_backup is False."""
        denied = self._deny_if_unauthorized("delete", path)
        if denied is not None:
            return denied

        target, failure = self._validate("delete", path)
        if failure is not None:
            return failure

        file_path = target.absolute_path
        if not os.path.exists(file_path):
            return OperationResult.fail("delete", target.relative_path, FileErrorKind.NOT_FOUND, "File not found")

        with self._locked(file_path):
            backup = self.backups.create_backup(file_path) if create_backup else None

            try:
                os.remove(file_path)
            except OSError as e:
                return OperationResult.fail(
                    "delete", target.relative_path, FileErrorKind.STORAGE_FAILURE, f"Failed to delete file: {e}"
                )

        backup_id = backup.id if backup else None
        _log.info(f"delete {target.relative_path} (backup={backup_id})")
        return OperationResult.ok(
            "delete",
            target.relative_path,
            data={"success": True, "backup_id": backup_id},
            message="File deleted",
            backup_id=backup_id,
        )

    def copy(self, source: str, destination: str) -> OperationResult:
        """Copy a file; the destination's parent directory is created if needed."""
        return self._transfer("copy", source, destination, shutil.copy2)

    def move(self, source: str, destination: str) -> OperationResult:
        """Move or rename a file; the destination's parent directory is created if needed."""
        return self._transfer("move", source, destination, shutil.move)

    def _transfer(
        self,
        operation: str,
        source: str,
        destination: str,
        transfer: Callable[[str, str], object],
    ) -> OperationResult:
        denied = self._deny_if_unauthorized(operation, source)
        if denied is not None:
            return denied

        source_target, failure = self._validate(operation, source, "Source")
        if failure is not None:
            return failure

        dest_target, failure = self._validate(operation, destination, "Destination")
        if failure is not None:
            return failure

        source_path = source_target.absolute_path
        dest_path = dest_target.absolute_path
        if not os.path.exists(source_path):
            return OperationResult.fail(
                operation, source_target.relative_path, FileErrorKind.NOT_FOUND, "Source file not found"
            )

        # shutil would drop the file inside an existing directory
        if os.path.isdir(dest_path):
            return OperationResult.fail(
                operation, dest_target.relative_path, FileErrorKind.STORAGE_FAILURE, "Destination is a directory"
            )

        with self._locked(source_path, dest_path):
            try:
                os.makedirs(os.path.dirname(dest_path), exist_ok=True)
                transfer(source_path, dest_path)
            except OSError as e:
                return OperationResult.fail(
                    operation, dest_target.relative_path, FileErrorKind.STORAGE_FAILURE,
                    f"Failed to {operation} file: {e}",
                )

        _log.info(f"{operation} {source_target.relative_path} -> {dest_target.relative_path}")
        return OperationResult.ok(
            operation,
            dest_target.relative_path,
            data={"success": True},
            message=f"{operation.capitalize()} from {source_target.relative_path} to {dest_target.relative_path}",
        )
