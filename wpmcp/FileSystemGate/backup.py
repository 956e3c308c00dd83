"""
FileSystemGate backup store.

Takes a byte-for-byte copy of a file right before it is overwritten or
deleted. Each backup is a pair of files in the backup directory:

    <id>.bak        raw bytes of the original file
    <id>.bak.meta   JSON sidecar {"originalPath", "timestamp", "userId"}

The store is write-only: nothing here lists, restores or prunes backups.
"""

import os
import json
import shutil
import uuid
from datetime import datetime
from typing import Callable, Optional, Union

from wpmcp.shared.gate import GateLogger

from .models import BackupRecord


ACCESS_MARKER = ".htaccess"
ACCESS_MARKER_CONTENT = "Deny from all\n"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_log = GateLogger.get("FileSystemGate.backup")


class BackupStore:
    """Sole owner and writer of the backup directory."""

    def __init__(
        self,
        backup_root: str,
        wp_root: Optional[str] = None,
        user_id_provider: Optional[Callable[[], Optional[Union[int, str]]]] = None,
    ):
        """
        Initialize the backup store.

        Args:
            backup_root: Absolute backup directory (e.g. <wp>/wp-content/wpmcp-backups)
            wp_root: WordPress root, used to record original paths relative to it
            user_id_provider: Returns the acting user's identifier for sidecars
        """
        self.backup_root = backup_root
        self.wp_root = wp_root
        self._user_id_provider = user_id_provider or (lambda: 0)
        self.ensure_store()

    def ensure_store(self) -> None:
        """Create the backup directory and its deny-all marker. Safe to repeat."""
        os.makedirs(self.backup_root, exist_ok=True)

        marker = os.path.join(self.backup_root, ACCESS_MARKER)
        if not os.path.exists(marker):
            with open(marker, "w", encoding="utf-8") as f:
                f.write(ACCESS_MARKER_CONTENT)

    def backup_path_for(self, backup_id: str) -> str:
        return os.path.join(self.backup_root, f"{backup_id}.bak")

    def create_backup(self, file_path: str) -> Optional[BackupRecord]:
        """
        Copy a file into the store before it is modified or deleted.

        Args:
            file_path: Absolute path of the file to back up

        Returns:
            BackupRecord, or None if the file does not exist or the copy failed
        """
        if not os.path.exists(file_path):
            return None

        backup_id = f"backup_{uuid.uuid4().hex}"
        backup_path = self.backup_path_for(backup_id)
        meta_path = backup_path + ".meta"

        try:
            self.ensure_store()
            shutil.copyfile(file_path, backup_path)

            record = BackupRecord(
                id=backup_id,
                backup_path=backup_path,
                original_path=self._relative(file_path),
                timestamp=datetime.now().strftime(TIMESTAMP_FORMAT),
                user_id=self._user_id_provider(),
            )

            with open(meta_path, "w", encoding="utf-8") as f:
                json.dump(record.to_sidecar(), f)

            _log.info(f"Backed up {record.original_path} as {backup_id}")
            return record

        except OSError as e:
            _log.warning(f"Failed to create backup of {file_path}: {e}")
            for partial in (backup_path, meta_path):
                if os.path.exists(partial):
                    try:
                        os.remove(partial)
                    except OSError:
                        _log.warning(f"Could not remove partial backup file {partial}")
            return None

    def _relative(self, file_path: str) -> str:
        if not self.wp_root:
            return file_path
        return os.path.relpath(file_path, self.wp_root).replace(os.sep, "/")
