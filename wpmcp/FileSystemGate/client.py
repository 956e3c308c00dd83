"""
Remote client for the WordPress file endpoints.

Talks to a site running the wpmcp file endpoints
(POST /wp-json/wpmcp/v1/file/<operation>) with WordPress application
password credentials. Paths and write content are checked locally with
the same validator and scanner the server uses, so obviously bad calls
never leave the process.
"""

import base64
from typing import Any, Dict, Optional, Union

import httpx

from wpmcp.shared.gate import GateLogger

from .models import FileErrorKind, FileSystemConfig, OperationResult
from .security import (
    ContentRejectedError,
    ContentScanner,
    PathSecurityError,
    PathValidator,
)

_log = GateLogger.get("FileSystemGate.client")


# Error codes the WordPress side may answer with, beyond FileErrorKind values
REMOTE_ERROR_CODES: Dict[str, FileErrorKind] = {
    "rest_forbidden": FileErrorKind.UNAUTHORIZED,
    "rest_not_logged_in": FileErrorKind.UNAUTHORIZED,
    "security_check_failed": FileErrorKind.CONTENT_REJECTED,
    "php_validation_failed": FileErrorKind.CONTENT_REJECTED,
    "write_failed": FileErrorKind.STORAGE_FAILURE,
    "delete_failed": FileErrorKind.STORAGE_FAILURE,
    "copy_failed": FileErrorKind.STORAGE_FAILURE,
    "move_failed": FileErrorKind.STORAGE_FAILURE,
}


def error_kind_for(code: Optional[str], status_code: int) -> FileErrorKind:
    """Map a remote error code (or bare HTTP status) to a FileErrorKind."""
    if code:
        try:
            return FileErrorKind(code)
        except ValueError:
            pass
        if code in REMOTE_ERROR_CODES:
            return REMOTE_ERROR_CODES[code]
    if status_code in (401, 403):
        return FileErrorKind.UNAUTHORIZED
    if status_code == 404:
        return FileErrorKind.NOT_FOUND
    return FileErrorKind.REMOTE_FAILURE


class WordPressFileClient:
    """Async client for the seven remote file operations."""

    API_PATH = "/wp-json/wpmcp/v1/file"
    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        config: Optional[FileSystemConfig] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Site URL, e.g. https://example.com
            username: WordPress username
            password: WordPress application password
            config: File policy used for local pre-validation
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.auth = httpx.BasicAuth(username, password)
        self.config = config or FileSystemConfig()
        self.validator = PathValidator(self.config)
        self.scanner = ContentScanner()
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._transport = transport

    @classmethod
    def from_config(cls, config: Optional[FileSystemConfig] = None) -> "WordPressFileClient":
        """Build a client from WORDPRESS_URL / WORDPRESS_USERNAME / WORDPRESS_PASSWORD."""
        from wpmcp.Config import get

        base_url = get("WORDPRESS_URL")
        username = get("WORDPRESS_USERNAME")
        password = get("WORDPRESS_PASSWORD")
        if not base_url or not username or not password:
            raise ValueError(
                "WordPress client requires WORDPRESS_URL, WORDPRESS_USERNAME and WORDPRESS_PASSWORD"
            )
        return cls(base_url, username, password, config=config)

    # ==================== Local checks ====================

    def _check_path(self, operation: str, path: str, label: str = "") -> Optional[OperationResult]:
        try:
            self.validator.validate(path)
        except PathSecurityError as e:
            prefix = f"{label}: " if label else ""
            return OperationResult.fail(operation, path or "", e.kind, prefix + e.message)
        return None

    def _check_content(self, path: str, content: Union[str, bytes]) -> Optional[OperationResult]:
        encoded = content.encode("utf-8") if isinstance(content, str) else content
        max_size = self.config.max_file_size_bytes
        if len(encoded) > max_size:
            return OperationResult.fail(
                "write", path, FileErrorKind.FILE_TOO_LARGE,
                f"File size ({len(encoded)} bytes) exceeds limit ({max_size} bytes)",
            )
        try:
            self.scanner.inspect(path, content)
        except ContentRejectedError as e:
            return OperationResult.fail("write", path, e.kind, e.message)
        return None

    # ==================== Transport ====================

    async def _post(self, operation: str, path: str, payload: Dict[str, Any]) -> Union[Dict[str, Any], OperationResult]:
        """POST to an endpoint; returns the JSON body or a failed OperationResult."""
        url = f"{self.base_url}{self.API_PATH}/{operation}"

        try:
            async with httpx.AsyncClient(
                auth=self.auth,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            _log.warning(f"{operation} {path}: request failed: {e}")
            return OperationResult.fail(operation, path, FileErrorKind.REMOTE_FAILURE, f"Request failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            code, message = None, response.reason_phrase or f"HTTP {response.status_code}"
            if isinstance(body, dict):
                error = body.get("detail", body)
                if isinstance(error, dict):
                    code = error.get("code")
                    message = error.get("message") or message
                elif isinstance(error, str):
                    message = error
            return OperationResult.fail(
                operation, path, error_kind_for(code, response.status_code), message
            )

        if not isinstance(body, dict):
            return OperationResult.fail(
                operation, path, FileErrorKind.REMOTE_FAILURE, "Unexpected response from WordPress"
            )
        return body

    # ==================== Operations ====================

    async def read_file(self, path: str) -> OperationResult:
        failure = self._check_path("read", path)
        if failure is not None:
            return failure

        body = await self._post("read", path, {"path": path})
        if isinstance(body, OperationResult):
            return body
        return OperationResult.ok("read", path, data=body)

    async def list_files(self, path: str, recursive: bool = False) -> OperationResult:
        failure = self._check_path("list", path)
        if failure is not None:
            return failure

        body = await self._post("list", path, {"path": path, "recursive": recursive})
        if isinstance(body, OperationResult):
            return body
        return OperationResult.ok("list", path, data={"entries": body.get("files", [])})

    async def file_info(self, path: str) -> OperationResult:
        failure = self._check_path("info", path)
        if failure is not None:
            return failure

        body = await self._post("info", path, {"path": path})
        if isinstance(body, OperationResult):
            return body
        return OperationResult.ok("info", path, data=body)

    async def write_file(
        self,
        path: str,
        content: Union[str, bytes],
        create_backup: bool = True,
    ) -> OperationResult:
        """
        Write a file; size, PHP structure and content scan are checked before sending.

        Bytes are sent base64 encoded.
        """
        failure = self._check_path("write", path) or self._check_content(path, content)
        if failure is not None:
            return failure

        payload = {"path": path, "content": content, "createBackup": create_backup}
        if isinstance(content, bytes):
            payload["content"] = base64.b64encode(content).decode("ascii")
            payload["encoding"] = "base64"

        body = await self._post("write", path, payload)
        if isinstance(body, OperationResult):
            return body
        backup_id = body.get("backup")
        return OperationResult.ok(
            "write",
            path,
            data={
                "success": bool(body.get("success", True)),
                "backup_id": backup_id,
                "bytes_written": body.get("bytes_written"),
            },
            backup_id=backup_id,
        )

    async def delete_file(self, path: str, create_backup: bool = True) -> OperationResult:
        failure = self._check_path("delete", path)
        if failure is not None:
            return failure

        body = await self._post("delete", path, {"path": path, "createBackup": create_backup})
        if isinstance(body, OperationResult):
            return body
        backup_id = body.get("backup")
        return OperationResult.ok(
            "delete",
            path,
            data={"success": bool(body.get("success", True)), "backup_id": backup_id},
            backup_id=backup_id,
        )

    async def copy_file(self, source: str, destination: str) -> OperationResult:
        return await self._transfer("copy", source, destination)

    async def move_file(self, source: str, destination: str) -> OperationResult:
        return await self._transfer("move", source, destination)

    async def _transfer(self, operation: str, source: str, destination: str) -> OperationResult:
        failure = (
            self._check_path(operation, source, "Source")
            or self._check_path(operation, destination, "Destination")
        )
        if failure is not None:
            return failure

        body = await self._post(operation, source, {"source": source, "destination": destination})
        if isinstance(body, OperationResult):
            return body
        return OperationResult.ok(
            operation, destination, data={"success": bool(body.get("success", True))}
        )
