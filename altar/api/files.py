from __future__ import annotations

from typing import Any, Dict, Literal

from fastapi import APIRouter, HTTPException
from fastapi.requests import Request
from pydantic import BaseModel, ConfigDict, Field

from wpmcp.FileSystemGate import CallerContext, FileErrorKind, OperationResult, caller_context


API_PREFIX = "/wp-json/wpmcp/v1/file"

STATUS_CODES: Dict[FileErrorKind, int] = {
    FileErrorKind.INVALID_PATH: 400,
    FileErrorKind.INVALID_EXTENSION: 400,
    FileErrorKind.NOT_A_DIRECTORY: 400,
    FileErrorKind.CONTENT_REJECTED: 400,
    FileErrorKind.FILE_TOO_LARGE: 413,
    FileErrorKind.NOT_FOUND: 404,
    FileErrorKind.UNAUTHORIZED: 403,
    FileErrorKind.NOT_READABLE: 403,
    FileErrorKind.STORAGE_FAILURE: 500,
    FileErrorKind.REMOTE_FAILURE: 502,
}


class PathRequest(BaseModel):
    """Body for read and info."""
    path: str
    binary: bool = False


class ListRequest(BaseModel):
    """Body for list."""
    path: str
    recursive: bool = False


class WriteRequest(BaseModel):
    """Body for write."""
    model_config = ConfigDict(populate_by_name=True)

    path: str
    content: str = ""
    encoding: Literal["utf-8", "base64"] = "utf-8"
    create_backup: bool = Field(default=True, alias="createBackup")


class DeleteRequest(BaseModel):
    """Body for delete."""
    model_config = ConfigDict(populate_by_name=True)

    path: str
    create_backup: bool = Field(default=True, alias="createBackup")


class TransferRequest(BaseModel):
    """Body for copy and move."""
    source: str
    destination: str


def _unwrap(result: OperationResult) -> Any:
    """Return the result data, or raise HTTPException for a failed result."""
    if result.success:
        return result.data
    kind = result.error_kind or FileErrorKind.STORAGE_FAILURE
    raise HTTPException(
        status_code=STATUS_CODES.get(kind, 500),
        detail={"code": kind.value, "message": result.error},
    )


def _caller(request: Request) -> CallerContext:
    return getattr(request.state, "caller", None) or CallerContext(authorized=False)


def create_router(FileSystemGate, emit_event) -> APIRouter:
    router = APIRouter(prefix=API_PREFIX)

    @router.post("/read")
    async def api_read(data: PathRequest, request: Request):
        """Read a file."""
        with caller_context(_caller(request)):
            result = FileSystemGate.read_file(data.path, binary=data.binary)
        body = _unwrap(result)
        return {
            "content": body["content"],
            "size": body["size"],
            "modified": body["modified"],
        }

    @router.post("/list")
    async def api_list(data: ListRequest, request: Request):
        """List a directory."""
        with caller_context(_caller(request)):
            result = FileSystemGate.list_files(data.path, recursive=data.recursive)
        return {"files": _unwrap(result)["entries"]}

    @router.post("/info")
    async def api_info(data: PathRequest, request: Request):
        """Get file metadata."""
        with caller_context(_caller(request)):
            result = FileSystemGate.file_info(data.path)
        body = _unwrap(result)
        return {
            "size": body["size"],
            "modified": body["modified"],
            "permissions": body["permissions"],
            "type": body["type"],
        }

    @router.post("/write")
    async def api_write(data: WriteRequest, request: Request):
        """Create or overwrite a file."""
        caller = _caller(request)
        with caller_context(caller):
            result = FileSystemGate.write_file(
                data.path, data.content, create_backup=data.create_backup, encoding=data.encoding
            )
        body = _unwrap(result)

        await emit_event(
            "filesystem", f"Wrote {result.path}",
            operation="write", path=result.path, backup=result.backup_id, user_id=caller.user_id,
        )
        return {
            "success": body["success"],
            "backup": body["backup_id"],
            "bytes_written": body["bytes_written"],
        }

    @router.post("/delete")
    async def api_delete(data: DeleteRequest, request: Request):
        """Delete a file."""
        caller = _caller(request)
        with caller_context(caller):
            result = FileSystemGate.delete_file(data.path, create_backup=data.create_backup)
        body = _unwrap(result)

        await emit_event(
            "filesystem", f"Deleted {result.path}",
            operation="delete", path=result.path, backup=result.backup_id, user_id=caller.user_id,
        )
        return {"success": body["success"], "backup": body["backup_id"]}

    @router.post("/copy")
    async def api_copy(data: TransferRequest, request: Request):
        """Copy a file."""
        caller = _caller(request)
        with caller_context(caller):
            result = FileSystemGate.copy_file(data.source, data.destination)
        body = _unwrap(result)

        await emit_event(
            "filesystem", result.message,
            operation="copy", source=data.source, path=result.path, user_id=caller.user_id,
        )
        return {"success": body["success"]}

    @router.post("/move")
    async def api_move(data: TransferRequest, request: Request):
        """Move or rename a file."""
        caller = _caller(request)
        with caller_context(caller):
            result = FileSystemGate.move_file(data.source, data.destination)
        body = _unwrap(result)

        await emit_event(
            "filesystem", result.message,
            operation="move", source=data.source, path=result.path, user_id=caller.user_id,
        )
        return {"success": body["success"]}

    return router


__all__ = ["create_router", "STATUS_CODES", "API_PREFIX"]
