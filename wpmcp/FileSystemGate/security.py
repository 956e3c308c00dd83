"""
FileSystemGate security module.

Provides path validation (traversal prevention, allowed roots, allowed
extensions) and the heuristic content scanner applied to writes.
"""

import base64
import binascii
import os
import posixpath
import re
from typing import List, Optional, Pattern, Tuple, Union

from .models import (
    FileErrorKind,
    FileSystemConfig,
    ScanResult,
    SecurityFinding,
    ValidatedPath,
)


TRAVERSAL_SEQUENCES = ("../", "..\\")


class PathSecurityError(Exception):
    """Raised when a path fails security validation."""

    def __init__(self, kind: FileErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class ContentRejectedError(Exception):
    """Raised when write content fails the scan or the PHP structure check."""

    def __init__(self, message: str, findings: Optional[List[SecurityFinding]] = None):
        super().__init__(message)
        self.kind = FileErrorKind.CONTENT_REJECTED
        self.message = message
        self.findings = findings or []


def strip_traversal(raw: str) -> str:
    """
    Textually remove '../' and '..\\' sequences and leading slashes.

    Applied to the raw string before any normalization.
    """
    for sequence in TRAVERSAL_SEQUENCES:
        raw = raw.replace(sequence, "")
    return raw.lstrip("/\\")


def normalize_relative_path(path: str) -> str:
    """Normalize separators and collapse '.' and empty segments."""
    path = path.replace("\\", "/")
    if not path:
        return ""
    normalized = posixpath.normpath(path)
    return "" if normalized == "." else normalized


def file_extension(path: str) -> str:
    """Lower-cased text after the last dot of the final segment ('' if none)."""
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


class PathValidator:
    """
    Validates caller-supplied paths against the file policy.

    With a base_path the validated path is joined to the WordPress root and
    checked again after symlink resolution. Without one (remote clients) the
    absolute path is just the normalized relative path.
    """

    def __init__(self, config: FileSystemConfig, base_path: Optional[str] = None):
        self.config = config
        self.base_path = os.path.abspath(base_path) if base_path else None
        self._roots = [root.replace("\\", "/").strip("/") for root in config.allowed_roots]
        self._extensions = {ext.lower().lstrip(".") for ext in config.allowed_extensions}

    def validate(self, raw_path: Optional[str]) -> ValidatedPath:
        """
        Validate a raw path.

        Raises:
            PathSecurityError: with kind invalid_path or invalid_extension
        """
        raw = raw_path or ""

        if "\x00" in raw:
            raise PathSecurityError(FileErrorKind.INVALID_PATH, "Path contains a null byte")

        stripped = strip_traversal(raw)
        if any(sequence in raw for sequence in TRAVERSAL_SEQUENCES):
            raise PathSecurityError(FileErrorKind.INVALID_PATH, "Directory traversal detected")

        normalized = normalize_relative_path(stripped)
        if ".." in normalized.split("/"):
            raise PathSecurityError(FileErrorKind.INVALID_PATH, "Directory traversal detected")

        root = self._match_root(normalized)
        if root is None:
            raise PathSecurityError(
                FileErrorKind.INVALID_PATH,
                "Path must be within allowed directories: " + ", ".join(self._roots),
            )

        ext = file_extension(normalized)
        if ext and ext not in self._extensions:
            raise PathSecurityError(
                FileErrorKind.INVALID_EXTENSION,
                f"File extension not allowed: {ext}",
            )

        return ValidatedPath(
            original=raw,
            relative_path=normalized,
            root=root,
            absolute_path=self._resolve(normalized, root),
        )

    def _match_root(self, normalized: str) -> Optional[str]:
        """Return the allowed root the path equals or lies beneath."""
        for root in self._roots:
            if normalized == root or normalized.startswith(root + "/"):
                return root
        return None

    def _resolve(self, normalized: str, root: str) -> str:
        if self.base_path is None:
            return normalized

        absolute = os.path.join(self.base_path, *normalized.split("/"))

        # Symlinks inside an allowed root must not lead outside of it
        root_real = os.path.realpath(os.path.join(self.base_path, *root.split("/")))
        target_real = os.path.realpath(absolute)
        try:
            if os.path.commonpath([root_real, target_real]) != root_real:
                raise PathSecurityError(
                    FileErrorKind.INVALID_PATH,
                    f"Path escapes allowed directory: {root}",
                )
        except ValueError:
            raise PathSecurityError(FileErrorKind.INVALID_PATH, "Path is on a different drive")

        return absolute

    def relative_to_base(self, absolute_path: str) -> str:
        """Convert an absolute path under the WordPress root back to a relative one."""
        if self.base_path is None:
            return absolute_path.replace("\\", "/")
        return os.path.relpath(absolute_path, self.base_path).replace(os.sep, "/")


# Ordered heuristic checks. Case-insensitive substring/regex matching only:
# concatenated names, variable functions or equivalent APIs not listed here
# pass straight through. This catches accidental or unsophisticated
# injection; it is not a sandbox.
DANGEROUS_PATTERNS: List[Tuple[str, str]] = [
    (r"\.\./", "Directory traversal"),
    (r"eval\s*\(", "Dynamic code evaluation (eval)"),
    (r"base64_decode", "Encoded payload decoding (base64_decode)"),
    (r"shell_exec", "Shell execution (shell_exec)"),
    (r"exec\s*\(", "Process execution (exec)"),
    (r"system\s*\(", "System call (system)"),
    (r"passthru", "Passthrough execution (passthru)"),
    (r"proc_open", "Process opening (proc_open)"),
]


class ContentScanner:
    """Static scan of write content for code-execution primitives."""

    def __init__(self, patterns: Optional[List[Tuple[str, str]]] = None):
        self._patterns: List[Tuple[Pattern, str]] = [
            (re.compile(pattern, re.IGNORECASE), description)
            for pattern, description in (patterns if patterns is not None else DANGEROUS_PATTERNS)
        ]

    def scan(self, content: Union[str, bytes]) -> ScanResult:
        """Apply every pattern to the full content."""
        text = _as_text(content)
        findings = [
            SecurityFinding(pattern=compiled.pattern, description=description)
            for compiled, description in self._patterns
            if compiled.search(text)
        ]
        return ScanResult(safe=not findings, findings=findings)

    @staticmethod
    def check_php_structure(content: Union[str, bytes]) -> Optional[str]:
        """
        Crude brace balance check for PHP sources.

        Counts every brace, including those inside strings and comments,
        so balanced code can still be rejected.

        Returns:
            Error message, or None if the content passes
        """
        text = _as_text(content)
        if "<?php" not in text:
            return None
        if text.count("{") != text.count("}"):
            return "Unmatched braces in PHP code"
        return None

    def inspect(self, relative_path: str, content: Union[str, bytes]) -> ScanResult:
        """
        Run the PHP structure check (for .php targets) and the pattern scan.

        Raises:
            ContentRejectedError: if either check fails
        """
        if file_extension(relative_path) == "php":
            php_error = self.check_php_structure(content)
            if php_error:
                raise ContentRejectedError(f"PHP validation failed: {php_error}")

        result = self.scan(content)
        if not result.safe:
            raise ContentRejectedError(
                "Security scan failed: " + ", ".join(result.messages()),
                result.findings,
            )
        return result


WRITE_ENCODINGS = ("utf-8", "base64")


def decode_content(content: Union[str, bytes, None], encoding: str = "utf-8") -> bytes:
    """
    Turn write content into the bytes that will be stored.

    Raises:
        ContentRejectedError: for an unknown encoding or invalid base64
    """
    if encoding not in WRITE_ENCODINGS:
        raise ContentRejectedError(f"Unsupported encoding: {encoding}")
    if content is None:
        return b""
    if isinstance(content, bytes):
        return content
    if encoding == "base64":
        try:
            return base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError):
            raise ContentRejectedError("Content is not valid base64")
    return content.encode("utf-8")


def _as_text(content: Union[str, bytes]) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content or ""
