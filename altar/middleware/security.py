from __future__ import annotations

import base64
import binascii
from typing import Optional, Tuple, Union

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from wpmcp.FileSystemGate import CallerContext, verify_credentials
from wpmcp.shared.gate import GateLogger

_log = GateLogger.get("Altar.auth")


def parse_basic_auth(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """Decode an 'Authorization: Basic ...' header into (username, password)."""
    if not header:
        return None
    scheme, _, encoded = header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


class BasicAuthMiddleware(BaseHTTPMiddleware):
    """
    Authenticate file endpoint requests with HTTP Basic credentials.

    Every request gets request.state.caller. File requests without
    credentials get an unauthorized caller and are refused by the gate
    itself; requests with wrong credentials are answered 401 here. The
    audit event stream always requires valid credentials.
    """

    PROTECTED_PREFIXES = ("/wp-json/", "/api/events")
    CREDENTIALS_REQUIRED_PREFIXES = ("/api/events",)

    def __init__(
        self,
        app,
        username: Optional[str],
        password: Optional[str],
        user_id: Union[int, str, None] = 1,
    ):
        super().__init__(app)
        self._username = username
        self._password = password
        self._user_id = user_id

    async def dispatch(self, request, call_next):
        request.state.caller = CallerContext(authorized=False)

        path = request.url.path
        if not path.startswith(self.PROTECTED_PREFIXES):
            return await call_next(request)

        credentials = parse_basic_auth(request.headers.get("authorization"))
        if credentials is None:
            if path.startswith(self.CREDENTIALS_REQUIRED_PREFIXES):
                return self._unauthenticated("Authentication required")
            return await call_next(request)

        if not verify_credentials(*credentials, self._username, self._password):
            _log.warning(f"Rejected credentials for {path}")
            return self._unauthenticated("Invalid username or password")

        request.state.caller = CallerContext(authorized=True, user_id=self._user_id)
        return await call_next(request)

    @staticmethod
    def _unauthenticated(message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": {"code": "invalid_credentials", "message": message}},
            headers={"WWW-Authenticate": "Basic"},
        )


__all__ = ["BasicAuthMiddleware", "parse_basic_auth"]
