"""
FileSystemGate authorization glue.

The file operations only ever see a predicate ``can_manage_files() -> bool``.
Hosts decide what it means; the HTTP adapter authenticates the request and
binds the outcome to the current context with ``caller_context``.
"""

import hmac
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Iterator, Optional, Union


@dataclass(frozen=True)
class CallerContext:
    """Who is calling, and whether they hold the file management capability."""
    authorized: bool
    user_id: Optional[Union[int, str]] = None


_caller: ContextVar[Optional[CallerContext]] = ContextVar("wpmcp_caller", default=None)


@contextmanager
def caller_context(context: CallerContext) -> Iterator[CallerContext]:
    """Bind a caller to the current context for the duration of a call."""
    token = _caller.set(context)
    try:
        yield context
    finally:
        _caller.reset(token)


def caller_can_manage_files() -> bool:
    """Predicate backed by the bound caller. No caller means no capability."""
    context = _caller.get()
    return bool(context and context.authorized)


def current_user_id() -> Union[int, str]:
    """Acting user for backup sidecars (0 when anonymous, like WordPress)."""
    context = _caller.get()
    if context is None or context.user_id is None:
        return 0
    return context.user_id


def deny_all() -> bool:
    return False


def allow_all() -> bool:
    return True


def verify_credentials(
    username: Optional[str],
    password: Optional[str],
    expected_username: Optional[str],
    expected_password: Optional[str],
) -> bool:
    """
    Constant-time credential comparison.

    Fails closed when no credentials are configured.
    """
    if not expected_username or not expected_password:
        return False
    user_ok = hmac.compare_digest((username or "").encode("utf-8"), expected_username.encode("utf-8"))
    password_ok = hmac.compare_digest((password or "").encode("utf-8"), expected_password.encode("utf-8"))
    return user_ok and password_ok
