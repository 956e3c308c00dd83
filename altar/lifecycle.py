from __future__ import annotations

from wpmcp import Config, FileSystemGate, ToolGate
from wpmcp.shared.gate import GateLogger

# Lifecycle logger
_log = GateLogger.get("Lifecycle")


async def startup(emit_event):
    """Initialize gates on server startup."""
    GateLogger.set_level(Config.get("LOG_LEVEL", "INFO"))

    valid, errors = Config.validate()
    for error in errors:
        _log.warning(error)

    if not FileSystemGate.is_initialized():
        if FileSystemGate.initialize():
            await emit_event("system", "FileSystemGate initialized")
        else:
            _log.error("FileSystemGate failed to initialize - file endpoints will return 500")

    ToolGate.initialize()
    _log.info("Startup complete")


async def shutdown():
    """Drop gate state on server shutdown."""
    FileSystemGate.reset()
    ToolGate.reset()
    _log.info("Shutdown complete")


__all__ = ["startup", "shutdown"]
