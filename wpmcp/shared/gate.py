"""
Building blocks shared by the wpmcp gates.

- GateLogger: per-gate loggers under the "wpmcp" logger, so LOG_LEVEL tunes
  the file gate, the tool catalog and the HTTP host together
- build_health_status: the dict every gate returns from get_health_status()
- ConfigLoader: JSON policy files (e.g. the file allow-lists) <-> pydantic models
- PathUtils: directory helpers for the backup store and config files
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError


LOG_FORMAT = "[%(name)s] %(levelname)s: %(message)s"


class GateLogger:
    """
    Loggers for the gates, all children of "wpmcp".

    The first call attaches a stream handler to "wpmcp" unless the host
    application has already configured one.
    """

    ROOT = "wpmcp"

    _loggers: Dict[str, logging.Logger] = {}
    _configured = False

    @classmethod
    def _ensure_configured(cls):
        if cls._configured:
            return

        package_logger = logging.getLogger(cls.ROOT)
        if not package_logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            package_logger.addHandler(handler)
            package_logger.setLevel(logging.INFO)

        cls._configured = True

    @classmethod
    def get(cls, gate_name: str) -> logging.Logger:
        """Logger named "wpmcp.<gate_name>", e.g. wpmcp.FileSystemGate."""
        cls._ensure_configured()

        name = f"{cls.ROOT}.{gate_name}"
        logger = cls._loggers.get(name)
        if logger is None:
            logger = cls._loggers[name] = logging.getLogger(name)
        return logger

    @classmethod
    def set_level(cls, level: Union[int, str], gate_name: Optional[str] = None):
        """
        Set the level of one gate, or of the whole package.

        Accepts logging constants or LOG_LEVEL style names ("debug", "WARNING").
        Unknown names fall back to INFO.
        """
        level = _coerce_level(level)
        if gate_name:
            cls.get(gate_name).setLevel(level)
        else:
            cls._ensure_configured()
            logging.getLogger(cls.ROOT).setLevel(level)


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def build_health_status(
    gate_name: str,
    initialized: bool,
    dependencies: List[str],
    checks: Dict[str, bool],
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Health payload served by /api/health.

    Healthy means initialized with no failing check; an empty checks
    dict counts as passing.
    """
    failing = [name for name, passed in checks.items() if not passed]

    return {
        "gate": gate_name,
        "healthy": initialized and not failing,
        "initialized": initialized,
        "dependencies": dependencies,
        "checks": checks,
        "details": details or {},
    }


ModelT = TypeVar("ModelT", bound=BaseModel)


class ConfigLoader:
    """Reads and writes pydantic policy models as indented JSON files."""

    @staticmethod
    def load(
        path: Union[str, Path],
        model_class: Type[ModelT],
        create_default: bool = True,
    ) -> Optional[ModelT]:
        """
        Load a policy file.

        A missing file yields model_class() when create_default is set.
        An unreadable file, bad JSON or values the model rejects all
        yield None, after logging why.
        """
        path = Path(path)
        if not path.exists():
            return model_class() if create_default else None

        try:
            with open(path, "r", encoding="utf-8") as f:
                return model_class.model_validate(json.load(f))
        except (OSError, ValueError) as e:
            # ValidationError is a ValueError
            GateLogger.get("ConfigLoader").error(f"Failed to load config from {path}: {e}")
            return None

    @staticmethod
    def save(path: Union[str, Path], config: BaseModel) -> bool:
        """Write a model to path, creating the parent directory. False on failure."""
        path = Path(path)
        try:
            PathUtils.ensure_dirs(path)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(config.model_dump(mode="json"), f, indent=2)
            return True
        except (OSError, TypeError, ValidationError) as e:
            GateLogger.get("ConfigLoader").error(f"Failed to save config to {path}: {e}")
            return False


class PathUtils:
    """Directory helpers."""

    @staticmethod
    def ensure_dirs(*paths: Union[str, Path]) -> None:
        """
        Create directories for the given paths.

        A path with a suffix (filesystem.json) gets its parent created;
        anything else is treated as a directory itself.
        """
        for path in paths:
            path = Path(path)
            target = path.parent if path.suffix else path
            target.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def is_writable_dir(path: Union[str, Path]) -> bool:
        """True when path is an existing directory this process can write to."""
        return os.path.isdir(path) and os.access(path, os.W_OK)


def get_logger(gate_name: str) -> logging.Logger:
    """Shortcut for GateLogger.get()."""
    return GateLogger.get(gate_name)
