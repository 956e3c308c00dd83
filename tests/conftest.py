"""
Pytest configuration and fixtures for wpmcp tests.
"""

import sys
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

# Check for pytest-asyncio
try:
    import pytest_asyncio
    HAS_PYTEST_ASYNCIO = True
except ImportError:
    HAS_PYTEST_ASYNCIO = False


def pytest_collection_modifyitems(config, items):
    """Skip async tests if pytest-asyncio is not installed."""
    if HAS_PYTEST_ASYNCIO:
        return

    import asyncio
    skip_asyncio = pytest.mark.skip(
        reason="pytest-asyncio not installed - async tests require pytest-asyncio"
    )
    for item in items:
        if asyncio.iscoroutinefunction(item.function):
            item.add_marker(skip_asyncio)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    # Cleanup
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def wp_root(temp_dir: Path) -> Path:
    """Create a minimal WordPress tree with a theme and a plugin."""
    root = temp_dir / "wordpress"
    content = root / "wp-content"

    theme = content / "themes" / "mytheme"
    theme.mkdir(parents=True)
    (theme / "style.css").write_text("body { color: red; }")
    (theme / "functions.php").write_text("<?php\nfunction mytheme_setup() {\n}\n")
    (theme / "parts").mkdir()
    (theme / "parts" / "header.html").write_text("<header></header>")

    plugin = content / "plugins" / "myplugin"
    plugin.mkdir(parents=True)
    (plugin / "readme.txt").write_text("My plugin")

    (content / "uploads").mkdir()
    (content / "mu-plugins").mkdir()

    (root / "wp-config.php").write_text("<?php define('DB_PASSWORD', 'secret');")

    return root


@pytest.fixture
def backup_dir(wp_root: Path) -> Path:
    return wp_root / "wp-content" / "wpmcp-backups"


@pytest.fixture(autouse=True)
def reset_module_state():
    """Reset module-level state between tests."""
    yield

    # Reset FileSystemGate
    try:
        import wpmcp.FileSystemGate as fs_gate
        fs_gate.reset()
    except (ImportError, AttributeError):
        pass

    # Reset ToolGate
    try:
        import wpmcp.ToolGate as tool_gate
        tool_gate.reset()
    except (ImportError, AttributeError):
        pass

    # Reset Config
    try:
        import wpmcp.Config as config
        config._manager = None
    except (ImportError, AttributeError):
        pass
