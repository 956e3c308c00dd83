"""
wpmcp - Path-validated, backup-protected file access for WordPress sites.

Gates:
- FileSystemGate: validated file operations under a WordPress root, plus
  a remote client for sites exposing the file endpoints
- ToolGate: agent-callable catalog of the file operations
- Config: schema-driven configuration (.env, data/config.json)
"""

from wpmcp import Config
from wpmcp import FileSystemGate
from wpmcp import ToolGate

__version__ = "0.1.0"

__all__ = ["Config", "FileSystemGate", "ToolGate", "__version__"]
