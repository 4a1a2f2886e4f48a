"""
Storage Configuration for PagePilot.

Module-local configuration for the key/value persistence layer.
All settings are configurable via environment variables.
"""

import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

VALID_BACKENDS = ("file", "memory")


@dataclass
class StorageConfig:
    """
    Configuration for the storage subsystem.

    Attributes:
        backend: "file" (JSON documents on disk) or "memory"
        store_dir: Directory holding one JSON document per key
        indent: JSON indentation for written documents (None = compact)
    """

    backend: str = "file"
    store_dir: str = ".cache"
    indent: Optional[int] = 2

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            PAGEPILOT_STORE_BACKEND: "file" or "memory"
            PAGEPILOT_STORE_DIR: path string
            PAGEPILOT_STORE_INDENT: int, or "none" for compact output
        """
        backend = os.environ.get("PAGEPILOT_STORE_BACKEND", "file").lower()
        if backend not in VALID_BACKENDS:
            logger.warning(f"[STORE] Unknown backend {backend!r}, using 'file'")
            backend = "file"

        indent_raw = os.environ.get("PAGEPILOT_STORE_INDENT", "2").strip().lower()
        indent: Optional[int]
        if indent_raw in ("", "none", "0"):
            indent = None
        else:
            try:
                indent = int(indent_raw)
            except ValueError:
                indent = 2

        return cls(
            backend=backend,
            store_dir=os.environ.get("PAGEPILOT_STORE_DIR", ".cache"),
            indent=indent,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "backend": self.backend,
            "store_dir": self.store_dir,
            "indent": self.indent,
        }


_config: Optional[StorageConfig] = None


def get_storage_config(force_reload: bool = False) -> StorageConfig:
    """Get the global storage configuration (lazy-loaded from env)."""
    global _config
    if _config is None or force_reload:
        _config = StorageConfig.from_env()
    return _config


def reset_storage_config() -> None:
    """Reset global config (mainly for testing)."""
    global _config
    _config = None
