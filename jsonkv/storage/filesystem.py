"""Local filesystem access used by the store."""
from __future__ import annotations

import os
from pathlib import Path


class LocalFileSystem:
    """Thin wrapper over the OS calls the store depends on.

    Missing files surface as ``FileNotFoundError``; every other failure is the
    ``OSError`` raised by the operating system.
    """

    def stat(self, path: Path) -> os.stat_result:
        return path.stat()

    def can_read_write(self, path: Path) -> bool:
        return os.access(path, os.R_OK | os.W_OK)

    def read_bytes(self, path: Path) -> bytes:
        return path.read_bytes()

    def write_text(self, path: Path, text: str) -> None:
        path.write_text(text, encoding="utf-8")
