"""Local filesystem implementation.

Usage example:
    from pathlib import Path

    from dispatch_ranker.infrastructure.filesystem import LocalFileSystem

    fs = LocalFileSystem()
    snapshot = fs.read_json(Path("data/schedule.json"))
"""

from __future__ import annotations

from pathlib import Path
from typing import override

from ..protocols import FileSystem
from .io.validation import IncomingDataError, validate_json_as


class JsonFileDecodeError(IncomingDataError):
    """Raised when a file expected to hold JSON cannot be decoded."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"File is not valid JSON: {path}")


class LocalFileSystem(FileSystem):
    """Local filesystem implementation."""

    @override
    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    @override
    def write_text(self, content: str, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    @override
    def read_json(self, path: Path) -> object:
        payload = path.read_text(encoding="utf-8")
        try:
            return validate_json_as(object, payload)
        except IncomingDataError as exc:
            raise JsonFileDecodeError(path) from exc

    @override
    def exists(self, path: Path) -> bool:
        return path.exists()
