"""File-type detection by extension."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Optional


class FileType(enum.Enum):
    PDF = "pdf"
    IMAGE = "image"
    DOCUMENT = "document"


_EXTENSIONS = {
    ".pdf": FileType.PDF,
    ".jpg": FileType.IMAGE,
    ".jpeg": FileType.IMAGE,
    ".png": FileType.IMAGE,
    ".doc": FileType.DOCUMENT,
    ".docx": FileType.DOCUMENT,
}


def get_file_type(path: str | Path) -> Optional[FileType]:
    """
    Classify `path` by its extension, case-insensitively.

    Returns None for extensions that are not recognized.
    """
    return _EXTENSIONS.get(Path(path).suffix.lower())


def change_extension(path: str | Path, extension: str) -> Path:
    """Replace the suffix of `path`, keeping its directory."""
    return Path(path).with_suffix("." + extension.lstrip("."))
