"""
Options for the document processing pipeline.

Options are immutable dataclasses. Partial overrides are applied with the
explicit ``merge_*`` helpers: a field from the override wins only when it
is set, i.e. neither None nor the empty string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError


# Anchors accepted by pdfcpu's "pos:" stamp parameter
STAMP_POSITIONS = ("tl", "tc", "tr", "l", "c", "r", "bl", "bc", "br")

DEFAULT_STAMP_POSITION = "br"


def _is_set(value: Optional[str]) -> bool:
    return value is not None and value != ""


def _pick(base: Optional[str], override: Optional[str]) -> Optional[str]:
    return override if _is_set(override) else base


@dataclass(frozen=True)
class FileOptions:
    """
    Options controlling how a file is stamped and protected.

    Parameters
    ----------
    password : str, optional
        User password of a protected PDF. Also used to re-encrypt the
        output when the input was protected.
    qr_code_path : str, optional
        Image stamped on every page.
    stamp_position : str, optional
        pdfcpu anchor for the stamp, one of ``STAMP_POSITIONS``.
        The default is 'br' (bottom right).

    Raises
    ------
    ConfigurationError
        If `stamp_position` is not a known anchor.
    """

    password: Optional[str] = None
    qr_code_path: Optional[str] = None
    stamp_position: str = DEFAULT_STAMP_POSITION

    def __post_init__(self) -> None:
        position = str(self.stamp_position).lower()
        if position not in STAMP_POSITIONS:
            raise ConfigurationError(
                f"'stamp_position' must be one of {', '.join(STAMP_POSITIONS)}; "
                f"got {self.stamp_position!r}"
            )
        object.__setattr__(self, "stamp_position", position)


@dataclass(frozen=True)
class MetadataOptions:
    """Document properties written into the output PDF."""

    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            _is_set(self.title) or _is_set(self.author) or _is_set(self.subject)
        )

    def as_properties(self) -> dict[str, str]:
        """Set fields keyed by their PDF document-info names."""
        props = {}
        if _is_set(self.title):
            props["Title"] = self.title
        if _is_set(self.author):
            props["Author"] = self.author
        if _is_set(self.subject):
            props["Subject"] = self.subject
        return props


def merge_file_options(
    base: FileOptions, override: Optional[FileOptions]
) -> FileOptions:
    """Return `base` with every set field of `override` applied."""
    if override is None:
        return base
    return FileOptions(
        password=_pick(base.password, override.password),
        qr_code_path=_pick(base.qr_code_path, override.qr_code_path),
        stamp_position=_pick(base.stamp_position, override.stamp_position),
    )


def merge_metadata_options(
    base: MetadataOptions, override: Optional[MetadataOptions]
) -> MetadataOptions:
    """Return `base` with every set field of `override` applied."""
    if override is None:
        return base
    return MetadataOptions(
        title=_pick(base.title, override.title),
        author=_pick(base.author, override.author),
        subject=_pick(base.subject, override.subject),
    )
