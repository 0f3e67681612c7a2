"""
Exception types raised by qrstamp.

Every failure is reported to the caller as a subclass of
:class:`QRStampError`. Input problems additionally derive from
``ValueError`` so that callers that only care about "bad input" can catch
the builtin type.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class QRStampError(Exception):
    """Base class for all qrstamp errors."""


class EncodingError(QRStampError, ValueError):
    """The payload cannot be represented as a QR symbol."""


class ScalingError(QRStampError, ValueError):
    """A target pixel size is invalid for the requested scaling."""


class ConfigurationError(QRStampError, ValueError):
    """An option value is not acceptable."""


class IconLoadError(QRStampError):
    """
    An image that should be composited or stamped could not be loaded.

    Attributes
    ----------
    path : pathlib.Path or None
        Offending path, if one was given.
    not_found : bool
        True if the file does not exist, False if it exists but could
        not be read or decoded.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str | Path] = None,
        not_found: bool = False,
    ) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None
        self.not_found = not_found


class WriteError(QRStampError):
    """An output file could not be created or written."""

    def __init__(self, message: str, *, path: str | Path) -> None:
        super().__init__(message)
        self.path = Path(path)


class ConversionError(QRStampError):
    """An input file could not be converted to PDF."""

    def __init__(self, message: str, *, path: str | Path) -> None:
        super().__init__(message)
        self.path = Path(path)


class PdfToolError(QRStampError):
    """
    The external PDF tool failed.

    Attributes
    ----------
    command : tuple of str
        Argument vector that was executed.
    returncode : int or None
        Exit status, or None if the process could not be started.
    stderr : str
        Captured standard error (may be empty).
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] = (),
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr


class UnsupportedFileTypeError(QRStampError):
    """The file extension is not one qrstamp knows how to process."""


class UnsupportedOperationError(QRStampError, NotImplementedError):
    """The requested operation exists in the API but is not implemented."""
