"""
PDF manipulation capability.

:class:`PdfTool` is the interface the processor relies on. The concrete
:class:`PdfcpuTool` delegates every operation to the external ``pdfcpu``
command-line tool, invoked with an argument vector (no shell).
"""

from __future__ import annotations

import abc
import logging
import re
import subprocess
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from .errors import IconLoadError, PdfToolError

__all__ = ["PdfTool", "PdfcpuTool", "STAMP_SCALE", "check_stamp_image"]

logger = logging.getLogger(__name__)

# Stamp size relative to the page, as understood by pdfcpu's "sc:" parameter
STAMP_SCALE = ".1"

_SECRET_FLAGS = frozenset({"-upw", "-opw"})

# pdfcpu reports encrypted input as e.g. "please provide the correct password"
_PASSWORD_PATTERN = re.compile(r"password|encrypt", re.IGNORECASE)


def check_stamp_image(image: Optional[str | Path]) -> Path:
    """
    Resolve the image to be stamped.

    Parameters
    ----------
    image : str or pathlib.Path, optional
        Path of the stamp image.

    Returns
    -------
    pathlib.Path
        `image` as a path to an existing file.

    Raises
    ------
    IconLoadError
        If `image` is unset, or with ``not_found=True`` if it is not an
        existing file.
    """
    if image is None or str(image) == "":
        raise IconLoadError("QR code image is not set")
    image = Path(image)
    if not image.is_file():
        raise IconLoadError(
            f"QR code image not found: {image}", path=image, not_found=True
        )
    return image


class PdfTool(abc.ABC):
    """
    Operations on a single PDF file, modified in place.

    Every method raises :class:`PdfToolError` when the underlying
    operation fails.

    Parameters
    ----------
    path : str or pathlib.Path
        PDF file to operate on.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @abc.abstractmethod
    def stamp(self, image: Optional[str | Path], position: str) -> None:
        """
        Stamp `image` on every page at the pdfcpu anchor `position`.

        Raises
        ------
        IconLoadError
            If `image` is unset or does not exist.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def set_metadata(self, fields: Mapping[str, str]) -> None:
        """Add document properties, e.g. ``{'Title': 'Report'}``."""
        raise NotImplementedError

    @abc.abstractmethod
    def detect_password(self) -> bool:
        """
        Report whether the file requires a password to open.

        Raises
        ------
        PdfToolError
            If validation fails for any other reason, such as a corrupt
            file.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def encrypt(self, password: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def decrypt(self, password: str) -> None:
        raise NotImplementedError


Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def _redact(command: Sequence[str]) -> list[str]:
    redacted = []
    hide_next = False
    for arg in command:
        redacted.append("***" if hide_next else arg)
        hide_next = arg in _SECRET_FLAGS
    return redacted


class PdfcpuTool(PdfTool):
    """
    :class:`PdfTool` backed by the ``pdfcpu`` executable.

    Parameters
    ----------
    path : str or pathlib.Path
        PDF file to operate on.
    binary : str, optional
        Name or path of the pdfcpu executable. The default is 'pdfcpu'.
    timeout : float, optional
        Timeout, in seconds, for each invocation. The default is None
        (no timeout).
    runner : callable, optional
        Callable with the signature of :func:`subprocess.run`. Tests
        substitute a fake here.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        binary: str = "pdfcpu",
        timeout: Optional[float] = None,
        runner: Runner = subprocess.run,
    ):
        super().__init__(path)
        self.binary = binary
        self.timeout = timeout
        self._runner = runner

    def _run(
        self, *args: str, check: bool = True
    ) -> "subprocess.CompletedProcess[str]":
        command = [self.binary, *args]
        shown = _redact(command)
        logger.debug("running %s", " ".join(shown))
        try:
            result = self._runner(
                command, capture_output=True, text=True, timeout=self.timeout
            )
        except FileNotFoundError as exc:
            raise PdfToolError(
                f"pdfcpu executable not found: {self.binary}", command=shown
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise PdfToolError(
                f"pdfcpu timed out after {self.timeout} seconds", command=shown
            ) from exc

        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise PdfToolError(
                f"pdfcpu {args[0]} failed with exit code {result.returncode}"
                + (f": {stderr}" if stderr else ""),
                command=shown,
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    def stamp(self, image: Optional[str | Path], position: str) -> None:
        image = check_stamp_image(image)
        self._run(
            "stamp", "add",
            "-pages", "even,odd",
            "-mode", "image",
            "--",
            str(image),
            f"pos:{position}, rot:0, sc:{STAMP_SCALE}",
            str(self.path),
        )

    def set_metadata(self, fields: Mapping[str, str]) -> None:
        if not fields:
            return
        props = [f"{name} = {value}" for name, value in fields.items()]
        self._run("properties", "add", str(self.path), *props)

    def detect_password(self) -> bool:
        result = self._run("validate", "-q", str(self.path), check=False)
        if result.returncode == 0:
            return False
        output = f"{result.stdout or ''}\n{result.stderr or ''}"
        if _PASSWORD_PATTERN.search(output):
            logger.debug("%s is password protected", self.path)
            return True
        stderr = (result.stderr or "").strip()
        raise PdfToolError(
            f"validation of {self.path} failed with exit code "
            f"{result.returncode}" + (f": {stderr}" if stderr else ""),
            command=[self.binary, "validate", "-q", str(self.path)],
            returncode=result.returncode,
            stderr=stderr,
        )

    def encrypt(self, password: str) -> None:
        self._run("encrypt", "-upw", password, "-opw", password, str(self.path))

    def decrypt(self, password: str) -> None:
        self._run("decrypt", "-upw", password, str(self.path))
