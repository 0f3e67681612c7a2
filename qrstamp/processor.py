"""
Document processing pipeline.

A :class:`DocumentProcessor` takes a PDF or an image, stamps a QR code
image on every page, writes document properties, restores password
protection if the input had it, and exposes the resulting PDF as base64.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Callable, Optional

from .convert import convert_document_to_pdf, convert_image_to_pdf
from .errors import ConfigurationError, UnsupportedFileTypeError
from .filetype import FileType, get_file_type
from .options import (
    FileOptions,
    MetadataOptions,
    merge_file_options,
    merge_metadata_options,
)
from .pdftool import PdfcpuTool, PdfTool, check_stamp_image

__all__ = ["DocumentProcessor"]

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """
    Stamp, annotate and re-protect a single input file.

    Parameters
    ----------
    file_path : str or pathlib.Path
        PDF, JPEG/PNG image, or Word document.
    file_options : FileOptions, optional
        Overrides for the default :class:`FileOptions`; only set fields
        are applied.
    metadata_options : MetadataOptions, optional
        Overrides for the default (empty) :class:`MetadataOptions`.
    tool_factory : callable, optional
        Builds the :class:`PdfTool` for a given PDF path. The default is
        :class:`PdfcpuTool`.

    Attributes
    ----------
    pdf_protection : bool
        True once a password-protected input has been detected.
    output_path : pathlib.Path or None
        Processed PDF, set after a successful run.
    base64_output : str or None
        Processed PDF as base64, set after a successful run.
    """

    def __init__(
        self,
        file_path: str | Path,
        file_options: Optional[FileOptions] = None,
        metadata_options: Optional[MetadataOptions] = None,
        *,
        tool_factory: Callable[[Path], PdfTool] = PdfcpuTool,
    ):
        self.file_path = Path(file_path)
        self.file_options = merge_file_options(FileOptions(), file_options)
        self.metadata_options = merge_metadata_options(
            MetadataOptions(), metadata_options
        )
        self.tool_factory = tool_factory
        self.pdf_protection = False
        self.output_path: Optional[Path] = None
        self.base64_output: Optional[str] = None

    def process(self) -> str:
        """
        Run the pipeline for the input file.

        A protected PDF is decrypted in place for stamping and is
        encrypted again with the same password afterwards, also when a
        later step fails.

        Returns
        -------
        str
            The processed PDF, base64-encoded.

        Raises
        ------
        IconLoadError
            If the stamp image is unset or missing; raised before the
            input is touched.
        ConfigurationError
            If the PDF is protected and no password was given.
        UnsupportedFileTypeError
            For unknown extensions.
        UnsupportedOperationError
            For Word documents.
        """
        file_type = get_file_type(self.file_path)
        logger.info("processing %s as %s", self.file_path, file_type)

        if file_type is None:
            raise UnsupportedFileTypeError(
                f"unsupported file type: {self.file_path}"
            )

        stamp_image = check_stamp_image(self.file_options.qr_code_path)

        if file_type is FileType.PDF:
            tool = self.tool_factory(self.file_path)
            self.pdf_protection = tool.detect_password()
            if self.pdf_protection:
                password = self.file_options.password
                if not password:
                    raise ConfigurationError(
                        f"{self.file_path} is password protected "
                        f"but no password was given"
                    )
                tool.decrypt(password)
        elif file_type is FileType.IMAGE:
            tool = self.tool_factory(convert_image_to_pdf(self.file_path))
        else:
            tool = self.tool_factory(convert_document_to_pdf(self.file_path))

        return self._process_pdf(tool, stamp_image)

    def _process_pdf(self, tool: PdfTool, stamp_image: Path) -> str:
        try:
            tool.stamp(stamp_image, self.file_options.stamp_position)
            if not self.metadata_options.is_empty():
                tool.set_metadata(self.metadata_options.as_properties())
        except Exception:
            if self.pdf_protection:
                logger.warning(
                    "processing %s failed; restoring its encryption", tool.path
                )
                tool.encrypt(self.file_options.password)
            raise

        if self.pdf_protection:
            tool.encrypt(self.file_options.password)

        self.output_path = tool.path
        self.base64_output = base64.b64encode(tool.path.read_bytes()).decode(
            "ascii"
        )
        logger.info("processed %s into %s", self.file_path, tool.path)
        return self.base64_output
