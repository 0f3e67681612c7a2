"""
Conversion of input files to PDF.

Images are placed on a single A4 portrait page with reportlab, scaled to
the page width and centered vertically. Document formats are not
supported.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .errors import ConversionError, UnsupportedOperationError, WriteError
from .filetype import change_extension

__all__ = [
    "CONVERTED_PREFIX",
    "convert_image_to_pdf",
    "convert_document_to_pdf",
    "default_output_path",
]

logger = logging.getLogger(__name__)

CONVERTED_PREFIX = "process-"


def default_output_path(source: str | Path) -> Path:
    """``process-<stem>.pdf`` next to `source`."""
    target = change_extension(source, "pdf")
    return target.with_name(CONVERTED_PREFIX + target.name)


def convert_image_to_pdf(
    image_path: str | Path, output_path: Optional[str | Path] = None
) -> Path:
    """
    Write `image_path` as a one-page A4 PDF.

    Parameters
    ----------
    image_path : str or pathlib.Path
        JPEG or PNG image.
    output_path : str or pathlib.Path, optional
        Destination. Defaults to :func:`default_output_path`.

    Returns
    -------
    pathlib.Path
        The path of the PDF written.

    Raises
    ------
    ConversionError
        If the image is missing or cannot be decoded.
    WriteError
        If the PDF cannot be written.
    """
    image_path = Path(image_path)
    output_path = (
        Path(output_path) if output_path is not None
        else default_output_path(image_path)
    )

    try:
        with Image.open(image_path) as src:
            # reportlab handles RGB and grayscale directly; both branches
            # detach the pixels from the file being closed
            if src.mode in ("RGB", "L"):
                img = src.copy()
            else:
                img = src.convert("RGB")
    except FileNotFoundError as exc:
        raise ConversionError(
            f"image file not found: {image_path}", path=image_path
        ) from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ConversionError(
            f"cannot decode image {image_path}: {exc}", path=image_path
        ) from exc

    img_w, img_h = img.size
    page_w, page_h = A4
    draw_w = page_w
    draw_h = draw_w * img_h / img_w
    y = (page_h - draw_h) / 2

    pdf = canvas.Canvas(str(output_path), pagesize=A4, invariant=1)
    pdf.drawImage(ImageReader(img), 0, y, width=draw_w, height=draw_h)
    pdf.showPage()
    try:
        pdf.save()
    except OSError as exc:
        raise WriteError(
            f"cannot write PDF {output_path}: {exc}", path=output_path
        ) from exc

    logger.debug("converted %s to %s", image_path, output_path)
    return output_path


def convert_document_to_pdf(document_path: str | Path) -> Path:
    """
    Convert a word-processor document to PDF.

    Raises
    ------
    UnsupportedOperationError
        Always; no converter is available.
    """
    raise UnsupportedOperationError(
        f"document to PDF conversion is not supported: {document_path}"
    )
