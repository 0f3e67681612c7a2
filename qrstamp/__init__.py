"""
QR code generation with a centered icon, and QR stamping of PDFs through
the pdfcpu command-line tool.
"""

__version__ = "0.1.0"

from .errors import (
    ConfigurationError,
    ConversionError,
    EncodingError,
    IconLoadError,
    PdfToolError,
    QRStampError,
    ScalingError,
    UnsupportedFileTypeError,
    UnsupportedOperationError,
    WriteError,
)
from .filetype import FileType, get_file_type
from .options import FileOptions, MetadataOptions
from .processor import DocumentProcessor
from .qr import QRCodeImage, QROptions, decode_qr, generate_qr_with_icon

__all__ = [
    "ConfigurationError",
    "ConversionError",
    "DocumentProcessor",
    "EncodingError",
    "FileOptions",
    "FileType",
    "IconLoadError",
    "MetadataOptions",
    "PdfToolError",
    "QRCodeImage",
    "QROptions",
    "QRStampError",
    "ScalingError",
    "UnsupportedFileTypeError",
    "UnsupportedOperationError",
    "WriteError",
    "decode_qr",
    "generate_qr_with_icon",
    "get_file_type",
]
