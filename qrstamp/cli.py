"""
Command-line interface.

Usage::

    qrstamp qr "https://example.com" icon.png out.png
    qrstamp process report.pdf --qr out.png --title "Report" --password s3cret
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .errors import QRStampError, WriteError
from .options import STAMP_POSITIONS, FileOptions, MetadataOptions
from .processor import DocumentProcessor
from .qr import QROptions, generate_qr_with_icon

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qrstamp",
        description="Generate icon QR codes and stamp them onto PDFs.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    qr = sub.add_parser("qr", help="write a QR code PNG with a centered icon")
    qr.add_argument("data", help="text to encode")
    qr.add_argument("icon", type=Path, help="icon image (PNG, JPEG, ...)")
    qr.add_argument("output", type=Path, help="output PNG path")
    qr.add_argument(
        "--size", nargs=2, type=int, metavar=("W", "H"), default=(125, 125)
    )
    qr.add_argument(
        "--icon-size", nargs=2, type=int, metavar=("W", "H"), default=(30, 30)
    )
    qr.add_argument("--ecc", default="M", help="L, M, Q or H (default: M)")
    qr.add_argument(
        "--mode",
        default="auto",
        choices=("auto", "numeric", "alphanumeric", "byte"),
    )
    qr.add_argument(
        "--border", type=int, default=0, help="quiet zone in modules"
    )

    proc = sub.add_parser(
        "process", help="stamp a PDF or image and print it as base64"
    )
    proc.add_argument("file", type=Path, help="PDF, JPEG or PNG input")
    proc.add_argument("--qr", required=True, help="image to stamp")
    proc.add_argument(
        "--position", default="br", choices=STAMP_POSITIONS,
        help="stamp anchor (default: br)",
    )
    proc.add_argument("--password", help="password of a protected PDF")
    proc.add_argument("--title")
    proc.add_argument("--author")
    proc.add_argument("--subject")
    proc.add_argument(
        "-o", "--output", type=Path,
        help="write the base64 output here instead of stdout",
    )
    return parser


def _run_qr(args: argparse.Namespace) -> None:
    options = QROptions(
        qr_size=tuple(args.size),
        icon_size=tuple(args.icon_size),
        ecc=args.ecc,
        mode=args.mode,
        border=args.border,
    )
    path = generate_qr_with_icon(args.data, args.icon, args.output, options)
    logger.info("wrote %s", path)
    print(path)


def _run_process(args: argparse.Namespace) -> None:
    processor = DocumentProcessor(
        args.file,
        FileOptions(
            password=args.password,
            qr_code_path=args.qr,
            stamp_position=args.position,
        ),
        MetadataOptions(
            title=args.title, author=args.author, subject=args.subject
        ),
    )
    encoded = processor.process()
    if args.output is not None:
        try:
            args.output.write_text(encoded)
        except OSError as exc:
            raise WriteError(
                f"cannot write output file {args.output}: {exc}",
                path=args.output,
            ) from exc
        logger.info("wrote base64 output to %s", args.output)
    else:
        print(encoded)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    try:
        if args.command == "qr":
            _run_qr(args)
        else:
            _run_process(args)
    except QRStampError as e:
        print(f"qrstamp: error: {e}", file=sys.stderr)
        return 1
    return 0
