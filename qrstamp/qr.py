"""
QR code generation with a centered icon overlay.

This module turns a text payload into a QR code raster of a fixed pixel
size and composites a small icon at its geometric center. The QR structure
is generated once and stored as a 2D boolean array; scaling to pixel space
is performed with an integer nearest-neighbor factor so that module edges
stay sharp, while the decorative icon is resized with a bicubic
(Catmull-Rom) filter.

Functions
---------
generate_qr_with_icon
    Encode text, overlay an icon and write the result as a PNG file.
load_icon
    Load an icon image from disk as RGBA.
resize_icon
    Resize an icon to a fixed footprint.
decode_qr
    Decode a QR image with OpenCV (optional dependency).

Classes
-------
QROptions
    Immutable rendering configuration.
QRCodeImage
    QR code backed by a boolean module matrix with explicit rendering
    and validation utilities.

Examples
--------
Write a 125x125 QR code with a 30x30 icon in the middle:

>>> generate_qr_with_icon("https://example.com", "icon.png", "out.png")
PosixPath('out.png')

Render in memory with a larger canvas and a stronger error correction:

>>> opts = QROptions(qr_size=(250, 250), icon_size=(50, 50), ecc="H")
>>> qr = QRCodeImage("https://example.com", opts)
>>> composite = qr.render_with_icon(load_icon("icon.png"))
>>> composite.size
(250, 250)

Validate a composite (requires OpenCV):

>>> qr.validate(composite)
True

Notes
-----
The generator has no logging side effects. Every failure is raised as a
subclass of :class:`qrstamp.errors.QRStampError` and no partial output
file is left behind.
"""

from __future__ import annotations

import math
import os
import secrets
import stat
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

import qrcode
from qrcode.constants import (
    ERROR_CORRECT_L,
    ERROR_CORRECT_M,
    ERROR_CORRECT_Q,
    ERROR_CORRECT_H,
)
from qrcode.exceptions import DataOverflowError
from qrcode.util import MODE_8BIT_BYTE, MODE_ALPHA_NUM, MODE_NUMBER, QRData

from .errors import (
    ConfigurationError,
    EncodingError,
    IconLoadError,
    ScalingError,
    WriteError,
)


_ECC_MAP = {
    "L": ERROR_CORRECT_L,  # ~7% error correction
    "M": ERROR_CORRECT_M,  # ~15% (default)
    "Q": ERROR_CORRECT_Q,  # ~25%
    "H": ERROR_CORRECT_H,  # ~30%
}

_ECC_ALIASES = {
    "LOW": "L",
    "MEDIUM": "M",
    "QUARTILE": "Q",
    "HIGH": "H",
}

# None lets the qrcode library split the payload into optimal segments
_MODE_MAP = {
    "auto": None,
    "numeric": MODE_NUMBER,
    "alphanumeric": MODE_ALPHA_NUM,
    "byte": MODE_8BIT_BYTE,
}

# Smallest side OpenCV is given when decoding
_DECODE_MIN_SIDE = 300


Color = tuple[int, int, int]  # (R, G, B)
Size = tuple[int, int]  # (width, height)
ImageLike = Union[np.ndarray, Image.Image]


@dataclass(frozen=True)
class QROptions:
    """
    Immutable rendering configuration for an icon-overlaid QR code.

    Parameters
    ----------
    qr_size : tuple of int, optional
        Output size in pixels as (width, height). The default is
        (125, 125).
    icon_size : tuple of int, optional
        Size in pixels the icon is resized to, as (width, height). The
        default is (30, 30).
    ecc : str, optional
        Error-correction level: 'L', 'M', 'Q', 'H' or the long names
        'low', 'medium', 'quartile', 'high'. Case-insensitive and
        normalized to the single letter. The default is 'M'.
    mode : {'auto', 'numeric', 'alphanumeric', 'byte'}, optional
        QR encoding mode. 'auto' picks numeric, alphanumeric or byte
        segments per content. The default is 'auto'.
    border : int, optional
        Quiet zone, in modules, added around the symbol before scaling.
        The default is 0.
    fg : Color, optional
        Color of dark modules. The default is (0, 0, 0).
    bg : Color, optional
        Color of light modules and of any margin left by integer
        scaling. The default is (255, 255, 255).

    Raises
    ------
    ConfigurationError
        If `ecc` or `mode` is unknown, or `border` is negative.

    Notes
    -----
    Pixel sizes are not checked here; invalid sizes surface as
    :class:`ScalingError` when the image is actually scaled.
    """

    qr_size: Size = (125, 125)
    icon_size: Size = (30, 30)
    ecc: str = "M"
    mode: str = "auto"
    border: int = 0
    fg: Color = (0, 0, 0)
    bg: Color = (255, 255, 255)

    def __post_init__(self) -> None:
        ecc_upper = str(self.ecc).upper()
        ecc_upper = _ECC_ALIASES.get(ecc_upper, ecc_upper)
        if ecc_upper not in _ECC_MAP:
            raise ConfigurationError(
                f"'ecc' must be one of L, M, Q, H "
                f"(or low, medium, quartile, high); got {self.ecc!r}"
            )

        mode_lower = str(self.mode).lower()
        if mode_lower not in _MODE_MAP:
            raise ConfigurationError(
                f"'mode' must be one of {', '.join(_MODE_MAP)}; "
                f"got {self.mode!r}"
            )

        if int(self.border) < 0:
            raise ConfigurationError("'border' must be non-negative")

        # Store normalized values
        object.__setattr__(self, "ecc", ecc_upper)
        object.__setattr__(self, "mode", mode_lower)
        object.__setattr__(self, "border", int(self.border))
        object.__setattr__(self, "qr_size", _as_size(self.qr_size))
        object.__setattr__(self, "icon_size", _as_size(self.icon_size))

    @property
    def ecc_level(self) -> int:
        """Numeric ECC constant understood by the qrcode library."""
        return _ECC_MAP[self.ecc]

    @property
    def mode_constant(self) -> Optional[int]:
        """qrcode mode constant, or None for automatic selection."""
        return _MODE_MAP[self.mode]


def _as_size(value) -> Size:
    width, height = value
    return int(width), int(height)


class QRCodeImage:
    """
    Generated QR code backed by a boolean module matrix.

    Parameters
    ----------
    data : str
        Payload to encode. Must be a non-empty string.
    options : QROptions, optional
        Rendering configuration. Defaults to ``QROptions()``.

    Attributes
    ----------
    data : str
        Encoded payload.
    options : QROptions
        Configuration used to build and render the code.
    matrix : numpy.ndarray
        Boolean 2D array with shape (rows, cols). True indicates a dark
        module. Includes the quiet zone when ``options.border`` > 0.

    Raises
    ------
    EncodingError
        If `data` is empty, does not fit in a version 40 symbol at the
        chosen error-correction level, or contains characters the
        chosen mode cannot represent.
    """

    def __init__(self, data: str, options: Optional[QROptions] = None) -> None:
        self.data = data
        self.options = options if options is not None else QROptions()
        self._matrix = self._build_matrix()

    # ---------- Core matrix generation ----------

    def _build_matrix(self) -> np.ndarray:
        if not isinstance(self.data, str) or not self.data:
            raise EncodingError("'data' must be a non-empty string")

        qr = qrcode.QRCode(
            version=None,  # let the library pick
            error_correction=self.options.ecc_level,
            box_size=1,
            border=self.options.border,
        )

        mode = self.options.mode_constant
        try:
            if mode is None:
                qr.add_data(self.data)
            else:
                qr.add_data(QRData(self.data, mode=mode))
            qr.make(fit=True)
        except DataOverflowError as exc:
            raise EncodingError(
                f"payload of {len(self.data)} characters exceeds QR capacity "
                f"at error-correction level {self.options.ecc}"
            ) from exc
        except ValueError as exc:
            raise EncodingError(
                f"payload cannot be encoded in {self.options.mode} mode: {exc}"
            ) from exc

        matrix = np.array(qr.get_matrix(), dtype=bool)
        matrix.setflags(write=False)
        return matrix

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    @property
    def module_shape(self) -> tuple[int, int]:
        """Shape of the module grid as (rows, cols)."""
        return self._matrix.shape

    @property
    def pixel_shape(self) -> tuple[int, int]:
        """Shape of the rendered image in pixels as (height, width)."""
        width, height = self.options.qr_size
        return height, width

    @property
    def scale_factor(self) -> int:
        """Integer number of pixels per module; see :meth:`check_size`."""
        return self.check_size()

    def check_size(self) -> int:
        """
        Check that the configured QR size can hold the module matrix.

        Returns
        -------
        int
            Integer number of pixels per module along each axis.

        Raises
        ------
        ScalingError
            If the configured QR size is not positive, or too small to
            give every module at least one pixel.
        """
        height, width = self.pixel_shape
        if width <= 0 or height <= 0:
            raise ScalingError(
                f"QR size must be positive; got {width}x{height}"
            )
        rows, cols = self.module_shape
        factor = min(width // cols, height // rows)
        if factor <= 0:
            raise ScalingError(
                f"cannot scale a {cols}x{rows} module QR code "
                f"to {width}x{height} pixels"
            )
        return factor

    # ---------- Rendering ----------

    def _full_mask(self) -> np.ndarray:
        """
        Construct the full-resolution boolean mask in pixel space.

        The module matrix is scaled by the integer ``scale_factor`` with
        a Kronecker product, then centered in the target size. Pixels in
        the remaining margin are False (light).
        """
        box = self.scale_factor
        height, width = self.pixel_shape

        # Scale module grid with Kronecker product
        scaled = np.kron(self.matrix, np.ones((box, box), dtype=bool))

        pad_y = height - scaled.shape[0]
        pad_x = width - scaled.shape[1]
        top = pad_y // 2
        left = pad_x // 2
        return np.pad(
            scaled,
            pad_width=((top, pad_y - top), (left, pad_x - left)),
            mode="constant",
            constant_values=False,
        )

    def render_array(self) -> np.ndarray:
        """
        Render the QR code to an RGB NumPy array.

        Returns
        -------
        numpy.ndarray
            Array of shape (H, W, 3) with dtype uint8.
        """
        h, w = self.pixel_shape
        img = np.full((h, w, 3), self.options.bg, dtype=np.uint8)

        mask = self._full_mask()  # (H, W) bool
        img[mask] = self.options.fg
        return img

    def render_pil(self) -> Image.Image:
        """Render the QR code as an opaque PIL image in RGB mode."""
        return Image.fromarray(self.render_array())

    def render_with_icon(self, icon: ImageLike) -> Image.Image:
        """
        Render the QR code and composite an icon at its center.

        The canvas starts fully transparent. The QR image is drawn at
        the origin first, then the resized icon is drawn on top with
        "over" alpha compositing, so transparent icon pixels leave the
        QR modules visible.

        Parameters
        ----------
        icon : numpy.ndarray or PIL.Image.Image
            Icon of any size. Grayscale, RGB and RGBA inputs are
            accepted; alpha is respected when present.

        Returns
        -------
        PIL.Image.Image
            RGBA image of size ``options.qr_size``.

        Raises
        ------
        ScalingError
            If either target size is invalid, or the icon does not fit
            inside the QR image.
        """
        base = self.render_pil().convert("RGBA")
        qr_w, qr_h = base.size

        icon_img = _to_rgba_image(icon, name="icon")
        icon_img = resize_icon(icon_img, self.options.icon_size)
        icon_w, icon_h = icon_img.size
        if icon_w > qr_w or icon_h > qr_h:
            raise ScalingError(
                f"icon size {icon_w}x{icon_h} exceeds QR size {qr_w}x{qr_h}"
            )

        canvas = Image.new("RGBA", (qr_w, qr_h), (0, 0, 0, 0))
        canvas.alpha_composite(base, dest=(0, 0))

        # Center position, truncating
        x0 = (qr_w - icon_w) // 2
        y0 = (qr_h - icon_h) // 2
        canvas.alpha_composite(icon_img, dest=(x0, y0))
        return canvas

    def to_png_bytes(self, icon: Optional[ImageLike] = None) -> bytes:
        """
        Return PNG-encoded bytes of the QR code, with `icon` if given.
        """
        img = self.render_pil() if icon is None else self.render_with_icon(icon)
        buf = BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    # ---------- Validation ----------

    def validate(self, image: Optional[ImageLike] = None) -> bool:
        """
        Check that an image decodes to this object's payload.

        Parameters
        ----------
        image : numpy.ndarray or PIL.Image.Image, optional
            Image to check. If None, the plain rendered QR code is used.

        Returns
        -------
        bool
            True if the image decodes and matches ``self.data``.

        Raises
        ------
        RuntimeError
            If OpenCV (cv2) is not installed.
        """
        if image is None:
            image = self.render_array()
        decoded, ok = decode_qr(image)
        return bool(ok and decoded == self.data)

    # ---------- Saving ----------

    def save_png(
        self,
        path: str | Path,
        *,
        icon: Optional[ImageLike] = None,
    ) -> Path:
        """
        Save the QR code, with `icon` composited if given, as a PNG file.

        The file is written to a temporary name in the same directory and
        renamed onto `path` once complete.

        Returns
        -------
        pathlib.Path
            The path written.

        Raises
        ------
        WriteError
            If the file cannot be created or written.
        """
        img = self.render_pil() if icon is None else self.render_with_icon(icon)
        return _write_png_atomic(img, path)


# ---------- Icon helpers ----------

def load_icon(path: str | Path) -> Image.Image:
    """
    Load an icon from disk as an RGBA PIL image.

    Raises
    ------
    IconLoadError
        With ``not_found=True`` if `path` does not exist, otherwise if
        the file cannot be read or decoded as a raster image.
    """
    path = Path(path)
    try:
        with Image.open(path) as img:
            img.load()
            return img.convert("RGBA")
    except FileNotFoundError as exc:
        raise IconLoadError(
            f"icon file not found: {path}", path=path, not_found=True
        ) from exc
    except UnidentifiedImageError as exc:
        raise IconLoadError(
            f"icon file is not a decodable image: {path}", path=path
        ) from exc
    except OSError as exc:
        raise IconLoadError(
            f"error reading icon file {path}: {exc}", path=path
        ) from exc


def resize_icon(icon: Image.Image, size: Size) -> Image.Image:
    """
    Resize `icon` to exactly `size` with a bicubic filter.

    Raises
    ------
    ScalingError
        If either dimension of `size` is not positive.
    """
    width, height = _as_size(size)
    if width <= 0 or height <= 0:
        raise ScalingError(f"icon size must be positive; got {width}x{height}")
    return icon.resize((width, height), Image.BICUBIC)


def _normalize_to_image_array(
    image: ImageLike,
    *,
    name: str = "image",
) -> np.ndarray:
    """
    Normalize a NumPy array or PIL Image into a uint8 (H, W, C) array.

    Grayscale input is expanded to RGB. RGBA input keeps its alpha
    channel, so C is 3 or 4.

    Raises
    ------
    TypeError
        If `image` is not a NumPy array or PIL Image.
    ValueError
        If the input has an unsupported shape or channel count.
    """
    # --- PIL input ---
    if isinstance(image, Image.Image):
        if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
            return np.asarray(image.convert("RGBA"), dtype=np.uint8)
        return np.asarray(image.convert("RGB"), dtype=np.uint8)

    # --- NumPy input ---
    if not isinstance(image, np.ndarray):
        raise TypeError(f"{name} must be a NumPy array or PIL.Image.Image")

    arr = np.asarray(image)
    if arr.ndim == 2:
        # Grayscale -> RGB
        arr = np.stack([arr] * 3, axis=-1)
    elif arr.ndim == 3:
        channels = arr.shape[2]
        if channels not in (3, 4):
            raise ValueError(
                f"{name} array has unsupported channel count {channels}; "
                f"expected 1, 3, or 4 channels."
            )
    else:
        raise ValueError(
            f"{name} array must be 2D (grayscale) or 3D (color); "
            f"got shape {arr.shape}"
        )

    return arr.astype(np.uint8)


def _to_rgba_image(image: ImageLike, *, name: str = "image") -> Image.Image:
    arr = _normalize_to_image_array(image, name=name)
    # (H, W, 3) and (H, W, 4) uint8 arrays map to RGB and RGBA
    return Image.fromarray(arr).convert("RGBA")


def _to_opaque_rgb_array(image: ImageLike, bg: Color) -> np.ndarray:
    # Transparent areas are flattened onto `bg`, as a viewer would show them
    rgba = _to_rgba_image(image)
    backdrop = Image.new("RGBA", rgba.size, bg + (255,))
    backdrop.alpha_composite(rgba)
    return np.asarray(backdrop.convert("RGB"), dtype=np.uint8)


# ---------- Decoding (with OpenCV) ----------

def decode_qr(
    image: ImageLike,
    *,
    quiet_zone: int = 16,
) -> tuple[Optional[str], bool]:
    """
    Decode a QR image using OpenCV's QRCodeDetector.

    Parameters
    ----------
    image : numpy.ndarray or PIL.Image.Image
        Image to decode. Transparent pixels are treated as white.
    quiet_zone : int, optional
        White margin, in pixels, added around the image before decoding.
        Codes rendered without a border need it to be detected. The
        default is 16.

    Returns
    -------
    tuple of (str or None, bool)
        ``(decoded_text, ok)``; ``(None, False)`` if nothing decoded.

    Raises
    ------
    RuntimeError
        If OpenCV (cv2) is not installed.
    """
    try:
        import cv2
    except ImportError as exc:
        raise RuntimeError(
            "decode_qr requires OpenCV (cv2) to be installed."
        ) from exc

    rgb = _to_opaque_rgb_array(image, bg=(255, 255, 255))
    if quiet_zone > 0:
        rgb = np.pad(
            rgb,
            pad_width=((quiet_zone, quiet_zone), (quiet_zone, quiet_zone), (0, 0)),
            mode="constant",
            constant_values=255,
        )

    # Small renders are enlarged by an integer factor to keep edges sharp
    factor = math.ceil(_DECODE_MIN_SIDE / min(rgb.shape[:2]))
    if factor > 1:
        rgb = np.repeat(np.repeat(rgb, factor, axis=0), factor, axis=1)

    bgr = cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_RGB2BGR)

    detector = cv2.QRCodeDetector()
    data, points, _ = detector.detectAndDecode(bgr)

    if points is None or not data:
        return None, False

    return data, True


# ---------- Writing ----------

def _write_png_atomic(image: Image.Image, path: str | Path) -> Path:
    path = Path(path)
    tmp = path.with_name(f".{path.name}.{secrets.token_hex(8)}.tmp")
    try:
        # 0o666 is narrowed by the process umask, like a plain open()
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o666)
    except OSError as exc:
        raise WriteError(
            f"cannot create output file {path}: {exc}", path=path
        ) from exc

    try:
        with os.fdopen(fd, "wb") as fh:
            image.save(fh, format="PNG")
            try:
                # An overwritten file keeps its permissions
                os.chmod(tmp, stat.S_IMODE(path.stat().st_mode))
            except FileNotFoundError:
                pass
        os.replace(tmp, path)
    except OSError as exc:
        raise WriteError(
            f"cannot write output file {path}: {exc}", path=path
        ) from exc
    finally:
        if tmp.exists():
            tmp.unlink()
    return path


# ---------- One-shot helper ----------

def generate_qr_with_icon(
    data: str,
    icon_path: str | Path,
    output_path: str | Path,
    options: Optional[QROptions] = None,
) -> Path:
    """
    Encode `data` as a QR code with an icon at its center and save it.

    Steps run strictly in order: encode, scale, load icon, resize icon,
    composite, write PNG. The first failure aborts the call and no
    output file is left behind.

    Parameters
    ----------
    data : str
        Non-empty payload to encode.
    icon_path : str or pathlib.Path
        Raster image (PNG, JPEG, ...) to place at the center.
    output_path : str or pathlib.Path
        Destination PNG. Its parent directory must exist.
    options : QROptions, optional
        Sizes, error-correction level and mode. Defaults to
        ``QROptions()``: 125x125 QR, 30x30 icon, ECC 'M', auto mode.

    Returns
    -------
    pathlib.Path
        `output_path`.

    Raises
    ------
    EncodingError
        If `data` is empty, too long, or invalid for the chosen mode.
    ScalingError
        If a configured pixel size is invalid.
    IconLoadError
        If the icon is missing, unreadable or undecodable.
    WriteError
        If the output file cannot be written.
    """
    qr = QRCodeImage(data, options)
    qr.check_size()
    icon = load_icon(icon_path)
    return qr.save_png(output_path, icon=icon)
