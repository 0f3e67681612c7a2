from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from qrstamp.errors import PdfToolError
from qrstamp.pdftool import PdfTool

from .samples import MINIMAL_PDF


@pytest.fixture
def icon_path(tmp_path) -> Path:
    """64x64 PNG: small red disc on a transparent background."""
    img = Image.new("RGBA", (64, 64), (0, 0, 0, 0))
    ImageDraw.Draw(img).ellipse((16, 16, 47, 47), fill=(220, 30, 30, 255))
    path = tmp_path / "icon.png"
    img.save(path)
    return path


@pytest.fixture
def solid_icon_path(tmp_path) -> Path:
    """Fully opaque pure red PNG, for locating the icon."""
    path = tmp_path / "solid.png"
    Image.new("RGB", (64, 64), (255, 0, 0)).save(path)
    return path


@pytest.fixture
def pdf_path(tmp_path) -> Path:
    path = tmp_path / "document.pdf"
    path.write_bytes(MINIMAL_PDF)
    return path


class FakePdfTool(PdfTool):
    """Records calls instead of running pdfcpu."""

    def __init__(self, path, *, protected=False, fail_on=None):
        super().__init__(path)
        self.protected = protected
        self.fail_on = fail_on
        self.calls = []

    def _record(self, *call):
        self.calls.append(call)
        if call[0] == self.fail_on:
            raise PdfToolError(f"pdfcpu {call[0]} failed", returncode=1)

    def stamp(self, image, position):
        self._record("stamp", str(image), position)

    def set_metadata(self, fields):
        self._record("set_metadata", dict(fields))

    def detect_password(self):
        self._record("detect_password")
        return self.protected

    def encrypt(self, password):
        self._record("encrypt", password)

    def decrypt(self, password):
        self._record("decrypt", password)


@pytest.fixture
def fake_tools():
    """Factory for FakePdfTool that keeps every instance it creates."""
    created = []

    def factory(protected=False, fail_on=None):
        def make(path):
            tool = FakePdfTool(path, protected=protected, fail_on=fail_on)
            created.append(tool)
            return tool
        return make

    factory.created = created
    return factory
