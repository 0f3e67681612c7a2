import os
import stat

import numpy as np
import pytest
from PIL import Image

from qrstamp.errors import (
    ConfigurationError,
    EncodingError,
    IconLoadError,
    ScalingError,
    WriteError,
)
from qrstamp.qr import (
    QRCodeImage,
    QROptions,
    decode_qr,
    generate_qr_with_icon,
    load_icon,
    resize_icon,
)


def _red_bbox(path):
    arr = np.asarray(Image.open(path).convert("RGBA"))
    mask = (arr[..., 0] > 200) & (arr[..., 1] < 60) & (arr[..., 2] < 60)
    ys, xs = np.nonzero(mask)
    return xs.min(), ys.min(), xs.max() - xs.min() + 1, ys.max() - ys.min() + 1


def test_generate_default_scenario(tmp_path, icon_path):
    pytest.importorskip("cv2")
    out = tmp_path / "out.png"

    result = generate_qr_with_icon("https://example.com", icon_path, out)

    assert result == out
    with Image.open(out) as img:
        assert img.format == "PNG"
        assert img.mode == "RGBA"
        assert img.size == (125, 125)
        decoded, ok = decode_qr(img)
    assert ok
    assert decoded == "https://example.com"


@pytest.mark.parametrize('payload', [
    'https://example.com',
    'https://example.com/a/b?c=1',
    'hello world',
    'HELLO WORLD 42',
    '0123456789012345',
])
@pytest.mark.parametrize('ecc', ['M', 'Q', 'H'])
def test_round_trip_with_icon(tmp_path, icon_path, payload, ecc):
    pytest.importorskip("cv2")
    out = tmp_path / "out.png"
    generate_qr_with_icon(payload, icon_path, out, QROptions(ecc=ecc))

    qr = QRCodeImage(payload, QROptions(ecc=ecc))
    with Image.open(out) as img:
        assert qr.validate(img)


def test_output_is_deterministic(tmp_path, icon_path):
    first = generate_qr_with_icon("determinism", icon_path, tmp_path / "a.png")
    second = generate_qr_with_icon("determinism", icon_path, tmp_path / "b.png")
    assert first.read_bytes() == second.read_bytes()


@pytest.mark.parametrize('qr_size,icon_size,offset', [
    ((125, 125), (30, 30), (47, 47)),
    ((100, 80), (21, 15), (39, 32)),
    ((126, 125), (31, 30), (47, 47)),
    ((200, 200), (64, 64), (68, 68)),
])
def test_icon_is_centered(tmp_path, solid_icon_path, qr_size, icon_size, offset):
    out = tmp_path / "out.png"
    opts = QROptions(qr_size=qr_size, icon_size=icon_size)
    generate_qr_with_icon("hello", solid_icon_path, out, opts)

    x, y, w, h = _red_bbox(out)
    assert (x, y) == offset
    assert (w, h) == icon_size


@pytest.mark.parametrize('icon_dims', [(8, 8), (64, 64), (300, 200), (17, 90)])
def test_output_size_ignores_icon_size(tmp_path, icon_dims):
    icon = tmp_path / "icon.png"
    Image.new("RGB", icon_dims, (255, 0, 0)).save(icon)
    out = tmp_path / "out.png"

    generate_qr_with_icon("size check", icon, out)

    with Image.open(out) as img:
        assert img.size == (125, 125)
    assert _red_bbox(out)[2:] == (30, 30)


def test_missing_icon(tmp_path):
    out = tmp_path / "out.png"
    with pytest.raises(IconLoadError, match="not found") as exc_info:
        generate_qr_with_icon("data", tmp_path / "nope.png", out)
    assert exc_info.value.not_found
    assert exc_info.value.path == tmp_path / "nope.png"
    assert list(tmp_path.iterdir()) == []


def test_undecodable_icon(tmp_path):
    icon = tmp_path / "icon.png"
    icon.write_text("this is not an image")
    out = tmp_path / "out.png"

    with pytest.raises(IconLoadError) as exc_info:
        generate_qr_with_icon("data", icon, out)
    assert not exc_info.value.not_found
    assert not out.exists()


def test_empty_payload(tmp_path, icon_path):
    out = tmp_path / "out.png"
    with pytest.raises(EncodingError):
        generate_qr_with_icon("", icon_path, out)
    assert not out.exists()


def test_oversized_payload(tmp_path, icon_path):
    out = tmp_path / "out.png"
    with pytest.raises(EncodingError, match="exceeds QR capacity"):
        generate_qr_with_icon("x" * 3000, icon_path, out, QROptions(ecc="H"))
    assert not out.exists()


@pytest.mark.parametrize('data,mode', [
    ('12ab', 'numeric'),
    ('lowercase', 'alphanumeric'),
])
def test_payload_invalid_for_mode(data, mode):
    with pytest.raises(EncodingError, match=mode):
        QRCodeImage(data, QROptions(mode=mode))


@pytest.mark.parametrize('data,mode', [
    ('0123456789', 'numeric'),
    ('HELLO WORLD', 'alphanumeric'),
    ('hello', 'byte'),
    ('hello', 'auto'),
])
def test_explicit_modes(data, mode):
    qr = QRCodeImage(data, QROptions(mode=mode))
    assert qr.module_shape == (21, 21)


def test_error_types_are_value_errors():
    with pytest.raises(ValueError):
        QRCodeImage("")


@pytest.mark.parametrize('qr_size', [(0, 125), (125, -1), (10, 10)])
def test_invalid_qr_size(tmp_path, icon_path, qr_size):
    out = tmp_path / "out.png"
    with pytest.raises(ScalingError):
        generate_qr_with_icon("data", icon_path, out, QROptions(qr_size=qr_size))
    assert not out.exists()


@pytest.mark.parametrize('icon_size', [(0, 30), (30, -5), (200, 200)])
def test_invalid_icon_size(tmp_path, icon_path, icon_size):
    out = tmp_path / "out.png"
    opts = QROptions(icon_size=icon_size)
    with pytest.raises(ScalingError):
        generate_qr_with_icon("data", icon_path, out, opts)
    assert not out.exists()


def test_scaling_checked_before_icon(tmp_path):
    with pytest.raises(ScalingError):
        generate_qr_with_icon(
            "data", tmp_path / "missing.png", tmp_path / "out.png",
            QROptions(qr_size=(0, 0)),
        )


def test_missing_output_directory(tmp_path, icon_path):
    out = tmp_path / "missing" / "out.png"
    with pytest.raises(WriteError) as exc_info:
        generate_qr_with_icon("data", icon_path, out)
    assert exc_info.value.path == out
    assert not out.parent.exists()


def test_output_path_is_directory(tmp_path, icon_path):
    target = tmp_path / "dir.png"
    target.mkdir()
    with pytest.raises(WriteError):
        generate_qr_with_icon("data", icon_path, target)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["dir.png", "icon.png"]


def test_overwrites_existing_output(tmp_path, icon_path):
    out = tmp_path / "out.png"
    out.write_bytes(b"stale")
    generate_qr_with_icon("data", icon_path, out)
    with Image.open(out) as img:
        assert img.size == (125, 125)


@pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
def test_new_output_follows_umask(tmp_path, icon_path):
    out = tmp_path / "out.png"
    old = os.umask(0o027)
    try:
        generate_qr_with_icon("data", icon_path, out)
    finally:
        os.umask(old)
    assert stat.S_IMODE(out.stat().st_mode) == 0o640


@pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
def test_overwrite_keeps_existing_mode(tmp_path, icon_path):
    out = tmp_path / "out.png"
    out.write_bytes(b"stale")
    out.chmod(0o600)
    generate_qr_with_icon("data", icon_path, out)
    assert stat.S_IMODE(out.stat().st_mode) == 0o600
    assert sorted(p.name for p in tmp_path.iterdir()) == ["icon.png", "out.png"]


def test_check_size():
    assert QRCodeImage("hello").check_size() == 5
    with pytest.raises(ScalingError):
        QRCodeImage("hello", QROptions(qr_size=(10, 10))).check_size()
    with pytest.raises(ScalingError):
        QRCodeImage("hello", QROptions(qr_size=(0, 125))).check_size()


def test_rendering_is_sharp():
    arr = QRCodeImage("sharp edges").render_array()
    colors = {tuple(c) for c in arr.reshape(-1, 3)}
    assert colors == {(0, 0, 0), (255, 255, 255)}


def test_symbol_is_centered_in_margin():
    # 21 modules at 5 px = 105 px, leaving 20 px split evenly
    qr = QRCodeImage("hello")
    assert qr.scale_factor == 5
    arr = qr.render_array()
    dark = np.nonzero(arr[..., 0] == 0)
    assert dark[0].min() == 10 and dark[1].min() == 10
    assert dark[0].max() == 114 and dark[1].max() == 114


def test_border_adds_quiet_zone():
    qr = QRCodeImage("hello", QROptions(border=4))
    assert qr.module_shape == (29, 29)
    assert not qr.matrix[:4].any()
    assert not qr.matrix[:, -4:].any()


def test_matrix_is_read_only():
    qr = QRCodeImage("hello")
    with pytest.raises(ValueError):
        qr.matrix[0, 0] = False


def test_transparent_icon_leaves_qr_untouched():
    qr = QRCodeImage("hello")
    icon = Image.new("RGBA", (50, 50), (255, 0, 0, 0))
    composite = qr.render_with_icon(icon)
    plain = qr.render_pil().convert("RGBA")
    assert np.array_equal(np.asarray(composite), np.asarray(plain))


def test_icon_drawn_over_qr():
    qr = QRCodeImage("hello")
    icon = np.full((10, 10, 3), (0, 0, 255), dtype=np.uint8)
    composite = np.asarray(qr.render_with_icon(icon))
    r, g, b, a = composite[62, 62]
    assert r < 5 and g < 5 and b > 250 and a == 255
    # outside the icon the QR pixels are unchanged and opaque
    plain = np.asarray(qr.render_pil().convert("RGBA"))
    assert np.array_equal(composite[:40], plain[:40])


def test_to_png_bytes():
    png = QRCodeImage("bytes").to_png_bytes()
    assert png.startswith(b"\x89PNG\r\n\x1a\n")


def test_resize_icon():
    icon = Image.new("RGBA", (64, 32))
    assert resize_icon(icon, (30, 30)).size == (30, 30)
    with pytest.raises(ScalingError):
        resize_icon(icon, (0, 30))


def test_load_icon_converts_to_rgba(tmp_path):
    path = tmp_path / "gray.jpg"
    Image.new("L", (20, 20), 128).save(path)
    assert load_icon(path).mode == "RGBA"


@pytest.mark.parametrize('ecc,expected', [
    ('m', 'M'), ('H', 'H'), ('low', 'L'), ('Quartile', 'Q'), ('HIGH', 'H'),
])
def test_ecc_normalization(ecc, expected):
    assert QROptions(ecc=ecc).ecc == expected


@pytest.mark.parametrize('kwargs', [
    {'ecc': 'X'}, {'mode': 'kanji'}, {'border': -1},
])
def test_bad_options(kwargs):
    with pytest.raises(ConfigurationError):
        QROptions(**kwargs)


def test_higher_ecc_needs_more_modules():
    data = "https://example.com/some/longer/path"
    low = QRCodeImage(data, QROptions(ecc="L"))
    high = QRCodeImage(data, QROptions(ecc="H"))
    assert high.module_shape[0] > low.module_shape[0]
