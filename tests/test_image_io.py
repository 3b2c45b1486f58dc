import numpy as np
import pytest

from screen_matching.errors import MatchEngineError, TemplateUnreadable
from screen_matching.image_io import read_image, save_image
from screen_matching.models import PixelBuffer

from _helpers import textured, write_image


def test_read_image_returns_bgr_buffer(tmp_path):
    pixels = textured(6, 9, seed=1)
    buf = read_image(write_image(tmp_path / "t.png", pixels))
    assert buf.size == (9, 6)
    assert buf.channels == 3
    assert np.array_equal(buf.pixels, pixels)


def test_read_image_as_luma(tmp_path):
    buf = read_image(write_image(tmp_path / "t.png", textured(6, 9, seed=1)), grayscale=True)
    assert buf.channels == 1


@pytest.mark.parametrize("name", ["missing.png", "broken.png"])
def test_unreadable_template(tmp_path, name):
    (tmp_path / "broken.png").write_bytes(b"\x89PNG garbage")
    with pytest.raises(TemplateUnreadable) as exc:
        read_image(tmp_path / name)
    assert isinstance(exc.value, MatchEngineError)
    assert isinstance(exc.value, FileNotFoundError)
    assert exc.value.path == str(tmp_path / name)
    assert "Failed to load template" in str(exc.value)


def test_save_image_writes_strided_buffers(tmp_path):
    base = textured(20, 30, seed=2)
    buf = PixelBuffer.from_array(base[::2, ::3])
    out = save_image(buf, tmp_path / "out.png")
    assert np.array_equal(read_image(out).pixels, base[::2, ::3])


def test_save_image_reports_write_failure(tmp_path):
    buf = PixelBuffer.from_array(textured(4, 4, seed=3))
    with pytest.raises(OSError, match="Failed to write image"):
        save_image(buf, tmp_path / "no-such-dir" / "out.png")
