"""Tests for decoding, synthetic patterns and EXIF lookups."""

import numpy as np
import pytest
from PIL import ExifTags, Image

from image_loader import DecodeError, GrayscaleImage, SyntheticSpec, decode, decode_bytes, decode_file, synthesize
from metadata import lookup_focal_length


def test_checkerboard_pattern_parity():
    board = synthesize(SyntheticSpec("checkerboard", 4, 3))
    assert (board.width, board.height) == (4, 3)
    assert board.pixels[0, 0] == 0
    assert board.pixels[0, 1] == 255
    assert board.pixels[1, 0] == 255
    assert board.pixels[2, 2] == 0


def test_block_checkerboard_and_white():
    board = synthesize(SyntheticSpec("checkerboard", 20, 20, block=10))
    assert board.pixels[9, 9] == 0
    assert board.pixels[9, 10] == 255
    white = synthesize(SyntheticSpec("white", 5, 7))
    assert white.size == 35
    assert np.all(white.pixels == 255)


def test_image_is_read_only():
    image = GrayscaleImage.from_bytes(2, 2, bytes([1, 2, 3, 4]))
    assert image.pixels[1, 0] == 3
    with pytest.raises(ValueError):
        image.pixels[0, 0] = 9


def test_from_bytes_rejects_wrong_length():
    with pytest.raises(DecodeError):
        GrayscaleImage.from_bytes(3, 3, bytes(8))


def test_decode_file_converts_to_luma(tmp_path):
    path = tmp_path / "rgb.png"
    Image.new("RGB", (6, 4), (255, 255, 255)).save(path)
    loaded = decode_file(path)
    assert (loaded.image.width, loaded.image.height) == (6, 4)
    assert loaded.byte_size == path.stat().st_size
    assert np.all(loaded.image.pixels == 255)


def test_decode_dispatches_on_source_type(tmp_path):
    path = tmp_path / "g.png"
    Image.new("L", (3, 3), 10).save(path)
    data = path.read_bytes()

    assert decode(data).byte_size == len(data)
    assert decode(str(path)).image.pixels[0, 0] == 10
    assert decode(SyntheticSpec("white", 2, 2)).byte_size is None


def test_decode_errors():
    with pytest.raises(DecodeError):
        decode_bytes(b"definitely not an image")
    with pytest.raises(DecodeError):
        decode_bytes(b"")
    with pytest.raises(DecodeError):
        decode_file("/nonexistent/image.png")


def test_focal_length_lookup(tmp_path):
    path = tmp_path / "with_exif.jpg"
    exif = Image.Exif()
    exif[ExifTags.Base.FocalLength] = 35.0
    Image.new("L", (8, 8), 128).save(path, "JPEG", exif=exif)
    assert lookup_focal_length(path) == "35 mm"


def test_focal_length_absent_is_none(tmp_path):
    path = tmp_path / "plain.png"
    Image.new("L", (8, 8), 128).save(path)
    assert lookup_focal_length(path) is None
    assert lookup_focal_length(tmp_path / "missing.jpg") is None
