"""Tests for the streaming dispatcher and passthrough mode."""

import io
import logging
import os
import threading
import time

import numpy as np
import pytest
from PIL import Image

from config import FilterMode, OutputStyle, Thresholds
from dispatcher import Dispatcher, StreamReadError, iter_nul_records, run_passthrough
from image_loader import SyntheticSpec
from metric_suite import build_metric_suite


@pytest.fixture
def images(tmp_path):
    blurry = tmp_path / "flat.png"
    Image.new("L", (32, 32), 200).save(blurry)
    sharp = tmp_path / "board.png"
    board = (np.indices((32, 32)).sum(axis=0) % 2 * 255).astype(np.uint8)
    Image.fromarray(board).save(sharp)
    return str(blurry), str(sharp)


def _dispatcher(filter_mode=FilterMode.PASS_BLURRY, style=OutputStyle.TERSE):
    out = io.BytesIO()
    suite = build_metric_suite(Thresholds(), include_secondary=False)
    dispatcher = Dispatcher(suite, filter_mode, style, out, focal_lookup=lambda path: None)
    return dispatcher, out


def _stream(*records):
    return io.BytesIO(b"\0".join(records) + b"\0")


def test_iter_nul_records_skips_empty_and_handles_missing_terminator():
    stream = io.BytesIO(b"a\0\0bb\0ccc")
    assert list(iter_nul_records(stream, chunk_size=2)) == [b"a", b"bb", b"ccc"]


def test_pass_blurry_mode_emits_only_blurry(images):
    blurry, sharp = images
    dispatcher, out = _dispatcher()
    stats = dispatcher.run_stream(_stream(blurry.encode(), sharp.encode()))
    assert out.getvalue() == blurry.encode() + b"\0"
    assert (stats.classified, stats.emitted) == (2, 1)


def test_pass_sharp_mode_emits_only_sharp(images):
    blurry, sharp = images
    dispatcher, out = _dispatcher(FilterMode.PASS_SHARP)
    dispatcher.run_stream(_stream(blurry.encode(), sharp.encode()))
    assert out.getvalue() == sharp.encode() + b"\0"


def test_invalid_utf8_record_is_skipped(images):
    blurry, _ = images
    dispatcher, out = _dispatcher()
    stats = dispatcher.run_stream(_stream(blurry.encode(), b"bad\xff\xfename.png", blurry.encode()))
    assert stats.records == 3
    assert stats.skipped == 1
    assert stats.classified == 2
    assert stats.failed == 0
    assert out.getvalue() == (blurry.encode() + b"\0") * 2


def test_missing_file_is_logged_and_stream_continues(images, tmp_path, caplog):
    blurry, _ = images
    missing = str(tmp_path / "nope.png")
    dispatcher, out = _dispatcher()
    with caplog.at_level(logging.ERROR, logger="grepfuzz"):
        stats = dispatcher.run_stream(_stream(missing.encode(), blurry.encode()))
    assert stats.failed == 1
    assert stats.classified == 1
    assert out.getvalue() == blurry.encode() + b"\0"
    assert any(missing in rec.getMessage() for rec in caplog.records)


def test_ascii_streaming_writes_one_row_per_metric(images):
    blurry, _ = images
    dispatcher, out = _dispatcher(style=OutputStyle.ASCII)
    dispatcher.run_stream(_stream(blurry.encode()))
    rows = out.getvalue().decode().splitlines()
    assert [row.split("\t")[4] for row in rows] == ["Laplacian", "Tenengrad"]
    assert all(row.split("\t")[0] == blurry for row in rows)


def test_run_single_always_emits(images):
    _, sharp = images
    dispatcher, out = _dispatcher(FilterMode.PASS_BLURRY)
    result = dispatcher.run_single(sharp)
    assert result.overall_blurry is False
    assert out.getvalue() == f"{sharp}\tfalse\n".encode()


def test_run_single_synthetic():
    dispatcher, out = _dispatcher(style=OutputStyle.VERBOSE)
    result = dispatcher.run_single(SyntheticSpec("white", 16, 16))
    assert result.overall_blurry is True
    text = out.getvalue().decode()
    assert text.startswith("File: <synthetic-white>\n")
    assert "  Size: N/A" in text


@pytest.mark.parametrize(
    "payload",
    [b"", b"one", b"one\0", b"a\0\0b\0", b"\xff\xfe\0path with spaces\0\n\0"],
)
def test_passthrough_is_byte_identical(payload):
    out = io.BytesIO()
    run_passthrough(io.BytesIO(payload), out, chunk_size=3)
    assert out.getvalue() == payload


def test_unreadable_stream_is_fatal():
    class _Broken(io.RawIOBase):
        def readable(self):
            return True

        def read(self, size=-1):
            raise OSError("device gone")

    dispatcher, _ = _dispatcher()
    with pytest.raises(StreamReadError):
        dispatcher.run_stream(_Broken())


def test_record_is_emitted_before_the_producer_closes(images):
    blurry, _ = images
    dispatcher, out = _dispatcher()
    read_fd, write_fd = os.pipe()
    with os.fdopen(read_fd, "rb") as reader:
        worker = threading.Thread(target=dispatcher.run_stream, args=(reader,))
        worker.start()
        try:
            os.write(write_fd, blurry.encode() + b"\0")
            deadline = time.monotonic() + 5.0
            while not out.getvalue() and time.monotonic() < deadline:
                time.sleep(0.02)
            assert out.getvalue() == blurry.encode() + b"\0"
        finally:
            os.close(write_fd)
            worker.join(timeout=5.0)
    assert not worker.is_alive()


@pytest.mark.parametrize(
    "style, expected_lookups",
    [(OutputStyle.TERSE, 0), (OutputStyle.ASCII, 0), (OutputStyle.VERBOSE, 1)],
)
def test_focal_length_only_looked_up_for_verbose(images, style, expected_lookups):
    blurry, _ = images
    calls = []
    suite = build_metric_suite(Thresholds(), include_secondary=False)

    def _lookup(path):
        calls.append(path)
        return "50 mm"

    out = io.BytesIO()
    Dispatcher(suite, FilterMode.PASS_BLURRY, style, out, focal_lookup=_lookup).run_stream(_stream(blurry.encode()))
    assert len(calls) == expected_lookups
    assert (b"Focal Length: 50 mm" in out.getvalue()) == (style is OutputStyle.VERBOSE)
