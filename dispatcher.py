"""Drive classification over a single image or a NUL-delimited path stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterator, Optional

from config import FilterMode, OutputStyle
from image_loader import DecodeError, ImageSource, LoadedImage, SyntheticSpec, decode, decode_file
from logging_utils import get_logger
from metadata import lookup_focal_length
from metric_suite import ClassificationResult, MetricSuite
from output_formatter import render

LOGGER = get_logger(__name__)

RECORD_SEPARATOR = b"\0"
DEFAULT_CHUNK_SIZE = 64 * 1024


class StreamReadError(RuntimeError):
    """The input stream itself could not be read; fatal for the run."""


@dataclass
class DispatchStats:
    """Counters for one pass over a path stream."""

    records: int = 0
    classified: int = 0
    emitted: int = 0
    skipped: int = 0
    failed: int = 0


def _read_chunk(stream: BinaryIO, chunk_size: int) -> bytes:
    # read1 returns what is available instead of waiting for a full chunk
    read = getattr(stream, "read1", stream.read)
    try:
        return read(chunk_size)
    except OSError as exc:
        raise StreamReadError(f"Failed to read input stream: {exc}") from exc


def iter_raw_records(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield NUL-terminated segments exactly as read, terminator included.

    The final segment is yielded without a terminator if the input lacks one.
    """

    pending = b""
    while True:
        chunk = _read_chunk(stream, chunk_size)
        if not chunk:
            break
        pending += chunk
        start = 0
        while True:
            end = pending.find(RECORD_SEPARATOR, start)
            if end < 0:
                break
            yield pending[start : end + 1]
            start = end + 1
        pending = pending[start:]
    if pending:
        yield pending


def iter_nul_records(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield non-empty records with the NUL separator stripped."""

    for raw in iter_raw_records(stream, chunk_size):
        record = raw[:-1] if raw.endswith(RECORD_SEPARATOR) else raw
        if record:
            yield record


def run_passthrough(stream: BinaryIO, output: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Copy every record to ``output`` untouched; returns the record count."""

    count = 0
    for raw in iter_raw_records(stream, chunk_size):
        output.write(raw)
        output.flush()
        count += 1
    return count


def _source_label(source: ImageSource) -> str:
    if isinstance(source, SyntheticSpec):
        return f"<synthetic-{source.kind}>"
    if isinstance(source, (bytes, bytearray, memoryview)):
        return "<stdin>"
    return str(source)


class Dispatcher:
    """Classify images and write the ones that pass the filter gate."""

    def __init__(
        self,
        suite: MetricSuite,
        filter_mode: FilterMode,
        output_style: OutputStyle,
        output: BinaryIO,
        *,
        loader: Callable[[str], LoadedImage] = decode_file,
        focal_lookup: Callable[[str], Optional[str]] = lookup_focal_length,
    ):
        self.suite = suite
        self.filter_mode = filter_mode
        self.output_style = output_style
        self.output = output
        self._loader = loader
        self._focal_lookup = focal_lookup

    def _emit(self, text: str) -> None:
        self.output.write(text.encode("utf-8"))
        self.output.flush()

    def classify_path(self, path: str) -> ClassificationResult:
        loaded = self._loader(path)
        # only the verbose report shows the focal length
        focal_length = self._focal_lookup(path) if self.output_style is OutputStyle.VERBOSE else None
        return self.suite.evaluate_all(
            loaded.image,
            source=path,
            byte_size=loaded.byte_size,
            focal_length=focal_length,
        )

    def run_single(self, source: ImageSource, label: Optional[str] = None) -> ClassificationResult:
        """Classify one image and always emit it; decode errors propagate."""

        if isinstance(source, (SyntheticSpec, bytes, bytearray, memoryview)):
            loaded = decode(source)
            result = self.suite.evaluate_all(
                loaded.image,
                source=label or _source_label(source),
                byte_size=loaded.byte_size,
            )
        else:
            result = self.classify_path(str(source))
            if label is not None:
                result = result.with_provenance(label, result.byte_size, result.focal_length)
        self._emit(render(result, self.output_style, streaming=False))
        return result

    def run_stream(self, stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> DispatchStats:
        """Classify each NUL-delimited path; one bad record never stops the stream."""

        stats = DispatchStats()
        for record in iter_nul_records(stream, chunk_size):
            stats.records += 1
            try:
                path = record.decode("utf-8")
            except UnicodeDecodeError:
                LOGGER.debug("Skipping record that is not valid UTF-8: %r", record[:64])
                stats.skipped += 1
                continue
            try:
                result = self.classify_path(path)
            except DecodeError as exc:
                LOGGER.error("Error processing %s: %s", path, exc)
                stats.failed += 1
                continue
            stats.classified += 1
            if self.filter_mode.keeps(result.overall_blurry):
                self._emit(render(result, self.output_style, streaming=True))
                stats.emitted += 1
        LOGGER.info(
            "Stream finished: %d records, %d classified, %d emitted, %d skipped, %d failed",
            stats.records,
            stats.classified,
            stats.emitted,
            stats.skipped,
            stats.failed,
        )
        return stats
