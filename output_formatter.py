"""Rendering of classification results: terse, verbose and tab-separated."""

from __future__ import annotations

from typing import List, Optional

from config import OutputStyle
from metric_suite import ClassificationResult, MetricReading

UNKNOWN = "N/A"


def _verdict(is_blurry: bool) -> str:
    return "BLURRY" if is_blurry else "SHARP"


def _reading_fields(reading: MetricReading) -> List[str]:
    return [reading.name, f"{reading.value:.6f}", f"{reading.threshold:.3f}", _verdict(reading.is_blurry)]


def _size_field(byte_size: Optional[int]) -> str:
    return "-" if byte_size is None else str(byte_size)


def format_terse(result: ClassificationResult) -> str:
    """``path<TAB>true|false``."""

    return f"{result.source}\t{str(result.overall_blurry).lower()}\n"


def format_terse_record(path: str) -> str:
    """NUL-terminated path, ready for another ``-0`` style consumer."""

    return f"{path}\0"


def format_verbose(result: ClassificationResult) -> str:
    size = UNKNOWN if result.byte_size is None else f"{result.byte_size} bytes"
    lines = [
        f"File: {result.source}",
        f"  Size: {size}",
        f"  Dimensions: {result.width}x{result.height}",
        f"  Focal Length: {result.focal_length or UNKNOWN}",
    ]
    for reading in result.readings:
        lines.append(
            f"  Detector: {reading.name} | Value: {reading.value:.6f} | "
            f"Threshold: {reading.threshold:.3f} | Result: {_verdict(reading.is_blurry)}"
        )
    lines.append(f"  Blurry (all detectors): {result.verdict}")
    return "\n".join(lines) + "\n"


def format_ascii(result: ClassificationResult, per_metric: bool = False) -> str:
    """Tab-separated output for ``cut``/``awk``/spreadsheets.

    One line per image by default; with ``per_metric`` one line per reading.
    """

    prefix = [result.source, _size_field(result.byte_size), str(result.width), str(result.height)]
    if per_metric:
        return "".join("\t".join(prefix + _reading_fields(reading)) + "\n" for reading in result.readings)
    fields = list(prefix)
    for reading in result.readings:
        fields.extend(_reading_fields(reading))
    return "\t".join(fields) + "\n"


def render(result: ClassificationResult, style: OutputStyle, *, streaming: bool = False) -> str:
    """Render ``result`` in ``style``; ``streaming`` selects the filter-mode variants."""

    if style is OutputStyle.VERBOSE:
        return format_verbose(result)
    if style is OutputStyle.ASCII:
        return format_ascii(result, per_metric=streaming)
    if streaming:
        return format_terse_record(result.source)
    return format_terse(result)
