"""Run a configured set of sharpness metrics and aggregate their verdicts."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Optional, Tuple

from config import Thresholds
from image_loader import GrayscaleImage
from logging_utils import get_logger
from sharpness_metrics import (
    LaplacianVarianceMetric,
    MetricUnavailable,
    SecondaryLaplacianMetric,
    SharpnessMetric,
    TenengradMetric,
)

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class MetricReading:
    """One metric's outcome for one image."""

    name: str
    value: float
    threshold: float
    is_blurry: bool


@dataclass(frozen=True)
class ClassificationResult:
    """Per-image outcome: overall verdict plus one reading per metric."""

    source: str
    width: int
    height: int
    readings: Tuple[MetricReading, ...]
    overall_blurry: bool
    byte_size: Optional[int] = None
    focal_length: Optional[str] = None

    @property
    def verdict(self) -> str:
        return "BLURRY" if self.overall_blurry else "SHARP"

    def with_provenance(
        self,
        source: str,
        byte_size: Optional[int] = None,
        focal_length: Optional[str] = None,
    ) -> "ClassificationResult":
        return replace(self, source=source, byte_size=byte_size, focal_length=focal_length)


class MetricSuite:
    """Ordered, immutable collection of configured metrics.

    An image is blurry only if every metric calls it blurry; an empty suite
    therefore classifies everything as blurry.
    """

    def __init__(self, metrics: Iterable[SharpnessMetric]):
        self._metrics: Tuple[SharpnessMetric, ...] = tuple(metrics)

    def __len__(self) -> int:
        return len(self._metrics)

    def __iter__(self) -> Iterator[SharpnessMetric]:
        return iter(self._metrics)

    @property
    def names(self) -> List[str]:
        return [metric.name for metric in self._metrics]

    def evaluate_all(
        self,
        image: GrayscaleImage,
        *,
        source: str = "",
        byte_size: Optional[int] = None,
        focal_length: Optional[str] = None,
    ) -> ClassificationResult:
        readings = []
        for metric in self._metrics:
            value, is_blurry = metric.evaluate(image)
            readings.append(MetricReading(metric.name, value, metric.threshold, is_blurry))
        return ClassificationResult(
            source=source,
            width=image.width,
            height=image.height,
            readings=tuple(readings),
            overall_blurry=all(reading.is_blurry for reading in readings),
            byte_size=byte_size,
            focal_length=focal_length,
        )


def build_metric_suite(thresholds: Thresholds, include_secondary: bool = True) -> MetricSuite:
    """Build Laplacian, Tenengrad and (when available) the OpenCV metric."""

    metrics: List[SharpnessMetric] = [
        LaplacianVarianceMetric(thresholds.laplacian),
        TenengradMetric(thresholds.tenengrad),
    ]
    if include_secondary:
        try:
            metrics.append(SecondaryLaplacianMetric.create(thresholds.secondary_laplacian))
        except MetricUnavailable as exc:
            LOGGER.warning("Continuing without %s metric: %s", SecondaryLaplacianMetric.name, exc)
    suite = MetricSuite(metrics)
    LOGGER.debug("Metric suite: %s", ", ".join(suite.names))
    return suite
