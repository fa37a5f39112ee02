"""Sharpness metrics: Laplacian variance, Tenengrad and an OpenCV cross-check.

All convolutions replicate the outermost pixel ring (edge padding by one
pixel), so a constant image yields an exactly zero response everywhere.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Tuple

import numpy as np

from image_loader import GrayscaleImage


class MetricUnavailable(RuntimeError):
    """Raised when an optional metric backend cannot be constructed."""


def _padded(gray: np.ndarray) -> np.ndarray:
    return np.pad(gray.astype(np.float64), 1, mode="edge")


def laplacian_response(gray: np.ndarray) -> np.ndarray:
    """Filter with the 4-neighbour Laplacian ``[0 1 0; 1 -4 1; 0 1 0]``."""

    p = _padded(gray)
    return p[1:-1, 2:] + p[1:-1, :-2] + p[2:, 1:-1] + p[:-2, 1:-1] - 4.0 * p[1:-1, 1:-1]


def sobel_gradients(gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(gx, gy)`` for the 3x3 Sobel kernels."""

    p = _padded(gray)
    gx = (p[:-2, 2:] + 2.0 * p[1:-1, 2:] + p[2:, 2:]) - (p[:-2, :-2] + 2.0 * p[1:-1, :-2] + p[2:, :-2])
    gy = (p[2:, :-2] + 2.0 * p[2:, 1:-1] + p[2:, 2:]) - (p[:-2, :-2] + 2.0 * p[:-2, 1:-1] + p[:-2, 2:])
    return gx, gy


def laplacian_variance(gray: np.ndarray) -> float:
    """Population variance of the Laplacian response."""

    return float(laplacian_response(gray).var())


class SharpnessMetric(ABC):
    """A scalar sharpness measure with its own pass/fail threshold.

    Lower values mean more blur for every metric here; ``evaluate`` reports
    blurry when ``value < threshold``. Instances keep no per-image state.
    """

    name: str = ""

    def __init__(self, threshold: float):
        self._threshold = float(threshold)

    @property
    def threshold(self) -> float:
        return self._threshold

    @abstractmethod
    def compute(self, image: GrayscaleImage) -> float:
        """Return the raw metric value for ``image``."""

    def evaluate(self, image: GrayscaleImage) -> Tuple[float, bool]:
        value = self.compute(image)
        return value, value < self._threshold

    def __repr__(self) -> str:
        return f"{type(self).__name__}(threshold={self._threshold!r})"


class LaplacianVarianceMetric(SharpnessMetric):
    name = "Laplacian"

    def compute(self, image: GrayscaleImage) -> float:
        return laplacian_variance(image.pixels)


class TenengradMetric(SharpnessMetric):
    """Mean squared Sobel gradient magnitude; higher means sharper."""

    name = "Tenengrad"

    def compute(self, image: GrayscaleImage) -> float:
        gx, gy = sobel_gradients(image.pixels)
        return float(np.sum(gx * gx + gy * gy) / image.size)


class SecondaryLaplacianMetric(SharpnessMetric):
    """Laplacian variance computed through OpenCV.

    ``ksize=1`` selects OpenCV's 4-neighbour aperture, and ``BORDER_REPLICATE``
    matches the edge padding of :class:`LaplacianVarianceMetric`.
    """

    name = "OpenCVLaplacian"

    def __init__(self, threshold: float, backend: Any):
        super().__init__(threshold)
        self._cv2 = backend

    @classmethod
    def create(cls, threshold: float) -> "SecondaryLaplacianMetric":
        try:
            import cv2
        except ImportError as exc:
            raise MetricUnavailable(f"OpenCV backend not importable: {exc}") from exc
        return cls(threshold, cv2)

    def compute(self, image: GrayscaleImage) -> float:
        cv2 = self._cv2
        # some OpenCV builds refuse read-only input arrays
        src = np.array(image.pixels)
        lap = cv2.Laplacian(src, cv2.CV_64F, ksize=1, borderType=cv2.BORDER_REPLICATE)
        return float(lap.var())
