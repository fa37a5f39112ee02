"""Image acquisition: files, raw byte buffers and synthetic test patterns."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from os import PathLike
from pathlib import Path
from typing import Literal, Optional, Sequence, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from logging_utils import get_logger

LOGGER = get_logger(__name__)


class DecodeError(ValueError):
    """Raised when an input cannot be turned into a usable grayscale image."""


@dataclass(frozen=True)
class GrayscaleImage:
    """Immutable 8-bit grayscale image, row-major, origin top-left.

    ``pixels`` has shape ``(height, width)``.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels)
        if pixels.ndim != 2:
            raise DecodeError(f"Expected a 2-D grayscale buffer, got shape {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise DecodeError(f"Zero-area image ({pixels.shape[1]}x{pixels.shape[0]})")
        pixels = np.array(pixels, dtype=np.uint8, copy=True)
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_bytes(cls, width: int, height: int, pixels: Sequence[int] | bytes) -> "GrayscaleImage":
        """Build an image from a flat row-major buffer of ``width * height`` bytes."""

        flat = np.frombuffer(bytes(pixels), dtype=np.uint8)
        if flat.size != width * height:
            raise DecodeError(f"Pixel buffer has {flat.size} bytes, expected {width}x{height}={width * height}")
        if width == 0 or height == 0:
            raise DecodeError(f"Zero-area image ({width}x{height})")
        return cls(flat.reshape(height, width))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> int:
        return int(self.pixels.size)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GrayscaleImage):
            return NotImplemented
        return np.array_equal(self.pixels, other.pixels)


@dataclass(frozen=True)
class SyntheticSpec:
    """Request for a generated calibration pattern."""

    kind: Literal["checkerboard", "white"]
    width: int = 256
    height: int = 256
    block: int = 1


@dataclass(frozen=True)
class LoadedImage:
    """A decoded image together with the size of its encoded source."""

    image: GrayscaleImage
    byte_size: Optional[int]


ImageSource = Union[SyntheticSpec, bytes, str, PathLike]


def synthesize(spec: SyntheticSpec) -> GrayscaleImage:
    """Generate a checkerboard or solid white image."""

    if spec.width <= 0 or spec.height <= 0:
        raise DecodeError(f"Zero-area image ({spec.width}x{spec.height})")
    if spec.kind == "white":
        return GrayscaleImage(np.full((spec.height, spec.width), 255, dtype=np.uint8))
    if spec.kind == "checkerboard":
        if spec.block <= 0:
            raise ValueError("checkerboard block size must be positive")
        y, x = np.indices((spec.height, spec.width))
        parity = (x // spec.block + y // spec.block) % 2
        return GrayscaleImage(np.where(parity == 0, 0, 255).astype(np.uint8))
    raise ValueError(f"Unknown synthetic pattern: {spec.kind}")


def decode_bytes(data: bytes, label: str = "<bytes>") -> GrayscaleImage:
    """Decode an encoded image (PNG, JPEG, ...) into 8-bit luma."""

    if not data:
        raise DecodeError(f"Failed to decode image {label}: empty input")
    try:
        with Image.open(BytesIO(data)) as img:
            gray = np.array(img.convert("L"), dtype=np.uint8)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise DecodeError(f"Failed to decode image {label}: {exc}") from exc
    return GrayscaleImage(gray)


def decode_file(path: Union[str, PathLike]) -> LoadedImage:
    """Read and decode an image file, reporting its on-disk size."""

    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Failed to open file {path}: {exc}") from exc
    image = decode_bytes(data, str(path))
    LOGGER.debug("Decoded %s: %dx%d, %d bytes", path, image.width, image.height, len(data))
    return LoadedImage(image=image, byte_size=len(data))


def decode(source: ImageSource) -> LoadedImage:
    """Turn any supported source into a grayscale image."""

    if isinstance(source, SyntheticSpec):
        return LoadedImage(image=synthesize(source), byte_size=None)
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        return LoadedImage(image=decode_bytes(data), byte_size=len(data))
    return decode_file(source)
