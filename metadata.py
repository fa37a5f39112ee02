"""EXIF metadata lookups."""

from __future__ import annotations

from os import PathLike
from typing import Optional, Union

from PIL import ExifTags, Image, UnidentifiedImageError

from logging_utils import get_logger

LOGGER = get_logger(__name__)


def _format_focal_length(value: object) -> str:
    try:
        return f"{float(value):g} mm"
    except (TypeError, ValueError, ZeroDivisionError):
        return str(value)


def lookup_focal_length(path: Union[str, PathLike]) -> Optional[str]:
    """Return the EXIF focal length of ``path`` (e.g. ``"4.2 mm"``) if recorded.

    Absence of the file, of EXIF data or of the tag is not an error.
    """

    try:
        with Image.open(path) as img:
            exif = img.getexif()
            value = exif.get_ifd(ExifTags.IFD.Exif).get(ExifTags.Base.FocalLength)
            if value is None:
                value = exif.get(ExifTags.Base.FocalLength)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        LOGGER.debug("No EXIF for %s: %s", path, exc)
        return None
    if value is None:
        return None
    return _format_focal_length(value)
