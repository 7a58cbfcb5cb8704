"""Image diff engine — pixel comparison of two screenshots.

The comparison rules follow resemble.js: each ignore mode maps to per-channel
and brightness tolerances, and the ``antialiasing`` mode forgives pixels that
sit on a high-contrast edge in either image.
"""

from __future__ import annotations

import base64
import binascii
import colorsys
import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from visual_regression.errors import ImageDecodeError
from visual_regression.models.screenshot import ComparisonResult, IgnoreComparison

logger = logging.getLogger(__name__)

ERROR_COLOR = (255, 0, 255, 255)
_DATA_URL_PREFIX = "base64,"


@dataclass(frozen=True)
class Tolerance:
    red: int
    green: int
    blue: int
    alpha: int
    min_brightness: int
    max_brightness: int
    ignore_colors: bool = False
    ignore_antialiasing: bool = False


TOLERANCES: dict[IgnoreComparison, Tolerance] = {
    IgnoreComparison.NOTHING: Tolerance(0, 0, 0, 0, 0, 255),
    IgnoreComparison.LESS: Tolerance(16, 16, 16, 16, 16, 240),
    IgnoreComparison.ALPHA: Tolerance(16, 16, 16, 255, 16, 240),
    IgnoreComparison.COLORS: Tolerance(16, 16, 16, 16, 16, 240, ignore_colors=True),
    IgnoreComparison.ANTIALIASING: Tolerance(32, 32, 32, 32, 64, 96, ignore_antialiasing=True),
}


def decode_image(data: bytes | str) -> Image.Image:
    """Decode raw PNG bytes, a base64 string or a data URL into an RGBA image."""
    try:
        if isinstance(data, str):
            if _DATA_URL_PREFIX in data:
                data = data.split(_DATA_URL_PREFIX, 1)[1]
            data = base64.b64decode(data, validate=True)
        if not data:
            raise ImageDecodeError("Image data is empty")
        image = Image.open(io.BytesIO(data))
        image.load()
    except ImageDecodeError:
        raise
    except (UnidentifiedImageError, OSError, binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e
    return image.convert("RGBA")


def is_match(result: ComparisonResult, tolerance: float) -> bool:
    """Dimension mismatch always fails, regardless of tolerance."""
    return result.is_same_dimensions and result.mis_match_percentage <= tolerance


def diff(
    image_a: Image.Image,
    image_b: Image.Image,
    ignore_comparison: IgnoreComparison | str = IgnoreComparison.NOTHING,
) -> ComparisonResult:
    """Compare two images and return the mismatch percentage and a diff image.

    Images of unequal size are compared on the union of both canvases; pixels
    covered by only one image count as mismatches, which keeps the percentage
    symmetric in its arguments.
    """
    tol = TOLERANCES[IgnoreComparison(ignore_comparison)]
    a = image_a.convert("RGBA")
    b = image_b.convert("RGBA")
    same_dimensions = a.size == b.size
    width, height = max(a.width, b.width), max(a.height, b.height)
    total = width * height

    if total == 0 or (same_dimensions and a.tobytes() == b.tobytes()):
        return ComparisonResult(mis_match_percentage=0.0, is_same_dimensions=same_dimensions, image=a.copy())

    px_a, px_b = a.load(), b.load()
    output = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    px_out = output.load()
    mismatched = 0

    for y in range(height):
        for x in range(width):
            in_a = x < a.width and y < a.height
            in_b = x < b.width and y < b.height
            if not (in_a and in_b):
                mismatched += 1
                px_out[x, y] = ERROR_COLOR
                continue

            p1, p2 = px_a[x, y], px_b[x, y]
            if tol.ignore_colors:
                ok = _brightness_similar(p1, p2, tol)
            elif _rgb_similar(p1, p2, tol):
                ok = True
            elif tol.ignore_antialiasing and (
                _is_antialiased(px_a, x, y, a.size, tol) or _is_antialiased(px_b, x, y, b.size, tol)
            ):
                ok = _brightness_similar(p1, p2, tol)
            else:
                ok = False

            if ok:
                gray = int(_brightness(p1))
                px_out[x, y] = (gray, gray, gray, p1[3] // 2)
            else:
                mismatched += 1
                px_out[x, y] = ERROR_COLOR

    percentage = mismatched * 100 / total
    logger.debug("Diff %dx%d vs %dx%d: %d/%d pixels differ (%.4f%%)",
                 a.width, a.height, b.width, b.height, mismatched, total, percentage)
    return ComparisonResult(
        mis_match_percentage=percentage,
        is_same_dimensions=same_dimensions,
        image=output,
    )


def _brightness(p: tuple[int, ...]) -> float:
    return 0.3 * p[0] + 0.59 * p[1] + 0.11 * p[2]


def _hue(p: tuple[int, ...]) -> float:
    return colorsys.rgb_to_hsv(p[0] / 255, p[1] / 255, p[2] / 255)[0]


def _rgb_similar(p1: tuple[int, ...], p2: tuple[int, ...], tol: Tolerance) -> bool:
    return (
        abs(p1[0] - p2[0]) <= tol.red
        and abs(p1[1] - p2[1]) <= tol.green
        and abs(p1[2] - p2[2]) <= tol.blue
        and abs(p1[3] - p2[3]) <= tol.alpha
    )


def _brightness_similar(p1: tuple[int, ...], p2: tuple[int, ...], tol: Tolerance) -> bool:
    return (
        abs(p1[3] - p2[3]) <= tol.alpha
        and abs(_brightness(p1) - _brightness(p2)) <= tol.min_brightness
    )


def _is_antialiased(px, x: int, y: int, size: tuple[int, int], tol: Tolerance) -> bool:
    width, height = size
    source = px[x, y]
    source_brightness = _brightness(source)
    source_hue = _hue(source)
    high_contrast = different_hue = equivalent = 0

    for dx in (-1, 0, 1):
        for dy in (-1, 0, 1):
            if dx == 0 and dy == 0:
                continue
            nx, ny = x + dx, y + dy
            if not (0 <= nx < width and 0 <= ny < height):
                continue
            target = px[nx, ny]
            if abs(_brightness(target) - source_brightness) > tol.max_brightness:
                high_contrast += 1
            if target[:3] == source[:3]:
                equivalent += 1
            if abs(_hue(target) - source_hue) > 0.3:
                different_hue += 1
            if different_hue > 1 or high_contrast > 1:
                return True

    return equivalent < 2
