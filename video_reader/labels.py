from __future__ import annotations

import math

from .config import MAX_FRAME_WIDTH


def round_half_up(value: float) -> int:
    # round() is banker's rounding; labels and scaled heights round .5 upward.
    return int(math.floor(value + 0.5))


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``m:ss`` (minutes are not wrapped into hours)."""
    seconds = max(0.0, float(seconds))
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins}:{secs:02d}"


def parse_frame_rate(raw: object) -> float:
    """Parse a rational frame rate such as ``30000/1001``; 0.0 when malformed."""
    text = str(raw or "").strip()
    if not text:
        return 0.0
    try:
        if "/" in text:
            numerator, denominator = text.split("/", 1)
            denominator_value = float(denominator)
            if denominator_value == 0:
                return 0.0
            value = float(numerator) / denominator_value
        else:
            value = float(text)
    except ValueError:
        return 0.0
    if math.isnan(value) or math.isinf(value) or value < 0:
        return 0.0
    return value


def resolution_label(width: int, height: int) -> str:
    pixels = width * height
    if pixels >= 3840 * 2160:
        return "4K Ultra HD"
    if pixels >= 1920 * 1080:
        return "Full HD"
    if pixels >= 1280 * 720:
        return "HD"
    if pixels >= 854 * 480:
        return "SD"
    return "Low resolution"


def orientation_label(width: int, height: int) -> str:
    if width > height:
        return "landscape"
    if width < height:
        return "portrait"
    return "square"


def duration_label(seconds: float) -> str:
    if seconds < 60:
        return f"{round_half_up(seconds)} seconds"
    if seconds < 3600:
        return f"{round_half_up(seconds / 60)} minutes"
    hours = int(seconds // 3600)
    mins = round_half_up((seconds % 3600) / 60)
    return f"{hours}h {mins}m"


def capped_dimensions(width: int, height: int, max_width: int = MAX_FRAME_WIDTH):
    """Clamp width to ``max_width`` and scale height to keep the aspect ratio."""
    if width <= 0 or height <= 0:
        return 0, 0
    effective_width = min(width, max_width)
    effective_height = round_half_up(effective_width * height / width)
    return effective_width, effective_height


def capped_resolution(width: int, height: int, max_width: int = MAX_FRAME_WIDTH) -> str:
    effective_width, effective_height = capped_dimensions(width, height, max_width)
    return f"{effective_width}x{effective_height}"
