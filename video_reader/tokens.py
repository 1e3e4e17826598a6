from __future__ import annotations

import math

from .config import (
    BASE64_EXPANSION_FACTOR,
    BASE_METADATA_TOKENS,
    COMPRESSED_BYTES_PER_PIXEL,
    TOKENS_PER_CHAR,
    WARNING_TOKEN_THRESHOLD,
)
from .labels import capped_dimensions, round_half_up
from .models import TokenEstimate


def _kilobytes_to_tokens(kilobytes: float) -> int:
    return max(0, math.ceil(kilobytes * BASE64_EXPANSION_FACTOR * 1000 * TOKENS_PER_CHAR))


def estimate_artifact_tokens(width: int, height: int) -> int:
    """Estimate tokens for a frame of the given source resolution."""
    effective_width, effective_height = capped_dimensions(width, height)
    estimated_kb = (effective_width * effective_height * COMPRESSED_BYTES_PER_PIXEL) / 1024
    return _kilobytes_to_tokens(estimated_kb)


def estimate_encoded_tokens(encoded_length: int) -> int:
    """Estimate tokens for an artifact whose encoded length is already known."""
    return _kilobytes_to_tokens(max(0, encoded_length) / 1024)


def estimate_base64_size(byte_len: int) -> int:
    return ((byte_len + 2) // 3) * 4


def exceeds_warning_threshold(total_tokens: int) -> bool:
    return total_tokens > WARNING_TOKEN_THRESHOLD


def estimate_analysis_cost(width: int, height: int, frame_count: int) -> TokenEstimate:
    per_frame = estimate_artifact_tokens(width, height)
    total_for_frames = max(0, frame_count) * per_frame
    total = BASE_METADATA_TOKENS + total_for_frames

    warning = None
    if exceeds_warning_threshold(total):
        warning = (
            f"Estimated {round_half_up(total / 1000)}K tokens exceeds recommended limit. "
            "Consider reducing frame count or fetching frames progressively."
        )

    return TokenEstimate(
        metadata=BASE_METADATA_TOKENS,
        per_frame=per_frame,
        frame_count=max(0, frame_count),
        total_for_frames=total_for_frames,
        total=total,
        warning=warning,
    )
