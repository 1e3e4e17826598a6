from __future__ import annotations

from typing import List, Sequence

from .config import (
    ACTION_HINT_PRIORITY,
    INFO_HINT_PRIORITY,
    LONG_VIDEO_HINT_SEC,
    SUGGESTION_HINT_PRIORITY,
    WARNING_HINT_PRIORITY,
)
from .labels import round_half_up
from .models import ContextHint, FrameReference, VideoTechnicalProfile
from .tokens import exceeds_warning_threshold


def total_estimated_tokens(references: Sequence[FrameReference]) -> int:
    return sum(reference.estimated_tokens for reference in references)


def generate_hints(
    profile: VideoTechnicalProfile,
    references: Sequence[FrameReference],
) -> List[ContextHint]:
    """Build next-step hints for the agent, highest priority first.

    Equal priorities keep their insertion order.
    """
    hints: List[ContextHint] = []

    total_tokens = total_estimated_tokens(references)
    if exceeds_warning_threshold(total_tokens):
        hints.append(
            ContextHint(
                kind="warning",
                message=(
                    f"Extracting all {len(references)} frames would use "
                    f"~{round_half_up(total_tokens / 1000)}K tokens. "
                    "Consider fetching specific frames instead."
                ),
                suggested_tool="get_frame",
                priority=WARNING_HINT_PRIORITY,
            )
        )

    if profile.duration > LONG_VIDEO_HINT_SEC:
        hints.append(
            ContextHint(
                kind="suggestion",
                message=(
                    "For long videos, fetch frames progressively: start with a few key "
                    "timestamps, then request more if needed."
                ),
                suggested_tool="get_frame",
                priority=SUGGESTION_HINT_PRIORITY,
            )
        )

    if profile.has_audio:
        hints.append(
            ContextHint(
                kind="info",
                message="Audio track available. Use extract_audio to get the audio file for transcription.",
                suggested_tool="extract_audio",
                priority=INFO_HINT_PRIORITY,
            )
        )

    hints.append(
        ContextHint(
            kind="action",
            message=(
                "Review the frame timestamps above. Use get_frame to fetch specific "
                "frames for visual analysis."
            ),
            suggested_tool="get_frame",
            priority=ACTION_HINT_PRIORITY,
        )
    )

    return sorted(hints, key=lambda hint: hint.priority, reverse=True)
