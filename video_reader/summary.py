from __future__ import annotations

import math
from typing import List

from .config import (
    LONG_VIDEO_FRAMES,
    MAX_FRAME_WIDTH,
    MEDIUM_VIDEO_FRAMES,
    MEDIUM_VIDEO_MAX_SEC,
    SHORT_VIDEO_FRAMES,
    SHORT_VIDEO_MAX_SEC,
)
from .labels import (
    duration_label,
    format_timestamp,
    orientation_label,
    resolution_label,
    round_half_up,
)
from .models import AnalysisHint, MetadataSummary, VideoTechnicalProfile


def describe(profile: VideoTechnicalProfile) -> str:
    """One-line description, e.g. ``Full HD, landscape, video, 30fps, 5 minutes, with audio``."""
    return ", ".join(
        [
            resolution_label(profile.width, profile.height),
            orientation_label(profile.width, profile.height),
            "video",
            f"{round_half_up(profile.fps)}fps",
            duration_label(profile.duration),
            "with audio" if profile.has_audio else "no audio",
        ]
    )


def analysis_hints(profile: VideoTechnicalProfile) -> List[AnalysisHint]:
    """Advisory hints in fixed order: duration, resolution, audio."""
    duration = profile.duration
    hints: List[AnalysisHint] = []

    if duration < SHORT_VIDEO_MAX_SEC:
        # Short clips keep a fractional interval so sub-second sampling stays possible.
        hints.append(
            AnalysisHint(
                aspect="duration",
                recommendation="Short video - extract all key frames (5-10 frames recommended)",
                parameters={
                    "max_frames": SHORT_VIDEO_FRAMES,
                    "interval": max(1, duration / SHORT_VIDEO_FRAMES),
                },
            )
        )
    elif duration < MEDIUM_VIDEO_MAX_SEC:
        hints.append(
            AnalysisHint(
                aspect="duration",
                recommendation="Medium video - sample frames at regular intervals",
                parameters={
                    "max_frames": MEDIUM_VIDEO_FRAMES,
                    "interval": math.floor(duration / MEDIUM_VIDEO_FRAMES),
                },
            )
        )
    else:
        hints.append(
            AnalysisHint(
                aspect="duration",
                recommendation="Long video - consider extracting frames progressively by time ranges",
                parameters={
                    "max_frames": LONG_VIDEO_FRAMES,
                    "interval": math.floor(duration / LONG_VIDEO_FRAMES),
                },
            )
        )

    if profile.width > MAX_FRAME_WIDTH:
        hints.append(
            AnalysisHint(
                aspect="resolution",
                recommendation=(
                    f"High resolution video - frames will be resized to {MAX_FRAME_WIDTH}px "
                    "max width for efficiency"
                ),
                parameters={"max_width": MAX_FRAME_WIDTH},
            )
        )

    if profile.has_audio:
        hints.append(
            AnalysisHint(
                aspect="audio",
                recommendation="Video has audio track - consider extracting for transcription",
            )
        )

    return hints


def summarize(profile: VideoTechnicalProfile) -> MetadataSummary:
    return MetadataSummary(
        duration_formatted=format_timestamp(profile.duration),
        resolution=f"{profile.width}x{profile.height}",
        human_description=describe(profile),
        analysis_hints=analysis_hints(profile),
    )
