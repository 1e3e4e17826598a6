from __future__ import annotations

import math
from threading import Lock
from typing import Dict, List, Optional

from loguru import logger

from .labels import capped_resolution, format_timestamp
from .models import FrameReference
from .tokens import estimate_artifact_tokens


def plan_interval(duration: float, requested_count: int) -> int:
    if requested_count <= 0:
        return 1
    return max(1, math.floor(duration / requested_count))


def plan_frames(
    duration: float,
    requested_count: int,
    width: int = 0,
    height: int = 0,
) -> List[FrameReference]:
    """Evenly spaced references at ``i * interval``, stopping before ``duration``.

    Short videos may yield fewer references than requested.
    """
    if requested_count <= 0 or duration <= 0:
        return []

    interval = plan_interval(duration, requested_count)
    resolution = capped_resolution(width, height)
    estimated_tokens = estimate_artifact_tokens(width, height)

    references: List[FrameReference] = []
    for index in range(requested_count):
        timestamp = float(index * interval)
        if timestamp >= duration:
            break
        references.append(
            FrameReference(
                index=index,
                timestamp=timestamp,
                timestamp_formatted=format_timestamp(timestamp),
                resolution=resolution,
                estimated_tokens=estimated_tokens,
            )
        )

    logger.debug(
        "Planned {} of {} frame reference(s) at {}s interval over {}s",
        len(references),
        requested_count,
        interval,
        duration,
    )
    return references


class FrameReferenceCache:
    """Last-write-wins mapping of video path to its most recent frame plan.

    No eviction and no file-change detection: an entry lives until it is
    replaced or the process exits.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._plans: Dict[str, List[FrameReference]] = {}

    def get(self, video_path: str) -> Optional[List[FrameReference]]:
        with self._lock:
            plan = self._plans.get(video_path)
        return list(plan) if plan is not None else None

    def replace(self, video_path: str, references: List[FrameReference]) -> None:
        with self._lock:
            replaced = video_path in self._plans
            self._plans[video_path] = list(references)
        if replaced:
            logger.debug("Replaced cached frame plan for {}", video_path)

    def __contains__(self, video_path: object) -> bool:
        with self._lock:
            return video_path in self._plans

    def __len__(self) -> int:
        with self._lock:
            return len(self._plans)
