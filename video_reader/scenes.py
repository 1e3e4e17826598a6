from __future__ import annotations

from threading import Thread
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from scenedetect import ContentDetector, SceneManager, open_video

from .config import SCENE_DETECT_TIMEOUT_SEC
from .labels import format_timestamp
from .models import SceneInfo, SceneScan

SceneBoundaries = List[Tuple[float, float]]


def _frame_skip_for(duration_sec: float, fps: float) -> int:
    if duration_sec > 600:
        return max(1, int(fps // 2))
    if duration_sec > 300:
        return max(1, int(fps // 4))
    return 0


class SceneDetector:
    """Content-based scene boundaries, bounded by a wall-clock timeout.

    Detection runs in a daemon thread; on timeout the scene manager is asked to
    stop and the scan reports ``timeout`` instead of raising.
    """

    def __init__(self, timeout_sec: float = SCENE_DETECT_TIMEOUT_SEC) -> None:
        self.timeout_sec = timeout_sec

    def detect(self, video_path: str, duration_sec: float, fps: float) -> Tuple[Optional[SceneBoundaries], str, Optional[str]]:
        result: Dict[str, Any] = {"scenes": None, "error": None}
        holder: Dict[str, Any] = {}
        frame_skip = _frame_skip_for(duration_sec, fps)

        def _run_detection():
            try:
                video = open_video(video_path)
                scene_manager = SceneManager()
                holder["scene_manager"] = scene_manager
                scene_manager.add_detector(ContentDetector())
                scene_manager.detect_scenes(video=video, frame_skip=frame_skip)
                result["scenes"] = [
                    (start.get_seconds(), end.get_seconds())
                    for start, end in scene_manager.get_scene_list(start_in_scene=True)
                ]
            except Exception as exc:  # pragma: no cover - reported as scan status
                result["error"] = str(exc)

        thread = Thread(target=_run_detection, daemon=True)
        thread.start()
        thread.join(timeout=self.timeout_sec)

        if thread.is_alive():
            scene_manager = holder.get("scene_manager")
            if scene_manager is not None:
                scene_manager.stop()
            logger.warning("Scene detection timed out after {}s for {}", self.timeout_sec, video_path)
            return None, "timeout", None
        if result["error"]:
            logger.warning("Scene detection failed for {}: {}", video_path, result["error"])
            return None, "error", result["error"]
        if not result["scenes"]:
            return None, "no_scenes", None
        return result["scenes"], "ok", None


def build_scene_scan(
    boundaries: Optional[SceneBoundaries],
    status: str,
    error: Optional[str],
    max_scenes: int,
    frame_tokens: int,
) -> SceneScan:
    """Turn raw ``(start, end)`` boundaries into SceneInfo entries, keyed at each midpoint."""
    if not boundaries:
        return SceneScan(status=status if status != "ok" else "no_scenes", error=error)

    scenes: List[SceneInfo] = []
    for index, (start, end) in enumerate(boundaries[:max_scenes]):
        midpoint = (start + end) / 2.0
        scenes.append(
            SceneInfo(
                index=index,
                start_time=round(start, 3),
                end_time=round(end, 3),
                duration=round(max(0.0, end - start), 3),
                key_frame_timestamp=round(midpoint, 3),
                key_frame_formatted=format_timestamp(midpoint),
                estimated_tokens=frame_tokens,
            )
        )
    return SceneScan(status="ok", scenes=scenes, total_detected=len(boundaries))
