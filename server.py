from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP
from fastmcp.tools.tool import ToolResult
from fastmcp.utilities.types import Image
from loguru import logger
from mcp.types import TextContent

from video_reader.config import (
    DEFAULT_AUDIO_BITRATE,
    DEFAULT_AUDIO_FORMAT,
    DEFAULT_FRAME_COUNT,
    DEFAULT_FULL_ANALYSIS_FRAMES,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MAX_SCENES,
    MAX_BATCH_FRAMES,
    MAX_FRAME_WIDTH,
    MAX_FULL_ANALYSIS_FRAMES,
    SERVER_NAME,
    SERVER_VERSION,
)
from video_reader.errors import VideoReaderError
from video_reader.labels import round_half_up
from video_reader.logging_config import configure_logging
from video_reader.models import ContextHint, FrameArtifact
from video_reader.processor import VideoProcessor
from video_reader.summary import summarize

OVERVIEW_NEXT_STEPS = [
    "Use get_frame with a specific timestamp to fetch frame data for visual analysis",
    "Use extract_audio if you need to transcribe spoken content",
]

mcp = FastMCP(SERVER_NAME)
processor = VideoProcessor()


def _error_result(exc: VideoReaderError, **context: Any) -> ToolResult:
    message = str(exc)
    logger.error("{} ({})", message, type(exc).__name__)
    return ToolResult(
        content=[TextContent(type="text", text=message)],
        structured_content={
            "ok": False,
            "server_version": SERVER_VERSION,
            "error": message,
            "error_type": type(exc).__name__,
            **context,
        },
    )


def _hints_payload(hints: List[ContextHint]) -> List[Dict[str, Any]]:
    return [hint.model_dump(exclude_none=True) for hint in hints]


def _image_block(frame: FrameArtifact):
    return Image(data=frame.data, format=frame.format).to_image_content()


@mcp.tool
def get_video_overview(video_path: str, frame_count: int = DEFAULT_FRAME_COUNT) -> ToolResult:
    """Get video metadata and frame timestamps without extracting images (~200 tokens).

    Use FIRST to plan analysis, then call `get_frame` for specific timestamps.
    """
    try:
        overview = processor.get_overview(video_path, frame_count=frame_count)
    except VideoReaderError as exc:
        return _error_result(
            exc,
            video_path=video_path,
            hint="Please provide an absolute path to an existing video file.",
        )

    summary = (
        f"{overview.filename}: {overview.metadata.human_description}. "
        f"{len(overview.available_frames)} frame reference(s) available; "
        "fetch images with get_frame."
    )
    return ToolResult(
        content=[TextContent(type="text", text=summary)],
        structured_content={
            "ok": True,
            "server_version": SERVER_VERSION,
            "video_path": overview.video_path,
            "filename": overview.filename,
            "metadata": overview.metadata.model_dump(exclude_none=True),
            "audio": overview.audio.model_dump(exclude_none=True),
            "available_frames": [frame.model_dump() for frame in overview.available_frames],
            "context_hints": _hints_payload(overview.context_hints),
            "next_steps": OVERVIEW_NEXT_STEPS,
        },
    )


@mcp.tool
def get_video_metadata(video_path: str) -> ToolResult:
    """Get technical specs only: duration, resolution, fps, codec, format, bitrate, audio (~100 tokens)."""
    try:
        profile = processor.get_metadata(video_path)
    except VideoReaderError as exc:
        return _error_result(exc, video_path=video_path)

    summary = summarize(profile)
    return ToolResult(
        content=[TextContent(type="text", text=summary.human_description)],
        structured_content={
            "ok": True,
            "server_version": SERVER_VERSION,
            "filename": os.path.basename(video_path),
            "summary": summary.human_description,
            "metadata": {
                "duration": summary.duration_formatted,
                "duration_seconds": profile.duration,
                "resolution": summary.resolution,
                "fps": profile.fps,
                "codec": profile.codec,
                "format": profile.format,
                "bitrate": f"{round_half_up(profile.bitrate / 1000)} kbps",
                "has_audio": profile.has_audio,
                "audio_codec": profile.audio_codec,
                "file_size": profile.file_size,
            },
            "analysis_hints": [hint.model_dump(exclude_none=True) for hint in summary.analysis_hints],
        },
    )


@mcp.tool
def estimate_analysis_cost(video_path: str, frame_count: int = DEFAULT_FRAME_COUNT) -> ToolResult:
    """Estimate token cost before extracting frames, to avoid context overflow."""
    try:
        estimate = processor.estimate_cost(video_path, frame_count=frame_count)
    except VideoReaderError as exc:
        return _error_result(exc, video_path=video_path)

    recommendation = (
        "Consider using progressive frame fetching (get_frame) instead of full analysis"
        if estimate.warning
        else "Context budget is manageable for this analysis"
    )
    return ToolResult(
        content=[
            TextContent(
                type="text",
                text=f"~{estimate.total} tokens for {frame_count} frame(s). {recommendation}.",
            )
        ],
        structured_content={
            "ok": True,
            "server_version": SERVER_VERSION,
            "estimate": {
                "metadata_tokens": estimate.metadata,
                "tokens_per_frame": estimate.per_frame,
                "total_for_frames": estimate.total_for_frames,
                "total_estimated": estimate.total,
                "warning": estimate.warning,
            },
            "recommendation": recommendation,
        },
    )


@mcp.tool
def get_frame(
    video_path: str,
    timestamp: float,
    max_width: int = MAX_FRAME_WIDTH,
    format: str = "jpeg",
    quality: int = DEFAULT_JPEG_QUALITY,
) -> ToolResult:
    """Extract a single frame at `timestamp` seconds (~5-15K tokens).

    Primary tool for progressive analysis: call `get_video_overview` first.
    """
    try:
        frame = processor.fetch_frame(
            video_path, timestamp, max_width=max_width, image_format=format, quality=quality
        )
    except VideoReaderError as exc:
        return _error_result(exc, video_path=video_path, timestamp=timestamp)

    return ToolResult(
        content=[
            TextContent(
                type="text",
                text=f"Frame at {frame.timestamp_formatted} ({frame.resolution}, ~{frame.estimated_tokens} tokens).",
            ),
            _image_block(frame),
        ],
        structured_content={
            "ok": True,
            "server_version": SERVER_VERSION,
            "frame": frame.describe(),
        },
    )


@mcp.tool
def get_frames_batch(
    video_path: str,
    timestamps: List[float],
    max_width: int = MAX_FRAME_WIDTH,
    format: str = "jpeg",
) -> ToolResult:
    """Extract frames at several timestamps. Limited to 5 frames (~25-75K tokens).

    For long videos prefer `get_frame` progressively.
    """
    try:
        batch = processor.fetch_frames_batch(video_path, timestamps, max_width=max_width, image_format=format)
    except VideoReaderError as exc:
        return _error_result(exc, video_path=video_path)

    summary = f"Returned {batch.fulfilled_count} frame(s) of {batch.requested_count} requested."
    if batch.limited:
        summary += f" Batch capped at {MAX_BATCH_FRAMES}; {batch.dropped_count} timestamp(s) dropped."

    return ToolResult(
        content=[TextContent(type="text", text=summary), *[_image_block(frame) for frame in batch.frames]],
        structured_content={
            "ok": True,
            "server_version": SERVER_VERSION,
            "frames_extracted": batch.fulfilled_count,
            "total_timestamps_requested": batch.requested_count,
            "dropped_timestamps": batch.dropped_count,
            "limited": batch.limited,
            "frames": [frame.describe() for frame in batch.frames],
        },
    )


@mcp.tool
def extract_audio(
    video_path: str,
    format: str = DEFAULT_AUDIO_FORMAT,
    bitrate: str = DEFAULT_AUDIO_BITRATE,
    start_time: Optional[float] = None,
    end_time: Optional[float] = None,
) -> ToolResult:
    """Extract the audio track to MP3/WAV and return its file path. Supports time segments."""
    try:
        audio = processor.fetch_audio(
            video_path, audio_format=format, bitrate=bitrate, start_time=start_time, end_time=end_time
        )
    except VideoReaderError as exc:
        return _error_result(exc, video_path=video_path)

    segment: Any = "full"
    if audio.start_time is not None:
        segment = {"start_time": audio.start_time, "end_time": audio.end_time}

    return ToolResult(
        content=[TextContent(type="text", text=f"Audio extracted to {audio.audio_path}.")],
        structured_content={
            "ok": True,
            "server_version": SERVER_VERSION,
            "audio_path": audio.audio_path,
            "format": audio.format,
            "bitrate": audio.bitrate,
            "segment": segment,
            "next_step": "Use this audio path with a transcription service to get the spoken content.",
        },
    )


@mcp.tool
def analyze_video_full(
    video_path: str,
    max_frames: int = DEFAULT_FULL_ANALYSIS_FRAMES,
    extract_audio: bool = True,
    frame_interval: Optional[float] = None,
) -> ToolResult:
    """Full analysis: metadata + multiple frames + audio (50K-150K+ tokens).

    Only for short videos (<1 min). Otherwise use
    get_video_overview -> get_frame -> extract_audio.
    """
    try:
        analysis = processor.full_analysis(
            video_path, max_frames=max_frames, extract_audio=extract_audio, frame_interval=frame_interval
        )
    except VideoReaderError as exc:
        return _error_result(exc, video_path=video_path)

    profile = analysis.profile
    summary_parts = [
        f"{analysis.summary.human_description}.",
        f"Extracted {len(analysis.frames)} frame(s) every {analysis.frame_interval:g}s.",
    ]
    if max_frames > MAX_FULL_ANALYSIS_FRAMES:
        summary_parts.append(f"max_frames capped to {MAX_FULL_ANALYSIS_FRAMES}.")
    if analysis.context_warning:
        summary_parts.append(analysis.context_warning)
    if analysis.audio_error:
        summary_parts.append(f"Audio unavailable: {analysis.audio_error}")

    return ToolResult(
        content=[
            TextContent(type="text", text=" ".join(summary_parts)),
            *[_image_block(frame) for frame in analysis.frames],
        ],
        structured_content={
            "ok": True,
            "server_version": SERVER_VERSION,
            "context_warning": analysis.context_warning,
            "video": {
                "filename": os.path.basename(video_path),
                "summary": analysis.summary.human_description,
                "duration": analysis.summary.duration_formatted,
                "resolution": analysis.summary.resolution,
            },
            "metadata": {
                "duration_seconds": profile.duration,
                "fps": profile.fps,
                "codec": profile.codec,
                "format": profile.format,
                "bitrate": f"{round_half_up(profile.bitrate / 1000)} kbps",
                "has_audio": profile.has_audio,
            },
            "estimate": analysis.estimate.model_dump(exclude_none=True),
            "requested_estimate": analysis.requested_estimate.model_dump(exclude_none=True),
            "requested_max_frames": analysis.requested_max_frames,
            "effective_max_frames": analysis.effective_max_frames,
            "frames_extracted": len(analysis.frames),
            "frames": [
                {**frame.describe(), "index": frame.index + 1}
                for frame in analysis.frames
            ],
            "audio_extracted": analysis.audio is not None,
            "audio_path": analysis.audio.audio_path if analysis.audio else None,
            "audio_error": analysis.audio_error,
        },
    )


@mcp.tool
def get_scene_references(video_path: str, max_scenes: int = DEFAULT_MAX_SCENES) -> ToolResult:
    """Detect scene boundaries and return one key-frame timestamp per scene, without images.

    Decodes the video, so it is slower than `get_video_overview`; useful to pick
    `get_frame` timestamps that land inside distinct shots.
    """
    try:
        scan = processor.get_scenes(video_path, max_scenes=max_scenes)
    except VideoReaderError as exc:
        return _error_result(exc, video_path=video_path)

    if scan.status == "ok":
        text = (
            f"Detected {scan.total_detected} scene(s); returning {len(scan.scenes)}. "
            "Fetch key frames with get_frame."
        )
    else:
        text = f"Scene detection status: {scan.status}. Fall back to get_video_overview timestamps."

    return ToolResult(
        content=[TextContent(type="text", text=text)],
        structured_content={
            "ok": True,
            "server_version": SERVER_VERSION,
            "video_path": video_path,
            "scene_detection": scan.status,
            "scene_detection_error": scan.error,
            "total_detected": scan.total_detected,
            "scenes": [scene.model_dump() for scene in scan.scenes],
        },
    )


@mcp.tool
def cleanup_extracted_audio() -> Dict[str, Any]:
    """Delete audio files previously written by `extract_audio` or `analyze_video_full`."""
    removed = processor.cleanup_audio()
    return {"ok": True, "removed_files": removed, "server_version": SERVER_VERSION}


@mcp.prompt(name="progressive_video_review")
def progressive_video_review(
    video_path: str,
    question: str = "Summarize the key visual events in this video.",
) -> str:
    """Prompt shortcut for the overview-first video workflow."""
    return (
        "Answer the question below about a video without exhausting your context budget.\n"
        f"- video_path: {video_path}\n"
        f"- question: {question}\n"
        "1. Call `get_video_overview` and read its context_hints first.\n"
        "2. Call `get_frame` for the few timestamps most likely to answer the question; "
        f"use `get_frames_batch` for at most {MAX_BATCH_FRAMES} at once.\n"
        "3. Call `extract_audio` only if spoken content matters.\n"
        "Avoid `analyze_video_full` unless the video is under a minute. "
        "Cite timestamps as evidence; say unknown for moments you did not inspect."
    )


def main() -> None:
    configure_logging()
    mcp.run()


if __name__ == "__main__":
    main()
