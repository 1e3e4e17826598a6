from __future__ import annotations

import math
import os
import shutil
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from loguru import logger

from .config import (
    AUDIO_BITRATES,
    AUDIO_FORMATS,
    DEFAULT_AUDIO_BITRATE,
    DEFAULT_AUDIO_FORMAT,
    DEFAULT_FRAME_COUNT,
    DEFAULT_FULL_ANALYSIS_FRAMES,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MAX_SCENES,
    IMAGE_FORMATS,
    MAX_BATCH_FRAMES,
    MAX_FRAME_WIDTH,
    MAX_FULL_ANALYSIS_FRAMES,
)
from .errors import (
    InvalidArgument,
    MissingFile,
    NoAudioTrack,
    SeekOutOfRange,
    VideoReaderError,
)
from .hints import generate_hints
from .labels import format_timestamp
from .media import FFmpegAudioExtractor, FFprobeProber, OpenCVFrameDecoder, OpenCVImageCodec
from .models import (
    AudioArtifact,
    AudioStatus,
    BatchFrames,
    FrameArtifact,
    FrameReference,
    FullAnalysis,
    SceneScan,
    TokenEstimate,
    VideoOverview,
    VideoTechnicalProfile,
)
from .planner import FrameReferenceCache, plan_frames
from .scenes import SceneDetector, build_scene_scan
from .summary import summarize
from .tokens import estimate_analysis_cost, estimate_artifact_tokens, estimate_base64_size, estimate_encoded_tokens


def _require_positive(name: str, value: float, operation: str) -> None:
    if value is None or value <= 0:
        raise InvalidArgument(f"{name} must be greater than 0.", operation=operation)


def _validate_image_options(max_width: int, image_format: str, quality: int, operation: str) -> None:
    _require_positive("max_width", max_width, operation)
    if image_format not in IMAGE_FORMATS:
        raise InvalidArgument(
            f"format must be one of: {', '.join(IMAGE_FORMATS)}.", operation=operation
        )
    if not 1 <= int(quality) <= 100:
        raise InvalidArgument("quality must be between 1 and 100.", operation=operation)


class VideoProcessor:
    def __init__(
        self,
        prober: Optional[FFprobeProber] = None,
        decoder: Optional[OpenCVFrameDecoder] = None,
        codec: Optional[OpenCVImageCodec] = None,
        audio_extractor: Optional[FFmpegAudioExtractor] = None,
        scene_detector: Optional[SceneDetector] = None,
        frame_cache: Optional[FrameReferenceCache] = None,
    ) -> None:
        self.prober = prober or FFprobeProber()
        self.decoder = decoder or OpenCVFrameDecoder()
        self.codec = codec or OpenCVImageCodec()
        self.audio_extractor = audio_extractor or FFmpegAudioExtractor()
        self.scene_detector = scene_detector or SceneDetector()
        self.frame_cache = frame_cache if frame_cache is not None else FrameReferenceCache()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def _require_file(self, video_path: str, operation: str) -> None:
        if not os.path.exists(video_path):
            raise MissingFile(f"File not found: {video_path}", operation=operation, video_path=video_path)
        if not os.path.isfile(video_path):
            raise MissingFile(
                f"Video path is not a file: {video_path}", operation=operation, video_path=video_path
            )

    def get_metadata(self, video_path: str, operation: str = "get_video_metadata") -> VideoTechnicalProfile:
        self._require_file(video_path, operation)
        try:
            return self.prober.probe(video_path)
        except VideoReaderError as exc:
            exc.operation = exc.operation or operation
            exc.video_path = exc.video_path or video_path
            raise

    def get_overview(self, video_path: str, frame_count: int = DEFAULT_FRAME_COUNT) -> VideoOverview:
        _require_positive("frame_count", frame_count, "get_video_overview")
        profile = self.get_metadata(video_path, operation="get_video_overview")
        summary = summarize(profile)

        references = plan_frames(profile.duration, frame_count, profile.width, profile.height)
        self.frame_cache.replace(video_path, references)
        hints = generate_hints(profile, references)

        return VideoOverview(
            video_path=video_path,
            filename=os.path.basename(video_path),
            metadata=summary,
            available_frames=references,
            audio=AudioStatus(
                available=profile.has_audio,
                duration_seconds=profile.duration if profile.has_audio else None,
                codec=profile.audio_codec,
            ),
            context_hints=hints,
        )

    def cached_frames(self, video_path: str) -> Optional[List[FrameReference]]:
        return self.frame_cache.get(video_path)

    def estimate_cost(self, video_path: str, frame_count: int = DEFAULT_FRAME_COUNT) -> TokenEstimate:
        _require_positive("frame_count", frame_count, "estimate_analysis_cost")
        profile = self.get_metadata(video_path, operation="estimate_analysis_cost")
        return estimate_analysis_cost(profile.width, profile.height, frame_count)

    def get_scenes(self, video_path: str, max_scenes: int = DEFAULT_MAX_SCENES) -> SceneScan:
        _require_positive("max_scenes", max_scenes, "get_scene_references")
        profile = self.get_metadata(video_path, operation="get_scene_references")
        boundaries, status, error = self.scene_detector.detect(video_path, profile.duration, profile.fps)
        return build_scene_scan(
            boundaries,
            status,
            error,
            max_scenes=max_scenes,
            frame_tokens=estimate_artifact_tokens(profile.width, profile.height),
        )

    # ------------------------------------------------------------------
    # On-demand artifacts
    # ------------------------------------------------------------------

    def _check_timestamp(self, profile: VideoTechnicalProfile, video_path: str, timestamp: float, operation: str) -> None:
        # A zero duration means the container did not report one; only the lower bound applies.
        if timestamp < 0 or (profile.duration > 0 and timestamp >= profile.duration):
            raise SeekOutOfRange(
                f"Timestamp outside video range [0, {profile.duration})",
                timestamp=timestamp,
                operation=operation,
                video_path=video_path,
            )

    def _render_frame(self, image, index: int, timestamp: float, max_width: int, image_format: str, quality: int) -> FrameArtifact:
        resized = self.codec.resize(image, max_width)
        data, mime_type = self.codec.encode(resized, image_format, quality if image_format == "jpeg" else None)
        width, height = self.codec.dimensions(resized)
        return FrameArtifact(
            index=index,
            timestamp=float(timestamp),
            timestamp_formatted=format_timestamp(timestamp),
            resolution=f"{width}x{height}",
            estimated_tokens=estimate_encoded_tokens(estimate_base64_size(len(data))),
            data=data,
            mime_type=mime_type,
            format=image_format,
        )

    def _extract_frame(self, video_path: str, index: int, timestamp: float, max_width: int, image_format: str, quality: int) -> FrameArtifact:
        logger.info("Extracting frame at {}s from {}", timestamp, video_path)
        image = self.decoder.decode_frame_at(video_path, timestamp)
        return self._render_frame(image, index, timestamp, max_width, image_format, quality)

    def fetch_frame(
        self,
        video_path: str,
        timestamp: float,
        max_width: int = MAX_FRAME_WIDTH,
        image_format: str = "jpeg",
        quality: int = DEFAULT_JPEG_QUALITY,
    ) -> FrameArtifact:
        _validate_image_options(max_width, image_format, quality, "get_frame")
        profile = self.get_metadata(video_path, operation="get_frame")
        self._check_timestamp(profile, video_path, timestamp, "get_frame")
        return self._extract_frame(video_path, 0, timestamp, max_width, image_format, quality)

    def fetch_frames_batch(
        self,
        video_path: str,
        timestamps: Sequence[float],
        max_width: int = MAX_FRAME_WIDTH,
        image_format: str = "jpeg",
        quality: int = DEFAULT_JPEG_QUALITY,
    ) -> BatchFrames:
        """Fetch up to ``MAX_BATCH_FRAMES`` frames; extra timestamps are dropped, not queued."""
        _validate_image_options(max_width, image_format, quality, "get_frames_batch")
        requested = list(timestamps or [])
        if not requested:
            raise InvalidArgument("timestamps must contain at least one value.", operation="get_frames_batch")

        selected = requested[:MAX_BATCH_FRAMES]
        dropped = len(requested) - len(selected)
        if dropped:
            logger.warning(
                "Limited batch from {} to {} frames for context management", len(requested), len(selected)
            )

        profile = self.get_metadata(video_path, operation="get_frames_batch")
        for timestamp in selected:
            self._check_timestamp(profile, video_path, timestamp, "get_frames_batch")

        with ThreadPoolExecutor(max_workers=len(selected)) as executor:
            frames = list(
                executor.map(
                    lambda item: self._extract_frame(video_path, item[0], item[1], max_width, image_format, quality),
                    enumerate(selected),
                )
            )

        return BatchFrames(
            frames=frames,
            requested_count=len(requested),
            fulfilled_count=len(frames),
            dropped_count=dropped,
        )

    def fetch_audio(
        self,
        video_path: str,
        audio_format: str = DEFAULT_AUDIO_FORMAT,
        bitrate: str = DEFAULT_AUDIO_BITRATE,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
    ) -> AudioArtifact:
        operation = "extract_audio"
        if audio_format not in AUDIO_FORMATS:
            raise InvalidArgument(f"format must be one of: {', '.join(AUDIO_FORMATS)}.", operation=operation)
        if bitrate not in AUDIO_BITRATES:
            raise InvalidArgument(f"bitrate must be one of: {', '.join(AUDIO_BITRATES)}.", operation=operation)
        if start_time is not None and start_time < 0:
            raise InvalidArgument("startTime must be greater than or equal to 0.", operation=operation)
        if end_time is not None:
            if end_time <= (start_time or 0.0):
                raise InvalidArgument("endTime must be greater than startTime.", operation=operation)
            if start_time is None:
                start_time = 0.0

        profile = self.get_metadata(video_path, operation=operation)
        if not profile.has_audio:
            raise NoAudioTrack("Video does not have an audio track", operation=operation, video_path=video_path)

        audio_path = self.audio_extractor.extract_segment(video_path, audio_format, bitrate, start_time, end_time)
        segment_end = end_time
        if start_time is not None and segment_end is None:
            segment_end = profile.duration

        return AudioArtifact(
            audio_path=audio_path,
            format=audio_format,
            bitrate=bitrate,
            start_time=start_time,
            end_time=segment_end,
        )

    def full_analysis(
        self,
        video_path: str,
        max_frames: int = DEFAULT_FULL_ANALYSIS_FRAMES,
        extract_audio: bool = True,
        frame_interval: Optional[float] = None,
    ) -> FullAnalysis:
        """Eagerly decode a capped set of frames and optionally the audio track.

        Audio failures are recorded on the result; frame failures propagate.
        """
        operation = "analyze_video_full"
        _require_positive("max_frames", max_frames, operation)
        if frame_interval is not None:
            _require_positive("frame_interval", frame_interval, operation)

        profile = self.get_metadata(video_path, operation=operation)
        summary = summarize(profile)

        effective_max_frames = min(max_frames, MAX_FULL_ANALYSIS_FRAMES)
        interval = frame_interval or max(1, math.floor(profile.duration / effective_max_frames))
        frame_total = min(effective_max_frames, math.floor(profile.duration / interval))
        timestamps = [float(i * interval) for i in range(frame_total)]

        estimate = estimate_analysis_cost(profile.width, profile.height, len(timestamps))
        # The warning is judged on what the caller asked for, before capping.
        requested_estimate = estimate_analysis_cost(profile.width, profile.height, max_frames)

        frames: List[FrameArtifact] = []
        if timestamps:
            logger.info("Full analysis extracting {} frame(s) from {}", len(timestamps), video_path)
            images = self.decoder.decode_frames(video_path, timestamps)
            frames = [
                self._render_frame(image, index, timestamp, MAX_FRAME_WIDTH, "jpeg", DEFAULT_JPEG_QUALITY)
                for index, (timestamp, image) in enumerate(zip(timestamps, images))
            ]

        audio: Optional[AudioArtifact] = None
        audio_error: Optional[str] = None
        if extract_audio and profile.has_audio:
            try:
                audio_path = self.audio_extractor.extract_segment(
                    video_path, DEFAULT_AUDIO_FORMAT, DEFAULT_AUDIO_BITRATE
                )
                audio = AudioArtifact(
                    audio_path=audio_path, format=DEFAULT_AUDIO_FORMAT, bitrate=DEFAULT_AUDIO_BITRATE
                )
            except VideoReaderError as exc:
                audio_error = str(exc)
                logger.warning("Audio extraction failed during full analysis of {}: {}", video_path, exc)

        return FullAnalysis(
            profile=profile,
            summary=summary,
            frames=frames,
            requested_max_frames=max_frames,
            effective_max_frames=effective_max_frames,
            frame_interval=float(interval),
            estimate=estimate,
            requested_estimate=requested_estimate,
            context_warning=requested_estimate.warning,
            audio=audio,
            audio_error=audio_error,
        )

    def cleanup_audio(self) -> int:
        """Delete every extracted audio file; returns how many were removed."""
        output_dir = getattr(self.audio_extractor, "output_dir", None)
        if not output_dir or not os.path.isdir(output_dir):
            return 0
        removed = len([name for name in os.listdir(output_dir) if name.startswith("audio-")])
        shutil.rmtree(output_dir, ignore_errors=True)
        logger.info("Removed {} extracted audio file(s) from {}", removed, output_dir)
        return removed
