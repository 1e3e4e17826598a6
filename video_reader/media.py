from __future__ import annotations

import json
import os
import subprocess
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import cv2
from loguru import logger

from .config import (
    DEFAULT_JPEG_QUALITY,
    FFMPEG_BINARY,
    FFPROBE_BINARY,
    IMAGE_MIME_TYPES,
    TEMP_ROOT_DIR,
)
from .errors import DecodeError, EncodeError, NoAudioTrack, UnreadableMedia
from .labels import parse_frame_rate, round_half_up
from .models import VideoTechnicalProfile


def _first_stream(streams: List[Dict[str, Any]], codec_type: str) -> Optional[Dict[str, Any]]:
    return next((stream for stream in streams if stream.get("codec_type") == codec_type), None)


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_int(value: Any) -> int:
    return int(_as_float(value))


class FFprobeProber:
    def __init__(self, binary: str = FFPROBE_BINARY) -> None:
        self.binary = binary

    def probe(self, video_path: str) -> VideoTechnicalProfile:
        command = [
            self.binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format", "-show_streams",
            video_path,
        ]
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=True)
            payload = json.loads(result.stdout or "{}")
        except FileNotFoundError as exc:
            raise UnreadableMedia(
                f"ffprobe binary not found ({self.binary}): {exc}",
                operation="probe",
                video_path=video_path,
            ) from exc
        except OSError as exc:
            raise UnreadableMedia(
                f"Could not run ffprobe ({self.binary}): {exc}",
                operation="probe",
                video_path=video_path,
            ) from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise UnreadableMedia(
                f"Failed to read video metadata: {detail}",
                operation="probe",
                video_path=video_path,
            ) from exc
        except json.JSONDecodeError as exc:
            raise UnreadableMedia(
                f"Unparseable ffprobe output: {exc}",
                operation="probe",
                video_path=video_path,
            ) from exc

        return profile_from_probe(payload, video_path)


def profile_from_probe(payload: Dict[str, Any], video_path: str) -> VideoTechnicalProfile:
    streams = payload.get("streams") or []
    video_stream = _first_stream(streams, "video")
    audio_stream = _first_stream(streams, "audio")
    if video_stream is None:
        raise UnreadableMedia("No video stream found", operation="probe", video_path=video_path)

    container = payload.get("format") or {}

    file_size: Optional[int] = None
    try:
        file_size = os.path.getsize(video_path)
    except OSError:
        size_hint = container.get("size")
        file_size = _as_int(size_hint) if size_hint is not None else None

    return VideoTechnicalProfile(
        duration=max(0.0, _as_float(container.get("duration"))),
        width=_as_int(video_stream.get("width")),
        height=_as_int(video_stream.get("height")),
        fps=parse_frame_rate(video_stream.get("r_frame_rate")),
        codec=str(video_stream.get("codec_name") or "unknown"),
        format=str(container.get("format_name") or "unknown"),
        bitrate=_as_int(container.get("bit_rate")),
        has_audio=audio_stream is not None,
        audio_codec=audio_stream.get("codec_name") if audio_stream else None,
        file_size=file_size,
    )


def open_capture(video_path: str) -> Tuple[cv2.VideoCapture, float]:
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        cap.release()
        raise UnreadableMedia("Unable to open video file.", operation="decode", video_path=video_path)

    fps = cap.get(cv2.CAP_PROP_FPS)
    if not fps or fps <= 1e-3:
        fps = 30.0
    return cap, fps


def read_frame_at(cap: cv2.VideoCapture, timestamp_sec: float, fps: float):
    if timestamp_sec < 0:
        timestamp_sec = 0.0

    cap.set(cv2.CAP_PROP_POS_MSEC, timestamp_sec * 1000.0)
    ok, frame = cap.read()
    if ok:
        return frame

    frame_index = max(0, int(timestamp_sec * fps))
    cap.set(cv2.CAP_PROP_POS_FRAMES, frame_index)
    ok, frame = cap.read()
    if ok:
        return frame

    # Some codecs fail exactly at the tail; probe a few previous frame indices.
    for fallback_delta in (1, 2, 3, 5, 8, 13):
        fallback_index = frame_index - fallback_delta
        if fallback_index < 0:
            break
        cap.set(cv2.CAP_PROP_POS_FRAMES, fallback_index)
        ok, frame = cap.read()
        if ok:
            return frame

    return None


class OpenCVFrameDecoder:
    @contextmanager
    def capture(self, video_path: str) -> Iterator[Tuple[cv2.VideoCapture, float]]:
        cap, fps = open_capture(video_path)
        try:
            yield cap, fps
        finally:
            cap.release()

    def decode_frame_at(self, video_path: str, timestamp: float):
        return self.decode_frames(video_path, [timestamp])[0]

    def decode_frames(self, video_path: str, timestamps: List[float]) -> List[Any]:
        """Decode several frames through one capture; order follows ``timestamps``."""
        frames: List[Any] = []
        with self.capture(video_path) as (cap, fps):
            for timestamp in timestamps:
                frame = read_frame_at(cap, timestamp, fps)
                if frame is None:
                    raise DecodeError(
                        "Decoder returned no frame",
                        timestamp=timestamp,
                        operation="decode",
                        video_path=video_path,
                    )
                frames.append(frame)
        return frames


class OpenCVImageCodec:
    def dimensions(self, image) -> Tuple[int, int]:
        height, width = image.shape[:2]
        return int(width), int(height)

    def resize(self, image, max_width: int):
        """Downscale to ``max_width`` keeping aspect ratio; narrower images pass through."""
        width, height = self.dimensions(image)
        if width <= 0 or height <= 0:
            raise EncodeError("Decoded frame has no pixels", operation="resize")
        if width <= max_width:
            return image

        scale = max_width / width
        new_height = max(1, round_half_up(height * scale))
        try:
            return cv2.resize(image, (max_width, new_height), interpolation=cv2.INTER_AREA)
        except cv2.error as exc:
            raise EncodeError(f"Frame resize failed: {exc}", operation="resize") from exc

    def encode(self, image, image_format: str, quality: Optional[int] = None) -> Tuple[bytes, str]:
        if image_format == "jpeg":
            effective_quality = min(max(int(quality or DEFAULT_JPEG_QUALITY), 1), 100)
            params = [cv2.IMWRITE_JPEG_QUALITY, effective_quality, cv2.IMWRITE_JPEG_OPTIMIZE, 1]
            extension = ".jpg"
        elif image_format == "png":
            params = []
            extension = ".png"
        else:
            raise EncodeError(f"Unsupported image format: {image_format}", operation="encode")

        try:
            success, buffer = cv2.imencode(extension, image, params)
        except cv2.error as exc:
            raise EncodeError(f"Image encoding failed: {exc}", operation="encode") from exc
        if not success:
            raise EncodeError(f"Image encoding to {image_format} failed", operation="encode")
        return buffer.tobytes(), IMAGE_MIME_TYPES[image_format]


class FFmpegAudioExtractor:
    def __init__(self, output_dir: str = TEMP_ROOT_DIR, binary: str = FFMPEG_BINARY) -> None:
        self.output_dir = output_dir
        self.binary = binary

    def _output_path(self, audio_format: str) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        return os.path.join(self.output_dir, f"audio-{uuid.uuid4().hex[:12]}.{audio_format}")

    def extract_segment(
        self,
        video_path: str,
        audio_format: str,
        bitrate: str,
        start: Optional[float] = None,
        end: Optional[float] = None,
    ) -> str:
        output_path: Optional[str] = None
        try:
            output_path = self._output_path(audio_format)
            command = self._command(video_path, output_path, audio_format, bitrate, start, end)
            logger.info("Extracting {} audio from {} to {}", audio_format, video_path, output_path)
            subprocess.run(command, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True, check=True)
        except subprocess.CalledProcessError as exc:
            self._discard(output_path)
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            if "does not contain any stream" in detail or "matches no streams" in detail:
                raise NoAudioTrack(
                    "Video does not have an audio track",
                    operation="extract_audio",
                    video_path=video_path,
                ) from exc
            raise EncodeError(
                f"Failed to extract audio: {detail}",
                operation="extract_audio",
                video_path=video_path,
            ) from exc
        except FileNotFoundError as exc:
            self._discard(output_path)
            raise EncodeError(
                f"ffmpeg binary not found ({self.binary}): {exc}",
                operation="extract_audio",
                video_path=video_path,
            ) from exc
        except OSError as exc:
            self._discard(output_path)
            raise EncodeError(
                f"Could not write audio with {self.binary}: {exc}",
                operation="extract_audio",
                video_path=video_path,
            ) from exc

        return output_path

    def _command(
        self,
        video_path: str,
        output_path: str,
        audio_format: str,
        bitrate: str,
        start: Optional[float],
        end: Optional[float],
    ) -> List[str]:
        command = [self.binary, "-y", "-v", "error"]
        if start is not None:
            command += ["-ss", str(start)]
        command += ["-i", video_path, "-vn"]
        if start is not None and end is not None:
            command += ["-t", str(end - start)]
        if audio_format == "mp3":
            command += ["-acodec", "libmp3lame", "-b:a", bitrate]
        else:
            command += ["-acodec", "pcm_s16le"]
        command.append(output_path)
        return command

    @staticmethod
    def _discard(path: Optional[str]) -> None:
        if path and os.path.exists(path):
            os.remove(path)
