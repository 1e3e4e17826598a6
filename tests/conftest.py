import os
from typing import List, Optional

import numpy as np
import pytest

from video_reader.errors import DecodeError, EncodeError
from video_reader.media import OpenCVImageCodec
from video_reader.models import VideoTechnicalProfile
from video_reader.planner import FrameReferenceCache
from video_reader.processor import VideoProcessor


def make_profile(**overrides) -> VideoTechnicalProfile:
    values = {
        "duration": 120.0,
        "width": 1920,
        "height": 1080,
        "fps": 30.0,
        "codec": "h264",
        "format": "mov,mp4,m4a,3gp,3g2,mj2",
        "bitrate": 4_500_000,
        "has_audio": True,
        "audio_codec": "aac",
        "file_size": 1024,
    }
    values.update(overrides)
    return VideoTechnicalProfile(**values)


class FakeProber:
    def __init__(self, profile: VideoTechnicalProfile) -> None:
        self.profile = profile
        self.calls: List[str] = []

    def probe(self, video_path: str) -> VideoTechnicalProfile:
        self.calls.append(video_path)
        return self.profile


class FakeDecoder:
    """Returns blank frames of a fixed size and records every timestamp asked for."""

    def __init__(self, width: int = 1920, height: int = 1080, fail_at: Optional[float] = None) -> None:
        self.width = width
        self.height = height
        self.fail_at = fail_at
        self.calls: List[float] = []

    def decode_frame_at(self, video_path: str, timestamp: float):
        self.calls.append(timestamp)
        if self.fail_at is not None and timestamp == self.fail_at:
            raise DecodeError("Decoder returned no frame", timestamp=timestamp, operation="decode", video_path=video_path)
        return np.zeros((self.height, self.width, 3), dtype=np.uint8)

    def decode_frames(self, video_path: str, timestamps):
        return [self.decode_frame_at(video_path, timestamp) for timestamp in timestamps]


class FakeAudioExtractor:
    def __init__(self, output_dir: str, fail: bool = False) -> None:
        self.output_dir = output_dir
        self.fail = fail
        self.calls: List[tuple] = []

    def extract_segment(self, video_path, audio_format, bitrate, start=None, end=None) -> str:
        self.calls.append((video_path, audio_format, bitrate, start, end))
        if self.fail:
            raise EncodeError("Failed to extract audio: boom", operation="extract_audio", video_path=video_path)
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, f"audio-{len(self.calls)}.{audio_format}")
        with open(path, "wb") as out:
            out.write(b"ID3")
        return path


class FakeSceneDetector:
    def __init__(self, boundaries=None, status: str = "ok", error: Optional[str] = None) -> None:
        self.boundaries = boundaries
        self.status = status
        self.error = error
        self.calls: List[str] = []

    def detect(self, video_path, duration_sec, fps):
        self.calls.append(video_path)
        return self.boundaries, self.status, self.error


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return str(path)


@pytest.fixture
def audio_dir(tmp_path):
    return str(tmp_path / "audio-out")


@pytest.fixture
def build_processor(audio_dir):
    def _build(profile=None, decoder=None, audio_fail=False, scene_detector=None):
        return VideoProcessor(
            prober=FakeProber(profile or make_profile()),
            decoder=decoder or FakeDecoder(),
            codec=OpenCVImageCodec(),
            audio_extractor=FakeAudioExtractor(audio_dir, fail=audio_fail),
            scene_detector=scene_detector or FakeSceneDetector(),
            frame_cache=FrameReferenceCache(),
        )

    return _build


@pytest.fixture
def anyio_backend():
    return "asyncio"
