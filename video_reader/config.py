from __future__ import annotations

import os
import tempfile
from typing import Tuple

SERVER_NAME = "Video Reader"
SERVER_VERSION = "progressive-v2"

# Token cost model. Approximate by construction; calibrate here, not in the formulas.
MAX_FRAME_WIDTH = 1920
COMPRESSED_BYTES_PER_PIXEL = 0.1
BASE64_EXPANSION_FACTOR = 1.33
TOKENS_PER_CHAR = 0.25
BASE_METADATA_TOKENS = 150
WARNING_TOKEN_THRESHOLD = 50_000

# Frame planning and fetching.
DEFAULT_FRAME_COUNT = 10
MAX_BATCH_FRAMES = 5
DEFAULT_FULL_ANALYSIS_FRAMES = 8
MAX_FULL_ANALYSIS_FRAMES = 15
DEFAULT_JPEG_QUALITY = 80
IMAGE_FORMATS: Tuple[str, ...] = ("jpeg", "png")
IMAGE_MIME_TYPES = {"jpeg": "image/jpeg", "png": "image/png"}

# Audio extraction.
DEFAULT_AUDIO_FORMAT = "mp3"
DEFAULT_AUDIO_BITRATE = "128k"
AUDIO_FORMATS: Tuple[str, ...] = ("mp3", "wav")
AUDIO_BITRATES: Tuple[str, ...] = ("64k", "128k", "192k", "256k")

# Summarizer duration buckets (seconds) and their recommended frame counts.
SHORT_VIDEO_MAX_SEC = 30
MEDIUM_VIDEO_MAX_SEC = 300
SHORT_VIDEO_FRAMES = 10
MEDIUM_VIDEO_FRAMES = 15
LONG_VIDEO_FRAMES = 20

# Context hints.
LONG_VIDEO_HINT_SEC = 300
WARNING_HINT_PRIORITY = 10
SUGGESTION_HINT_PRIORITY = 8
INFO_HINT_PRIORITY = 5
ACTION_HINT_PRIORITY = 3

# Scene discovery.
SCENE_DETECT_TIMEOUT_SEC = 12.0
DEFAULT_MAX_SCENES = 20

TEMP_ROOT_DIR = os.path.join(tempfile.gettempdir(), "mcp-video-reader")
FFPROBE_BINARY = os.environ.get("VIDEO_READER_FFPROBE", "ffprobe")
FFMPEG_BINARY = os.environ.get("VIDEO_READER_FFMPEG", "ffmpeg")
LOG_LEVEL = os.environ.get("VIDEO_READER_LOG_LEVEL", "INFO")
