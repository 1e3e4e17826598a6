from .errors import (
    DecodeError,
    EncodeError,
    ExtractionFailure,
    InvalidArgument,
    MissingFile,
    NoAudioTrack,
    SeekOutOfRange,
    UnreadableMedia,
    VideoReaderError,
)
from .planner import FrameReferenceCache, plan_frames
from .processor import VideoProcessor

__all__ = [
    "DecodeError",
    "EncodeError",
    "ExtractionFailure",
    "FrameReferenceCache",
    "InvalidArgument",
    "MissingFile",
    "NoAudioTrack",
    "SeekOutOfRange",
    "UnreadableMedia",
    "VideoProcessor",
    "VideoReaderError",
    "plan_frames",
]
