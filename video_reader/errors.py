from __future__ import annotations

from typing import Optional


class VideoReaderError(Exception):
    """Base class carrying the operation and video path that failed."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        video_path: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.video_path = video_path

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation} failed: {self.message}"
        return self.message


class InvalidArgument(VideoReaderError):
    pass


class MissingFile(VideoReaderError):
    pass


class UnreadableMedia(VideoReaderError):
    pass


class ExtractionFailure(VideoReaderError):
    """Frame extraction failed at a specific timestamp."""

    def __init__(
        self,
        message: str,
        timestamp: float,
        operation: Optional[str] = None,
        video_path: Optional[str] = None,
    ) -> None:
        super().__init__(message, operation=operation, video_path=video_path)
        self.timestamp = timestamp

    def __str__(self) -> str:
        return f"{super().__str__()} (timestamp {self.timestamp}s)"


class SeekOutOfRange(ExtractionFailure):
    pass


class DecodeError(ExtractionFailure):
    pass


class NoAudioTrack(VideoReaderError):
    pass


class EncodeError(VideoReaderError):
    pass
