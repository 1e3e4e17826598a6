from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

HintAspect = Literal["duration", "resolution", "audio", "format"]
ContextHintKind = Literal["action", "warning", "info", "suggestion"]


class VideoTechnicalProfile(BaseModel):
    """Raw facts reported by the media prober. Immutable once read."""

    model_config = ConfigDict(frozen=True)

    duration: float = Field(ge=0)
    width: int
    height: int
    fps: float
    codec: str
    format: str
    bitrate: int
    has_audio: bool
    audio_codec: Optional[str] = None
    file_size: Optional[int] = None


class AnalysisHint(BaseModel):
    aspect: HintAspect
    recommendation: str
    parameters: Optional[Dict[str, Any]] = None


class MetadataSummary(BaseModel):
    duration_formatted: str
    resolution: str
    human_description: str
    analysis_hints: List[AnalysisHint] = Field(default_factory=list)


class FrameReference(BaseModel):
    """A planned sampling point. Carries no pixel data."""

    index: int = Field(ge=0)
    timestamp: float = Field(ge=0)
    timestamp_formatted: str
    resolution: str
    estimated_tokens: int


class FrameArtifact(FrameReference):
    """A fetched frame: the reference plus its encoded payload."""

    data: bytes
    mime_type: str
    format: str

    def describe(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"data"})


class ContextHint(BaseModel):
    kind: ContextHintKind
    message: str
    suggested_tool: Optional[str] = None
    priority: int


class AudioStatus(BaseModel):
    available: bool
    duration_seconds: Optional[float] = None
    codec: Optional[str] = None


class VideoOverview(BaseModel):
    video_path: str
    filename: str
    metadata: MetadataSummary
    available_frames: List[FrameReference] = Field(default_factory=list)
    audio: AudioStatus
    context_hints: List[ContextHint] = Field(default_factory=list)


class TokenEstimate(BaseModel):
    metadata: int
    per_frame: int
    frame_count: int
    total_for_frames: int
    total: int
    warning: Optional[str] = None


class BatchFrames(BaseModel):
    """Result of a capped batch fetch; frames keep the caller's order."""

    frames: List[FrameArtifact] = Field(default_factory=list)
    requested_count: int
    fulfilled_count: int
    dropped_count: int

    @property
    def limited(self) -> bool:
        return self.dropped_count > 0


class AudioArtifact(BaseModel):
    audio_path: str
    format: str
    bitrate: str
    start_time: Optional[float] = None
    end_time: Optional[float] = None


class SceneInfo(BaseModel):
    index: int
    start_time: float
    end_time: float
    duration: float
    key_frame_timestamp: float
    key_frame_formatted: str
    estimated_tokens: int


class SceneScan(BaseModel):
    status: Literal["ok", "timeout", "error", "no_scenes"]
    scenes: List[SceneInfo] = Field(default_factory=list)
    total_detected: int = 0
    error: Optional[str] = None


class FullAnalysis(BaseModel):
    """Eager aggregate: every planned frame decoded, audio optional."""

    profile: VideoTechnicalProfile
    summary: MetadataSummary
    frames: List[FrameArtifact] = Field(default_factory=list)
    requested_max_frames: int
    effective_max_frames: int
    frame_interval: float
    estimate: TokenEstimate
    requested_estimate: TokenEstimate
    context_warning: Optional[str] = None
    audio: Optional[AudioArtifact] = None
    audio_error: Optional[str] = None
