import os
import subprocess

import numpy as np
import pytest

from video_reader import media
from video_reader.errors import EncodeError, NoAudioTrack, UnreadableMedia
from video_reader.media import (
    FFmpegAudioExtractor,
    FFprobeProber,
    OpenCVImageCodec,
    profile_from_probe,
)

PROBE_PAYLOAD = {
    "streams": [
        {"codec_type": "video", "codec_name": "h264", "width": 1920, "height": 1080, "r_frame_rate": "30000/1001"},
        {"codec_type": "audio", "codec_name": "aac"},
    ],
    "format": {"duration": "61.5", "format_name": "mov,mp4,m4a,3gp,3g2,mj2", "bit_rate": "2500000", "size": "4096"},
}


def test_profile_from_probe(video_file):
    profile = profile_from_probe(PROBE_PAYLOAD, video_file)
    assert profile.duration == 61.5
    assert (profile.width, profile.height) == (1920, 1080)
    assert profile.fps == pytest.approx(29.97, abs=0.01)
    assert profile.codec == "h264"
    assert profile.bitrate == 2_500_000
    assert profile.has_audio is True
    assert profile.audio_codec == "aac"
    assert profile.file_size == os.path.getsize(video_file)


def test_profile_from_probe_falls_back_to_container_size(tmp_path):
    profile = profile_from_probe(PROBE_PAYLOAD, str(tmp_path / "gone.mp4"))
    assert profile.file_size == 4096


def test_profile_without_audio_or_fields(video_file):
    payload = {"streams": [{"codec_type": "video", "r_frame_rate": "bogus"}], "format": {}}
    profile = profile_from_probe(payload, video_file)
    assert profile.duration == 0.0
    assert profile.fps == 0.0
    assert profile.codec == "unknown"
    assert profile.format == "unknown"
    assert profile.has_audio is False
    assert profile.audio_codec is None


def test_profile_requires_video_stream(video_file):
    payload = {"streams": [{"codec_type": "audio"}], "format": {"duration": "3"}}
    with pytest.raises(UnreadableMedia, match="No video stream"):
        profile_from_probe(payload, video_file)


def test_prober_wraps_process_failure(monkeypatch, video_file):
    def _run(command, **kwargs):
        raise subprocess.CalledProcessError(1, command, stderr="Invalid data found when processing input")

    monkeypatch.setattr(media.subprocess, "run", _run)
    with pytest.raises(UnreadableMedia, match="Invalid data found"):
        FFprobeProber().probe(video_file)


def test_prober_wraps_missing_binary(monkeypatch, video_file):
    def _run(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(media.subprocess, "run", _run)
    with pytest.raises(UnreadableMedia, match="ffprobe binary not found"):
        FFprobeProber(binary="ffprobe-missing").probe(video_file)


def test_codec_resize_only_downscales():
    codec = OpenCVImageCodec()
    wide = np.zeros((1080, 1920, 3), dtype=np.uint8)
    narrow = np.zeros((240, 320, 3), dtype=np.uint8)

    assert codec.dimensions(codec.resize(wide, 640)) == (640, 360)
    assert codec.resize(narrow, 640) is narrow


def test_codec_encodes_jpeg_and_png():
    codec = OpenCVImageCodec()
    image = np.full((90, 160, 3), 127, dtype=np.uint8)

    jpeg, jpeg_mime = codec.encode(image, "jpeg", 80)
    png, png_mime = codec.encode(image, "png")

    assert jpeg.startswith(b"\xff\xd8") and jpeg_mime == "image/jpeg"
    assert png.startswith(b"\x89PNG") and png_mime == "image/png"


def test_codec_rejects_unknown_format():
    with pytest.raises(EncodeError):
        OpenCVImageCodec().encode(np.zeros((2, 2, 3), dtype=np.uint8), "gif")


def _failing_ffmpeg(stderr):
    def _run(command, **kwargs):
        with open(command[-1], "wb") as partial:
            partial.write(b"partial")
        raise subprocess.CalledProcessError(1, command, stderr=stderr)

    return _run


def test_audio_failure_removes_partial_output(monkeypatch, tmp_path, video_file):
    output_dir = tmp_path / "audio"
    monkeypatch.setattr(media.subprocess, "run", _failing_ffmpeg("Conversion failed!"))

    with pytest.raises(EncodeError, match="Conversion failed"):
        FFmpegAudioExtractor(output_dir=str(output_dir)).extract_segment(video_file, "mp3", "128k")

    assert os.listdir(output_dir) == []


def test_audio_without_stream_maps_to_no_audio_track(monkeypatch, tmp_path, video_file):
    monkeypatch.setattr(
        media.subprocess, "run", _failing_ffmpeg("Output file #0 does not contain any stream")
    )
    with pytest.raises(NoAudioTrack):
        FFmpegAudioExtractor(output_dir=str(tmp_path)).extract_segment(video_file, "wav", "128k")


def test_audio_segment_command(monkeypatch, tmp_path, video_file):
    captured = {}

    def _run(command, **kwargs):
        captured["command"] = command
        return subprocess.CompletedProcess(command, 0)

    monkeypatch.setattr(media.subprocess, "run", _run)
    path = FFmpegAudioExtractor(output_dir=str(tmp_path)).extract_segment(video_file, "mp3", "64k", 5.0, 15.0)

    command = captured["command"]
    assert command[command.index("-ss") + 1] == "5.0"
    assert command[command.index("-t") + 1] == "10.0"
    assert command[command.index("-b:a") + 1] == "64k"
    assert command[-1] == path
    assert path.endswith(".mp3")


def test_prober_wraps_unexecutable_binary(monkeypatch, video_file):
    def _run(command, **kwargs):
        raise PermissionError(13, "Permission denied", command[0])

    monkeypatch.setattr(media.subprocess, "run", _run)
    with pytest.raises(UnreadableMedia, match="Could not run ffprobe") as excinfo:
        FFprobeProber(binary="/opt/ffprobe").probe(video_file)
    assert excinfo.value.video_path == video_file


def test_audio_wraps_unexecutable_binary(monkeypatch, tmp_path, video_file):
    def _run(command, **kwargs):
        with open(command[-1], "wb") as partial:
            partial.write(b"partial")
        raise PermissionError(13, "Permission denied", command[0])

    output_dir = tmp_path / "audio"
    monkeypatch.setattr(media.subprocess, "run", _run)
    with pytest.raises(EncodeError, match="Permission denied"):
        FFmpegAudioExtractor(output_dir=str(output_dir)).extract_segment(video_file, "mp3", "128k")
    assert os.listdir(output_dir) == []


def test_audio_wraps_unwritable_output_dir(monkeypatch, tmp_path, video_file):
    def _makedirs(path, exist_ok=False):
        raise PermissionError(13, "Permission denied", path)

    monkeypatch.setattr(media.os, "makedirs", _makedirs)
    with pytest.raises(EncodeError, match="Permission denied"):
        FFmpegAudioExtractor(output_dir=str(tmp_path / "locked")).extract_segment(video_file, "wav", "128k")


def test_codec_wraps_resize_failure(monkeypatch):
    def _resize(*args, **kwargs):
        raise media.cv2.error("resize exploded")

    monkeypatch.setattr(media.cv2, "resize", _resize)
    with pytest.raises(EncodeError, match="resize exploded"):
        OpenCVImageCodec().resize(np.zeros((1080, 1920, 3), dtype=np.uint8), 640)
