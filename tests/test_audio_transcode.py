"""Tests for WAV to OGG post-processing."""
from unittest.mock import AsyncMock, patch

import pytest

from asset_forge.errors import TranscodeError
from asset_forge.providers import audio
from asset_forge.providers.audio import is_wav, transcode_audio


@pytest.mark.parametrize(
    "content_type, expected",
    [("audio/wav", True), ("audio/x-wav", True), ("Audio/Wave", True), ("audio/ogg", False), ("", False)],
)
def test_is_wav(content_type, expected):
    """WAV detection by content type."""
    assert is_wav(content_type) is expected


@pytest.mark.anyio
async def test_non_wav_passes_through():
    """Non-WAV audio is returned unchanged."""
    with patch.object(audio, "convert_wav_to_ogg", AsyncMock()) as convert:
        assert await transcode_audio(b"OggS....", "audio/ogg") == (b"OggS....", "audio/ogg")
    convert.assert_not_awaited()


@pytest.mark.anyio
async def test_riff_bytes_are_transcoded_even_when_mislabelled():
    """RIFF bytes are transcoded even when the content type says otherwise."""
    with patch.object(audio, "convert_wav_to_ogg", AsyncMock(return_value=b"OggS")) as convert:
        assert await transcode_audio(b"RIFF\x00\x00WAVE", "application/octet-stream") == (b"OggS", "audio/ogg")
    convert.assert_awaited_once_with(b"RIFF\x00\x00WAVE")


@pytest.mark.anyio
async def test_missing_ffmpeg_raises_transcode_error(monkeypatch):
    """A missing ffmpeg binary surfaces as TranscodeError."""
    monkeypatch.setattr(audio, "FFMPEG", "ffmpeg-not-installed-anywhere")
    with pytest.raises(TranscodeError, match="ffmpeg is not available"):
        await audio.convert_wav_to_ogg(b"RIFF\x00\x00WAVE")
