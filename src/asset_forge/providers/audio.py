"""WAV to OGG transcoding through the system ffmpeg binary."""

import asyncio
import logging
import tempfile
from pathlib import Path

from ..errors import TranscodeError

logger = logging.getLogger(__name__)

FFMPEG = "ffmpeg"


async def convert_wav_to_ogg(wav: bytes) -> bytes:
    with tempfile.TemporaryDirectory(prefix="asset-forge-") as tmp:
        src = Path(tmp) / "input.wav"
        dst = Path(tmp) / "output.ogg"
        src.write_bytes(wav)
        try:
            proc = await asyncio.create_subprocess_exec(
                FFMPEG, "-y", "-i", str(src), "-c:a", "libvorbis", str(dst),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TranscodeError(f"ffmpeg is not available: {exc}") from exc
        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            tail = stderr.decode(errors="replace").strip().splitlines()[-1:] if stderr else []
            raise TranscodeError(f"ffmpeg exited with code {proc.returncode}: {' '.join(tail)}")
        return dst.read_bytes()


def is_wav(content_type: str) -> bool:
    return any(token in (content_type or "").lower() for token in ("audio/wav", "audio/x-wav", "audio/wave"))


async def transcode_audio(data: bytes, content_type: str) -> tuple[bytes, str]:
    """Post-processing hook for audio results: WAV becomes OGG, others pass."""
    # Providers sometimes label WAV as octet-stream
    if not is_wav(content_type) and data[:4] != b"RIFF":
        return data, content_type
    ogg = await convert_wav_to_ogg(data)
    logger.info("Transcoded %d bytes of WAV to %d bytes of OGG", len(data), len(ogg))
    return ogg, "audio/ogg"
