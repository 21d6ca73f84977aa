"""Audio payloads and their ingestion."""

import io
import logging
from dataclasses import dataclass

import numpy as np
from faster_whisper import decode_audio

from ..exceptions import InvalidInput

logger = logging.getLogger(__name__)

# Raw 16-bit signed PCM, network byte order (RFC 2586)
PCM_MEDIA_TYPE = "audio/l16"


@dataclass(frozen=True)
class AudioSource:
    """One captured or uploaded clip."""
    data: bytes
    media_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def parse_media_type(media_type: str) -> tuple[str, dict[str, str]]:
    """Split ``type/subtype; key=value`` into a lower-cased type and params."""
    parts = [part.strip() for part in media_type.split(";")]
    params = {}
    for part in parts[1:]:
        if "=" in part:
            key, value = part.split("=", 1)
            params[key.strip().lower()] = value.strip().strip('"')
    return parts[0].lower(), params


def pcm_media_type(sample_rate: int, channels: int) -> str:
    return f"audio/L16;rate={sample_rate};channels={channels}"


def ingest_upload(data: bytes, media_type: str) -> AudioSource:
    """
    Validate an uploaded payload and wrap it as an AudioSource.

    Args:
        data: Raw file bytes
        media_type: Declared media type of the file

    Returns:
        The new AudioSource

    Raises:
        InvalidInput: If the declared type is not an audio type
    """
    mime, _ = parse_media_type(media_type or "")
    if not mime.startswith("audio/"):
        logger.warning(f"Rejected upload with media type '{media_type}'")
        raise InvalidInput(media_type)

    logger.info(f"Upload accepted: {len(data)} bytes ({media_type})")
    return AudioSource(data=bytes(data), media_type=media_type)


def _resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Linear resampling, good enough for speech playback."""
    if source_rate == target_rate or len(samples) == 0:
        return samples
    duration = len(samples) / source_rate
    target_len = int(round(duration * target_rate))
    source_times = np.arange(len(samples)) / source_rate
    target_times = np.arange(target_len) / target_rate
    return np.interp(target_times, source_times, samples).astype(np.float32)


def decode_samples(source: AudioSource, sample_rate: int) -> np.ndarray:
    """
    Decode an AudioSource to mono float32 samples at ``sample_rate``.

    Raw PCM is decoded directly; any other container goes through PyAV
    via faster-whisper.
    """
    mime, params = parse_media_type(source.media_type)

    if mime == PCM_MEDIA_TYPE:
        rate = int(params.get("rate", sample_rate))
        channels = int(params.get("channels", 1))

        data = source.data[: len(source.data) - len(source.data) % 2]
        pcm = np.frombuffer(data, dtype=">i2").astype(np.float32) / 32768.0
        if channels > 1:
            usable = len(pcm) - len(pcm) % channels
            pcm = pcm[:usable].reshape(-1, channels).mean(axis=1)
        return _resample(pcm, rate, sample_rate)

    return decode_audio(io.BytesIO(source.data), sampling_rate=sample_rate)
