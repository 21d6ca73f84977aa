"""Microphone capture and clip recording."""

import asyncio
import logging
from typing import Callable, Optional

import numpy as np
import sounddevice as sd

from ..config import AudioConfig
from ..exceptions import CaptureUnavailable
from .capabilities import CaptureCapability, CaptureConstraints, CaptureStream
from .source import AudioSource, pcm_media_type

logger = logging.getLogger(__name__)


def resolve_device(device: str) -> int | str | None:
    """Map a configured device name to what sounddevice expects."""
    if device == "default":
        return None
    try:
        return int(device)
    except ValueError:
        return device


class SoundDeviceStream:
    """An open sounddevice input stream."""

    def __init__(self, stream: sd.InputStream, media_type: str):
        self._stream = stream
        self.media_type = media_type

    def _close(self) -> None:
        self._stream.stop()
        self._stream.close()

    async def stop(self) -> None:
        await asyncio.to_thread(self._close)


class SoundDeviceCapture:
    """Capture capability backed by a PortAudio input stream.

    Fragments are raw 16-bit PCM in network byte order, delivered on the
    event loop that opened the stream.
    """

    async def open(
        self,
        constraints: CaptureConstraints,
        on_fragment: Callable[[bytes], None],
    ) -> SoundDeviceStream:
        loop = asyncio.get_running_loop()

        def _audio_callback(
            indata: np.ndarray,
            frames: int,
            time_info: dict,
            status: sd.CallbackFlags,
        ) -> None:
            if status:
                logger.warning(f"Audio callback status: {status}")
            fragment = indata.astype(">i2").tobytes()
            loop.call_soon_threadsafe(on_fragment, fragment)

        logger.info(
            f"Opening capture device: {constraints.sample_rate}Hz, {constraints.channels}ch"
        )
        stream = await asyncio.to_thread(self._start_stream, constraints, _audio_callback)
        return SoundDeviceStream(
            stream, pcm_media_type(constraints.sample_rate, constraints.channels)
        )

    @staticmethod
    def _start_stream(constraints: CaptureConstraints, callback) -> sd.InputStream:
        stream = sd.InputStream(
            device=resolve_device(constraints.device),
            samplerate=constraints.sample_rate,
            channels=constraints.channels,
            dtype="int16",
            blocksize=constraints.blocksize,
            callback=callback,
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        return stream

    @staticmethod
    def list_devices() -> list[dict]:
        """List available audio input devices."""
        devices = []
        for i, device in enumerate(sd.query_devices()):
            if device["max_input_channels"] > 0:
                devices.append({
                    "id": i,
                    "name": device["name"],
                    "channels": device["max_input_channels"],
                    "sample_rate": device["default_samplerate"],
                })
        return devices


class Recorder:
    """Records one clip from a capture capability between begin() and end()."""

    def __init__(self, capture: CaptureCapability, config: AudioConfig):
        self.capture = capture
        self.constraints = CaptureConstraints(
            device=config.device,
            sample_rate=config.sample_rate,
            channels=config.channels,
            blocksize=int(config.sample_rate * config.chunk_duration_ms / 1000),
        )

        self._stream: Optional[CaptureStream] = None
        self._recording = False
        self._fragments: list[bytes] = []

    def _on_fragment(self, fragment: bytes) -> None:
        if not self._recording:
            return
        if fragment:
            self._fragments.append(fragment)
            logger.debug(f"Buffered fragment: {len(fragment)} bytes")

    async def begin(self) -> None:
        """
        Acquire the capture device and start buffering.

        Raises:
            CaptureUnavailable: If the device is denied or missing
        """
        if self._recording:
            logger.warning("Recorder already recording")
            return

        self._fragments = []
        self._recording = True
        try:
            self._stream = await self.capture.open(self.constraints, self._on_fragment)
        except Exception as e:
            self._recording = False
            self._fragments = []
            logger.error(f"Capture unavailable: {e}")
            raise CaptureUnavailable(str(e), cause=e) from e

        logger.info("Recording started")

    async def end(self) -> Optional[AudioSource]:
        """Stop capture and return the recorded clip, or None if not recording."""
        if not self._recording or self._stream is None:
            return None

        stream = self._stream
        try:
            await stream.stop()
        except Exception as e:
            logger.error(f"Error releasing capture device: {e}")
        finally:
            self._recording = False
            self._stream = None

        source = AudioSource(data=b"".join(self._fragments), media_type=stream.media_type)
        self._fragments = []

        logger.info(f"Recording stopped: {source.size} bytes")
        return source

    def is_recording(self) -> bool:
        """Check if a recording is in progress."""
        return self._recording
