"""Audio playback through the default output device."""

import asyncio
import logging
from typing import Callable, Optional

import numpy as np
import sounddevice as sd

from .capture import resolve_device

logger = logging.getLogger(__name__)


class SoundDevicePlayback:
    """Playback capability backed by a PortAudio output stream."""

    def __init__(self, device: str = "default", blocksize: int = 1600):
        self.device = device
        self.blocksize = blocksize

    async def play(
        self,
        samples: np.ndarray,
        sample_rate: int,
        listener: Optional[Callable[[np.ndarray], None]] = None,
    ) -> None:
        """Play mono float32 samples; each played block is also handed to ``listener``."""
        if len(samples) == 0:
            return

        loop = asyncio.get_running_loop()
        finished = asyncio.Event()
        position = 0

        def _output_callback(
            outdata: np.ndarray,
            frames: int,
            time_info: dict,
            status: sd.CallbackFlags,
        ) -> None:
            nonlocal position
            if status:
                logger.warning(f"Playback callback status: {status}")

            block = samples[position:position + frames]
            position += len(block)
            outdata[:len(block), 0] = block
            outdata[len(block):] = 0

            if listener is not None and len(block):
                loop.call_soon_threadsafe(listener, block.copy())

            if len(block) < frames:
                raise sd.CallbackStop()

        def _finished() -> None:
            loop.call_soon_threadsafe(finished.set)

        logger.debug(f"Playing {len(samples) / sample_rate:.2f}s of audio")
        stream = await asyncio.to_thread(
            self._start_stream, sample_rate, _output_callback, _finished
        )
        try:
            await finished.wait()
        finally:
            await asyncio.to_thread(stream.close)

    def _start_stream(self, sample_rate: int, callback, finished_callback) -> sd.OutputStream:
        stream = sd.OutputStream(
            device=resolve_device(self.device),
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            blocksize=self.blocksize,
            callback=callback,
            finished_callback=finished_callback,
        )
        stream.start()
        return stream
