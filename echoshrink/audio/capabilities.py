"""Contracts for the platform services the pipeline drives.

Capture, playback, recognition and synthesis are injected into the
components that use them, so the pipeline runs unchanged against real
devices or test doubles.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import numpy as np


@dataclass(frozen=True)
class CaptureConstraints:
    """What to ask the capture device for."""
    device: str = "default"
    sample_rate: int = 16000
    channels: int = 1
    blocksize: int = 1600


@dataclass(frozen=True)
class RecognitionSettings:
    """How a recognition session listens."""
    locale: str = "en-US"
    continuous: bool = True
    interim_results: bool = False


class CaptureStream(Protocol):
    """An open capture device delivering fragments until stopped."""

    media_type: str

    async def stop(self) -> None:
        """Stop capture and release the device."""
        ...


class CaptureCapability(Protocol):
    """Microphone access."""

    async def open(
        self,
        constraints: CaptureConstraints,
        on_fragment: Callable[[bytes], None],
    ) -> CaptureStream:
        """Acquire the device and start delivering fragments on the event loop."""
        ...


class PlaybackCapability(Protocol):
    """Audio output."""

    async def play(
        self,
        samples: np.ndarray,
        sample_rate: int,
        listener: Optional[Callable[[np.ndarray], None]] = None,
    ) -> None:
        """Play samples, handing each played block to ``listener``; return when done."""
        ...


class RecognitionSession(Protocol):
    """One listening session of a recognizer."""

    def start(self) -> None:
        ...

    def feed(self, samples: np.ndarray) -> None:
        """Hand the session audio it is hearing."""
        ...

    def stop(self) -> None:
        """Stop listening; pending results are emitted, then ``on_end``."""
        ...

    def abort(self) -> None:
        """Stop listening and drop pending results; only ``on_end`` is emitted."""
        ...


class RecognitionCapability(Protocol):
    """Speech-to-text engine."""

    def is_available(self) -> bool:
        ...

    def create_session(
        self,
        settings: RecognitionSettings,
        on_result: Callable[[str], None],
        on_error: Callable[[Exception], None],
        on_end: Callable[[], None],
    ) -> RecognitionSession:
        ...


class SynthesisCapability(Protocol):
    """Text-to-speech engine."""

    def is_available(self) -> bool:
        ...

    def say(self, text: str, rate: float, pitch: float, volume: float) -> None:
        """Queue an utterance; must not block."""
        ...
