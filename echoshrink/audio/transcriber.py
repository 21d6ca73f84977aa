"""Speech-to-text: faster-whisper recognizer and the playback-driven transcriber."""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from faster_whisper import WhisperModel

from ..config import AudioConfig, RecognitionConfig
from ..exceptions import RecognitionFailed, RecognitionUnsupported
from .capabilities import (
    PlaybackCapability,
    RecognitionCapability,
    RecognitionSettings,
)
from .source import AudioSource, decode_samples

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transcript:
    """Recognized text for one clip. May be empty."""
    text: str


class WhisperSession:
    """A listening session that transcribes everything it heard when stopped."""

    def __init__(
        self,
        recognizer: "WhisperRecognizer",
        settings: RecognitionSettings,
        on_result: Callable[[str], None],
        on_error: Callable[[Exception], None],
        on_end: Callable[[], None],
    ):
        self.recognizer = recognizer
        self.settings = settings
        self._on_result = on_result
        self._on_error = on_error
        self._on_end = on_end

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._buffer: list[np.ndarray] = []
        self._listening = False
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._buffer = []
        self._listening = True
        logger.debug(f"Recognition session started ({self.settings.locale})")

    def feed(self, samples: np.ndarray) -> None:
        if self._listening:
            self._buffer.append(samples)

    def stop(self) -> None:
        if not self._listening:
            return
        self._listening = False

        audio = (
            np.concatenate(self._buffer).astype(np.float32)
            if self._buffer
            else np.zeros(0, dtype=np.float32)
        )
        self._buffer = []

        self._thread = threading.Thread(target=self._finalize, args=(audio,), daemon=True)
        self._thread.start()

    def abort(self) -> None:
        """Stop listening and discard what was heard without transcribing it."""
        if not self._listening:
            return
        self._listening = False
        self._buffer = []
        self._post(self._on_end)

    def _post(self, callback: Callable, *args) -> None:
        self._loop.call_soon_threadsafe(callback, *args)

    def _finalize(self, audio: np.ndarray) -> None:
        """Run inference off the event loop and post results back to it."""
        try:
            if len(audio):
                text = self.recognizer.transcribe_samples(audio, self.settings.locale)
                if text:
                    self._post(self._on_result, text)
        except Exception as e:
            logger.error(f"Recognition error: {e}")
            self._post(self._on_error, e)
        finally:
            self._post(self._on_end)


class WhisperRecognizer:
    """Recognition capability backed by a local faster-whisper model."""

    def __init__(self, config: RecognitionConfig):
        self.config = config
        self.model_name = config.whisper_model
        self.device = config.whisper_device
        self.compute_type = config.whisper_compute_type
        self.beam_size = config.beam_size

        self._model: Optional[WhisperModel] = None
        self._model_lock = threading.Lock()

    def _load_model(self) -> None:
        """Load the Whisper model."""
        logger.info(f"Loading Whisper model: {self.model_name} on {self.device}")
        try:
            self._model = WhisperModel(
                self.model_name,
                device=self.device,
                compute_type=self.compute_type,
            )
            logger.info("Whisper model loaded")
        except Exception as e:
            logger.error(f"Failed to load Whisper model: {e}")
            raise

    def is_available(self) -> bool:
        """Load the model on first use; unavailable if it cannot be loaded."""
        with self._model_lock:
            if self._model is None:
                try:
                    self._load_model()
                except Exception:
                    return False
        return True

    def transcribe_samples(self, audio: np.ndarray, locale: str) -> str:
        """Transcribe mono float32 audio and return the joined text."""
        if self._model is None:
            raise RuntimeError("Whisper model not loaded")

        language = locale.split("-")[0].lower()
        segments, info = self._model.transcribe(
            audio,
            beam_size=self.beam_size,
            language=language,
            vad_filter=True,
        )
        texts = [seg.text.strip() for seg in segments]
        full_text = " ".join(t for t in texts if t)
        logger.debug(f"Whisper output: '{full_text[:50]}'")
        return full_text

    def create_session(
        self,
        settings: RecognitionSettings,
        on_result: Callable[[str], None],
        on_error: Callable[[Exception], None],
        on_end: Callable[[], None],
    ) -> WhisperSession:
        return WhisperSession(self, settings, on_result, on_error, on_end)


class Transcriber:
    """Transcribes a clip by playing it back while a recognizer listens.

    Transcription is complete when playback ends, not when the recognizer
    decides the input is over. The session is stopped explicitly at that
    point, so a recognizer that finalizes early on trailing silence yields
    a shorter transcript.
    """

    def __init__(
        self,
        recognition: RecognitionCapability,
        playback: PlaybackCapability,
        audio_config: AudioConfig,
        config: RecognitionConfig,
    ):
        self.recognition = recognition
        self.playback = playback
        self.sample_rate = audio_config.sample_rate
        self.finalize_timeout_s = config.finalize_timeout_s
        self.settings = RecognitionSettings(
            locale=config.locale,
            continuous=config.continuous,
            interim_results=config.interim_results,
        )

    async def transcribe(self, source: AudioSource) -> Transcript:
        """
        Transcribe an AudioSource.

        Raises:
            RecognitionUnsupported: If no recognizer is available
            RecognitionFailed: If the clip cannot be played or the
                recognizer reports an error
        """
        # Model loading and container decoding block, keep them off the loop
        if not await asyncio.to_thread(self.recognition.is_available):
            raise RecognitionUnsupported()

        try:
            samples = await asyncio.to_thread(decode_samples, source, self.sample_rate)
        except Exception as e:
            logger.error(f"Could not decode {source.media_type}: {e}")
            raise RecognitionFailed(f"Could not decode audio: {e}", cause=e) from e

        loop = asyncio.get_running_loop()
        results: list[str] = []
        ended: asyncio.Future = loop.create_future()

        def _on_result(text: str) -> None:
            results.append(text.strip())

        def _on_error(error: Exception) -> None:
            if not ended.done():
                ended.set_exception(RecognitionFailed(str(error), cause=error))

        def _on_end() -> None:
            if not ended.done():
                ended.set_result(None)

        session = self.recognition.create_session(
            self.settings, _on_result, _on_error, _on_end
        )
        session.start()

        try:
            await self.playback.play(samples, self.sample_rate, listener=session.feed)
        except Exception as e:
            session.abort()
            ended.cancel()
            logger.error(f"Playback failed during transcription: {e}")
            raise RecognitionFailed(f"Playback failed: {e}", cause=e) from e

        # Playback over: this is the end of the transcription window.
        session.stop()

        try:
            await asyncio.wait_for(ended, timeout=self.finalize_timeout_s)
        except asyncio.TimeoutError:
            logger.warning(
                f"Recognizer did not finalize within {self.finalize_timeout_s}s, "
                "using results so far"
            )

        transcript = Transcript(text=" ".join(r for r in results if r))
        logger.info(f"Transcribed: '{transcript.text[:50]}' ({len(samples)} samples)")
        return transcript
