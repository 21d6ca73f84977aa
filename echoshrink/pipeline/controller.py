"""Pipeline state machine: record/upload -> transcribe -> summarize -> speak."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from ..audio.capabilities import PlaybackCapability
from ..audio.capture import Recorder
from ..audio.source import AudioSource, decode_samples, ingest_upload
from ..audio.speaker import Speaker
from ..audio.transcriber import Transcriber, Transcript
from ..exceptions import (
    CaptureUnavailable,
    EchoShrinkError,
    InvalidInput,
    RecognitionFailed,
    RecognitionUnsupported,
)
from .summarizer import summarize

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    READY = "ready"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


# States from which a new clip may be recorded or uploaded
RESTARTABLE_STATES = frozenset({
    PipelineState.IDLE,
    PipelineState.READY,
    PipelineState.DONE,
    PipelineState.FAILED,
})


@dataclass(frozen=True)
class Notification:
    """A user-visible message about a pipeline event."""
    title: str
    description: str
    variant: str = "default"
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.variant == "destructive"


class PipelineController:
    """Owns the clip, transcript, summary and state of the current run.

    Every operation runs on one event loop, so state needs no locking.
    Errors from the components are caught here, turned into a single
    notification and never propagate to the caller.
    """

    def __init__(
        self,
        recorder: Recorder,
        transcriber: Transcriber,
        speaker: Speaker,
        playback: Optional[PlaybackCapability] = None,
        sample_rate: int = 16000,
    ):
        self.recorder = recorder
        self.transcriber = transcriber
        self.speaker = speaker
        self.playback = playback
        self.sample_rate = sample_rate

        self._state = PipelineState.IDLE
        self.audio_source: Optional[AudioSource] = None
        self.transcript: Optional[Transcript] = None
        self.summary: Optional[str] = None
        self.last_error: Optional[EchoShrinkError] = None

        self._on_state_change: list[Callable[[PipelineState, PipelineState], None]] = []
        self._on_notification: list[Callable[[Notification], None]] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    # ==================== Observers ====================

    def on_state_change(
        self, callback: Callable[[PipelineState, PipelineState], None]
    ) -> None:
        """Register callback for state transitions (old, new)."""
        self._on_state_change.append(callback)

    def on_notification(self, callback: Callable[[Notification], None]) -> None:
        """Register callback for user-visible notifications."""
        self._on_notification.append(callback)

    def _set_state(self, new_state: PipelineState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.debug(f"State: {old_state.value} -> {new_state.value}")
        for callback in self._on_state_change:
            try:
                callback(old_state, new_state)
            except Exception as e:
                logger.error(f"State callback error: {e}")

    def _notify(self, title: str, description: str, variant: str = "default") -> None:
        notification = Notification(title=title, description=description, variant=variant)
        for callback in self._on_notification:
            try:
                callback(notification)
            except Exception as e:
                logger.error(f"Notification callback error: {e}")

    def _fail(self, error: EchoShrinkError, state: Optional[PipelineState] = None) -> None:
        """Record an error, clear derived results and surface it once."""
        self.last_error = error
        self.transcript = None
        self.summary = None
        if state is not None:
            self._set_state(state)
        self._notify("Error", error.description, variant="destructive")

    def _start_run(self, source: AudioSource) -> None:
        """Replace the clip and everything derived from it."""
        self.audio_source = source
        self.transcript = None
        self.summary = None
        self.last_error = None
        self._set_state(PipelineState.READY)

    # ==================== Input ====================

    async def begin(self) -> bool:
        """Start recording. Returns False if rejected or the mic is unavailable."""
        if self._state not in RESTARTABLE_STATES:
            logger.warning(f"Cannot start recording while {self._state.value}")
            return False

        try:
            await self.recorder.begin()
        except CaptureUnavailable as e:
            self._fail(e)
            return False

        self.audio_source = None
        self.transcript = None
        self.summary = None
        self.last_error = None
        self._set_state(PipelineState.RECORDING)
        self._notify("Recording started", "Speak into your microphone")
        return True

    async def end(self) -> Optional[AudioSource]:
        """Stop recording. A no-op returning None when not recording."""
        if self._state != PipelineState.RECORDING:
            return None

        source = await self.recorder.end()
        if source is None:
            logger.warning("Recorder returned no audio")
            self._set_state(PipelineState.IDLE)
            return None

        self._start_run(source)
        self._notify("Recording stopped", "Ready to process audio")
        return source

    def upload(self, data: bytes, media_type: str) -> bool:
        """Accept an uploaded clip. Returns False if rejected or not audio."""
        if self._state not in RESTARTABLE_STATES:
            logger.warning(f"Cannot accept upload while {self._state.value}")
            return False

        try:
            source = ingest_upload(data, media_type)
        except InvalidInput as e:
            self._fail(e)
            return False

        self._start_run(source)
        self._notify("File uploaded", "Ready to process audio")
        return True

    # ==================== Processing ====================

    async def run(self) -> Optional[str]:
        """
        Transcribe, summarize and speak the current clip.

        Returns:
            The summary, or None if the run was rejected or failed
        """
        if self._state != PipelineState.READY or self.audio_source is None:
            logger.warning(f"Run rejected while {self._state.value}")
            return None

        self._set_state(PipelineState.PROCESSING)
        self._notify("Processing...", "Transcribing and summarizing audio")

        try:
            transcript = await self.transcriber.transcribe(self.audio_source)
        except (RecognitionUnsupported, RecognitionFailed) as e:
            logger.error(f"Transcription failed: {e}")
            self._fail(e, PipelineState.FAILED)
            return None
        except Exception as e:
            logger.error(f"Unexpected transcription error: {e}")
            self._fail(RecognitionFailed(str(e), cause=e), PipelineState.FAILED)
            return None

        self.transcript = transcript
        self.summary = summarize(transcript.text)
        logger.info(f"Summary ready: '{self.summary}'")

        self.speaker.schedule(self.summary)

        self._set_state(PipelineState.DONE)
        self._notify("Success", "Audio processed successfully!")
        return self.summary

    async def preview(self) -> bool:
        """Play the current clip back. Returns False if there is nothing to play."""
        if self.audio_source is None or self.playback is None:
            return False

        try:
            samples = await asyncio.to_thread(decode_samples, self.audio_source, self.sample_rate)
            await self.playback.play(samples, self.sample_rate)
        except Exception as e:
            logger.error(f"Preview failed: {e}")
            self._notify("Error", "Could not play audio", variant="destructive")
            return False
        return True

    def snapshot(self) -> dict[str, Any]:
        """Current pipeline data for display."""
        return {
            "state": self._state.value,
            "audio": (
                {
                    "media_type": self.audio_source.media_type,
                    "size_bytes": self.audio_source.size,
                }
                if self.audio_source is not None
                else None
            ),
            "transcript": self.transcript.text if self.transcript is not None else None,
            "summary": self.summary,
            "error": self.last_error.description if self.last_error is not None else None,
        }
