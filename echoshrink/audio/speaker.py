"""Text-to-speech output."""

import asyncio
import logging
import queue
import threading
from typing import Callable, Optional

import pyttsx3

from ..config import SpeechConfig
from .capabilities import SynthesisCapability

logger = logging.getLogger(__name__)

# pyttsx3 speaks in words per minute; rate 1.0 maps to its default.
BASE_WORDS_PER_MINUTE = 200


class Pyttsx3Synthesizer:
    """Synthesis capability backed by pyttsx3.

    Some pyttsx3 drivers (sapi5, nsss) are bound to the thread that created
    the engine, so the engine is created and used only on the worker thread.
    """

    def __init__(self):
        self._available = False
        self._ready = threading.Event()
        self._queue: queue.Queue[tuple[str, float, float]] = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def _speak_loop(self) -> None:
        """Create the engine, then speak queued utterances one at a time."""
        logger.info("Initializing speech synthesis engine")
        try:
            engine = pyttsx3.init()
        except Exception as e:
            logger.error(f"Speech synthesis unavailable: {e}")
            self._ready.set()
            return

        self._available = True
        self._ready.set()

        while True:
            text, rate, volume = self._queue.get()
            try:
                engine.setProperty("rate", int(BASE_WORDS_PER_MINUTE * rate))
                engine.setProperty("volume", volume)
                engine.say(text)
                engine.runAndWait()
            except Exception as e:
                logger.error(f"Speech synthesis error: {e}")
            finally:
                self._queue.task_done()

    def is_available(self) -> bool:
        """Start the worker on first use and wait until its engine is up."""
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._speak_loop, daemon=True)
                self._thread.start()
        self._ready.wait()
        return self._available

    def say(self, text: str, rate: float, pitch: float, volume: float) -> None:
        # pyttsx3 drivers expose no pitch control
        self._queue.put((text, rate, volume))

    def wait_until_done(self) -> None:
        """Block until every queued utterance has been spoken."""
        self._queue.join()


class Speaker:
    """Fire-and-forget speech for pipeline output."""

    def __init__(self, synthesis: SynthesisCapability, config: SpeechConfig):
        self.synthesis = synthesis
        self.rate = config.rate
        self.pitch = config.pitch
        self.volume = config.volume
        self.delay_s = config.delay_ms / 1000

        self._on_speak: list[Callable[[str], None]] = []
        self._pending: set[asyncio.Task] = set()

    def on_speak(self, callback: Callable[[str], None]) -> None:
        """Register callback invoked with the text of every synthesis request."""
        self._on_speak.append(callback)

    def speak(self, text: str) -> None:
        """Request synthesis of ``text``. Silently does nothing if unavailable."""
        if not text:
            return
        if not self.synthesis.is_available():
            logger.debug("Speech synthesis not available, skipping")
            return
        self._request(text)

    def _request(self, text: str) -> None:
        try:
            self.synthesis.say(text, self.rate, self.pitch, self.volume)
        except Exception as e:
            logger.error(f"Speech request failed: {e}")
            return

        logger.info(f"Speaking: '{text[:50]}'")
        for callback in self._on_speak:
            try:
                callback(text)
            except Exception as e:
                logger.error(f"Speak callback error: {e}")

    async def _speak_later(self, text: str) -> None:
        await asyncio.sleep(self.delay_s)
        if not text:
            return
        # Engine start-up blocks
        if not await asyncio.to_thread(self.synthesis.is_available):
            logger.debug("Speech synthesis not available, skipping")
            return
        self._request(text)

    def schedule(self, text: str) -> asyncio.Task:
        """Speak ``text`` after the configured delay without waiting for it."""
        task = asyncio.get_running_loop().create_task(self._speak_later(text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled utterance to be handed to the synthesizer."""
        if self._pending:
            await asyncio.gather(*self._pending)
