"""Audio components: capture, playback, recognition and synthesis."""

from .capture import Recorder, SoundDeviceCapture
from .playback import SoundDevicePlayback
from .source import AudioSource, ingest_upload
from .speaker import Pyttsx3Synthesizer, Speaker
from .transcriber import Transcriber, Transcript, WhisperRecognizer

__all__ = [
    "AudioSource",
    "ingest_upload",
    "Recorder",
    "SoundDeviceCapture",
    "SoundDevicePlayback",
    "Speaker",
    "Pyttsx3Synthesizer",
    "Transcriber",
    "Transcript",
    "WhisperRecognizer",
]
