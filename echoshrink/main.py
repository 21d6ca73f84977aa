"""Main entry point for EchoShrink."""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import uvicorn

from .audio.capture import Recorder, SoundDeviceCapture
from .audio.playback import SoundDevicePlayback
from .audio.speaker import Pyttsx3Synthesizer, Speaker
from .audio.transcriber import Transcriber, WhisperRecognizer
from .config import Config, load_config
from .pipeline.controller import Notification, PipelineController
from .web.api import create_app, set_pipeline_instance

logger = logging.getLogger(__name__)


class EchoShrink:
    """Wires the platform adapters into a pipeline controller."""

    def __init__(self, config: Config):
        self.config = config

        logger.info("Initializing audio components...")
        blocksize = int(config.audio.sample_rate * config.audio.chunk_duration_ms / 1000)
        self.capture = SoundDeviceCapture()
        self.playback = SoundDevicePlayback(config.audio.playback_device, blocksize)
        self.recognizer = WhisperRecognizer(config.recognition)
        self.synthesizer = Pyttsx3Synthesizer()

        self.recorder = Recorder(self.capture, config.audio)
        self.transcriber = Transcriber(
            self.recognizer, self.playback, config.audio, config.recognition
        )
        self.speaker = Speaker(self.synthesizer, config.speech)

        self.controller = PipelineController(
            self.recorder,
            self.transcriber,
            self.speaker,
            playback=self.playback,
            sample_rate=config.audio.sample_rate,
        )
        self.controller.on_notification(self._log_notification)

    @staticmethod
    def _log_notification(notification: Notification) -> None:
        level = logging.ERROR if notification.is_error else logging.INFO
        logger.log(level, f"{notification.title}: {notification.description}")

    def serve(self, host: str, port: int) -> None:
        """Run the HTTP API until interrupted."""
        set_pipeline_instance(self.controller)
        app = create_app()

        logger.info(f"Starting web server on {host}:{port}...")
        server_config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        uvicorn.Server(server_config).run()
        logger.info("Web server stopped")

    async def process_file(self, path: Path) -> bool:
        """Upload, transcribe, summarize and speak a single file."""
        media_type, _ = mimetypes.guess_type(str(path))
        if not self.controller.upload(path.read_bytes(), media_type or ""):
            return False

        summary = await self.controller.run()
        if summary is None:
            return False

        print(f"Transcript: {self.controller.transcript.text}")
        print(f"Summary: {summary}")

        # Let the scheduled speech request go out before returning
        await self.speaker.drain()
        if await asyncio.to_thread(self.synthesizer.is_available):
            await asyncio.to_thread(self.synthesizer.wait_until_done)
        return True


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="EchoShrink - spoken audio summaries")
    parser.add_argument(
        "-c", "--config",
        default="config/settings.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Web server host (default: from config)",
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Web server port (default: from config)",
    )
    parser.add_argument(
        "--list-audio",
        action="store_true",
        help="List available audio input devices",
    )
    parser.add_argument(
        "--file",
        type=Path,
        default=None,
        help="Summarize one audio file and exit",
    )
    args = parser.parse_args()

    if args.list_audio:
        print("Available audio devices:")
        for dev in SoundDeviceCapture.list_devices():
            print(f"  [{dev['id']}] {dev['name']} ({dev['channels']}ch)")
        return

    config = load_config(args.config)
    config.setup_logging()

    app = EchoShrink(config)

    if args.file is not None:
        if not args.file.exists():
            logger.error(f"File not found: {args.file}")
            sys.exit(1)
        ok = asyncio.run(app.process_file(args.file))
        sys.exit(0 if ok else 1)

    host = args.host or config.web.host
    port = args.port or config.web.port
    try:
        app.serve(host, port)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")


if __name__ == "__main__":
    main()
