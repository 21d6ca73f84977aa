"""Tests for the main entry point module."""

import asyncio
import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from echoshrink.config import Config, LoggingConfig, SpeechConfig
from echoshrink.main import EchoShrink, main
from echoshrink.pipeline.controller import Notification, PipelineState


@pytest.fixture
def config():
    return Config(
        speech=SpeechConfig(delay_ms=0),
        logging=LoggingConfig(file=None),
    )


class TestEchoShrink:
    """Tests for EchoShrink wiring."""

    @patch("echoshrink.main.Pyttsx3Synthesizer")
    @patch("echoshrink.main.WhisperRecognizer")
    @patch("echoshrink.main.SoundDevicePlayback")
    @patch("echoshrink.main.SoundDeviceCapture")
    def test_init(self, mock_capture, mock_playback, mock_recognizer, mock_synth, config):
        """Test adapters are wired into one controller."""
        app = EchoShrink(config)

        assert app.controller.state == PipelineState.IDLE
        assert app.controller.recorder is app.recorder
        assert app.transcriber.recognition is mock_recognizer.return_value
        assert app.speaker.synthesis is mock_synth.return_value
        mock_playback.assert_called_once_with("default", 1600)

    def test_process_file(self, config, temp_dir, fake_recognizer, fake_playback,
                          fake_synthesizer, capsys):
        """Test one-shot processing of a file prints transcript and summary."""
        clip = temp_dir / "clip.wav"
        clip.write_bytes(b"RIFF")

        with patch("echoshrink.main.SoundDeviceCapture"), \
                patch("echoshrink.main.SoundDevicePlayback", return_value=fake_playback), \
                patch("echoshrink.main.WhisperRecognizer", return_value=fake_recognizer), \
                patch("echoshrink.main.Pyttsx3Synthesizer", return_value=fake_synthesizer), \
                patch("echoshrink.audio.source.decode_audio") as mock_decode:
            mock_decode.return_value = np.zeros(3200, dtype=np.float32)
            app = EchoShrink(config)
            fake_synthesizer.wait_until_done = MagicMock()
            ok = asyncio.run(app.process_file(clip))

        assert ok
        out = capsys.readouterr().out
        assert "Summary: Mahendra Singh Dhoni – captain, 2 icc trophy" in out
        assert fake_synthesizer.spoken[0][0] == "Mahendra Singh Dhoni – captain, 2 icc trophy"

    def test_process_file_rejects_non_audio(self, config, temp_dir):
        notes = temp_dir / "notes.txt"
        notes.write_text("not audio")

        with patch("echoshrink.main.SoundDeviceCapture"), \
                patch("echoshrink.main.SoundDevicePlayback"), \
                patch("echoshrink.main.WhisperRecognizer"), \
                patch("echoshrink.main.Pyttsx3Synthesizer"):
            app = EchoShrink(config)
            ok = asyncio.run(app.process_file(notes))

        assert not ok
        assert app.controller.state == PipelineState.IDLE

    @patch("echoshrink.main.uvicorn.Server")
    @patch("echoshrink.main.Pyttsx3Synthesizer")
    @patch("echoshrink.main.WhisperRecognizer")
    @patch("echoshrink.main.SoundDevicePlayback")
    @patch("echoshrink.main.SoundDeviceCapture")
    def test_serve(self, mock_capture, mock_playback, mock_recognizer, mock_synth,
                   mock_server, config):
        """Test serve() runs uvicorn with the requested address."""
        app = EchoShrink(config)

        app.serve("127.0.0.1", 9000)

        server_config = mock_server.call_args[0][0]
        assert server_config.host == "127.0.0.1"
        assert server_config.port == 9000
        mock_server.return_value.run.assert_called_once()

    def test_log_notification(self, caplog):
        with caplog.at_level("INFO", logger="echoshrink.main"):
            EchoShrink._log_notification(
                Notification(title="Error", description="bad", variant="destructive")
            )
        assert caplog.records[-1].levelname == "ERROR"


class TestMain:
    """Tests for the command line entry point."""

    @patch("echoshrink.main.SoundDeviceCapture.list_devices")
    def test_list_audio(self, mock_list, capsys):
        mock_list.return_value = [{"id": 0, "name": "Mic", "channels": 1, "sample_rate": 16000}]

        with patch.object(sys, "argv", ["echoshrink", "--list-audio"]):
            main()

        assert "[0] Mic (1ch)" in capsys.readouterr().out

    @patch("echoshrink.main.EchoShrink")
    @patch("echoshrink.main.load_config")
    def test_serve_uses_config_port(self, mock_load, mock_app, config):
        mock_load.return_value = config

        with patch.object(sys, "argv", ["echoshrink", "-c", "x.yaml", "--host", "127.0.0.1"]), \
                patch.object(config, "setup_logging"):
            main()

        mock_load.assert_called_once_with("x.yaml")
        mock_app.return_value.serve.assert_called_once_with("127.0.0.1", 8080)

    @patch("echoshrink.main.EchoShrink")
    @patch("echoshrink.main.load_config")
    def test_missing_file_exits(self, mock_load, mock_app, config, temp_dir):
        mock_load.return_value = config

        with patch.object(sys, "argv", ["echoshrink", "--file", str(temp_dir / "none.wav")]), \
                patch.object(config, "setup_logging"):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
