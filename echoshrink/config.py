"""Configuration management for EchoShrink."""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class AudioConfig:
    """Capture and playback configuration."""
    device: str = "default"
    playback_device: str = "default"
    sample_rate: int = 16000
    channels: int = 1
    chunk_duration_ms: int = 100


@dataclass
class RecognitionConfig:
    """Speech recognition configuration."""
    locale: str = "en-US"
    continuous: bool = True
    interim_results: bool = False
    whisper_model: str = "small.en"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    beam_size: int = 5
    finalize_timeout_s: float = 30.0


@dataclass
class SpeechConfig:
    """Speech synthesis configuration."""
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0
    delay_ms: int = 500  # after the summary is set


@dataclass
class WebConfig:
    """HTTP API configuration."""
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = "./logs/echoshrink.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    """Main configuration container."""
    audio: AudioConfig = field(default_factory=AudioConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(
            audio=AudioConfig(**data.get("audio", {})),
            recognition=RecognitionConfig(**data.get("recognition", {})),
            speech=SpeechConfig(**data.get("speech", {})),
            web=WebConfig(**data.get("web", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(asdict(self), f, default_flow_style=False, sort_keys=False)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        log_level = getattr(logging, self.logging.level.upper(), logging.INFO)

        handlers = [logging.StreamHandler()]

        if self.logging.file:
            log_path = Path(self.logging.file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_path))

        logging.basicConfig(
            level=log_level,
            format=self.logging.format,
            handlers=handlers,
        )


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from file or environment."""
    if path is None:
        path = os.environ.get("ECHOSHRINK_CONFIG", "config/settings.yaml")
    return Config.from_yaml(path)
