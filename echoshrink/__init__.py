"""EchoShrink: turn an audio clip into a short spoken summary."""

__version__ = "0.1.0"
