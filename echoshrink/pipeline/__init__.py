"""Audio-to-summary pipeline: state machine and summarizer."""

from .controller import Notification, PipelineController, PipelineState
from .summarizer import summarize

__all__ = ["Notification", "PipelineController", "PipelineState", "summarize"]
