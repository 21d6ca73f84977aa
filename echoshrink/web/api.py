"""FastAPI REST API driving the EchoShrink pipeline."""

import logging
import weakref
from collections import deque
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from ..exceptions import RecognitionUnsupported
from ..pipeline.controller import (
    RESTARTABLE_STATES,
    Notification,
    PipelineController,
    PipelineState,
)

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 50

# Will be set by main.py
_pipeline_instance: Optional[PipelineController] = None
_notifications: deque[Notification] = deque(maxlen=MAX_NOTIFICATIONS)
# Controllers already feeding _notifications
_subscribed: "weakref.WeakSet[PipelineController]" = weakref.WeakSet()


class PipelineResponse(BaseModel):
    """Response model for pipeline operations."""
    success: bool
    message: str
    data: Optional[dict] = None


class StatusResponse(BaseModel):
    """Response model for pipeline status."""
    state: str
    uptime_seconds: float
    audio: Optional[dict] = None
    transcript: Optional[str] = None
    summary: Optional[str] = None
    error: Optional[str] = None


def set_pipeline_instance(instance: Optional[PipelineController]) -> None:
    """Set the PipelineController for API access."""
    global _pipeline_instance
    _pipeline_instance = instance
    _notifications.clear()
    if instance is not None and instance not in _subscribed:
        instance.on_notification(_notifications.append)
        _subscribed.add(instance)


def _get_pipeline() -> PipelineController:
    if _pipeline_instance is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return _pipeline_instance


def _require_state(pipeline: PipelineController, *states: PipelineState) -> None:
    if pipeline.state not in states:
        raise HTTPException(
            status_code=409,
            detail=f"Not allowed while {pipeline.state.value}",
        )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="EchoShrink API",
        description="Record or upload audio and hear a short summary",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store start time for uptime calculation
    app.state.start_time = datetime.now()

    @app.get("/api/status", response_model=StatusResponse)
    async def get_status():
        """Get current pipeline state and results."""
        pipeline = _get_pipeline()
        uptime = (datetime.now() - app.state.start_time).total_seconds()
        return StatusResponse(uptime_seconds=uptime, **pipeline.snapshot())

    @app.post("/api/recording/start", response_model=PipelineResponse)
    async def start_recording():
        """Start capturing from the microphone."""
        pipeline = _get_pipeline()
        _require_state(pipeline, *RESTARTABLE_STATES)

        if not await pipeline.begin():
            raise HTTPException(status_code=503, detail=pipeline.last_error.description)

        return PipelineResponse(success=True, message="Recording started")

    @app.post("/api/recording/stop", response_model=PipelineResponse)
    async def stop_recording():
        """Stop capturing and keep the clip for processing."""
        pipeline = _get_pipeline()
        _require_state(pipeline, PipelineState.RECORDING)

        source = await pipeline.end()
        if source is None:
            raise HTTPException(status_code=500, detail="No audio was recorded")

        return PipelineResponse(
            success=True,
            message="Recording stopped",
            data={"media_type": source.media_type, "size_bytes": source.size},
        )

    @app.post("/api/upload", response_model=PipelineResponse)
    async def upload_audio(file: UploadFile = File(...)):
        """Upload an audio file instead of recording."""
        pipeline = _get_pipeline()
        _require_state(pipeline, *RESTARTABLE_STATES)

        data = await file.read()
        if not pipeline.upload(data, file.content_type or ""):
            raise HTTPException(status_code=415, detail=pipeline.last_error.description)

        return PipelineResponse(
            success=True,
            message="File uploaded",
            data={"filename": file.filename, "size_bytes": len(data)},
        )

    @app.post("/api/process", response_model=PipelineResponse)
    async def process_audio():
        """Transcribe and summarize the current clip, then speak the summary."""
        pipeline = _get_pipeline()
        _require_state(pipeline, PipelineState.READY)

        summary = await pipeline.run()
        if summary is None:
            error = pipeline.last_error
            status_code = 501 if isinstance(error, RecognitionUnsupported) else 500
            detail = error.description if error is not None else "Failed to process audio"
            raise HTTPException(status_code=status_code, detail=detail)

        return PipelineResponse(
            success=True,
            message="Audio processed successfully",
            data={"transcript": pipeline.transcript.text, "summary": summary},
        )

    @app.post("/api/preview", response_model=PipelineResponse)
    async def preview_audio():
        """Play the current clip on the server's output device."""
        pipeline = _get_pipeline()

        if pipeline.audio_source is None:
            raise HTTPException(status_code=404, detail="No audio available")
        if not await pipeline.preview():
            raise HTTPException(status_code=500, detail="Could not play audio")

        return PipelineResponse(success=True, message="Preview finished")

    @app.get("/api/audio")
    async def get_audio():
        """Download the current clip."""
        pipeline = _get_pipeline()
        source = pipeline.audio_source
        if source is None:
            raise HTTPException(status_code=404, detail="No audio available")
        return Response(content=source.data, media_type=source.media_type)

    @app.get("/api/notifications")
    async def get_notifications(limit: int = 20):
        """Get the most recent notifications, newest last."""
        _get_pipeline()
        recent = list(_notifications)[-limit:] if limit > 0 else []
        return {
            "success": True,
            "data": [
                {
                    "title": n.title,
                    "description": n.description,
                    "variant": n.variant,
                    "timestamp": n.timestamp.isoformat(),
                }
                for n in recent
            ],
        }

    return app
