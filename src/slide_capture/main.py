"""
Slide Capture Agent Main Application
====================================

FastAPI entry point exposing the capture engine's control channel.

Endpoints:
    GET  /                  - Service information
    GET  /health            - Liveness probe
    GET  /status            - Session status
    GET  /metrics           - Engine and stream metrics
    GET  /frames            - Retained frame metadata
    GET  /frames/{index}    - Encoded bytes of one retained frame
    GET  /highlight         - Crop overlay rectangle and preview
    POST /capture/{command} - start | stop | reset | acknowledge
    WS   /ws/control        - Commands in, status out

All runtime objects live on app.state; nothing is module-global apart from
the default app instance.
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from slide_capture.capture import CaptureEngine, LoggingObserver, ZipArchiveSink
from slide_capture.config import Settings, settings as default_settings
from slide_capture.geometry.crop import DisplayRect
from slide_capture.models.input import ControlCommand, ControlRequest
from slide_capture.models.output import FrameList, RetainedFrameInfo
from slide_capture.observability import CropHighlighter
from slide_capture.stream import FrameBuffer, FrameConsumer, LiveStreamLocator, LiveStreamSource


logger = logging.getLogger(__name__)


@dataclass
class ServiceComponents:
    """Runtime objects owned by one app instance."""

    engine: CaptureEngine
    highlighter: CropHighlighter
    consumer: Optional[FrameConsumer] = None
    buffer: Optional[FrameBuffer] = None


ComponentFactory = Callable[[Settings], ServiceComponents]


def build_components(settings: Settings) -> ServiceComponents:
    """Wire the live stream, engine, sink and highlighter from settings."""
    buffer = FrameBuffer(maxsize=settings.stream.max_queue_size)
    consumer = FrameConsumer(
        url=settings.stream.url,
        buffer=buffer,
        reconnect_backoff_ms=settings.stream.reconnect_backoff_ms,
        max_reconnect_attempts=settings.stream.max_reconnect_attempts,
    )
    source = LiveStreamSource(
        buffer,
        consumer,
        stall_timeout_sec=settings.capture.stall_timeout_sec,
    )

    highlighter = CropHighlighter(
        enabled=settings.observability.enable_highlight,
        thickness=settings.observability.highlight_thickness,
    )

    engine = CaptureEngine(
        locator=LiveStreamLocator(source),
        sink=ZipArchiveSink(settings.export.output_dir, settings.export.archive_prefix),
        crop=settings.crop_region(),
        thresholds=settings.similarity_thresholds(),
        timings=settings.capture_timings(),
        thumbnail_size=settings.capture.thumbnail_size,
        image_format=settings.export.image_format,
        quality=settings.export.quality,
        observers=[LoggingObserver(), highlighter],
        log_every_n_ticks=settings.observability.log_every_n_ticks,
    )

    return ServiceComponents(
        engine=engine,
        highlighter=highlighter,
        consumer=consumer,
        buffer=buffer,
    )


def create_app(
    settings: Settings = default_settings,
    engine_factory: Optional[ComponentFactory] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Loaded settings
        engine_factory: Builds the runtime components (defaults to the live
            websocket stream)

    Returns:
        FastAPI app
    """
    factory = engine_factory or build_components

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with graceful shutdown."""
        app.state.startup_time = time.time()
        logger.info(f"Starting {settings.agent.name} {settings.agent.version}")

        components = factory(settings)
        app.state.components = components

        consumer_task: Optional[asyncio.Task] = None
        if components.consumer is not None:
            logger.info(f"Stream URL: {settings.stream.url}")
            consumer_task = asyncio.create_task(
                components.consumer.run(),
                name="frame_consumer",
            )

        if settings.capture.autostart:
            await components.engine.start()

        logger.info("All components started")

        yield

        logger.info("Shutting down gracefully...")

        await components.engine.close()

        if components.consumer is not None:
            await components.consumer.stop()

        if consumer_task is not None:
            try:
                await asyncio.wait_for(consumer_task, timeout=5.0)
            except asyncio.TimeoutError:
                consumer_task.cancel()
                try:
                    await consumer_task
                except asyncio.CancelledError:
                    pass

        logger.info("Shutdown complete")

    app = FastAPI(
        title="SlideCaptureAgent",
        description="Deduplicating frame capture for presentation streams",
        version=settings.agent.version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    def components_of(request_app: FastAPI) -> ServiceComponents:
        components = getattr(request_app.state, "components", None)
        if components is None:
            raise HTTPException(status_code=503, detail="Service not started")
        return components

    # =========================================================================
    # HTTP Endpoints
    # =========================================================================

    @app.get("/")
    async def root() -> JSONResponse:
        """Service information endpoint."""
        return JSONResponse({
            "service": "SlideCaptureAgent",
            "version": settings.agent.version,
            "name": settings.agent.name,
            "status": "running",
        })

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Liveness probe. Always 200 while the process is running."""
        started = getattr(request.app.state, "startup_time", time.time())
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - started, 1),
        })

    @app.get("/status")
    async def status(request: Request) -> JSONResponse:
        """Current session status."""
        engine = components_of(request.app).engine
        return JSONResponse(engine.snapshot().model_dump(mode="json"))

    @app.get("/metrics")
    async def metrics(request: Request) -> JSONResponse:
        """Engine and stream metrics."""
        components = components_of(request.app)

        stream_metrics = {}
        if components.consumer is not None and components.buffer is not None:
            stream_metrics = {
                "stream_connected": components.consumer.connected,
                "frames_received": components.consumer.metrics.frames_received,
                "reconnect_count": components.consumer.metrics.reconnect_count,
                "buffer_size": components.buffer.size,
                "buffer_dropped": components.buffer.dropped_count,
            }

        return JSONResponse({
            "status": components.engine.status.value,
            **components.engine.metrics.to_dict(),
            **stream_metrics,
        })

    @app.get("/frames")
    async def frames(request: Request) -> JSONResponse:
        """Metadata of the retained frames."""
        engine = components_of(request.app).engine
        listing = FrameList(
            session_id=engine.session.session_id,
            status=engine.status,
            frames=[RetainedFrameInfo.from_frame(f) for f in engine.retained_frames],
        )
        return JSONResponse(listing.model_dump(mode="json"))

    @app.get("/frames/{index}")
    async def frame_image(index: int, request: Request) -> Response:
        """Encoded image of one retained frame (1-based index)."""
        engine = components_of(request.app).engine
        retained = engine.retained_frames
        if not 1 <= index <= len(retained):
            raise HTTPException(status_code=404, detail=f"No retained frame #{index}")
        frame = retained[index - 1]
        return Response(content=frame.image, media_type=frame.media_type)

    @app.get("/highlight")
    async def highlight(
        request: Request,
        left: Optional[float] = None,
        top: Optional[float] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> JSONResponse:
        """
        Crop highlight. Pass left/top/width/height to map the crop onto the
        rectangle the source is displayed in.
        """
        highlighter = components_of(request.app).highlighter

        display = None
        if None not in (left, top, width, height):
            display = DisplayRect(left, top, width, height)

        return JSONResponse(highlighter.highlight(display).model_dump(mode="json"))

    @app.post("/capture/{command}")
    async def capture_command(command: str, request: Request) -> JSONResponse:
        """Execute a control command."""
        engine = components_of(request.app).engine
        try:
            parsed = ControlCommand(command.lower())
        except ValueError:
            valid = ", ".join(c.value for c in ControlCommand)
            raise HTTPException(
                status_code=400,
                detail=f"Unknown command {command!r} (expected one of: {valid})",
            )
        snapshot = await engine.handle_command(parsed)
        return JSONResponse(snapshot.model_dump(mode="json"))

    # =========================================================================
    # WebSocket Endpoints
    # =========================================================================

    @app.websocket("/ws/control")
    async def control_channel(websocket: WebSocket) -> None:
        """Control channel: {"command": ...} in, session status out."""
        await websocket.accept()
        logger.info("Client connected to /ws/control")

        engine = components_of(websocket.app).engine
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    request = ControlRequest.model_validate_json(raw)
                except ValidationError as e:
                    await websocket.send_json({
                        "error": "invalid_command",
                        "detail": f"{e.error_count()} validation error(s)",
                    })
                    continue

                snapshot = await engine.handle_command(request.command)
                await websocket.send_json(snapshot.model_dump(mode="json"))
        except WebSocketDisconnect:
            pass
        finally:
            logger.info("Client disconnected from /ws/control")

    return app


# =============================================================================
# FastAPI Application
# =============================================================================

app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Cloud Run uses PORT env var
    port = int(os.environ.get("PORT", default_settings.server.port))

    uvicorn.run(
        "slide_capture.main:app",
        host=default_settings.server.host,
        port=port,
        reload=False,
    )
