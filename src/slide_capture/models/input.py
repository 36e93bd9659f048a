"""
Input Message Schema
====================

Pydantic models for messages the agent receives.

Two inputs exist:
    1. Frame messages from an upstream websocket frame stream
    2. Control commands from an operator (HTTP or websocket)

Frame Contract (upstream stream):
    {
        "source": "SlideStream",
        "version": "v1.0",
        "frame_id": 1234,
        "timestamp": 1707321234.567,
        "fps": 30,
        "image": "<base64 JPEG>"
    }

Control Contract:
    {"command": "start" | "stop" | "reset" | "acknowledge"}

Example:
    from slide_capture.models.input import FrameMessage

    raw = await websocket.recv()
    message = FrameMessage.model_validate_json(raw)
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FrameMessage(BaseModel):
    """
    Schema for frame messages received from the upstream stream.

    Attributes:
        source: Identifier of the upstream service
        version: Protocol version for compatibility checking
        frame_id: Monotonically increasing frame counter
        timestamp: UNIX timestamp when frame was emitted
        fps: Stream FPS
        image: Base64-encoded JPEG (or PNG/WebP) frame data
    """

    source: str = Field(
        ...,
        description="Source identifier of the upstream stream",
    )

    version: str = Field(
        ...,
        description="Protocol version for compatibility checking",
    )

    frame_id: int = Field(
        ...,
        ge=0,
        description="Monotonically increasing frame counter from source",
    )

    timestamp: float = Field(
        ...,
        gt=0,
        description="UNIX timestamp in seconds when frame was emitted",
    )

    fps: int = Field(
        ...,
        ge=1,
        le=120,
        description="Declared stream FPS",
    )

    image: str = Field(
        ...,
        description="Base64-encoded frame image",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "source": "SlideStream",
                "version": "v1.0",
                "frame_id": 1234,
                "timestamp": 1707321234.567,
                "fps": 30,
                "image": "/9j/4AAQSkZJRg...",
            }
        }
    )


class ControlCommand(str, Enum):
    """
    Operator commands accepted on the control channel.

    Attributes:
        START: Begin a session (or resume a timed-out search)
        STOP: Stop capturing and hand retained frames to the sink
        RESET: Clear the session and search again
        ACKNOWLEDGE: Acknowledge a search timeout and search again
    """

    START = "start"
    STOP = "stop"
    RESET = "reset"
    ACKNOWLEDGE = "acknowledge"


class ControlRequest(BaseModel):
    """Control message as sent over the websocket control channel."""

    command: ControlCommand = Field(
        ...,
        description="Command to execute",
    )
