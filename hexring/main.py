"""Hexring microservice -- FastAPI application.

Endpoints:
    POST /encode        -- Encode hex data to PNG image
    POST /encode/svg    -- Encode hex data to SVG string
    POST /decode        -- Decode image to hex data
    GET  /health        -- Health check
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from . import __version__
from .decoder import decode_image
from .encoder import HexCode, encode
from .renderer import render_png, render_svg

structlog.configure(
    processors=[
        structlog.dev.ConsoleRenderer(),
    ],
)

logger = structlog.get_logger(__name__)

app = FastAPI(
    title="hexring",
    description="Encoder/decoder for hexagonal ring visual codes",
    version=__version__,
)

MAX_IMAGE_BYTES = 10 * 1024 * 1024
SUPPORTED_IMAGE_TYPES = ("image/png", "image/jpeg", "image/webp")


# --------------------------------------------------------------------------
# Request / Response models
# --------------------------------------------------------------------------


class EncodeRequest(BaseModel):
    """Request body for /encode and /encode/svg."""

    data_hex: str = Field(
        ...,
        description="Hex-encoded payload, 1-256 bytes",
        examples=["deadbeefcafebabe"],
    )
    error_correction_factor: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Minimum parity relative to the payload size (default 0.5)",
    )
    size: int = Field(
        default=512,
        ge=64,
        le=2048,
        description="Output image size in pixels (square)",
    )
    color: str = Field(
        default="#000000",
        description="Stroke color of the code",
    )
    background: str = Field(
        default="#ffffff",
        description="Background color",
    )
    rotation: float = Field(
        default=0.0,
        description="Clockwise rotation in degrees",
    )


class DecodeResponse(BaseModel):
    """Response body for /decode."""

    data_hex: str | None = Field(
        description="Decoded hex data, or null if decode failed",
    )
    ring_count: int = Field(
        default=0,
        description="Number of detected rings, 0 if detection failed",
    )
    error: str | None = Field(
        default=None,
        description="Error message if decode failed",
    )


class HealthResponse(BaseModel):
    """Response body for /health."""

    status: str
    service: str
    version: str


# --------------------------------------------------------------------------
# Endpoints
# --------------------------------------------------------------------------


def _encode_request(request: EncodeRequest) -> HexCode:
    try:
        payload = bytes.fromhex(request.data_hex)
    except ValueError as e:
        raise ValueError(f"Invalid hex data: {e}") from e
    return encode(payload, request.error_correction_factor)


@app.post(
    "/encode",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "PNG-encoded code"},
        422: {"description": "Invalid input"},
    },
)
async def encode_png(request: EncodeRequest) -> Response:
    """Encode hex data into a PNG image."""
    try:
        code = _encode_request(request)
        png_bytes = render_png(
            code, request.size, request.color, request.background, request.rotation
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error("encode_png_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Encoding failed")

    return Response(content=png_bytes, media_type="image/png")


@app.post(
    "/encode/svg",
    response_class=Response,
    responses={
        200: {
            "content": {"image/svg+xml": {}},
            "description": "SVG-encoded code",
        },
        422: {"description": "Invalid input"},
    },
)
async def encode_svg_endpoint(request: EncodeRequest) -> Response:
    """Encode hex data into an SVG image."""
    try:
        code = _encode_request(request)
        svg_content = render_svg(
            code, request.size, request.color, request.background, request.rotation
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error("encode_svg_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Encoding failed")

    return Response(content=svg_content, media_type="image/svg+xml")


@app.post("/decode", response_model=DecodeResponse)
async def decode_endpoint(file: UploadFile = File(...)) -> DecodeResponse:
    """Decode an image back to hex data."""
    if file.content_type and file.content_type not in SUPPORTED_IMAGE_TYPES:
        raise HTTPException(
            status_code=422,
            detail=f"Unsupported image type: {file.content_type}. Use PNG, JPEG, or WebP.",
        )

    image_bytes = await file.read()
    if len(image_bytes) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Image too large (max 10MB)")

    result = decode_image(image_bytes)
    return DecodeResponse(
        data_hex=result.data_hex,
        ring_count=result.ring_count,
        error=result.error,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint for Docker and load balancer probes."""
    return HealthResponse(
        status="healthy",
        service="hexring",
        version=__version__,
    )
