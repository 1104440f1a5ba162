"""Image decoder for hexagonal codes.

Decodes an image back to the original payload by:
1. Compositing onto a white background (transparent regions -> white)
2. Converting to luma and binarizing with adaptive tile thresholds
3. Finding the quiet-zone bounding rectangle
4. Extracting the bounding hexagon from the convex hull of the code
5. Resolving orientation and ring count from the seam corner marks
6. Sampling every slot through the refined perspective transform
7. Parsing header, masks, error correction and checksum

If the image does not decode, the inverted image is tried once, which
covers light codes printed on dark backgrounds.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
import structlog
from PIL import Image, UnidentifiedImageError

from .binarizer import binarize, to_luma
from .bounding_hexagon import detect_bounding_hexagon
from .bounding_rect import detect_bounding_rect
from .constants import CURRENT_VERSION
from .encoder import decode_bits
from .errors import DecodeError, InvalidArgument
from .ring_detector import Detection, detect_rings

logger = structlog.get_logger(__name__)


@dataclass
class DecodeResult:
    """Result of decoding an image.

    Attributes:
        payload: Decoded bytes, or None if decoding failed.
        ring_count: Number of detected rings, 0 if detection failed.
        error: Error message if decoding failed.
    """

    payload: bytes | None
    ring_count: int = 0
    error: str | None = None

    @property
    def data_hex(self) -> str | None:
        return self.payload.hex() if self.payload is not None else None


def detect(binary: np.ndarray, version: int = CURRENT_VERSION) -> Detection:
    """Run the detection pipeline on a binarized image.

    Raises:
        NotFound: If a detection stage exhausts its search.
        GeometryMismatch: If the code outline is not a plausible hexagon.
    """
    rect = detect_bounding_rect(binary)
    hexagon = detect_bounding_hexagon(binary, rect)
    return detect_rings(binary, hexagon, version)


def decode_gray(gray: np.ndarray, version: int = CURRENT_VERSION) -> tuple[bytes, Detection]:
    """Decode a luma image, retrying once on the inverted image.

    Args:
        gray: ``(h, w)`` uint8 luma array.
        version: Format version whose geometry to assume.

    Returns:
        Tuple of (payload, detection).

    Raises:
        DecodeError: If neither the image nor its inverse decodes. The
            error of the first attempt is raised.
    """
    gray = np.asarray(gray, dtype=np.uint8)
    first_error: DecodeError | None = None
    for inverted, candidate in ((False, gray), (True, 255 - gray)):
        try:
            detection = detect(binarize(candidate), version)
            payload = decode_bits(detection.rings, detection.data)
        except DecodeError as e:
            logger.debug("decode_attempt_failed", inverted=inverted, stage=e.stage, error=str(e))
            if first_error is None:
                first_error = e
            continue
        logger.info(
            "decode_success",
            payload_bytes=len(payload),
            ring_count=detection.ring_count,
            inverted=inverted,
        )
        return payload, detection
    raise first_error


def load_gray(image_bytes: bytes) -> np.ndarray:
    """Open PNG/JPEG/WebP bytes as a luma array composited onto white.

    Raises:
        InvalidArgument: If the bytes are not a readable image.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes)).convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidArgument(f"Cannot open image: {e}") from e
    white_bg = Image.new("RGBA", img.size, (255, 255, 255, 255))
    composited = Image.alpha_composite(white_bg, img)
    return to_luma(np.array(composited))


def decode_image(image_bytes: bytes) -> DecodeResult:
    """Decode a hexagonal code from an image.

    Supports any format Pillow reads (PNG, JPEG, WebP, ...).

    Args:
        image_bytes: Raw image bytes.

    Returns:
        DecodeResult with the payload, or with ``error`` set if the image
        could not be opened or did not decode.
    """
    try:
        gray = load_gray(image_bytes)
    except InvalidArgument as e:
        logger.warning("decode_image_open_failed", error=str(e))
        return DecodeResult(payload=None, error=str(e))

    try:
        payload, detection = decode_gray(gray)
    except InvalidArgument as e:
        logger.warning("decode_image_too_small", error=str(e))
        return DecodeResult(payload=None, error=str(e))
    except DecodeError as e:
        logger.warning("decode_failed", stage=e.stage, error=str(e))
        return DecodeResult(payload=None, error=str(e))

    return DecodeResult(payload=payload, ring_count=detection.ring_count)
