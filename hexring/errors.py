"""Exception hierarchy for hexring.

Two families exist:

* ``InvalidArgument`` signals a caller bug (bad payload, bad index, bad
  geometry parameters). It subclasses ``ValueError`` so callers that
  already guard against ``ValueError`` keep working.
* ``DecodeError`` and its subclasses mean "this image did not decode".
  They are recoverable: retry detection on another frame.
"""

from __future__ import annotations


class HexRingError(Exception):
    """Base class for all hexring errors."""


class InvalidArgument(HexRingError, ValueError):
    """Malformed input to a constructor or operation."""


class DecodeError(HexRingError):
    """An image or bitstream could not be decoded."""

    stage: str = "decode"


class NotFound(DecodeError):
    """A detection search exhausted its search space."""

    def __init__(self, stage: str, message: str | None = None) -> None:
        self.stage = stage
        super().__init__(message or f"Not found. Failed at: {stage}.")


class GeometryMismatch(DecodeError):
    """The detected shape is not a plausible hexagon."""

    stage = "bounding hexagon detection"


class FormatError(DecodeError):
    """The sampled bitstream is inconsistent or corrupted."""

    stage = "format parsing"


class ECCError(FormatError):
    """Error correction could not recover a codeword."""
