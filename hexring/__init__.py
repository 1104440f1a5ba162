"""Hexring -- encoder/decoder for hexagonal ring visual codes.

Encodes up to 256 bytes as concentric hexagon rings of stroked slots,
protected by Reed-Solomon parity and a CRC checksum. The decoder finds the
code in a photo or screenshot via its quiet zone and outer hexagon, reads
orientation and ring count from the marks in the seam corner, and samples
every slot through a perspective transform.
"""

__version__ = "0.1.0"
