"""
Cover image handling for coverhunter.

Converts covers to the canonical PNG format and saves downloaded candidates.
"""

from .converter import (
    CANONICAL_FORMAT,
    ConversionError,
    convert_bytes_to_canonical,
    convert_to_canonical,
    decode,
    encode_canonical,
)
from .downloader import DownloadError, ImageSaver

__all__ = [
    "CANONICAL_FORMAT",
    "ConversionError",
    "convert_bytes_to_canonical",
    "convert_to_canonical",
    "decode",
    "encode_canonical",
    "DownloadError",
    "ImageSaver",
]
