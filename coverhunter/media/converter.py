"""
Canonical cover encoding.

Decodes any image Pillow understands and writes it as a single-frame PNG.
Output is written to a temporary file and moved over the final path only
after the encoder succeeds, so a crash never leaves a truncated cover.
"""

import logging
import os
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

CANONICAL_FORMAT = 'PNG'

# Modes PNG can store directly; everything else is converted first
_PNG_MODES = {'1', 'L', 'LA', 'I', 'I;16', 'P', 'RGB', 'RGBA'}


class ConversionError(Exception):
    """Raised when an image cannot be decoded or encoded."""
    pass


def decode(stream: BinaryIO) -> Image.Image:
    """
    Decode the first frame of an image stream.

    Args:
        stream: Binary stream positioned at the start of the image

    Returns:
        Fully loaded Pillow image, independent of the stream

    Raises:
        ConversionError: If the data is not a decodable image
    """
    try:
        with Image.open(stream) as img:
            # Animated formats (GIF, WebP) keep only the first frame
            img.seek(0)
            img.load()
            frame = img.copy()
    except (UnidentifiedImageError, OSError, ValueError, EOFError) as e:
        raise ConversionError(f"Unsupported or corrupt image: {e}")

    if frame.mode not in _PNG_MODES:
        frame = frame.convert('RGBA' if 'A' in frame.getbands() else 'RGB')
    return frame


def encode_canonical(image: Image.Image, output_path: Path) -> None:
    """
    Encode an image as PNG at ``output_path`` via temp file + atomic rename.

    Raises:
        ConversionError: If encoding or the final rename fails
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = output_path.with_suffix(output_path.suffix + '.tmp')
    try:
        with open(temp_path, 'wb') as f:
            image.save(f, format=CANONICAL_FORMAT)
        os.replace(temp_path, output_path)
    except (OSError, ValueError) as e:
        # Clean up temp file on error
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                logger.warning(f"Could not remove temporary file '{temp_path}'")
        raise ConversionError(f"Failed to write '{output_path}': {e}")


def convert_to_canonical(source_path: Path, target_path: Path) -> Tuple[bool, Optional[str]]:
    """
    Convert an image file to the canonical cover format.

    Args:
        source_path: Image in any supported format
        target_path: Destination PNG path

    Returns:
        Tuple of (success: bool, error_message: str or None)

    Example:
        ok, error = convert_to_canonical(Path('covers/mario.jpg'), Path('covers/mario.png'))
    """
    logger.info(f"Attempting to convert '{source_path}' to PNG at '{target_path}'")

    try:
        with open(source_path, 'rb') as f:
            image = decode(f)
        encode_canonical(image, target_path)
    except FileNotFoundError as e:
        logger.error(f"Source image file not found during conversion: '{source_path}'")
        return False, f"Source file not found: {e}"
    except ConversionError as e:
        logger.error(f"Error converting image '{source_path}' to PNG: {e}")
        return False, str(e)
    except OSError as e:
        logger.error(f"Could not read '{source_path}': {e}")
        return False, f"Could not read file: {e}"

    logger.info(f"Successfully converted '{source_path}' to '{target_path}'")
    return True, None


def convert_bytes_to_canonical(image_data: bytes, target_path: Path) -> Tuple[bool, Optional[str]]:
    """
    Convert in-memory image data to the canonical cover format.

    Returns:
        Tuple of (success: bool, error_message: str or None)
    """
    try:
        image = decode(BytesIO(image_data))
        encode_canonical(image, target_path)
    except ConversionError as e:
        logger.error(f"Error converting downloaded image to PNG: {e}")
        return False, str(e)

    logger.info(f"Successfully saved image to '{target_path}'")
    return True, None
