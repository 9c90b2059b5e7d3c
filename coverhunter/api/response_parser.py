"""Image search API response parsing and validation."""

import json
from pathlib import PurePosixPath
from typing import Any, Dict, List
from urllib.parse import unquote, urlparse

from coverhunter.api.base import ImageDescriptor


class ResponseError(Exception):
    """Response parsing errors."""
    pass


def validate_response(response_content: bytes) -> Dict[str, Any]:
    """
    Validate and decode a JSON API response.

    Args:
        response_content: Raw response bytes

    Returns:
        Decoded JSON object

    Raises:
        ResponseError: If the body is empty, not JSON, or not an object
    """
    if not response_content:
        raise ResponseError("Empty response body received")

    try:
        payload = json.loads(response_content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ResponseError(f"Malformed JSON: {e}")

    if not isinstance(payload, dict):
        raise ResponseError(f"Invalid response: expected JSON object, got {type(payload).__name__}")

    return payload


def extract_error_message(payload: Dict[str, Any]) -> str:
    """
    Extract an API error message from a decoded response.

    Returns:
        Error message, or empty string if the response carries no error
    """
    error = payload.get('error')
    if isinstance(error, dict):
        return str(error.get('message', '')).strip()
    if isinstance(error, str):
        return error.strip()
    return ''


def parse_image_results(payload: Dict[str, Any]) -> List[ImageDescriptor]:
    """
    Parse Google Custom Search image results.

    A response without an ``items`` key means no results.

    Args:
        payload: Decoded JSON object

    Returns:
        List of ImageDescriptor in provider order

    Raises:
        ResponseError: If ``items`` is present but has the wrong shape
    """
    items = payload.get('items')
    if items is None:
        return []
    if not isinstance(items, list):
        raise ResponseError("Invalid response: 'items' is not a list")

    results = []
    for item in items:
        if not isinstance(item, dict):
            raise ResponseError("Invalid response: result item is not an object")
        link = item.get('link')
        if not link:
            # Nothing to download without a link
            continue

        image = item.get('image') or {}
        results.append(ImageDescriptor(
            source_url=link,
            display_name=format_image_name(item.get('title') or link),
            byte_size=_as_int(image.get('byteSize')),
            width=_as_int(image.get('width')),
            height=_as_int(image.get('height')),
            mime_type=item.get('mime') or "Unknown Encoding Format",
        ))

    return results


def format_image_name(title: str) -> str:
    """
    Turn a result title into a readable display name.

    URL titles are reduced to the file stem of their path. Dashes and
    underscores become spaces and the result is title-cased.

    Examples:
        >>> format_image_name('https://x.org/img/super_mario-world.jpg')
        'Super Mario World'
        >>> format_image_name('zelda_box-art')
        'Zelda Box Art'
    """
    text = title.strip()

    parsed = urlparse(text)
    if parsed.scheme in ('http', 'https') and parsed.netloc:
        stem = PurePosixPath(unquote(parsed.path)).stem
        if stem:
            text = stem

    return text.lower().replace('-', ' ').replace('_', ' ').title()


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
