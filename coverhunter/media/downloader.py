"""
Candidate image saver.

Downloads a chosen search result and stores it as the canonical PNG cover.
"""

import asyncio
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

import httpx
from PIL import Image

from coverhunter import __version__
from coverhunter.media.converter import convert_bytes_to_canonical

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """Base exception for download errors."""
    pass


class ImageSaver:
    """
    Downloads candidate covers and saves them as PNG.

    Features:
    - HTTP download with configurable timeout
    - Retry with exponential backoff on transport errors
    - Image validation with Pillow before anything touches disk
    - Existing covers are kept unless overwrite is requested
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = 30.0,
        max_retries: int = 3,
        min_width: int = 16,
        min_height: int = 16
    ):
        """
        Args:
            client: httpx.AsyncClient for HTTP requests
            timeout: HTTP request timeout in seconds
            max_retries: Maximum number of download attempts
            min_width: Minimum acceptable image width in pixels
            min_height: Minimum acceptable image height in pixels
        """
        self.client = client
        self.timeout = timeout
        self.max_retries = max_retries
        self.min_width = min_width
        self.min_height = min_height

    async def save(
        self,
        url: str,
        output_path: Path,
        overwrite: bool = False
    ) -> Tuple[bool, Optional[str]]:
        """
        Download an image and save it as PNG at ``output_path``.

        Args:
            url: Image URL
            output_path: Destination cover path (``.png``)
            overwrite: Replace an existing cover

        Returns:
            Tuple of (success: bool, error_message: str or None)
        """
        if output_path.exists() and not overwrite:
            logger.info(f"Not overwriting existing file '{output_path}'")
            return False, f"File '{output_path.name}' already exists"

        logger.info(f"Attempting to save image from {url} to '{output_path}'")

        for attempt in range(self.max_retries):
            try:
                image_data = await self._download(url)
            except httpx.HTTPStatusError as e:
                # Server answered; retrying will not change the answer
                return False, f"Failed to download image. HTTP Status: {e.response.status_code}"
            except (httpx.TransportError, DownloadError) as e:
                if attempt == self.max_retries - 1:
                    return False, f"Download failed after {self.max_retries} attempts: {e}"
                delay = 2 ** attempt
                logger.warning(f"Download attempt {attempt + 1} failed ({e}); retrying in {delay}s")
                await asyncio.sleep(delay)
                continue

            is_valid, validation_error = self._validate_image_data(image_data)
            if not is_valid:
                return False, f"Validation failed: {validation_error}"

            return await asyncio.to_thread(convert_bytes_to_canonical, image_data, output_path)

        return False, "Download failed (max retries exceeded)"

    async def _download(self, url: str) -> bytes:
        """
        Download raw bytes from URL.

        Raises:
            httpx.HTTPError: If the request fails
            DownloadError: If the response is not an image
        """
        response = await self.client.get(
            url,
            timeout=self.timeout,
            follow_redirects=True,
            headers={'User-Agent': f'coverhunter/{__version__}'}
        )
        response.raise_for_status()

        content_type = response.headers.get('Content-Type', '')
        allowed_types = ['image/', 'application/octet-stream', 'binary/octet-stream']
        if content_type and not any(content_type.startswith(t) for t in allowed_types):
            raise DownloadError(f"Invalid content type: {content_type}")

        if not response.content:
            raise DownloadError("Empty response body")

        return response.content

    def _validate_image_data(self, image_data: bytes) -> Tuple[bool, Optional[str]]:
        """
        Validate image data using Pillow.

        Returns:
            Tuple of (is_valid: bool, error_message: str or None)
        """
        try:
            img = Image.open(BytesIO(image_data))
            img.verify()

            # Reopen to get dimensions (verify() invalidates the image)
            img = Image.open(BytesIO(image_data))
            width, height = img.size
        except Exception as e:
            return False, f"Invalid image: {e}"

        if width < self.min_width or height < self.min_height:
            return False, (
                f"Image too small: {width}x{height} "
                f"(minimum: {self.min_width}x{self.min_height})"
            )

        return True, None
