"""Google Custom Search image provider."""

import logging
import time
from typing import TYPE_CHECKING, Any, Dict, List
from urllib.parse import urlencode

import httpx

from coverhunter.api.base import ImageDescriptor, ImageProvider, ProviderId
from coverhunter.api.error_handler import (
    MalformedResponseError,
    NetworkError,
    NoCredentialError,
    ProviderTimeoutError,
    handle_http_status,
)
from coverhunter.api.response_parser import (
    ResponseError,
    extract_error_message,
    parse_image_results,
    validate_response,
)
from coverhunter.workflow.query import build_api_query

if TYPE_CHECKING:
    from coverhunter.config.settings import SettingsStore
    from coverhunter.workflow.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class GoogleImageProvider(ImageProvider):
    """
    Image search through the Google Custom Search JSON API.

    Needs an API key and a programmable search engine ID, both read from
    the settings store on every request so that credentials entered
    interactively take effect on the retry.
    """

    BASE_URL = "https://www.googleapis.com/customsearch/v1"
    MAX_RESULTS = 10

    provider_id = ProviderId.GOOGLE
    requires_credential = True

    def __init__(
        self,
        settings: "SettingsStore",
        client: httpx.AsyncClient,
        request_timeout: float = 30.0
    ):
        """
        Args:
            settings: Settings store holding the Google credentials
            client: Shared httpx.AsyncClient
            request_timeout: Read timeout in seconds
        """
        self.settings = settings
        self.client = client
        self._timeout = httpx.Timeout(
            connect=5.0,
            read=request_timeout,
            write=5.0,
            pool=5.0
        )

    def _build_params(self, query: str) -> Dict[str, Any]:
        """
        Build request parameters.

        Raises:
            ValueError: If the query is empty
            NoCredentialError: If the API key or search engine ID is missing
        """
        query = (query or '').strip()
        if not query:
            raise ValueError("Search query cannot be empty")

        api_key = self.settings.google_api_key
        if not api_key:
            logger.info("Google API key is not set in settings")
            raise NoCredentialError(
                "Google API Key is not set. Please configure it in API Settings.",
                provider=self.name
            )

        engine_id = self.settings.google_search_engine_id
        if not engine_id:
            raise NoCredentialError(
                "Google Search Engine ID is not configured.",
                provider=self.name
            )

        return {
            'q': build_api_query(query),
            'cx': engine_id,
            'num': self.MAX_RESULTS,
            'searchType': 'image',
            'key': api_key,
        }

    def _build_redacted_url(self, params: Dict[str, Any]) -> str:
        """Build URL with the API key redacted for logging."""
        redacted_params = params.copy()
        redacted_params['key'] = 'redacted'
        return f"{self.BASE_URL}?{urlencode(redacted_params)}"

    async def fetch(self, query: str, token: "CancellationToken") -> List[ImageDescriptor]:
        """
        Fetch up to ten candidate images for a query.

        Args:
            query: Search text
            token: Cancellation token for this request

        Returns:
            Candidate images, possibly empty

        Raises:
            NoCredentialError: API key or engine ID missing
            RateLimitedError, ForbiddenError, NetworkError,
            ProviderTimeoutError, MalformedResponseError: Provider failures
            SearchCancelled: Token cancelled during the request
        """
        token.raise_if_cancelled()
        params = self._build_params(query)

        logger.info(f"Google API Request: GET {self._build_redacted_url(params)}")

        start_time = time.time()
        try:
            response = await token.run(
                self.client.get(self.BASE_URL, params=params, timeout=self._timeout)
            )
        except httpx.TimeoutException:
            logger.warning("Google API request timed out")
            raise ProviderTimeoutError(
                "Google API request timed out. Please try again.",
                provider=self.name
            )
        except httpx.HTTPError as e:
            logger.warning(f"Google API network error: {e}")
            raise NetworkError(
                f"Google API error: {e}. Please check your internet connection.",
                provider=self.name
            )

        elapsed_time = time.time() - start_time
        logger.info(f"Google API Response Status: {response.status_code} in {elapsed_time:.2f}s")

        handle_http_status(response.status_code, provider=self.name)

        try:
            payload = validate_response(response.content)
        except ResponseError as e:
            raise MalformedResponseError(
                f"Failed to parse Google API response. The service might be experiencing issues. ({e})",
                provider=self.name
            )

        error_msg = extract_error_message(payload)
        if error_msg:
            raise MalformedResponseError(f"Google API error: {error_msg}", provider=self.name)

        try:
            results = parse_image_results(payload)
        except ResponseError as e:
            raise MalformedResponseError(str(e), provider=self.name)

        logger.info(f"Google API successfully parsed {len(results)} images")
        return results
