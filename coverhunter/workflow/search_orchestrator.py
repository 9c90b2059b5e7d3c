"""
Search orchestration

Owns the one live search request, dispatches it to the active image
provider, and handles the single interactive retry when the provider
reports a missing credential.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from coverhunter.api.base import ImageDescriptor, ProviderId, ProviderRegistry
from coverhunter.api.error_handler import (
    NoCredentialError,
    ProviderError,
    SearchCancelled,
    categorize_error,
)
from coverhunter.ui.event_bus import EventBus
from coverhunter.ui.events import SearchFailedEvent, SearchStartedEvent
from coverhunter.workflow.cancellation import CancellationToken
from coverhunter.workflow.display import DisplayState

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    def has_credential(self, provider_id: ProviderId) -> bool: ...


class CredentialPrompter(Protocol):
    async def prompt_for_credential(self, provider_id: ProviderId) -> bool: ...


@dataclass
class SearchRequest:
    """A dispatched search; superseded requests have their token cancelled."""
    rom_key: str
    query: str
    provider: ProviderId
    token: CancellationToken


class SearchOrchestrator:
    """
    Runs cancellable searches and publishes their results.

    At most one request is live. Starting a new one cancels the previous
    token, and a request only publishes to the display while its token is
    live and it is still the current request, so a slow stale response can
    never overwrite a newer one.

    Example:
        orchestrator = SearchOrchestrator(registry, settings, display, prompter)
        task = orchestrator.start('mario', '"Super Mario World"')
        await task
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        credentials: CredentialStore,
        display: DisplayState,
        prompter: Optional[CredentialPrompter] = None,
        event_bus: Optional[EventBus] = None,
        default_provider: ProviderId = ProviderId.GOOGLE
    ):
        """
        Args:
            registry: Available image providers
            credentials: Answers whether a provider's credential is configured
            display: Display state receiving results and status
            prompter: Interactive credential entry (None = non-interactive)
            event_bus: Optional bus for search events
            default_provider: Provider used when ``start`` is given none
        """
        self.registry = registry
        self.credentials = credentials
        self.display = display
        self.prompter = prompter
        self.event_bus = event_bus
        self.default_provider = default_provider
        self._current: Optional[SearchRequest] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def current_request(self) -> Optional[SearchRequest]:
        return self._current

    async def search(
        self,
        query: str,
        provider_id: ProviderId,
        token: CancellationToken
    ) -> List[ImageDescriptor]:
        """
        Fetch images for a query, with one credential retry.

        A missing credential pauses for interactive entry once. If the
        user declines, the search yields an empty result rather than an
        error.

        Returns:
            Candidate images (possibly empty)

        Raises:
            SearchCancelled: Token cancelled at any suspension point
            ProviderError: Any other provider failure (not retried)
        """
        provider = self.registry.get(provider_id)
        prompted = False

        while True:
            token.raise_if_cancelled()
            try:
                if provider.requires_credential and not self.credentials.has_credential(provider_id):
                    raise NoCredentialError(f"{provider.name} API key is not set", provider=provider.name)
                return await provider.fetch(query, token)
            except NoCredentialError as e:
                if self.prompter is None:
                    raise
                if prompted:
                    logger.warning(f"{provider.name} credential still missing after retry")
                    return []

                prompted = True
                logger.info(f"{e}, asking for credentials")
                supplied = await token.run(self.prompter.prompt_for_credential(provider_id))
                if not supplied:
                    # TODO: show "search skipped" apart from "No Cover Image Found" in the display list
                    logger.info(f"No {provider.name} credentials entered, showing no results")
                    return []

    def start(
        self,
        rom_key: str,
        query: str,
        provider_id: Optional[ProviderId] = None
    ) -> asyncio.Task:
        """
        Supersede the live request with a new search and run it.

        Must be called on the owning event loop.

        Returns:
            Task resolving to the published images, or None if the search
            was cancelled, superseded or failed
        """
        self.cancel_current()

        provider_id = provider_id or self.default_provider
        request = SearchRequest(rom_key, query, provider_id, CancellationToken(label=rom_key))
        self._current = request

        self.display.begin_search(query)
        if self.event_bus is not None:
            self.event_bus.publish_nowait(SearchStartedEvent(rom_key, query, provider_id.value))

        self._task = asyncio.create_task(self._run(request))
        return self._task

    def cancel_current(self) -> bool:
        """
        Cancel the live request, if any.

        Returns:
            True if a running search was cancelled
        """
        request = self._current
        if request is None or request.token.cancelled:
            return False
        request.token.cancel()
        return self._task is not None and not self._task.done()

    def _is_live(self, request: SearchRequest) -> bool:
        return not request.token.cancelled and self._current is request

    async def _run(self, request: SearchRequest) -> Optional[List[ImageDescriptor]]:
        provider_name = request.provider.value
        try:
            images = await self.search(request.query, request.provider, request.token)
        except SearchCancelled:
            logger.debug(f"Search for '{request.rom_key}' cancelled")
            return None
        except ProviderError as e:
            if not self._is_live(request):
                return None
            category = categorize_error(e)
            logger.warning(f"{provider_name} search failed for '{request.rom_key}': {e}")
            self.display.fail(f"{provider_name}: {e}")
            if self.event_bus is not None:
                self.event_bus.publish_nowait(
                    SearchFailedEvent(request.rom_key, provider_name, category.value, str(e))
                )
            return None
        except Exception as e:
            logger.error(f"Unexpected error searching for '{request.rom_key}': {e}", exc_info=True)
            if self._is_live(request):
                self.display.fail(f"Search failed: {e}")
            return None

        # Results may arrive after a newer selection; never apply them then
        if not self._is_live(request):
            logger.debug(f"Discarding stale results for '{request.rom_key}'")
            return None

        logger.info(f"Found {len(images)} images for '{request.rom_key}' from {provider_name}")
        self.display.publish_results(images, request.query, provider_name)
        return images

    async def shutdown(self) -> None:
        """Cancel the live request and wait for its task to finish."""
        self.cancel_current()
        if self._task is not None and not self._task.done():
            await asyncio.gather(self._task, return_exceptions=True)
