"""
Interactive console prompts

Provides confirmation prompts, text input, and the interactive credential
prompt used when a provider reports a missing API key.
"""

import asyncio
import logging
import threading
from typing import Callable, Optional

from coverhunter.api.base import ProviderId
from coverhunter.config.settings import SettingsStore

logger = logging.getLogger(__name__)

# Only one prompt may own the terminal at a time
_prompt_lock = threading.Lock()


class PromptSystem:
    """
    Interactive prompt system for user decisions

    Example:
        prompts = PromptSystem()

        if prompts.confirm("Overwrite mario.png?", default='n'):
            ...

        key = prompts.input_text("Google API key")
    """

    def __init__(self, input_func: Callable[[str], str] = input):
        """
        Args:
            input_func: Line reader, replaceable for tests
        """
        self._input = input_func

    def confirm(self, message: str, default: Optional[str] = None) -> bool:
        """
        Yes/no confirmation prompt

        Args:
            message: Prompt message
            default: 'y' | 'n' | None (no default)

        Returns:
            True for yes, False for no (also on Ctrl-C / EOF)
        """
        if default is None:
            prompt_str = f"{message} [y/n]: "
        elif default.lower() == 'y':
            prompt_str = f"{message} [Y/n]: "
        elif default.lower() == 'n':
            prompt_str = f"{message} [y/N]: "
        else:
            raise ValueError(f"Invalid default: {default}. Must be 'y', 'n', or None")

        with _prompt_lock:
            while True:
                try:
                    response = self._input(prompt_str).strip().lower()
                except (KeyboardInterrupt, EOFError):
                    logger.info("User interrupted prompt")
                    print("\nOperation cancelled")
                    return False

                if not response:
                    if default is None:
                        print("Please enter 'y' or 'n'")
                        continue
                    response = default.lower()

                if response in ('y', 'yes'):
                    logger.debug(f"User confirmed: {message}")
                    return True
                if response in ('n', 'no'):
                    logger.debug(f"User declined: {message}")
                    return False
                print("Please enter 'y' or 'n'")

    def input_text(
        self,
        message: str,
        default: Optional[str] = None,
        validator: Optional[Callable[[str], bool]] = None,
        allow_empty: bool = False
    ) -> Optional[str]:
        """
        Text input with optional validation

        Args:
            message: Prompt message
            default: Default value (shown in brackets)
            validator: Returns True if the input is acceptable
            allow_empty: Return '' for an empty line instead of re-asking

        Returns:
            The entered text, or None if the user aborted (Ctrl-C / EOF)
        """
        prompt_str = f"{message} [{default}]: " if default is not None else f"{message}: "

        with _prompt_lock:
            while True:
                try:
                    response = self._input(prompt_str).strip()
                except (KeyboardInterrupt, EOFError):
                    logger.info("User interrupted prompt")
                    print("\nOperation cancelled")
                    return None

                if not response:
                    if default is not None:
                        response = default
                    elif allow_empty:
                        return ''
                    else:
                        print("Input cannot be empty")
                        continue

                if validator is not None and not validator(response):
                    print("Invalid input. Please try again.")
                    continue

                return response


class ConsoleCredentialPrompter:
    """
    Asks the user for missing provider credentials on the console.

    The blocking prompt runs in a worker thread so the event loop keeps
    serving the watcher and UI updates while the user types.
    """

    def __init__(self, settings: SettingsStore, prompts: Optional[PromptSystem] = None):
        self.settings = settings
        self.prompts = prompts or PromptSystem()

    async def prompt_for_credential(self, provider_id: ProviderId) -> bool:
        """
        Returns:
            True if the user supplied credentials and they were saved
        """
        return await asyncio.to_thread(self._prompt_blocking, provider_id)

    def _prompt_blocking(self, provider_id: ProviderId) -> bool:
        print(f"\n{provider_id.value} API key is not set.")
        if not self.prompts.confirm("Would you like to configure your API keys now?", default='y'):
            logger.info("User chose not to configure API keys")
            return False

        api_key = self.prompts.input_text(f"{provider_id.value} API key")
        if not api_key:
            return False

        engine_id = self.prompts.input_text(
            "Search engine ID",
            default=self.settings.google_search_engine_id or None
        )
        if engine_id is None:
            return False

        return self.settings.set_credential(provider_id, api_key, search_engine_id=engine_id)
