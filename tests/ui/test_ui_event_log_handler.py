"""Unit tests for EventLogHandler."""

import asyncio
import logging

import pytest

from coverhunter.ui.event_bus import EventBus
from coverhunter.ui.event_log_handler import EventLogHandler, setup_event_logging
from coverhunter.ui.events import LogEntryEvent


class TestEventLogHandler:
    """Test cases for EventLogHandler."""

    @pytest.fixture
    def event_bus(self):
        """Create an EventBus instance for testing."""
        return EventBus()

    @pytest.fixture
    def logger(self):
        """Create a test logger."""
        test_logger = logging.getLogger('test_ui_event_log_handler')
        test_logger.handlers.clear()
        test_logger.setLevel(logging.DEBUG)
        test_logger.propagate = False
        return test_logger

    @pytest.mark.asyncio
    async def test_log_handler_emits_events(self, event_bus, logger):
        """Log records become LogEntryEvents with level and message."""
        received = []
        event_bus.subscribe(LogEntryEvent, received.append)
        event_bus.bind_loop(asyncio.get_running_loop())
        task = asyncio.create_task(event_bus.process_events())

        handler = EventLogHandler(event_bus)
        handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(handler)

        logger.info("Found 3 missing covers.")
        logger.warning("Watch queue full")
        await event_bus.drain()

        await event_bus.stop()
        task.cancel()

        assert [(e.level, e.message) for e in received] == [
            (logging.INFO, "Found 3 missing covers."),
            (logging.WARNING, "Watch queue full"),
        ]

    @pytest.mark.asyncio
    async def test_handler_level_filters(self, event_bus, logger):
        """Records below the handler level are not published."""
        received = []
        event_bus.subscribe(LogEntryEvent, received.append)
        event_bus.bind_loop(asyncio.get_running_loop())
        task = asyncio.create_task(event_bus.process_events())

        logger.addHandler(EventLogHandler(event_bus, level=logging.WARNING))
        logger.debug("noise")
        logger.error("Failed to convert mario.jpg")
        await event_bus.drain()

        await event_bus.stop()
        task.cancel()

        assert len(received) == 1
        assert received[0].level == logging.ERROR

    def test_setup_event_logging_attaches_to_root(self, event_bus):
        """setup_event_logging installs a formatted handler on the root logger."""
        handler = setup_event_logging(event_bus, level=logging.DEBUG, format_string='%(levelname)s %(message)s')
        try:
            assert handler in logging.root.handlers
            assert handler.level == logging.DEBUG
            record = logging.LogRecord('x', logging.INFO, __file__, 1, 'hello', None, None)
            assert handler.format(record) == 'INFO hello'
        finally:
            logging.root.removeHandler(handler)
