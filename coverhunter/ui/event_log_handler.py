"""Logging handler that emits log records to the event bus.

Lets a UI show a live log view (the "debug window") without knowing
anything about the logging configuration.
"""

import logging
from datetime import datetime
from typing import Optional

from coverhunter.ui.event_bus import EventBus
from coverhunter.ui.events import LogEntryEvent


class EventLogHandler(logging.Handler):
    """Log handler that publishes LogEntryEvent instances.

    Safe to call from any thread: delivery goes through
    ``EventBus.publish_sync``.
    """

    def __init__(self, event_bus: EventBus, level: int = logging.NOTSET):
        super().__init__(level)
        self.event_bus = event_bus

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEntryEvent(
                level=record.levelno,
                message=self.format(record),
                timestamp=datetime.fromtimestamp(record.created)
            )
            self.event_bus.publish_sync(event)
        except Exception:
            # Never let logging failures reach the caller
            self.handleError(record)


def setup_event_logging(
    event_bus: EventBus,
    level: int = logging.INFO,
    format_string: Optional[str] = None
) -> EventLogHandler:
    """Create an EventLogHandler and attach it to the root logger.

    Args:
        event_bus: The event bus to publish log events to
        level: Minimum logging level (default: INFO)
        format_string: Optional custom format string

    Returns:
        The configured EventLogHandler instance
    """
    handler = EventLogHandler(event_bus, level=level)
    handler.setFormatter(logging.Formatter(format_string or '%(asctime)s [%(name)s] - %(message)s'))
    logging.root.addHandler(handler)
    return handler
