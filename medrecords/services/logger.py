import json
import logging

from medrecords.core.config import settings

_events_logger = logging.getLogger("medrecords.events")


def configure_logging(level: str = None):
    """
    Configure root logging once for the API process and workers.
    """
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def log_event(event: str, data: dict):
    """
    Logs structured event info if enabled.
    """
    if not settings.DEBUG_EVENTS:
        return

    _events_logger.info("%s: %s", event, json.dumps(data, indent=2, default=str))
