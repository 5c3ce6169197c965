import logging
import threading
import time

from google.api_core.exceptions import RetryError, ServiceUnavailable

from medrecords.core.config import settings

logger = logging.getLogger(__name__)


def start_reconciler(registry, interval: float = None):
    """Recompute doctors' activePatientCount from permission documents periodically."""
    thread = threading.Thread(
        target=_run_reconciler,
        args=(registry, interval or settings.RECONCILE_INTERVAL_SECONDS),
        daemon=True,
    )
    thread.start()
    return thread


def _run_reconciler(registry, interval: float):
    while True:
        try:
            registry.reconcile_counters()
        except (RetryError, ServiceUnavailable) as e:
            logger.warning("Network error in reconcile loop: %s. Retrying next cycle.", e)
        except Exception:
            logger.exception("Error in reconcile job")

        time.sleep(interval)
