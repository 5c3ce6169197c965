"""Explicit construction of the service graph.

Nothing here is a module-level singleton: the API builds one ``Services``
at startup and stores it on ``app.state``; tests build their own.
"""
import time
from dataclasses import dataclass
from typing import Callable

from medrecords.core.config import Settings, settings
from medrecords.services.access_requests import AccessRequestService
from medrecords.services.cache import CachedDocumentStore, TTLCache
from medrecords.services.doctor_service import DoctorService
from medrecords.services.notification_dispatcher import DirectDispatcher, QueuedDispatcher
from medrecords.services.patient_service import PatientService
from medrecords.services.permission_registry import PermissionRegistry
from medrecords.services.push_client import TokenResolver


@dataclass
class Services:
    store: CachedDocumentStore
    dispatcher: QueuedDispatcher
    direct_dispatcher: DirectDispatcher
    registry: PermissionRegistry
    patients: PatientService
    doctors: DoctorService
    access_requests: AccessRequestService

    def shutdown(self):
        self.dispatcher.stop()


def build_services(
    raw_store,
    push_client,
    config: Settings = settings,
    clock: Callable[[], float] = time.time,
    background: bool = True,
) -> Services:
    cache = TTLCache(default_ttl=config.CACHE_TTL_SECONDS, clock=clock)
    store = CachedDocumentStore(raw_store, cache, search_ttl=config.SEARCH_CACHE_TTL_SECONDS)
    resolver = TokenResolver(store)

    dispatcher = QueuedDispatcher(
        store,
        push_client,
        resolver,
        max_retries=config.NOTIFICATION_MAX_RETRIES,
        retry_delay=config.NOTIFICATION_RETRY_DELAY_SECONDS,
        poll_interval=config.NOTIFICATION_POLL_INTERVAL_SECONDS,
        clock=clock,
        background=background,
    )
    doctors = DoctorService(store, dispatcher)

    return Services(
        store=store,
        dispatcher=dispatcher,
        direct_dispatcher=DirectDispatcher(push_client, resolver),
        registry=PermissionRegistry(store, dispatcher),
        patients=PatientService(store),
        doctors=doctors,
        access_requests=AccessRequestService(store, doctors),
    )
