from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from medrecords.api.routes.router import api_router
from medrecords.core import firebase
from medrecords.core.config import settings
from medrecords.core.errors import MedRecordsError
from medrecords.services.container import Services, build_services
from medrecords.services.document_store import FirestoreDocumentStore
from medrecords.services.logger import configure_logging
from medrecords.services.push_client import FcmPushClient
from medrecords.triggers.handlers import TriggerHandlers
from medrecords.workers.reconcile_worker import start_reconciler
from medrecords.workers.trigger_worker import TriggerWorker


def create_app(services: Services = None) -> FastAPI:
    """
    Build the API. Passing ``services`` skips Firebase initialization and
    the background workers (used by the test suite).
    """
    app = FastAPI(title="Medical Records Backend")
    app.state.services = services
    app.state.trigger_worker = None

    @app.on_event("startup")
    def startup():
        """Initialize Firebase and start the notification and counter workers."""
        configure_logging()
        if app.state.services is not None:
            return

        firebase.init_firebase(timeout=settings.PUSH_TIMEOUT_SECONDS)
        built = build_services(
            FirestoreDocumentStore(firebase.get_db()),
            FcmPushClient(app=firebase.get_app()),
        )
        built.dispatcher.start()
        app.state.services = built

        if settings.ENABLE_RECONCILE_WORKER:
            start_reconciler(built.registry)

        if settings.ENABLE_TRIGGER_WORKER:
            worker = TriggerWorker(
                firebase.get_db(),
                TriggerHandlers(built.direct_dispatcher, built.store),
            )
            worker.start()
            app.state.trigger_worker = worker

    @app.on_event("shutdown")
    def shutdown():
        if app.state.trigger_worker is not None:
            app.state.trigger_worker.stop()
        if app.state.services is not None:
            app.state.services.shutdown()

    @app.exception_handler(MedRecordsError)
    async def handle_domain_error(request: Request, exc: MedRecordsError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/")
    async def root():
        return {"message": "Medical Records Backend is running"}

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(api_router)
    return app


app = create_app()
