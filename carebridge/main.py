import uuid

from fastapi import FastAPI, Request
from .config import get_settings
from .logging_config import configure_logging
from .database import init_db, get_sessionmaker
from .auth import ensure_default_admin
from .api.health import router as health_router
from .api.auth import router as auth_router
from .api.cron import router as cron_router
from .api.patients import router as patients_router
from .api.reminders import router as reminders_router
from .api.transfers import router as transfers_router


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(title="CareBridge Care Coordination", version="0.1.0")

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.on_event("startup")
    def startup() -> None:
        init_db()
        SessionLocal = get_sessionmaker()
        db = SessionLocal()
        try:
            ensure_default_admin(db)
        finally:
            db.close()

    app.include_router(cron_router, prefix="/api")
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(patients_router, prefix="/api/v1")
    app.include_router(reminders_router, prefix="/api/v1")
    app.include_router(transfers_router, prefix="/api/v1")

    return app


app = create_app()
