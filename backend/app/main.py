"""FastAPI application factory."""
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import register_error_handlers, router
from app.core.settings import ensure_directories, settings
from app.db.session import engine, init_db
from app.services.localization import LocalizationService, build_service

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(service: Optional[LocalizationService] = None) -> FastAPI:
    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.state.service = service

    @app.on_event("startup")
    def startup() -> None:
        if app.state.service is None:
            ensure_directories()
            init_db()
            app.state.service = build_service(engine, settings)
        logger.info("%s ready (transform provider: %s)", settings.app_name, settings.transform_provider)

    app.include_router(router)

    @app.get("/")
    def health():
        return {"ok": True, "service": settings.app_name}

    return app


app = create_app()
