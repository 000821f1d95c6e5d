import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI
from starlette.middleware.cors import CORSMiddleware

from bootstrap import run_bootstrap
from config import Settings
from database import build_engine, build_session_factory
from emailer import Mailer
from encryption import FieldEncryptor
from errors import install_error_handlers
from routers import (
    account_auth,
    announcements,
    events,
    food_qr,
    hackathon_submissions,
    judges,
    notifications,
    qr,
    shortlist,
    submissions,
    teams,
)
from storage import S3Storage
from time_utils import configure_timezone

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    mailer: Optional[Mailer] = None,
    storage: Optional[S3Storage] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_timezone(settings.timezone)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings.database_url)
        session_factory = build_session_factory(engine)
        app.state.settings = settings
        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.mailer = mailer or Mailer(settings.smtp_primary, settings.smtp_secondary)
        app.state.storage = storage or S3Storage(settings.s3, settings.max_upload_bytes)
        app.state.encryptor = FieldEncryptor(settings.encryption_key, settings.jwt_secret_key)

        run_bootstrap(engine, session_factory, settings)
        logger.info("Application startup complete")
        try:
            yield
        finally:
            engine.dispose()
            logger.info("Database engine disposed")

    app = FastAPI(title="End_Loop Hackathon API", version="1.0.0", lifespan=lifespan)
    install_error_handlers(app)

    api_router = APIRouter(prefix="/api")
    for module in (
        account_auth,
        events,
        announcements,
        teams,
        notifications,
        submissions,
        shortlist,
        judges,
        qr,
        food_qr,
        hackathon_submissions,
    ):
        api_router.include_router(module.router)

    @api_router.get("/health")
    def health():
        return {"success": True, "message": "OK"}

    app.include_router(api_router)

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


def main() -> None:
    import uvicorn

    uvicorn.run(
        "server:create_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
