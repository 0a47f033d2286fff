import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from routes.detection_route import router as detection_router
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager that prepares the SQLite database (DATABASE_DIR/detections.db)
    and attaches its initializer to `app.state`. An initializer already set on
    `app.state` (e.g. by tests) is reused.
    """
    db_initializer = getattr(app.state, "db_initializer", None) or AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer
    logging.info("Detections database ready at %s", db_initializer.db_path)
    yield


def create_backend_app() -> FastAPI:
    """
    Create the detections backend that stores diagnosis results.
    """
    app = FastAPI(lifespan=lifespan, title="Plant Disease Detector Backend")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/", response_class=PlainTextResponse)
    async def root_health():
        """Plaintext health check."""
        return "Plant Disease Detector Backend is running!"

    app.include_router(detection_router)

    return app


app = create_backend_app()
