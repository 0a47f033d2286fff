import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from routes.chat_ws import router as chat_router
from routes.diagnosis_route import router as diagnosis_router
from services.chat.conversation_controller import ConversationController
from services.diagnosis.analysis_client import AnalysisClient
from services.openai.capability import OpenAIPlantCapability
from services.persistence.detection_client import DetectionClient
from utils.app_config import AppConfig

load_dotenv()  # Load environment variables from .env file if present


async def _close_quietly(client) -> None:
    """Close a client exposing a close/aclose method, ignoring shutdown errors."""
    if client is None:
        return
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:
        logging.warning("Error while closing %s: %s", type(client).__name__, exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the OpenAI async client and the plant diagnosis capability built on it
      - the analysis client and the single conversation controller
      - the detections backend client
    and attach them to `app.state`. Services already placed on `app.state`
    by `create_app` are used as given.
    """
    state = app.state
    config: AppConfig = getattr(state, "config", None) or AppConfig.from_env()
    state.config = config

    if getattr(state, "capability", None) is None:
        try:
            state.openai_client = AsyncOpenAI(api_key=config.openai_api_key)
        except Exception as exc:
            raise RuntimeError("Failed to initialize OpenAI Async client") from exc
        state.capability = OpenAIPlantCapability(
            state.openai_client,
            analysis_model=config.analysis_model,
            chat_model=config.chat_model,
        )

    if getattr(state, "detection_client", None) is None:
        state.detection_client = DetectionClient(config.detections_api_url, timeout=config.detections_timeout)

    state.analysis_client = AnalysisClient(state.capability)
    state.chat_controller = ConversationController(state.capability)
    state.latest_diagnosis = None
    state.persist_status = {}
    state.background_tasks = set()

    try:
        yield
    finally:
        # Pending detection saves complete before the clients close.
        if state.background_tasks:
            await asyncio.gather(*state.background_tasks, return_exceptions=True)
        await _close_quietly(state.detection_client)
        await _close_quietly(getattr(state, "openai_client", None))


def create_app(
    config: Optional[AppConfig] = None,
    capability=None,
    detection_client: Optional[DetectionClient] = None,
) -> FastAPI:
    """
    Create and configure the plant disease diagnosis application.

    Args:
        config: Settings to use instead of reading the environment.
        capability: AI capability to use instead of an OpenAI-backed one.
        detection_client: Detections backend client to use instead of building one.
    """
    app = FastAPI(lifespan=lifespan, title="Plant Disease Detector")
    app.state.config = config
    app.state.capability = capability
    app.state.detection_client = detection_client

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies the AI capability and chat state.
        """
        state = request.app.state
        controller = getattr(state, "chat_controller", None)
        return {
            "ok": True,
            "openai_available": getattr(state, "capability", None) is not None,
            "chat_ready": bool(controller and controller.ready),
        }

    app.include_router(diagnosis_router)
    app.include_router(chat_router)

    return app


app = create_app()
