import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError

from . import __version__
from .config import Settings, get_settings
from .constants import MISSING_CHAT_ID_TEXT
from .exceptions import AudioError, SignatureError
from .factory import Services, build_services
from .line import LineEvent, LineWebhookBody, verify_signature
from .models import InboundEvent, OutboundMessage, ReplyBatch

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    conversations: int


class AudioFileRequest(BaseModel):
    text: Optional[str] = None
    pageId: Optional[str] = None


async def handle_line_event(services: Services, event: LineEvent) -> None:
    """
    Route one LINE webhook event through the dialogue controller and send
    the reply, if any. Non-text events are ignored.
    """
    if not event.is_text_message:
        logger.debug(f"Skipping non-text event of type {event.type!r}")
        return

    chat_id = event.source.chat_id
    if not chat_id:
        logger.error("Chat ID not found. Cannot process the event.")
        batch: Optional[ReplyBatch] = ReplyBatch(
            conversation_id="unknown",
            messages=[OutboundMessage(text=MISSING_CHAT_ID_TEXT)],
        )
    else:
        logger.info(f"User input received from {chat_id}: {event.message.text!r}")
        batch = await services.controller.handle(
            InboundEvent(
                conversation_id=chat_id,
                text=event.message.text,
                reply_token=event.reply_token,
            )
        )

    if batch is None:
        return
    if services.messaging is None or not event.reply_token:
        logger.warning(
            f"No messaging client or reply token; dropping reply to {batch.conversation_id}"
        )
        return
    await services.messaging.reply(event.reply_token, batch)


def create_app(
    settings: Optional[Settings] = None, services: Optional[Services] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters:
        settings (Optional[Settings]): Defaults to the process-wide settings.
        services (Optional[Services]): Pre-built collaborators; built from
            `settings` when omitted.
    """
    settings = settings or get_settings()
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"wordcore v{__version__} starting up...")
        yield
        logger.info("wordcore shutting down...")
        await services.aclose()

    app = FastAPI(
        title="wordcore",
        description="Chat-driven vocabulary trainer webhook.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        return HealthResponse(
            status="ok",
            version=__version__,
            conversations=len(services.controller.registry),
        )

    @app.post("/webhook")
    async def line_webhook(request: Request):
        """Handles LINE webhook deliveries; each text event gets one reply."""
        body = await request.body()
        if settings.line_channel_secret:
            try:
                verify_signature(
                    settings.line_channel_secret,
                    body,
                    request.headers.get("x-line-signature"),
                )
            except SignatureError as e:
                logger.warning(f"Rejected webhook delivery: {e}")
                return JSONResponse({"status": "Error"}, status_code=400)

        try:
            payload = LineWebhookBody.model_validate_json(body)
            await asyncio.gather(
                *(handle_line_event(services, e) for e in payload.events)
            )
        except Exception:
            logger.exception("Error handling webhook")
            return JSONResponse({"status": "Error"}, status_code=500)
        return {"status": "Success"}

    @app.post("/api/generate-audio-file")
    async def generate_audio_file(request: Request):
        """Convert text into an audio file and return its public URL."""
        api_key = request.headers.get("internal-api-key")
        if not settings.internal_api_key or api_key != settings.internal_api_key:
            return JSONResponse({"error": "Invalid API key."}, status_code=403)

        try:
            payload = AudioFileRequest.model_validate(await request.json())
        except (ValueError, ValidationError):
            return JSONResponse(
                {"error": "Invalid JSON payload."}, status_code=400
            )
        if not payload.text:
            return JSONResponse(
                {"error": "Invalid or missing 'text' parameter."}, status_code=400
            )
        if not payload.pageId:
            return JSONResponse(
                {"error": "Invalid or missing 'pageId' parameter."},
                status_code=400,
            )
        if services.audio_generator is None:
            return JSONResponse(
                {"error": "Audio generation is disabled."}, status_code=503
            )

        try:
            clip = await services.audio_generator.synthesize(
                payload.text, payload.pageId
            )
        except AudioError as e:
            logger.error(f"Error generating audio file: {e}")
            return JSONResponse(
                {"error": "Failed to generate audio file."}, status_code=500
            )
        return {"fileUrl": clip.url}

    if services.audio_store is not None:
        services.audio_store.directory.mkdir(parents=True, exist_ok=True)
        app.mount(
            "/audio",
            StaticFiles(directory=services.audio_store.directory),
            name="audio",
        )

    return app
