"""
HTTP edge for the question generator.

A thin FastAPI layer: it decodes camelCase JSON bodies (``imageData`` is
base64), consults the optional usage quota service, calls the generator
and maps the result onto status codes.

    GET  /health
    POST /generate
    POST /generate/preview
"""
import asyncio
import logging
import os
import uuid
from typing import Any, Awaitable, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError as BodyValidationError
from fastapi.responses import JSONResponse
from pydantic import Base64Bytes

from .collaborators import UsageQuotaService
from .data.models import GenerationRequest, GenerationResult
from .generation.generator import QuestionGenerator
from .generation.validator import RequestValidationError
from .logging_config import request_id_context

logger = logging.getLogger(__name__)

SERVICE_NAME = "quizgen"
UNAVAILABLE_MESSAGE = "AI service unavailable, please retry"
CLIENT_KEY_HEADER = "X-Client-Key"
REQUEST_ID_HEADER = "X-Request-ID"
# nginx convention; the client never sees it
CLIENT_CLOSED_REQUEST = 499


class GenerateBody(GenerationRequest):
    """Wire form of a generation request; ``imageData`` arrives base64 encoded."""

    image_data: Optional[Base64Bytes] = None


def _client_key(request: Request) -> str:
    key = request.headers.get(CLIENT_KEY_HEADER)
    if key:
        return key
    return request.client.host if request.client else "anonymous"


def _error_details(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in errors
    ]


async def _wait_for_disconnect(request: Request) -> None:
    # The body is already read, so the next message is the disconnect
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def _run_until_disconnect(
    request: Request, generation: Awaitable[GenerationResult]
) -> Optional[GenerationResult]:
    """
    Await a generation while watching the client connection.

    Returns:
        The generation result, or None if the client went away first. In
        that case the generation task is cancelled, which cancels the
        in-flight provider call and stops the fallback chain.
    """
    task = asyncio.ensure_future(generation)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        watcher.cancel()
        raise

    if task.done():
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)
        return task.result()

    if watcher.exception() is not None:
        logger.warning(f"Lost track of client connection: {watcher.exception()}")
        return await task

    logger.info("Client disconnected, cancelling generation")
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    return None


def create_app(
    generator: QuestionGenerator,
    quota_service: Optional[UsageQuotaService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        generator: The question generator to expose
        quota_service: Optional usage quota collaborator. Checked before
            generation; usage is recorded only after a successful result.

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(title="Quiz Question Generation Service")

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_context.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_context.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(BodyValidationError)
    async def body_validation_failed(request: Request, exc: BodyValidationError):
        logger.info(f"Rejected malformed request body: {len(exc.errors())} error(s)")
        return JSONResponse(
            status_code=400,
            content={"detail": _error_details(exc.errors())},
        )

    @app.exception_handler(RequestValidationError)
    async def request_out_of_range(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected generation request: {exc}")
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    async def _run(body: GenerateBody, request: Request, preview: bool) -> JSONResponse:
        client_key = _client_key(request)

        if quota_service is not None:
            status = await quota_service.check_allowed(client_key)
            if not status.allowed:
                logger.info(f"Quota exhausted for client {client_key}")
                return JSONResponse(
                    status_code=429,
                    content={
                        "detail": "Usage limit reached",
                        "remaining": status.remaining,
                    },
                )

        generation_request = GenerationRequest.model_validate(body.model_dump())
        if preview:
            generation = generator.generate_preview(generation_request)
        else:
            generation = generator.generate(generation_request)

        result = await _run_until_disconnect(request, generation)
        if result is None:
            return JSONResponse(
                status_code=CLIENT_CLOSED_REQUEST,
                content={"detail": "Client closed request"},
            )

        if not result.success:
            return JSONResponse(
                status_code=503,
                content={
                    "detail": UNAVAILABLE_MESSAGE,
                    "metadata": result.metadata.model_dump(by_alias=True, mode="json"),
                },
            )

        if quota_service is not None:
            await quota_service.record_usage(client_key)

        return JSONResponse(status_code=200, content=_dump(result))

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": SERVICE_NAME, **generator.health()}

    @app.post("/generate")
    async def generate(body: GenerateBody, request: Request):
        """Generate a full batch of questions."""
        return await _run(body, request, preview=False)

    @app.post("/generate/preview")
    async def generate_preview(body: GenerateBody, request: Request):
        """Generate a 5-10 question preview."""
        return await _run(body, request, preview=True)

    return app


def _dump(result: GenerationResult) -> Dict[str, Any]:
    return result.model_dump(by_alias=True, mode="json")


def main() -> None:
    """Serve the API with uvicorn using environment settings."""
    import uvicorn

    from .config.config import settings
    from .config.generation_config import load_generation_config
    from .logging_config import setup_logging
    from .observability import observability
    from .providers import build_default_providers

    setup_logging(level=settings.log_level, json_output=settings.is_production)
    observability.init(
        service_name=settings.service_name,
        environment=settings.env,
        sentry_dsn=settings.sentry_dsn,
        otel_exporter=settings.otel_exporter,
        otel_endpoint=settings.otel_endpoint,
    )

    config = load_generation_config(settings.generation_config_path)
    generator = QuestionGenerator(build_default_providers(settings, config), config)
    app = create_app(generator)

    port = int(os.getenv("PORT", str(settings.api_port)))
    uvicorn.run(app, host=settings.api_host, port=port)


if __name__ == "__main__":
    main()
