"""Banana Studio — FastAPI Application.

This module defines the FastAPI application factory, all routes, and the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :data:`bananastudio.core.config.config`
  (``BANANASTUDIO_*`` environment variables) and is read once.
- **Uploads** are validated and stored by :mod:`bananastudio.api.uploads`.
- **Generation** is delegated to
  :class:`~bananastudio.core.orchestrator.GenerationOrchestrator`, which talks
  to Gemini through a shared :class:`~bananastudio.core.gemini_client.GeminiClient`
  created in the lifespan handler.
- **Uploaded and generated images** are served by ``StaticFiles`` under
  ``/uploads``.
- **Errors** never escape a request: domain errors, body validation errors
  and unexpected exceptions are all rendered as JSON ``{"error": ...}``.

Endpoints
---------
========  ======================  ========================================
Method    Path                    Purpose
========  ======================  ========================================
POST      ``/upload``             Store images, return URL + data URI
POST      ``/save-api-key``       Persist the Gemini API key
GET       ``/api-key/status``     Whether a key is stored
POST      ``/generate``           Generate images with Gemini
GET       ``/health``             Static capability descriptor
GET       ``/uploads/...``        Stored images
========  ======================  ========================================

Usage
-----
CLI (installed entry point)::

    bananastudio

Direct invocation::

    python -m bananastudio.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from bananastudio import __version__
from bananastudio.api.models import GenerateRequest, SaveApiKeyRequest
from bananastudio.api.uploads import IncomingFile, store_uploads
from bananastudio.core.config import StudioConfig, config
from bananastudio.core.credentials import CredentialStore, resolve_credential
from bananastudio.core.errors import StudioError
from bananastudio.core.gemini_client import GeminiClient
from bananastudio.core.orchestrator import GenerationOrchestrator
from bananastudio.core.storage import ImageStorage

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies — everything request handlers need lives on ``app.state``.
# ---------------------------------------------------------------------------


def get_config(request: Request) -> StudioConfig:
    return request.app.state.config


def get_storage(request: Request) -> ImageStorage:
    return request.app.state.storage


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_gemini_client(request: Request) -> GeminiClient:
    return request.app.state.gemini_client


# ---------------------------------------------------------------------------
# Error rendering.
# ---------------------------------------------------------------------------


async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    """Render a domain error with its own status and payload."""
    logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 instead of FastAPI's 422."""
    details = "; ".join(
        f"{'.'.join(str(loc) for loc in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback and return a generic 500."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@router.post("/upload")
async def upload_images(
    images: list[UploadFile] | None = File(default=None),
    cfg: StudioConfig = Depends(get_config),
    storage: ImageStorage = Depends(get_storage),
) -> dict:
    """Store uploaded images and return previews.

    Each file is returned as ``{"url": ..., "base64": "data:<type>;base64,..."}``
    in upload order.

    Raises:
        ValidationError: No files, too many files, oversized or non-image file.
        LocalIOError: Disk write or read-back failure.
    """
    images = images or []
    logger.info(f"Upload request with {len(images)} file(s)")

    incoming: list[IncomingFile] = []
    for upload in images[: cfg.max_upload_files + 1]:
        # Read one byte past the limit so oversized files are detected
        # without pulling the whole file into memory.
        data = await upload.read(cfg.max_upload_bytes + 1)
        incoming.append(
            IncomingFile(filename=upload.filename or "", content_type=upload.content_type, data=data)
        )

    stored = store_uploads(
        incoming,
        storage,
        max_files=cfg.max_upload_files,
        max_bytes=cfg.max_upload_bytes,
    )
    return {"files": [item.to_payload() for item in stored]}


@router.post("/save-api-key")
async def save_api_key(
    req: SaveApiKeyRequest,
    credentials: CredentialStore = Depends(get_credential_store),
) -> dict:
    """Persist the Gemini API key on the server.

    Raises:
        ValidationError: If the key is empty.
        LocalIOError: If the key file cannot be written.
    """
    credentials.save(req.api_key)
    return {"success": True}


@router.get("/api-key/status")
async def api_key_status(
    credentials: CredentialStore = Depends(get_credential_store),
) -> dict:
    """Report whether a key is stored, without revealing it."""
    return {"configured": credentials.is_configured}


@router.post("/generate")
async def generate(
    req: GenerateRequest,
    cfg: StudioConfig = Depends(get_config),
    storage: ImageStorage = Depends(get_storage),
    credentials: CredentialStore = Depends(get_credential_store),
    client: GeminiClient = Depends(get_gemini_client),
) -> dict:
    """Generate images from a prompt and optional reference images.

    Returns:
        ``{"data": [{"url", "base64", "revised_prompt"}, ...]}`` plus
        ``warnings`` when reference images were skipped.

    Raises:
        StudioError: Any validation, credential, upstream or storage failure.
    """
    logger.info(
        f"Generate request: prompt length {len(req.prompt)}, "
        f"{len(req.image_urls)} reference image(s), "
        f"num_images={req.num_images}, request key: {bool(req.api_key)}"
    )

    credential = resolve_credential(req.api_key, credentials, cfg.credential_source)

    orchestrator = GenerationOrchestrator(
        client,
        storage,
        inspect_finish_reason=cfg.inspect_finish_reason,
        max_references=cfg.max_reference_images,
    )
    result = await orchestrator.generate(req.prompt, req.image_urls, credential)
    return result.to_payload()


@router.get("/health")
async def health(cfg: StudioConfig = Depends(get_config)) -> dict:
    """Static capability descriptor."""
    return {
        "status": "ok",
        "version": __version__,
        "api": "Nano Banana (Google Gemini 2.5 Flash Image)",
        "model": cfg.gemini_model,
        "credential_source": cfg.credential_source,
        "features": [
            f"Up to {cfg.max_reference_images} reference images",
            "Base64 input and output",
            "Image editing",
        ],
    }


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(settings: StudioConfig | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration to use.  Defaults to the global ``config``.

    Returns:
        A fully wired application.
    """
    settings = settings or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open the shared Gemini HTTP client on startup, close it on shutdown."""
        app.state.gemini_client = GeminiClient(
            settings.gemini_api_base,
            settings.gemini_model,
            timeout=settings.request_timeout,
        )
        logger.info(f"Gemini client ready for model {settings.gemini_model}")

        yield

        await app.state.gemini_client.aclose()
        logger.info("Gemini client closed on shutdown.")

    app = FastAPI(
        title="Banana Studio",
        description="Image upload and Gemini image generation API.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = settings
    app.state.storage = ImageStorage(
        settings.uploads_dir,
        settings.uploads_url_base,
        max_files=settings.retention_max_files,
        max_age_hours=settings.retention_max_age_hours,
    )
    app.state.credentials = CredentialStore(settings.credential_file)

    # The browser UI is usually opened from a file or another port.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StudioError, studio_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router)
    app.mount(
        "/" + settings.uploads_url_prefix.strip("/"),
        StaticFiles(directory=str(settings.uploads_dir)),
        name="uploads",
    )

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~bananastudio.core.config.config`
    (``BANANASTUDIO_SERVER_HOST`` / ``BANANASTUDIO_SERVER_PORT``).  Defaults to
    ``0.0.0.0:3000``.

    This function is registered as the ``bananastudio`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Starting Banana Studio on {config.server_host}:{config.server_port}")

    uvicorn.run(
        "bananastudio.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
