"""Fire Horse Art Generator - FastAPI Application.

This module defines the FastAPI application factory, all REST API routes,
and the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Configuration** comes from :class:`~firehorse.core.config.FirehorseConfig`
  (environment variables with the ``FIREHORSE_`` prefix).
- **Image generation** is delegated to
  :class:`~firehorse.core.generation.GenerationOrchestrator`, which tries each
  configured provider and falls back to a placeholder image.  Generation
  requests therefore always succeed once the prompt is valid.
- **Gallery persistence** uses :class:`~firehorse.core.artwork_store.ArtworkStore`
  (SQLite).  Store calls run in the threadpool so they never block the
  event loop.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/health``                   Liveness check
GET       ``/test-api``                 Provider connectivity check
POST      ``/generate``                 Generate an image without storing it
GET       ``/api/gallery``              Paginated, sorted, filtered gallery
GET       ``/api/artwork/{id}``         Single artwork
POST      ``/api/artwork/{id}/like``    Like an artwork (once per IP)
DELETE    ``/api/artwork/{id}``         Delete an artwork and its votes
POST      ``/api/generate``             Generate and store an artwork
GET       ``/api/stats``                Gallery statistics
GET       ``/api/search``               Prompt substring search
========  ============================  ====================================

Error Responses
---------------
Every error body has the shape ``{"success": false, "error": "..."}``:

- 400 for invalid input (short prompt or query, bad paging parameters)
- 404 for unknown artwork ids
- 500 for database failures

Usage
-----
CLI (installed entry point)::

    firehorse

Direct invocation::

    python -m firehorse.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from firehorse import __version__
from firehorse.api.models import GenerateRequest, QuickGenerateRequest
from firehorse.core.artwork_store import ArtworkStore
from firehorse.core.config import FirehorseConfig, config
from firehorse.core.errors import NotFoundError, StoreError, ValidationError
from firehorse.core.generation import GenerationOrchestrator
from firehorse.core.prompt_enhancer import enhance_prompt, normalize_size, validate_prompt
from firehorse.core.providers import provider_registry

logger = logging.getLogger(__name__)

SERVICE_NAME = "Fire Horse Art Generator"
FEATURES = ["generate", "gallery", "likes", "search", "stats"]


def client_ip(request: Request) -> str:
    """Return the requester IP, honouring the first ``X-Forwarded-For`` hop."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_app(
    app_config: FirehorseConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        app_config: Configuration to use.  Defaults to the global ``config``.
        transport: Optional httpx transport handed to every provider client,
            used by tests to stub the network.

    Returns:
        A configured :class:`FastAPI` instance.
    """
    cfg = app_config or config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open the artwork store and build the provider chain on startup."""
        # --- Startup -------------------------------------------------------
        store = ArtworkStore(cfg.database_path)
        if cfg.seed_sample_artworks:
            await run_in_threadpool(store.seed_samples)

        clients = provider_registry.build_chain(cfg.provider_chain(), transport=transport)
        for client in clients:
            info = client.get_info()
            logger.info(
                f"Provider {info['name']}: kind={info['kind']} model={info['model']} "
                f"base_url={info['base_url']} key={info['api_key_preview']}"
            )
            if not info["configured"]:
                logger.warning(f"Provider {info['name']} has no API key; it will always fall back")

        app.state.config = cfg
        app.state.store = store
        app.state.clients = clients
        app.state.orchestrator = GenerationOrchestrator(clients)
        logger.info(f"{SERVICE_NAME} ready (database={cfg.database_path})")

        yield  # Application runs here.

        # --- Shutdown ------------------------------------------------------
        logger.info(f"{SERVICE_NAME} shutting down")

    app = FastAPI(
        title=SERVICE_NAME,
        description="Themed AI image generation with a likeable public gallery.",
        version=__version__,
        lifespan=lifespan,
    )

    # The gallery frontend may be served from anywhere.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Error mapping.
    # -----------------------------------------------------------------------

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        return _error(400, f"{location}: {message}" if location else message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, "Artwork not found")

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error(500, "Server error")

    # -----------------------------------------------------------------------
    # Routes.
    # -----------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict:
        """Liveness check."""
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": __version__,
            "features": FEATURES,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/test-api")
    async def test_api(request: Request) -> dict:
        """Check that every configured provider is reachable.

        API keys are reported only as a masked preview.
        """
        results = []
        for client in request.app.state.clients:
            status = await client.check()
            status["api_key_preview"] = client.provider.key_preview
            results.append(status)
        return {
            "success": any(result["success"] for result in results),
            "providers": results,
        }

    @app.post("/generate")
    async def quick_generate(req: QuickGenerateRequest, request: Request) -> dict:
        """Generate one image without adding it to the gallery.

        Always answers 200 once the prompt is valid; on provider failure the
        reply carries a size-matched placeholder and ``source="fallback_demo"``.
        """
        prompt = validate_prompt(req.prompt)
        size = normalize_size(req.image_size)
        enhanced = enhance_prompt(prompt, size=size)

        orchestrator: GenerationOrchestrator = request.app.state.orchestrator
        resolution = await orchestrator.resolve_image(enhanced, size=size, style=None)

        if resolution.is_fallback:
            body = {
                "success": True,
                "image_url": resolution.image_ref,
                "prompt": prompt,
                "size": size,
                "source": resolution.source,
                "message": "Image created (using demo - API unavailable)",
            }
            if resolution.errors:
                body["api_error"] = "; ".join(resolution.errors)
            return body

        return {
            "success": True,
            "image_url": resolution.image_ref,
            "prompt": prompt,
            "enhanced_prompt": enhanced,
            "size": size,
            "source": resolution.source,
            "message": f"Fire Horse created with {resolution.provider}!",
        }

    @app.get("/api/gallery")
    async def get_gallery(
        request: Request,
        page: int = 1,
        limit: int = 12,
        sort: str = "newest",
        style: str | None = None,
    ) -> dict:
        """Return a page of artworks.

        Args:
            page: Page number (1-indexed).  Pages past the end are empty.
            limit: Artworks per page (1-100).
            sort: ``newest``, ``popular`` or ``random``.
            style: Style filter; ``all`` or omitted returns every style.
        """
        store: ArtworkStore = request.app.state.store
        result = await run_in_threadpool(store.list_artworks, page, limit, sort, style)
        return {
            "success": True,
            "artworks": [artwork.to_dict() for artwork in result.items],
            "pagination": {
                "page": result.page,
                "limit": result.page_size,
                "total": result.total,
                "totalPages": result.total_pages,
            },
        }

    @app.get("/api/artwork/{artwork_id}")
    async def get_artwork(artwork_id: int, request: Request) -> dict:
        """Return a single artwork, or 404."""
        store: ArtworkStore = request.app.state.store
        artwork = await run_in_threadpool(store.get_artwork, artwork_id)
        return {"success": True, "artwork": artwork.to_dict()}

    @app.post("/api/artwork/{artwork_id}/like")
    async def like_artwork(artwork_id: int, request: Request) -> dict:
        """Like an artwork on behalf of the requester IP.

        A repeat like from the same IP is answered with ``success: false``
        and leaves the count unchanged.
        """
        store: ArtworkStore = request.app.state.store
        outcome = await run_in_threadpool(store.like_artwork, artwork_id, client_ip(request))
        if outcome.already_voted:
            return {
                "success": False,
                "message": "You have already liked this artwork",
                "likes": outcome.likes,
            }
        return {"success": True, "message": "Liked!", "likes": outcome.likes}

    @app.delete("/api/artwork/{artwork_id}")
    async def delete_artwork(artwork_id: int, request: Request) -> dict:
        """Delete an artwork and every vote cast for it."""
        store: ArtworkStore = request.app.state.store
        await run_in_threadpool(store.delete_artwork, artwork_id)
        return {"success": True, "message": "Artwork deleted"}

    @app.post("/api/generate")
    async def generate_artwork(req: GenerateRequest, request: Request) -> dict:
        """Generate an artwork and add it to the gallery.

        Answers 200 for every valid prompt.  When no provider produces an
        image the artwork uses a placeholder and its prompt carries the
        ``(demo mode)`` annotation.
        """
        orchestrator: GenerationOrchestrator = request.app.state.orchestrator
        result = await orchestrator.generate(
            req.prompt,
            store=request.app.state.store,
            style=req.style,
            size=req.image_size,
            user_ip=client_ip(request),
            user_agent=req.user_agent or request.headers.get("user-agent"),
        )
        resolution = result.resolution
        message = (
            "Fire Horse has arrived! (demo mode)"
            if resolution.is_fallback
            else "Fire Horse has arrived!"
        )
        return {
            "success": True,
            "artwork": result.artwork.to_dict(),
            "source": resolution.source,
            "message": message,
        }

    @app.get("/api/stats")
    async def get_stats(request: Request) -> dict:
        """Return gallery totals."""
        store: ArtworkStore = request.app.state.store
        stats = await run_in_threadpool(store.get_stats)
        return {"success": True, "stats": stats.to_dict()}

    @app.get("/api/search")
    async def search(request: Request, q: str = "", limit: int = 20) -> dict:
        """Search prompts for a substring (at least two characters)."""
        store: ArtworkStore = request.app.state.store
        artworks = await run_in_threadpool(store.search_artworks, q, limit)
        return {
            "success": True,
            "artworks": [artwork.to_dict() for artwork in artworks],
            "count": len(artworks),
        }

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~firehorse.core.config.config` (which
    loads from ``FIREHORSE_SERVER_HOST`` and ``FIREHORSE_SERVER_PORT`` or
    ``PORT``).  Defaults to ``0.0.0.0:10000``.

    This function is registered as the ``firehorse`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "firehorse.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
