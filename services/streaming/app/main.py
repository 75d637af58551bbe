import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings
from app.playback.cloudfront import UrlSigner
from app.playback.router import router as playback_router
from app.rate_limit import limiter
from shared.middleware import (
    error_envelope_middleware,
    http_exception_handler,
    request_id_middleware,
    validation_exception_handler,
)

logger = logging.getLogger(__name__)


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## Streaming Service

Playback URLs for transcoded HLS course videos.

* **Signed URLs** — CloudFront canned-policy URLs for any object key.
* **Streams** — signed master playlist (and optional rendition playlist) per video.
* **Player** — minimal video.js page for checking a stream in the browser.

Uploads are transcoded out of band: S3 notifications land on SQS, the
dispatcher worker launches one ECS task per video, and the task writes the
HLS package back to S3.

### Response shape
```json
{ "success": true, "data": { ... } }
{ "success": false, "error": "Human-readable message" }
```
"""

_TAGS_METADATA = [
    {
        "name": "playback",
        "description": "Signed CloudFront URLs for HLS playback.",
    },
]


# ── Health schema ─────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str


# ── App factory ───────────────────────────────────────────────────────────────

def get_settings() -> Settings:
    return Settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.signer is None:
        app.state.signer = UrlSigner.from_settings(app.state.settings)
        logger.info("CloudFront signer ready for %s", app.state.signer.base_url)
    yield


def create_app(settings: Settings | None = None, signer: UrlSigner | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title="Streaming Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.signer = signer

    # Attach rate limiter state before middleware
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Middleware (applied in reverse-registration order: last added = outermost)
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(playback_router, prefix="/api")

    @app.get("/health", response_model=HealthResponse, tags=["health"], include_in_schema=True)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="streaming")

    return app


app = create_app()
