"""
Playback — HTTP routes.

Mounted under /api: /api/url/generate, /api/url/stream/..., /api/url/player/...
"""
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse

from app.playback import controller
from app.playback.cloudfront import UrlSigner
from app.playback.dependencies import get_signer
from app.playback.schemas import GenerateUrlRequest, GenerateUrlResponse, StreamResponse
from app.rate_limit import limiter

router = APIRouter(prefix="/url", tags=["playback"])


@router.post(
    "/generate",
    response_model=GenerateUrlResponse,
    summary="Generate a signed CloudFront URL",
    description=(
        "Signs the given object key with a canned policy. The URL stops "
        "working after expiresIn seconds (default 3600)."
    ),
)
@limiter.limit("60/minute")
async def generate_url(
    request: Request,
    body: GenerateUrlRequest,
    signer: UrlSigner = Depends(get_signer),
) -> GenerateUrlResponse:
    return controller.generate_url(body, signer)


@router.get(
    "/stream/{course_id}/{video_id}",
    response_model=StreamResponse,
    summary="Signed HLS playlist URLs",
    description=(
        "Returns a signed master playlist URL. With ?quality=720p (or any "
        "other rendition label) a signed rendition playlist URL is added."
    ),
)
async def stream_urls(
    course_id: str,
    video_id: str,
    quality: str | None = Query(default=None, description="1080p, 720p, 480p or 360p"),
    signer: UrlSigner = Depends(get_signer),
) -> StreamResponse:
    return controller.stream_urls(course_id, video_id, quality, signer)


@router.get(
    "/player/{course_id}/{video_id}",
    response_class=HTMLResponse,
    summary="HTML test player",
)
async def player(
    course_id: str,
    video_id: str,
    signer: UrlSigner = Depends(get_signer),
) -> HTMLResponse:
    return HTMLResponse(controller.player_html(course_id, video_id, signer))
